"""Database layer: SQLAlchemy models and the Database handle."""

from server.db.models import Base, PhraseRow, UserStat, ApiCacheRow, LessonCacheRow, ConversationRow
from server.db.session import Database

__all__ = [
    "Base",
    "PhraseRow",
    "UserStat",
    "ApiCacheRow",
    "LessonCacheRow",
    "ConversationRow",
    "Database",
]
