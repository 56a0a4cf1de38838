"""FastAPI dependency factories."""

from functools import lru_cache

from fastapi import Depends, Request

from server.config import Settings
from server.content_cache import ContentCache
from server.db.session import Database
from server.repositories import ActivityLog, PhraseRepository


@lru_cache()
def get_settings() -> Settings:
    """Singleton Settings -- override via app.dependency_overrides in tests."""
    return Settings()


def get_database(request: Request) -> Database:
    """The Database opened by the app lifespan -- override in tests."""
    return request.app.state.database


def get_phrase_repo(db: Database = Depends(get_database)) -> PhraseRepository:
    return PhraseRepository(db)


def get_activity_log(db: Database = Depends(get_database)) -> ActivityLog:
    return ActivityLog(db)


def get_content_cache(
    db: Database = Depends(get_database),
    settings: Settings = Depends(get_settings),
) -> ContentCache:
    return ContentCache.from_settings(db, settings)
