"""Initial schema: phrases, user_stats, api_cache, lesson_cache, conversations.

Revision ID: 001
Revises:
Create Date: 2026-10-19

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "phrases",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("original", sa.Text, nullable=False),
        sa.Column("translated", sa.Text, nullable=False),
        sa.Column("pronunciation", sa.Text, server_default=""),
        sa.Column("explanation", sa.Text, server_default=""),
        sa.Column("use_case", sa.Text, server_default=""),
        sa.Column("next_review", sa.BigInteger, nullable=False),
        sa.Column("ease_factor", sa.Float, server_default="2.5"),
        sa.Column("interval", sa.Integer, server_default="1"),
        sa.Column("created_at", sa.BigInteger, nullable=False),
    )
    op.create_index("ix_phrases_next_review", "phrases", ["next_review"])
    op.create_table(
        "user_stats",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("date", sa.String(10), nullable=False),
        sa.Column("type", sa.String(32), nullable=False),
        sa.Column("score", sa.Integer, server_default="0"),
    )
    op.create_index("ix_user_stats_date", "user_stats", ["date"])
    op.create_table(
        "api_cache",
        sa.Column("hash_key", sa.String(64), primary_key=True),
        sa.Column("response_json", sa.Text, nullable=False),
        sa.Column("timestamp", sa.BigInteger, nullable=False),
    )
    op.create_table(
        "lesson_cache",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("topic", sa.String(255), nullable=False),
        sa.Column("language", sa.String(64), nullable=False),
        sa.Column("level", sa.String(64), nullable=False),
        sa.Column("lesson_json", sa.Text, nullable=False),
        sa.Column("created_at", sa.BigInteger, nullable=False),
    )
    op.create_table(
        "conversations",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("scenario", sa.String(255), nullable=False),
        sa.Column("language", sa.String(64), nullable=False),
        sa.Column("messages_json", sa.Text, nullable=False),
        sa.Column("created_at", sa.BigInteger, nullable=False),
    )


def downgrade() -> None:
    op.drop_table("conversations")
    op.drop_table("lesson_cache")
    op.drop_table("api_cache")
    op.drop_index("ix_user_stats_date", table_name="user_stats")
    op.drop_table("user_stats")
    op.drop_index("ix_phrases_next_review", table_name="phrases")
    op.drop_table("phrases")
