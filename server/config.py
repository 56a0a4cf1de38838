"""Configuration for the Phrasedeck API server."""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional


@dataclass
class Settings:
    """
    Runtime settings for the server and CLI.

    Defaults resolve relative to the project root.
    Every field is overridable at construction for testing.
    """
    database_url: Optional[str] = None
    lesson_ttl_days: int = 7
    lessons_per_key: int = 10
    conversation_lookup_limit: int = 5
    cors_origins: List[str] = field(default_factory=lambda: ["http://localhost:8081"])
    log_level: str = "INFO"

    def __post_init__(self):
        project_root = Path(__file__).resolve().parent.parent

        if self.database_url is None:
            self.database_url = os.environ.get(
                "DATABASE_URL", f"sqlite:///{project_root / 'phrasedeck.db'}"
            )

        env_ttl = os.environ.get("LESSON_TTL_DAYS")
        if env_ttl is not None:
            try:
                self.lesson_ttl_days = int(env_ttl)
            except ValueError:
                pass
        env_per_key = os.environ.get("LESSONS_PER_KEY")
        if env_per_key is not None:
            try:
                self.lessons_per_key = int(env_per_key)
            except ValueError:
                pass

        if v := os.environ.get("CORS_ORIGINS"):
            self.cors_origins = [o.strip() for o in v.split(",") if o.strip()]
        if v := os.environ.get("LOG_LEVEL"):
            self.log_level = v.upper()
