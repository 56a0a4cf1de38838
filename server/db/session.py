"""Database handle: one engine and session factory per Database instance."""

import logging
from collections.abc import Generator
from contextlib import contextmanager

from sqlalchemy import create_engine, event
from sqlalchemy.orm import Session as DBSession, sessionmaker

from server.db.models import Base

logger = logging.getLogger("phrasedeck.db")


def _serialize_sqlite_writes(engine) -> None:
    """
    Make every SQLite transaction take the write lock up front.

    SQLite ignores SELECT ... FOR UPDATE, and pysqlite defers BEGIN until the
    first write, so two read-modify-write transactions could interleave.
    """
    @event.listens_for(engine, "connect")
    def _connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def _begin(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")


class Database:
    """
    Explicit database handle passed to repositories.

    Owns its engine; call dispose() when done. Nothing is cached at module
    level, so two handles never share a connection pool.
    """

    def __init__(self, url: str):
        self.url = url
        if url.startswith("sqlite"):
            self.engine = create_engine(url, connect_args={"check_same_thread": False})
            _serialize_sqlite_writes(self.engine)
        else:
            self.engine = create_engine(url)
        self._factory = sessionmaker(autocommit=False, autoflush=False, bind=self.engine)

    @classmethod
    def from_settings(cls, settings) -> "Database":
        return cls(settings.database_url)

    @contextmanager
    def session(self) -> Generator[DBSession, None, None]:
        """Yield a session wrapped in one transaction: commit on success, rollback on error."""
        session = self._factory()
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    def init_schema(self) -> None:
        """Create all tables."""
        Base.metadata.create_all(bind=self.engine)
        logger.info("Schema ready at %s", self.engine.url.render_as_string(hide_password=True))

    def dispose(self) -> None:
        self.engine.dispose()
