"""
Database engine and session management for ManualFolio.
Uses SQLModel on top of SQLAlchemy; SQLite is the default store.
SQLite connections get Write-Ahead Logging, a busy timeout and
foreign key enforcement so ownership cascades work.
"""

from sqlalchemy import event
from sqlalchemy.engine import Engine
from sqlalchemy.pool import StaticPool
from sqlmodel import SQLModel, create_engine
from typing import Optional
import logging

from config import get_settings

logger = logging.getLogger(__name__)

# Global engine instance
_engine: Optional[Engine] = None


def create_db_engine(database_url: str, echo: bool = False) -> Engine:
    """
    Create an engine for the given URL.

    In-memory SQLite URLs share one connection across sessions, otherwise
    every session would see its own empty database.
    """
    if database_url.startswith("sqlite"):
        kwargs = {"connect_args": {"check_same_thread": False}}
        if database_url in ("sqlite://", "sqlite:///:memory:"):
            kwargs["poolclass"] = StaticPool
        engine = create_engine(database_url, echo=echo, **kwargs)
        event.listen(engine, "connect", _configure_sqlite_connection)
        return engine
    return create_engine(database_url, echo=echo)


def _configure_sqlite_connection(dbapi_connection, connection_record):
    """Apply per-connection SQLite pragmas."""
    cursor = dbapi_connection.cursor()
    try:
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.execute("PRAGMA journal_mode=WAL")
        cursor.execute("PRAGMA busy_timeout=5000")
    except Exception as e:
        logger.warning(f"Could not configure SQLite connection: {e}")
    finally:
        cursor.close()


def get_engine() -> Engine:
    """Get or create the database engine from settings."""
    global _engine
    if _engine is None:
        settings = get_settings()
        _engine = create_db_engine(settings.database_url, settings.db_echo)
        logger.info(f"Database engine created for {settings.database_url}")
    return _engine


def set_engine(engine: Optional[Engine]) -> None:
    """Replace the global engine (used by tests to inject an in-memory database)."""
    global _engine
    _engine = engine


def init_db():
    """Initialize the database and create all tables."""
    import models  # noqa: F401  registers table metadata

    engine = get_engine()
    SQLModel.metadata.create_all(engine)
    logger.info("Database initialized")
