"""Database connection management for shiptrack.

Provides synchronous database access using SQLAlchemy. Supports SQLite for
local use with PostgreSQL as the production path.

Usage:
    from shiptrack.db.connection import get_db_context, init_db

    init_db()  # Create tables
    with get_db_context() as db:
        # ... use db session
"""

import logging
import os
from collections.abc import Generator
from contextlib import contextmanager
from typing import Any

from sqlalchemy import Engine, create_engine, event, text
from sqlalchemy.orm import Session, sessionmaker

from shiptrack.db.models import Base

logger = logging.getLogger(__name__)


# Configuration
def get_database_url() -> str:
    """Get database URL from environment or use default SQLite.

    Precedence:
    1. DATABASE_URL (canonical)
    2. SHIPTRACK_DB_PATH (converted to sqlite URL)
    3. sqlite:///<user data dir>/shiptrack.db
    """
    database_url = os.environ.get("DATABASE_URL", "").strip()
    if database_url:
        return database_url

    db_path = os.environ.get("SHIPTRACK_DB_PATH", "").strip()
    if db_path:
        if db_path.startswith("sqlite:"):
            return db_path
        return f"sqlite:///{db_path}"

    from shiptrack.utils.paths import ensure_dirs_exist, get_default_db_path
    ensure_dirs_exist()
    return f"sqlite:///{get_default_db_path()}"


def _set_sqlite_pragma(dbapi_connection: Any, connection_record: Any) -> None:
    """Configure SQLite pragmas for correctness and concurrency.

    Enables:
    - foreign_keys=ON: Referential integrity (disabled by default in SQLite).
    - journal_mode=WAL: Concurrent readers alongside a single writer.
    - synchronous=NORMAL: Commits are durable after WAL fsync.
    """
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.execute("PRAGMA journal_mode=WAL;")
    cursor.execute("PRAGMA synchronous=NORMAL;")
    cursor.close()


def create_db_engine(url: str) -> Engine:
    """Create an engine for the given URL with shiptrack defaults.

    Args:
        url: SQLAlchemy database URL.

    Returns:
        Configured Engine. SQLite engines get the pragma listener.
    """
    is_sqlite = url.startswith("sqlite")
    db_engine = create_engine(
        url,
        connect_args={"check_same_thread": False} if is_sqlite else {},
        echo=os.environ.get("SQL_ECHO", "").lower() == "true",
    )
    if is_sqlite:
        event.listen(db_engine, "connect", _set_sqlite_pragma)
    return db_engine


# Engine and session factory are created on first use so the CLI can point
# them at another database before anything connects.
_engine: Engine | None = None

SessionLocal = sessionmaker(autocommit=False, autoflush=False)


def configure_engine(url: str | None = None) -> Engine:
    """Bind the session factory to a (new) engine.

    Args:
        url: Database URL. Defaults to get_database_url().

    Returns:
        The engine now bound to SessionLocal.
    """
    global _engine
    if _engine is not None:
        _engine.dispose()
    _engine = create_db_engine(url or get_database_url())
    SessionLocal.configure(bind=_engine)
    logger.debug("Database engine bound to %s", _engine.url.render_as_string())
    return _engine


def get_engine() -> Engine:
    """Return the current engine, creating the default one if needed."""
    if _engine is None:
        return configure_engine()
    return _engine


@contextmanager
def get_db_context() -> Generator[Session, None, None]:
    """Context manager for database sessions.

    Commits on clean exit, rolls back and re-raises on error.

    Usage:
        with get_db_context() as db:
            shipment = db.query(Shipment).first()
    """
    get_engine()
    db = SessionLocal()
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


def _ensure_columns_exist(conn: Any) -> None:
    """Add columns introduced after a SQLite database was created.

    Uses PRAGMA table_info to find missing columns. Idempotent.
    """
    if conn.dialect.name != "sqlite":
        return

    result = conn.execute(text("PRAGMA table_info(status_updates)"))
    existing = {row[1] for row in result.fetchall()}

    migrations: list[tuple[str, str]] = [
        (
            "timestamp_defaulted",
            "ALTER TABLE status_updates "
            "ADD COLUMN timestamp_defaulted BOOLEAN NOT NULL DEFAULT 0",
        ),
    ]
    for col_name, ddl in migrations:
        if col_name not in existing:
            conn.execute(text(ddl))
            logger.info("Added column status_updates.%s", col_name)


def init_db() -> None:
    """Create all database tables.

    Safe to call multiple times - will not recreate existing tables.
    Adds missing columns to tables from older databases.
    """
    engine = get_engine()
    Base.metadata.create_all(bind=engine)
    with engine.begin() as conn:
        _ensure_columns_exist(conn)


def close_db() -> None:
    """Dispose of the engine's connection pool."""
    global _engine
    if _engine is not None:
        _engine.dispose()
        _engine = None
