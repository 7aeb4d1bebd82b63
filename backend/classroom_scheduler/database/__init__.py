"""
Database engine, session factory, and metadata shared across the scheduler.
"""

from __future__ import annotations

import logging
from typing import Any, Generator

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, declarative_base, sessionmaker

from ..core.config import settings
from .session_utils import get_dialect_name, resolve_session_bind

logger = logging.getLogger(__name__)

_DEFAULT_POOL_KWARGS: dict[str, Any] = {
    "pool_size": 5,
    "max_overflow": 5,
    "pool_timeout": 5,
    "pool_recycle": 300,
    "pool_pre_ping": True,
}


def _build_engine_kwargs(db_url: str) -> dict[str, Any]:
    """Pool tuning for server databases; SQLite keeps its default pool."""
    kwargs: dict[str, Any] = {"echo": settings.database_echo, "future": True}
    if db_url.startswith("sqlite"):
        kwargs["connect_args"] = {
            "check_same_thread": False,
            "timeout": settings.sqlite_busy_timeout_seconds,
        }
        return kwargs
    kwargs.update(_DEFAULT_POOL_KWARGS)
    return kwargs


def enable_sqlite_savepoints(engine: Engine) -> None:
    """
    Take over pysqlite transaction control.

    The driver defers BEGIN until the first DML statement, which breaks
    begin_nested(). Transactions instead open with BEGIN IMMEDIATE: the write
    lock is held from the first statement, so a lookup followed by an insert
    in one transaction is serialized against other writers. A second writer
    waits in BEGIN for up to ``sqlite_busy_timeout_seconds`` and then sees the
    first writer's committed rows. Upgrading a shared lock mid-transaction
    would fail with "database is locked" instead of waiting.
    """

    @event.listens_for(engine, "connect")
    def _disable_pysqlite_begin(dbapi_connection: Any, connection_record: Any) -> None:
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def _emit_begin(conn: Any) -> None:
        conn.exec_driver_sql("BEGIN IMMEDIATE")


def create_db_engine(db_url: str | None = None, **overrides: Any) -> Engine:
    """Create an engine for ``db_url`` (defaults to settings.database_url)."""
    url = db_url or settings.database_url
    logger.debug("Creating database engine for dialect %s", url.split(":", 1)[0])
    kwargs = _build_engine_kwargs(url)
    kwargs.update(overrides)
    db_engine = create_engine(url, **kwargs)
    if db_engine.dialect.name == "sqlite":
        enable_sqlite_savepoints(db_engine)
    return db_engine


engine: Engine = create_db_engine()

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine, expire_on_commit=False)

Base = declarative_base()


def get_db() -> Generator[Session, None, None]:
    """Get database session with proper cleanup."""
    db = SessionLocal()
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


__all__ = [
    "Base",
    "SessionLocal",
    "create_db_engine",
    "enable_sqlite_savepoints",
    "engine",
    "get_db",
    "get_dialect_name",
    "resolve_session_bind",
]
