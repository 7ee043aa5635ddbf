"""SQLAlchemy engine construction and the process-wide database handle."""

from __future__ import annotations

import logging
import os
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Iterator

from sqlalchemy import create_engine, event
from sqlalchemy.engine import URL, Engine, make_url
from sqlalchemy.orm import Session, sessionmaker

from .orm_logging import OrmLogHandler, emit_log_levels, handle_orm_logging

if TYPE_CHECKING:  # pragma: no cover - imported for type checking only
    from starter.config import RuntimeSettings

LOGGER = logging.getLogger("starter.db")


def _postgres_engine_kwargs() -> dict[str, Any]:
    """Return connection pooling settings for Postgres."""

    pool_size = int(os.getenv("DB_POOL_SIZE", "5"))
    max_overflow = int(os.getenv("DB_POOL_MAX_OVERFLOW", "10"))
    pool_timeout = int(os.getenv("DB_POOL_TIMEOUT", "30"))
    pool_recycle = int(os.getenv("DB_POOL_RECYCLE", "1800"))

    return {
        "pool_size": pool_size,
        "max_overflow": max_overflow,
        "pool_timeout": pool_timeout,
        "pool_recycle": pool_recycle,
        "pool_pre_ping": True,
    }


def _psycopg_connect_args() -> dict[str, Any]:
    """Return psycopg (v3) prepared statement settings."""

    return {"prepare_threshold": int(os.getenv("PG_PREPARE_THRESHOLD") or "1")}


def build_engine(db_url: str | URL) -> Engine:
    """Create a SQLAlchemy engine for ``db_url``."""

    resolved_url = make_url(str(db_url))
    engine_kwargs: dict[str, Any] = {"echo": False}

    if resolved_url.get_backend_name() in {"postgresql", "postgres"}:
        engine_kwargs.update(_postgres_engine_kwargs())
        if resolved_url.get_driver_name() == "psycopg":
            engine_kwargs["connect_args"] = _psycopg_connect_args()

    engine = create_engine(resolved_url, **engine_kwargs)

    if "connect_args" in engine_kwargs:
        prepared_max = int(os.getenv("PG_PREPARED_STATEMENT_CACHE_SIZE") or "256")

        @event.listens_for(engine, "connect")
        def _psycopg_configure(dbapi_connection, connection_record):  # pragma: no cover - needs a live server
            dbapi_connection.prepared_max = prepared_max

    if resolved_url.get_backend_name() == "sqlite":

        @event.listens_for(engine, "connect")
        def _sqlite_configure(dbapi_connection, connection_record):  # pragma: no cover - depends on driver
            cursor = dbapi_connection.cursor()
            try:
                cursor.execute("PRAGMA journal_mode=WAL;")
                cursor.execute("PRAGMA synchronous=NORMAL;")
            finally:
                cursor.close()

    return engine


@dataclass
class Database:
    """ORM client shared by every request for the lifetime of the process.

    The handle only carries configuration: the engine, a session factory
    and the log forwarding installed by :func:`handle_orm_logging`. Schema,
    queries and transactions belong to the code that uses it.
    """

    engine: Engine
    session_factory: sessionmaker[Session]
    log_levels: tuple[str, ...] = ()
    _log_handler: OrmLogHandler | None = field(default=None, repr=False)

    @classmethod
    def from_engine(cls, engine: Engine) -> "Database":
        factory = sessionmaker(
            bind=engine, autoflush=False, autocommit=False, expire_on_commit=False
        )
        return cls(engine=engine, session_factory=factory)

    @contextmanager
    def session_scope(self) -> Iterator[Session]:
        session = self.session_factory()
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    def dispose(self) -> None:
        """Detach ORM log forwarding and release pooled connections."""

        if self._log_handler is not None:
            self._log_handler.detach()
            self._log_handler = None
        self.engine.dispose()


def init_database(
    settings: RuntimeSettings, logger: logging.Logger | None = None
) -> Database:
    """Build the database handle once at process start."""

    levels = emit_log_levels(settings.db_log_levels)
    database = Database.from_engine(build_engine(settings.database_url))
    handle_orm_logging(database, logger or LOGGER, levels)
    LOGGER.info(
        "db.init",
        extra={
            "backend": database.engine.url.get_backend_name(),
            "log_levels": list(levels),
        },
    )
    return database


__all__ = ["Database", "build_engine", "init_database"]
