"""Database handle for the starter application."""

from __future__ import annotations

from .orm_logging import LOG_LEVELS, emit_log_levels, handle_orm_logging
from .session import Database, build_engine, init_database

__all__ = [
    "LOG_LEVELS",
    "Database",
    "build_engine",
    "emit_log_levels",
    "handle_orm_logging",
    "init_database",
]
