"""Route ORM log events into the application logger."""

from __future__ import annotations

import logging
from time import perf_counter
from typing import TYPE_CHECKING, Any, Iterable

from sqlalchemy import event

if TYPE_CHECKING:  # pragma: no cover - imported for type checking only
    from .session import Database

LOG_LEVELS = ("query", "info", "warn", "error")

_SEVERITY_LEVELS = {
    "info": logging.INFO,
    "warn": logging.WARNING,
    "error": logging.ERROR,
}

_QUERY_START_KEY = "starter_query_start"


def emit_log_levels(levels: Iterable[str]) -> tuple[str, ...]:
    """Validate requested ORM log severities.

    Returns the names de-duplicated in the order given. Unknown names raise
    :class:`ValueError` so a typo in ``DB_LOG_LEVELS`` fails at startup.
    """

    selected: list[str] = []
    for raw in levels:
        name = str(raw).strip().lower()
        if name not in LOG_LEVELS:
            raise ValueError(
                f"Unknown ORM log level {raw!r}; expected one of {', '.join(LOG_LEVELS)}"
            )
        if name not in selected:
            selected.append(name)
    return tuple(selected)


def _severity_name(levelno: int) -> str:
    if levelno >= logging.ERROR:
        return "error"
    if levelno >= logging.WARNING:
        return "warn"
    return "info"


class OrmLogHandler(logging.Handler):
    """Forward ``sqlalchemy.*`` records at the enabled severities."""

    def __init__(self, target: logging.Logger, log_levels: Iterable[str]) -> None:
        super().__init__(level=logging.NOTSET)
        self.target = target
        self.enabled = frozenset(log_levels) & set(_SEVERITY_LEVELS)
        self._saved: dict[str, tuple[int, bool]] = {}

    def emit(self, record: logging.LogRecord) -> None:
        # Engine INFO records are statement echo; statements go through the
        # cursor listeners when "query" is enabled.
        if record.name.startswith("sqlalchemy.engine") and record.levelno < logging.WARNING:
            return
        severity = _severity_name(record.levelno)
        if severity not in self.enabled:
            return
        try:
            message = record.getMessage()
        except Exception:
            self.handleError(record)
            return
        self.target.log(
            _SEVERITY_LEVELS[severity],
            "orm.%s",
            severity,
            extra={"orm_logger": record.name, "orm_message": message},
        )

    def attach(self) -> None:
        """Install on the ``sqlalchemy`` logger, remembering its prior state."""

        threshold = _threshold(self.enabled)
        for name, level in (
            ("sqlalchemy", threshold),
            # Statement echo stays off; SQLAlchemy only formats it when enabled.
            ("sqlalchemy.engine", max(logging.WARNING, threshold)),
        ):
            target = logging.getLogger(name)
            self._saved[name] = (target.level, target.propagate)
            target.setLevel(level)
        orm_root = logging.getLogger("sqlalchemy")
        orm_root.propagate = False
        orm_root.addHandler(self)

    def detach(self) -> None:
        """Remove the handler and restore the logger state saved by :meth:`attach`."""

        logging.getLogger("sqlalchemy").removeHandler(self)
        for name, (level, propagate) in reversed(list(self._saved.items())):
            target = logging.getLogger(name)
            target.setLevel(level)
            target.propagate = propagate
        self._saved.clear()


def _threshold(enabled: Iterable[str]) -> int:
    levels = [_SEVERITY_LEVELS[name] for name in enabled if name in _SEVERITY_LEVELS]
    return min(levels) if levels else logging.CRITICAL + 1


def handle_orm_logging(
    database: Database, logger: logging.Logger, log_levels: Iterable[str]
) -> OrmLogHandler:
    """Wire ORM log events for ``database`` into ``logger``."""

    levels = emit_log_levels(log_levels)
    database.log_levels = levels

    if database._log_handler is not None:
        database._log_handler.detach()
    handler = OrmLogHandler(logger, levels)
    handler.attach()
    database._log_handler = handler

    engine = database.engine

    if "query" in levels:

        @event.listens_for(engine, "before_cursor_execute")
        def _query_start(conn, cursor, statement, parameters, context, executemany):
            conn.info.setdefault(_QUERY_START_KEY, []).append(perf_counter())

        @event.listens_for(engine, "after_cursor_execute")
        def _query_end(conn, cursor, statement, parameters, context, executemany):
            started = conn.info.get(_QUERY_START_KEY) or [perf_counter()]
            duration_ms = (perf_counter() - started.pop()) * 1000.0
            logger.debug(
                "orm.query",
                extra={
                    "statement": statement,
                    "duration_ms": round(duration_ms, 2),
                    "executemany": executemany,
                },
            )

        @event.listens_for(engine, "handle_error")
        def _query_failed(context: Any) -> None:
            # Failed statements never reach after_cursor_execute.
            conn = context.connection
            if conn is None or context.cursor is None:
                return
            started = conn.info.get(_QUERY_START_KEY)
            if started:
                started.pop()

    if "error" in levels:

        @event.listens_for(engine, "handle_error")
        def _log_error(context: Any) -> None:
            logger.error(
                "orm.error",
                extra={
                    "statement": context.statement,
                    "error": str(context.original_exception),
                },
            )

    return handler


__all__ = ["LOG_LEVELS", "OrmLogHandler", "emit_log_levels", "handle_orm_logging"]
