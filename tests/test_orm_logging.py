"""ORM log forwarding into the application logger."""

from __future__ import annotations

import logging

import pytest
from sqlalchemy import text
from sqlalchemy.exc import OperationalError

from starter.db import emit_log_levels, handle_orm_logging
from starter.db.session import Database, build_engine


class ListHandler(logging.Handler):
    def __init__(self) -> None:
        super().__init__(level=logging.DEBUG)
        self.records: list[logging.LogRecord] = []

    def emit(self, record: logging.LogRecord) -> None:
        self.records.append(record)


@pytest.fixture
def app_logger():
    logger = logging.getLogger("tests.orm_sink")
    logger.setLevel(logging.DEBUG)
    logger.propagate = False
    handler = ListHandler()
    logger.addHandler(handler)
    yield logger, handler
    logger.removeHandler(handler)


@pytest.fixture
def bare_database(tmp_path):
    database = Database.from_engine(build_engine(f"sqlite:///{tmp_path / 'orm.db'}"))
    yield database
    database.dispose()


@pytest.mark.parametrize(
    "levels, expected",
    [
        (["info", "warn", "error"], ("info", "warn", "error")),
        (["ERROR", " warn "], ("error", "warn")),
        (["query", "info", "query"], ("query", "info")),
        ([], ()),
    ],
)
def test_emit_log_levels_normalises(levels, expected):
    assert emit_log_levels(levels) == expected


def test_emit_log_levels_rejects_unknown():
    with pytest.raises(ValueError, match="debug"):
        emit_log_levels(["info", "debug"])


def test_orm_warnings_reach_application_logger(bare_database, app_logger):
    logger, sink = app_logger
    handle_orm_logging(bare_database, logger, ["info", "warn", "error"])

    logging.getLogger("sqlalchemy.pool.impl.QueuePool").warning("pool exhausted")

    assert [r.getMessage() for r in sink.records] == ["orm.warn"]
    record = sink.records[0]
    assert record.levelno == logging.WARNING
    assert record.orm_message == "pool exhausted"
    assert record.orm_logger == "sqlalchemy.pool.impl.QueuePool"


def test_disabled_severities_are_dropped(bare_database, app_logger):
    logger, sink = app_logger
    handle_orm_logging(bare_database, logger, ["error"])

    orm_logger = logging.getLogger("sqlalchemy.orm.mapper")
    orm_logger.info("configured mapper")
    orm_logger.warning("relationship overlaps")
    orm_logger.error("mapper failed")

    assert [r.getMessage() for r in sink.records] == ["orm.error"]
    assert sink.records[0].orm_message == "mapper failed"


def test_orm_records_do_not_propagate_to_root(bare_database, app_logger):
    logger, _ = app_logger
    handle_orm_logging(bare_database, logger, ["info", "warn", "error"])

    assert logging.getLogger("sqlalchemy").propagate is False


def test_statement_echo_is_not_forwarded_as_info(bare_database, app_logger):
    logger, sink = app_logger
    handle_orm_logging(bare_database, logger, ["info", "warn", "error"])

    with bare_database.session_scope() as session:
        session.execute(text("SELECT 1"))

    assert not [r for r in sink.records if r.getMessage() == "orm.info"]


def test_query_level_logs_statements_with_duration(bare_database, app_logger):
    logger, sink = app_logger
    handle_orm_logging(bare_database, logger, ["query"])

    with bare_database.session_scope() as session:
        session.execute(text("SELECT 42"))

    queries = [r for r in sink.records if r.getMessage() == "orm.query"]
    assert any("SELECT 42" in r.statement for r in queries)
    assert all(r.levelno == logging.DEBUG for r in queries)
    assert all(r.duration_ms >= 0 for r in queries)


def test_error_level_logs_failed_statements(bare_database, app_logger):
    logger, sink = app_logger
    handle_orm_logging(bare_database, logger, ["error"])

    with pytest.raises(OperationalError):
        with bare_database.session_scope() as session:
            session.execute(text("SELECT * FROM missing_table"))

    errors = [r for r in sink.records if r.getMessage() == "orm.error"]
    assert errors
    assert "missing_table" in errors[0].error


def test_dispose_detaches_forwarding(bare_database, app_logger):
    logger, sink = app_logger
    handler = handle_orm_logging(bare_database, logger, ["warn"])

    bare_database.dispose()
    logging.getLogger("sqlalchemy.pool").warning("after dispose")

    assert handler not in logging.getLogger("sqlalchemy").handlers
    assert sink.records == []


def test_dispose_restores_sqlalchemy_logger_state(bare_database, app_logger):
    logger, _ = app_logger
    orm_root = logging.getLogger("sqlalchemy")
    engine_logger = logging.getLogger("sqlalchemy.engine")
    orm_root.setLevel(logging.NOTSET)
    orm_root.propagate = True
    engine_logger.setLevel(logging.NOTSET)

    handle_orm_logging(bare_database, logger, ["info", "warn", "error"])
    assert orm_root.propagate is False
    assert orm_root.level == logging.INFO

    bare_database.dispose()

    assert orm_root.level == logging.NOTSET
    assert orm_root.propagate is True
    assert engine_logger.level == logging.NOTSET


def test_second_handle_restores_first_configuration(tmp_path, app_logger):
    logger, sink = app_logger
    first = Database.from_engine(build_engine(f"sqlite:///{tmp_path / 'first.db'}"))
    second = Database.from_engine(build_engine(f"sqlite:///{tmp_path / 'second.db'}"))
    try:
        handle_orm_logging(first, logger, ["warn"])
        handle_orm_logging(second, logger, ["error"])
        assert logging.getLogger("sqlalchemy").level == logging.ERROR

        second.dispose()

        assert logging.getLogger("sqlalchemy").level == logging.WARNING
        logging.getLogger("sqlalchemy.pool").warning("still forwarded")
        assert [r.orm_message for r in sink.records] == ["still forwarded"]
    finally:
        second.dispose()
        first.dispose()


def test_rewiring_same_handle_replaces_handler(bare_database, app_logger):
    logger, sink = app_logger
    first = handle_orm_logging(bare_database, logger, ["warn"])
    second = handle_orm_logging(bare_database, logger, ["warn"])

    logging.getLogger("sqlalchemy.pool").warning("once")

    handlers = logging.getLogger("sqlalchemy").handlers
    assert first not in handlers
    assert second in handlers
    assert [r.orm_message for r in sink.records] == ["once"]


def test_failed_statements_do_not_leak_query_timers(bare_database, app_logger):
    logger, sink = app_logger
    handle_orm_logging(bare_database, logger, ["query"])

    with bare_database.engine.connect() as conn:
        for _ in range(3):
            with pytest.raises(OperationalError):
                conn.execute(text("SELECT * FROM missing_table"))
            conn.rollback()
        conn.execute(text("SELECT 1"))

        assert conn.info.get("starter_query_start") == []

    queries = [r for r in sink.records if r.getMessage() == "orm.query"]
    assert [r.statement for r in queries] == ["SELECT 1"]
