from __future__ import annotations

from collections.abc import Iterator

import pytest

from starter.config import RuntimeSettings
from starter.db import Database, init_database
from starter.functions.health import RuntimeProbe

BOOT_TIME = 1_700_000_000.0
PROCESS_START = 1_700_086_000.0
NOW = 1_700_086_400.4


@pytest.fixture
def settings(tmp_path) -> RuntimeSettings:
    """Settings independent of the real process environment."""

    return RuntimeSettings(
        environment="test",
        node_env=None,
        runtime_env="staging",
        database_url=f"sqlite:///{tmp_path / 'test.db'}",
        db_log_levels=["info", "warn", "error"],
        log_level="INFO",
    )


@pytest.fixture
def fixed_probe() -> RuntimeProbe:
    return RuntimeProbe(
        hostname=lambda: "pod-abc123",
        boot_time=lambda: BOOT_TIME,
        process_start_time=lambda: PROCESS_START,
        clock=lambda: NOW,
    )


@pytest.fixture
def database(settings: RuntimeSettings) -> Iterator[Database]:
    db = init_database(settings)
    yield db
    db.dispose()
