"""Health check function reporting host, process and clock state."""

from __future__ import annotations

import math
import socket
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any, Awaitable, Callable

import psutil
from pydantic import BaseModel, ConfigDict

if TYPE_CHECKING:  # pragma: no cover - imported for type checking only
    from starter.config import RuntimeSettings

STATUS_OK = 200
JSON_HEADERS = {"Content-Type": "application/json"}


class _Frozen(BaseModel):
    model_config = ConfigDict(frozen=True)


class OsRuntime(_Frozen):
    hostname: str
    uptime: int


class ProcessEnv(_Frozen):
    NODE_ENV: str | None
    RUNTIME_ENV: str | None


class ProcessRuntime(_Frozen):
    env: ProcessEnv
    uptime: int


class Runtime(_Frozen):
    os: OsRuntime
    process: ProcessRuntime


class DateInfo(_Frozen):
    now: int
    iso: str


class StatusReport(_Frozen):
    """Runtime status document returned by the health endpoint."""

    code: int = STATUS_OK
    message: str = "OK"
    runtime: Runtime
    date: DateInfo


def _process_start_time() -> float:
    return psutil.Process().create_time()


@dataclass(frozen=True)
class RuntimeProbe:
    """Sources of live host and process state.

    Each attribute is a zero-argument callable returning epoch seconds (or
    the host name). Tests swap them for fixed values.
    """

    hostname: Callable[[], str] = socket.gethostname
    boot_time: Callable[[], float] = psutil.boot_time
    process_start_time: Callable[[], float] = _process_start_time
    clock: Callable[[], float] = time.time


def round_seconds(value: float) -> int:
    """Round half up to whole seconds, never below zero."""

    return max(0, int(math.floor(value + 0.5)))


def _iso_millis(epoch: float) -> str:
    stamp = datetime.fromtimestamp(epoch, tz=timezone.utc)
    return stamp.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def collect_status_report(
    settings: RuntimeSettings, probe: RuntimeProbe | None = None
) -> StatusReport:
    """Build a :class:`StatusReport` from the current system state."""

    probe = probe or RuntimeProbe()
    now = probe.clock()
    return StatusReport(
        runtime=Runtime(
            os=OsRuntime(
                hostname=probe.hostname(),
                uptime=round_seconds(now - probe.boot_time()),
            ),
            process=ProcessRuntime(
                env=ProcessEnv(
                    NODE_ENV=settings.node_env,
                    RUNTIME_ENV=settings.runtime_env,
                ),
                uptime=round_seconds(now - probe.process_start_time()),
            ),
        ),
        date=DateInfo(now=round_seconds(now), iso=_iso_millis(now)),
    )


Handler = Callable[[Any, Any], Awaitable[dict[str, Any]]]


def build_handler(
    settings: RuntimeSettings, probe: RuntimeProbe | None = None
) -> Handler:
    """Return a serverless-style ``handler(event, context)`` coroutine."""

    async def handler(event: Any = None, context: Any = None) -> dict[str, Any]:
        report = collect_status_report(settings, probe)
        return {
            "statusCode": STATUS_OK,
            "headers": dict(JSON_HEADERS),
            "body": report.model_dump_json(),
        }

    return handler


__all__ = [
    "JSON_HEADERS",
    "STATUS_OK",
    "RuntimeProbe",
    "StatusReport",
    "build_handler",
    "collect_status_report",
    "round_seconds",
]
