"""Health and readiness endpoints for deployment probes."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Request, status
from fastapi.responses import Response
from sqlalchemy import text

from starter.config import RuntimeSettings
from starter.db import Database
from starter.dependencies import get_database, get_probe, get_settings
from starter.functions.health import (
    JSON_HEADERS,
    STATUS_OK,
    RuntimeProbe,
    collect_status_report,
)

router = APIRouter(tags=["observability"])


@router.get("/health", summary="Runtime status report")
async def health(
    settings: RuntimeSettings = Depends(get_settings),
    probe: RuntimeProbe = Depends(get_probe),
) -> Response:
    """Report host, process and clock state."""

    report = collect_status_report(settings, probe)
    return Response(
        content=report.model_dump_json(),
        status_code=STATUS_OK,
        media_type=JSON_HEADERS["Content-Type"],
    )


@router.get("/healthz", summary="Lightweight liveness probe")
async def healthz() -> dict[str, str]:
    """Return success when the API process is running."""

    return {"status": "ok"}


def _check_database(database: Database) -> dict[str, Any]:
    try:
        with database.session_scope() as session:
            session.execute(text("SELECT 1"))
    except Exception as exc:
        return {"status": "error", "error": str(exc)}
    return {"status": "ok", "backend": database.engine.url.get_backend_name()}


@router.get("/readyz", summary="Readiness probe with backing service checks")
async def readyz(
    request: Request, database: Database = Depends(get_database)
) -> dict[str, Any]:
    """Validate that the database answers before accepting traffic."""

    checks = {"database": _check_database(database)}
    failures = {name: result for name, result in checks.items() if result["status"] != "ok"}
    if failures:
        logger = getattr(request.state, "logger", None)
        if logger is not None:
            logger.warning("readiness.failed", extra={"checks": failures})
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail={"status": "error", "checks": checks},
        )
    return {"status": "ok", "checks": checks}


__all__ = ["router"]
