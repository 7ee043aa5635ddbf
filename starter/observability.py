"""Structured logging, request IDs and Prometheus metrics for the web app."""

from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from time import perf_counter
from typing import Any, Callable
from uuid import uuid4

from fastapi import FastAPI, HTTPException, Request
from prometheus_client import Counter, Histogram, make_asgi_app
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.middleware.cors import CORSMiddleware
from starlette.middleware.gzip import GZipMiddleware

_LOGGER = logging.getLogger("starter.app")


class JSONLogFormatter(logging.Formatter):
    """Serialize log records as JSON with contextual metadata."""

    _RESERVED_KEYS = {
        "args",
        "asctime",
        "created",
        "exc_info",
        "exc_text",
        "filename",
        "funcName",
        "levelname",
        "levelno",
        "lineno",
        "module",
        "msecs",
        "message",
        "msg",
        "name",
        "pathname",
        "process",
        "processName",
        "relativeCreated",
        "stack_info",
        "taskName",
        "thread",
        "threadName",
    }

    def format(self, record: logging.LogRecord) -> str:  # noqa: D401 - brief docstring above
        payload: dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        if record.stack_info:
            payload["stack"] = self.formatStack(record.stack_info)

        for key, value in record.__dict__.items():
            if key in self._RESERVED_KEYS:
                continue
            payload[key] = value

        return json.dumps(payload, default=str)


class RequestContextLoggerAdapter(logging.LoggerAdapter):
    """Ensure middleware logs consistently include request context."""

    def process(self, msg: str, kwargs: Any) -> tuple[str, dict[str, Any]]:
        extra = kwargs.setdefault("extra", {})
        for key, value in self.extra.items():
            extra.setdefault(key, value)
        return msg, kwargs


def configure_logging(level_name: str = "INFO") -> None:
    """Install a JSON formatter on the root logger once per process."""

    if getattr(configure_logging, "_configured", False):  # type: ignore[attr-defined]
        return

    handler = logging.StreamHandler()
    handler.setFormatter(JSONLogFormatter())

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(getattr(logging, level_name.upper(), logging.INFO))

    logging.getLogger("uvicorn.error").handlers.clear()
    logging.getLogger("uvicorn.access").handlers.clear()
    logging.getLogger("uvicorn").propagate = True

    configure_logging._configured = True  # type: ignore[attr-defined]


REQUEST_COUNT = Counter(
    "starter_requests_total",
    "Total HTTP requests processed by the starter app.",
    ("method", "path", "status"),
)
REQUEST_LATENCY = Histogram(
    "starter_request_latency_seconds",
    "Latency of HTTP requests processed by the starter app.",
    ("method", "path"),
)


def _route_template(request: Request) -> str:
    route = request.scope.get("route")
    if route and getattr(route, "path_format", None):
        return route.path_format  # type: ignore[return-value]
    return request.url.path


class RequestIdMiddleware(BaseHTTPMiddleware):
    """Ensure every request has a stable request ID for logging."""

    async def dispatch(self, request: Request, call_next: Callable):  # type: ignore[override]
        request_id = request.headers.get("x-request-id") or uuid4().hex
        request.state.request_id = request_id
        logger = RequestContextLoggerAdapter(_LOGGER, {"request_id": request_id})
        request.state.logger = logger
        logger.info(
            "request.start",
            extra={
                "method": request.method,
                "path": request.url.path,
                "user_agent": request.headers.get("user-agent", ""),
            },
        )
        start = perf_counter()
        status_code: int | None = None
        try:
            response = await call_next(request)
            status_code = response.status_code
        except Exception as exc:
            logger.exception(
                "request.error",
                extra={"error": str(exc), "err_code": "UNEXPECTED"},
            )
            raise
        finally:
            logger.info(
                "request.end",
                extra={
                    "path": request.url.path,
                    "duration_ms": round((perf_counter() - start) * 1000.0, 2),
                    "status_code": status_code,
                },
            )
        response.headers.setdefault("X-Request-ID", request_id)
        return response


class MetricsMiddleware(BaseHTTPMiddleware):
    """Emit Prometheus metrics about request outcomes."""

    async def dispatch(self, request: Request, call_next: Callable):  # type: ignore[override]
        start = perf_counter()
        method = request.method
        try:
            response = await call_next(request)
        except HTTPException as exc:
            self._observe(request, method, str(exc.status_code), start)
            raise
        except Exception:
            self._observe(request, method, "500", start)
            logger = getattr(request.state, "logger", _LOGGER)
            logger.exception(
                "metrics.unexpected_error",
                extra={"err_code": "UNEXPECTED", "method": method},
            )
            raise
        self._observe(request, method, str(response.status_code), start)
        return response

    @staticmethod
    def _observe(request: Request, method: str, status: str, start: float) -> None:
        path_template = _route_template(request)
        REQUEST_COUNT.labels(method=method, path=path_template, status=status).inc()
        REQUEST_LATENCY.labels(method=method, path=path_template).observe(
            perf_counter() - start
        )


def configure_observability(app: FastAPI, *, environment: str = "dev", log_level: str = "INFO") -> None:
    """Install logging, middleware and the /metrics endpoint."""

    configure_logging(log_level)
    app.add_middleware(GZipMiddleware)
    allow_origins = ["*"] if environment == "dev" else []
    app.add_middleware(
        CORSMiddleware,
        allow_origins=allow_origins,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(MetricsMiddleware)
    app.add_middleware(RequestIdMiddleware)
    app.mount("/metrics", make_asgi_app())


__all__ = [
    "JSONLogFormatter",
    "MetricsMiddleware",
    "RequestIdMiddleware",
    "configure_logging",
    "configure_observability",
]
