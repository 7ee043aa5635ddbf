"""FastAPI application factory for the starter web app."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Awaitable, Callable

from fastapi import FastAPI, Request
from starlette.responses import Response

from starter import __version__
from starter.config import RuntimeSettings, load_settings
from starter.db import Database, init_database
from starter.observability import configure_observability
from starter.routers import health_router, pages_router

LOGGER = logging.getLogger(__name__)


def _lifespan(database: Database | None):
    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        owned = database is None
        app.state.db = database if database is not None else init_database(app.state.settings)
        LOGGER.info(
            "app.startup",
            extra={
                "node_env": app.state.settings.node_env,
                "runtime_env": app.state.settings.runtime_env,
            },
        )
        try:
            yield
        finally:
            if owned:
                app.state.db.dispose()

    return lifespan


def create_app(
    settings: RuntimeSettings | None = None, database: Database | None = None
) -> FastAPI:
    """Create the web application.

    ``settings`` are read from the environment when omitted. The database
    handle is created once during startup unless ``database`` is injected,
    in which case the caller owns its lifetime.
    """

    settings = settings or load_settings()
    app = FastAPI(title="Starter App", version=__version__, lifespan=_lifespan(database))
    app.state.settings = settings
    if database is not None:
        app.state.db = database

    configure_observability(
        app, environment=settings.environment, log_level=settings.log_level
    )

    @app.middleware("http")
    async def security_headers(
        request: Request, call_next: Callable[[Request], Awaitable[Response]]
    ) -> Response:
        """Apply default security headers to every HTTP response."""
        response = await call_next(request)
        response.headers.setdefault("X-Content-Type-Options", "nosniff")
        response.headers.setdefault("X-Frame-Options", "DENY")
        response.headers.setdefault("Referrer-Policy", "no-referrer")
        response.headers.setdefault(
            "Permissions-Policy", "geolocation=(), microphone=()"
        )
        return response

    app.include_router(pages_router)
    app.include_router(health_router)
    return app


__all__ = ["create_app"]
