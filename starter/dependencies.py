"""FastAPI dependencies exposing startup-created singletons."""

from __future__ import annotations

from fastapi import Request

from starter.config import RuntimeSettings
from starter.db import Database
from starter.functions.health import RuntimeProbe


def get_settings(request: Request) -> RuntimeSettings:
    return request.app.state.settings


def get_database(request: Request) -> Database:
    return request.app.state.db


def get_probe(request: Request) -> RuntimeProbe:
    """Return the runtime probe, overridable on ``app.state`` for tests."""

    return getattr(request.app.state, "runtime_probe", None) or RuntimeProbe()


__all__ = ["get_database", "get_probe", "get_settings"]
