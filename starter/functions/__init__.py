"""Serverless functions bundled with the starter application."""

from __future__ import annotations

from .health import RuntimeProbe, StatusReport, build_handler, collect_status_report

__all__ = ["RuntimeProbe", "StatusReport", "build_handler", "collect_status_report"]
