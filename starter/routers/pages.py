"""HTML pages served by the starter application."""

from __future__ import annotations

from pathlib import Path

from fastapi import APIRouter, Request
from fastapi.responses import HTMLResponse
from fastapi.templating import Jinja2Templates

TEMPLATES_DIR = Path(__file__).resolve().parent.parent / "templates"

templates = Jinja2Templates(directory=str(TEMPLATES_DIR))

router = APIRouter(tags=["pages"])


@router.get("/", response_class=HTMLResponse, name="home", include_in_schema=False)
async def home(request: Request) -> HTMLResponse:
    """Render the welcome page shown until custom routes are added."""

    return templates.TemplateResponse(request, "home.html", {"title": "Welcome"})


__all__ = ["router", "templates"]
