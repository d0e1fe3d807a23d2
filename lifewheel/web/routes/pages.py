from __future__ import annotations

from pathlib import Path

from fastapi import APIRouter, Depends, Request
from fastapi.responses import HTMLResponse
from fastapi.templating import Jinja2Templates

from lifewheel.application import api as app_api
from lifewheel.domain.models import CATEGORIES
from lifewheel.infrastructure.config import get_settings
from lifewheel.infrastructure.repositories import SqlSettingsStore
from lifewheel.web.dependencies import get_settings_store

router = APIRouter(tags=["pages"])

TEMPLATE_DIR = Path(__file__).resolve().parent.parent / "templates"
templates = Jinja2Templates(directory=str(TEMPLATE_DIR))


@router.get("/", response_class=HTMLResponse)
def intro_page(
    request: Request, store: SqlSettingsStore = Depends(get_settings_store)
) -> HTMLResponse:
    settings = get_settings()
    context = {
        "app_title": settings.app.title,
        "intro_text": app_api.load_admin_settings(store).intro_text,
        "categories": CATEGORIES,
    }
    return templates.TemplateResponse(request, "index.html", context)
