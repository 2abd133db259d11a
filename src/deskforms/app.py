from __future__ import annotations

import logging
from datetime import datetime
from functools import partial
from typing import Any
from zoneinfo import ZoneInfo

from fastapi import FastAPI
from fastapi.responses import JSONResponse
from fastapi.templating import Jinja2Templates

from deskforms.auth import get_auth_provider
from deskforms.config import BASE_DIR, DEFAULT_TICKET_TIMEZONE, Settings, ensure_dirs
from deskforms.routes.api import router as api_router
from deskforms.routes.public import router as public_router
from deskforms.routes.submissions import router as submissions_router
from deskforms.storage import init_storage
from deskforms.utils import ensure_aware

logger = logging.getLogger(__name__)


def button_css(style: Any) -> str:
    parts = []
    if style.background_color:
        parts.append(f"background-color: {style.background_color}")
    if style.color:
        parts.append(f"color: {style.color}")
    return "; ".join(parts)


def format_dt(value: Any, tz_name: str = DEFAULT_TICKET_TIMEZONE) -> str:
    if isinstance(value, datetime):
        return ensure_aware(value).astimezone(ZoneInfo(tz_name)).strftime("%d/%m/%Y %H:%M")
    return str(value or "")


def create_app(settings: Settings | None = None) -> FastAPI:
    settings = settings or Settings()
    ensure_dirs(settings)
    storage = init_storage(settings)
    auth = get_auth_provider(settings)

    app = FastAPI(
        openapi_tags=[
            {"name": "public", "description": "Formulários e páginas públicas (HTML)"},
            {"name": "api/forms", "description": "REST API: formulários"},
            {"name": "api/pages", "description": "REST API: páginas"},
            {"name": "api/directory", "description": "REST API: usuários e grupos"},
            {"name": "api/public", "description": "REST API: acesso público e envio"},
            {"name": "system", "description": "Sistema"},
        ]
    )

    app.state.storage = storage
    app.state.settings = settings
    app.state.auth_provider = auth

    templates = Jinja2Templates(directory=str(BASE_DIR / "templates"))
    app.state.templates = templates

    templates.env.globals["button_css"] = button_css
    templates.env.globals["format_dt"] = partial(format_dt, tz_name=settings.ticket_timezone)

    app.include_router(public_router)
    app.include_router(submissions_router)
    app.include_router(api_router)

    @app.get("/healthz", tags=["system"])
    async def healthz() -> JSONResponse:
        return JSONResponse({"status": "ok", "storage": settings.storage_backend})

    logger.info("deskforms app created (storage=%s, auth=%s)", settings.storage_backend, settings.auth_mode)
    return app
