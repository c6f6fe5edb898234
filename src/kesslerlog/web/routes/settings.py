"""Settings route - store connection and display options."""

import os
from pathlib import Path

from dotenv import set_key
from fastapi import APIRouter, Form, Request

from kesslerlog.store import StoreClient
from kesslerlog.web.i18n import SUPPORTED_LANGUAGES, get_current_language, get_text
from kesslerlog.web.state import install_services

router = APIRouter(prefix="/settings")

# Config file path
ENV_FILE = Path.home() / ".kesslerlog" / ".env"


def _save(key: str, value: str) -> None:
    ENV_FILE.parent.mkdir(parents=True, exist_ok=True)
    ENV_FILE.touch(exist_ok=True)
    set_key(str(ENV_FILE), key, value)
    # Picked up by clients built from now on
    os.environ[key] = value


@router.get("")
async def settings_page(request: Request):
    """Render the settings page."""
    templates = request.app.state.templates
    store = request.app.state.store

    config = {
        "store": {
            "url": store.url,
            "api_key": bool(store.api_key),
            "access_token": bool(store.access_token),
            "user_id": store.user_id,
            "schema": store.schema,
            "connected": store.configured,
        },
        "display": {
            "language": get_current_language(),
        },
    }

    return templates.TemplateResponse(request, "settings.html", {"config": config})


@router.post("/store")
async def save_store_config(
    request: Request,
    url: str = Form(""),
    api_key: str = Form(""),
    access_token: str = Form(""),
    user_id: str = Form(""),
    schema: str = Form(""),
):
    """Save the store connection and reconnect the page services."""
    templates = request.app.state.templates

    fields = {
        "KESSLERLOG_STORE_URL": url,
        "KESSLERLOG_STORE_KEY": api_key,
        "KESSLERLOG_ACCESS_TOKEN": access_token,
        "KESSLERLOG_USER_ID": user_id,
        "KESSLERLOG_SCHEMA": schema,
    }
    # Blank fields keep the current value
    for key, value in fields.items():
        if value.strip():
            _save(key, value.strip())

    install_services(request.app, StoreClient())

    return templates.TemplateResponse(
        request,
        "partials/settings_saved.html",
        {"section": get_text("settings.store", get_current_language())},
    )


@router.post("/display")
async def save_display_config(
    request: Request,
    language: str = Form("pt"),
):
    """Save display settings."""
    templates = request.app.state.templates

    if language in SUPPORTED_LANGUAGES:
        _save("DISPLAY_LANGUAGE", language)
        # The "no status" label is baked into the stats service
        install_services(request.app, request.app.state.store)

    return templates.TemplateResponse(
        request,
        "partials/settings_saved.html",
        {"section": get_text("settings.display", get_current_language())},
    )
