"""FastAPI application for the Kesslerlog web UI."""

from pathlib import Path

import markdown
from fastapi import FastAPI
from fastapi.staticfiles import StaticFiles
from fastapi.templating import Jinja2Templates

from kesslerlog import formatting
from kesslerlog.store import StoreClient
from kesslerlog.web.i18n import SUPPORTED_LANGUAGES, get_current_language, get_text
from kesslerlog.web.routes import games, home, reviews, runs, settings, stats
from kesslerlog.web.state import install_services

# Paths
WEB_DIR = Path(__file__).parent
TEMPLATES_DIR = WEB_DIR / "templates"
STATIC_DIR = WEB_DIR / "static"


def render_markdown(text: str | None) -> str:
    """Convert review markdown to HTML."""
    return markdown.markdown(
        text or "",
        extensions=["fenced_code", "tables", "nl2br"],
    )


def create_app(store: StoreClient | None = None) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        store: Store client to use. Defaults to one configured from the
            environment.
    """
    app = FastAPI(
        title="Kesslerlog",
        description="Your personal game diary",
    )

    app.mount("/static", StaticFiles(directory=STATIC_DIR), name="static")

    templates = Jinja2Templates(directory=TEMPLATES_DIR)

    filters = templates.env.filters
    filters["markdown"] = render_markdown
    filters["fmt1"] = formatting.fmt1
    filters["hhmmss"] = formatting.format_hhmmss
    filters["hours_human"] = formatting.hours_to_human
    filters["minutes_human"] = formatting.minutes_to_human
    filters["time_ago"] = formatting.time_ago_short
    filters["date_short"] = formatting.format_date_short
    filters["datetime"] = formatting.format_datetime
    filters["time_hm"] = formatting.format_time
    filters["month_label"] = formatting.cycle_month_label
    filters["elapsed"] = formatting.elapsed_seconds

    def t(key: str, **kwargs) -> str:
        """Translate a key to the current language."""
        return get_text(key, get_current_language(), **kwargs)

    templates.env.globals["t"] = t
    templates.env.globals["get_lang"] = get_current_language
    templates.env.globals["supported_languages"] = SUPPORTED_LANGUAGES
    templates.env.globals["is_error_message"] = formatting.is_error_message
    templates.env.globals["minutes_between"] = formatting.minutes_between

    app.state.templates = templates
    install_services(app, store or StoreClient())

    app.include_router(home.router)
    app.include_router(games.router)
    app.include_router(runs.router)
    app.include_router(reviews.router)
    app.include_router(stats.router)
    app.include_router(settings.router)

    return app


app = create_app()
