"""Home route - recent activity overview."""

from fastapi import APIRouter, Query, Request

from kesslerlog.models import RANGE_DAYS

router = APIRouter()


@router.get("/")
async def home_page(
    request: Request,
    range_mode: str | None = Query(None, alias="range", description="Range: 7d, 14d or 30d"),
):
    """Render the home page."""
    templates = request.app.state.templates
    service = request.app.state.home

    service.load(range_mode if range_mode in RANGE_DAYS else None)

    return templates.TemplateResponse(
        request,
        "home.html",
        {
            "service": service,
            "dashboard": service.dashboard,
            "groups": service.grouped_timeline(),
            "range_mode": service.range_mode,
            "range_options": list(RANGE_DAYS),
            "message": service.message,
        },
    )
