"""Statistics routes - filtered dashboard, cycle feed and game history."""

from fastapi import APIRouter, Query, Request

from kesslerlog.models import PERIOD_PRESETS, YEAR_MAX, YEAR_MIN
from kesslerlog.stats.periods import month_options, year_options

router = APIRouter(prefix="/stats")


def _int_or_none(value: str | None) -> int | None:
    value = (value or "").strip()
    return int(value) if value.isdigit() else None


def _render(request: Request):
    templates = request.app.state.templates
    service = request.app.state.stats

    return templates.TemplateResponse(
        request,
        "stats.html",
        {
            "service": service,
            "filters": service.filters,
            "dashboard": service.dashboard,
            "feed": service.feed,
            "feed_has_more": service.feed_has_more,
            "status_options": service.status_options,
            "game_options": service.game_options,
            "periods": PERIOD_PRESETS,
            "months": month_options(),
            "years": year_options(service.clock()),
            "message": service.message,
        },
    )


@router.get("")
async def stats_page(
    request: Request,
    period: str | None = Query(None, description="last30, last90, month, year or all"),
    q: str | None = Query(None, description="Title contains"),
    game_id: str | None = Query(None),
    status_id: str | None = Query(None),
    month: str | None = Query(None),
    year: str | None = Query(None),
):
    """Render the statistics page, applying any filters passed in the query."""
    service = request.app.state.stats

    changes: dict = {}
    if period in PERIOD_PRESETS:
        changes["period"] = period
    if q is not None:
        changes["q"] = q
    if game_id is not None:
        changes["game_id"] = game_id or None
    if status_id is not None:
        changes["status_id"] = status_id or None
    if month is not None:
        parsed = _int_or_none(month)
        changes["month"] = parsed if parsed is not None and 1 <= parsed <= 12 else None
    if year is not None:
        parsed = _int_or_none(year)
        changes["year"] = parsed if parsed is not None and YEAR_MIN <= parsed <= YEAR_MAX else None

    if changes:
        service.set_filters(**changes)
    service.refresh_all()
    return _render(request)


@router.get("/reset")
async def reset_filters(request: Request):
    """Go back to the default filters."""
    service = request.app.state.stats
    service.reset_filters()
    service.refresh_all()
    return _render(request)


@router.post("/feed/more")
async def feed_more(request: Request):
    """Append the next page of the cycle feed."""
    templates = request.app.state.templates
    service = request.app.state.stats
    page = service.feed_load_more() or []

    return templates.TemplateResponse(
        request,
        "partials/feed_rows.html",
        {"rows": page, "feed_has_more": service.feed_has_more, "oob": True, "message": service.message},
    )


@router.get("/games/search")
async def search_games(request: Request, q: str = Query("", description="Title contains")):
    """Game options for the filter combobox."""
    templates = request.app.state.templates
    service = request.app.state.stats
    service.search_games(q)

    return templates.TemplateResponse(
        request,
        "partials/game_options.html",
        {"options": service.game_options, "selected": service.filters.game_id},
    )


@router.get("/games/{game_id}/history")
async def game_history(request: Request, game_id: str, cycle: str | None = Query(None)):
    """Per-game history drawer."""
    templates = request.app.state.templates
    service = request.app.state.stats
    history = service.load_game_history(game_id, cycle)

    return templates.TemplateResponse(
        request,
        "partials/game_history.html",
        {"history": history, "message": service.message},
    )
