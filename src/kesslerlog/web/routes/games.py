"""Games routes - catalog, statuses, cycle start and external ratings."""

from fastapi import APIRouter, Form, Query, Request

from kesslerlog.services import GameInput

router = APIRouter(prefix="/games")


def _render(request: Request, edit_id: str | None = None):
    templates = request.app.state.templates
    service = request.app.state.games

    editing = next((g for g in service.games if g.id == edit_id), None) if edit_id else None

    return templates.TemplateResponse(
        request,
        "games.html",
        {
            "service": service,
            "games": service.games,
            "statuses": service.statuses,
            "active_by_game": service.active_by_game,
            "ratings_by_game": service.ratings_by_game,
            "editing": editing,
            "message": service.message,
        },
    )


@router.get("")
async def games_page(request: Request, edit: str | None = Query(None, description="Game to edit")):
    """Render the games page."""
    request.app.state.games.load_all()
    return _render(request, edit)


@router.post("")
async def save_game(
    request: Request,
    editing_id: str = Form(""),
    title: str = Form(""),
    platform: str = Form(""),
    cover_url: str = Form(""),
    external_source: str = Form(""),
    external_id: str = Form(""),
    external_url: str = Form(""),
):
    """Create a game, or update it when ``editing_id`` is set."""
    data = GameInput(
        title=title,
        platform=platform,
        cover_url=cover_url,
        external_source=external_source,
        external_id=external_id,
        external_url=external_url,
    )
    request.app.state.games.upsert_game(data, editing_id or None)
    return _render(request)


@router.post("/statuses/defaults")
async def create_default_statuses(request: Request):
    """Create the default statuses (idempotent)."""
    request.app.state.games.ensure_default_statuses()
    return _render(request)


@router.post("/status-to-start")
async def choose_status_to_start(request: Request, status_id: str = Form("")):
    """Remember the status new cycles start with."""
    service = request.app.state.games
    if any(s.id == status_id for s in service.statuses):
        service.status_to_start = status_id
    return _render(request)


@router.post("/{game_id}/delete")
async def delete_game(request: Request, game_id: str):
    """Delete a game."""
    request.app.state.games.delete_game(game_id)
    return _render(request)


@router.post("/{game_id}/cycles")
async def start_cycle(request: Request, game_id: str, status_id: str = Form("")):
    """Start a new cycle for a game."""
    request.app.state.games.start_cycle(game_id, status_id or None)
    return _render(request)


@router.post("/{game_id}/ratings")
async def save_external_rating(
    request: Request,
    game_id: str,
    source: str = Form(""),
    score: str = Form(""),
    scale_max: str = Form("10"),
    url: str = Form(""),
):
    """Add or replace an external rating (one per source)."""
    request.app.state.games.upsert_external_rating(game_id, source, score, scale_max, url)
    return _render(request)


@router.post("/ratings/{rating_id}/delete")
async def delete_external_rating(request: Request, rating_id: str):
    """Delete an external rating."""
    request.app.state.games.delete_external_rating(rating_id)
    return _render(request)
