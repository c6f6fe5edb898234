"""Runs routes - cycles and timed play sessions."""

from fastapi import APIRouter, Form, Query, Request

router = APIRouter(prefix="/runs")


def _render(request: Request, q: str = ""):
    templates = request.app.state.templates
    service = request.app.state.runs

    return templates.TemplateResponse(
        request,
        "runs.html",
        {
            "service": service,
            "games": service.ordered_games(q),
            "q": q,
            "context": service.context,
            "statuses": service.status_list,
            "recent_sessions": service.recent_sessions,
            "message": service.message,
        },
    )


@router.get("")
async def runs_page(
    request: Request,
    q: str = Query("", description="Filter games by title"),
    game: str | None = Query(None, description="Game to open in the session panel"),
    cycle: str | None = Query(None, description="Cycle to select"),
):
    """Render the runs page."""
    service = request.app.state.runs
    loaded = service.load_all()
    if game and loaded:
        service.load_cycle(game, cycle)
    elif not game:
        service.context = None
    return _render(request, q)


@router.post("/{game_id}/cycles")
async def create_cycle(request: Request, game_id: str, status_id: str = Form("")):
    """Create a new cycle for a game."""
    request.app.state.runs.create_cycle(game_id, status_id or None)
    return _render(request)


@router.post("/cycles/{cycle_id}/delete")
async def delete_cycle(request: Request, cycle_id: str):
    """Delete a cycle."""
    request.app.state.runs.delete_cycle(cycle_id)
    return _render(request)


@router.post("/cycles/{cycle_id}/status")
async def update_cycle_status(request: Request, cycle_id: str, status_id: str = Form(...)):
    """Change a cycle's status."""
    request.app.state.runs.update_cycle_status(cycle_id, status_id)
    return _render(request)


@router.post("/cycles/{cycle_id}/sessions")
async def start_session(request: Request, cycle_id: str, note_text: str = Form("")):
    """Open a play session on a cycle."""
    request.app.state.runs.start_session(cycle_id, note_text)
    return _render(request)


@router.post("/sessions/{session_id}/finish")
async def finish_session(
    request: Request,
    session_id: str,
    score: str = Form(""),
    note_text: str = Form(""),
):
    """Close the open session with an optional score and note."""
    request.app.state.runs.finish_session(session_id, score, note_text)
    return _render(request)


@router.post("/sessions/{session_id}/delete")
async def delete_session(request: Request, session_id: str):
    """Delete a session."""
    request.app.state.runs.delete_session(session_id)
    return _render(request)
