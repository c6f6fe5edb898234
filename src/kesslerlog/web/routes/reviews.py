"""Reviews routes - review text, final rating and cycle closing."""

from fastapi import APIRouter, Form, Query, Request

router = APIRouter(prefix="/reviews")


def _render(request: Request, q: str = ""):
    templates = request.app.state.templates
    service = request.app.state.reviews

    return templates.TemplateResponse(
        request,
        "reviews.html",
        {
            "service": service,
            "games": service.ordered_games(q),
            "q": q,
            "context": service.context,
            "statuses": service.status_list,
            "message": service.message,
        },
    )


@router.get("")
async def reviews_page(
    request: Request,
    q: str = Query("", description="Filter games by title"),
    game: str | None = Query(None, description="Game to open in the review panel"),
    cycle: str | None = Query(None, description="Cycle to select"),
):
    """Render the reviews page."""
    service = request.app.state.reviews
    loaded = service.load_all()
    if game and loaded:
        service.load_game(game, cycle)
    elif not game:
        service.context = None
    return _render(request, q)


@router.post("/cycles/{cycle_id}")
async def save_review(
    request: Request,
    cycle_id: str,
    review_text: str = Form(""),
    rating_final: str = Form(""),
):
    """Save the review text and final rating of a cycle."""
    request.app.state.reviews.save_review(cycle_id, review_text, rating_final)
    return _render(request)


@router.post("/cycles/{cycle_id}/finish")
async def save_and_finish(
    request: Request,
    cycle_id: str,
    review_text: str = Form(""),
    rating_final: str = Form(""),
    finish_also: bool = Form(False),
    finish_status_id: str = Form(""),
):
    """Save the review and close the cycle."""
    request.app.state.reviews.save_and_finish(
        cycle_id,
        review_text,
        rating_final,
        finish_also=finish_also,
        finish_status_id=finish_status_id or None,
    )
    return _render(request)


@router.get("/cycles/{cycle_id}/sessions")
async def cycle_timeline(request: Request, cycle_id: str):
    """Render the session timeline of one cycle."""
    templates = request.app.state.templates
    service = request.app.state.reviews
    sessions = service.load_timeline_sessions(cycle_id)

    return templates.TemplateResponse(
        request,
        "partials/cycle_timeline.html",
        {"sessions": sessions, "message": service.message},
    )
