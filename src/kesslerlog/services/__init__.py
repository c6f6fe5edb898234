"""Page services: per-page state and actions."""

from kesslerlog.services.base import ActionError, PageService, PageState, page_action
from kesslerlog.services.games import GameInput, GamesService
from kesslerlog.services.home import HomeService
from kesslerlog.services.reviews import ReviewsService
from kesslerlog.services.runs import RunsService
from kesslerlog.services.stats import StatsService

__all__ = [
    "ActionError",
    "GameInput",
    "GamesService",
    "HomeService",
    "PageService",
    "PageState",
    "ReviewsService",
    "RunsService",
    "StatsService",
    "page_action",
]
