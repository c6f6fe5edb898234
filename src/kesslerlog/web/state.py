"""Page services held on ``app.state``.

The app is single-user: each page keeps one service instance (and so one
message slot) for the lifetime of the process.
"""

import logging

from fastapi import FastAPI

from kesslerlog.services import GamesService, HomeService, ReviewsService, RunsService, StatsService
from kesslerlog.store import StoreClient
from kesslerlog.web.i18n import no_status_label

logger = logging.getLogger(__name__)


def install_services(app: FastAPI, store: StoreClient) -> None:
    """Attach ``store`` and a fresh service per page to ``app.state``."""
    previous = getattr(app.state, "store", None)
    if previous is not None and previous is not store:
        previous.close()

    app.state.store = store
    app.state.home = HomeService(store)
    app.state.games = GamesService(store)
    app.state.runs = RunsService(store)
    app.state.reviews = ReviewsService(store)
    app.state.stats = StatsService(store, no_status_label=no_status_label())
    logger.info("Store %s (schema %s)", store.url or "not configured", store.schema)
