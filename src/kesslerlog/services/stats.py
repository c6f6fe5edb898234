"""Statistics page: filters, dashboard datasets, cycle feed and game history."""

import logging

from pydantic import BaseModel, Field

from kesslerlog.models import (
    CycleRow,
    DashboardData,
    FeedRow,
    GameOption,
    GameOverview,
    NormalizedExternalRating,
    Session,
    StatsFilters,
    Status,
)
from kesslerlog.services.base import PageService, page_action
from kesslerlog.stats.dashboard import NO_STATUS_LABEL, derive_dashboard, derive_donut_month, derive_hours_by_month
from kesslerlog.stats.periods import build_range, year_range
from kesslerlog.stats.scores import clamp
from kesslerlog.store import Query

logger = logging.getLogger(__name__)

PERIOD_COLUMNS = (
    "cycle_id,game_id,game_title,status_id,status_name,started_at,ended_at,rating_final,review_text,"
    "sessions_count_finished,total_minutes_finished,avg_session_minutes_finished,avg_score_finished,"
    "last_session_started_at"
)
FEED_COLUMNS = (
    "cycle_id,game_id,game_title,status_id,status_name,started_at,ended_at,rating_final,review_text,"
    "sessions_count_finished,total_minutes_finished,avg_score_finished,last_session_started_at"
)
HISTORY_CYCLE_COLUMNS = (
    "cycle_id,game_id,status_id,status_name,started_at,ended_at,review_text,rating_final,"
    "sessions_count_finished,total_minutes_finished,avg_session_minutes_finished,avg_score_finished,"
    "last_session_started_at"
)

PERIOD_ROWS_LIMIT = 5000
YEAR_ROWS_LIMIT = 10000
EXTERNALS_LIMIT = 5000
FEED_PAGE = 10
GAME_SEARCH_LIMIT = 20
HISTORY_CYCLES_LIMIT = 120
HISTORY_EXTERNALS_LIMIT = 20


class GameHistory(BaseModel):
    """Everything the game history panel shows for one game."""

    game_id: str
    overview: GameOverview | None = None
    cycles: list[CycleRow] = Field(default_factory=list)
    externals: list[NormalizedExternalRating] = Field(default_factory=list)
    cycle_id: str | None = None
    sessions: list[Session] = Field(default_factory=list)


class StatsService(PageService):
    """State and actions behind the statistics page."""

    def __init__(self, *args, no_status_label: str = NO_STATUS_LABEL, **kwargs):
        super().__init__(*args, **kwargs)
        self.no_status_label = no_status_label
        self.filters = self.default_filters()
        self.status_options: list[Status] = []
        self.game_options: list[GameOption] = []
        self.dashboard: DashboardData | None = None
        self.feed: list[FeedRow] = []
        self.feed_offset = 0
        self.feed_has_more = False
        self.history: GameHistory | None = None

    # =========================================================================
    # Filters
    # =========================================================================

    def default_filters(self) -> StatsFilters:
        now = self.clock()
        return StatsFilters(period="last30", month=now.month, year=now.year)

    def set_filters(self, **changes) -> StatsFilters:
        """Merge ``changes`` into the current filters (validated)."""
        self.filters = StatsFilters.model_validate({**self.filters.model_dump(), **changes})
        return self.filters

    def reset_filters(self) -> StatsFilters:
        self.filters = self.default_filters()
        self.game_options = []
        return self.filters

    def _apply_common(self, query: Query) -> Query:
        if self.filters.game_id:
            query = query.eq("game_id", self.filters.game_id)
        if self.filters.status_id:
            query = query.eq("status_id", self.filters.status_id)
        q = self.filters.q.strip()
        if q:
            query = query.ilike("game_title", f"%{q}%")
        return query

    def _cycles_query(self, columns: str) -> Query:
        query = self.store.table("vw_cycles_enriched").select(columns).order("started_at", desc=True)
        start, end = build_range(self.filters, self.clock())
        if start is not None and end is not None:
            query = query.gte("started_at", start).lt("started_at", end)
        return self._apply_common(query)

    def _year_cycles_query(self, columns: str, year: int) -> Query:
        start, end = year_range(year)
        query = (
            self.store.table("vw_cycles_enriched")
            .select(columns)
            .order("started_at", desc=True)
            .gte("started_at", start)
            .lt("started_at", end)
        )
        return self._apply_common(query)

    # =========================================================================
    # Loaders
    # =========================================================================

    def _load_status_options(self) -> None:
        rows = self.store.table("game_statuses").select("id,name,slug").order("sort_order").order("name").execute()
        self.status_options = [Status.model_validate(r) for r in rows]

    def _load_externals(self, game_ids: list[str]) -> list[NormalizedExternalRating]:
        if not game_ids:
            return []
        rows = (
            self.store.table("vw_external_ratings_norm")
            .select("game_id,source,score_0_10,url,retrieved_at")
            .in_("game_id", game_ids)
            .limit(EXTERNALS_LIMIT)
            .execute()
        )
        return [NormalizedExternalRating.model_validate(r) for r in rows]

    def _load_dashboard(self) -> DashboardData:
        now = self.clock()
        year = self.filters.year or now.year

        period_rows = [
            CycleRow.model_validate(r) for r in self._cycles_query(PERIOD_COLUMNS).limit(PERIOD_ROWS_LIMIT).execute()
        ]
        year_rows = [
            CycleRow.model_validate(r)
            for r in self._year_cycles_query(PERIOD_COLUMNS, year).limit(YEAR_ROWS_LIMIT).execute()
        ]

        # Externals for the whole year also cover the period rows shown in
        # the recent ratings chart
        game_ids = sorted({r.game_id for r in [*year_rows, *period_rows] if r.game_id})
        externals = self._load_externals(game_ids)

        dashboard = derive_dashboard(period_rows, self.filters, externals, self.no_status_label)
        dashboard.hours_by_month = derive_hours_by_month(year_rows, year)

        month = self.filters.month if self.filters.period == "month" and self.filters.month else now.month
        dashboard.donut_month = derive_donut_month(year_rows, externals, year, int(clamp(month, 1, 12)))

        self.dashboard = dashboard
        return dashboard

    def _load_feed_page(self, offset: int) -> list[FeedRow]:
        rows = (
            self._cycles_query(FEED_COLUMNS)
            .order("cycle_id", desc=True)
            .range(offset, offset + FEED_PAGE - 1)
            .execute()
        )

        game_ids = sorted({r["game_id"] for r in rows if r.get("game_id")})
        extras: dict[str, dict] = {}
        if game_ids:
            for g in self.store.table("games").select("id,platform,cover_url").in_("id", game_ids).execute():
                extras[g["id"]] = {"platform": g.get("platform"), "cover_url": g.get("cover_url")}

        page = [FeedRow.model_validate({**r, **extras.get(r.get("game_id"), {})}) for r in rows]
        self.feed_has_more = len(page) == FEED_PAGE
        return page

    # =========================================================================
    # Actions
    # =========================================================================

    @page_action(failure="Erro ao carregar dashboard")
    def refresh_all(self) -> DashboardData:
        self._load_status_options()
        dashboard = self._load_dashboard()
        self.feed = self._load_feed_page(0)
        self.feed_offset = 0
        return dashboard

    @page_action(failure="Erro ao carregar mais")
    def feed_load_more(self) -> list[FeedRow]:
        if not self.feed_has_more:
            return []
        next_offset = self.feed_offset + FEED_PAGE
        page = self._load_feed_page(next_offset)
        self.feed.extend(page)
        self.feed_offset = next_offset
        return page

    @page_action(failure="Erro ao buscar jogos")
    def search_games(self, q: str) -> list[GameOption]:
        q = (q or "").strip()
        if not q:
            self.game_options = []
            return []
        rows = (
            self.store.table("games")
            .select("id,title,platform,cover_url")
            .ilike("title", f"%{q}%")
            .order("title")
            .limit(GAME_SEARCH_LIMIT)
            .execute()
        )
        self.game_options = [GameOption.model_validate(r) for r in rows]
        return self.game_options

    @page_action(failure="Erro ao carregar histórico do jogo")
    def load_game_history(self, game_id: str, cycle_id: str | None = None) -> GameHistory:
        overview_rows = self.store.table("vw_game_overview").select("*").eq("game_id", game_id).limit(1).execute()
        cycle_rows = (
            self.store.table("vw_cycles_enriched")
            .select(HISTORY_CYCLE_COLUMNS)
            .eq("game_id", game_id)
            .order("started_at", desc=True)
            .limit(HISTORY_CYCLES_LIMIT)
            .execute()
        )
        external_rows = (
            self.store.table("vw_external_ratings_norm")
            .select("game_id,source,score_0_10,url,retrieved_at")
            .eq("game_id", game_id)
            .order("score_0_10", desc=True)
            .limit(HISTORY_EXTERNALS_LIMIT)
            .execute()
        )

        overview = GameOverview.model_validate(overview_rows[0]) if overview_rows else None
        cycles = [CycleRow.model_validate(r) for r in cycle_rows]
        history = GameHistory(
            game_id=game_id,
            overview=overview,
            cycles=cycles,
            externals=[NormalizedExternalRating.model_validate(r) for r in external_rows],
        )

        pick = cycle_id or (overview.latest_cycle_id if overview else None) or (cycles[0].cycle_id if cycles else None)
        if pick:
            history.cycle_id = pick
            session_rows = (
                self.store.table("vw_sessions_enriched")
                .select("session_id,cycle_id,started_at,ended_at,duration_minutes,score,note_text")
                .eq("cycle_id", pick)
                .order("started_at", desc=True)
                .execute()
            )
            history.sessions = [Session.model_validate(r) for r in session_rows]

        self.history = history
        return history
