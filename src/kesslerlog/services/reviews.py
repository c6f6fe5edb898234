"""Reviews page: per-cycle review text, final rating and cycle closing."""

import logging

from pydantic import BaseModel, Field, ValidationError

from kesslerlog.formatting import cycle_labels, normalize_text
from kesslerlog.models import Cycle, ExternalRating, Game, Session, Status
from kesslerlog.services.base import ActionError, PageService, invalid_rows_message, page_action
from kesslerlog.stats.scores import mean1, parse_score_input, to_float
from kesslerlog.store import StoreError

logger = logging.getLogger(__name__)

CYCLE_COLUMNS = """
    id, game_id, status_id, started_at, ended_at, review_text, rating_final,
    status:game_statuses(id,name,slug,is_active)
"""
SESSION_COLUMNS = "id,cycle_id,started_at,ended_at,note_text,score"

LATEST_CYCLES_LIMIT = 800
GAME_CYCLES_LIMIT = 80
SCORED_SESSIONS_LIMIT = 1500
EXTERNAL_RATINGS_LIMIT = 80
TIMELINE_SESSIONS_LIMIT = 40

FINISHED_STATUS_SLUGS = ("zerado", "finalizado", "concluido", "concluído", "finished", "done", "completed")


def guess_finished_status_id(statuses: list[Status]) -> str | None:
    """Status whose slug reads like "finished", if the user has one."""
    by_slug = {normalize_text(s.slug): s.id for s in statuses}
    for candidate in FINISHED_STATUS_SLUGS:
        status_id = by_slug.get(normalize_text(candidate))
        if status_id:
            return status_id
    return None


class SessionScoreAgg(BaseModel):
    avg: float | None = None
    count: int = 0


class ReviewContext(BaseModel):
    """Cycles of one game plus what the review panel needs around them."""

    game_id: str
    cycles: list[Cycle] = Field(default_factory=list)
    labels: dict[str, str] = Field(default_factory=dict)
    cycle_id: str | None = None
    has_open_session: bool = False
    session_scores: dict[str, SessionScoreAgg] = Field(default_factory=dict)
    external_ratings: list[ExternalRating] = Field(default_factory=list)
    finish_status_id: str | None = None

    @property
    def cycle(self) -> Cycle | None:
        return next((c for c in self.cycles if c.id == self.cycle_id), None)


class ReviewsService(PageService):
    """State and actions behind the reviews page."""

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.statuses: list[Status] = []
        self.games: list[Game] = []
        self.latest_cycle_by_game: dict[str, Cycle] = {}
        self.context: ReviewContext | None = None
        self.timeline_sessions: dict[str, list[Session]] = {}

    @property
    def status_list(self) -> list[Status]:
        active = [s for s in self.statuses if s.is_active]
        return active or self.statuses

    # =========================================================================
    # Loaders
    # =========================================================================

    def _load_statuses(self) -> None:
        rows = self.store.table("game_statuses").select("id,name,slug,is_active").order("name").execute()
        self.statuses = [Status.model_validate(r) for r in rows]

    def _load_overview(self) -> None:
        self._load_statuses()
        rows = (
            self.store.table("games")
            .select("id,title,platform,cover_url,external_url,created_at")
            .order("created_at", desc=True)
            .execute()
        )
        self.games = [Game.model_validate(r) for r in rows]

        rows = (
            self.store.table("game_cycles")
            .select(CYCLE_COLUMNS)
            .order("started_at", desc=True)
            .limit(LATEST_CYCLES_LIMIT)
            .execute()
        )
        latest: dict[str, Cycle] = {}
        for r in rows:
            cycle = Cycle.model_validate(r)
            latest.setdefault(cycle.game_id, cycle)
        self.latest_cycle_by_game = latest

    def _has_open_session(self, cycle_id: str) -> bool:
        rows = (
            self.store.table("play_sessions")
            .select("id")
            .eq("cycle_id", cycle_id)
            .is_null("ended_at")
            .limit(1)
            .execute()
        )
        return bool(rows)

    def _session_scores(self, cycle_ids: list[str]) -> dict[str, SessionScoreAgg]:
        if not cycle_ids:
            return {}
        rows = (
            self.store.table("play_sessions")
            .select("id,cycle_id,score")
            .in_("cycle_id", cycle_ids)
            .not_null("score")
            .limit(SCORED_SESSIONS_LIMIT)
            .execute()
        )
        scores: dict[str, list[float]] = {}
        for r in rows:
            score = to_float(r.get("score"))
            if score is not None and r.get("cycle_id"):
                scores.setdefault(r["cycle_id"], []).append(score)

        aggs = {}
        for cycle_id in cycle_ids:
            values = scores.get(cycle_id, [])
            aggs[cycle_id] = SessionScoreAgg(avg=mean1(values), count=len(values))
        return aggs

    def _external_ratings(self, game_id: str) -> list[ExternalRating]:
        # Optional panel: a failure here must not hide the cycles
        try:
            rows = (
                self.store.table("external_ratings")
                .select("id,user_id,game_id,source,score,scale_max,url,retrieved_at")
                .eq("game_id", game_id)
                .eq("user_id", self.require_user_id())
                .order("retrieved_at", desc=True)
                .limit(EXTERNAL_RATINGS_LIMIT)
                .execute()
            )
        except (StoreError, ActionError) as e:
            logger.warning("Could not load external ratings for %s: %s", game_id, e)
            return []
        return [ExternalRating.model_validate(r) for r in rows]

    def _refresh_context(self, game_id: str, cycle_id: str | None = None) -> ReviewContext:
        if not self.statuses:
            self._load_statuses()

        rows = (
            self.store.table("game_cycles")
            .select(CYCLE_COLUMNS)
            .eq("game_id", game_id)
            .order("started_at", desc=True)
            .limit(GAME_CYCLES_LIMIT)
            .execute()
        )
        cycles = [Cycle.model_validate(r) for r in rows]
        if cycle_id is None or not any(c.id == cycle_id for c in cycles):
            cycle_id = cycles[0].id if cycles else None

        context = ReviewContext(
            game_id=game_id,
            cycles=cycles,
            labels=cycle_labels(cycles),
            cycle_id=cycle_id,
            has_open_session=self._has_open_session(cycle_id) if cycle_id else False,
            session_scores=self._session_scores([c.id for c in cycles]),
            external_ratings=self._external_ratings(game_id),
            finish_status_id=guess_finished_status_id(self.status_list),
        )
        if self.context is None or self.context.game_id != game_id:
            self.timeline_sessions = {}
        self.context = context
        return context

    # =========================================================================
    # Derived views
    # =========================================================================

    def ordered_games(self, query: str = "") -> list[Game]:
        """Open cycles first, then reviewed ones, then newest cycle and title."""

        def sort_key(game: Game):
            cycle = self.latest_cycle_by_game.get(game.id)
            is_open = cycle is not None and cycle.ended_at is None
            has_review = cycle is not None and (bool((cycle.review_text or "").strip()) or cycle.rating_final is not None)
            started = cycle.started_at.timestamp() if cycle is not None else float("-inf")
            return (not is_open, not has_review, -started, normalize_text(game.title))

        games = sorted(self.games, key=sort_key)
        needle = normalize_text(query)
        if needle:
            games = [g for g in games if needle in normalize_text(g.title)]
        return games

    # =========================================================================
    # Actions
    # =========================================================================

    @page_action(failure="Erro ao carregar")
    def load_all(self) -> bool:
        self.require_user_id()
        self._load_overview()
        return True

    @page_action(failure="Erro ao carregar ciclos")
    def load_game(self, game_id: str, cycle_id: str | None = None) -> ReviewContext:
        return self._refresh_context(game_id, cycle_id)

    @page_action(success="Review salva ✅", failure="Erro ao salvar review")
    def save_review(self, cycle_id: str, review_text: str | None, rating_text: str | None) -> bool:
        self.require_user_id()
        patch = {
            "review_text": (review_text or "").strip() or None,
            "rating_final": parse_score_input(rating_text),
        }
        rows = self.store.table("game_cycles").update(patch).eq("id", cycle_id).execute()
        game_id = rows[0].get("game_id") if rows else None
        game_id = game_id or (self.context.game_id if self.context else None)
        if game_id:
            self._refresh_context(game_id, cycle_id)
        self._load_overview()
        return True

    @page_action(success="Review salva e ciclo encerrado ✅", failure="Erro ao finalizar ciclo")
    def save_and_finish(
        self,
        cycle_id: str,
        review_text: str | None,
        rating_text: str | None,
        finish_also: bool = True,
        finish_status_id: str | None = None,
    ) -> bool:
        self.require_user_id()

        row = self.store.table("game_cycles").select(CYCLE_COLUMNS).eq("id", cycle_id).single().execute()
        cycle = Cycle.model_validate(row)
        if self._has_open_session(cycle_id):
            raise ActionError("Existe uma sessão (run) aberta nesse ciclo. Finalize a sessão antes.")
        if cycle.ended_at is not None:
            raise ActionError("Este ciclo já está encerrado. Você ainda pode salvar a review.")

        patch = {
            "review_text": (review_text or "").strip() or None,
            "rating_final": parse_score_input(rating_text),
            "ended_at": self.now_iso(),
        }
        if finish_also:
            if not self.statuses:
                self._load_statuses()
            status_id = finish_status_id or guess_finished_status_id(self.status_list)
            if status_id:
                patch["status_id"] = status_id

        self.store.table("game_cycles").update(patch).eq("id", cycle_id).execute()
        logger.info("Closed cycle %s", cycle_id)

        self._refresh_context(cycle.game_id, cycle_id)
        self._load_overview()
        return True

    def load_timeline_sessions(self, cycle_id: str) -> list[Session]:
        """Sessions of one cycle for the timeline, fetched once per cycle."""
        if cycle_id in self.timeline_sessions:
            return self.timeline_sessions[cycle_id]
        try:
            rows = (
                self.store.table("play_sessions")
                .select(SESSION_COLUMNS)
                .eq("cycle_id", cycle_id)
                .order("started_at", desc=True)
                .limit(TIMELINE_SESSIONS_LIMIT)
                .execute()
            )
        except StoreError as e:
            self.set_message(str(e) or "Erro ao carregar timeline do ciclo")
            return []
        try:
            sessions = [Session.model_validate(r) for r in rows]
        except ValidationError as e:
            logger.warning("Invalid timeline rows for cycle %s: %s", cycle_id, e)
            self.set_message(invalid_rows_message(e))
            return []
        self.timeline_sessions[cycle_id] = sessions
        return sessions
