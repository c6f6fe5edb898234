"""Runs page: latest cycle per game, play sessions and the session timer."""

import logging
from datetime import datetime, timezone

from pydantic import BaseModel, Field

from kesslerlog.formatting import cycle_labels, normalize_text
from kesslerlog.models import Cycle, CycleStats, Game, RecentSession, Session, Status
from kesslerlog.services.base import ActionError, PageService, page_action
from kesslerlog.stats.scores import parse_score_input

logger = logging.getLogger(__name__)

CYCLE_COLUMNS = """
    id, game_id, status_id, started_at, ended_at,
    status:game_statuses(id,name,slug,is_active)
"""
SESSION_COLUMNS = "id,cycle_id,started_at,ended_at,note_text,score"
STATS_COLUMNS = (
    "cycle_id,sessions_count_finished,total_minutes_finished,"
    "avg_session_minutes_finished,avg_score_finished,last_session_started_at"
)
RECENT_SESSION_COLUMNS = """
    id, started_at, ended_at, score, note_text,
    cycle:game_cycles(
        id,
        game:games(id,title,platform,cover_url,external_url)
    )
"""

LATEST_CYCLES_LIMIT = 500
RECENT_SESSIONS = 10
GAME_CYCLES_LIMIT = 80
CYCLE_SESSIONS_LIMIT = 14

_EPOCH = datetime.min.replace(tzinfo=timezone.utc)


class CycleContext(BaseModel):
    """The cycle picked in the session panel, with its sessions."""

    game_id: str
    cycles: list[Cycle] = Field(default_factory=list)
    labels: dict[str, str] = Field(default_factory=dict)
    cycle_id: str | None = None
    stats: CycleStats | None = None
    open_session: Session | None = None
    sessions: list[Session] = Field(default_factory=list)

    @property
    def cycle(self) -> Cycle | None:
        return next((c for c in self.cycles if c.id == self.cycle_id), None)


class RunsService(PageService):
    """State and actions behind the runs page."""

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.statuses: list[Status] = []
        self.games: list[Game] = []
        self.latest_cycle_by_game: dict[str, Cycle] = {}
        self.stats_by_cycle: dict[str, CycleStats] = {}
        self.open_session_by_cycle: dict[str, Session] = {}
        self.recent_sessions: list[RecentSession] = []
        self.context: CycleContext | None = None

    # =========================================================================
    # Loaders
    # =========================================================================

    def _load_statuses(self) -> None:
        rows = self.store.table("game_statuses").select("id,name,slug,is_active").order("name").execute()
        self.statuses = [Status.model_validate(r) for r in rows]

    def _load_games(self) -> None:
        rows = (
            self.store.table("games")
            .select("id,title,platform,cover_url,external_url,created_at")
            .order("created_at", desc=True)
            .execute()
        )
        self.games = [Game.model_validate(r) for r in rows]

    def _load_latest_cycles(self) -> None:
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
            # Newest first, so the first row per game wins
            latest.setdefault(cycle.game_id, cycle)
        self.latest_cycle_by_game = latest

    def _load_stats_for_cycles(self, cycle_ids: list[str]) -> None:
        if not cycle_ids:
            self.stats_by_cycle = {}
            return
        rows = self.store.table("vw_cycle_stats").select("*").in_("cycle_id", cycle_ids).execute()
        stats = (CycleStats.model_validate(r) for r in rows if r.get("cycle_id"))
        self.stats_by_cycle = {s.cycle_id: s for s in stats}

    def _load_open_sessions(self, cycle_ids: list[str]) -> None:
        if not cycle_ids:
            self.open_session_by_cycle = {}
            return
        rows = (
            self.store.table("play_sessions")
            .select(SESSION_COLUMNS)
            .in_("cycle_id", cycle_ids)
            .is_null("ended_at")
            .execute()
        )
        sessions = (Session.model_validate(r) for r in rows)
        self.open_session_by_cycle = {s.cycle_id: s for s in sessions}

    def _load_recent_sessions(self) -> None:
        rows = (
            self.store.table("play_sessions")
            .select(RECENT_SESSION_COLUMNS)
            .not_null("ended_at")
            .order("started_at", desc=True)
            .limit(RECENT_SESSIONS)
            .execute()
        )
        self.recent_sessions = [RecentSession.model_validate(r) for r in rows]

    def _load_cycles(self, game_id: str) -> list[Cycle]:
        rows = (
            self.store.table("game_cycles")
            .select(CYCLE_COLUMNS)
            .eq("game_id", game_id)
            .order("started_at", desc=True)
            .limit(GAME_CYCLES_LIMIT)
            .execute()
        )
        return [Cycle.model_validate(r) for r in rows]

    def _fetch_cycle(self, cycle_id: str) -> Cycle:
        row = self.store.table("game_cycles").select(CYCLE_COLUMNS).eq("id", cycle_id).single().execute()
        return Cycle.model_validate(row)

    def _fetch_open_session(self, cycle_id: str) -> Session | None:
        rows = (
            self.store.table("play_sessions")
            .select(SESSION_COLUMNS)
            .eq("cycle_id", cycle_id)
            .is_null("ended_at")
            .order("started_at", desc=True)
            .limit(1)
            .execute()
        )
        return Session.model_validate(rows[0]) if rows else None

    def _refresh_context(self, game_id: str, cycle_id: str | None = None) -> CycleContext:
        cycles = self._load_cycles(game_id)
        if cycle_id is None or not any(c.id == cycle_id for c in cycles):
            cycle_id = cycles[0].id if cycles else None

        context = CycleContext(game_id=game_id, cycles=cycles, labels=cycle_labels(cycles), cycle_id=cycle_id)
        if cycle_id:
            stats_rows = (
                self.store.table("vw_cycle_stats").select(STATS_COLUMNS).eq("cycle_id", cycle_id).limit(1).execute()
            )
            context.stats = CycleStats.model_validate(stats_rows[0]) if stats_rows else None
            context.open_session = self._fetch_open_session(cycle_id)
            session_rows = (
                self.store.table("play_sessions")
                .select(SESSION_COLUMNS)
                .eq("cycle_id", cycle_id)
                .order("started_at", desc=True)
                .limit(CYCLE_SESSIONS_LIMIT)
                .execute()
            )
            context.sessions = [Session.model_validate(r) for r in session_rows]

        self.context = context
        return context

    def _reload_overview(self) -> None:
        self._load_statuses()
        self._load_games()
        self._load_latest_cycles()
        cycle_ids = [c.id for c in self.latest_cycle_by_game.values()]
        self._load_stats_for_cycles(cycle_ids)
        self._load_open_sessions(cycle_ids)
        self._load_recent_sessions()

    # =========================================================================
    # Derived views
    # =========================================================================

    def last_activity(self, game_id: str) -> datetime | None:
        """Latest of the cycle's last finished session and its open session."""
        cycle = self.latest_cycle_by_game.get(game_id)
        if cycle is None:
            return None
        stats = self.stats_by_cycle.get(cycle.id)
        open_session = self.open_session_by_cycle.get(cycle.id)
        candidates = [
            stats.last_session_started_at if stats else None,
            open_session.started_at if open_session else None,
        ]
        dated = [d for d in candidates if d is not None]
        return max(dated) if dated else None

    def ordered_games(self, query: str = "") -> list[Game]:
        """Games with an open session first, then games with a cycle, then by
        last activity and title. ``query`` filters on the accent-folded title."""

        def sort_key(game: Game):
            cycle = self.latest_cycle_by_game.get(game.id)
            has_open = cycle is not None and cycle.id in self.open_session_by_cycle
            last = self.last_activity(game.id) or _EPOCH
            return (not has_open, cycle is None, -last.timestamp(), normalize_text(game.title))

        games = sorted(self.games, key=sort_key)
        needle = normalize_text(query)
        if needle:
            games = [g for g in games if needle in normalize_text(g.title)]
        return games

    @property
    def status_list(self) -> list[Status]:
        active = [s for s in self.statuses if s.is_active]
        return active or self.statuses

    # =========================================================================
    # Actions
    # =========================================================================

    @page_action(failure="Erro ao carregar")
    def load_all(self) -> bool:
        self.require_user_id()
        self._reload_overview()
        return True

    @page_action(failure="Erro ao carregar contexto do ciclo")
    def load_cycle(self, game_id: str, cycle_id: str | None = None) -> CycleContext:
        if not self.statuses:
            self._load_statuses()
        return self._refresh_context(game_id, cycle_id)

    @page_action(success="Novo ciclo criado ✅", failure="Erro ao criar novo ciclo")
    def create_cycle(self, game_id: str, status_id: str | None = None) -> Cycle:
        user_id = self.require_user_id()
        if not self.statuses:
            self._load_statuses()
        status_id = status_id or (self.status_list[0].id if self.status_list else None)
        if not status_id:
            raise ActionError("Você precisa ter pelo menos 1 status cadastrado.")

        open_rows = (
            self.store.table("game_cycles")
            .select("id")
            .eq("game_id", game_id)
            .is_null("ended_at")
            .limit(1)
            .execute()
        )
        if open_rows:
            raise ActionError("Este jogo já tem ciclo ativo. Finalize/encerre antes de iniciar outro.")

        row = (
            self.store.table("game_cycles")
            .insert({"user_id": user_id, "game_id": game_id, "status_id": status_id, "started_at": self.now_iso()})
            .single()
            .execute()
        )
        cycle = Cycle.model_validate(row)
        self._refresh_context(game_id, cycle.id)
        self._reload_overview()
        return cycle

    @page_action(success="Ciclo excluído ✅", failure="Erro ao excluir ciclo (talvez existam sessões ligadas)")
    def delete_cycle(self, cycle_id: str) -> bool:
        self.require_user_id()
        game_id = self.context.game_id if self.context else None
        self.store.table("game_cycles").delete().eq("id", cycle_id).execute()
        if game_id:
            self._refresh_context(game_id)
        self._reload_overview()
        return True

    @page_action(success="Status atualizado ✅", failure="Erro ao atualizar status")
    def update_cycle_status(self, cycle_id: str, status_id: str) -> bool:
        self.require_user_id()
        self.store.table("game_cycles").update({"status_id": status_id}).eq("id", cycle_id).execute()
        if self.context:
            self._refresh_context(self.context.game_id, cycle_id)
        self._reload_overview()
        return True

    @page_action(success="Sessão iniciada ✅", failure="Erro ao iniciar sessão")
    def start_session(self, cycle_id: str, note_text: str | None = None) -> Session:
        user_id = self.require_user_id()

        cycle = self._fetch_cycle(cycle_id)
        if cycle.ended_at is not None:
            raise ActionError("Este ciclo está encerrado. Escolha outro ciclo ou crie um novo.")
        if self._fetch_open_session(cycle_id) is not None:
            raise ActionError("Já existe uma sessão aberta neste ciclo.")

        note = (note_text or "").strip() or None
        row = (
            self.store.table("play_sessions")
            .insert({"user_id": user_id, "cycle_id": cycle_id, "note_text": note})
            .single()
            .execute()
        )
        session = Session.model_validate(row)
        logger.info("Started session %s on cycle %s", session.id, cycle_id)

        self._refresh_context(cycle.game_id, cycle_id)
        self._reload_overview()
        return session

    @page_action(success="Sessão finalizada ✅", failure="Erro ao finalizar sessão")
    def finish_session(self, session_id: str, score_text: str | None = None, note_text: str | None = None) -> bool:
        self.require_user_id()
        patch = {
            "ended_at": self.now_iso(),
            "score": parse_score_input(score_text),
            "note_text": (note_text or "").strip() or None,
        }
        rows = (
            self.store.table("play_sessions")
            .update(patch)
            .eq("id", session_id)
            .is_null("ended_at")
            .execute()
        )
        if not rows:
            raise ActionError("Não existe sessão aberta.")

        session = Session.model_validate(rows[0])
        if self.context:
            self._refresh_context(self.context.game_id, session.cycle_id)
        self._reload_overview()
        return True

    @page_action(success="Sessão excluída ✅", failure="Erro ao excluir sessão")
    def delete_session(self, session_id: str) -> bool:
        self.require_user_id()
        self.store.table("play_sessions").delete().eq("id", session_id).execute()
        if self.context:
            self._refresh_context(self.context.game_id, self.context.cycle_id)
        self._reload_overview()
        return True
