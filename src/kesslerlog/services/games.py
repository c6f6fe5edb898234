"""Games page: catalog, statuses, cycle start and external ratings."""

import logging
from datetime import datetime

from pydantic import BaseModel

from kesslerlog.models import Cycle, ExternalRating, Game, Status
from kesslerlog.services.base import ActionError, PageService, page_action
from kesslerlog.stats.scores import clamp, parse_decimal_input

logger = logging.getLogger(__name__)

# (slug, name, sort_order)
DEFAULT_STATUSES = [
    ("playing", "Jogando", 10),
    ("paused", "Pausado", 20),
    ("replaying", "Rejogando", 30),
    ("finished", "Finalizado", 40),
    ("dropped", "Dropado", 50),
]

START_STATUS_SLUGS = ("playing", "jogando")

GAME_COLUMNS = "id,title,platform,cover_url,external_source,external_id,external_url,created_at"
RATING_COLUMNS = "id,game_id,source,score,scale_max,url,retrieved_at"


def _blank_to_none(value: str | None) -> str | None:
    value = (value or "").strip()
    return value or None


def pick_default_start_status_id(statuses: list[Status]) -> str | None:
    """``playing`` (or ``jogando``), else the first active status."""
    for slug in START_STATUS_SLUGS:
        for s in statuses:
            if s.is_active and s.slug == slug:
                return s.id
    return next((s.id for s in statuses if s.is_active), None)


class GameInput(BaseModel):
    """Form data for creating or editing a game."""

    title: str = ""
    platform: str | None = None
    cover_url: str | None = None
    external_source: str | None = None
    external_id: str | None = None
    external_url: str | None = None

    def to_payload(self) -> dict:
        """Trimmed payload; blank optional fields become null."""
        title = self.title.strip()
        if not title:
            raise ActionError("Título é obrigatório.")
        return {
            "title": title,
            "platform": _blank_to_none(self.platform),
            "cover_url": _blank_to_none(self.cover_url),
            "external_source": _blank_to_none(self.external_source),
            "external_id": _blank_to_none(self.external_id),
            "external_url": _blank_to_none(self.external_url),
        }


class ActiveCycles(BaseModel):
    """Open cycles of one game."""

    count: int = 0
    last_started_at: datetime | None = None
    active_cycle_id: str | None = None


class GamesService(PageService):
    """State and actions behind the games page."""

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.games: list[Game] = []
        self.statuses: list[Status] = []
        self.active_by_game: dict[str, ActiveCycles] = {}
        self.ratings_by_game: dict[str, list[ExternalRating]] = {}
        self.status_to_start: str | None = None

    @property
    def has_statuses(self) -> bool:
        return any(s.is_active for s in self.statuses)

    # =========================================================================
    # Loaders
    # =========================================================================

    def _load_statuses(self) -> None:
        rows = (
            self.store.table("game_statuses")
            .select("id,slug,name,sort_order,is_active")
            .order("sort_order")
            .order("created_at")
            .execute()
        )
        self.statuses = [Status.model_validate(r) for r in rows]
        # Only defaulted once; the user's pick survives reloads
        if self.status_to_start is None:
            self.status_to_start = pick_default_start_status_id(self.statuses)

    def _load_games(self) -> None:
        rows = self.store.table("games").select(GAME_COLUMNS).order("created_at", desc=True).execute()
        self.games = [Game.model_validate(r) for r in rows]

    def _load_active_counts(self) -> None:
        rows = (
            self.store.table("game_cycles")
            .select("id,game_id,started_at,status_id")
            .is_null("ended_at")
            .execute()
        )
        active: dict[str, ActiveCycles] = {}
        for cycle in (Cycle.model_validate(r) for r in rows):
            slot = active.setdefault(cycle.game_id, ActiveCycles())
            slot.count += 1
            if slot.last_started_at is None or cycle.started_at >= slot.last_started_at:
                slot.last_started_at = cycle.started_at
                slot.active_cycle_id = cycle.id
        self.active_by_game = active

    def _load_ratings(self) -> None:
        rows = (
            self.store.table("external_ratings")
            .select(RATING_COLUMNS)
            .order("source")
            .order("retrieved_at", desc=True)
            .execute()
        )
        grouped: dict[str, list[ExternalRating]] = {}
        for r in rows:
            rating = ExternalRating.model_validate(r)
            grouped.setdefault(rating.game_id, []).append(rating)
        self.ratings_by_game = grouped

    # =========================================================================
    # Actions
    # =========================================================================

    @page_action(failure="Erro ao carregar")
    def load_all(self) -> bool:
        self.require_user_id()
        self._load_statuses()
        self._load_games()
        self._load_active_counts()
        self._load_ratings()
        return True

    @page_action(success="Status padrão criados ✅", failure="Erro ao criar status padrão")
    def ensure_default_statuses(self) -> bool:
        user_id = self.require_user_id()
        defaults = [
            {"user_id": user_id, "slug": slug, "name": name, "sort_order": order, "is_active": True}
            for slug, name, order in DEFAULT_STATUSES
        ]
        self.store.table("game_statuses").upsert(defaults, on_conflict="user_id,slug").execute()
        self._load_statuses()
        return True

    @page_action(failure="Erro ao salvar jogo")
    def upsert_game(self, data: GameInput, editing_id: str | None = None) -> bool:
        user_id = self.require_user_id()
        payload = data.to_payload()

        if editing_id:
            self.store.table("games").update(payload).eq("id", editing_id).execute()
            self.set_message("Jogo atualizado ✅")
        else:
            self.store.table("games").insert({"user_id": user_id, **payload}).execute()
            self.set_message("Jogo adicionado ✅")

        self._load_games()
        return True

    @page_action(success="Jogo excluído ✅", failure="Erro ao excluir jogo")
    def delete_game(self, game_id: str) -> bool:
        self.require_user_id()
        self.store.table("games").delete().eq("id", game_id).execute()
        self._load_games()
        self._load_active_counts()
        self._load_ratings()
        return True

    @page_action(success="Ciclo iniciado ✅", failure="Erro ao iniciar ciclo")
    def start_cycle(self, game_id: str, status_id: str | None = None) -> bool:
        user_id = self.require_user_id()

        if not self.statuses:
            self._load_statuses()
        if not self.statuses:
            raise ActionError("Você ainda não tem status. Clique em “Criar status padrão”.")

        chosen = status_id or self.status_to_start or pick_default_start_status_id(self.statuses)
        if not chosen:
            raise ActionError("Escolha um status para iniciar o ciclo.")

        # Checked against the store, not the cached counts
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

        self.store.table("game_cycles").insert(
            {
                "user_id": user_id,
                "game_id": game_id,
                "status_id": chosen,
                "started_at": self.now_iso(),
                "ended_at": None,
            }
        ).execute()
        logger.info("Started cycle for game %s", game_id)

        self._load_active_counts()
        return True

    @page_action(success="Avaliação externa salva ✅", failure="Erro ao salvar avaliação externa")
    def upsert_external_rating(
        self,
        game_id: str,
        source: str,
        score: str | float,
        scale_max: str | float,
        url: str | None = None,
    ) -> bool:
        user_id = self.require_user_id()

        src = (source or "").strip().lower()
        if not src:
            raise ActionError("Informe a fonte (ex: steam, igdb, rawg).")

        scale = parse_decimal_input(scale_max)
        if scale is None or scale <= 0:
            raise ActionError("scale_max inválido.")
        value = parse_decimal_input(score)
        if value is None:
            raise ActionError("score inválido.")

        payload = {
            "user_id": user_id,
            "game_id": game_id,
            "source": src,
            "score": clamp(value, 0, scale),
            "scale_max": scale,
            "url": _blank_to_none(url),
            "retrieved_at": self.now_iso(),
        }
        self.store.table("external_ratings").upsert(payload, on_conflict="user_id,game_id,source").execute()

        self._load_ratings()
        return True

    @page_action(success="Avaliação externa excluída ✅", failure="Erro ao excluir avaliação externa")
    def delete_external_rating(self, rating_id: str) -> bool:
        self.require_user_id()
        self.store.table("external_ratings").delete().eq("id", rating_id).execute()
        self._load_ratings()
        return True
