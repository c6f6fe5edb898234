"""Home page: the ``rpc_home_dashboard`` payload plus covers and timeline labels."""

import logging

from pydantic import BaseModel, Field, ValidationError

from kesslerlog.formatting import day_label
from kesslerlog.models import RANGE_DAYS, CycleMini, HomeDashboard, RangeMode, TimelineItem
from kesslerlog.services.base import ActionError, PageService, page_action
from kesslerlog.store import StoreError

logger = logging.getLogger(__name__)

HOME_RPC = "rpc_home_dashboard"


class TimelineGroup(BaseModel):
    """Timeline entries of one day, newest first."""

    label: str
    items: list[TimelineItem] = Field(default_factory=list)


class HomeService(PageService):
    """State and actions behind the home page."""

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.range_mode: RangeMode = "7d"
        self.dashboard = HomeDashboard()
        self.cycle_map: dict[str, CycleMini] = {}

    def _attach_covers(self, dashboard: HomeDashboard) -> None:
        game_ids = sorted({c.game_id for c in dashboard.continue_cards if c.game_id})
        if not game_ids:
            return
        try:
            rows = self.store.table("games").select("id,cover_url").in_("id", game_ids).execute()
        except StoreError as e:
            # Cards render without covers
            logger.warning("Could not load covers: %s", e)
            return
        covers = {str(r["id"]): r.get("cover_url") for r in rows}
        for card in dashboard.continue_cards:
            card.cover_url = covers.get(card.game_id)

    def _load_cycle_map(self, dashboard: HomeDashboard) -> dict[str, CycleMini]:
        cycle_ids = sorted({t.cycle_id for t in dashboard.timeline if t.cycle_id})
        if not cycle_ids:
            return {}
        try:
            rows = (
                self.store.table("game_cycles")
                .select("id,games(title),game_statuses(name,slug)")
                .in_("id", cycle_ids)
                .execute()
            )
        except StoreError as e:
            logger.warning("Could not load timeline cycles: %s", e)
            return {}

        cycles = {}
        for r in rows:
            game = r.get("games") or {}
            status = r.get("game_statuses") or {}
            cycles[str(r["id"])] = CycleMini(
                id=str(r["id"]),
                game_title=game.get("title") or "Jogo",
                status_name=status.get("name") or "Status",
                status_slug=status.get("slug"),
            )
        return cycles

    @page_action(failure="Falhou ao carregar via rpc_home_dashboard")
    def load(self, range_mode: RangeMode | None = None) -> HomeDashboard:
        if range_mode is not None:
            if range_mode not in RANGE_DAYS:
                raise ActionError(f"Intervalo inválido: {range_mode}")
            self.range_mode = range_mode

        try:
            payload = self.store.rpc(HOME_RPC, {"p_range_days": RANGE_DAYS[self.range_mode]})
        except StoreError as e:
            raise StoreError(f"Falhou ao carregar via {HOME_RPC}: {e}", e.status_code, e.code) from e

        payload = payload if isinstance(payload, dict) else {}
        # Null sections come back as empty ones
        try:
            dashboard = HomeDashboard.model_validate(
                {
                    "kpis": payload.get("kpis") or {},
                    "continue": payload.get("continue") if isinstance(payload.get("continue"), list) else [],
                    "timeline": payload.get("timeline") if isinstance(payload.get("timeline"), list) else [],
                }
            )
        except ValidationError as e:
            raise StoreError(f"Resposta inválida de {HOME_RPC} ({e.error_count()} erro(s))") from e

        self._attach_covers(dashboard)
        self.cycle_map = self._load_cycle_map(dashboard)
        self.dashboard = dashboard
        return dashboard

    def grouped_timeline(self) -> list[TimelineGroup]:
        """Timeline grouped by day (``Hoje``, ``Ontem``, ``DD/MM``)."""
        now = self.clock()
        groups: dict = {}
        for item in sorted(self.dashboard.timeline, key=lambda t: t.at, reverse=True):
            key = item.at.date()
            if key not in groups:
                groups[key] = TimelineGroup(label=day_label(item.at, now))
            groups[key].items.append(item)
        return list(groups.values())

    def game_title(self, cycle_id: str) -> str:
        cycle = self.cycle_map.get(cycle_id)
        return cycle.game_title if cycle else "Jogo"
