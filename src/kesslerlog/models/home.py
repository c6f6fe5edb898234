"""Models for the ``rpc_home_dashboard`` payload.

The RPC returns camelCase JSON. Its aggregation logic lives in the database,
this module only gives the payload a shape.
"""

from typing import Annotated, Any, Literal

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field
from pydantic.alias_generators import to_camel

from kesslerlog.models.records import UtcDatetime
from kesslerlog.stats.scores import to_float

RangeMode = Literal["7d", "14d", "30d"]

RANGE_DAYS: dict[str, int] = {"7d": 7, "14d": 14, "30d": 30}


def _zero(value: Any) -> float:
    n = to_float(value)
    return n if n is not None else 0.0


def _zero_int(value: Any) -> int:
    n = to_float(value)
    return int(n) if n is not None else 0


ZeroFloat = Annotated[float, BeforeValidator(_zero)]
ZeroInt = Annotated[int, BeforeValidator(_zero_int)]
OptFloat = Annotated[float | None, BeforeValidator(to_float)]


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")


class HomeKpis(CamelModel):
    sessions: ZeroInt = 0
    time_hours: ZeroFloat = 0.0
    avg_session_score: OptFloat = None
    avg_review_score: OptFloat = None
    playing_now: ZeroInt = 0
    finished: ZeroInt = 0
    dropped: ZeroInt = 0
    month_hours: ZeroFloat = 0.0
    streak_days: ZeroInt = 0


class ContinueCard(CamelModel):
    """A "continue playing" card."""

    cycle_id: str
    game_id: str
    game: str
    status: str
    status_slug: str | None = None
    hours: OptFloat = None
    avg_session: OptFloat = None
    avg_review: OptFloat = None
    last_session_at: UtcDatetime | None = None

    cover_url: str | None = None  # filled from ``games`` after the RPC


class TimelineItem(CamelModel):
    kind: Literal["SESSION_END", "REVIEW"]
    at: UtcDatetime
    cycle_id: str
    note: str | None = None
    score: OptFloat = None
    rating_final: OptFloat = None


class CycleMini(BaseModel):
    """Game title and status for a timeline entry's cycle."""

    id: str
    game_title: str = "Jogo"
    status_name: str = "Status"
    status_slug: str | None = None


class HomeDashboard(CamelModel):
    kpis: HomeKpis = Field(default_factory=HomeKpis)
    continue_cards: list[ContinueCard] = Field(default_factory=list, alias="continue")
    timeline: list[TimelineItem] = Field(default_factory=list)
