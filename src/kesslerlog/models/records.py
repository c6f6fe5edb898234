"""Typed records for rows coming back from the remote store.

The store hands back loosely typed JSON: numbers may arrive as strings,
aggregated columns may be missing, and a few views name the same column in
different ways. Everything is validated here, once, so the rest of the code
only deals with these models.
"""

from datetime import datetime, timezone
from typing import Annotated, Any

from pydantic import (
    AfterValidator,
    AliasChoices,
    BaseModel,
    BeforeValidator,
    ConfigDict,
    Field,
    field_validator,
    model_validator,
)

from kesslerlog.stats.scores import normalize_external_rating, round_int, to_float


def _ensure_aware_datetime(dt: datetime) -> datetime:
    """Normalize to UTC; naive timestamps from the store are already UTC."""
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def _to_int(value: Any) -> int:
    n = to_float(value)
    return int(n) if n is not None else 0


def _to_zero_float(value: Any) -> float:
    n = to_float(value)
    return n if n is not None else 0.0


UtcDatetime = Annotated[datetime, AfterValidator(_ensure_aware_datetime)]

# Numeric columns: numbers or numeric strings, anything else becomes None.
LooseFloat = Annotated[float | None, BeforeValidator(to_float)]


class StoreRecord(BaseModel):
    """Base for store rows: unknown columns are ignored."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)


class Status(StoreRecord):
    """Lifecycle label for a cycle (playing, finished, dropped...)."""

    id: str
    name: str
    slug: str | None = None
    sort_order: int = 0
    is_active: bool = True


class Game(StoreRecord):
    """A game in the user's catalog."""

    id: str
    title: str
    platform: str | None = None
    cover_url: str | None = None

    # Optional linkage to an external catalog (igdb, rawg, steam...)
    external_source: str | None = None
    external_id: str | None = None
    external_url: str | None = None

    created_at: UtcDatetime | None = None


class GameOption(StoreRecord):
    """Slim game row used by search comboboxes."""

    id: str
    title: str
    platform: str | None = None
    cover_url: str | None = None


class ExternalRating(StoreRecord):
    """A third-party score for a game, in its source's own scale."""

    id: str | None = None
    game_id: str
    source: str
    score: float
    scale_max: float
    url: str | None = None
    retrieved_at: UtcDatetime | None = None

    @property
    def score_0_10(self) -> float | None:
        """Score on the common 0-10 scale."""
        return normalize_external_rating(self.score, self.scale_max)


class NormalizedExternalRating(StoreRecord):
    """Row of ``vw_external_ratings_norm``: already on the 0-10 scale."""

    game_id: str
    source: str | None = None
    score_0_10: LooseFloat = None
    url: str | None = None
    retrieved_at: UtcDatetime | None = None


def _check_cycle_bounds(started_at: datetime | None, ended_at: datetime | None) -> None:
    if started_at is not None and ended_at is not None and ended_at < started_at:
        raise ValueError("ended_at must not be before started_at")


class Cycle(StoreRecord):
    """One playthrough attempt, as stored in ``game_cycles``."""

    id: str
    game_id: str
    status_id: str | None = None
    started_at: UtcDatetime
    ended_at: UtcDatetime | None = None
    review_text: str | None = None
    rating_final: LooseFloat = None
    status: Status | None = None

    @model_validator(mode="after")
    def _bounds(self) -> "Cycle":
        _check_cycle_bounds(self.started_at, self.ended_at)
        return self

    @property
    def is_open(self) -> bool:
        return self.ended_at is None


class CycleStats(StoreRecord):
    """Row of ``vw_cycle_stats``: finished-session aggregates per cycle."""

    cycle_id: str
    game_id: str | None = None
    sessions_count_finished: Annotated[int, BeforeValidator(_to_int)] = 0
    total_minutes_finished: Annotated[float, BeforeValidator(_to_zero_float)] = 0.0
    avg_session_minutes_finished: LooseFloat = None
    avg_score_finished: LooseFloat = Field(
        default=None,
        validation_alias=AliasChoices(
            "avg_score_finished", "avg_score", "avg_session_score", "avg_score_sessions", "avg_score_value"
        ),
    )
    last_session_started_at: UtcDatetime | None = Field(
        default=None,
        validation_alias=AliasChoices("last_session_started_at", "last_session_at", "last_session_started"),
    )


class CycleRow(StoreRecord):
    """Row of ``vw_cycles_enriched``: a cycle joined with game, status and
    session aggregates. This is what the statistics are derived from."""

    cycle_id: str | None = Field(default=None, validation_alias=AliasChoices("cycle_id", "id"))
    game_id: str | None = None
    game_title: str = ""

    status_id: str | None = None
    status_name: str | None = None

    started_at: UtcDatetime
    ended_at: UtcDatetime | None = None

    rating_final: LooseFloat = None
    review_text: str | None = None

    # Missing aggregates stay None here; the derivations count them as zero.
    sessions_count_finished: LooseFloat = None
    total_minutes_finished: LooseFloat = None
    avg_session_minutes_finished: LooseFloat = None
    avg_score_finished: LooseFloat = Field(
        default=None,
        validation_alias=AliasChoices("avg_score_finished", "avg_score", "avg_session_score", "avg_score_sessions"),
    )
    last_session_started_at: UtcDatetime | None = None

    @field_validator("game_title", mode="before")
    @classmethod
    def _title(cls, v: Any) -> str:
        return "" if v is None else str(v)

    @model_validator(mode="after")
    def _bounds(self) -> "CycleRow":
        _check_cycle_bounds(self.started_at, self.ended_at)
        return self

    @property
    def is_rated(self) -> bool:
        return self.rating_final is not None

    @property
    def has_review(self) -> bool:
        return bool((self.review_text or "").strip())


class FeedRow(CycleRow):
    """Feed card: an enriched cycle plus the game's platform and cover."""

    platform: str | None = None
    cover_url: str | None = None


class Session(StoreRecord):
    """One timed play interval inside a cycle (``play_sessions``)."""

    id: str = Field(validation_alias=AliasChoices("id", "session_id"))
    cycle_id: str
    started_at: UtcDatetime
    ended_at: UtcDatetime | None = None
    note_text: str | None = None
    score: LooseFloat = None
    duration_minutes: LooseFloat = None  # only on vw_sessions_enriched

    @property
    def is_open(self) -> bool:
        return self.ended_at is None

    @property
    def minutes(self) -> int | None:
        """Length in whole minutes, None while open."""
        if self.ended_at is None or self.ended_at < self.started_at:
            return None
        return round_int((self.ended_at - self.started_at).total_seconds() / 60)


class SessionCycleRef(StoreRecord):
    """Embedded ``cycle:game_cycles(id, game:games(...))`` relation."""

    id: str
    game: Game | None = None


class RecentSession(Session):
    """Finished session with its cycle and game embedded."""

    cycle_id: str | None = None
    cycle: SessionCycleRef | None = None

    @property
    def game_title(self) -> str | None:
        if self.cycle and self.cycle.game:
            return self.cycle.game.title
        return None


class GameOverview(StoreRecord):
    """Row of ``vw_game_overview``. The view is free to add columns."""

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    game_id: str
    title: str | None = None
    platform: str | None = None
    cover_url: str | None = None
    latest_cycle_id: str | None = None
    cycles_count: Annotated[int, BeforeValidator(_to_int)] = 0
    total_minutes: LooseFloat = None
    avg_rating_final: LooseFloat = None
