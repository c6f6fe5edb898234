"""View models for the statistics dashboard."""

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field

PeriodPreset = Literal["last30", "last90", "month", "year", "all"]

PERIOD_PRESETS: tuple[str, ...] = ("last30", "last90", "month", "year", "all")

# datetime tops out at year 9999 and ranges end at the next January
YEAR_MIN = 1970
YEAR_MAX = 9998


class StatsFilters(BaseModel):
    """Filters applied to the statistics page."""

    period: PeriodPreset = "last30"
    q: str = ""  # title search, applied server-side
    game_id: str | None = None
    status_id: str | None = None
    month: int | None = Field(default=None, ge=1, le=12)  # only used when period="month"
    year: int | None = Field(default=None, ge=YEAR_MIN, le=YEAR_MAX)  # used when period is "month" or "year"

    @property
    def pins_single_month(self) -> bool:
        """True when one specific year and month are selected."""
        return self.period == "month" and self.year is not None and self.month is not None


class DashboardKpis(BaseModel):
    cycles: int = 0
    open_cycles: int = 0

    rated_cycles: int = 0
    avg_cycle_rating: float | None = None
    last_final_rating: float | None = None

    finished_sessions: int = 0
    avg_session_score: float | None = None  # weighted by finished sessions
    avg_session_minutes: float | None = None  # weighted by finished sessions

    reviews_written: int = 0
    avg_reviewed_final_rating: float | None = None

    external_ratings_count: int = 0

    total_minutes: float = 0.0


class TrendPoint(BaseModel):
    label: str
    value: float
    count: int


class StatusCount(BaseModel):
    status: str
    total: int


class HistogramBucket(BaseModel):
    bucket: int
    total: int = 0


class RecentRatingPoint(BaseModel):
    label: str
    rating_final: float
    avg_score_finished: float | None = None
    external_rating: float | None = None


class RatingTimelinePoint(BaseModel):
    """A rated cycle on the time axis, oldest first."""

    started_at: datetime
    rating_final: float
    avg_score_finished: float | None = None
    external_rating: float | None = None


class ExternalRatingItem(BaseModel):
    label: str  # "Zelda • igdb"
    score: float
    url: str | None = None


class TopTimePoint(BaseModel):
    game_title: str
    minutes: int


class HoursByMonthGame(BaseModel):
    game_id: str
    title: str
    minutes: int
    hours: float
    percent: float  # 0..100


class HoursByMonthPoint(BaseModel):
    month: int  # 1..12
    label: str  # "Jan"
    minutes: int
    hours: float
    games: list[HoursByMonthGame] = Field(default_factory=list)


class DonutGamePoint(BaseModel):
    game_id: str
    title: str
    minutes: int
    hours: float
    percent: float
    avg_review: float | None = None
    avg_session_score: float | None = None
    external_rating: float | None = None


class DonutMonthData(BaseModel):
    year: int
    month: int
    label: str  # "Jan/2026"
    total_minutes: int
    games: list[DonutGamePoint] = Field(default_factory=list)


class DashboardData(BaseModel):
    """Everything the statistics page draws."""

    kpis: DashboardKpis = Field(default_factory=DashboardKpis)
    rating_trend: list[TrendPoint] = Field(default_factory=list)
    status_breakdown: list[StatusCount] = Field(default_factory=list)
    rating_histogram: list[HistogramBucket] = Field(default_factory=list)

    recent_ratings: list[RecentRatingPoint] = Field(default_factory=list)
    rating_timeline: list[RatingTimelinePoint] = Field(default_factory=list)
    external_ratings: list[ExternalRatingItem] = Field(default_factory=list)
    top_time_by_game: list[TopTimePoint] = Field(default_factory=list)

    # Year datasets, filled by the stats service
    hours_by_month: list[HoursByMonthPoint] = Field(default_factory=list)
    donut_month: DonutMonthData | None = None
