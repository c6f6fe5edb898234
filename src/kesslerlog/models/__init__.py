"""Data models for Kesslerlog."""

from kesslerlog.models.home import (
    RANGE_DAYS,
    ContinueCard,
    CycleMini,
    HomeDashboard,
    HomeKpis,
    RangeMode,
    TimelineItem,
)
from kesslerlog.models.records import (
    Cycle,
    CycleRow,
    CycleStats,
    ExternalRating,
    FeedRow,
    Game,
    GameOption,
    GameOverview,
    NormalizedExternalRating,
    RecentSession,
    Session,
    SessionCycleRef,
    Status,
)
from kesslerlog.models.stats import (
    PERIOD_PRESETS,
    YEAR_MAX,
    YEAR_MIN,
    DashboardData,
    DashboardKpis,
    DonutGamePoint,
    DonutMonthData,
    ExternalRatingItem,
    HistogramBucket,
    HoursByMonthGame,
    HoursByMonthPoint,
    PeriodPreset,
    RatingTimelinePoint,
    RecentRatingPoint,
    StatsFilters,
    StatusCount,
    TopTimePoint,
    TrendPoint,
)

__all__ = [
    # Store records
    "Cycle",
    "CycleRow",
    "CycleStats",
    "ExternalRating",
    "FeedRow",
    "Game",
    "GameOption",
    "GameOverview",
    "NormalizedExternalRating",
    "RecentSession",
    "Session",
    "SessionCycleRef",
    "Status",
    # Home RPC
    "RANGE_DAYS",
    "ContinueCard",
    "CycleMini",
    "HomeDashboard",
    "HomeKpis",
    "RangeMode",
    "TimelineItem",
    # Statistics
    "PERIOD_PRESETS",
    "YEAR_MAX",
    "YEAR_MIN",
    "DashboardData",
    "DashboardKpis",
    "DonutGamePoint",
    "DonutMonthData",
    "ExternalRatingItem",
    "HistogramBucket",
    "HoursByMonthGame",
    "HoursByMonthPoint",
    "PeriodPreset",
    "RatingTimelinePoint",
    "RecentRatingPoint",
    "StatsFilters",
    "StatusCount",
    "TopTimePoint",
    "TrendPoint",
]
