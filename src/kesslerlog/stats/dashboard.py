"""Dashboard derivations.

The database already aggregates sessions per cycle; what is left here is
reshaping a flat list of cycle rows into KPIs and chart series. Every function
is pure: same rows in, same result out, and the input list is never touched.
"""

import math
from collections.abc import Iterable, Mapping
from datetime import datetime
from typing import Any

from kesslerlog.models.records import CycleRow, NormalizedExternalRating
from kesslerlog.models.stats import (
    DashboardData,
    DashboardKpis,
    DonutGamePoint,
    DonutMonthData,
    ExternalRatingItem,
    HistogramBucket,
    HoursByMonthGame,
    HoursByMonthPoint,
    RatingTimelinePoint,
    RecentRatingPoint,
    StatsFilters,
    StatusCount,
    TopTimePoint,
    TrendPoint,
)
from kesslerlog.stats.periods import MONTHS_PT
from kesslerlog.stats.scores import clamp, mean1, round1, round2, round_int, safe_num

NO_STATUS_LABEL = "Sem status"
OTHERS_LABEL = "Outros"
OTHERS_ID = "__others__"
UNKNOWN_GAME = "Jogo"
UNKNOWN_SOURCE = "externa"

HISTOGRAM_BUCKETS = 11  # ratings 0..10
RECENT_RATINGS = 12
TOP_TIME_GAMES = 10
MONTH_TOOLTIP_GAMES = 10
DONUT_TOP = 8


def _as_cycle_rows(rows: Iterable[CycleRow | Mapping[str, Any]]) -> list[CycleRow]:
    return [r if isinstance(r, CycleRow) else CycleRow.model_validate(r) for r in rows]


def _as_externals(
    externals: Iterable[NormalizedExternalRating | Mapping[str, Any]],
) -> list[NormalizedExternalRating]:
    return [
        e if isinstance(e, NormalizedExternalRating) else NormalizedExternalRating.model_validate(e)
        for e in externals
    ]


# =============================================================================
# Rating trend buckets
# =============================================================================


def trend_label(started_at: datetime, by_day: bool) -> str:
    """``DD/MM`` in day mode, ``Mon/YY`` otherwise."""
    if by_day:
        return f"{started_at.day:02d}/{started_at.month:02d}"
    return f"{MONTHS_PT[started_at.month - 1]}/{started_at.year % 100:02d}"


def trend_sort_key(started_at: datetime, by_day: bool) -> tuple[int, int]:
    """Chronological key of the bucket ``started_at`` falls into.

    Taken from the date itself, since ``Mon/YY`` labels lose the century.
    """
    if by_day:
        return started_at.month, started_at.day
    return started_at.year, started_at.month


def derive_rating_trend(rows: list[CycleRow], by_day: bool) -> list[TrendPoint]:
    buckets: dict[str, list[float]] = {}
    keys: dict[str, tuple[int, int]] = {}
    for r in rows:
        if r.rating_final is None:
            continue
        label = trend_label(r.started_at, by_day)
        buckets.setdefault(label, []).append(r.rating_final)
        keys.setdefault(label, trend_sort_key(r.started_at, by_day))

    labels = sorted(buckets, key=keys.__getitem__)
    return [
        TrendPoint(label=label, value=mean1(buckets[label]), count=len(buckets[label]))
        for label in labels
    ]


# =============================================================================
# Breakdowns
# =============================================================================


def derive_status_breakdown(rows: list[CycleRow], no_status_label: str = NO_STATUS_LABEL) -> list[StatusCount]:
    counts: dict[str, int] = {}
    for r in rows:
        label = (r.status_name or "").strip() or no_status_label
        counts[label] = counts.get(label, 0) + 1
    # sorted() is stable, so ties keep first-seen order
    ordered = sorted(counts.items(), key=lambda kv: kv[1], reverse=True)
    return [StatusCount(status=status, total=total) for status, total in ordered]


def rating_bucket(rating: float) -> int:
    """Integer band of a 0-10 rating: floored, clamped into [0, 10]."""
    return int(clamp(math.floor(rating), 0, HISTOGRAM_BUCKETS - 1))


def derive_rating_histogram(rows: list[CycleRow]) -> list[HistogramBucket]:
    totals = [0] * HISTOGRAM_BUCKETS
    for r in rows:
        if r.rating_final is not None:
            totals[rating_bucket(r.rating_final)] += 1
    return [HistogramBucket(bucket=i, total=total) for i, total in enumerate(totals)]


# =============================================================================
# External ratings
# =============================================================================


def pick_latest_external_by_game(
    externals: Iterable[NormalizedExternalRating | Mapping[str, Any]],
) -> dict[str, NormalizedExternalRating]:
    """Latest scored external rating per game, by ``retrieved_at``.

    Undated rows only win when nothing dated has been seen for that game.
    """
    latest: dict[str, NormalizedExternalRating] = {}
    for e in _as_externals(externals):
        if e.score_0_10 is None:
            continue
        cur = latest.get(e.game_id)
        if cur is None:
            latest[e.game_id] = e
        elif e.retrieved_at is not None and (cur.retrieved_at is None or e.retrieved_at > cur.retrieved_at):
            latest[e.game_id] = e
    return latest


def _latest_score(latest: dict[str, NormalizedExternalRating], game_id: str | None) -> float | None:
    e = latest.get(game_id) if game_id else None
    return round1(e.score_0_10) if e is not None and e.score_0_10 is not None else None


# =============================================================================
# Dashboard
# =============================================================================


def _weighted_mean(pairs: list[tuple[float, float]]) -> float | None:
    weight = sum(w for _, w in pairs)
    if not weight:
        return None
    return round1(sum(v * w for v, w in pairs) / weight)


def derive_kpis(rows: list[CycleRow], externals: list[NormalizedExternalRating]) -> DashboardKpis:
    rated = [r for r in rows if r.rating_final is not None]
    newest_rated = max(rated, key=lambda r: r.started_at) if rated else None

    score_pairs: list[tuple[float, float]] = []
    minutes_pairs: list[tuple[float, float]] = []
    for r in rows:
        sessions = safe_num(r.sessions_count_finished)
        if sessions > 0 and r.avg_score_finished is not None:
            score_pairs.append((r.avg_score_finished, sessions))
        if sessions > 0 and r.avg_session_minutes_finished is not None:
            minutes_pairs.append((r.avg_session_minutes_finished, sessions))

    reviewed = [r for r in rows if r.has_review]

    return DashboardKpis(
        cycles=len(rows),
        open_cycles=sum(1 for r in rows if r.ended_at is None),
        rated_cycles=len(rated),
        avg_cycle_rating=mean1([r.rating_final for r in rated]),
        last_final_rating=round1(newest_rated.rating_final) if newest_rated else None,
        finished_sessions=int(sum(safe_num(r.sessions_count_finished) for r in rows)),
        avg_session_score=_weighted_mean(score_pairs),
        avg_session_minutes=_weighted_mean(minutes_pairs),
        reviews_written=len(reviewed),
        avg_reviewed_final_rating=mean1([r.rating_final for r in reviewed if r.rating_final is not None]),
        external_ratings_count=sum(1 for e in externals if e.score_0_10 is not None),
        total_minutes=sum(safe_num(r.total_minutes_finished) for r in rows),
    )


def derive_recent_ratings(
    rows: list[CycleRow], latest: dict[str, NormalizedExternalRating]
) -> list[RecentRatingPoint]:
    rated = sorted((r for r in rows if r.rating_final is not None), key=lambda r: r.started_at, reverse=True)
    return [
        RecentRatingPoint(
            label=f"{r.game_title} • {r.started_at:%d/%m}",
            rating_final=round1(r.rating_final),
            avg_score_finished=round1(r.avg_score_finished) if r.avg_score_finished is not None else None,
            external_rating=_latest_score(latest, r.game_id),
        )
        for r in rated[:RECENT_RATINGS]
    ]


def derive_rating_timeline(
    rows: list[CycleRow], latest: dict[str, NormalizedExternalRating]
) -> list[RatingTimelinePoint]:
    rated = sorted((r for r in rows if r.rating_final is not None), key=lambda r: r.started_at)
    return [
        RatingTimelinePoint(
            started_at=r.started_at,
            rating_final=round1(r.rating_final),
            avg_score_finished=round1(r.avg_score_finished) if r.avg_score_finished is not None else None,
            external_rating=_latest_score(latest, r.game_id),
        )
        for r in rated
    ]


def derive_external_ratings(
    rows: list[CycleRow], externals: list[NormalizedExternalRating]
) -> list[ExternalRatingItem]:
    """Scored external ratings as ``title • source``, best first."""
    titles = {r.game_id: r.game_title for r in rows if r.game_id}
    items = [
        ExternalRatingItem(
            label=f"{titles.get(e.game_id) or UNKNOWN_GAME} • {(e.source or '').strip() or UNKNOWN_SOURCE}",
            score=round2(e.score_0_10),
            url=e.url,
        )
        for e in externals
        if e.score_0_10 is not None
    ]
    items.sort(key=lambda i: i.score, reverse=True)
    return items


def derive_top_time_by_game(rows: list[CycleRow]) -> list[TopTimePoint]:
    by_game: dict[str, list] = {}
    for r in rows:
        key = r.game_id or r.game_title
        slot = by_game.setdefault(key, [r.game_title, 0.0])
        slot[1] += safe_num(r.total_minutes_finished)
    points = [TopTimePoint(game_title=title, minutes=round_int(minutes)) for title, minutes in by_game.values()]
    points.sort(key=lambda p: p.minutes, reverse=True)
    return points[:TOP_TIME_GAMES]


def derive_dashboard(
    rows: Iterable[CycleRow | Mapping[str, Any]],
    filters: StatsFilters | None = None,
    externals: Iterable[NormalizedExternalRating | Mapping[str, Any]] = (),
    no_status_label: str = NO_STATUS_LABEL,
) -> DashboardData:
    """Derive KPIs and chart series from cycle rows.

    Args:
        rows: Cycle rows (``vw_cycles_enriched`` shape), models or dicts.
        filters: Active filters. When they pin one year and month the rating
            trend is bucketed by day, otherwise by month.
        externals: Normalized external ratings for the games in ``rows``.
        no_status_label: Label for rows without a status.

    Returns:
        DashboardData without the year datasets (see
        :func:`derive_hours_by_month` and :func:`derive_donut_month`).
    """
    cycle_rows = _as_cycle_rows(rows)
    external_rows = _as_externals(externals)
    by_day = filters is not None and filters.pins_single_month
    latest = pick_latest_external_by_game(external_rows)

    return DashboardData(
        kpis=derive_kpis(cycle_rows, external_rows),
        rating_trend=derive_rating_trend(cycle_rows, by_day),
        status_breakdown=derive_status_breakdown(cycle_rows, no_status_label),
        rating_histogram=derive_rating_histogram(cycle_rows),
        recent_ratings=derive_recent_ratings(cycle_rows, latest),
        rating_timeline=derive_rating_timeline(cycle_rows, latest),
        external_ratings=derive_external_ratings(cycle_rows, external_rows),
        top_time_by_game=derive_top_time_by_game(cycle_rows),
    )


# =============================================================================
# Year datasets
# =============================================================================


def derive_hours_by_month(rows: Iterable[CycleRow | Mapping[str, Any]], year: int) -> list[HoursByMonthPoint]:
    """Minutes played per month of ``year``, with a per-game breakdown."""
    months: list[dict[str, list]] = [{} for _ in range(12)]
    for r in _as_cycle_rows(rows):
        if r.started_at.year != year:
            continue
        minutes = safe_num(r.total_minutes_finished)
        if minutes <= 0:
            continue
        slot = months[r.started_at.month - 1].setdefault(r.game_id or r.game_title, [r.game_title, 0.0])
        slot[1] += minutes

    points = []
    for idx, by_game in enumerate(months):
        total = sum(minutes for _, minutes in by_game.values())
        games = [
            HoursByMonthGame(
                game_id=game_id,
                title=title,
                minutes=round_int(minutes),
                hours=round1(minutes / 60),
                percent=round1(minutes / total * 100) if total > 0 else 0.0,
            )
            for game_id, (title, minutes) in by_game.items()
        ]
        games.sort(key=lambda g: g.minutes, reverse=True)
        points.append(
            HoursByMonthPoint(
                month=idx + 1,
                label=MONTHS_PT[idx],
                minutes=round_int(total),
                hours=round1(total / 60),
                games=games[:MONTH_TOOLTIP_GAMES],
            )
        )
    return points


def derive_donut_month(
    rows: Iterable[CycleRow | Mapping[str, Any]],
    externals: Iterable[NormalizedExternalRating | Mapping[str, Any]],
    year: int,
    month: int,
) -> DonutMonthData:
    """Share of playtime per game for one month.

    Beyond the top eight games the rest is folded into a single "Outros"
    slice without ratings.
    """
    month = int(clamp(month, 1, 12))
    label = f"{MONTHS_PT[month - 1]}/{year}"
    latest = pick_latest_external_by_game(externals)

    aggs: dict[str, dict[str, Any]] = {}
    for r in _as_cycle_rows(rows):
        if r.started_at.year != year or r.started_at.month != month:
            continue
        agg = aggs.setdefault(
            r.game_id or r.game_title,
            {"title": r.game_title, "minutes": 0.0, "reviews": [], "scores": []},
        )
        agg["minutes"] += safe_num(r.total_minutes_finished)
        if r.rating_final is not None:
            agg["reviews"].append(r.rating_final)
        sessions = safe_num(r.sessions_count_finished)
        if sessions > 0 and r.avg_score_finished is not None:
            agg["scores"].append((r.avg_score_finished, sessions))

    total = sum(a["minutes"] for a in aggs.values())
    games = [
        DonutGamePoint(
            game_id=game_id,
            title=a["title"],
            minutes=round_int(a["minutes"]),
            hours=round1(a["minutes"] / 60),
            percent=round1(a["minutes"] / total * 100) if total > 0 else 0.0,
            avg_review=mean1(a["reviews"]),
            avg_session_score=_weighted_mean(a["scores"]),
            external_rating=_latest_score(latest, game_id),
        )
        for game_id, a in aggs.items()
    ]
    games.sort(key=lambda g: g.minutes, reverse=True)

    if len(games) > DONUT_TOP:
        rest = games[DONUT_TOP:]
        rest_minutes = sum(g.minutes for g in rest)
        games = games[:DONUT_TOP] + [
            DonutGamePoint(
                game_id=OTHERS_ID,
                title=OTHERS_LABEL,
                minutes=rest_minutes,
                hours=round1(rest_minutes / 60),
                percent=round1(sum(g.percent for g in rest)),
            )
        ]

    return DonutMonthData(year=year, month=month, label=label, total_minutes=round_int(total), games=games)
