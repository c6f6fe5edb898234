"""Date ranges for the statistics filters. All buckets are in UTC."""

from datetime import datetime, timedelta, timezone

from kesslerlog.models.stats import StatsFilters

MONTHS_PT = ["Jan", "Fev", "Mar", "Abr", "Mai", "Jun", "Jul", "Ago", "Set", "Out", "Nov", "Dez"]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def month_start(year: int, month: int) -> datetime:
    return datetime(year, month, 1, tzinfo=timezone.utc)


def next_month_start(year: int, month: int) -> datetime:
    if month == 12:
        return month_start(year + 1, 1)
    return month_start(year, month + 1)


def year_range(year: int) -> tuple[datetime, datetime]:
    """``[Jan 1, next Jan 1)`` of ``year``."""
    return month_start(year, 1), month_start(year + 1, 1)


def build_range(filters: StatsFilters, now: datetime | None = None) -> tuple[datetime | None, datetime | None]:
    """Turn a period preset into a half-open ``[start, end)`` range.

    ``all`` has no range. ``month``/``year`` fall back to the current
    month/year when the filter leaves them empty.
    """
    now = now or utc_now()

    if filters.period == "all":
        return None, None

    if filters.period in ("last30", "last90"):
        days = 30 if filters.period == "last30" else 90
        return now - timedelta(days=days), now

    year = filters.year or now.year
    if filters.period == "year":
        return year_range(year)

    month = min(12, max(1, filters.month or now.month))
    return month_start(year, month), next_month_start(year, month)


def year_options(now: datetime | None = None) -> list[int]:
    """Years offered in the filter: five back, one ahead."""
    y = (now or utc_now()).year
    return list(range(y - 5, y + 2))


def month_options() -> list[dict]:
    return [{"value": i + 1, "label": label} for i, label in enumerate(MONTHS_PT)]
