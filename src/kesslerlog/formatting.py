"""Presentation helpers, registered as Jinja filters by the web app.

Everything here is display-only. Dates are shown in UTC, like the dashboard
buckets.
"""

import math
import unicodedata
from collections.abc import Iterable
from datetime import datetime, timezone
from typing import Any

from kesslerlog.stats.periods import MONTHS_PT, utc_now
from kesslerlog.stats.scores import round1, round_int, to_float

PLACEHOLDER = "—"


def _aware(dt: datetime) -> datetime:
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def format_hhmmss(total_seconds: float) -> str:
    """``3725`` -> ``"01:02:05"``. Negative input shows as zero."""
    s = max(0, int(math.floor(total_seconds)))
    return f"{s // 3600:02d}:{(s % 3600) // 60:02d}:{s % 60:02d}"


def elapsed_seconds(started_at: datetime | None, now: datetime | None = None) -> int:
    """Whole seconds since ``started_at``.

    Only feeds the on-screen timer; the stored start/end timestamps are what
    count.
    """
    if started_at is None:
        return 0
    now = now or utc_now()
    return max(0, int((_aware(now) - _aware(started_at)).total_seconds()))


def hours_to_human(hours: Any) -> str:
    """``1.5`` -> ``"1h 30m"``, ``0.25`` -> ``"15m"``, ``2`` -> ``"2h"``."""
    total = round_int((to_float(hours) or 0.0) * 60)
    h, m = divmod(total, 60)
    if h <= 0:
        return f"{m}m"
    if m == 0:
        return f"{h}h"
    return f"{h}h {m}m"


def minutes_to_human(minutes: Any) -> str:
    return hours_to_human((to_float(minutes) or 0.0) / 60)


def fmt1(value: Any) -> str:
    """One decimal, or a dash for missing values."""
    n = to_float(value)
    if n is None:
        return PLACEHOLDER
    return f"{round1(n):.1f}"


def time_ago_short(dt: datetime | None, now: datetime | None = None) -> str:
    if dt is None:
        return PLACEHOLDER
    sec = elapsed_seconds(dt, now)
    minutes = sec // 60
    hours = minutes // 60
    days = hours // 24

    if days > 0:
        return "Há 1 dia" if days == 1 else f"Há {days} dias"
    if hours > 0:
        return f"Há {hours}h"
    if minutes > 0:
        return f"Há {minutes} min"
    return "Agora"


def format_date_short(dt: datetime | None) -> str:
    """``DD/MM/YY``."""
    if dt is None:
        return PLACEHOLDER
    return f"{_aware(dt):%d/%m/%y}"


def format_datetime(dt: datetime | None) -> str:
    """``DD/MM/YY HH:MM``."""
    if dt is None:
        return PLACEHOLDER
    return f"{_aware(dt):%d/%m/%y %H:%M}"


def format_time(dt: datetime | None) -> str:
    if dt is None:
        return PLACEHOLDER
    return f"{_aware(dt):%H:%M}"


def minutes_between(started_at: datetime | None, ended_at: datetime | None) -> int | None:
    """Whole minutes between two timestamps; None if open or inverted."""
    if started_at is None or ended_at is None:
        return None
    a, b = _aware(started_at), _aware(ended_at)
    if b < a:
        return None
    return round_int((b - a).total_seconds() / 60)


def cycle_month_key(dt: datetime | None) -> str:
    """``YYYY-MM`` grouping key for a cycle start."""
    if dt is None:
        return "unknown"
    dt = _aware(dt)
    return f"{dt.year}-{dt.month:02d}"


def cycle_month_label(dt: datetime | None) -> str:
    """``Dez/2025``."""
    if dt is None:
        return PLACEHOLDER
    dt = _aware(dt)
    return f"{MONTHS_PT[dt.month - 1]}/{dt.year}"


def cycle_labels(cycles: Iterable[Any]) -> dict[str, str]:
    """Display label per cycle id.

    Cycles started in the same month get a ``• n/total`` suffix, ended ones
    a ``• encerrado`` suffix. ``cycles`` needs ``id``, ``started_at`` and
    ``ended_at`` attributes.
    """
    cycles = list(cycles)
    counts: dict[str, int] = {}
    for c in cycles:
        key = cycle_month_key(c.started_at)
        counts[key] = counts.get(key, 0) + 1

    seen: dict[str, int] = {}
    labels = {}
    for c in cycles:
        key = cycle_month_key(c.started_at)
        seen[key] = seen.get(key, 0) + 1
        label = cycle_month_label(c.started_at)
        if counts[key] > 1:
            label += f" • {seen[key]}/{counts[key]}"
        if c.ended_at is not None:
            label += " • encerrado"
        labels[c.id] = label
    return labels


def day_label(dt: datetime, now: datetime | None = None) -> str:
    """``Hoje``, ``Ontem`` or ``DD/MM``."""
    day = _aware(dt).date()
    today = _aware(now or utc_now()).date()
    diff = (today - day).days
    if diff == 0:
        return "Hoje"
    if diff == 1:
        return "Ontem"
    return f"{day:%d/%m}"


def normalize_text(text: str | None) -> str:
    """Lower-case, trimmed, accents stripped: ``" Concluído "`` -> ``"concluido"``."""
    decomposed = unicodedata.normalize("NFD", text or "")
    return "".join(ch for ch in decomposed if not unicodedata.combining(ch)).lower().strip()


def is_error_message(message: str | None) -> bool:
    """Whether a page message reports a failure (drives the banner style)."""
    if not message:
        return False
    lowered = message.lower()
    return "erro" in lowered or "falh" in lowered or "fail" in lowered
