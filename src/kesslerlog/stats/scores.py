"""Numeric helpers shared by the dashboards and the forms.

All one-decimal values in the app go through :func:`round1`. Rounding is
half-up on the scaled float: ``n * 10`` is computed in binary floating point
and a fraction of at least one half rounds up, so ``8.95`` gives ``9.0`` and
the mean of ``0.2`` and ``0.7`` (``0.44999999999999996``) gives ``0.5``.
"""

import math
from typing import Any

RATING_MIN = 0.0
RATING_MAX = 10.0


def clamp(n: float, low: float, high: float) -> float:
    """Clamp ``n`` into ``[low, high]``."""
    return max(low, min(high, n))


def to_float(value: Any) -> float | None:
    """Coerce a store value to a finite float, or None."""
    if value is None or isinstance(value, bool):
        return None
    try:
        n = float(value)
    except (TypeError, ValueError):
        return None
    return n if math.isfinite(n) else None


def safe_num(value: Any) -> float:
    """Like :func:`to_float` but missing values count as zero."""
    n = to_float(value)
    return 0.0 if n is None else n


def _round_half_up(n: float, factor: int) -> float:
    if not math.isfinite(n):
        return n
    scaled = n * factor
    whole = math.floor(scaled)
    if scaled - whole >= 0.5:
        whole += 1
    return whole / factor


def round1(n: float) -> float:
    """Round half-up to one decimal."""
    return _round_half_up(n, 10)


def round2(n: float) -> float:
    """Round half-up to two decimals."""
    return _round_half_up(n, 100)


def mean1(values: list[float]) -> float | None:
    """Mean rounded to one decimal, or None for an empty list."""
    if not values:
        return None
    return round1(sum(values) / len(values))


def parse_decimal_input(value: Any) -> float | None:
    """Parse free text that may use a comma as decimal separator."""
    if value is None:
        return None
    raw = str(value).strip()
    if not raw:
        return None
    return to_float(raw.replace(",", "."))


def parse_score_input(value: Any) -> float | None:
    """Parse a 0-10 score typed by the user.

    Accepts ``"8,5"`` as well as ``"8.5"``. Values outside the scale are
    clamped, the result is rounded to one decimal. Empty or non-numeric input
    gives None.
    """
    n = parse_decimal_input(value)
    if n is None:
        return None
    return round1(clamp(n, RATING_MIN, RATING_MAX))


def normalize_external_rating(score: Any, scale_max: Any) -> float | None:
    """Bring a third-party score onto the 0-10 scale.

    Some sources rate out of 5, some out of 10, some out of 100.
    """
    s = to_float(score)
    top = to_float(scale_max)
    if s is None or top is None or top <= 0:
        return None
    n = s / top * 10
    if not math.isfinite(n):
        return None
    return round1(clamp(n, RATING_MIN, RATING_MAX))


def round_int(n: float) -> int:
    """Round half-up to a whole number."""
    return int(_round_half_up(n, 1))
