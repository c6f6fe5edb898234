"""Pure derivations behind the dashboards.

``kesslerlog.stats.scores`` holds the numeric helpers (it is imported by the
models, so this package must not import the models at import time).
``kesslerlog.stats.dashboard`` and ``kesslerlog.stats.periods`` hold the
derivations and are imported directly by their users.
"""

from kesslerlog.stats.scores import (
    clamp,
    normalize_external_rating,
    parse_decimal_input,
    parse_score_input,
    round1,
    round2,
    safe_num,
    to_float,
)

__all__ = [
    "clamp",
    "normalize_external_rating",
    "parse_decimal_input",
    "parse_score_input",
    "round1",
    "round2",
    "safe_num",
    "to_float",
]
