"""Decimal rounding that breaks ties away from zero."""
from __future__ import annotations

import math


def round_half_away(value: float, decimal_places: int = 0) -> float:
    """Round ``value`` to ``decimal_places``, sending .5 ties away from zero.

    Python's builtin ``round`` uses banker's rounding, which would report a
    0.25 confidence as 0.2 instead of 0.3.
    """

    multiplier = 10.0 ** decimal_places
    scaled = abs(value) * multiplier
    rounded = math.floor(scaled + 0.5) / multiplier
    return math.copysign(rounded, value) if rounded else 0.0
