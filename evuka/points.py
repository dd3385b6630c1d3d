"""Points awarded for a scanned receipt."""

from __future__ import annotations

import math
from decimal import Decimal

# (max hours since purchase, share of points kept)
TIMING_TIERS: list[tuple[float, float]] = [
    (24, 1.0),
    (48, 0.5),
    (72, 0.1),
]


def calculate_points(
    total: Decimal | float,
    timing_delta: float = 0,
    brand_multiplier: float = 1,
) -> int:
    """Compute the points for a receipt.

    One point per whole currency unit, +25 for totals of 100 or more,
    else +10 for totals of 50 or more. The brand multiplier is applied
    next, then the share kept for late scans.

    Args:
        total: Receipt total.
        timing_delta: Hours between purchase and scan.
        brand_multiplier: Partner brand bonus factor.

    Raises:
        ValueError: If total or timing_delta is negative.
    """
    total = Decimal(str(total))
    if total < 0:
        raise ValueError(f"total must be non-negative, got {total}")
    if timing_delta < 0:
        raise ValueError(f"timing_delta must be non-negative, got {timing_delta}")

    points = math.floor(total)
    if total >= 100:
        points += 25
    elif total >= 50:
        points += 10

    points = math.floor(points * brand_multiplier)

    for max_hours, share in TIMING_TIERS:
        if timing_delta <= max_hours:
            return math.floor(points * share)
    return 0
