from __future__ import annotations

import math

import numpy as np
import pandas as pd

from whatif_simulator.types import RetentionAnchors


def _log_rate(rate: float) -> float:
    # ln(0) is -inf; exp() of anything built from it collapses to 0 below
    return math.log(rate) if rate > 0.0 else -math.inf


def _bracket(points: list[tuple[int, float]], day: int) -> tuple[tuple[int, float], tuple[int, float]]:
    for (lo_day, lo_rate), (hi_day, hi_rate) in zip(points, points[1:]):
        if lo_day <= day <= hi_day:
            return (lo_day, lo_rate), (hi_day, hi_rate)
    # Outside all anchors: first anchor as the lower bound, last as the upper
    return points[0], points[-1]


def retention_at(anchors: RetentionAnchors, day: int) -> float:
    """Share of a cohort still active ``day`` days after acquisition.

    - day 0 is 1.0
    - up to the first anchor: linear from 1.0 down to the day-1 rate
    - strictly between anchors: log-linear interpolation
    - at or past the bracket's upper anchor: exponential decay implied by it

    Non-positive anchors feeding a logarithm give 0.0 rather than NaN.
    """
    if day <= 0:
        return 1.0

    (prev_day, prev_rate), (next_day, next_rate) = _bracket(anchors.points(), day)

    if day <= prev_day:
        rate = 1.0 - (1.0 - prev_rate) * (day / prev_day)
    elif day >= next_day:
        log_next = _log_rate(next_rate)
        rate = 0.0 if math.isinf(log_next) else math.exp(log_next / next_day * day)
    else:
        log_prev, log_next = _log_rate(prev_rate), _log_rate(next_rate)
        if math.isinf(log_prev) or math.isinf(log_next):
            rate = 0.0
        else:
            t = (day - prev_day) / (next_day - prev_day)
            rate = math.exp(log_prev + t * (log_next - log_prev))

    return min(max(rate, 0.0), 1.0)


def build_retention_curve(anchors: RetentionAnchors, horizon: int) -> np.ndarray:
    """Per-day retention multipliers for days ``0..horizon-1`` (``curve[0] == 1.0``)."""
    days = max(int(horizon), 1)
    curve = [1.0]
    for day in range(1, days):
        curve.append(retention_at(anchors, day))
    return np.asarray(curve, dtype=float)


def retention_frame(anchors: RetentionAnchors, horizon: int) -> pd.DataFrame:
    curve = build_retention_curve(anchors, horizon)
    anchor_days = {day for day, _ in anchors.points()}
    return pd.DataFrame(
        {
            "day": np.arange(curve.size),
            "retention": curve,
            "is_anchor": [d in anchor_days for d in range(curve.size)],
        }
    )
