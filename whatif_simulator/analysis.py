from __future__ import annotations

from dataclasses import replace
from typing import Iterable, Optional, Union

import pandas as pd
from streamlit.logger import get_logger

from whatif_simulator.model import safe_percent_change, simulate
from whatif_simulator.types import (
    BreakevenSearch,
    InvalidInputError,
    MetricDelta,
    ModificationField,
    ScenarioComparison,
    ScenarioInput,
    SensitivityPoint,
    SweepRange,
)

logger = get_logger(__name__)

# (lower bound on revenue % change, recommendation), checked top to bottom
RECOMMENDATIONS = [
    (10.0, "Strong positive impact. Consider implementing this change."),
    (5.0, "Moderate positive impact. Worth testing with A/B experiment."),
    (0.0, "Slight positive impact. May not be worth the implementation effort."),
    (-5.0, "Neutral or slightly negative impact. Proceed with caution."),
]
NEGATIVE_RECOMMENDATION = "Significant negative impact. Not recommended."

IMPACT_BAND_PERCENT = 5.0


def recommendation_for(revenue_change_percent: float) -> str:
    for threshold, message in RECOMMENDATIONS:
        if revenue_change_percent > threshold:
            return message
    return NEGATIVE_RECOMMENDATION


def classify_impact(revenue_change_percent: float) -> str:
    """Bucket a revenue % change into positive / neutral / negative for display."""
    if revenue_change_percent > IMPACT_BAND_PERCENT:
        return "positive"
    if revenue_change_percent < -IMPACT_BAND_PERCENT:
        return "negative"
    return "neutral"


def compare_scenarios(baseline_input: ScenarioInput, modified_input: ScenarioInput) -> ScenarioComparison:
    """Simulate two scenarios independently and describe how the second differs from the first.

    Differences are taken from the rounded summaries of each run; each run
    still computes its own impact against its own unmodified baseline.
    """
    baseline = simulate(baseline_input)
    modified = simulate(modified_input)

    difference = MetricDelta(
        total_revenue=modified.summary.total_revenue - baseline.summary.total_revenue,
        avg_dau=float(modified.summary.avg_dau - baseline.summary.avg_dau),
        projected_ltv=modified.summary.projected_ltv - baseline.summary.projected_ltv,
    )
    percent_change = MetricDelta(
        total_revenue=safe_percent_change(modified.summary.total_revenue, baseline.summary.total_revenue),
        avg_dau=safe_percent_change(modified.summary.avg_dau, baseline.summary.avg_dau),
        projected_ltv=safe_percent_change(modified.summary.projected_ltv, baseline.summary.projected_ltv),
    )

    return ScenarioComparison(
        baseline=baseline,
        modified=modified,
        difference=difference,
        percent_change=percent_change,
        recommendation=recommendation_for(percent_change.total_revenue),
    )


def _with_variable(scenario: ScenarioInput, variable: ModificationField, value: float, name: Optional[str] = None):
    updated = replace(scenario, modifications=scenario.modifications.with_value(variable, value))
    return replace(updated, name=name) if name is not None else updated


def sweep_values(value_range: SweepRange) -> list[float]:
    try:
        steps = int(value_range.steps)
    except (TypeError, ValueError, OverflowError):
        raise InvalidInputError(f"steps must be a non-negative integer, got {value_range.steps!r}") from None
    if steps != value_range.steps or steps < 0:
        raise InvalidInputError(f"steps must be a non-negative integer, got {value_range.steps!r}")
    if steps == 0:
        return [float(value_range.min)]
    step_size = (value_range.max - value_range.min) / steps
    return [float(value_range.min + step_size * i) for i in range(steps + 1)]


def sensitivity_analysis(
    scenario: ScenarioInput,
    variable: Union[ModificationField, str],
    value_range: SweepRange,
) -> list[SensitivityPoint]:
    """Re-simulate ``scenario`` while sweeping one modification across ``value_range``.

    All other modifications stay as given. ``steps`` intervals produce
    ``steps + 1`` samples from ``min`` to ``max`` inclusive; zero steps produce
    a single sample at ``min``.
    """
    field = ModificationField.parse(variable)
    values = sweep_values(value_range)
    logger.debug(f"sensitivity sweep over {field}: {len(values)} samples")

    points: list[SensitivityPoint] = []
    for value in values:
        sample = _with_variable(scenario, field, value, name=f"{field} = {value * 100:.1f}%")
        points.append(SensitivityPoint(value=value, result=simulate(sample)))
    return points


def sensitivity_frame(points: Iterable[SensitivityPoint]) -> pd.DataFrame:
    """One row per sweep sample with the headline summary and impact figures."""
    columns = [
        "value",
        "total_revenue",
        "avg_dau",
        "projected_ltv",
        "revenue_change",
        "revenue_change_percent",
        "confidence_level",
    ]
    rows = [
        [
            p.value,
            p.result.summary.total_revenue,
            p.result.summary.avg_dau,
            p.result.summary.projected_ltv,
            p.result.impact.revenue_change,
            p.result.impact.revenue_change_percent,
            p.result.confidence.level,
        ]
        for p in points
    ]
    return pd.DataFrame(rows, columns=columns)


def find_breakeven(
    scenario: ScenarioInput,
    variable: Union[ModificationField, str],
    target_revenue_change: float = 0.0,
    search: BreakevenSearch = BreakevenSearch(),
) -> Optional[float]:
    """Bisect for the value of ``variable`` whose revenue impact hits the target.

    Assumes revenue impact increases with the variable. Returns ``None`` when
    the iteration budget runs out before the impact is within tolerance.
    """
    field = ModificationField.parse(variable)
    low, high = float(search.low), float(search.high)

    for _ in range(search.max_iterations):
        mid = (low + high) / 2.0
        revenue_change = simulate(_with_variable(scenario, field, mid)).impact.revenue_change

        if abs(revenue_change - target_revenue_change) < search.tolerance:
            return mid

        if revenue_change < target_revenue_change:
            low = mid
        else:
            high = mid

    logger.warning(
        f"No breakeven for {field} within [{search.low}, {search.high}] after "
        f"{search.max_iterations} iterations (target revenue change {target_revenue_change})"
    )
    return None
