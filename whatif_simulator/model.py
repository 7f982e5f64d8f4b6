from __future__ import annotations

import math
from dataclasses import dataclass, replace

import numpy as np
from streamlit.logger import get_logger

from whatif_simulator.retention import build_retention_curve
from whatif_simulator.types import (
    REVENUE_BREAKDOWN_SHARES,
    BaselineMetrics,
    ConfidenceInterval,
    InvalidInputError,
    ModificationField,
    ProjectedDay,
    RetentionAnchors,
    RevenueBreakdown,
    ScenarioImpact,
    ScenarioInput,
    ScenarioModification,
    ScenarioResult,
    ScenarioSummary,
)

logger = get_logger(__name__)

# Confidence drops 30 points per unit of average modification magnitude, floored at 50%
CONFIDENCE_SLOPE = 0.3
MIN_CONFIDENCE = 0.5
CONFIDENCE_SPREAD = 0.5


@dataclass(frozen=True)
class Projection:
    """Unrounded totals of one cohort run plus its rounded day records."""

    days: tuple[ProjectedDay, ...]
    horizon: int
    total_revenue: float
    total_dau: float
    peak_dau: float
    peak_revenue: float
    projected_ltv: float

    @property
    def avg_dau(self) -> float:
        return self.total_dau / self.horizon

    @property
    def avg_revenue(self) -> float:
        return self.total_revenue / self.horizon


def _clamp_unit(value: float) -> float:
    return min(max(value, 0.0), 1.0)


def _validate_horizon(time_horizon) -> int:
    try:
        horizon = int(time_horizon)
    except (TypeError, ValueError, OverflowError):
        raise InvalidInputError(f"time_horizon must be a positive integer, got {time_horizon!r}") from None
    if horizon != time_horizon or horizon < 1:
        raise InvalidInputError(f"time_horizon must be a positive integer, got {time_horizon!r}")
    return horizon


def safe_percent_change(value: float, reference: float) -> float:
    """Percent change of ``value`` against ``reference``; 0 when the reference is not positive."""
    if not math.isfinite(reference) or reference <= 0:
        return 0.0
    return (value - reference) / reference * 100.0


def apply_modifications(baseline: BaselineMetrics, modifications: ScenarioModification) -> BaselineMetrics:
    """Scale baseline fields by ``1 + delta``; probabilities are kept within [0, 1]."""

    def scaled(value: float, name: ModificationField) -> float:
        return float(value) * (1.0 + modifications.delta(name))

    retention_raw = [scaled(rate, ModificationField.RETENTION) for _, rate in baseline.retention.points()]
    retention = RetentionAnchors(*(_clamp_unit(r) for r in retention_raw))
    if retention_raw != [r for _, r in retention.points()]:
        logger.warning(f"retention anchors {retention_raw} clamped to [0, 1]")

    conversion_raw = scaled(baseline.conversion_rate, ModificationField.CONVERSION)
    conversion_rate = _clamp_unit(conversion_raw)
    if conversion_rate != conversion_raw:
        logger.warning(f"conversion rate {conversion_raw:.4f} clamped to {conversion_rate:.4f}")

    return replace(
        baseline,
        dau=scaled(baseline.dau, ModificationField.DAU),
        retention=retention,
        arpu=scaled(baseline.arpu, ModificationField.ARPU),
        arppu=scaled(baseline.arppu, ModificationField.ARPPU),
        conversion_rate=conversion_rate,
        avg_session_length=scaled(baseline.avg_session_length, ModificationField.SESSION_LENGTH),
    )


def run_projection(
    baseline: BaselineMetrics,
    modifications: ScenarioModification,
    horizon: int,
    daily_new_users: float,
) -> Projection:
    """Run the cohort model for ``horizon`` days.

    Model notes:
    - Every day a fresh cohort of ``daily_new_users * (1 + dau_change)`` arrives
    - A cohort acquired on day c contributes ``size * curve[d - c]`` returning users on day d
    - Paying users are a fixed share (conversion rate) of DAU, each paying ARPPU
    - LTV is the retention-weighted ARPU over the curve, independent of cohorts
    """
    metrics = apply_modifications(baseline, modifications)
    curve = build_retention_curve(metrics.retention, horizon)

    # Acquisition reads the raw delta, not the modified DAU metric
    new_users = max(float(daily_new_users) * (1.0 + modifications.delta(ModificationField.DAU)), 0.0)

    cohorts = np.zeros(horizon, dtype=float)
    days: list[ProjectedDay] = []
    total_revenue = 0.0
    total_dau = 0.0
    peak_dau = 0.0
    peak_revenue = 0.0

    for day in range(horizon):
        cohorts[day] = new_users

        # Cohort c (< day) is (day - c) days old: pair cohorts[0..day-1] with curve[day..1]
        returning_users = float(np.dot(cohorts[:day], curve[day:0:-1])) if day > 0 else 0.0

        dau = new_users + returning_users
        paying_users = dau * metrics.conversion_rate
        daily_revenue = paying_users * metrics.arppu

        total_revenue += daily_revenue
        total_dau += dau
        peak_dau = max(peak_dau, dau)
        peak_revenue = max(peak_revenue, daily_revenue)

        days.append(
            ProjectedDay(
                day=day,
                dau=int(round(dau)),
                revenue=round(daily_revenue, 2),
                new_users=int(round(new_users)),
                returning_users=int(round(returning_users)),
                paying_users=int(round(paying_users)),
            )
        )

    projected_ltv = float(curve.sum()) * metrics.arpu

    return Projection(
        days=tuple(days),
        horizon=horizon,
        total_revenue=total_revenue,
        total_dau=total_dau,
        peak_dau=peak_dau,
        peak_revenue=peak_revenue,
        projected_ltv=projected_ltv,
    )


def modification_magnitude(modifications: ScenarioModification) -> float:
    values = modifications.defined_values()
    if not values:
        return 0.0
    return min(1.0, sum(abs(v) for v in values) / len(values))


def confidence_interval(total_revenue: float, modifications: ScenarioModification) -> ConfidenceInterval:
    level = max(MIN_CONFIDENCE, 1.0 - modification_magnitude(modifications) * CONFIDENCE_SLOPE)
    spread = (1.0 - level) * CONFIDENCE_SPREAD
    return ConfidenceInterval(
        low=total_revenue * (1.0 - spread),
        high=total_revenue * (1.0 + spread),
        level=level,
    )


def revenue_breakdown(total_revenue: float) -> RevenueBreakdown:
    existing, new, reactivated = REVENUE_BREAKDOWN_SHARES
    return RevenueBreakdown(
        revenue_from_existing=total_revenue * existing,
        revenue_from_new=total_revenue * new,
        revenue_from_reactivated=total_revenue * reactivated,
    )


def compute_impact(projection: Projection, reference: Projection) -> ScenarioImpact:
    return ScenarioImpact(
        revenue_change=projection.total_revenue - reference.total_revenue,
        revenue_change_percent=safe_percent_change(projection.total_revenue, reference.total_revenue),
        dau_change=projection.avg_dau - reference.avg_dau,
        dau_change_percent=safe_percent_change(projection.avg_dau, reference.avg_dau),
        ltv_change=projection.projected_ltv - reference.projected_ltv,
        ltv_change_percent=safe_percent_change(projection.projected_ltv, reference.projected_ltv),
    )


def _assemble_result(
    scenario: ScenarioInput,
    projection: Projection,
    impact: ScenarioImpact,
    modifications: ScenarioModification,
) -> ScenarioResult:
    summary = ScenarioSummary(
        total_revenue=round(projection.total_revenue, 2),
        avg_dau=int(round(projection.avg_dau)),
        avg_revenue=round(projection.avg_revenue, 2),
        projected_ltv=round(projection.projected_ltv, 2),
        peak_dau=int(round(projection.peak_dau)),
        peak_revenue=round(projection.peak_revenue, 2),
    )
    return ScenarioResult(
        name=scenario.name,
        projections=projection.days,
        summary=summary,
        impact=impact,
        confidence=confidence_interval(projection.total_revenue, modifications),
        breakdown=revenue_breakdown(projection.total_revenue),
    )


def simulate(scenario: ScenarioInput) -> ScenarioResult:
    """Project a scenario and measure it against the unmodified baseline.

    The baseline run uses the same metrics, horizon and daily acquisition with
    no modifications; impact is taken from unrounded totals of both runs.
    """
    horizon = _validate_horizon(scenario.time_horizon)
    daily_new_users = scenario.effective_daily_new_users

    projection = run_projection(scenario.baseline_metrics, scenario.modifications, horizon, daily_new_users)
    reference = run_projection(scenario.baseline_metrics, ScenarioModification(), horizon, daily_new_users)
    impact = compute_impact(projection, reference)

    logger.debug(
        f"simulated {scenario.name!r}: horizon={horizon} revenue={projection.total_revenue:.2f} "
        f"impact={impact.revenue_change:.2f}"
    )
    return _assemble_result(scenario, projection, impact, scenario.modifications)


def project_scenario(scenario: ScenarioInput) -> ScenarioResult:
    """Project a scenario without the baseline comparison run; impact is all zeros."""
    horizon = _validate_horizon(scenario.time_horizon)
    projection = run_projection(
        scenario.baseline_metrics, scenario.modifications, horizon, scenario.effective_daily_new_users
    )
    return _assemble_result(scenario, projection, ScenarioImpact.zero(), scenario.modifications)
