import math

import pytest

from whatif_simulator.model import (
    apply_modifications,
    confidence_interval,
    modification_magnitude,
    project_scenario,
    run_projection,
    safe_percent_change,
    simulate,
)
from whatif_simulator.types import (
    SCENARIO_TEMPLATES,
    BaselineMetrics,
    InvalidInputError,
    RetentionAnchors,
    ScenarioInput,
    ScenarioModification,
)


def _baseline(**overrides) -> BaselineMetrics:
    params = dict(
        dau=10_000,
        mau=50_000,
        retention=RetentionAnchors(d1=0.40, d7=0.20, d30=0.10),
        arpu=0.50,
        arppu=15.0,
        conversion_rate=0.03,
        avg_revenue_per_purchase=4.99,
        avg_session_length=12,
        sessions_per_dau=2.5,
    )
    params.update(overrides)
    return BaselineMetrics(**params)


def _scenario(modifications=None, horizon=30, daily_new_users=1000, **metric_overrides) -> ScenarioInput:
    return ScenarioInput(
        name="Test",
        baseline_metrics=_baseline(**metric_overrides),
        modifications=modifications or ScenarioModification(),
        time_horizon=horizon,
        daily_new_users=daily_new_users,
    )


def test_simulate_basic():
    result = simulate(_scenario())
    assert len(result.projections) == 30
    assert result.projections[0].day == 0
    assert result.projections[-1].day == 29
    assert result.summary.total_revenue > 0
    assert result.summary.avg_dau > 0
    assert result.summary.projected_ltv > 0
    assert result.summary.peak_dau >= result.summary.avg_dau


def test_daily_frame_matches_projections():
    result = simulate(_scenario(horizon=10))
    df = result.daily
    assert len(df) == 10
    assert df["day"].tolist() == list(range(10))
    assert df["dau"].is_monotonic_increasing


def test_day_zero_has_only_new_users():
    result = project_scenario(_scenario(ScenarioModification(dau_change=0.5)))
    first = result.projections[0]
    assert first.new_users == 1500
    assert first.returning_users == 0
    assert first.dau == 1500
    assert result.projections[1].returning_users > 0


def test_paying_users_follow_conversion():
    result = project_scenario(_scenario(horizon=1, conversion_rate=0.1))
    assert result.projections[0].paying_users == 100
    assert result.summary.avg_dau == 1000


def test_default_daily_new_users():
    result = project_scenario(_scenario(daily_new_users=None, horizon=3))
    assert result.projections[0].new_users == 1000


@pytest.mark.parametrize("horizon", [1, 7, 30, 90])
def test_baseline_projection_has_zero_impact(horizon):
    result = project_scenario(_scenario(horizon=horizon))
    impact = result.impact
    assert impact.revenue_change == 0
    assert impact.revenue_change_percent == 0
    assert impact.dau_change == 0
    assert impact.dau_change_percent == 0
    assert impact.ltv_change == 0
    assert impact.ltv_change_percent == 0


def test_unmodified_simulation_has_zero_impact():
    impact = simulate(_scenario()).impact
    assert impact.revenue_change == 0
    assert impact.dau_change == 0
    assert impact.ltv_change == 0


def test_retention_bump_lifts_dau_and_revenue():
    base = project_scenario(_scenario())
    bumped = simulate(_scenario(ScenarioModification(retention_change=0.10)))
    assert bumped.summary.avg_dau > base.summary.avg_dau
    assert bumped.impact.dau_change_percent > 0
    assert bumped.impact.revenue_change > 0
    assert bumped.impact.revenue_change_percent > 0


def test_arpu_moves_ltv_not_revenue():
    result = simulate(_scenario(ScenarioModification(arpu_change=0.25)))
    assert result.impact.ltv_change > 0
    assert result.impact.ltv_change_percent == pytest.approx(25.0)
    assert result.impact.revenue_change == 0


def test_negative_changes_reduce_revenue():
    result = simulate(_scenario(ScenarioModification(retention_change=-0.5, arpu_change=-0.3)))
    assert result.impact.revenue_change < 0


@pytest.mark.parametrize("delta", [-1.0, -1.5, -10.0])
def test_conversion_wipeout_keeps_revenue_finite(delta):
    result = simulate(_scenario(ScenarioModification(conversion_change=delta)))
    for day in result.projections:
        assert math.isfinite(day.revenue)
        assert day.revenue >= 0
    assert result.summary.total_revenue == 0
    assert result.impact.revenue_change_percent == pytest.approx(-100.0)


def test_probabilities_clamped_to_unit_interval():
    metrics = apply_modifications(
        _baseline(retention=RetentionAnchors(0.9, 0.5, -0.1), conversion_rate=0.8),
        ScenarioModification(retention_change=0.5, conversion_change=0.5),
    )
    assert metrics.retention.d1 == 1.0
    assert metrics.retention.d7 == pytest.approx(0.75)
    assert metrics.retention.d30 == 0.0
    assert metrics.conversion_rate == 1.0


def test_apply_modifications_scales_other_fields():
    metrics = apply_modifications(
        _baseline(),
        ScenarioModification(dau_change=0.1, arppu_change=-0.2, session_length_change=0.5),
    )
    assert metrics.dau == pytest.approx(11_000)
    assert metrics.arppu == pytest.approx(12.0)
    assert metrics.avg_session_length == pytest.approx(18.0)
    assert metrics.mau == 50_000


def test_zero_metrics_do_not_produce_nan():
    scenario = ScenarioInput(
        name="Zero Metrics",
        baseline_metrics=BaselineMetrics(
            dau=0,
            mau=0,
            retention=RetentionAnchors(0.01, 0.005, 0.001),
            arpu=0,
            arppu=0,
            conversion_rate=0,
            avg_revenue_per_purchase=0,
            avg_session_length=0,
            sessions_per_dau=0,
        ),
        time_horizon=7,
    )
    result = simulate(scenario)
    assert result.summary.total_revenue == 0
    assert len(result.projections) == 7
    assert result.impact.revenue_change_percent == 0
    assert result.impact.ltv_change_percent == 0


@pytest.mark.parametrize("horizon", [0, -5, 2.5, None, "30"])
def test_invalid_horizon_rejected(horizon):
    with pytest.raises(InvalidInputError):
        simulate(_scenario(horizon=horizon))


def test_long_horizon():
    result = project_scenario(_scenario(horizon=365))
    assert len(result.projections) == 365
    assert result.summary.total_revenue > 0


def test_run_projection_totals_are_unrounded():
    projection = run_projection(_baseline(), ScenarioModification(), 5, 333)
    assert projection.horizon == 5
    assert projection.avg_dau == pytest.approx(projection.total_dau / 5)
    assert projection.total_revenue == pytest.approx(sum(d.revenue for d in projection.days), abs=0.05)


def test_confidence_and_breakdown():
    result = simulate(_scenario())
    assert result.confidence.level == 1.0
    assert result.confidence.low == pytest.approx(result.summary.total_revenue, abs=0.01)
    assert result.confidence.high == pytest.approx(result.summary.total_revenue, abs=0.01)

    b = result.breakdown
    total = b.revenue_from_existing + b.revenue_from_new + b.revenue_from_reactivated
    assert total == pytest.approx(result.summary.total_revenue, abs=0.01)
    assert b.revenue_from_existing == pytest.approx(0.6 * total)


def test_combined_modifications_lower_confidence():
    mods = ScenarioModification(
        retention_change=0.1,
        arpu_change=0.1,
        conversion_change=0.1,
        dau_change=0.1,
        arppu_change=0.1,
        session_length_change=0.1,
    )
    result = simulate(_scenario(mods))
    assert result.impact.revenue_change > 0
    assert result.confidence.level == pytest.approx(0.97)
    assert result.confidence.low < result.summary.total_revenue < result.confidence.high


def test_modification_magnitude_capped():
    assert modification_magnitude(ScenarioModification()) == 0.0
    assert modification_magnitude(ScenarioModification(retention_change=-0.2, arpu_change=0.4)) == pytest.approx(0.3)
    assert modification_magnitude(ScenarioModification(dau_change=5.0)) == 1.0
    assert confidence_interval(100.0, ScenarioModification(dau_change=5.0)).level == pytest.approx(0.7)


@pytest.mark.parametrize(
    "value, reference, expected",
    [(110.0, 100.0, 10.0), (50.0, 0.0, 0.0), (50.0, -10.0, 0.0), (1.0, float("nan"), 0.0)],
)
def test_safe_percent_change(value, reference, expected):
    assert safe_percent_change(value, reference) == pytest.approx(expected)


@pytest.mark.parametrize("template", SCENARIO_TEMPLATES, ids=lambda t: t.name)
def test_templates_lift_revenue(template):
    assert template.baseline_metrics == BaselineMetrics()
    result = simulate(template)
    assert len(result.projections) == template.time_horizon
    assert result.impact.revenue_change > 0
    assert result.impact.revenue_change_percent > 0


def test_combined_template_arpu_part_moves_ltv_only():
    combined = next(t for t in SCENARIO_TEMPLATES if t.name == "Combined Optimization")
    arpu_only = ScenarioModification(arpu_change=combined.modifications.arpu_change)
    result = simulate(ScenarioInput(name="ARPU only", modifications=arpu_only, daily_new_users=combined.daily_new_users))
    assert result.impact.revenue_change == 0
    assert result.impact.ltv_change_percent == pytest.approx(15.0)
