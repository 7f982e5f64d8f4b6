"""
Headless E2E that exercises the real code paths without Streamlit rendering.

Run with:
    pytest -q
"""

import io
import math

import numpy as np

from whatif_simulator.analysis import compare_scenarios, find_breakeven, sensitivity_analysis, sensitivity_frame
from whatif_simulator.model import project_scenario, simulate
from whatif_simulator.persistence import collect_scenario_bundle, read_scenario_bundle
from whatif_simulator.retention import build_retention_curve
from whatif_simulator.types import (
    BaselineMetrics,
    ModificationField,
    RetentionAnchors,
    ScenarioInput,
    ScenarioModification,
    ScenarioWorkspace,
    SweepRange,
)


def test_e2e_walkthrough_headless():
    # Workspace holds the baseline the session works from
    workspace = ScenarioWorkspace()
    workspace.set_baseline(
        BaselineMetrics(arppu=15.0, conversion_rate=0.03, retention=RetentionAnchors(0.40, 0.20, 0.10))
    )
    baseline = workspace.get_baseline()

    curve = build_retention_curve(baseline.retention, 40)
    assert curve[0] == 1.0
    assert np.all(np.diff(curve[1:]) <= 1e-12)

    base_input = ScenarioInput(name="Baseline", baseline_metrics=baseline, time_horizon=30, daily_new_users=1000)
    base = project_scenario(base_input)
    assert base.projections[0].returning_users == 0
    assert base.impact.revenue_change == 0

    bump_input = ScenarioInput(
        name="+10% retention",
        baseline_metrics=baseline,
        modifications=ScenarioModification(retention_change=0.10),
        time_horizon=30,
        daily_new_users=1000,
    )
    bump = simulate(bump_input)
    assert bump.impact.dau_change_percent > 0
    assert bump.confidence.level < 1.0

    comparison = compare_scenarios(base_input, bump_input)
    assert comparison.difference.avg_dau > 0
    assert comparison.recommendation

    points = sensitivity_analysis(base_input, ModificationField.CONVERSION, SweepRange(min=-0.5, max=0.5, steps=10))
    frame = sensitivity_frame(points)
    assert len(frame) == 11
    assert frame["total_revenue"].is_monotonic_increasing

    hit = ScenarioInput(
        name="ARPPU cut",
        baseline_metrics=baseline,
        modifications=ScenarioModification(arppu_change=-0.05),
        time_horizon=30,
    )
    value = find_breakeven(hit, ModificationField.CONVERSION, 0.0)
    assert value is not None and math.isfinite(value)
    assert 0 < value < 0.1

    bundle = collect_scenario_bundle(bump_input, bump)
    loaded = read_scenario_bundle(io.BytesIO(bundle))
    assert loaded.scenario == bump_input
    assert len(loaded.projections) == 30
