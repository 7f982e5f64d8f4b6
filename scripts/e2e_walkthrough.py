"""
End-to-end walkthrough (visual).

Run with:
    streamlit run scripts/e2e_walkthrough.py

Tip: set breakpoints anywhere in whatif_simulator/*
"""

import io
import math
import os

import streamlit as st

from whatif_simulator.analysis import compare_scenarios, find_breakeven, sensitivity_analysis, sensitivity_frame
from whatif_simulator.charts import plot_projection, plot_retention_curve, plot_sensitivity
from whatif_simulator.model import project_scenario, simulate
from whatif_simulator.persistence import collect_scenario_bundle, read_scenario_bundle
from whatif_simulator.retention import build_retention_curve, retention_frame
from whatif_simulator.types import (
    BaselineMetrics,
    ModificationField,
    RetentionAnchors,
    ScenarioInput,
    ScenarioModification,
    SweepRange,
)

VISUALIZE = os.getenv("E2E_VISUALIZE", "1") != "0"


def _assert(cond: bool, msg: str) -> None:
    if not cond:
        raise AssertionError(msg)


def main() -> None:
    st.set_page_config(page_title="E2E Walkthrough", layout="wide")
    st.title("What-If Simulator: End-to-End Walkthrough")

    baseline = BaselineMetrics(arppu=15.0, conversion_rate=0.03, retention=RetentionAnchors(0.40, 0.20, 0.10))

    # 1) Retention curve
    st.subheader("1) Build the retention curve")
    curve = build_retention_curve(baseline.retention, 40)
    if VISUALIZE:
        st.altair_chart(plot_retention_curve(retention_frame(baseline.retention, 40)), width="stretch")
    _assert(curve[0] == 1.0, "Day 0 retention must be 1.0")
    _assert(curve[35] <= curve[30] <= curve[7], "Retention should keep decaying past day 30")

    # 2) Baseline projection
    st.subheader("2) Project the baseline")
    base_input = ScenarioInput(name="Baseline", baseline_metrics=baseline, time_horizon=30, daily_new_users=1000)
    base = project_scenario(base_input)
    st.write(base.summary)
    _assert(base.projections[0].returning_users == 0, "No returning users on day 0")

    # 3) Scenario with a retention bump
    st.subheader("3) Simulate +10% retention")
    bump_input = ScenarioInput(
        name="+10% retention",
        baseline_metrics=baseline,
        modifications=ScenarioModification(retention_change=0.10),
        time_horizon=30,
        daily_new_users=1000,
    )
    bump = simulate(bump_input)
    st.write({"impact": bump.impact, "confidence": bump.confidence})
    _assert(bump.impact.dau_change_percent > 0, "Retention bump should lift DAU")

    # 4) Comparison
    st.subheader("4) Compare scenarios")
    comparison = compare_scenarios(base_input, bump_input)
    st.write({"recommendation": comparison.recommendation, "percent_change": comparison.percent_change})
    if VISUALIZE:
        st.altair_chart(plot_projection(comparison.baseline, comparison.modified, "dau"), width="stretch")

    # 5) Sensitivity sweep
    st.subheader("5) Sensitivity sweep on conversion")
    points = sensitivity_analysis(base_input, ModificationField.CONVERSION, SweepRange(min=-0.5, max=0.5, steps=10))
    frame = sensitivity_frame(points)
    if VISUALIZE:
        st.altair_chart(plot_sensitivity(frame, "conversion_change"), width="stretch")
    _assert(frame["total_revenue"].is_monotonic_increasing, "Revenue should rise with conversion")

    # 6) Breakeven
    st.subheader("6) Breakeven for a -5% ARPPU hit offset by conversion")
    hit = ScenarioInput(
        name="ARPPU cut",
        baseline_metrics=baseline,
        modifications=ScenarioModification(arppu_change=-0.05),
        time_horizon=30,
    )
    value = find_breakeven(hit, ModificationField.CONVERSION, 0.0)
    st.write({"conversion_change_needed": value})
    _assert(value is not None and math.isfinite(value), "Expected a breakeven for conversion")

    # 7) Bundle roundtrip
    st.subheader("7) Scenario bundle roundtrip")
    bundle = collect_scenario_bundle(bump_input, bump)
    loaded = read_scenario_bundle(io.BytesIO(bundle))
    st.write({"bundle_bytes": len(bundle), "restored": loaded.scenario.name})
    _assert(loaded.scenario == bump_input, "Bundle should restore the scenario input")


if __name__ == "__main__":
    main()
