from dataclasses import asdict, replace

import pandas as pd
import streamlit as st
from streamlit.logger import get_logger

from whatif_simulator.analysis import (
    classify_impact,
    compare_scenarios,
    find_breakeven,
    sensitivity_analysis,
    sensitivity_frame,
)
from whatif_simulator.charts import plot_projection, plot_retention_curve, plot_sensitivity
from whatif_simulator.model import apply_modifications
from whatif_simulator.persistence import collect_scenario_bundle, read_scenario_bundle
from whatif_simulator.retention import retention_at, retention_frame
from whatif_simulator.types import (
    DEFAULT_DAILY_NEW_USERS,
    RETENTION_DECAY_DAYS,
    SCENARIO_TEMPLATES,
    BaselineMetrics,
    InvalidInputError,
    RetentionAnchors,
    ScenarioInput,
    ScenarioModification,
    ScenarioWorkspace,
    SweepRange,
)
from whatif_simulator.ui import MODIFICATION_SLIDERS
from whatif_simulator.ui import format_currency as ui_format_currency
from whatif_simulator.ui import format_delta, format_percent_change, render_impact_badge
from whatif_simulator.ui import inject_brand_styles as ui_inject_brand_styles
from whatif_simulator.ui import render_brand_header as ui_render_brand_header

# MUST be the first Streamlit call:
st.set_page_config(page_title="Game What-If Simulator", layout="wide")

# Streamlit logger (appears in deployment logs)
logger = get_logger(__name__)
logger.info("App startup: What-If simulator")

DEFAULT_BASELINE = BaselineMetrics()

# widget key -> default value for the baseline inputs
BASELINE_KEYS = {
    "dau": DEFAULT_BASELINE.dau,
    "mau": DEFAULT_BASELINE.mau,
    "ret_d1": DEFAULT_BASELINE.retention.d1,
    "ret_d7": DEFAULT_BASELINE.retention.d7,
    "ret_d30": DEFAULT_BASELINE.retention.d30,
    "arpu": DEFAULT_BASELINE.arpu,
    "arppu": DEFAULT_BASELINE.arppu,
    "conversion_rate": DEFAULT_BASELINE.conversion_rate,
    "avg_revenue_per_purchase": DEFAULT_BASELINE.avg_revenue_per_purchase,
    "avg_session_length": DEFAULT_BASELINE.avg_session_length,
    "sessions_per_dau": DEFAULT_BASELINE.sessions_per_dau,
}


def format_currency(value: float) -> str:
    return ui_format_currency(value)


def _get_state(key: str, default):
    return st.session_state.get(key, default)


def _workspace() -> ScenarioWorkspace:
    if "workspace" not in st.session_state:
        st.session_state["workspace"] = ScenarioWorkspace()
    return st.session_state["workspace"]


def _apply_pending_state_updates() -> None:
    """Apply any deferred session state updates before widgets render."""

    pending = st.session_state.pop("_pending_state_update", None)
    if isinstance(pending, dict):
        for k, v in pending.items():
            st.session_state[k] = v


ui_inject_brand_styles()
_apply_pending_state_updates()


def number_input_state(label: str, *, key: str, default_value, **kwargs):
    kwargs["key"] = key
    if key not in st.session_state:
        kwargs["value"] = default_value
    return st.number_input(label, **kwargs)


def slider_state(label: str, *, key: str, default_value, **kwargs):
    kwargs["key"] = key
    if key not in st.session_state:
        kwargs["value"] = default_value
    return st.slider(label, **kwargs)


def sidebar_baseline() -> BaselineMetrics:
    st.sidebar.header("Baseline")

    with st.sidebar.expander("Activity", expanded=True):
        dau = number_input_state("DAU", min_value=0.0, default_value=float(BASELINE_KEYS["dau"]), step=100.0, key="dau")
        mau = number_input_state("MAU", min_value=0.0, default_value=float(BASELINE_KEYS["mau"]), step=500.0, key="mau")

    with st.sidebar.expander("Retention", expanded=True):
        d1 = number_input_state(
            "D1", min_value=0.0, max_value=1.0, default_value=BASELINE_KEYS["ret_d1"], step=0.01, key="ret_d1"
        )
        d7 = number_input_state(
            "D7", min_value=0.0, max_value=1.0, default_value=BASELINE_KEYS["ret_d7"], step=0.01, key="ret_d7"
        )
        d30 = number_input_state(
            "D30", min_value=0.0, max_value=1.0, default_value=BASELINE_KEYS["ret_d30"], step=0.01, key="ret_d30"
        )

    with st.sidebar.expander("Monetization", expanded=True):
        arpu = number_input_state("ARPU ($)", min_value=0.0, default_value=BASELINE_KEYS["arpu"], step=0.05, key="arpu")
        arppu = number_input_state(
            "ARPPU ($)", min_value=0.0, default_value=BASELINE_KEYS["arppu"], step=0.5, key="arppu"
        )
        conversion_rate = number_input_state(
            "Conversion rate",
            min_value=0.0,
            max_value=1.0,
            default_value=BASELINE_KEYS["conversion_rate"],
            step=0.005,
            format="%0.3f",
            key="conversion_rate",
        )
        avg_purchase = number_input_state(
            "Avg revenue per purchase ($)",
            min_value=0.0,
            default_value=BASELINE_KEYS["avg_revenue_per_purchase"],
            step=0.5,
            key="avg_revenue_per_purchase",
        )

    with st.sidebar.expander("Engagement", expanded=False):
        session_length = number_input_state(
            "Avg session length (min)",
            min_value=0.0,
            default_value=BASELINE_KEYS["avg_session_length"],
            step=1.0,
            key="avg_session_length",
        )
        sessions_per_dau = number_input_state(
            "Sessions per DAU",
            min_value=0.0,
            default_value=BASELINE_KEYS["sessions_per_dau"],
            step=0.1,
            key="sessions_per_dau",
        )

    metrics = BaselineMetrics(
        dau=float(dau),
        mau=float(mau),
        retention=RetentionAnchors(d1=float(d1), d7=float(d7), d30=float(d30)),
        arpu=float(arpu),
        arppu=float(arppu),
        conversion_rate=float(conversion_rate),
        avg_revenue_per_purchase=float(avg_purchase),
        avg_session_length=float(session_length),
        sessions_per_dau=float(sessions_per_dau),
    )
    _workspace().set_baseline(metrics)
    return metrics


def sidebar_projection() -> tuple[int, int]:
    with st.sidebar.expander("Projection", expanded=True):
        horizon = slider_state(
            "Days to project", min_value=7, max_value=365, default_value=30, step=1, key="time_horizon"
        )
        daily_new_users = number_input_state(
            "Daily new users",
            min_value=0,
            default_value=DEFAULT_DAILY_NEW_USERS,
            step=100,
            key="daily_new_users",
        )
    return int(horizon), int(daily_new_users)


def modification_sliders() -> ScenarioModification:
    st.subheader("Adjust metrics")
    templates = {t.name: t for t in SCENARIO_TEMPLATES}
    c1, c2, c3 = st.columns([3, 1, 1])
    template_name = c1.selectbox("Start from a template", list(templates), key="template_choice")
    if c2.button("Apply template"):
        # Sidebar widgets already rendered this run; defer the update to the next one
        st.session_state["_pending_state_update"] = _state_from_scenario(templates[template_name])
        logger.info(f"Applied scenario template {template_name!r}")
        st.rerun()
    if c3.button("Reset"):
        for cfg in MODIFICATION_SLIDERS:
            st.session_state[f"mod_{cfg.field.value}"] = 0.0
        st.rerun()

    modifications = ScenarioModification()
    cols = st.columns(3)
    for i, cfg in enumerate(MODIFICATION_SLIDERS):
        with cols[i % 3]:
            value = slider_state(
                cfg.label,
                min_value=cfg.min,
                max_value=cfg.max,
                default_value=0.0,
                step=cfg.step,
                key=f"mod_{cfg.field.value}",
            )
            st.caption(format_delta(value))
        # Untouched sliders count as "no change"
        if value != 0:
            modifications = modifications.with_value(cfg.field, value)
    return modifications


def render_kpis(comparison) -> None:
    modified = comparison.modified
    impact = modified.impact
    col1, col2, col3, col4 = st.columns(4)
    col1.metric(
        "Total revenue",
        format_currency(modified.summary.total_revenue),
        format_percent_change(impact.revenue_change_percent),
    )
    col2.metric("Avg DAU", f"{modified.summary.avg_dau:,}", format_percent_change(impact.dau_change_percent))
    col3.metric(
        "Projected LTV", f"${modified.summary.projected_ltv:,.2f}", format_percent_change(impact.ltv_change_percent)
    )
    col4.metric("Confidence", f"{modified.confidence.level:.0%}")

    col5, col6, col7, col8 = st.columns(4)
    col5.metric("Revenue range (low)", format_currency(modified.confidence.low))
    col6.metric("Revenue range (high)", format_currency(modified.confidence.high))
    col7.metric("Peak DAU", f"{modified.summary.peak_dau:,}")
    col8.metric("Peak daily revenue", format_currency(modified.summary.peak_revenue))

    render_impact_badge(comparison.recommendation, classify_impact(impact.revenue_change_percent))


def render_charts(comparison) -> None:
    st.subheader("Revenue projection")
    st.altair_chart(plot_projection(comparison.baseline, comparison.modified, "revenue"), width="stretch")
    st.subheader("DAU projection")
    st.altair_chart(plot_projection(comparison.baseline, comparison.modified, "dau"), width="stretch")

    with st.expander("Revenue by source (estimated split)", expanded=False):
        st.dataframe(pd.Series(asdict(comparison.modified.breakdown), name="revenue").to_frame())
    with st.expander("Daily details", expanded=False):
        st.dataframe(comparison.modified.daily, width="stretch")


def render_sensitivity(scenario: ScenarioInput) -> None:
    st.subheader("Sensitivity analysis")
    labels = {cfg.label: cfg.field for cfg in MODIFICATION_SLIDERS}
    c1, c2, c3, c4 = st.columns(4)
    label = c1.selectbox("Variable", list(labels), key="sens_variable")
    lo = c2.number_input("Min", value=-0.2, step=0.05, key="sens_min")
    hi = c3.number_input("Max", value=0.2, step=0.05, key="sens_max")
    steps = c4.number_input("Steps", min_value=0, max_value=40, value=8, step=1, key="sens_steps")

    variable = labels[label]
    points = sensitivity_analysis(scenario, variable, SweepRange(min=float(lo), max=float(hi), steps=int(steps)))
    frame = sensitivity_frame(points)
    st.altair_chart(plot_sensitivity(frame, label), width="stretch")
    with st.expander("Sweep table", expanded=False):
        st.dataframe(frame, width="stretch")


def render_breakeven(scenario: ScenarioInput) -> None:
    st.subheader("Breakeven finder")
    st.caption("Searches -50%..+50% for the change that produces the target revenue impact.")
    c1, c2 = st.columns(2)
    labels = {cfg.label: cfg.field for cfg in MODIFICATION_SLIDERS}
    label = c1.selectbox("Variable", list(labels), key="breakeven_variable")
    target = c2.number_input("Target revenue change ($)", value=0.0, step=100.0, key="breakeven_target")
    if st.button("Find breakeven"):
        value = find_breakeven(scenario, labels[label], float(target))
        if value is None:
            st.warning("No breakeven found in range. Revenue may not respond to this variable.")
        else:
            st.success(f"{label} change of {format_delta(value)} reaches the target.")


def render_retention(metrics: BaselineMetrics, modifications: ScenarioModification, horizon: int) -> None:
    st.subheader("Retention curve")
    anchors = apply_modifications(metrics, modifications).retention
    st.altair_chart(plot_retention_curve(retention_frame(anchors, max(horizon, 31))), width="stretch")
    tracked = pd.DataFrame(
        {
            "Day": list(RETENTION_DECAY_DAYS),
            "Baseline": [retention_at(metrics.retention, d) for d in RETENTION_DECAY_DAYS],
            "Modified": [retention_at(anchors, d) for d in RETENTION_DECAY_DAYS],
        }
    )
    st.dataframe(tracked.style.format({"Baseline": "{:.1%}", "Modified": "{:.1%}"}), hide_index=True)


def render_save_load(scenario: ScenarioInput, result) -> None:
    st.subheader("Save / Load scenario")
    st.caption("Download a portable bundle to save your scenario, or upload to restore it later.")

    c1, c2 = st.columns(2)
    with c1:
        st.session_state.setdefault("scenario_name", "My scenario")
        name = st.text_input("Scenario name", key="scenario_name")
        bundle = collect_scenario_bundle(replace(scenario, name=name), result)
        st.download_button(
            "Download scenario bundle (.zip)",
            data=bundle,
            file_name="whatif_scenario.zip",
            mime="application/zip",
        )
    with c2:
        uploaded = st.file_uploader("Upload scenario bundle (.zip)", type=["zip"], key="scenario_bundle")
        # The uploader keeps its file across reruns; only apply each upload once
        if uploaded is not None and st.session_state.get("_loaded_bundle") != (uploaded.name, uploaded.size):
            try:
                loaded = read_scenario_bundle(uploaded).scenario
            except Exception as e:
                logger.warning(f"Failed to load bundle: {e}")
                st.error(f"Failed to load bundle: {e}")
            else:
                logger.info(f"Loaded scenario bundle {uploaded.name!r} ({loaded.name!r})")
                st.session_state["_loaded_bundle"] = (uploaded.name, uploaded.size)
                st.session_state["_pending_state_update"] = _state_from_scenario(loaded)
                st.rerun()


def _state_from_scenario(scenario: ScenarioInput) -> dict:
    m = scenario.baseline_metrics
    state = {
        "dau": float(m.dau),
        "mau": float(m.mau),
        "ret_d1": float(m.retention.d1),
        "ret_d7": float(m.retention.d7),
        "ret_d30": float(m.retention.d30),
        "arpu": float(m.arpu),
        "arppu": float(m.arppu),
        "conversion_rate": float(m.conversion_rate),
        "avg_revenue_per_purchase": float(m.avg_revenue_per_purchase),
        "avg_session_length": float(m.avg_session_length),
        "sessions_per_dau": float(m.sessions_per_dau),
        "time_horizon": int(scenario.time_horizon),
        "daily_new_users": int(scenario.effective_daily_new_users),
        "scenario_name": scenario.name,
    }
    for cfg in MODIFICATION_SLIDERS:
        state[f"mod_{cfg.field.value}"] = scenario.modifications.delta(cfg.field)
    return state


def render_help() -> None:
    st.subheader("How the projection works")
    st.markdown(
        """
- Every day a new cohort of users arrives (daily new users, scaled by the **New Users** change).
- A cohort acquired on day *c* contributes `size x retention[d - c]` returning users on day *d*.
- The retention curve is interpolated from D1/D7/D30: linear to D1, log-linear between anchors,
  exponential decay beyond D30.
- Paying users = DAU x conversion rate; daily revenue = paying users x ARPPU.
- LTV = sum over the curve of retention x ARPU.
- Impact compares against the same baseline with no changes. Confidence falls as changes get larger
  (floored at 50%) and widens the revenue range accordingly.
- The revenue-by-source split is a fixed 60 / 35 / 5 estimate, not derived from cohorts.
        """
    )


ui_render_brand_header("What-If Simulator", "Adjust metrics to see projected impact")

baseline_metrics = sidebar_baseline()
time_horizon, new_users_per_day = sidebar_projection()

with st.container():
    tab_sim, tab_sens, tab_save, tab_help = st.tabs(["Simulator", "Sensitivity & Breakeven", "Save / Load", "Help"])

with tab_sim:
    mods = modification_sliders()
    baseline_input = ScenarioInput(
        name="Baseline",
        baseline_metrics=baseline_metrics,
        time_horizon=time_horizon,
        daily_new_users=new_users_per_day,
    )
    modified_input = ScenarioInput(
        name=_get_state("scenario_name", "Modified"),
        baseline_metrics=baseline_metrics,
        modifications=mods,
        time_horizon=time_horizon,
        daily_new_users=new_users_per_day,
    )
    try:
        comparison = compare_scenarios(baseline_input, modified_input)
    except InvalidInputError as e:
        st.error(str(e))
        st.stop()
    render_kpis(comparison)
    render_charts(comparison)
    render_retention(baseline_metrics, mods, time_horizon)

with tab_sens:
    render_sensitivity(modified_input)
    render_breakeven(modified_input)

with tab_save:
    render_save_load(modified_input, comparison.modified)

with tab_help:
    render_help()
