from __future__ import annotations

import altair as alt
import pandas as pd

from whatif_simulator.types import ScenarioResult

SERIES_COLORS = {"Baseline": "#8F8B82", "Modified": "#DA7756"}

METRIC_TITLES = {
    "revenue": "Revenue ($)",
    "dau": "DAU",
    "paying_users": "Paying users",
    "returning_users": "Returning users",
}


def projection_frame(baseline: ScenarioResult, modified: ScenarioResult, metric: str = "revenue") -> pd.DataFrame:
    """Wide frame indexed by day with one column per scenario for ``metric``."""
    if metric not in METRIC_TITLES:
        raise ValueError(f"Unsupported metric {metric!r}")
    base = baseline.daily.set_index("day")[metric].rename("Baseline")
    mod = modified.daily.set_index("day")[metric].rename("Modified")
    return pd.concat([base, mod], axis=1)


def plot_projection(baseline: ScenarioResult, modified: ScenarioResult, metric: str = "revenue") -> alt.Chart:
    plot_df = projection_frame(baseline, modified, metric).reset_index()
    title = METRIC_TITLES[metric]
    return (
        alt.Chart(plot_df)
        .transform_fold(["Baseline", "Modified"], as_=["Series", "Value"])
        .mark_line(point=False, interpolate="monotone")
        .encode(
            x=alt.X("day:Q", title="Day", axis=alt.Axis(tickMinStep=1)),
            y=alt.Y("Value:Q", title=title),
            color=alt.Color(
                "Series:N",
                scale=alt.Scale(domain=list(SERIES_COLORS), range=list(SERIES_COLORS.values())),
                title="Scenario",
            ),
            tooltip=[
                alt.Tooltip("day:Q", title="Day"),
                alt.Tooltip("Series:N"),
                alt.Tooltip("Value:Q", title=title, format=",.2f"),
            ],
        )
        .properties(height=280, padding={"bottom": 20, "left": 5, "right": 5, "top": 5})
    )


def plot_sensitivity(frame: pd.DataFrame, variable: str, metric: str = "total_revenue") -> alt.Chart:
    """Line chart of a sweep produced by ``sensitivity_frame``; x is the swept delta in percent."""
    df = frame.assign(value_pct=frame["value"] * 100.0)
    base = alt.Chart(df).encode(x=alt.X("value_pct:Q", title=f"{variable} (%)"))
    line = base.mark_line(point=True, color=SERIES_COLORS["Modified"]).encode(
        y=alt.Y(f"{metric}:Q", title=metric.replace("_", " ").title()),
        tooltip=[
            alt.Tooltip("value_pct:Q", title=variable, format=".1f"),
            alt.Tooltip(f"{metric}:Q", format=",.2f"),
            alt.Tooltip("confidence_level:Q", title="confidence", format=".0%"),
        ],
    )
    zero = alt.Chart(pd.DataFrame({"x": [0.0]})).mark_rule(color="#8e44ad", strokeDash=[4, 3]).encode(x="x:Q")
    return alt.layer(line, zero).properties(height=260)


def plot_retention_curve(frame: pd.DataFrame) -> alt.Chart:
    """Retention curve from ``retention_frame`` with the anchor days marked."""
    base = alt.Chart(frame).encode(x=alt.X("day:Q", title="Days since install"))
    curve = base.mark_line(color=SERIES_COLORS["Baseline"]).encode(
        y=alt.Y("retention:Q", title="Retention", axis=alt.Axis(format="%"), scale=alt.Scale(domain=[0, 1])),
    )
    anchors = (
        base.transform_filter(alt.datum.is_anchor)
        .mark_point(filled=True, size=60, color=SERIES_COLORS["Modified"])
        .encode(
            y="retention:Q",
            tooltip=[alt.Tooltip("day:Q"), alt.Tooltip("retention:Q", format=".1%")],
        )
    )
    return alt.layer(curve, anchors).properties(height=220)
