"""
A simple plotting tool for comparing a scenario projection with its baseline.
"""

from typing import Optional

import matplotlib.pyplot as plt
from matplotlib.ticker import FuncFormatter, MaxNLocator

from whatif_simulator.model import CONFIDENCE_SPREAD
from whatif_simulator.types import ScenarioComparison


def plot_comparison(
    comparison: ScenarioComparison,
    title: Optional[str] = None,
    show_confidence: bool = True,
):
    """Overlay baseline and modified daily revenue, with DAU on a second axis.

    This creates a standard pop-up window via matplotlib when run in a local
    Python session (e.g., from a script or REPL).

    Parameters
    ----------
    comparison : ScenarioComparison
        Result from `compare_scenarios`.
    title : Optional[str]
        Optional chart title. Defaults to the revenue % change and the
        recommendation.
    show_confidence : bool
        If True, shade the modified revenue series by the scenario's
        confidence spread.

    Returns
    -------
    matplotlib.axes.Axes
        The revenue Axes object for further customization.
    """

    base = comparison.baseline.daily
    mod = comparison.modified.daily

    if title is None:
        title = f"Revenue {comparison.percent_change.total_revenue:+.1f}% vs baseline: {comparison.recommendation}"

    fig, ax = plt.subplots(figsize=(10, 5))
    ax.plot(base["day"], base["revenue"], linewidth=1.8, label="Baseline revenue", color="#8F8B82")
    ax.plot(mod["day"], mod["revenue"], linewidth=1.8, label="Modified revenue", color="#DA7756")

    if show_confidence:
        level = comparison.modified.confidence.level
        spread = (1.0 - level) * CONFIDENCE_SPREAD
        ax.fill_between(
            mod["day"],
            mod["revenue"] * (1.0 - spread),
            mod["revenue"] * (1.0 + spread),
            color="#DA7756",
            alpha=0.15,
            label=f"Confidence ({level:.0%})",
        )

    ax_dau = ax.twinx()
    ax_dau.plot(base["day"], base["dau"], linestyle=":", linewidth=1.2, color="#8F8B82")
    ax_dau.plot(mod["day"], mod["dau"], linestyle=":", linewidth=1.2, color="#DA7756")
    ax_dau.set_ylabel("DAU (dotted)")

    ax.set_title(title, fontsize=10)
    ax.set_ylabel("Daily revenue")
    ax.set_xlabel("Day")
    ax.xaxis.set_major_locator(MaxNLocator(integer=True))
    ax.yaxis.set_major_formatter(FuncFormatter(lambda v, _pos: f"${v:,.0f}"))

    ax.grid(True, linestyle=":", alpha=0.5)
    ax.legend(loc="upper left")
    plt.tight_layout()
    plt.show()
    return ax
