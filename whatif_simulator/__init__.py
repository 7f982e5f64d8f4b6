from whatif_simulator.analysis import compare_scenarios, find_breakeven, sensitivity_analysis
from whatif_simulator.model import project_scenario, simulate
from whatif_simulator.retention import build_retention_curve
from whatif_simulator.types import (
    SCENARIO_TEMPLATES,
    BaselineMetrics,
    InvalidInputError,
    ModificationField,
    RetentionAnchors,
    ScenarioInput,
    ScenarioModification,
    ScenarioResult,
    ScenarioWorkspace,
    SweepRange,
)

__all__ = [
    "SCENARIO_TEMPLATES",
    "BaselineMetrics",
    "InvalidInputError",
    "ModificationField",
    "RetentionAnchors",
    "ScenarioInput",
    "ScenarioModification",
    "ScenarioResult",
    "ScenarioWorkspace",
    "SweepRange",
    "build_retention_curve",
    "compare_scenarios",
    "find_breakeven",
    "project_scenario",
    "sensitivity_analysis",
    "simulate",
]
