import io
import json
import zipfile

import pandas as pd
import pytest

from whatif_simulator.model import simulate
from whatif_simulator.persistence import (
    SCHEMA_VERSION,
    collect_scenario_bundle,
    read_scenario_bundle,
    scenario_from_dict,
    scenario_to_dict,
)
from whatif_simulator.types import (
    PROJECTION_COLUMNS,
    BaselineMetrics,
    InvalidInputError,
    RetentionAnchors,
    ScenarioInput,
    ScenarioModification,
)


def _scenario() -> ScenarioInput:
    return ScenarioInput(
        name="Holiday sale",
        baseline_metrics=BaselineMetrics(arppu=12.0, retention=RetentionAnchors(0.45, 0.22, 0.08)),
        modifications=ScenarioModification(arppu_change=-0.2, conversion_change=0.3),
        time_horizon=21,
        daily_new_users=1500,
    )


def test_collect_and_read_bundle_roundtrip():
    scenario = _scenario()
    result = simulate(scenario)

    bundle = collect_scenario_bundle(scenario, result)
    assert isinstance(bundle, (bytes, bytearray)) and len(bundle) > 0

    loaded = read_scenario_bundle(io.BytesIO(bundle))
    assert loaded.scenario == scenario
    assert loaded.summary["summary"]["total_revenue"] == result.summary.total_revenue
    assert list(loaded.projections.columns) == PROJECTION_COLUMNS
    pd.testing.assert_frame_equal(loaded.projections, result.daily, check_dtype=False)


def test_bundle_without_result_has_no_projections():
    loaded = read_scenario_bundle(io.BytesIO(collect_scenario_bundle(_scenario())))
    assert loaded.projections is None
    assert loaded.summary is None
    assert loaded.scenario.modifications.arppu_change == pytest.approx(-0.2)


def test_unsupported_bundle_version_rejected():
    buf = io.BytesIO()
    with zipfile.ZipFile(buf, mode="w") as zf:
        zf.writestr("metadata.json", json.dumps({"schema_version": SCHEMA_VERSION + 1}))
        zf.writestr("scenario.json", json.dumps(scenario_to_dict(_scenario())))
    buf.seek(0)
    with pytest.raises(ValueError):
        read_scenario_bundle(buf)


def test_scenario_dict_skips_unset_modifications():
    data = scenario_to_dict(_scenario())
    assert data["modifications"] == {"arppu_change": -0.2, "conversion_change": 0.3}
    assert data["baseline_metrics"]["retention"] == {"d1": 0.45, "d7": 0.22, "d30": 0.08}


def test_unknown_modification_key_rejected():
    data = scenario_to_dict(_scenario())
    data["modifications"]["priceChange"] = 0.1
    with pytest.raises(InvalidInputError):
        scenario_from_dict(data)
