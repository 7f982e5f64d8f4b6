import io
import json
import zipfile
from contextlib import suppress
from dataclasses import asdict, dataclass
from datetime import datetime, timezone
from typing import Optional

import pandas as pd

from whatif_simulator.types import (
    PROJECTION_COLUMNS,
    BaselineMetrics,
    ModificationField,
    RetentionAnchors,
    ScenarioInput,
    ScenarioModification,
    ScenarioResult,
)

SCHEMA_VERSION = 1
APP_NAME = "Game What-If Simulator"


@dataclass(frozen=True)
class ScenarioBundle:
    scenario: ScenarioInput
    projections: Optional[pd.DataFrame] = None
    summary: Optional[dict] = None


def scenario_to_dict(scenario: ScenarioInput) -> dict:
    modifications = {k: v for k, v in asdict(scenario.modifications).items() if v is not None}
    return {
        "name": scenario.name,
        "baseline_metrics": asdict(scenario.baseline_metrics),
        "modifications": modifications,
        "time_horizon": int(scenario.time_horizon),
        "daily_new_users": scenario.daily_new_users,
    }


def scenario_from_dict(data: dict) -> ScenarioInput:
    metrics = dict(data.get("baseline_metrics") or {})
    retention = RetentionAnchors(**(metrics.pop("retention", None) or {}))
    baseline = BaselineMetrics(retention=retention, **metrics)

    modifications = ScenarioModification()
    for key, value in (data.get("modifications") or {}).items():
        if value is not None:
            modifications = modifications.with_value(ModificationField.parse(key), float(value))

    return ScenarioInput(
        name=str(data.get("name", "Imported scenario")),
        baseline_metrics=baseline,
        modifications=modifications,
        time_horizon=int(data.get("time_horizon", 30)),
        daily_new_users=data.get("daily_new_users"),
    )


def collect_scenario_bundle(scenario: ScenarioInput, result: Optional[ScenarioResult] = None) -> bytes:
    buf = io.BytesIO()
    with zipfile.ZipFile(buf, mode="w", compression=zipfile.ZIP_DEFLATED) as zf:
        meta = {
            "schema_version": SCHEMA_VERSION,
            "app_name": APP_NAME,
            "exported_at": datetime.now(timezone.utc).isoformat(),
        }
        zf.writestr("metadata.json", json.dumps(meta, indent=2))
        zf.writestr("scenario.json", json.dumps(scenario_to_dict(scenario), indent=2))

        if result is not None:
            outcome = {
                "summary": asdict(result.summary),
                "impact": asdict(result.impact),
                "confidence": asdict(result.confidence),
                "breakdown": asdict(result.breakdown),
            }
            zf.writestr("summary.json", json.dumps(outcome, indent=2))
            zf.writestr("projections.csv", result.daily.to_csv(index=False))

    buf.seek(0)
    return buf.getvalue()


def read_scenario_bundle(file_like) -> ScenarioBundle:
    with zipfile.ZipFile(file_like, mode="r") as zf:
        meta = json.loads(zf.read("metadata.json"))
        if int(meta.get("schema_version", 0)) != SCHEMA_VERSION:
            raise ValueError("Unsupported bundle version. Please update the app.")

        scenario = scenario_from_dict(json.loads(zf.read("scenario.json")))

        summary = None
        with suppress(KeyError):
            summary = json.loads(zf.read("summary.json"))

        projections = None
        with suppress(KeyError):
            df = pd.read_csv(io.BytesIO(zf.read("projections.csv")))
            if set(PROJECTION_COLUMNS).issubset(df.columns):
                projections = df[PROJECTION_COLUMNS]

    return ScenarioBundle(scenario=scenario, projections=projections, summary=summary)
