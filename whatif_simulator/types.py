from dataclasses import dataclass, field, fields, replace
from enum import Enum
from typing import Optional, Union

import pandas as pd

DEFAULT_DAILY_NEW_USERS = 1000

# Days with a tracked retention rate in typical mobile game reporting
RETENTION_DECAY_DAYS = (0, 1, 3, 7, 14, 30)

# existing / new / reactivated
REVENUE_BREAKDOWN_SHARES = (0.60, 0.35, 0.05)


class InvalidInputError(ValueError):
    """Raised when a scenario cannot be simulated as given."""


@dataclass(frozen=True)
class RetentionAnchors:
    d1: float = 0.40
    d7: float = 0.20
    d30: float = 0.10

    def points(self) -> list[tuple[int, float]]:
        return [(1, float(self.d1)), (7, float(self.d7)), (30, float(self.d30))]


INDUSTRY_BENCHMARKS = RetentionAnchors(d1=0.40, d7=0.20, d30=0.10)


@dataclass(frozen=True)
class BaselineMetrics:
    # Activity
    dau: float = 10_000
    mau: float = 50_000

    # Retention by days since install
    retention: RetentionAnchors = INDUSTRY_BENCHMARKS

    # Monetization
    arpu: float = 0.50
    arppu: float = 15.00
    conversion_rate: float = 0.03  # 3% of DAU pay
    avg_revenue_per_purchase: float = 4.99

    # Engagement
    avg_session_length: float = 12.0  # minutes
    sessions_per_dau: float = 2.5


class ModificationField(str, Enum):
    RETENTION = "retention_change"
    ARPU = "arpu_change"
    CONVERSION = "conversion_change"
    DAU = "dau_change"
    ARPPU = "arppu_change"
    SESSION_LENGTH = "session_length_change"

    @classmethod
    def parse(cls, value: Union["ModificationField", str]) -> "ModificationField":
        if isinstance(value, cls):
            return value
        try:
            return cls(value)
        except ValueError:
            allowed = ", ".join(f.value for f in cls)
            raise InvalidInputError(f"Unknown modification field {value!r}; expected one of: {allowed}") from None

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class ScenarioModification:
    """Relative deltas applied to a baseline (0.10 means +10%). ``None`` means unchanged."""

    retention_change: Optional[float] = None
    arpu_change: Optional[float] = None
    conversion_change: Optional[float] = None
    dau_change: Optional[float] = None  # new-user acquisition, e.g. from marketing
    arppu_change: Optional[float] = None
    session_length_change: Optional[float] = None

    def delta(self, name: Union[ModificationField, str]) -> float:
        value = getattr(self, ModificationField.parse(name).value)
        return float(value) if value is not None else 0.0

    def with_value(self, name: Union[ModificationField, str], value: float) -> "ScenarioModification":
        return replace(self, **{ModificationField.parse(name).value: float(value)})

    def defined_values(self) -> list[float]:
        return [float(v) for v in (getattr(self, f.name) for f in fields(self)) if v is not None]


@dataclass(frozen=True)
class ScenarioInput:
    name: str
    baseline_metrics: BaselineMetrics = field(default_factory=BaselineMetrics)
    modifications: ScenarioModification = field(default_factory=ScenarioModification)

    # Projection horizon in days
    time_horizon: int = 30

    # Daily new user acquisition; falsy values fall back to the default
    daily_new_users: Optional[float] = None

    @property
    def effective_daily_new_users(self) -> float:
        return float(self.daily_new_users or DEFAULT_DAILY_NEW_USERS)


# Ready-made scenarios on the default baseline
SCENARIO_TEMPLATES = (
    ScenarioInput(
        name="Retention Improvement +10%",
        modifications=ScenarioModification(retention_change=0.10),
        daily_new_users=1000,
    ),
    ScenarioInput(
        name="Conversion Rate +20%",
        modifications=ScenarioModification(conversion_change=0.20),
        daily_new_users=1000,
    ),
    ScenarioInput(
        name="Marketing Campaign",
        modifications=ScenarioModification(dau_change=0.50),
        daily_new_users=1500,
    ),
    ScenarioInput(
        name="Combined Optimization",
        modifications=ScenarioModification(retention_change=0.05, conversion_change=0.10, arpu_change=0.15),
        daily_new_users=1000,
    ),
)


@dataclass(frozen=True)
class ProjectedDay:
    day: int
    dau: int
    revenue: float
    new_users: int
    returning_users: int
    paying_users: int


@dataclass(frozen=True)
class ScenarioSummary:
    total_revenue: float
    avg_dau: int
    avg_revenue: float
    projected_ltv: float
    peak_dau: int
    peak_revenue: float


@dataclass(frozen=True)
class ScenarioImpact:
    revenue_change: float = 0.0
    revenue_change_percent: float = 0.0
    dau_change: float = 0.0
    dau_change_percent: float = 0.0
    ltv_change: float = 0.0
    ltv_change_percent: float = 0.0

    @staticmethod
    def zero() -> "ScenarioImpact":
        return ScenarioImpact()


@dataclass(frozen=True)
class ConfidenceInterval:
    low: float
    high: float
    level: float


@dataclass(frozen=True)
class RevenueBreakdown:
    revenue_from_existing: float
    revenue_from_new: float
    revenue_from_reactivated: float


PROJECTION_COLUMNS = ["day", "dau", "revenue", "new_users", "returning_users", "paying_users"]


@dataclass(frozen=True)
class ScenarioResult:
    name: str
    projections: tuple[ProjectedDay, ...]
    summary: ScenarioSummary
    impact: ScenarioImpact
    confidence: ConfidenceInterval
    breakdown: RevenueBreakdown

    @property
    def daily(self) -> pd.DataFrame:
        rows = [[getattr(p, c) for c in PROJECTION_COLUMNS] for p in self.projections]
        return pd.DataFrame(rows, columns=PROJECTION_COLUMNS)


@dataclass(frozen=True)
class MetricDelta:
    total_revenue: float
    avg_dau: float
    projected_ltv: float


@dataclass(frozen=True)
class ScenarioComparison:
    baseline: ScenarioResult
    modified: ScenarioResult
    difference: MetricDelta
    percent_change: MetricDelta
    recommendation: str


@dataclass(frozen=True)
class SweepRange:
    min: float = -0.5
    max: float = 0.5
    steps: int = 10


@dataclass(frozen=True)
class BreakevenSearch:
    low: float = -0.5
    high: float = 0.5
    tolerance: float = 0.001
    max_iterations: int = 50


@dataclass(frozen=True)
class SensitivityPoint:
    value: float
    result: ScenarioResult


@dataclass
class ScenarioWorkspace:
    """Caller-owned context holding the baseline a dashboard session is working from.

    Nothing in the engine reads it; it only saves callers from threading the
    current baseline through their own state.
    """

    baseline: Optional[BaselineMetrics] = None

    def set_baseline(self, metrics: BaselineMetrics) -> None:
        self.baseline = metrics

    def get_baseline(self) -> Optional[BaselineMetrics]:
        return self.baseline
