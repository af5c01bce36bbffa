"""
Pydantic v2 models for the derived monitoring configuration.

Everything here is an inert descriptor: threshold rules, dashboard
panels, log queries and the budget policy are data handed to an external
provisioning collaborator, never evaluated against a live backend.

All models use ``extra="forbid"`` to reject unknown keys at parse time.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from stackgraph.topology.handles import ResourceHandle
from stackgraph.types import AlertSeverity, Comparator, EnvironmentTier, HandleKind


# ---------------------------------------------------------------------------
# Metrics and threshold rules
# ---------------------------------------------------------------------------


class MetricRef(BaseModel):
    """A metric addressed by namespace, name and dimensions."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    namespace: str = Field(..., min_length=1)
    metric_name: str = Field(..., min_length=1)
    dimensions: dict[str, str] = Field(default_factory=dict)
    statistic: str = "Sum"
    period_seconds: int = Field(300, ge=1)

    @property
    def key(self) -> tuple[str, str]:
        return (self.namespace, self.metric_name)


class ThresholdRule(BaseModel):
    """An alert condition on one metric of one resource handle."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    rule_id: str = Field(..., min_length=1)
    alarm_name: str = Field(..., min_length=1)
    target_handle: ResourceHandle
    metric: str = Field(..., min_length=1, description="Metric name")
    namespace: str = Field(..., min_length=1)
    dimensions: dict[str, str] = Field(default_factory=dict)
    statistic: str = "Sum"
    period_seconds: int = 300
    comparator: Comparator
    value: float
    evaluation_windows: int
    severity: AlertSeverity = AlertSeverity.WARNING
    unit: Optional[str] = Field(None, description="'Percent' bounds the value to 0-100")
    treat_missing_data: str = "not-breaching"
    description: str = ""
    actions: list[str] = Field(default_factory=list, description="Alert channel handle ids")

    @field_validator("severity")
    @classmethod
    def _alerting_severity(cls, v: AlertSeverity) -> AlertSeverity:
        if v is AlertSeverity.INFO:
            raise ValueError("Threshold rule severity must be warning or critical")
        return v

    @property
    def metric_ref(self) -> MetricRef:
        return MetricRef(
            namespace=self.namespace,
            metric_name=self.metric,
            dimensions=self.dimensions,
            statistic=self.statistic,
            period_seconds=self.period_seconds,
        )

    def is_breached(self, actual: float) -> bool:
        """Whether ``actual`` would trip this rule in a single window."""
        return self.comparator.breached(actual, self.value)


# ---------------------------------------------------------------------------
# Dashboards
# ---------------------------------------------------------------------------


class Panel(BaseModel):
    """A graph panel plotting metrics on a left and a right axis."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    title: str
    left: list[MetricRef] = Field(default_factory=list)
    right: list[MetricRef] = Field(default_factory=list)
    period_seconds: int = 300
    width: int = 12
    height: int = 6

    @property
    def metrics(self) -> list[MetricRef]:
        return [*self.left, *self.right]


class PanelGroup(BaseModel):
    """All panels for one resource kind."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    kind: HandleKind
    title: str
    target_handle: ResourceHandle
    panels: list[Panel] = Field(default_factory=list)

    def metric_names(self) -> set[tuple[str, str]]:
        return {m.key for panel in self.panels for m in panel.metrics}


class DashboardDescriptor(BaseModel):
    """A dashboard made of one panel group per monitored kind."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    name: str
    panel_groups: list[PanelGroup] = Field(default_factory=list)

    def group(self, kind: HandleKind) -> Optional[PanelGroup]:
        for group in self.panel_groups:
            if group.kind == kind:
                return group
        return None


# ---------------------------------------------------------------------------
# Logs
# ---------------------------------------------------------------------------


class LogQueryDescriptor(BaseModel):
    """A saved log query; the query string is never executed here."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    name: str
    category: str = Field(..., description="errors | latency | request_volume | cold_starts")
    query: str
    log_group: ResourceHandle
    parameters: dict[str, str | int] = Field(default_factory=dict)


class MetricFilterDescriptor(BaseModel):
    """A log pattern turned into a custom metric."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    name: str
    log_group: ResourceHandle
    namespace: str
    metric_name: str
    filter_pattern: str
    metric_value: str = "1"
    default_value: float = 0.0


# ---------------------------------------------------------------------------
# Budget
# ---------------------------------------------------------------------------


class BudgetThreshold(BaseModel):
    """One notification threshold of a budget, as a percentage of the limit."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    percentage: float = Field(..., gt=0)
    notification_type: str = Field(..., description="actual | forecasted")
    severity: AlertSeverity


class BudgetPolicy(BaseModel):
    """Cost ceiling with percentage-based notifications (production only)."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    name: str
    limit_amount: float = Field(..., gt=0)
    currency: str = "USD"
    time_unit: str = "monthly"
    alert_thresholds: list[BudgetThreshold] = Field(default_factory=list)
    subscribers: list[str] = Field(default_factory=list)
    cost_filters: dict[str, list[str]] = Field(default_factory=dict)

    @property
    def percentages(self) -> list[float]:
        return [t.percentage for t in self.alert_thresholds]


# ---------------------------------------------------------------------------
# Aggregate
# ---------------------------------------------------------------------------


class MonitoringConfig(BaseModel):
    """Everything the monitoring deriver produces for one topology."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    tier: EnvironmentTier
    threshold_rules: list[ThresholdRule] = Field(default_factory=list)
    dashboard: Optional[DashboardDescriptor] = None
    log_queries: list[LogQueryDescriptor] = Field(default_factory=list)
    metric_filters: list[MetricFilterDescriptor] = Field(default_factory=list)
    budget: Optional[BudgetPolicy] = None
    alert_subscriptions: list[str] = Field(default_factory=list)
    generated_at: Optional[datetime] = Field(
        None, description="Caller-supplied timestamp; never read from the clock"
    )

    def rules_for(self, kind: HandleKind) -> list[ThresholdRule]:
        return [r for r in self.threshold_rules if r.target_handle.kind == kind]

    def to_dict(self) -> dict:
        return self.model_dump(mode="json")
