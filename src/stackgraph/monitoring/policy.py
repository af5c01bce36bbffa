"""
Per-kind monitoring rule table with tier-dependent thresholds.

A ``MonitoringPolicy`` holds one ``RuleFamily`` per handle kind.  Each
family names the metric namespace and dimensions for that kind, the
threshold rule templates to instantiate, and the dashboard panels to draw.
Rule templates carry a ``{value, evaluation_windows}`` pair per tier; error
rules get looser limits and fewer windows in development and more in
production.  Those numbers are a policy, not a law: load a different table
from YAML to change them.

Namespace and dimension values are format strings expanded with
``{name}`` (the handle's physical name), ``{stage}`` and ``{application}``.

Usage::

    from stackgraph.monitoring.policy import DEFAULT_MONITORING_POLICY
    from stackgraph.types import EnvironmentTier, HandleKind

    family = DEFAULT_MONITORING_POLICY.family(HandleKind.COMPUTE_FUNCTION)
    family.rules[0].thresholds[EnvironmentTier.PRODUCTION].value
"""

from __future__ import annotations

import string
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from stackgraph.types import AlertSeverity, Comparator, EnvironmentTier, HandleKind

TEMPLATE_FIELDS = frozenset({"name", "stage", "application"})
ALERTING_SEVERITIES = (AlertSeverity.WARNING, AlertSeverity.CRITICAL)


# ---------------------------------------------------------------------------
# Models
# ---------------------------------------------------------------------------


class TierThreshold(BaseModel):
    """Threshold value and number of evaluation windows for one tier."""

    model_config = ConfigDict(extra="forbid")

    value: float
    evaluation_windows: int = 1


class RuleTemplate(BaseModel):
    """A threshold rule to instantiate for every handle of the family's kind."""

    model_config = ConfigDict(extra="forbid")

    name: str = Field(..., min_length=1, description="Suffix of the rule id")
    metric: str = Field(..., min_length=1)
    statistic: str = "Sum"
    comparator: Comparator = Comparator.GT
    severity: AlertSeverity = AlertSeverity.WARNING
    unit: Optional[str] = None
    period_seconds: int = Field(300, ge=60)
    description: str = ""
    thresholds: dict[EnvironmentTier, TierThreshold]

    @field_validator("severity")
    @classmethod
    def _alerting_severity(cls, v: AlertSeverity) -> AlertSeverity:
        if v not in ALERTING_SEVERITIES:
            raise ValueError(f"Rule severity must be warning or critical, got {v.value!r}")
        return v

    @model_validator(mode="after")
    def _check_all_tiers(self) -> "RuleTemplate":
        missing = [t.value for t in EnvironmentTier if t not in self.thresholds]
        if missing:
            raise ValueError(
                f"Rule '{self.name}' has no threshold for tier(s): {', '.join(missing)}"
            )
        return self


class PanelMetric(BaseModel):
    """A metric plotted on a panel axis."""

    model_config = ConfigDict(extra="forbid")

    metric: str = Field(..., min_length=1)
    statistic: str = "Sum"


class PanelTemplate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    title: str
    left: list[PanelMetric] = Field(default_factory=list)
    right: list[PanelMetric] = Field(default_factory=list)


class RuleFamily(BaseModel):
    """Rules and panels for one resource kind."""

    model_config = ConfigDict(extra="forbid")

    kind: HandleKind
    title: str
    namespace: str = Field(..., min_length=1)
    dimensions: dict[str, str] = Field(default_factory=dict)
    rules: list[RuleTemplate] = Field(default_factory=list)
    panels: list[PanelTemplate] = Field(default_factory=list)

    @model_validator(mode="after")
    def _check_placeholders(self) -> "RuleFamily":
        for template in [self.namespace, *self.dimensions.values()]:
            for _, field_name, _, _ in string.Formatter().parse(template):
                if field_name is not None and field_name not in TEMPLATE_FIELDS:
                    allowed = ", ".join(sorted(TEMPLATE_FIELDS))
                    raise ValueError(
                        f"Family '{self.kind.value}' uses unknown placeholder "
                        f"{{{field_name}}} in {template!r}; allowed: {allowed}"
                    )
        return self


class MonitoringPolicy(BaseModel):
    """Root model of the rule table (also the YAML policy file format)."""

    model_config = ConfigDict(extra="forbid")

    schema_version: str = Field("0.1.0", min_length=1)
    families: list[RuleFamily] = Field(default_factory=list)
    description: Optional[str] = None

    @model_validator(mode="after")
    def _check_unique_kinds(self) -> "MonitoringPolicy":
        seen: set[HandleKind] = set()
        for family in self.families:
            if family.kind in seen:
                raise ValueError(f"Duplicate rule family for kind '{family.kind.value}'")
            seen.add(family.kind)
        return self

    def family(self, kind: HandleKind) -> Optional[RuleFamily]:
        for family in self.families:
            if family.kind == kind:
                return family
        return None


# ---------------------------------------------------------------------------
# Built-in table
# ---------------------------------------------------------------------------


def _tiers(
    development: tuple[float, int],
    staging: tuple[float, int],
    production: tuple[float, int],
) -> dict[EnvironmentTier, TierThreshold]:
    return {
        EnvironmentTier.DEVELOPMENT: TierThreshold(value=development[0], evaluation_windows=development[1]),
        EnvironmentTier.STAGING: TierThreshold(value=staging[0], evaluation_windows=staging[1]),
        EnvironmentTier.PRODUCTION: TierThreshold(value=production[0], evaluation_windows=production[1]),
    }


def _panel(title: str, left: list[tuple[str, str]], right: list[tuple[str, str]] = ()) -> PanelTemplate:
    return PanelTemplate(
        title=title,
        left=[PanelMetric(metric=m, statistic=s) for m, s in left],
        right=[PanelMetric(metric=m, statistic=s) for m, s in right],
    )


DEFAULT_MONITORING_POLICY = MonitoringPolicy(
    description="Built-in thresholds for the serverless web frontend topology",
    families=[
        RuleFamily(
            kind=HandleKind.EDGE_CACHE,
            title="Edge Distribution",
            namespace="AWS/CloudFront",
            dimensions={"DistributionId": "{name}", "Region": "Global"},
            rules=[
                RuleTemplate(
                    name="4xx-error-rate",
                    metric="4xxErrorRate",
                    statistic="Average",
                    unit="Percent",
                    severity=AlertSeverity.WARNING,
                    description="Edge 4XX error rate is too high",
                    thresholds=_tiers((5, 1), (10, 2), (10, 3)),
                ),
            ],
            panels=[
                _panel(
                    "Edge Performance",
                    left=[("Requests", "Sum"), ("BytesDownloaded", "Sum")],
                    right=[("CacheHitRate", "Average"), ("4xxErrorRate", "Average")],
                ),
            ],
        ),
        RuleFamily(
            kind=HandleKind.OBJECT_STORE,
            title="Asset Storage",
            namespace="AWS/S3",
            dimensions={"BucketName": "{name}"},
            panels=[
                _panel(
                    "Asset Storage",
                    left=[("NumberOfObjects", "Average")],
                    right=[("BucketSizeBytes", "Average")],
                ),
            ],
        ),
        RuleFamily(
            kind=HandleKind.COMPUTE_FUNCTION,
            title="Rendering Function",
            namespace="AWS/Lambda",
            dimensions={"FunctionName": "{name}"},
            rules=[
                RuleTemplate(
                    name="errors",
                    metric="Errors",
                    severity=AlertSeverity.CRITICAL,
                    description="Function error count is too high",
                    thresholds=_tiers((2, 1), (5, 2), (10, 3)),
                ),
                RuleTemplate(
                    name="duration",
                    metric="Duration",
                    statistic="Average",
                    unit="Milliseconds",
                    description="Function duration is too high",
                    thresholds=_tiers((10000, 2), (10000, 3), (10000, 3)),
                ),
                RuleTemplate(
                    name="throttles",
                    metric="Throttles",
                    description="Function is being throttled",
                    thresholds=_tiers((5, 1), (0, 1), (0, 1)),
                ),
            ],
            panels=[
                _panel(
                    "Function Performance",
                    left=[("Invocations", "Sum"), ("Errors", "Sum"), ("Throttles", "Sum")],
                    right=[("Duration", "Average")],
                ),
            ],
        ),
        RuleFamily(
            kind=HandleKind.HTTP_ENDPOINT,
            title="HTTP API",
            namespace="AWS/ApiGateway",
            dimensions={"ApiName": "{name}", "Stage": "{stage}"},
            rules=[
                RuleTemplate(
                    name="5xx-errors",
                    metric="5XXError",
                    severity=AlertSeverity.CRITICAL,
                    description="API 5XX error count is too high",
                    thresholds=_tiers((5, 1), (10, 2), (20, 3)),
                ),
                RuleTemplate(
                    name="latency",
                    metric="Latency",
                    statistic="Average",
                    unit="Milliseconds",
                    description="API latency is too high",
                    thresholds=_tiers((5000, 2), (5000, 3), (5000, 3)),
                ),
            ],
            panels=[
                _panel(
                    "API Performance",
                    left=[("Count", "Sum"), ("4XXError", "Sum"), ("5XXError", "Sum")],
                    right=[("Latency", "Average")],
                ),
            ],
        ),
        RuleFamily(
            kind=HandleKind.KEY_VALUE_TABLE,
            title="Session Table",
            namespace="AWS/DynamoDB",
            dimensions={"TableName": "{name}"},
            rules=[
                RuleTemplate(
                    name="read-throttles",
                    metric="ReadThrottleEvents",
                    description="Table read throttles detected",
                    thresholds=_tiers((5, 1), (0, 1), (0, 1)),
                ),
                RuleTemplate(
                    name="write-throttles",
                    metric="WriteThrottleEvents",
                    description="Table write throttles detected",
                    thresholds=_tiers((5, 1), (0, 1), (0, 1)),
                ),
            ],
            panels=[
                _panel(
                    "Table Performance",
                    left=[
                        ("ConsumedReadCapacityUnits", "Sum"),
                        ("ConsumedWriteCapacityUnits", "Sum"),
                        ("ReadThrottleEvents", "Sum"),
                        ("WriteThrottleEvents", "Sum"),
                    ],
                    right=[("SuccessfulRequestLatency", "Average")],
                ),
            ],
        ),
        RuleFamily(
            kind=HandleKind.LOG_GROUP,
            title="Application Logs",
            namespace="{application}/{stage}",
            rules=[
                RuleTemplate(
                    name="error-count",
                    metric="ErrorCount",
                    description="Application logged too many errors",
                    thresholds=_tiers((10, 1), (10, 2), (25, 2)),
                ),
            ],
            panels=[
                _panel(
                    "Application Log Signals",
                    left=[("ErrorCount", "Sum"), ("WarningCount", "Sum")],
                    right=[("ResponseTime", "Average")],
                ),
            ],
        ),
        RuleFamily(
            kind=HandleKind.PIPELINE,
            title="Delivery Pipeline",
            namespace="AWS/CodePipeline",
            dimensions={"PipelineName": "{name}"},
            rules=[
                RuleTemplate(
                    name="failed-executions",
                    metric="FailedExecutions",
                    description="Delivery pipeline executions are failing",
                    thresholds=_tiers((1, 1), (0, 1), (0, 1)),
                ),
            ],
            panels=[
                _panel(
                    "Delivery",
                    left=[("SucceededExecutions", "Sum"), ("FailedExecutions", "Sum")],
                ),
            ],
        ),
        RuleFamily(
            kind=HandleKind.ALERT_CHANNEL,
            title="Alert Delivery",
            namespace="AWS/SNS",
            dimensions={"TopicName": "{name}"},
            rules=[
                RuleTemplate(
                    name="failed-notifications",
                    metric="NumberOfNotificationsFailed",
                    description="Alert notifications are not being delivered",
                    thresholds=_tiers((0, 1), (0, 1), (0, 1)),
                ),
            ],
            panels=[
                _panel(
                    "Alert Delivery",
                    left=[("NumberOfMessagesPublished", "Sum"), ("NumberOfNotificationsFailed", "Sum")],
                ),
            ],
        ),
    ],
)
