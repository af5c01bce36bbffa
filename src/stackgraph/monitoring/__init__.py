"""
Monitoring derivation: threshold rules, dashboards, log queries, budget.

Public API::

    from stackgraph.monitoring import (
        # Deriver
        MonitoringDeriver,
        derive,
        # Policy
        MonitoringPolicy,
        MonitoringPolicyLoader,
        DEFAULT_MONITORING_POLICY,
        # Output models
        MonitoringConfig,
        ThresholdRule,
        BudgetPolicy,
    )
"""

from stackgraph.monitoring.deriver import BUDGET_THRESHOLDS, MonitoringDeriver, derive
from stackgraph.monitoring.loader import MonitoringPolicyLoader, resolve_policy
from stackgraph.monitoring.otel import emit_monitoring_derived
from stackgraph.monitoring.policy import (
    DEFAULT_MONITORING_POLICY,
    MonitoringPolicy,
    PanelMetric,
    PanelTemplate,
    RuleFamily,
    RuleTemplate,
    TierThreshold,
)
from stackgraph.monitoring.schema import (
    BudgetPolicy,
    BudgetThreshold,
    DashboardDescriptor,
    LogQueryDescriptor,
    MetricFilterDescriptor,
    MetricRef,
    MonitoringConfig,
    Panel,
    PanelGroup,
    ThresholdRule,
)

__all__ = [
    # Deriver
    "MonitoringDeriver",
    "derive",
    "BUDGET_THRESHOLDS",
    # Policy
    "MonitoringPolicy",
    "RuleFamily",
    "RuleTemplate",
    "TierThreshold",
    "PanelTemplate",
    "PanelMetric",
    "DEFAULT_MONITORING_POLICY",
    "MonitoringPolicyLoader",
    "resolve_policy",
    # Output models
    "MonitoringConfig",
    "ThresholdRule",
    "MetricRef",
    "Panel",
    "PanelGroup",
    "DashboardDescriptor",
    "LogQueryDescriptor",
    "MetricFilterDescriptor",
    "BudgetPolicy",
    "BudgetThreshold",
    # OTel
    "emit_monitoring_derived",
]
