"""
Monitoring deriver: threshold rules, dashboards, log queries and budget.

Reads the handle registry of a built topology and applies the per-kind
rule table of a ``MonitoringPolicy``:

- **Threshold rules and dashboard**: only when an alert channel exists
  (the observability node is included).  Each rule targets the registry
  handle it watches and routes to the channel.  One panel group per
  monitored kind; every metric a rule watches is plotted in its group.
- **Log queries and metric filters**: bound to the application log
  handle: error extraction, latency percentiles, request volume and
  cold starts, plus ErrorCount/WarningCount/ResponseTime filters.
- **Budget policy**: production only, 80% actual / 100% forecasted.

The output depends only on the topology, the policy and the config.  The
clock is never read; ``generated_at`` is recorded only when supplied.

Usage::

    from stackgraph.monitoring.deriver import derive

    monitoring = derive(topology)
    for rule in monitoring.threshold_rules:
        print(rule.alarm_name, rule.comparator.value, rule.value)
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Optional

from stackgraph.config import StackGraphConfig, get_config
from stackgraph.monitoring.loader import resolve_policy
from stackgraph.monitoring.otel import emit_monitoring_derived
from stackgraph.monitoring.policy import MonitoringPolicy, RuleFamily
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
from stackgraph.topology.builder import Topology
from stackgraph.topology.handles import ResourceHandle
from stackgraph.types import HANDLE_KIND_ORDER, AlertSeverity, EnvironmentTier, HandleKind

logger = logging.getLogger(__name__)

BUDGET_THRESHOLDS: tuple[BudgetThreshold, ...] = (
    BudgetThreshold(percentage=80.0, notification_type="actual", severity=AlertSeverity.INFO),
    BudgetThreshold(percentage=100.0, notification_type="forecasted", severity=AlertSeverity.CRITICAL),
)

# (name suffix, category, query template, parameters)
_LOG_QUERIES: tuple[tuple[str, str, str, dict[str, str | int]], ...] = (
    (
        "errors",
        "errors",
        "fields @timestamp, @message, @requestId\n"
        "| filter @message like /ERROR/\n"
        "| sort @timestamp desc\n"
        "| limit {limit}",
        {"limit": 100},
    ),
    (
        "latency",
        "latency",
        "fields @timestamp, @duration\n"
        '| filter @type = "REPORT"\n'
        "| stats pct(@duration, 50) as p50, pct(@duration, 90) as p90, "
        "pct(@duration, 99) as p99 by bin({bin})\n"
        "| sort @timestamp desc",
        {"bin": "5m"},
    ),
    (
        "requests",
        "request_volume",
        "fields @timestamp, @requestId\n"
        '| filter @type = "START"\n'
        "| stats count() as requests by bin({bin})\n"
        "| sort @timestamp desc",
        {"bin": "1h"},
    ),
    (
        "coldstarts",
        "cold_starts",
        "fields @timestamp, @initDuration\n"
        '| filter @type = "REPORT" and @initDuration > 0\n'
        "| stats count() as coldStarts, avg(@initDuration) as avgInitDuration by bin({bin})\n"
        "| sort @timestamp desc",
        {"bin": "1h"},
    ),
)

# (metric name, filter pattern, metric value)
_METRIC_FILTERS: tuple[tuple[str, str, str], ...] = (
    ("ErrorCount", '[timestamp, requestId, level="ERROR", ...]', "1"),
    ("WarningCount", '[timestamp, requestId, level="WARN", ...]', "1"),
    ("ResponseTime", "[timestamp, requestId, level, message, duration]", "$duration"),
)


class MonitoringDeriver:
    """Derives a ``MonitoringConfig`` from a topology's handle registry.

    Args:
        policy: Rule table to apply; defaults to the configured policy.
        config: Budget and naming configuration; defaults to ``get_config()``.
    """

    def __init__(
        self,
        policy: Optional[MonitoringPolicy] = None,
        config: Optional[StackGraphConfig] = None,
    ) -> None:
        self._config = config if config is not None else get_config()
        self._policy = policy if policy is not None else resolve_policy(self._config)

    @property
    def policy(self) -> MonitoringPolicy:
        return self._policy

    def derive(
        self,
        topology: Topology,
        generated_at: Optional[datetime] = None,
    ) -> MonitoringConfig:
        registry = topology.registry
        handles = sorted(registry.handles(), key=lambda h: HANDLE_KIND_ORDER[h.kind])
        channel = registry.get(HandleKind.ALERT_CHANNEL)
        email = topology.flags.alert_email

        rules: list[ThresholdRule] = []
        dashboard: Optional[DashboardDescriptor] = None
        if channel is not None:
            groups: list[PanelGroup] = []
            for handle in handles:
                family = self._policy.family(handle.kind)
                if family is None:
                    continue
                family_rules = self._rules_for(topology, family, handle, channel)
                rules.extend(family_rules)
                group = self._panel_group(topology, family, handle, family_rules)
                if group is not None:
                    groups.append(group)
            dashboard = DashboardDescriptor(
                name=f"{topology.application}-{topology.stage}",
                panel_groups=groups,
            )
        else:
            logger.debug(
                "No alert channel in %s topology; skipping threshold rules and dashboard",
                topology.tier.value,
            )

        log_group = registry.get(HandleKind.LOG_GROUP)
        log_queries: list[LogQueryDescriptor] = []
        metric_filters: list[MetricFilterDescriptor] = []
        if log_group is not None:
            log_queries = self._log_queries(topology, log_group)
            metric_filters = self._metric_filters(topology, log_group)

        budget = None
        if topology.tier is EnvironmentTier.PRODUCTION:
            budget = self._budget(topology)

        monitoring = MonitoringConfig(
            tier=topology.tier,
            threshold_rules=rules,
            dashboard=dashboard,
            log_queries=log_queries,
            metric_filters=metric_filters,
            budget=budget,
            alert_subscriptions=[email] if email and channel is not None else [],
            generated_at=generated_at,
        )
        emit_monitoring_derived(monitoring)
        return monitoring

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _format_values(topology: Topology, handle: ResourceHandle) -> dict[str, str]:
        return {
            "name": handle.name,
            "stage": topology.stage,
            "application": topology.application,
        }

    def _rules_for(
        self,
        topology: Topology,
        family: RuleFamily,
        handle: ResourceHandle,
        channel: ResourceHandle,
    ) -> list[ThresholdRule]:
        values = self._format_values(topology, handle)
        namespace = family.namespace.format(**values)
        dimensions = {k: v.format(**values) for k, v in family.dimensions.items()}

        rules = []
        for template in family.rules:
            threshold = template.thresholds[topology.tier]
            rules.append(
                ThresholdRule(
                    rule_id=f"{handle.kind.value}.{template.name}",
                    alarm_name=(
                        f"{topology.application}-{handle.kind.value}-"
                        f"{template.name}-{topology.stage}"
                    ),
                    target_handle=handle,
                    metric=template.metric,
                    namespace=namespace,
                    dimensions=dimensions,
                    statistic=template.statistic,
                    period_seconds=template.period_seconds,
                    comparator=template.comparator,
                    value=threshold.value,
                    evaluation_windows=threshold.evaluation_windows,
                    severity=template.severity,
                    unit=template.unit,
                    description=template.description,
                    actions=[channel.id],
                )
            )
        return rules

    def _panel_group(
        self,
        topology: Topology,
        family: RuleFamily,
        handle: ResourceHandle,
        rules: list[ThresholdRule],
    ) -> Optional[PanelGroup]:
        values = self._format_values(topology, handle)
        namespace = family.namespace.format(**values)
        dimensions = {k: v.format(**values) for k, v in family.dimensions.items()}

        def ref(metric: str, statistic: str) -> MetricRef:
            return MetricRef(
                namespace=namespace,
                metric_name=metric,
                dimensions=dimensions,
                statistic=statistic,
            )

        panels = [
            Panel(
                title=template.title,
                left=[ref(m.metric, m.statistic) for m in template.left],
                right=[ref(m.metric, m.statistic) for m in template.right],
            )
            for template in family.panels
        ]

        plotted = {m.key for panel in panels for m in panel.metrics}
        unplotted = [r.metric_ref for r in rules if r.metric_ref.key not in plotted]
        if unplotted:
            panels.append(Panel(title=f"{family.title} Alarms", left=unplotted))

        if not panels:
            return None
        return PanelGroup(
            kind=handle.kind,
            title=family.title,
            target_handle=handle,
            panels=panels,
        )

    @staticmethod
    def _log_queries(topology: Topology, log_group: ResourceHandle) -> list[LogQueryDescriptor]:
        return [
            LogQueryDescriptor(
                name=f"{topology.application}-{topology.stage}-{suffix}",
                category=category,
                query=template.format(**parameters),
                log_group=log_group,
                parameters=dict(parameters),
            )
            for suffix, category, template, parameters in _LOG_QUERIES
        ]

    @staticmethod
    def _metric_filters(
        topology: Topology, log_group: ResourceHandle
    ) -> list[MetricFilterDescriptor]:
        namespace = f"{topology.application}/{topology.stage}"
        return [
            MetricFilterDescriptor(
                name=f"{metric}Filter",
                log_group=log_group,
                namespace=namespace,
                metric_name=metric,
                filter_pattern=pattern,
                metric_value=value,
            )
            for metric, pattern, value in _METRIC_FILTERS
        ]

    def _budget(self, topology: Topology) -> BudgetPolicy:
        email = topology.flags.alert_email
        return BudgetPolicy(
            name=f"{topology.application}-{topology.stage}-budget",
            limit_amount=self._config.budget_limit,
            currency=self._config.budget_currency,
            time_unit="monthly",
            alert_thresholds=list(BUDGET_THRESHOLDS),
            subscribers=[email] if email else [],
            cost_filters={"tag:Project": [topology.application]},
        )


def derive(
    topology: Topology,
    policy: Optional[MonitoringPolicy] = None,
    generated_at: Optional[datetime] = None,
    config: Optional[StackGraphConfig] = None,
) -> MonitoringConfig:
    """Derive the monitoring configuration for ``topology``."""
    return MonitoringDeriver(policy=policy, config=config).derive(topology, generated_at)
