"""
OTel span event emission helpers for monitoring derivation.

Usage::

    from stackgraph.monitoring.otel import emit_monitoring_derived

    emit_monitoring_derived(monitoring)
"""

from __future__ import annotations

import logging

from stackgraph._otel_helpers import add_span_event
from stackgraph.monitoring.schema import MonitoringConfig

logger = logging.getLogger(__name__)


def emit_monitoring_derived(monitoring: MonitoringConfig) -> None:
    """Emit a summary span event for a derived monitoring configuration.

    Event name: ``monitoring.derived``
    """
    panel_groups = len(monitoring.dashboard.panel_groups) if monitoring.dashboard else 0
    attrs: dict[str, str | int | float | bool] = {
        "monitoring.tier": monitoring.tier.value,
        "monitoring.threshold_rules": len(monitoring.threshold_rules),
        "monitoring.panel_groups": panel_groups,
        "monitoring.log_queries": len(monitoring.log_queries),
        "monitoring.metric_filters": len(monitoring.metric_filters),
        "monitoring.budget": monitoring.budget is not None,
    }

    logger.debug(
        "Monitoring derived: tier=%s rules=%d panel_groups=%d log_queries=%d budget=%s",
        monitoring.tier.value,
        len(monitoring.threshold_rules),
        panel_groups,
        len(monitoring.log_queries),
        monitoring.budget is not None,
    )

    add_span_event("monitoring.derived", attrs)
