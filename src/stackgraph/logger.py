"""
Structured logging for topology events.

Outputs JSON-formatted logs for log pipeline ingestion.  Only the outcome
of each pass is logged; per-node construction detail stays in the span
events emitted by the domain ``otel.py`` modules.

Logged events:
- topology.built
- topology.construction_failed
- monitoring.derived
- validation.issue
- validation.completed

Usage:
    from stackgraph.logger import TopologyLogger

    logger = TopologyLogger(application="storefront")
    logger.log_topology_built(topology)
    logger.log_validation_completed(topology.tier, issues)
"""

from __future__ import annotations

import json
import logging
import sys
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any, Dict, Optional, Sequence

if TYPE_CHECKING:
    from stackgraph.errors import ConstructionError
    from stackgraph.monitoring.schema import MonitoringConfig
    from stackgraph.topology.builder import Topology
    from stackgraph.types import EnvironmentTier
    from stackgraph.validation.validator import ValidationIssue

# Structured event logger, kept apart from the diagnostic module loggers
_event_logger = logging.getLogger("stackgraph.events")
_event_logger.setLevel(logging.INFO)
_event_logger.propagate = False

# stdout carries command output, so events go to stderr
if not _event_logger.handlers:
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter("%(message)s"))
    _event_logger.addHandler(handler)


class TopologyLogger:
    """
    Structured logger for topology events.

    Each log entry includes standard fields for filtering:
    - application, tier
    - event type and event-specific attributes
    """

    def __init__(
        self,
        application: str,
        service_name: str = "stackgraph",
        extra_labels: Optional[Dict[str, str]] = None,
    ):
        """
        Initialize topology logger.

        Args:
            application: Application name (used as a label)
            service_name: Service name for log attribution
            extra_labels: Additional labels for filtering
        """
        self.application = application
        self.service_name = service_name
        self.extra_labels = extra_labels or {}
        self._logger = _event_logger

    def _emit(
        self,
        event: str,
        tier: Optional[str] = None,
        level: str = "info",
        **extra_fields: Any,
    ) -> None:
        """
        Emit a structured log entry.

        Args:
            event: Event type (e.g., "topology.built")
            tier: Environment tier the event belongs to
            level: Log level (info, warn, error)
            **extra_fields: Event-specific fields
        """
        entry: Dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": level,
            "event": event,
            "service": self.service_name,
            "application": self.application,
        }
        if tier:
            entry["tier"] = tier

        entry.update(extra_fields)

        if self.extra_labels:
            entry["labels"] = self.extra_labels

        log_line = json.dumps(entry, default=str)

        if level == "error":
            self._logger.error(log_line)
        elif level == "warn":
            self._logger.warning(log_line)
        else:
            self._logger.info(log_line)

    def log_topology_built(self, topology: Topology) -> None:
        """Log a completed construction pass."""
        self._emit(
            event="topology.built",
            tier=topology.tier.value,
            nodes=topology.node_ids,
            handles=[h.id for h in topology.handles],
            delivery_enabled=topology.flags.enable_delivery,
            monitoring_enabled=topology.flags.enable_monitoring,
        )

    def log_construction_failed(self, tier: str, error: ConstructionError) -> None:
        """Log a construction pass aborted by an inconsistent node table."""
        self._emit(
            event="topology.construction_failed",
            tier=tier,
            level="error",
            error_type=type(error).__name__,
            node_id=error.node_id,
            kind=error.kind.value if error.kind else None,
            message=str(error),
        )

    def log_monitoring_derived(self, monitoring: MonitoringConfig) -> None:
        """Log a derived monitoring configuration."""
        self._emit(
            event="monitoring.derived",
            tier=monitoring.tier.value,
            threshold_rules=len(monitoring.threshold_rules),
            panel_groups=(
                len(monitoring.dashboard.panel_groups) if monitoring.dashboard else 0
            ),
            log_queries=len(monitoring.log_queries),
            budget=monitoring.budget.name if monitoring.budget else None,
        )

    def log_validation_issue(self, tier: str, issue: ValidationIssue) -> None:
        """Log a single validation issue."""
        self._emit(
            event="validation.issue",
            tier=tier,
            level="warn" if issue.is_fatal else "info",
            kind=issue.kind.value,
            severity=issue.severity.value,
            node_id=issue.node_id,
            detail=issue.detail,
        )

    def log_validation_completed(
        self,
        tier: EnvironmentTier,
        issues: Sequence[ValidationIssue],
    ) -> None:
        """Log the outcome of a validation pass."""
        fatal = sum(1 for i in issues if i.is_fatal)
        self._emit(
            event="validation.completed",
            tier=tier.value,
            level="warn" if fatal else "info",
            fatal_count=fatal,
            warning_count=len(issues) - fatal,
            passed=fatal == 0,
        )
