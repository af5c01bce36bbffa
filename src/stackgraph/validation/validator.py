"""
Validation pass over a built topology and its monitoring configuration.

Walks the finished topology and reports every problem it finds instead of
stopping at the first one.  Checks run in a fixed order:

a. **missing_input**: a node's required kind is absent from the registry.
b. **duplicate_output**: a kind is declared or registered more than once.
c. **unresolved_target**: a threshold rule, panel group or log descriptor
   points at a handle that is not the registry's handle for that kind.
   **invalid_threshold**: negative values, fewer than one evaluation
   window, or a percentage above 100.
d. **illegal_budget**: a budget policy outside production.
e. **unused_configuration**: an alert email with no alert channel to
   deliver to.  This one is a warning and does not block handoff.

Usage::

    from stackgraph.validation import validate, fatal_issues

    issues = validate(topology)
    for issue in fatal_issues(issues):
        print(issue.as_line())
"""

from __future__ import annotations

import logging
from typing import Iterable, Optional

from pydantic import BaseModel, ConfigDict, Field

from stackgraph.monitoring.deriver import derive
from stackgraph.monitoring.schema import MonitoringConfig, ThresholdRule
from stackgraph.topology.builder import Topology
from stackgraph.topology.catalog import OBSERVABILITY
from stackgraph.topology.handles import HandleRegistry, ResourceHandle
from stackgraph.types import EnvironmentTier, HandleKind, IssueKind, IssueSeverity
from stackgraph.validation.otel import emit_validation_issue, emit_validation_summary

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Result model
# ---------------------------------------------------------------------------


class ValidationIssue(BaseModel):
    """A single problem found by the validation pass."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    kind: IssueKind
    severity: IssueSeverity = IssueSeverity.FATAL
    node_id: Optional[str] = Field(None, description="Node the issue is attributed to")
    detail: str = ""

    @property
    def is_fatal(self) -> bool:
        return self.severity is IssueSeverity.FATAL

    def as_line(self) -> str:
        """``(kind, node_id, detail)`` form used by the command line."""
        return f"({self.kind.value}, {self.node_id or '-'}, {self.detail})"


def fatal_issues(issues: Iterable[ValidationIssue]) -> list[ValidationIssue]:
    return [i for i in issues if i.is_fatal]


def warning_issues(issues: Iterable[ValidationIssue]) -> list[ValidationIssue]:
    return [i for i in issues if not i.is_fatal]


def is_deployable(issues: Iterable[ValidationIssue]) -> bool:
    """True when nothing blocks handoff to a provisioning engine."""
    return not fatal_issues(issues)


# ---------------------------------------------------------------------------
# Validator
# ---------------------------------------------------------------------------


class TopologyValidator:
    """Runs every validation check and collects all issues."""

    def validate(
        self,
        topology: Topology,
        monitoring: Optional[MonitoringConfig] = None,
    ) -> list[ValidationIssue]:
        """Validate ``topology`` and its monitoring configuration.

        Args:
            topology: A built topology.
            monitoring: Derived monitoring configuration.  Derived from
                ``topology`` when omitted.

        Returns:
            Every issue found, in check order.  Empty means valid.
        """
        if monitoring is None:
            monitoring = derive(topology)
        registry = topology.registry

        issues: list[ValidationIssue] = []
        issues.extend(self._check_required_inputs(topology, registry))
        issues.extend(self._check_duplicate_outputs(topology))
        issues.extend(self._check_targets(monitoring, registry))
        issues.extend(self._check_threshold_sanity(monitoring))
        issues.extend(self._check_budget(topology, monitoring))
        issues.extend(self._check_unused_configuration(topology, registry))

        for issue in issues:
            emit_validation_issue(issue)

        fatal = len(fatal_issues(issues))
        if fatal:
            logger.warning(
                "Topology %s failed validation: %d fatal, %d warning(s)",
                topology.tier.value,
                fatal,
                len(issues) - fatal,
            )
        elif issues:
            logger.info(
                "Topology %s passed validation with %d warning(s)",
                topology.tier.value,
                len(issues),
            )
        else:
            logger.debug("Topology %s passed validation", topology.tier.value)

        emit_validation_summary(topology.tier, issues)
        return issues

    # ------------------------------------------------------------------
    # (a) referential integrity
    # ------------------------------------------------------------------

    @staticmethod
    def _check_required_inputs(
        topology: Topology, registry: HandleRegistry
    ) -> list[ValidationIssue]:
        issues = []
        for node in topology.nodes:
            for kind in node.required_inputs:
                if kind not in registry:
                    issues.append(
                        ValidationIssue(
                            kind=IssueKind.MISSING_INPUT,
                            node_id=node.id,
                            detail=f"required input '{kind.value}' is not in the registry",
                        )
                    )
        return issues

    # ------------------------------------------------------------------
    # (b) output uniqueness
    # ------------------------------------------------------------------

    @staticmethod
    def _check_duplicate_outputs(topology: Topology) -> list[ValidationIssue]:
        issues = []
        declared_by: dict[HandleKind, str] = {}
        reported: set[HandleKind] = set()
        for node in topology.nodes:
            for kind in node.declared_outputs:
                owner = declared_by.get(kind)
                if owner is not None:
                    reported.add(kind)
                    issues.append(
                        ValidationIssue(
                            kind=IssueKind.DUPLICATE_OUTPUT,
                            node_id=node.id,
                            detail=f"output '{kind.value}' is also declared by '{owner}'",
                        )
                    )
                else:
                    declared_by[kind] = node.id

        # Registered handles can diverge from declarations on a tampered topology.
        registered: dict[HandleKind, ResourceHandle] = {}
        for handle in topology.handles:
            first = registered.get(handle.kind)
            if first is None:
                registered[handle.kind] = handle
                continue
            if handle.kind in reported:
                continue
            issues.append(
                ValidationIssue(
                    kind=IssueKind.DUPLICATE_OUTPUT,
                    node_id=handle.producing_node,
                    detail=(
                        f"handle '{handle.id}' registers '{handle.kind.value}' "
                        f"already held by '{first.id}'"
                    ),
                )
            )
        return issues

    # ------------------------------------------------------------------
    # (c) monitoring targets and threshold sanity
    # ------------------------------------------------------------------

    @staticmethod
    def _unresolved(
        handle: ResourceHandle, registry: HandleRegistry, what: str
    ) -> Optional[ValidationIssue]:
        if registry.resolves(handle):
            return None
        return ValidationIssue(
            kind=IssueKind.UNRESOLVED_TARGET,
            node_id=handle.producing_node,
            detail=f"{what} targets '{handle.id}' which is not in the registry",
        )

    def _check_targets(
        self, monitoring: MonitoringConfig, registry: HandleRegistry
    ) -> list[ValidationIssue]:
        found: list[Optional[ValidationIssue]] = []
        for rule in monitoring.threshold_rules:
            found.append(self._unresolved(rule.target_handle, registry, f"rule '{rule.rule_id}'"))
        if monitoring.dashboard is not None:
            for group in monitoring.dashboard.panel_groups:
                found.append(
                    self._unresolved(group.target_handle, registry, f"panel group '{group.title}'")
                )
        for query in monitoring.log_queries:
            found.append(self._unresolved(query.log_group, registry, f"log query '{query.name}'"))
        for metric_filter in monitoring.metric_filters:
            found.append(
                self._unresolved(metric_filter.log_group, registry, f"metric filter '{metric_filter.name}'")
            )
        return [issue for issue in found if issue is not None]

    @staticmethod
    def _threshold_problem(rule: ThresholdRule) -> Optional[str]:
        if rule.value < 0:
            return f"value {rule.value} is negative"
        if rule.evaluation_windows < 1:
            return f"evaluation_windows {rule.evaluation_windows} is less than 1"
        if rule.unit == "Percent" and rule.value > 100:
            return f"percentage value {rule.value} exceeds 100"
        return None

    def _check_threshold_sanity(self, monitoring: MonitoringConfig) -> list[ValidationIssue]:
        issues = []
        for rule in monitoring.threshold_rules:
            problem = self._threshold_problem(rule)
            if problem:
                issues.append(
                    ValidationIssue(
                        kind=IssueKind.INVALID_THRESHOLD,
                        node_id=rule.target_handle.producing_node,
                        detail=f"rule '{rule.rule_id}': {problem}",
                    )
                )
        return issues

    # ------------------------------------------------------------------
    # (d) tier legality
    # ------------------------------------------------------------------

    @staticmethod
    def _check_budget(
        topology: Topology, monitoring: MonitoringConfig
    ) -> list[ValidationIssue]:
        if monitoring.budget is None or topology.tier is EnvironmentTier.PRODUCTION:
            return []
        return [
            ValidationIssue(
                kind=IssueKind.ILLEGAL_BUDGET,
                detail=(
                    f"budget '{monitoring.budget.name}' is only allowed in production, "
                    f"topology tier is {topology.tier.value}"
                ),
            )
        ]

    # ------------------------------------------------------------------
    # (e) caller usability
    # ------------------------------------------------------------------

    @staticmethod
    def _check_unused_configuration(
        topology: Topology, registry: HandleRegistry
    ) -> list[ValidationIssue]:
        email = topology.flags.alert_email
        if not email or HandleKind.ALERT_CHANNEL in registry:
            return []
        return [
            ValidationIssue(
                kind=IssueKind.UNUSED_CONFIGURATION,
                severity=IssueSeverity.WARNING,
                node_id=OBSERVABILITY,
                detail=(
                    f"alert_email '{email}' is ignored: {OBSERVABILITY} is not "
                    f"included for {topology.tier.value}"
                ),
            )
        ]


def validate(
    topology: Topology,
    monitoring: Optional[MonitoringConfig] = None,
) -> list[ValidationIssue]:
    """Validate ``topology`` (see ``TopologyValidator.validate``)."""
    return TopologyValidator().validate(topology, monitoring)
