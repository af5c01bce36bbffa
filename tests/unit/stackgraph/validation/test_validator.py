"""Tests for the topology validation pass."""

from __future__ import annotations

from unittest.mock import MagicMock, patch

import pytest

from stackgraph.monitoring.deriver import derive
from stackgraph.topology.builder import build
from stackgraph.topology.catalog import APPLICATION_RUNTIME, DELIVERY_PIPELINE, OBSERVABILITY
from stackgraph.topology.handles import ResourceHandle
from stackgraph.topology.nodes import BuildFlags, StackNode
from stackgraph.types import HandleKind, IssueKind, IssueSeverity
from stackgraph.validation.validator import (
    TopologyValidator,
    ValidationIssue,
    fatal_issues,
    is_deployable,
    validate,
    warning_issues,
)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _without_handle(topology, kind: HandleKind):
    return topology.model_copy(update={"handles": [h for h in topology.handles if h.kind != kind]})


def _with_rule_update(monitoring, rule_id: str, **changes):
    rules = [
        r.model_copy(update=changes) if r.rule_id == rule_id else r
        for r in monitoring.threshold_rules
    ]
    return monitoring.model_copy(update={"threshold_rules": rules})


# ---------------------------------------------------------------------------
# Scenarios
# ---------------------------------------------------------------------------


class TestScenarios:
    def test_development_is_clean(self, dev_topology):
        assert validate(dev_topology) == []

    def test_production_is_clean(self, prod_topology):
        issues = validate(prod_topology)
        assert fatal_issues(issues) == []
        assert not any(i.kind is IssueKind.UNUSED_CONFIGURATION for i in issues)

    def test_staging_email_without_observability_warns_once(self, staging_topology):
        issues = validate(staging_topology)
        assert fatal_issues(issues) == []
        assert len(issues) == 1
        warning = issues[0]
        assert warning.kind is IssueKind.UNUSED_CONFIGURATION
        assert warning.severity is IssueSeverity.WARNING
        assert warning.node_id == OBSERVABILITY
        assert "a@b.com" in warning.detail
        assert is_deployable(issues)

    def test_development_email_warns(self, config):
        topology = build("development", BuildFlags(alert_email="a@b.com"), config=config)
        assert [i.kind for i in validate(topology)] == [IssueKind.UNUSED_CONFIGURATION]


# ---------------------------------------------------------------------------
# Fatal checks on tampered topologies
# ---------------------------------------------------------------------------


class TestFatalChecks:
    def test_missing_input(self, dev_topology):
        tampered = _without_handle(dev_topology, HandleKind.OBJECT_STORE)
        issues = validate(tampered)
        assert [(i.kind, i.node_id) for i in issues] == [
            (IssueKind.MISSING_INPUT, APPLICATION_RUNTIME),
        ]
        assert not is_deployable(issues)

    def test_duplicate_declared_output(self, dev_topology):
        rogue = StackNode(
            id="rogue",
            stack_name="storefront-dev-rogue",
            declared_outputs=[HandleKind.EDGE_CACHE],
        )
        tampered = dev_topology.model_copy(update={"nodes": [*dev_topology.nodes, rogue]})
        issues = validate(tampered)
        assert [(i.kind, i.node_id) for i in issues] == [(IssueKind.DUPLICATE_OUTPUT, "rogue")]
        assert "edge+storage" in issues[0].detail

    def test_duplicate_registered_handle(self, dev_topology):
        extra = ResourceHandle(
            kind=HandleKind.EDGE_CACHE,
            id="rogue/distribution",
            producing_node="rogue",
            name="rogue-distribution",
        )
        tampered = dev_topology.model_copy(update={"handles": [*dev_topology.handles, extra]})
        issues = validate(tampered)
        assert [(i.kind, i.node_id) for i in issues] == [(IssueKind.DUPLICATE_OUTPUT, "rogue")]

    def test_unresolved_target(self, prod_topology):
        monitoring = derive(prod_topology)
        tampered = _without_handle(prod_topology, HandleKind.PIPELINE)
        issues = validate(tampered, monitoring)
        assert {i.kind for i in issues} == {IssueKind.UNRESOLVED_TARGET}
        assert {i.node_id for i in issues} == {DELIVERY_PIPELINE}
        assert any("pipeline.failed-executions" in i.detail for i in issues)

    def test_renamed_target_does_not_resolve(self, prod_topology):
        monitoring = derive(prod_topology)
        renamed = [
            h.model_copy(update={"name": "renamed"}) if h.kind is HandleKind.COMPUTE_FUNCTION else h
            for h in prod_topology.handles
        ]
        tampered = prod_topology.model_copy(update={"handles": renamed})
        issues = validate(tampered, monitoring)
        assert IssueKind.UNRESOLVED_TARGET in {i.kind for i in issues}

    @pytest.mark.parametrize("rule_id,changes,fragment", [
        ("compute-function.errors", {"value": -1}, "negative"),
        ("compute-function.errors", {"evaluation_windows": 0}, "less than 1"),
        ("edge-cache.4xx-error-rate", {"value": 150}, "exceeds 100"),
    ])
    def test_invalid_threshold(self, prod_topology, rule_id, changes, fragment):
        monitoring = _with_rule_update(derive(prod_topology), rule_id, **changes)
        issues = validate(prod_topology, monitoring)
        assert len(issues) == 1
        assert issues[0].kind is IssueKind.INVALID_THRESHOLD
        assert rule_id in issues[0].detail
        assert fragment in issues[0].detail

    def test_illegal_budget(self, config, prod_topology):
        staging = build("staging", config=config)
        monitoring = derive(staging).model_copy(update={"budget": derive(prod_topology).budget})
        issues = validate(staging, monitoring)
        assert [i.kind for i in issues] == [IssueKind.ILLEGAL_BUDGET]
        assert issues[0].as_line().startswith("(illegal_budget, -, ")

    def test_all_issues_collected(self, prod_topology):
        monitoring = _with_rule_update(derive(prod_topology), "compute-function.errors", value=-5)
        tampered = _without_handle(prod_topology, HandleKind.OBJECT_STORE)
        kinds = [i.kind for i in validate(tampered, monitoring)]
        assert kinds == [IssueKind.MISSING_INPUT, IssueKind.UNRESOLVED_TARGET, IssueKind.INVALID_THRESHOLD]


# ---------------------------------------------------------------------------
# Issue model and helpers
# ---------------------------------------------------------------------------


class TestValidationIssue:
    def test_as_line(self):
        issue = ValidationIssue(
            kind=IssueKind.MISSING_INPUT,
            node_id="observability",
            detail="required input 'edge-cache' is not in the registry",
        )
        assert issue.as_line() == (
            "(missing_input, observability, required input 'edge-cache' is not in the registry)"
        )

    def test_default_severity_is_fatal(self):
        assert ValidationIssue(kind=IssueKind.ILLEGAL_BUDGET).is_fatal

    def test_partition_helpers(self):
        fatal = ValidationIssue(kind=IssueKind.MISSING_INPUT, node_id="a")
        warning = ValidationIssue(
            kind=IssueKind.UNUSED_CONFIGURATION, severity=IssueSeverity.WARNING, node_id="b"
        )
        assert fatal_issues([fatal, warning]) == [fatal]
        assert warning_issues([fatal, warning]) == [warning]
        assert not is_deployable([fatal, warning])
        assert is_deployable([warning])


class TestOTel:
    def test_issue_and_summary_events(self, staging_topology):
        span = MagicMock()
        span.is_recording.return_value = True
        with patch("stackgraph._otel_helpers.otel_trace.get_current_span", return_value=span):
            TopologyValidator().validate(staging_topology)
        names = [c.kwargs["name"] for c in span.add_event.call_args_list]
        assert names[-2:] == ["validation.issue", "validation.completed"]
        summary = span.add_event.call_args_list[-1].kwargs["attributes"]
        assert summary["validation.passed"] is True
        assert summary["validation.warning_count"] == 1
