"""
Tests for TopologyLogger - structured logging for topology events.
"""

import json
import logging
from io import StringIO

import pytest

from stackgraph.errors import CycleDetected
from stackgraph.logger import TopologyLogger
from stackgraph.monitoring.deriver import derive
from stackgraph.types import EnvironmentTier
from stackgraph.validation.validator import validate


@pytest.fixture
def captured_logs():
    """Capture log output for testing."""
    return StringIO()


@pytest.fixture
def logger(captured_logs):
    """Create a TopologyLogger that writes to captured output."""
    logger = TopologyLogger(application="storefront", service_name="test-service")
    event_logger = logging.getLogger("stackgraph.events")

    original = list(event_logger.handlers)
    event_logger.handlers.clear()
    handler = logging.StreamHandler(captured_logs)
    handler.setFormatter(logging.Formatter("%(message)s"))
    event_logger.addHandler(handler)

    yield logger

    event_logger.handlers[:] = original


def parse_log_lines(captured_logs) -> list:
    captured_logs.seek(0)
    return [json.loads(line) for line in captured_logs.read().splitlines() if line]


def parse_log_line(captured_logs) -> dict:
    """Parse the last JSON log line."""
    lines = parse_log_lines(captured_logs)
    return lines[-1] if lines else {}


class TestTopologyBuiltLogs:
    def test_log_topology_built(self, logger, captured_logs, prod_topology):
        logger.log_topology_built(prod_topology)

        log = parse_log_line(captured_logs)
        assert log["event"] == "topology.built"
        assert log["level"] == "info"
        assert log["tier"] == "production"
        assert log["application"] == "storefront"
        assert log["service"] == "test-service"
        assert log["nodes"] == prod_topology.node_ids
        assert "edge+storage/assets-bucket" in log["handles"]
        assert "timestamp" in log

    def test_log_construction_failed(self, logger, captured_logs):
        logger.log_construction_failed("staging", CycleDetected(["a", "b"]))

        log = parse_log_line(captured_logs)
        assert log["event"] == "topology.construction_failed"
        assert log["level"] == "error"
        assert log["error_type"] == "CycleDetected"
        assert log["node_id"] == "a"
        assert log["kind"] is None


class TestMonitoringLogs:
    def test_log_monitoring_derived(self, logger, captured_logs, prod_topology):
        logger.log_monitoring_derived(derive(prod_topology))

        log = parse_log_line(captured_logs)
        assert log["event"] == "monitoring.derived"
        assert log["threshold_rules"] > 0
        assert log["log_queries"] == 4
        assert log["budget"] == "storefront-prod-budget"


class TestValidationLogs:
    def test_issue_and_summary(self, logger, captured_logs, staging_topology):
        issues = validate(staging_topology)
        for issue in issues:
            logger.log_validation_issue(staging_topology.tier.value, issue)
        logger.log_validation_completed(staging_topology.tier, issues)

        issue_log, summary = parse_log_lines(captured_logs)
        assert issue_log["event"] == "validation.issue"
        assert issue_log["kind"] == "unused_configuration"
        assert issue_log["severity"] == "warning"
        assert issue_log["level"] == "info"
        assert summary["event"] == "validation.completed"
        assert summary["passed"] is True
        assert summary["warning_count"] == 1

    def test_extra_labels(self, captured_logs, logger):
        labelled = TopologyLogger(application="storefront", extra_labels={"team": "web"})
        labelled.log_validation_completed(EnvironmentTier.DEVELOPMENT, [])

        log = parse_log_line(captured_logs)
        assert log["labels"] == {"team": "web"}
        assert log["fatal_count"] == 0
