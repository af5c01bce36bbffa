"""Tests for the stackgraph plan, validate and monitoring commands."""

import json
import textwrap
from unittest.mock import patch

import pytest
import yaml
from click.testing import CliRunner

from stackgraph.cli import main
from stackgraph.cli._common import configure_logging
from stackgraph.config import StackGraphConfig
from stackgraph.errors import MissingDependency
from stackgraph.logger import TopologyLogger
from stackgraph.types import HandleKind


STRICT_POLICY = textwrap.dedent("""\
    families:
      - kind: edge-cache
        title: Edge
        namespace: AWS/CloudFront
        rules:
          - name: rate
            metric: 4xxErrorRate
            unit: Percent
            thresholds:
              development: {value: 10}
              staging: {value: 10}
              production: {value: 150}
""")


@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture
def env():
    return {"STACKGRAPH_APPLICATION_NAME": "storefront"}


class TestPlan:
    def test_text_plan_for_development(self, runner, env):
        result = runner.invoke(main, ["plan", "development", "--no-delivery", "--no-monitoring"], env=env)
        assert result.exit_code == 0, result.output
        assert "Topology: storefront (development)" in result.stdout
        assert "storefront-dev-shared" in result.stdout
        assert "storefront-dev-frontend" in result.stdout
        assert "Threshold rules: 0" in result.stdout
        assert "Budget" not in result.stdout

    def test_text_plan_shows_budget_in_production(self, runner, env):
        result = runner.invoke(main, ["plan", "prod", "--alert-email", "a@b.com"], env=env)
        assert result.exit_code == 0, result.output
        assert "storefront-prod-monitoring" in result.stdout
        assert "Budget: storefront-prod-budget 100 USD at 80%, 100%" in result.stdout

    def test_json_plan(self, runner, env):
        result = runner.invoke(main, ["plan", "production", "--format", "json"], env=env)
        assert result.exit_code == 0, result.output
        data = json.loads(result.stdout)
        assert [n["id"] for n in data["topology"]["nodes"]] == [
            "edge+storage",
            "application-runtime",
            "delivery-pipeline",
            "observability",
        ]
        assert data["monitoring"]["budget"]["alert_thresholds"][0]["percentage"] == 80.0
        assert data["issues"] == []

    def test_yaml_plan_is_deterministic(self, runner, env):
        first = runner.invoke(main, ["plan", "staging", "--format", "yaml"], env=env)
        second = runner.invoke(main, ["plan", "staging", "--format", "yaml"], env=env)
        assert first.exit_code == 0, first.output
        assert first.stdout == second.stdout
        assert yaml.safe_load(first.stdout)["topology"]["tier"] == "staging"

    def test_invalid_tier_is_usage_error(self, runner):
        result = runner.invoke(main, ["plan", "qa"])
        assert result.exit_code == 2
        assert "Invalid value" in result.stderr

    def test_invalid_email_rejected(self, runner):
        result = runner.invoke(main, ["plan", "staging", "--alert-email", "not-an-email"])
        assert result.exit_code == 2
        assert "--alert-email" in result.stderr


class TestValidate:
    def test_valid_topology_exits_zero(self, runner, env):
        result = runner.invoke(main, ["validate", "production", "--alert-email", "a@b.com"], env=env)
        assert result.exit_code == 0, result.output
        assert "Topology production is valid (4 stacks)" in result.stdout

    def test_unused_email_warns_on_stderr(self, runner, env):
        result = runner.invoke(
            main,
            ["validate", "staging", "--no-monitoring", "--alert-email", "a@b.com"],
            env=env,
        )
        assert result.exit_code == 0, result.output
        assert "warning: (unused_configuration, observability, " in result.stderr
        assert "unused_configuration" not in result.stdout

    def test_fatal_issues_exit_one(self, runner, env, tmp_path):
        policy = tmp_path / "strict.yaml"
        policy.write_text(STRICT_POLICY)
        result = runner.invoke(main, ["validate", "prod", "--policy", str(policy)], env=env)
        assert result.exit_code == 1
        assert result.stdout.strip().splitlines() == [
            "(invalid_threshold, edge+storage, rule 'edge-cache.rate': percentage value 150.0 exceeds 100)",
        ]

    @pytest.mark.parametrize("content", [
        "families:\n  - kind: pipeline\n    title: x\n",
        "families: [unclosed\n",
        "- just\n- a list\n",
    ])
    def test_unloadable_policy_exits_two(self, runner, env, tmp_path, content):
        policy = tmp_path / "broken.yaml"
        policy.write_text(content)
        result = runner.invoke(main, ["validate", "prod", "--policy", str(policy)], env=env)
        assert result.exit_code == 2
        assert result.stderr.startswith("Error: cannot load monitoring policy")
        assert result.stdout == ""

    def test_missing_policy_from_env_exits_two(self, runner, env, tmp_path):
        env = {**env, "STACKGRAPH_MONITORING_POLICY_PATH": str(tmp_path / "missing.yaml")}
        result = runner.invoke(main, ["validate", "staging"], env=env)
        assert result.exit_code == 2
        assert "Monitoring policy file not found" in result.stderr

    def test_invalid_setting_exits_two(self, runner, env):
        env = {**env, "STACKGRAPH_BUDGET_LIMIT": "-5"}
        result = runner.invoke(main, ["plan", "prod"], env=env)
        assert result.exit_code == 2
        assert result.stderr.startswith("Error: invalid configuration")

    def test_construction_error_exits_two(self, runner, env):
        error = MissingDependency("delivery-pipeline", HandleKind.COMPUTE_FUNCTION)
        with patch("stackgraph.cli.commands.build", side_effect=error):
            result = runner.invoke(main, ["validate", "staging"], env=env)
        assert result.exit_code == 2
        assert result.stderr.startswith("Error: Node 'delivery-pipeline' requires 'compute-function'")


class TestMonitoring:
    def test_json_output(self, runner, env):
        result = runner.invoke(main, ["monitoring", "production", "--format", "json"], env=env)
        assert result.exit_code == 0, result.output
        data = json.loads(result.stdout)
        assert data["tier"] == "production"
        assert data["dashboard"]["name"] == "storefront-prod"
        assert len(data["log_queries"]) == 4

    def test_yaml_output_for_development(self, runner, env):
        result = runner.invoke(main, ["monitoring", "dev"], env=env)
        assert result.exit_code == 0, result.output
        data = yaml.safe_load(result.stdout)
        assert data["threshold_rules"] == []
        assert data["budget"] is None


class TestLoggingSetup:
    def test_json_format_returns_event_logger(self):
        events = configure_logging(StackGraphConfig(log_format="json"))
        assert isinstance(events, TopologyLogger)
        assert events.application == "nextjs-playground"

    def test_text_format_has_no_event_logger(self):
        assert configure_logging(StackGraphConfig()) is None
