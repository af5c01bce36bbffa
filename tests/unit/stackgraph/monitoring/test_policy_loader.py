"""Tests for the monitoring policy model and YAML loader."""

from __future__ import annotations

import textwrap

import pytest
from pydantic import ValidationError

from stackgraph.config import get_config
from stackgraph.monitoring.deriver import derive
from stackgraph.monitoring.loader import MonitoringPolicyLoader, resolve_policy
from stackgraph.monitoring.policy import (
    DEFAULT_MONITORING_POLICY,
    MonitoringPolicy,
    RuleFamily,
    RuleTemplate,
)
from stackgraph.types import AlertSeverity, EnvironmentTier, HandleKind


MINIMAL_YAML = textwrap.dedent("""\
    schema_version: "0.1.0"
    families:
      - kind: compute-function
        title: Rendering Function
        namespace: AWS/Lambda
        dimensions:
          FunctionName: "{name}"
        rules:
          - name: errors
            metric: Errors
            severity: critical
            thresholds:
              development: {value: 1, evaluation_windows: 1}
              staging: {value: 2, evaluation_windows: 1}
              production: {value: 3, evaluation_windows: 2}
""")


# ---------------------------------------------------------------------------
# Schema tests
# ---------------------------------------------------------------------------


class TestPolicySchema:
    def test_default_policy_covers_every_kind(self):
        assert {f.kind for f in DEFAULT_MONITORING_POLICY.families} == set(HandleKind)

    def test_default_error_thresholds_grow_with_tier(self):
        error_rules = [
            rule
            for family in DEFAULT_MONITORING_POLICY.families
            for rule in family.rules
            if "error" in rule.name
        ]
        assert {r.name for r in error_rules} == {"4xx-error-rate", "errors", "5xx-errors", "error-count"}
        for rule in error_rules:
            values = [rule.thresholds[t].value for t in EnvironmentTier]
            windows = [rule.thresholds[t].evaluation_windows for t in EnvironmentTier]
            assert values == sorted(values), rule.name
            assert windows == sorted(windows), rule.name

    def test_edge_error_rate_matches_production_threshold(self):
        rule = DEFAULT_MONITORING_POLICY.family(HandleKind.EDGE_CACHE).rules[0]
        assert rule.thresholds[EnvironmentTier.PRODUCTION].value == 10

    def test_info_severity_rejected(self):
        with pytest.raises(ValidationError, match="warning or critical"):
            RuleTemplate(
                name="errors",
                metric="Errors",
                severity=AlertSeverity.INFO,
                thresholds={t: {"value": 1} for t in EnvironmentTier},
            )

    @pytest.mark.parametrize("namespace,dimensions", [
        ("AWS/Lambda", {"Region": "{region}"}),
        ("{account}/{stage}", {}),
        ("AWS/Lambda", {"FunctionName": "{}"}),
    ])
    def test_unknown_placeholder_rejected(self, namespace, dimensions):
        with pytest.raises(ValidationError, match="unknown placeholder"):
            RuleFamily(
                kind=HandleKind.COMPUTE_FUNCTION,
                title="Function",
                namespace=namespace,
                dimensions=dimensions,
            )

    def test_known_placeholders_accepted(self):
        family = RuleFamily(
            kind=HandleKind.LOG_GROUP,
            title="Logs",
            namespace="{application}/{stage}",
            dimensions={"LogGroup": "{name}"},
        )
        assert family.dimensions == {"LogGroup": "{name}"}

    def test_rule_requires_every_tier(self):
        with pytest.raises(ValidationError, match="no threshold for tier"):
            RuleTemplate(
                name="errors",
                metric="Errors",
                thresholds={EnvironmentTier.PRODUCTION: {"value": 1}},
            )

    def test_duplicate_family_rejected(self):
        family = DEFAULT_MONITORING_POLICY.family(HandleKind.PIPELINE)
        with pytest.raises(ValidationError, match="Duplicate rule family"):
            MonitoringPolicy(families=[family, family])

    def test_unknown_family_returns_none(self):
        assert MonitoringPolicy().family(HandleKind.PIPELINE) is None


# ---------------------------------------------------------------------------
# Loader tests
# ---------------------------------------------------------------------------


class TestLoader:
    def test_load_from_string(self):
        policy = MonitoringPolicyLoader().load_from_string(MINIMAL_YAML)
        rule = policy.family(HandleKind.COMPUTE_FUNCTION).rules[0]
        assert rule.severity is AlertSeverity.CRITICAL
        assert rule.thresholds[EnvironmentTier.PRODUCTION].evaluation_windows == 2

    def test_extra_keys_rejected(self):
        with pytest.raises(ValidationError):
            MonitoringPolicyLoader().load_from_string("families: []\nbogus: 1\n")

    def test_non_mapping_root_rejected(self):
        with pytest.raises(TypeError, match="Expected YAML mapping"):
            MonitoringPolicyLoader().load_from_string("- a\n- b\n")

    def test_load_file_and_cache(self, tmp_path):
        path = tmp_path / "thresholds.yaml"
        path.write_text(MINIMAL_YAML)
        loader = MonitoringPolicyLoader()
        first = loader.load(path)
        path.write_text("families: []\n")
        assert loader.load(path) is first

        MonitoringPolicyLoader.clear_cache()
        assert loader.load(path).families == []

    def test_unknown_placeholder_fails_at_load(self):
        yaml_str = MINIMAL_YAML.replace('FunctionName: "{name}"', 'Region: "{region}"')
        with pytest.raises(ValidationError, match="region"):
            MonitoringPolicyLoader().load_from_string(yaml_str)

    def test_info_severity_fails_at_load(self):
        with pytest.raises(ValidationError):
            MonitoringPolicyLoader().load_from_string(MINIMAL_YAML.replace("severity: critical", "severity: info"))

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            MonitoringPolicyLoader().load(tmp_path / "missing.yaml")


# ---------------------------------------------------------------------------
# Configured policy
# ---------------------------------------------------------------------------


class TestResolvePolicy:
    def test_default_without_path(self):
        assert resolve_policy(get_config()) is DEFAULT_MONITORING_POLICY
        assert resolve_policy(None) is DEFAULT_MONITORING_POLICY

    def test_env_path_drives_derivation(self, tmp_path, monkeypatch, prod_topology):
        path = tmp_path / "thresholds.yaml"
        path.write_text(MINIMAL_YAML)
        monkeypatch.setenv("STACKGRAPH_MONITORING_POLICY_PATH", str(path))

        monitoring = derive(prod_topology, config=get_config())
        assert [r.rule_id for r in monitoring.threshold_rules] == ["compute-function.errors"]
        assert monitoring.threshold_rules[0].value == 3
