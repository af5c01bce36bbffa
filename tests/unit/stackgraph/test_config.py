"""Tests for stackgraph configuration."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from stackgraph.config import StackGraphConfig, get_config, get_log_level, reset_config


class TestDefaults:
    def test_defaults(self):
        config = StackGraphConfig()
        assert config.application_name == "nextjs-playground"
        assert config.region == "us-east-1"
        assert config.budget_limit == 100.0
        assert config.budget_currency == "USD"
        assert config.get_policy_path() is None

    def test_env_override(self, monkeypatch):
        monkeypatch.setenv("STACKGRAPH_APPLICATION_NAME", "storefront")
        monkeypatch.setenv("STACKGRAPH_BUDGET_LIMIT", "250")
        config = StackGraphConfig()
        assert config.application_name == "storefront"
        assert config.budget_limit == 250.0


class TestValidation:
    @pytest.mark.parametrize("name", ["Storefront", "1shop", "shop_front", ""])
    def test_bad_application_name(self, name):
        with pytest.raises(ValidationError):
            StackGraphConfig(application_name=name)

    def test_non_positive_budget_rejected(self):
        with pytest.raises(ValidationError):
            StackGraphConfig(budget_limit=0)

    def test_currency_uppercased(self):
        assert StackGraphConfig(budget_currency="eur").budget_currency == "EUR"

    def test_policy_path_expanded(self, monkeypatch, tmp_path):
        monkeypatch.setenv("POLICY_DIR", str(tmp_path))
        config = StackGraphConfig(monitoring_policy_path="$POLICY_DIR/thresholds.yaml")
        assert config.get_policy_path() == tmp_path / "thresholds.yaml"


class TestSingleton:
    def test_get_config_is_cached(self):
        assert get_config() is get_config()

    def test_overrides_replace_singleton(self):
        first = get_config()
        second = get_config(log_level="debug")
        assert second is not first
        assert get_log_level() == "debug"

    def test_reset(self):
        first = get_config()
        reset_config()
        assert get_config() is not first
