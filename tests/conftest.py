"""
Pytest configuration and fixtures for stackgraph tests.
"""

from __future__ import annotations

import os
from typing import Generator

import pytest

from stackgraph.config import StackGraphConfig, reset_config
from stackgraph.monitoring.loader import MonitoringPolicyLoader
from stackgraph.topology.builder import Topology, build
from stackgraph.topology.nodes import BuildFlags
from stackgraph.types import EnvironmentTier


# ============================================================================
# Environment Fixtures
# ============================================================================


@pytest.fixture(autouse=True)
def clean_env(monkeypatch: pytest.MonkeyPatch, tmp_path) -> Generator[None, None, None]:
    """Isolate every test from STACKGRAPH_* variables, .env files and caches."""
    for key in list(os.environ):
        if key.startswith("STACKGRAPH_"):
            monkeypatch.delenv(key, raising=False)
    monkeypatch.chdir(tmp_path)
    reset_config()
    MonitoringPolicyLoader.clear_cache()

    yield

    reset_config()
    MonitoringPolicyLoader.clear_cache()


# ============================================================================
# Model Fixtures
# ============================================================================


@pytest.fixture
def config() -> StackGraphConfig:
    return StackGraphConfig(application_name="storefront")


@pytest.fixture
def dev_topology(config: StackGraphConfig) -> Topology:
    """Development with delivery and monitoring disabled."""
    flags = BuildFlags(enable_delivery=False, enable_monitoring=False)
    return build(EnvironmentTier.DEVELOPMENT, flags, config=config)


@pytest.fixture
def prod_topology(config: StackGraphConfig) -> Topology:
    """Production with every node and an alert email."""
    flags = BuildFlags(alert_email="a@b.com")
    return build(EnvironmentTier.PRODUCTION, flags, config=config)


@pytest.fixture
def staging_topology(config: StackGraphConfig) -> Topology:
    """Staging without observability but with an alert email."""
    flags = BuildFlags(enable_monitoring=False, alert_email="a@b.com")
    return build(EnvironmentTier.STAGING, flags, config=config)
