"""Shared options and helpers for the stackgraph CLI commands."""

from __future__ import annotations

import json
import logging
import sys
from typing import Any, Callable, Optional

import click
import yaml

from stackgraph.config import StackGraphConfig, get_config
from stackgraph.logger import TopologyLogger
from stackgraph.topology.nodes import BuildFlags
from stackgraph.types import EnvironmentTier

TIER_CHOICES = [t.value for t in EnvironmentTier] + [t.stage for t in EnvironmentTier if t.stage != t.value]

_LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def topology_options(func: Callable) -> Callable:
    """Tier argument and build flags shared by every command."""
    func = click.option(
        "--policy",
        "policy_path",
        type=click.Path(exists=True, dir_okay=False),
        default=None,
        help="YAML file overriding the built-in threshold table",
    )(func)
    func = click.option("--alert-email", default=None, help="Address subscribed to alerts")(func)
    func = click.option("--no-monitoring", is_flag=True, help="Exclude the observability node")(func)
    func = click.option("--no-delivery", is_flag=True, help="Exclude the delivery pipeline node")(func)
    func = click.argument("tier", type=click.Choice(TIER_CHOICES, case_sensitive=False))(func)
    return func


def load_config(policy_path: Optional[str]) -> StackGraphConfig:
    if policy_path:
        return get_config(monitoring_policy_path=policy_path)
    return get_config()


def configure_logging(config: StackGraphConfig) -> Optional[TopologyLogger]:
    """Route diagnostics to stderr; return an event logger in json mode."""
    logging.basicConfig(
        level=getattr(logging, config.log_level.upper()),
        format=_LOG_FORMAT,
        stream=sys.stderr,
    )
    if config.log_format == "json":
        return TopologyLogger(application=config.application_name)
    return None


def make_flags(no_delivery: bool, no_monitoring: bool, alert_email: Optional[str]) -> BuildFlags:
    try:
        return BuildFlags(
            enable_delivery=not no_delivery,
            enable_monitoring=not no_monitoring,
            alert_email=alert_email,
        )
    except ValueError as e:
        raise click.BadParameter(str(e), param_hint="--alert-email") from e


def dump(data: Any, output_format: str) -> str:
    if output_format == "json":
        return json.dumps(data, indent=2)
    return yaml.safe_dump(data, sort_keys=False, default_flow_style=False)
