"""stackgraph CLI - plan, validate and monitoring commands."""

import sys
from typing import Optional

import click
import yaml
from pydantic import ValidationError

from stackgraph.errors import ConstructionError
from stackgraph.monitoring import derive, resolve_policy
from stackgraph.topology import build
from stackgraph.types import EnvironmentTier
from stackgraph.validation import fatal_issues, validate as validate_topology, warning_issues

from ._common import configure_logging, dump, load_config, make_flags, topology_options


def _run(tier: str, no_delivery: bool, no_monitoring: bool, alert_email: Optional[str], policy_path: Optional[str]):
    """Build, derive and validate; exit 2 on construction or load errors."""
    flags = make_flags(no_delivery, no_monitoring, alert_email)
    try:
        config = load_config(policy_path)
    except ValidationError as e:
        click.echo(f"Error: invalid configuration: {e}", err=True)
        sys.exit(2)
    events = configure_logging(config)
    parsed = EnvironmentTier.parse(tier)

    try:
        topology = build(parsed, flags, config=config)
    except ConstructionError as e:
        if events:
            events.log_construction_failed(parsed.value, e)
        click.echo(f"Error: {e}", err=True)
        sys.exit(2)

    try:
        policy = resolve_policy(config)
    except (ValidationError, yaml.YAMLError, TypeError, FileNotFoundError) as e:
        click.echo(f"Error: cannot load monitoring policy: {e}", err=True)
        sys.exit(2)

    monitoring_config = derive(topology, policy=policy, config=config)
    issues = validate_topology(topology, monitoring_config)

    if events:
        events.log_topology_built(topology)
        events.log_monitoring_derived(monitoring_config)
        for issue in issues:
            events.log_validation_issue(parsed.value, issue)
        events.log_validation_completed(parsed, issues)

    return topology, monitoring_config, issues


def _echo_warnings(issues) -> None:
    for issue in warning_issues(issues):
        click.echo(f"warning: {issue.as_line()}", err=True)


@click.command()
@topology_options
@click.option("--format", "output_format", type=click.Choice(["text", "json", "yaml"]), default="text")
def plan(tier: str, no_delivery: bool, no_monitoring: bool, alert_email: Optional[str], policy_path: Optional[str], output_format: str):
    """Build a topology for TIER and print its plan."""
    topology, monitoring_config, issues = _run(tier, no_delivery, no_monitoring, alert_email, policy_path)

    if output_format != "text":
        click.echo(dump({
            "topology": topology.to_dict(),
            "monitoring": monitoring_config.to_dict(),
            "issues": [i.model_dump(mode="json") for i in issues],
        }, output_format))
        return

    click.echo(f"Topology: {topology.application} ({topology.tier.value})")
    click.echo()
    click.echo("Stacks (construction order):")
    for node in topology.nodes:
        click.echo(f"  {node.id:<22} {node.stack_name}  [{len(node.resources)} resources]")
    click.echo()
    click.echo("Handles:")
    for handle in topology.handles:
        click.echo(f"  {handle.kind.value:<18} {handle.name}")
    click.echo()
    click.echo("Monitoring:")
    click.echo(f"  Threshold rules: {len(monitoring_config.threshold_rules)}")
    if monitoring_config.dashboard:
        click.echo(f"  Dashboard: {monitoring_config.dashboard.name} "
                   f"({len(monitoring_config.dashboard.panel_groups)} panel groups)")
    click.echo(f"  Log queries: {len(monitoring_config.log_queries)}")
    if monitoring_config.budget:
        budget = monitoring_config.budget
        click.echo(f"  Budget: {budget.name} {budget.limit_amount:g} {budget.currency} "
                   f"at {', '.join(f'{p:g}%' for p in budget.percentages)}")

    fatal = fatal_issues(issues)
    if fatal:
        click.echo()
        click.echo("Fatal issues:")
        for issue in fatal:
            click.echo(f"  {issue.as_line()}")
    _echo_warnings(issues)


@click.command()
@topology_options
def validate(tier: str, no_delivery: bool, no_monitoring: bool, alert_email: Optional[str], policy_path: Optional[str]):
    """Validate the topology for TIER; exit 1 when fatal issues are found."""
    topology, _, issues = _run(tier, no_delivery, no_monitoring, alert_email, policy_path)
    _echo_warnings(issues)

    fatal = fatal_issues(issues)
    if fatal:
        for issue in fatal:
            click.echo(issue.as_line())
        sys.exit(1)

    click.echo(f"Topology {topology.tier.value} is valid ({len(topology.nodes)} stacks)")


@click.command()
@topology_options
@click.option("--format", "output_format", type=click.Choice(["json", "yaml"]), default="yaml")
def monitoring(tier: str, no_delivery: bool, no_monitoring: bool, alert_email: Optional[str], policy_path: Optional[str], output_format: str):
    """Print the derived monitoring configuration for TIER."""
    _, monitoring_config, issues = _run(tier, no_delivery, no_monitoring, alert_email, policy_path)
    _echo_warnings(issues)
    click.echo(dump(monitoring_config.to_dict(), output_format))
