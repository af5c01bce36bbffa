"""
stackgraph CLI - Plan, validate and inspect deployment topologies.

Commands:
    stackgraph plan         Build a topology and print its plan
    stackgraph validate     Validate a topology; exit 1 on fatal issues
    stackgraph monitoring   Print the derived monitoring configuration
"""

import click

from .commands import monitoring, plan, validate


@click.group()
@click.version_option(package_name="stackgraph")
def main():
    """stackgraph - Deployment topologies from one node table."""
    pass


main.add_command(plan)
main.add_command(validate)
main.add_command(monitoring)


if __name__ == "__main__":
    main()
