"""
stackgraph - Deployment topologies assembled from one declarative node table.

A topology is a set of stack nodes (edge + storage, application runtime,
delivery pipeline, observability) wired together through typed resource
handles.  The same table builds every environment tier; the tier and a
few flags decide which nodes are included and how they are sized.

Key Features:
- Fail-fast construction with a deterministic topological order
- Monitoring derived from the handle registry (threshold rules,
  dashboards, log queries, production budget)
- A validation pass reporting every issue instead of the first

Example usage:
    from stackgraph import build, derive, validate
    from stackgraph.topology import BuildFlags

    topology = build("staging", BuildFlags(alert_email="ops@example.com"))
    monitoring = derive(topology)
    issues = validate(topology, monitoring)
"""

__version__ = "0.1.0"
__all__ = [
    "build",
    "derive",
    "validate",
    "EnvironmentTier",
    "HandleKind",
    "__version__",
]


# Lazy imports keep ``import stackgraph`` light for the CLI entry point
def __getattr__(name: str):
    if name == "build":
        from stackgraph.topology.builder import build
        return build
    if name == "derive":
        from stackgraph.monitoring.deriver import derive
        return derive
    if name == "validate":
        from stackgraph.validation.validator import validate
        return validate
    if name == "EnvironmentTier":
        from stackgraph.types import EnvironmentTier
        return EnvironmentTier
    if name == "HandleKind":
        from stackgraph.types import HandleKind
        return HandleKind
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
