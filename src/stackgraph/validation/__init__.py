"""
Validation pass over built topologies.

Public API::

    from stackgraph.validation import (
        validate,
        TopologyValidator,
        ValidationIssue,
        fatal_issues,
        is_deployable,
    )
"""

from stackgraph.validation.otel import emit_validation_issue, emit_validation_summary
from stackgraph.validation.validator import (
    TopologyValidator,
    ValidationIssue,
    fatal_issues,
    is_deployable,
    validate,
    warning_issues,
)

__all__ = [
    "TopologyValidator",
    "ValidationIssue",
    "validate",
    "fatal_issues",
    "warning_issues",
    "is_deployable",
    # OTel
    "emit_validation_issue",
    "emit_validation_summary",
]
