"""
OTel span event emission helpers for the validation pass.

Usage::

    from stackgraph.validation.otel import emit_validation_issue, emit_validation_summary

    emit_validation_issue(issue)
    emit_validation_summary(topology.tier, issues)
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Sequence

from stackgraph._otel_helpers import add_span_event
from stackgraph.types import EnvironmentTier, IssueSeverity

if TYPE_CHECKING:
    from stackgraph.validation.validator import ValidationIssue

logger = logging.getLogger(__name__)


def emit_validation_issue(issue: ValidationIssue) -> None:
    """Emit a span event for a single validation issue.

    Event name: ``validation.issue``
    """
    attrs: dict[str, str | int | float | bool] = {
        "validation.kind": issue.kind.value,
        "validation.severity": issue.severity.value,
        "validation.node_id": issue.node_id or "",
        "validation.detail": issue.detail,
    }

    log = logger.warning if issue.severity is IssueSeverity.FATAL else logger.info
    log("Validation issue %s", issue.as_line())

    add_span_event("validation.issue", attrs)


def emit_validation_summary(
    tier: EnvironmentTier, issues: Sequence[ValidationIssue]
) -> None:
    """Emit a summary span event after the validation pass.

    Event name: ``validation.completed``
    """
    fatal = sum(1 for i in issues if i.severity is IssueSeverity.FATAL)
    attrs: dict[str, str | int | float | bool] = {
        "validation.tier": tier.value,
        "validation.fatal_count": fatal,
        "validation.warning_count": len(issues) - fatal,
        "validation.passed": fatal == 0,
    }
    add_span_event("validation.completed", attrs)
