"""
Core enums shared across the topology, monitoring and validation layers.

Using these values everywhere keeps the node table, the monitoring rule
table and the validation pass speaking the same vocabulary.

Example:
    from stackgraph.types import EnvironmentTier, HandleKind

    tier = EnvironmentTier.parse("prod")   # EnvironmentTier.PRODUCTION
    tier.stage                             # "prod"
    HandleKind.COMPUTE_FUNCTION.value      # "compute-function"
"""

from __future__ import annotations

from enum import Enum


class EnvironmentTier(str, Enum):
    """Environment classification driving inclusion and threshold decisions."""

    DEVELOPMENT = "development"
    STAGING = "staging"
    PRODUCTION = "production"

    @property
    def stage(self) -> str:
        """Short identifier used in resource and stack names."""
        return _STAGE_NAMES[self]

    @property
    def is_deployed_tier(self) -> bool:
        """True for tiers that carry delivery and observability nodes."""
        return self in (EnvironmentTier.STAGING, EnvironmentTier.PRODUCTION)

    @classmethod
    def parse(cls, value: str | EnvironmentTier) -> EnvironmentTier:
        """Parse a tier name or its short stage alias (``dev``, ``prod``).

        Raises:
            ValueError: If the value names no tier.
        """
        if isinstance(value, EnvironmentTier):
            return value
        key = str(value).strip().lower()
        for tier in cls:
            if key in (tier.value, tier.stage):
                return tier
        valid = ", ".join(t.value for t in cls)
        raise ValueError(f"Invalid tier: {value!r}. Valid tiers are: {valid}")


_STAGE_NAMES: dict[EnvironmentTier, str] = {
    EnvironmentTier.DEVELOPMENT: "dev",
    EnvironmentTier.STAGING: "staging",
    EnvironmentTier.PRODUCTION: "prod",
}


class HandleKind(str, Enum):
    """Resource family of a handle produced by a stack node.

    Declaration order is significant: it is the order in which required
    inputs are checked and monitoring families are derived.
    """

    EDGE_CACHE = "edge-cache"
    OBJECT_STORE = "object-store"
    COMPUTE_FUNCTION = "compute-function"
    HTTP_ENDPOINT = "http-endpoint"
    KEY_VALUE_TABLE = "key-value-table"
    LOG_GROUP = "log-group"
    PIPELINE = "pipeline"
    ALERT_CHANNEL = "alert-channel"


HANDLE_KIND_ORDER: dict[HandleKind, int] = {kind: i for i, kind in enumerate(HandleKind)}


class Comparator(str, Enum):
    """Threshold comparison direction."""

    GT = "GT"
    LT = "LT"

    def breached(self, actual: float, threshold: float) -> bool:
        if self is Comparator.GT:
            return actual > threshold
        return actual < threshold


class AlertSeverity(str, Enum):
    """Severity attached to a threshold rule or budget notification."""

    INFO = "info"
    WARNING = "warning"
    CRITICAL = "critical"


class IssueKind(str, Enum):
    """Kinds of problems the validation pass reports."""

    MISSING_INPUT = "missing_input"
    DUPLICATE_OUTPUT = "duplicate_output"
    UNRESOLVED_TARGET = "unresolved_target"
    INVALID_THRESHOLD = "invalid_threshold"
    ILLEGAL_BUDGET = "illegal_budget"
    UNUSED_CONFIGURATION = "unused_configuration"


class IssueSeverity(str, Enum):
    """Whether an issue blocks handoff to a provisioning engine."""

    FATAL = "fatal"
    WARNING = "warning"
