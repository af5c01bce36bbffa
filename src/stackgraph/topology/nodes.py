"""
Stack node descriptors and instantiated stack nodes.

A ``NodeSpec`` is the static descriptor of a candidate node: which handle
kinds it needs, which it produces, when it is included, and the
constructor that declares its resources.  The builder evaluates
``included_when`` once per build and calls ``construct`` with a
``NodeContext`` restricted to the handles the node asked for.

A ``StackNode`` is the frozen result of that construction.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any, Callable, Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from stackgraph.config import StackGraphConfig
from stackgraph.topology.handles import ResourceHandle
from stackgraph.types import EnvironmentTier, HandleKind

_EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


class BuildFlags(BaseModel):
    """Caller options for a topology build."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    enable_delivery: bool = Field(True, description="Include the delivery pipeline node")
    enable_monitoring: bool = Field(True, description="Include the observability node")
    alert_email: Optional[str] = Field(None, description="Address subscribed to alerts")

    @field_validator("alert_email")
    @classmethod
    def validate_email(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return v
        v = v.strip()
        if not _EMAIL_PATTERN.match(v):
            raise ValueError(f"alert_email is not an email address: {v!r}")
        return v


class TierProfile(BaseModel):
    """Tier-dependent sizing and retention settings for node resources."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    function_memory_mb: int = Field(..., ge=128)
    function_timeout_seconds: int = Field(30, ge=1)
    function_log_retention_days: int = Field(..., ge=1)
    application_log_retention_days: int = Field(..., ge=1)
    log_level: str
    node_env: str
    dead_letter_queue: bool = False
    insights_enabled: bool = False
    api_rate_limit: int = 100
    api_burst_limit: int = 200


class ResourceDeclaration(BaseModel):
    """One resource declared by a stack node."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    logical_id: str = Field(..., min_length=1)
    resource_type: str = Field(..., min_length=1, description="Provider resource type")
    properties: dict[str, Any] = Field(default_factory=dict)


class NodeOutput(BaseModel):
    """What a node constructor returns: its resources and produced handles."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    resources: list[ResourceDeclaration] = Field(default_factory=list)
    outputs: list[ResourceHandle] = Field(default_factory=list)


class StackNode(BaseModel):
    """An instantiated, immutable stack node."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    id: str = Field(..., min_length=1)
    stack_name: str = Field(..., min_length=1)
    description: str = ""
    required_inputs: list[HandleKind] = Field(default_factory=list)
    declared_outputs: list[HandleKind] = Field(default_factory=list)
    resources: list[ResourceDeclaration] = Field(default_factory=list)
    outputs: list[ResourceHandle] = Field(default_factory=list)
    tags: dict[str, str] = Field(default_factory=dict)

    def output(self, kind: HandleKind) -> Optional[ResourceHandle]:
        for handle in self.outputs:
            if handle.kind == kind:
                return handle
        return None

    def resource(self, logical_id: str) -> Optional[ResourceDeclaration]:
        for decl in self.resources:
            if decl.logical_id == logical_id:
                return decl
        return None


@dataclass(frozen=True)
class NodeContext:
    """Read-only construction context handed to a node constructor."""

    node_id: str
    tier: EnvironmentTier
    flags: BuildFlags
    config: StackGraphConfig
    profile: TierProfile
    inputs: Mapping[HandleKind, ResourceHandle]

    @property
    def stage(self) -> str:
        return self.tier.stage

    @property
    def is_production(self) -> bool:
        return self.tier is EnvironmentTier.PRODUCTION

    def resource_name(self, *parts: str) -> str:
        """``{application}-{parts...}-{stage}`` naming used by every node."""
        return "-".join([self.config.application_name, *parts, self.stage])

    def input(self, kind: HandleKind) -> ResourceHandle:
        return self.inputs[kind]

    def handle(self, kind: HandleKind, logical_id: str, name: str) -> ResourceHandle:
        return ResourceHandle(
            kind=kind,
            id=f"{self.node_id}/{logical_id}",
            producing_node=self.node_id,
            name=name,
        )


IncludePredicate = Callable[[EnvironmentTier, BuildFlags], bool]
NodeConstructor = Callable[[NodeContext], NodeOutput]


def always(tier: EnvironmentTier, flags: BuildFlags) -> bool:
    return True


@dataclass(frozen=True)
class NodeSpec:
    """Static descriptor of a candidate stack node."""

    id: str
    stack_suffix: str
    construct: NodeConstructor
    required_inputs: frozenset[HandleKind] = field(default_factory=frozenset)
    declared_outputs: tuple[HandleKind, ...] = ()
    included_when: IncludePredicate = always
    description: str = ""

    def is_included(self, tier: EnvironmentTier, flags: BuildFlags) -> bool:
        return bool(self.included_when(tier, flags))
