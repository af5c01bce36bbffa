"""
Topology builder: decides which stack nodes exist and wires them together.

The builder runs a single construction pass:

1. Evaluate every descriptor's ``included_when`` for the tier and flags.
2. Check the included set is consistent (unique outputs, every required
   input has a producer) and fail fast with the offending node and kind.
3. Order the included nodes topologically; ties keep table order.
4. Construct each node with a read-only view of the handles it requires
   and register the handles it produced.

No external calls are made; the result is an in-memory ``Topology``.

Usage::

    from stackgraph.topology.builder import build
    from stackgraph.topology.nodes import BuildFlags
    from stackgraph.types import EnvironmentTier

    topology = build(EnvironmentTier.STAGING, BuildFlags(alert_email="ops@example.com"))
    topology.node_ids  # ['edge+storage', 'application-runtime', ...]
"""

from __future__ import annotations

import logging
from typing import Any, Optional, Sequence

from pydantic import BaseModel, ConfigDict, Field

from stackgraph.config import StackGraphConfig, get_config
from stackgraph.errors import (
    CycleDetected,
    DuplicateOutput,
    MissingDependency,
    UndeclaredOutput,
)
from stackgraph.topology.catalog import DEFAULT_NODE_TABLE, TIER_PROFILES
from stackgraph.topology.handles import HandleRegistry, ResourceHandle
from stackgraph.topology.nodes import BuildFlags, NodeContext, NodeSpec, StackNode
from stackgraph.topology.otel import emit_topology_built
from stackgraph.types import HANDLE_KIND_ORDER, EnvironmentTier, HandleKind

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Result model
# ---------------------------------------------------------------------------


class Topology(BaseModel):
    """The constructed, ordered graph of included nodes plus their handles."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    application: str = Field(..., min_length=1)
    tier: EnvironmentTier
    flags: BuildFlags = Field(default_factory=BuildFlags)
    nodes: list[StackNode] = Field(default_factory=list, description="Construction order")
    handles: list[ResourceHandle] = Field(
        default_factory=list, description="Registry contents in production order"
    )

    @property
    def stage(self) -> str:
        return self.tier.stage

    @property
    def registry(self) -> HandleRegistry:
        """Frozen registry view over ``handles``."""
        registry = HandleRegistry()
        for handle in self.handles:
            if handle.kind in registry:
                logger.debug(
                    "Skipping handle %s: %s already held by %s",
                    handle.id,
                    handle.kind.value,
                    registry.require(handle.kind).id,
                )
                continue
            registry.register(handle)
        registry.freeze()
        return registry

    @property
    def node_ids(self) -> list[str]:
        return [node.id for node in self.nodes]

    def has_node(self, node_id: str) -> bool:
        return any(node.id == node_id for node in self.nodes)

    def get_node(self, node_id: str) -> Optional[StackNode]:
        for node in self.nodes:
            if node.id == node_id:
                return node
        return None

    def to_dict(self) -> dict[str, Any]:
        return self.model_dump(mode="json")


# ---------------------------------------------------------------------------
# Ordering
# ---------------------------------------------------------------------------


def _sort_kinds(kinds) -> list[HandleKind]:
    return sorted(kinds, key=HANDLE_KIND_ORDER.__getitem__)


def _index_producers(specs: Sequence[NodeSpec]) -> dict[HandleKind, str]:
    """Map each output kind to its single producer, rejecting duplicates."""
    producers: dict[HandleKind, str] = {}
    for spec in specs:
        for kind in spec.declared_outputs:
            existing = producers.get(kind)
            if existing is not None:
                raise DuplicateOutput(spec.id, kind, existing)
            producers[kind] = spec.id
    return producers


def _check_dependencies(
    specs: Sequence[NodeSpec], producers: dict[HandleKind, str]
) -> None:
    for spec in specs:
        for kind in _sort_kinds(spec.required_inputs):
            if kind not in producers:
                raise MissingDependency(spec.id, kind)


def topological_order(specs: Sequence[NodeSpec]) -> list[NodeSpec]:
    """Order ``specs`` so every producer precedes its consumers.

    Kahn's algorithm; among ready nodes the one declared first wins, so the
    result is deterministic for a given table.

    Raises:
        DuplicateOutput: Two specs declare the same output kind.
        MissingDependency: A required kind has no producer in ``specs``.
        CycleDetected: The derived dependency graph is cyclic.
    """
    producers = _index_producers(specs)
    _check_dependencies(specs, producers)

    position = {spec.id: i for i, spec in enumerate(specs)}
    by_id = {spec.id: spec for spec in specs}
    dependencies: dict[str, set[str]] = {
        spec.id: {producers[kind] for kind in spec.required_inputs} - {spec.id}
        for spec in specs
    }
    self_dependent = [
        spec.id for spec in specs
        if any(producers[kind] == spec.id for kind in spec.required_inputs)
    ]
    if self_dependent:
        raise CycleDetected(self_dependent)

    ordered: list[NodeSpec] = []
    placed: set[str] = set()
    while len(ordered) < len(specs):
        ready = [
            node_id for node_id, deps in dependencies.items()
            if node_id not in placed and deps <= placed
        ]
        if not ready:
            remaining = sorted(
                (node_id for node_id in dependencies if node_id not in placed),
                key=position.__getitem__,
            )
            raise CycleDetected(remaining)
        chosen = min(ready, key=position.__getitem__)
        placed.add(chosen)
        ordered.append(by_id[chosen])
    return ordered


# ---------------------------------------------------------------------------
# Builder
# ---------------------------------------------------------------------------


class TopologyBuilder:
    """Builds topologies from a node table.

    Args:
        node_table: Ordered candidate node descriptors.
        config: Naming and sizing configuration; defaults to ``get_config()``.
    """

    def __init__(
        self,
        node_table: Sequence[NodeSpec] = DEFAULT_NODE_TABLE,
        config: Optional[StackGraphConfig] = None,
    ) -> None:
        self._node_table = tuple(node_table)
        self._config = config

    @property
    def node_table(self) -> tuple[NodeSpec, ...]:
        return self._node_table

    def included(self, tier: EnvironmentTier, flags: BuildFlags) -> list[NodeSpec]:
        """Descriptors included for ``tier`` and ``flags``, in table order."""
        return [spec for spec in self._node_table if spec.is_included(tier, flags)]

    def build(
        self,
        tier: EnvironmentTier | str,
        flags: Optional[BuildFlags] = None,
    ) -> Topology:
        """Run one construction pass.

        Raises:
            ConstructionError: If the node table is internally inconsistent.
        """
        tier = EnvironmentTier.parse(tier)
        flags = flags or BuildFlags()
        config = self._config or get_config()
        profile = TIER_PROFILES[tier]

        included = self.included(tier, flags)
        ordered = topological_order(included)
        logger.debug(
            "Construction order for %s: %s",
            tier.value,
            ", ".join(spec.id for spec in ordered),
        )

        registry = HandleRegistry()
        nodes: list[StackNode] = []
        for spec in ordered:
            ctx = NodeContext(
                node_id=spec.id,
                tier=tier,
                flags=flags,
                config=config,
                profile=profile,
                inputs=registry.view(spec.required_inputs),
            )
            result = spec.construct(ctx)
            self._check_outputs(spec, result.outputs)
            for handle in result.outputs:
                registry.register(handle)

            nodes.append(
                StackNode(
                    id=spec.id,
                    stack_name=f"{config.application_name}-{tier.stage}-{spec.stack_suffix}",
                    description=f"{spec.description} - {tier.stage} environment",
                    required_inputs=_sort_kinds(spec.required_inputs),
                    declared_outputs=list(spec.declared_outputs),
                    resources=result.resources,
                    outputs=result.outputs,
                    tags={
                        "Project": config.application_name,
                        "Environment": tier.stage,
                        "ManagedBy": "stackgraph",
                    },
                )
            )
            logger.debug(
                "Instantiated %s: %d resources, outputs=%s",
                spec.id,
                len(result.resources),
                [h.kind.value for h in result.outputs],
            )
        registry.freeze()

        topology = Topology(
            application=config.application_name,
            tier=tier,
            flags=flags,
            nodes=nodes,
            handles=registry.handles(),
        )
        emit_topology_built(topology)
        return topology

    @staticmethod
    def _check_outputs(spec: NodeSpec, outputs: list[ResourceHandle]) -> None:
        produced = [handle.kind for handle in outputs]
        for kind in produced:
            if kind not in spec.declared_outputs:
                raise UndeclaredOutput(spec.id, kind, "produced undeclared")
            if produced.count(kind) > 1:
                raise UndeclaredOutput(spec.id, kind, "produced more than one")
            if any(h.producing_node != spec.id for h in outputs if h.kind == kind):
                raise UndeclaredOutput(spec.id, kind, "mislabelled the producer of")
        for kind in spec.declared_outputs:
            if kind not in produced:
                raise UndeclaredOutput(spec.id, kind, "did not produce declared")


def build(
    tier: EnvironmentTier | str,
    flags: Optional[BuildFlags] = None,
    node_table: Sequence[NodeSpec] = DEFAULT_NODE_TABLE,
    config: Optional[StackGraphConfig] = None,
) -> Topology:
    """Build a topology for ``tier`` (see ``TopologyBuilder.build``)."""
    return TopologyBuilder(node_table, config=config).build(tier, flags)
