"""
Topology construction: handles, stack nodes and the builder.

Public API::

    from stackgraph.topology import (
        # Handles
        ResourceHandle,
        HandleRegistry,
        # Nodes
        BuildFlags,
        NodeSpec,
        StackNode,
        DEFAULT_NODE_TABLE,
        # Builder
        Topology,
        TopologyBuilder,
        build,
    )
"""

from stackgraph.topology.builder import (
    Topology,
    TopologyBuilder,
    build,
    topological_order,
)
from stackgraph.topology.catalog import (
    APPLICATION_RUNTIME,
    DEFAULT_NODE_TABLE,
    DELIVERY_PIPELINE,
    EDGE_STORAGE,
    OBSERVABILITY,
    TIER_PROFILES,
    without_node,
)
from stackgraph.topology.handles import HandleRegistry, ResourceHandle
from stackgraph.topology.nodes import (
    BuildFlags,
    NodeContext,
    NodeOutput,
    NodeSpec,
    ResourceDeclaration,
    StackNode,
    TierProfile,
)

__all__ = [
    # Handles
    "ResourceHandle",
    "HandleRegistry",
    # Nodes
    "BuildFlags",
    "NodeContext",
    "NodeOutput",
    "NodeSpec",
    "ResourceDeclaration",
    "StackNode",
    "TierProfile",
    # Catalog
    "DEFAULT_NODE_TABLE",
    "TIER_PROFILES",
    "EDGE_STORAGE",
    "APPLICATION_RUNTIME",
    "DELIVERY_PIPELINE",
    "OBSERVABILITY",
    "without_node",
    # Builder
    "Topology",
    "TopologyBuilder",
    "build",
    "topological_order",
]
