"""
OTel span event emission helpers for topology construction.

Usage::

    from stackgraph.topology.otel import emit_topology_built

    emit_topology_built(topology)
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from stackgraph._otel_helpers import add_span_event

if TYPE_CHECKING:
    from stackgraph.topology.builder import Topology

logger = logging.getLogger(__name__)


def emit_topology_built(topology: Topology) -> None:
    """Emit a span event once a construction pass completes.

    Event name: ``topology.built``
    """
    attrs: dict[str, str | int | float | bool] = {
        "topology.application": topology.application,
        "topology.tier": topology.tier.value,
        "topology.node_count": len(topology.nodes),
        "topology.nodes": ",".join(topology.node_ids),
        "topology.handle_count": len(topology.handles),
        "topology.delivery_enabled": topology.flags.enable_delivery,
        "topology.monitoring_enabled": topology.flags.enable_monitoring,
    }

    logger.info(
        "Topology built: tier=%s nodes=%s handles=%d",
        topology.tier.value,
        ",".join(topology.node_ids),
        len(topology.handles),
    )

    add_span_event("topology.built", attrs)
