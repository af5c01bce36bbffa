"""
Construction errors raised by the topology builder and handle registry.

A ``ConstructionError`` means the node table itself is inconsistent. It is
a programming error, so the builder raises immediately with the offending
node id and handle kind instead of collecting it like a validation issue.
"""

from __future__ import annotations

from typing import Optional, Sequence

from stackgraph.types import HandleKind


class ConstructionError(Exception):
    """Base class for node-table inconsistencies found while building."""

    def __init__(
        self,
        message: str,
        node_id: Optional[str] = None,
        kind: Optional[HandleKind] = None,
    ) -> None:
        super().__init__(message)
        self.node_id = node_id
        self.kind = kind


class MissingDependency(ConstructionError):
    """A required input kind has no producer among the included nodes."""

    def __init__(self, node_id: str, kind: HandleKind) -> None:
        super().__init__(
            f"Node '{node_id}' requires '{kind.value}' but no included node produces it",
            node_id=node_id,
            kind=kind,
        )


class DuplicateOutput(ConstructionError):
    """Two producers claim the same output kind."""

    def __init__(self, node_id: str, kind: HandleKind, existing_node: str) -> None:
        super().__init__(
            f"Node '{node_id}' declares '{kind.value}' which is already "
            f"produced by '{existing_node}'",
            node_id=node_id,
            kind=kind,
        )
        self.existing_node = existing_node


class CycleDetected(ConstructionError):
    """The derived dependency graph among included nodes is cyclic."""

    def __init__(self, node_ids: Sequence[str]) -> None:
        self.node_ids = list(node_ids)
        super().__init__(
            "Dependency cycle between nodes: " + ", ".join(self.node_ids),
            node_id=self.node_ids[0] if self.node_ids else None,
        )


class UndeclaredOutput(ConstructionError):
    """A node constructor produced handles that differ from its declaration."""

    def __init__(self, node_id: str, kind: HandleKind, reason: str) -> None:
        super().__init__(
            f"Node '{node_id}' {reason} output '{kind.value}'",
            node_id=node_id,
            kind=kind,
        )


class RegistryFrozenError(RuntimeError):
    """Raised when a handle is registered after the construction pass ended."""
