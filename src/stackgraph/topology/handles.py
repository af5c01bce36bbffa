"""
Resource handles and the write-once handle registry.

A ``ResourceHandle`` is the immutable reference a stack node publishes for
one of its outputs (a distribution, a bucket, a function...).  Later nodes
consume handles through the ``HandleRegistry`` instead of reaching into the
producing node.

Ownership: the producing node owns a handle until it is registered; after
that the registry is the sole owner and consumers only ever receive
read-only views.

Usage::

    from stackgraph.topology.handles import HandleRegistry, ResourceHandle
    from stackgraph.types import HandleKind

    registry = HandleRegistry()
    registry.register(ResourceHandle(
        kind=HandleKind.OBJECT_STORE,
        id="edge+storage/assets-bucket",
        producing_node="edge+storage",
        name="nextjs-playground-assets-dev",
    ))
    view = registry.view({HandleKind.OBJECT_STORE})
    view[HandleKind.OBJECT_STORE].name
"""

from __future__ import annotations

import logging
from types import MappingProxyType
from typing import Iterable, Iterator, Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field

from stackgraph.errors import DuplicateOutput, RegistryFrozenError
from stackgraph.types import HANDLE_KIND_ORDER, HandleKind

logger = logging.getLogger(__name__)


class ResourceHandle(BaseModel):
    """Typed, named reference to an output produced by a stack node."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    kind: HandleKind = Field(..., description="Resource family of the output")
    id: str = Field(..., min_length=1, description="Topology-unique handle id")
    producing_node: str = Field(..., min_length=1, description="Node that produced it")
    name: str = Field(..., min_length=1, description="Physical resource name")


class HandleRegistry:
    """Handles keyed by kind, write-once per kind.

    Insertion order is preserved so iteration follows construction order.
    Call ``freeze()`` once the construction pass is over; any later
    ``register()`` raises ``RegistryFrozenError``.
    """

    def __init__(self) -> None:
        self._handles: dict[HandleKind, ResourceHandle] = {}
        self._frozen = False

    @classmethod
    def from_handles(cls, handles: Iterable[ResourceHandle]) -> HandleRegistry:
        """Build a frozen registry from already-produced handles."""
        registry = cls()
        for handle in handles:
            registry.register(handle)
        registry.freeze()
        return registry

    def register(self, handle: ResourceHandle) -> None:
        """Insert a handle under its kind.

        Raises:
            RegistryFrozenError: If the registry has been frozen.
            DuplicateOutput: If a handle of the same kind already exists.
        """
        if self._frozen:
            raise RegistryFrozenError(
                f"Cannot register '{handle.id}': registry is frozen"
            )
        existing = self._handles.get(handle.kind)
        if existing is not None:
            raise DuplicateOutput(handle.producing_node, handle.kind, existing.producing_node)
        self._handles[handle.kind] = handle
        logger.debug("Registered %s handle %s", handle.kind.value, handle.id)

    def freeze(self) -> None:
        self._frozen = True

    @property
    def frozen(self) -> bool:
        return self._frozen

    def get(self, kind: HandleKind) -> Optional[ResourceHandle]:
        return self._handles.get(kind)

    def require(self, kind: HandleKind) -> ResourceHandle:
        """Return the handle of ``kind`` or raise ``KeyError``."""
        try:
            return self._handles[kind]
        except KeyError:
            raise KeyError(f"No handle registered for kind '{kind.value}'") from None

    def view(self, kinds: Iterable[HandleKind]) -> Mapping[HandleKind, ResourceHandle]:
        """Read-only mapping restricted to ``kinds`` that are present."""
        wanted = sorted(set(kinds), key=HANDLE_KIND_ORDER.__getitem__)
        return MappingProxyType(
            {kind: self._handles[kind] for kind in wanted if kind in self._handles}
        )

    def kinds(self) -> list[HandleKind]:
        return list(self._handles)

    def handles(self) -> list[ResourceHandle]:
        return list(self._handles.values())

    def resolves(self, handle: ResourceHandle) -> bool:
        """True if ``handle`` is exactly the one registered for its kind."""
        return self._handles.get(handle.kind) == handle

    def __contains__(self, kind: object) -> bool:
        return kind in self._handles

    def __iter__(self) -> Iterator[ResourceHandle]:
        return iter(self._handles.values())

    def __len__(self) -> int:
        return len(self._handles)

    def __repr__(self) -> str:
        kinds = ", ".join(k.value for k in self._handles)
        return f"HandleRegistry([{kinds}], frozen={self._frozen})"
