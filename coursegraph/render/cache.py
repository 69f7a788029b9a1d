"""Per-graph-version cache of render handles.

The cache is the only shared mutable structure in the resolution runtime.
One cache belongs to exactly one content graph version, so it never needs
partial invalidation: publishing a new version gets a fresh cache and the
old one is dropped once nothing references it.

Within a version each composite key is written at most once. The engine
registers a pending handle before doing any work for it, so re-entrant
requests see that same handle instead of starting duplicate work.
"""

import logging
from collections.abc import Mapping
from typing import Any, NamedTuple

from ..core.models import StaticNode
from ..errors import HandleStateError
from ..graph.store import fingerprint
from .handle import RenderHandle

logger = logging.getLogger(__name__)


class CompositeKey(NamedTuple):
    """Full cache key: node identity + scope + overrides fingerprint.

    ``identity`` is ``("ref", canonical_key)`` for graph references and
    ``("inline", id(node))`` for inline nodes, so structurally equal inline
    fragments only share a handle when they are the same authored object.
    """

    identity: tuple[str, Any]
    scope: str
    overrides: str

    def describe(self) -> str:
        kind, value = self.identity
        label = value if kind == "ref" else f"<inline {value:x}>"
        if self.scope:
            label = f"{self.scope}/{label}"
        if self.overrides:
            label += f"+{self.overrides}"
        return label


def overrides_fingerprint(overrides: Mapping[str, Any] | None) -> str:
    """Fingerprint attribute overrides (empty string for none)."""
    if not overrides:
        return ""
    return fingerprint(dict(overrides), length=12)


def ref_key(canonical_key: str, scope: str, overrides: Mapping[str, Any] | None = None) -> CompositeKey:
    return CompositeKey(("ref", canonical_key), scope, overrides_fingerprint(overrides))


def inline_key(node: object, scope: str) -> CompositeKey:
    return CompositeKey(("inline", id(node)), scope, "")


class CacheManager:
    """Handle cache for one content graph version."""

    def __init__(self, version: str):
        self.version = version
        self._handles: dict[CompositeKey, RenderHandle] = {}
        # Inline nodes are kept alive so their id() cannot be reused
        self._pinned: dict[CompositeKey, object] = {}
        self._fetched: dict[str, StaticNode] = {}

    def get(self, key: CompositeKey) -> RenderHandle | None:
        return self._handles.get(key)

    def register(
        self, key: CompositeKey, handle: RenderHandle, pin: object | None = None
    ) -> RenderHandle:
        """Store a handle under ``key``.

        Raises:
            HandleStateError: If ``key`` already has a handle in this version
        """
        if key in self._handles:
            raise HandleStateError(
                f"Composite key {key.describe()} already registered in version {self.version}"
            )
        self._handles[key] = handle
        if pin is not None:
            self._pinned[key] = pin
        return handle

    # ── Asynchronously fetched nodes ──

    def remember_fetched(self, node: StaticNode) -> None:
        self._fetched[node.key] = node

    def fetched(self, key: str) -> StaticNode | None:
        return self._fetched.get(key)

    def clear(self) -> None:
        self._handles.clear()
        self._pinned.clear()
        self._fetched.clear()

    def __contains__(self, key: object) -> bool:
        return key in self._handles

    def __len__(self) -> int:
        return len(self._handles)

    def __repr__(self) -> str:
        return f"CacheManager(version={self.version!r}, handles={len(self)})"
