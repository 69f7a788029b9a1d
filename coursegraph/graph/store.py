"""Content Graph Store: an immutable, versioned table of static nodes.

A store is read-only once constructed. Edits go through ``with_nodes``,
which returns a new store with a new version; caches keyed on the old
version simply stop being consulted.
"""

import hashlib
import json
import logging
from collections.abc import Iterable, Iterator, Mapping
from types import MappingProxyType
from typing import Any

from ..core.models import StaticNode
from ..errors import NotFoundInGraphError

logger = logging.getLogger(__name__)


def fingerprint(value: Any, length: int = 16) -> str:
    """Stable short digest of a JSON-compatible value."""
    raw = json.dumps(value, sort_keys=True, separators=(",", ":"), default=str)
    return hashlib.sha256(raw.encode("utf-8")).hexdigest()[:length]


def apply_overrides(node: StaticNode, overrides: Mapping[str, Any] | None) -> StaticNode:
    """Return a copy of ``node`` with ``overrides`` merged over its attributes.

    This is a pure merge: the input node is untouched and the result is never
    written back into any store. With no overrides the node itself is
    returned.
    """
    if not overrides:
        return node
    merged = {**node.attributes, **overrides}
    return node.model_copy(update={"attributes": merged})


class ContentGraphStore:
    """Read-only mapping from canonical keys to static nodes.

    Example:
        store = ContentGraphStore([StaticNode(key="intro", tag="Markdown")])
        store.lookup("intro")      # -> StaticNode
        store.lookup("missing")    # -> None
    """

    def __init__(
        self,
        nodes: Iterable[StaticNode] | Mapping[str, StaticNode] = (),
        version: str | None = None,
    ):
        if isinstance(nodes, Mapping):
            nodes = nodes.values()

        table: dict[str, StaticNode] = {}
        for node in nodes:
            if node.key in table:
                raise ValueError(f"Duplicate node key {node.key!r} in content graph")
            table[node.key] = node

        self._nodes: Mapping[str, StaticNode] = MappingProxyType(table)
        self._version = version or self._content_version()
        logger.debug(
            "Published content graph version %s (%d nodes)", self._version, len(table)
        )

    def _content_version(self) -> str:
        return fingerprint(
            [self._nodes[k].model_dump(mode="json") for k in sorted(self._nodes)]
        )

    @property
    def version(self) -> str:
        return self._version

    def lookup(self, key: str) -> StaticNode | None:
        """Return the node stored under ``key``, or None."""
        return self._nodes.get(key)

    def get(self, key: str) -> StaticNode:
        """Return the node stored under ``key``.

        Raises:
            NotFoundInGraphError: If no node has that key
        """
        node = self._nodes.get(key)
        if node is None:
            raise NotFoundInGraphError(key)
        return node

    def keys(self) -> list[str]:
        return list(self._nodes)

    def nodes(self) -> list[StaticNode]:
        return list(self._nodes.values())

    def with_nodes(
        self, nodes: Iterable[StaticNode], version: str | None = None
    ) -> "ContentGraphStore":
        """Publish a new version with ``nodes`` added or replaced."""
        table = dict(self._nodes)
        for node in nodes:
            table[node.key] = node
        return ContentGraphStore(table, version=version)

    def __contains__(self, key: object) -> bool:
        return key in self._nodes

    def __iter__(self) -> Iterator[StaticNode]:
        return iter(self._nodes.values())

    def __len__(self) -> int:
        return len(self._nodes)

    def __repr__(self) -> str:
        return f"ContentGraphStore(version={self._version!r}, nodes={len(self)})"
