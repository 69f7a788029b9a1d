"""Static checks over a content graph before it is rendered.

Finds problems the resolution engine would otherwise only report node by
node at render time: dangling and malformed references, reference cycles,
and (given a registry) tags with no component.
"""

from collections.abc import Iterator

from ..core.models import (
    BlockRef,
    InlineNode,
    KidRef,
    MarkupKid,
    StaticNode,
    ValidationResult,
)
from ..errors import MalformedReferenceError, UnsupportedReferenceError
from ..ids import to_canonical_key
from .store import ContentGraphStore


def _walk_kids(kids: tuple[KidRef, ...]) -> Iterator[BlockRef | StaticNode]:
    """Yield block references and inline nodes reachable without leaving the node."""
    for kid in kids:
        if isinstance(kid, BlockRef):
            yield kid
        elif isinstance(kid, InlineNode):
            yield kid.node
            yield from _walk_kids(kid.node.kids)
        elif isinstance(kid, MarkupKid):
            yield from _walk_kids(kid.kids)


def referenced_keys(node: StaticNode) -> list[str]:
    """Canonical keys a node refers to (malformed references are skipped)."""
    keys = []
    for item in _walk_kids(node.kids):
        if isinstance(item, BlockRef):
            try:
                keys.append(to_canonical_key(item.id))
            except (MalformedReferenceError, UnsupportedReferenceError):
                continue
    return keys


def find_cycles(store: ContentGraphStore) -> list[list[str]]:
    """Return each reference cycle once, as a key path ending where it started."""
    WHITE, GREY, BLACK = 0, 1, 2
    color = {key: WHITE for key in store.keys()}
    cycles: list[list[str]] = []
    path: list[str] = []

    def visit(key: str) -> None:
        color[key] = GREY
        path.append(key)
        for target in referenced_keys(store.get(key)):
            if target not in color:
                continue
            if color[target] == GREY:
                cycles.append(path[path.index(target):] + [target])
            elif color[target] == WHITE:
                visit(target)
        path.pop()
        color[key] = BLACK

    for key in sorted(store.keys()):
        if color[key] == WHITE:
            visit(key)
    return cycles


def validate_graph(store: ContentGraphStore, registry=None) -> ValidationResult:
    """Validate every node of a content graph.

    Args:
        store: The graph to check
        registry: Optional ComponentRegistry; when given, unknown tags are
            reported as warnings

    Returns:
        ValidationResult with all issues found
    """
    result = ValidationResult()

    for node in store:
        for item in _walk_kids(node.kids):
            if isinstance(item, StaticNode):
                if registry is not None and item.tag not in registry:
                    result.add_warning(
                        "unknown_tag",
                        node.key,
                        f"Inline node {item.key!r} uses unknown tag <{item.tag}>",
                    )
                continue
            try:
                target = to_canonical_key(item.id)
            except MalformedReferenceError as e:
                result.add_error("malformed_reference", node.key, str(e))
                continue
            except UnsupportedReferenceError as e:
                result.add_error(
                    "unsupported_reference",
                    node.key,
                    str(e),
                    suggestion="Use a bare id or an absolute /id reference",
                )
                continue
            if target not in store:
                result.add_error(
                    "dangling_reference",
                    node.key,
                    f"Reference to {item.id!r} but no node has id {target!r}",
                )

        if registry is not None and node.tag not in registry:
            result.add_warning(
                "unknown_tag",
                node.key,
                f"Unknown tag <{node.tag}>",
                suggestion=f"Registered tags: {', '.join(registry.tags()) or '(none)'}",
            )

    for cycle in find_cycles(store):
        result.add_error(
            "reference_cycle",
            cycle[0],
            "Reference cycle: " + " -> ".join(cycle),
        )

    return result
