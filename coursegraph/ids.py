"""Identifier resolution: reference syntax, scopes, and key derivation.

Authors refer to nodes with short reference strings:

    foo      relative, the current scope prefix is applied to state keys
    ./foo    explicit relative, same semantics as ``foo``
    /foo     absolute, the scope prefix is bypassed
    ../foo   parent relative, reserved and not yet supported

Graph lookups always use the prefix-free canonical key (``foo``). Scope
prefixes only ever affect the scoped state key, which is what the reactive
store uses to keep repeated instances of the same node independent:

    to_scoped_state_key("foo", "list:0")   -> "list:0:foo"
    to_scoped_state_key("/foo", "list:0")  -> "foo"

All functions here are pure.
"""

import re
from collections.abc import Iterable, Sequence
from enum import Enum
from typing import NamedTuple

from .errors import MalformedReferenceError, UnsupportedReferenceError


SCOPE_SEPARATOR = ":"

VALID_ID_SEGMENT = re.compile(r"^[A-Za-z0-9_-]+$")
_INVALID_ID_CHARS = re.compile(r"[^A-Za-z0-9_-]")


class ReferenceKind(str, Enum):
    """Syntactic form of a reference string."""

    RELATIVE = "relative"
    ABSOLUTE = "absolute"
    EXPLICIT_RELATIVE = "explicit_relative"
    PARENT_RELATIVE = "parent_relative"


class ReferenceInfo(NamedTuple):
    kind: ReferenceKind
    bare: str


# =============================================================================
# Classification
# =============================================================================


def classify(ref: str) -> ReferenceInfo:
    """Classify a reference string without touching the graph.

    Args:
        ref: Author-facing reference (``foo``, ``./foo``, ``/foo``, ``../foo``)

    Returns:
        ReferenceInfo with the syntactic kind and the bare identifier

    Raises:
        MalformedReferenceError: If the reference is empty or the bare id
            contains characters outside ``[A-Za-z0-9_-]``
    """
    if not isinstance(ref, str):
        raise MalformedReferenceError(
            f"Reference must be a string, got {type(ref).__name__}", None
        )
    if not ref.strip():
        raise MalformedReferenceError("Empty reference", ref)
    ref = ref.strip()

    if ref.startswith("../"):
        kind, bare = ReferenceKind.PARENT_RELATIVE, ref[3:]
    elif ref.startswith("./"):
        kind, bare = ReferenceKind.EXPLICIT_RELATIVE, ref[2:]
    elif ref.startswith("/"):
        kind, bare = ReferenceKind.ABSOLUTE, ref[1:]
    else:
        kind, bare = ReferenceKind.RELATIVE, ref

    validate_id(bare, reference=ref)
    return ReferenceInfo(kind, bare)


def validate_id(bare: str, *, reference: str | None = None) -> str:
    """Check that ``bare`` is a valid identifier segment and return it."""
    if not bare:
        raise MalformedReferenceError(
            f"Reference {reference!r} has no identifier after its prefix", reference
        )
    if not VALID_ID_SEGMENT.match(bare):
        bad = sorted(set(_INVALID_ID_CHARS.findall(bare)))
        shown = ", ".join(repr(c) for c in bad)
        raise MalformedReferenceError(
            f"Invalid identifier {bare!r} in reference {reference or bare!r}: "
            f"contains {shown}. Identifiers may only use letters, digits, "
            f"'_' and '-'",
            reference or bare,
        )
    return bare


# =============================================================================
# Key derivation
# =============================================================================


def to_canonical_key(ref: str, current_scope: str = "") -> str:
    """Derive the graph lookup key for a reference.

    The canonical key space is prefix-free, so ``current_scope`` never
    changes the result; it is accepted for symmetry with
    :func:`to_scoped_state_key`.

    Raises:
        MalformedReferenceError: If the reference is malformed
        UnsupportedReferenceError: For parent-relative references
    """
    info = classify(ref)
    if info.kind is ReferenceKind.PARENT_RELATIVE:
        raise UnsupportedReferenceError(
            f"Parent-relative references are not supported yet: {ref!r}", ref
        )
    return info.bare


def to_scoped_state_key(ref: str, current_scope: str = "") -> str:
    """Derive the reactive-store key for a reference under a scope.

    Absolute references ignore ``current_scope``. Relative and explicit
    relative references are joined onto it.

    Raises:
        MalformedReferenceError: If the reference is malformed
        UnsupportedReferenceError: For parent-relative references
    """
    info = classify(ref)
    if info.kind is ReferenceKind.PARENT_RELATIVE:
        # Extension point: needs a defined notion of "parent scope" first.
        raise UnsupportedReferenceError(
            f"Parent-relative references are not supported yet: {ref!r}", ref
        )
    if info.kind is ReferenceKind.ABSOLUTE:
        return info.bare
    return join_scope(current_scope, info.bare)


def join_scope(scope: str, key: str) -> str:
    """Join a scope prefix and a key (empty scope means root)."""
    if not scope:
        return key
    return f"{scope}{SCOPE_SEPARATOR}{key}"


def extend_scope(current_scope: str, segment: str | int | Sequence[str | int]) -> str:
    """Append one or more path segments to a scope prefix.

    Repeatable containers call this once per rendered copy, typically with
    ``(container_id, index)``:

        extend_scope("", ("list", 0))        -> "list:0"
        extend_scope("list:0", "bank:2")     -> "list:0:bank:2"

    Raises:
        MalformedReferenceError: If any segment is empty
    """
    if isinstance(segment, (str, int)):
        parts: Iterable[str | int] = [segment]
    else:
        parts = segment

    result = current_scope
    for part in parts:
        text = str(part)
        if not text or text.startswith(SCOPE_SEPARATOR) or text.endswith(
            SCOPE_SEPARATOR
        ):
            raise MalformedReferenceError(
                f"Invalid scope segment {part!r} (extending {current_scope!r})",
                text,
            )
        result = join_scope(result, text)
    return result


def scope_segments(scope: str) -> list[str]:
    """Split a scope prefix into its path segments."""
    if not scope:
        return []
    return scope.split(SCOPE_SEPARATOR)


def assign_sibling_keys(ids: Iterable[str | None]) -> list[str | None]:
    """Give duplicated sibling ids unique keys.

    The first occurrence keeps its id; later ones get ``id:1``, ``id:2``...
    ``None`` entries (anonymous kids) pass through unchanged.

        assign_sibling_keys(["a", "b", "a", "a"]) -> ["a", "b", "a:1", "a:2"]
    """
    seen: dict[str, int] = {}
    keys: list[str | None] = []
    for id_ in ids:
        if id_ is None:
            keys.append(None)
            continue
        count = seen.get(id_, 0)
        seen[id_] = count + 1
        keys.append(id_ if count == 0 else f"{id_}{SCOPE_SEPARATOR}{count}")
    return keys
