"""Values carried by fulfilled render handles.

- RenderedBlock: an instantiated component
- RenderedText / RenderedMarkup: inline content that needs no component
- InlineError: a structural content problem, rendered in place of the node
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field

from ..core.models import SourceRef
from .handle import RenderHandle


class ErrorKind(str, Enum):
    """Kinds of recoverable content problems."""

    NOT_FOUND = "not_found_in_graph"
    UNKNOWN_TAG = "unknown_tag"
    INVALID_ATTRIBUTES = "attribute_validation_failed"
    MALFORMED_REFERENCE = "malformed_reference"
    UNSUPPORTED_REFERENCE = "unsupported_reference"
    MISSING_PARENT = "missing_parent"


class InlineError(BaseModel):
    """An error result that a parent can embed like any other rendered kid.

    Carries enough detail to show a content author what went wrong without
    a stack trace.
    """

    kind: ErrorKind
    message: str = Field(description="Friendly, author-facing message")
    key: str | None = Field(default=None, description="Offending node key or reference")
    tag: str | None = None
    fields: list[str] = Field(
        default_factory=list, description="Offending attribute names, if any"
    )
    technical: str | None = Field(default=None, description="Underlying technical detail")
    provenance: list[SourceRef] = Field(default_factory=list)

    def __str__(self) -> str:
        return f"[{self.kind.value}] {self.message}"


@dataclass
class RenderedText:
    text: str


@dataclass
class RenderedMarkup:
    tag: str
    attributes: dict[str, Any]
    kids: list[RenderHandle]


@dataclass
class RenderedCopy:
    """One copy of a repeatable container's kids, under its own scope."""

    scope: str
    kids: list[RenderHandle]


@dataclass
class RenderedBlock:
    """An instantiated component.

    ``kids`` holds the children resolved under the block's own scope. For
    repeatable containers ``copies`` holds one entry per child scope and
    ``kids`` is empty.
    """

    key: str | None
    tag: str
    attributes: dict[str, Any]
    scope: str
    state_key: str | None
    kids: list[RenderHandle] = field(default_factory=list)
    copies: list[RenderedCopy] = field(default_factory=list)
    validated: BaseModel | None = None
    value: Any = None
    parent_key: str | None = None
    provenance: tuple[SourceRef, ...] = ()

    def all_kids(self) -> list[RenderHandle]:
        if self.copies:
            return [h for copy in self.copies for h in copy.kids]
        return list(self.kids)


# =============================================================================
# Tree export
# =============================================================================


def _json_safe(value: Any) -> Any:
    if isinstance(value, BaseModel):
        return value.model_dump(mode="json")
    if isinstance(value, (str, int, float, bool)) or value is None:
        return value
    if isinstance(value, dict):
        return {str(k): _json_safe(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_json_safe(v) for v in value]
    return repr(value)


def render_tree(handle: RenderHandle) -> dict[str, Any]:
    """Walk a handle and its descendants into a JSON-friendly dict.

    Pending handles are reported as such rather than awaited.
    """
    if not handle.done():
        return {"state": "pending", "key": repr(handle.key)}
    if handle.rejected():
        return {"state": "rejected", "error": str(handle.error)}

    value = handle.value
    if isinstance(value, InlineError):
        return {"state": "fulfilled", "error": value.model_dump(mode="json")}
    if isinstance(value, RenderedText):
        return {"state": "fulfilled", "text": value.text}
    if isinstance(value, RenderedMarkup):
        return {
            "state": "fulfilled",
            "html": value.tag,
            "attributes": _json_safe(value.attributes),
            "kids": [render_tree(k) for k in value.kids],
        }
    if isinstance(value, RenderedBlock):
        node: dict[str, Any] = {
            "state": "fulfilled",
            "tag": value.tag,
            "key": value.key,
            "scope": value.scope,
            "state_key": value.state_key,
            "attributes": _json_safe(value.attributes),
        }
        if value.parent_key:
            node["parent_key"] = value.parent_key
        if value.value is not None:
            node["value"] = _json_safe(value.value)
        if value.copies:
            node["copies"] = [
                {"scope": c.scope, "kids": [render_tree(k) for k in c.kids]}
                for c in value.copies
            ]
        else:
            node["kids"] = [render_tree(k) for k in value.kids]
        return node
    return {"state": "fulfilled", "value": _json_safe(value)}
