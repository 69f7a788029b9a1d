"""Content graph models.

A content graph is the static, authored DAG of nodes produced by the
ingestion parser. Nodes are frozen once published; anything that needs a
variant of a node (overrides, edits) builds a new model instead.

This module contains:
- Provenance: SourceRef
- Kids: BlockRef, TextKid, MarkupKid, InlineNode, KidRef
- Node: StaticNode
"""

from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field


# =============================================================================
# Provenance
# =============================================================================


class SourceRef(BaseModel):
    """Where a node was authored."""

    model_config = ConfigDict(frozen=True)

    file: str = Field(description="Source file path or URI")
    line: int | None = Field(default=None, ge=1, description="1-based line")
    column: int | None = Field(default=None, ge=1, description="1-based column")

    def __str__(self) -> str:
        if self.line is None:
            return self.file
        if self.column is None:
            return f"{self.file}:{self.line}"
        return f"{self.file}:{self.line}:{self.column}"


# =============================================================================
# Kid references
# =============================================================================


class BlockRef(BaseModel):
    """Reference to another node in the graph, with optional overrides.

    Overrides apply only to the instantiated copy, never to the shared node.
    """

    model_config = ConfigDict(frozen=True)

    type: Literal["block"] = "block"
    id: str = Field(description="Reference string (foo, ./foo, /foo)")
    overrides: dict[str, Any] = Field(
        default_factory=dict,
        description="Attribute values layered over the referenced node's attributes",
    )


class TextKid(BaseModel):
    """An inline run of text."""

    model_config = ConfigDict(frozen=True)

    type: Literal["text"] = "text"
    text: str


class MarkupKid(BaseModel):
    """An inline markup fragment (plain HTML-like element) with nested kids."""

    model_config = ConfigDict(frozen=True)

    type: Literal["html"] = "html"
    tag: str
    attributes: dict[str, Any] = Field(default_factory=dict)
    kids: tuple["KidRef", ...] = ()


class InlineNode(BaseModel):
    """A component node authored inline rather than stored in the graph table."""

    model_config = ConfigDict(frozen=True)

    type: Literal["node"] = "node"
    node: "StaticNode"


KidRef = Annotated[
    Union[BlockRef, TextKid, MarkupKid, InlineNode],
    Field(discriminator="type"),
]


# =============================================================================
# Static node
# =============================================================================


class StaticNode(BaseModel):
    """A static node descriptor in the content graph."""

    model_config = ConfigDict(frozen=True)

    key: str = Field(description="Canonical key (bare id)")
    tag: str = Field(description="Component tag, resolved against the registry")
    attributes: dict[str, Any] = Field(default_factory=dict)
    kids: tuple[KidRef, ...] = ()
    provenance: tuple[SourceRef, ...] = ()

    def describe(self) -> str:
        """Short label for messages: ``Tag#key (file:line)``."""
        label = f"{self.tag}#{self.key}"
        if self.provenance:
            label += f" ({self.provenance[0]})"
        return label


MarkupKid.model_rebuild()
InlineNode.model_rebuild()
StaticNode.model_rebuild()
