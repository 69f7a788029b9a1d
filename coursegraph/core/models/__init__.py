"""All Pydantic models for coursegraph, organized by domain.

- graph.py: Static nodes, kid references, provenance
- validation.py: Validation issues and results (shared by graph checks and CLI)
"""

from .graph import (
    SourceRef,
    BlockRef,
    TextKid,
    MarkupKid,
    InlineNode,
    KidRef,
    StaticNode,
)
from .validation import (
    Severity,
    ValidationIssue,
    ValidationResult,
)

__all__ = [
    # Graph
    "SourceRef",
    "BlockRef",
    "TextKid",
    "MarkupKid",
    "InlineNode",
    "KidRef",
    "StaticNode",
    # Validation
    "Severity",
    "ValidationIssue",
    "ValidationResult",
]
