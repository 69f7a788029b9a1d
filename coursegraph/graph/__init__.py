"""Content graph storage, loading and static validation."""

from .loader import GraphFormatError, graph_from_dict, load_graph
from .store import ContentGraphStore, apply_overrides, fingerprint
from .validation import find_cycles, referenced_keys, validate_graph

__all__ = [
    "ContentGraphStore",
    "apply_overrides",
    "fingerprint",
    "GraphFormatError",
    "graph_from_dict",
    "load_graph",
    "find_cycles",
    "referenced_keys",
    "validate_graph",
]
