"""coursegraph: scope-aware resolution of course content graphs."""

__version__ = "0.1.0"

from .config import CoursegraphConfig, configure, get_config
from .errors import CoursegraphError
from .expressions import create_context, evaluate, parse, try_parse
from .graph import ContentGraphStore, load_graph, validate_graph
from .ids import classify, to_canonical_key, to_scoped_state_key
from .render import ComponentRegistry, ComponentSpec, ResolutionEngine
from .state import InMemoryStateStore

__all__ = [
    "__version__",
    "CoursegraphConfig",
    "configure",
    "get_config",
    "CoursegraphError",
    "create_context",
    "evaluate",
    "parse",
    "try_parse",
    "ContentGraphStore",
    "load_graph",
    "validate_graph",
    "classify",
    "to_canonical_key",
    "to_scoped_state_key",
    "ComponentRegistry",
    "ComponentSpec",
    "ResolutionEngine",
    "InMemoryStateStore",
]
