"""Resolution runtime: registry, handles, cache and engine."""

from .attributes import (
    BaseAttributes,
    GraderAttributes,
    InputAttributes,
    ProblemAttributes,
)
from .cache import CacheManager, CompositeKey
from .engine import InstanceContext, ResolutionEngine
from .handle import HandleState, RenderHandle
from .registry import ComponentRegistry, ComponentSpec, repeat_scopes
from .results import (
    ErrorKind,
    InlineError,
    RenderedBlock,
    RenderedCopy,
    RenderedMarkup,
    RenderedText,
    render_tree,
)

__all__ = [
    "BaseAttributes",
    "GraderAttributes",
    "InputAttributes",
    "ProblemAttributes",
    "CacheManager",
    "CompositeKey",
    "InstanceContext",
    "ResolutionEngine",
    "HandleState",
    "RenderHandle",
    "ComponentRegistry",
    "ComponentSpec",
    "repeat_scopes",
    "ErrorKind",
    "InlineError",
    "RenderedBlock",
    "RenderedCopy",
    "RenderedMarkup",
    "RenderedText",
    "render_tree",
]
