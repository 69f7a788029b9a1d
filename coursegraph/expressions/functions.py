"""Function registry and built-in namespaces for the expression language.

Functions are pure callables registered by name on a FunctionRegistry value
that is passed into each evaluation context. There is no module-level
registry: two contexts built with different registries never see each
other's functions.

Example:
    functions = FunctionRegistry.with_builtins()

    @functions.function("double")
    def double(x):
        return x * 2

    ctx = create_context(functions=functions)
    evaluate(parse("double(21)"), ctx)   # -> 42
"""

import logging
import math
import re
from collections.abc import Callable, Iterator, Mapping
from types import MappingProxyType
from typing import Any

logger = logging.getLogger(__name__)

_NAME_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


class FunctionRegistry:
    """Named pure functions callable from expressions."""

    def __init__(self, functions: Mapping[str, Callable[..., Any]] | None = None):
        self._functions: dict[str, Callable[..., Any]] = {}
        for name, fn in (functions or {}).items():
            self.register(name, fn)

    @classmethod
    def with_builtins(cls) -> "FunctionRegistry":
        """A registry holding the always-available helpers."""
        return cls(BUILTIN_FUNCTIONS)

    def register(self, name: str, fn: Callable[..., Any]) -> None:
        """Register ``fn`` under ``name``.

        Re-registering the same callable is a no-op; replacing a different
        one is allowed but logged.

        Raises:
            ValueError: If ``name`` is not a valid identifier
            TypeError: If ``fn`` is not callable
        """
        if not _NAME_RE.match(name):
            raise ValueError(f"Invalid function name {name!r}")
        if not callable(fn):
            raise TypeError(f"Function {name!r} must be callable, got {type(fn).__name__}")
        existing = self._functions.get(name)
        if existing is fn:
            return
        if existing is not None:
            logger.warning("Replacing expression function %r", name)
        self._functions[name] = fn

    def function(self, name: str | None = None) -> Callable[[Callable[..., Any]], Callable[..., Any]]:
        """Decorator registering a function (under its own name by default)."""

        def decorator(fn: Callable[..., Any]) -> Callable[..., Any]:
            self.register(name or fn.__name__, fn)
            return fn

        return decorator

    def get(self, name: str) -> Callable[..., Any] | None:
        return self._functions.get(name)

    def names(self) -> list[str]:
        return sorted(self._functions)

    def copy(self) -> "FunctionRegistry":
        return FunctionRegistry(self._functions)

    def __contains__(self, name: object) -> bool:
        return name in self._functions

    def __iter__(self) -> Iterator[str]:
        return iter(self._functions)

    def __len__(self) -> int:
        return len(self._functions)


# =============================================================================
# Built-in helpers
# =============================================================================


def wordcount(text: Any) -> int:
    """Number of whitespace-separated words (0 for missing text)."""
    if text is None:
        return 0
    return len(str(text).split())


BUILTIN_FUNCTIONS: Mapping[str, Callable[..., Any]] = MappingProxyType(
    {"wordcount": wordcount}
)


# =============================================================================
# Math namespace
# =============================================================================


def _round_half_up(x: float) -> int:
    return math.floor(x + 0.5)


def _max(*values: float) -> float:
    return max(values) if values else -math.inf


def _min(*values: float) -> float:
    return min(values) if values else math.inf


MATH: Mapping[str, Any] = MappingProxyType(
    {
        "abs": abs,
        "ceil": math.ceil,
        "floor": math.floor,
        "round": _round_half_up,
        "trunc": math.trunc,
        "min": _min,
        "max": _max,
        "pow": math.pow,
        "sqrt": math.sqrt,
        "log": math.log,
        "exp": math.exp,
        "PI": math.pi,
        "E": math.e,
    }
)


# =============================================================================
# Object namespace
# =============================================================================


def _keys(value: Any) -> list[Any]:
    return list(value.keys()) if isinstance(value, Mapping) else []


def _values(value: Any) -> list[Any]:
    return list(value.values()) if isinstance(value, Mapping) else []


def _entries(value: Any) -> list[list[Any]]:
    return [[k, v] for k, v in value.items()] if isinstance(value, Mapping) else []


# Missing or non-mapping values give an empty list
OBJECT: Mapping[str, Any] = MappingProxyType(
    {"keys": _keys, "values": _values, "entries": _entries}
)
