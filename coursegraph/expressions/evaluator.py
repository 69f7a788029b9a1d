"""Evaluate expression ASTs against a read-only context.

Evaluation is a pure function of (ast, context): nothing is cached, nothing
global is consulted, and the context is never mutated. Arrow functions get
a derived context with their parameters bound.

Semantics worth knowing:
- Missing sigil references and member access on missing values give None,
  so ``@maybeMissing.value`` is always safe to write.
- Calling a method on a missing value raises a descriptive error.
- ``&&`` and ``||`` short-circuit and return an operand, like JavaScript.
- ``===`` never treats booleans and numbers as equal.
- Ordering comparisons involving None or mismatched types are False.
"""

import logging
import math
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field, replace
from typing import Any

from ..core.status import ENUMERATIONS
from ..errors import ExpressionEvaluationError, UnknownFunctionError
from . import nodes as n
from .functions import MATH, OBJECT, FunctionRegistry, wordcount

logger = logging.getLogger(__name__)

NAMESPACES = ("component_state", "static_content", "global_vars")
_SIGIL_NAMESPACE = {"@": "component_state", "#": "static_content", "$": "global_vars"}


# =============================================================================
# Context
# =============================================================================


@dataclass(frozen=True)
class ExpressionContext:
    """Everything an expression can read.

    Attributes:
        component_state: ``@id`` lookups, per-component scoped state
        static_content: ``#id`` lookups, static text of content nodes
        global_vars: ``$id`` lookups, global variables
        bindings: Plain identifiers (helpers, arrow parameters, extras)
        functions: Callable registry consulted for identifier lookups
    """

    component_state: Mapping[str, Any] = field(default_factory=dict)
    static_content: Mapping[str, Any] = field(default_factory=dict)
    global_vars: Mapping[str, Any] = field(default_factory=dict)
    bindings: Mapping[str, Any] = field(default_factory=dict)
    functions: FunctionRegistry = field(default_factory=FunctionRegistry)

    def bind(self, **values: Any) -> "ExpressionContext":
        """Derived context with extra bindings."""
        return replace(self, bindings={**self.bindings, **values})


def create_context(
    data: Mapping[str, Any] | None = None,
    *,
    functions: FunctionRegistry | None = None,
    **bindings: Any,
) -> ExpressionContext:
    """Build a context, merging caller data over empty defaults.

    Args:
        data: Mapping whose ``component_state``, ``static_content`` and
            ``global_vars`` keys fill the namespaces; any other key becomes a
            binding
        functions: Function registry (defaults to the built-in helpers)
        **bindings: Extra identifier bindings

    Example:
        ctx = create_context({"component_state": {"q": {"correct": "correct"}}})
    """
    data = dict(data or {})
    namespaces = {name: data.pop(name, None) or {} for name in NAMESPACES}
    merged_bindings = {"wordcount": wordcount, **data, **bindings}
    return ExpressionContext(
        component_state=namespaces["component_state"],
        static_content=namespaces["static_content"],
        global_vars=namespaces["global_vars"],
        bindings=merged_bindings,
        functions=functions if functions is not None else FunctionRegistry.with_builtins(),
    )


# =============================================================================
# Value helpers
# =============================================================================


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def to_text(value: Any) -> str:
    """String form used by templates and string concatenation."""
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if isinstance(value, (list, tuple)):
        return ",".join(to_text(v) for v in value)
    return str(value)


def strict_equals(left: Any, right: Any) -> bool:
    if isinstance(left, bool) or isinstance(right, bool):
        return isinstance(left, bool) and isinstance(right, bool) and left == right
    if _is_number(left) and _is_number(right):
        return left == right
    if type(left) is not type(right) and not (
        isinstance(left, str) and isinstance(right, str)
    ):
        return False
    return left == right


def loose_equals(left: Any, right: Any) -> bool:
    if left is None or right is None:
        return left is None and right is None
    if (_is_number(left) and isinstance(right, str)) or (
        isinstance(left, str) and _is_number(right)
    ):
        try:
            return float(left) == float(right)
        except (ValueError, OverflowError):
            return False
    return left == right


def _compare(op: str, left: Any, right: Any) -> bool:
    if left is None or right is None:
        return False
    if not (_is_number(left) and _is_number(right)) and type(left) is not type(right):
        return False
    try:
        if op == "<":
            return left < right
        if op == ">":
            return left > right
        if op == "<=":
            return left <= right
        return left >= right
    except TypeError:
        return False


def _arithmetic(op: str, left: Any, right: Any, node: n.Node) -> Any:
    if op == "+" and (isinstance(left, str) or isinstance(right, str)):
        return to_text(left) + to_text(right)
    if left is None or right is None:
        return None
    if not (_is_number(left) and _is_number(right)):
        raise ExpressionEvaluationError(
            f"Cannot apply {op!r} to {type(left).__name__} and {type(right).__name__} "
            f"(at offset {node.offset})"
        )
    if op not in ("+", "-", "*") and right == 0:
        raise ExpressionEvaluationError(
            f"Division by zero in {op!r} (at offset {node.offset})"
        )
    both_int = isinstance(left, int) and isinstance(right, int)
    try:
        if op == "+":
            return left + right
        if op == "-":
            return left - right
        if op == "*":
            return left * right
        if op == "/":
            result = left / right
            return int(result) if both_int and result.is_integer() else result
        if both_int:
            # Remainder keeps the sign of the dividend
            remainder = abs(left) % abs(right)
            return -remainder if left < 0 else remainder
        return math.fmod(left, right)
    except OverflowError as e:
        raise ExpressionEvaluationError(
            f"Numeric overflow in {op!r} (at offset {node.offset})"
        ) from e


_BINARY_OPS: dict[str, Callable[[Any, Any], bool]] = {
    "===": strict_equals,
    "!==": lambda a, b: not strict_equals(a, b),
    "==": loose_equals,
    "!=": lambda a, b: not loose_equals(a, b),
}


def get_member(value: Any, name: str) -> Any:
    """Property read with missing-value semantics."""
    if value is None:
        return None
    if isinstance(value, Mapping):
        return value.get(name)
    if name == "length" and isinstance(value, (str, list, tuple)):
        return len(value)
    if name.startswith("_"):
        raise ExpressionEvaluationError(f"Access to private property {name!r} is not allowed")
    if isinstance(value, (str, int, float, bool, list, tuple)):
        return None
    attr = getattr(value, name, None)
    return None if callable(attr) else attr


def _describe(node: n.Node) -> str:
    if isinstance(node, n.SigilRef):
        return node.sigil + ".".join((node.id,) + node.fields)
    if isinstance(node, n.Identifier):
        return node.name
    if isinstance(node, n.Member):
        return f"{_describe(node.object)}.{node.name}"
    if isinstance(node, n.Call):
        return f"{_describe(node.callee)}(...)"
    if isinstance(node, n.Index):
        return f"{_describe(node.object)}[...]"
    return type(node).__name__.lower()


# =============================================================================
# Methods
# =============================================================================


def _truthy(value: Any) -> bool:
    return bool(value)


def _array_method(items: list | tuple, name: str, args: list[Any]) -> Any:
    def predicate() -> Callable[..., Any]:
        if not args or not callable(args[0]):
            raise ExpressionEvaluationError(f"{name}() expects a function argument")
        return args[0]

    if name == "every":
        fn = predicate()
        return all(_truthy(fn(item)) for item in items)
    if name == "some":
        fn = predicate()
        return any(_truthy(fn(item)) for item in items)
    if name == "filter":
        fn = predicate()
        return [item for item in items if _truthy(fn(item))]
    if name == "map":
        fn = predicate()
        return [fn(item) for item in items]
    if name == "find":
        fn = predicate()
        return next((item for item in items if _truthy(fn(item))), None)
    if name == "includes":
        return any(strict_equals(item, args[0] if args else None) for item in items)
    if name == "indexOf":
        target = args[0] if args else None
        return next((i for i, item in enumerate(items) if strict_equals(item, target)), -1)
    if name == "join":
        sep = to_text(args[0]) if args else ","
        return sep.join(to_text(item) for item in items)
    raise ExpressionEvaluationError(f"Unknown array method {name!r}")


def _string_method(text: str, name: str, args: list[Any]) -> Any:
    arg = to_text(args[0]) if args else ""
    if name == "toLowerCase":
        return text.lower()
    if name == "toUpperCase":
        return text.upper()
    if name == "trim":
        return text.strip()
    if name == "includes":
        return arg in text
    if name == "startsWith":
        return text.startswith(arg)
    if name == "endsWith":
        return text.endswith(arg)
    if name == "split":
        if not args:
            return [text]
        return list(text) if arg == "" else text.split(arg)
    if name == "indexOf":
        return text.find(arg)
    raise ExpressionEvaluationError(f"Unknown string method {name!r}")


def _call_method(target: Any, name: str, args: list[Any], node: n.Member) -> Any:
    if target is None:
        raise ExpressionEvaluationError(
            f"Cannot call {name}() on {_describe(node.object)}: the value is missing "
            f"(undefined). Check that the referenced id exists and has that field."
        )
    if isinstance(target, (list, tuple)):
        return _array_method(target, name, args)
    if isinstance(target, str):
        return _string_method(target, name, args)
    if isinstance(target, Mapping):
        fn = target.get(name)
        if callable(fn):
            try:
                return fn(*args)
            except ExpressionEvaluationError:
                raise
            except (TypeError, ValueError, ArithmeticError) as e:
                raise ExpressionEvaluationError(f"{_describe(node)}() failed: {e}") from e
        raise ExpressionEvaluationError(f"{_describe(node)} is not a function")
    raise ExpressionEvaluationError(
        f"Cannot call {name}() on a {type(target).__name__} ({_describe(node.object)})"
    )


# =============================================================================
# Evaluation
# =============================================================================


def _lookup_identifier(name: str, context: ExpressionContext) -> Any:
    if name in ENUMERATIONS:
        return ENUMERATIONS[name]
    if name == "Math":
        return MATH
    if name == "Object":
        return OBJECT
    fn = context.functions.get(name)
    if fn is not None:
        return fn
    return context.bindings.get(name)


def _make_arrow(node: n.Arrow, context: ExpressionContext) -> Callable[..., Any]:
    def arrow(*args: Any) -> Any:
        bound = {p: (args[i] if i < len(args) else None) for i, p in enumerate(node.params)}
        return evaluate(node.body, context.bind(**bound))

    return arrow


def _call(node: n.Call, context: ExpressionContext) -> Any:
    callee = node.callee

    if isinstance(callee, n.Member):
        target = evaluate(callee.object, context)
        args = [evaluate(a, context) for a in node.args]
        return _call_method(target, callee.name, args, callee)

    if isinstance(callee, n.Identifier):
        fn = _lookup_identifier(callee.name, context)
        if fn is None:
            raise UnknownFunctionError(callee.name, context.functions.names())
    else:
        fn = evaluate(callee, context)
        if fn is None:
            raise ExpressionEvaluationError(
                f"Cannot call {_describe(callee)}: the value is missing (undefined)"
            )

    if not callable(fn):
        raise ExpressionEvaluationError(f"{_describe(callee)} is not a function")
    args = [evaluate(a, context) for a in node.args]
    try:
        return fn(*args)
    except ExpressionEvaluationError:
        raise
    except (TypeError, ValueError, ArithmeticError) as e:
        raise ExpressionEvaluationError(f"{_describe(callee)} failed: {e}") from e


def evaluate(node: n.Node, context: ExpressionContext | None = None) -> Any:
    """Evaluate an AST.

    Args:
        node: AST from :func:`parse`
        context: Evaluation context (an empty one if omitted)

    Raises:
        UnknownFunctionError: Calling a name that resolves to nothing
        ExpressionEvaluationError: Method calls on missing values, type errors
    """
    if context is None:
        context = create_context()

    if isinstance(node, n.Literal):
        return node.value

    if isinstance(node, n.SigilRef):
        namespace = getattr(context, _SIGIL_NAMESPACE[node.sigil])
        value = namespace.get(node.id)
        for name in node.fields:
            value = get_member(value, name)
        return value

    if isinstance(node, n.Identifier):
        return _lookup_identifier(node.name, context)

    if isinstance(node, n.Member):
        return get_member(evaluate(node.object, context), node.name)

    if isinstance(node, n.Index):
        target = evaluate(node.object, context)
        index = evaluate(node.index, context)
        if target is None:
            return None
        if isinstance(target, (list, tuple, str)) and _is_number(index):
            if isinstance(index, float) and not math.isfinite(index):
                return None
            i = int(index)
            return target[i] if 0 <= i < len(target) else None
        return get_member(target, to_text(index))

    if isinstance(node, n.Call):
        return _call(node, context)

    if isinstance(node, n.Unary):
        value = evaluate(node.operand, context)
        if node.op == "!":
            return not _truthy(value)
        if value is None:
            return None
        if not _is_number(value):
            raise ExpressionEvaluationError(
                f"Cannot negate {type(value).__name__} (at offset {node.offset})"
            )
        return -value

    if isinstance(node, n.Logical):
        left = evaluate(node.left, context)
        if node.op == "&&":
            return evaluate(node.right, context) if _truthy(left) else left
        return left if _truthy(left) else evaluate(node.right, context)

    if isinstance(node, n.Binary):
        left = evaluate(node.left, context)
        right = evaluate(node.right, context)
        if node.op in _BINARY_OPS:
            return _BINARY_OPS[node.op](left, right)
        if node.op in ("<", ">", "<=", ">="):
            return _compare(node.op, left, right)
        return _arithmetic(node.op, left, right, node)

    if isinstance(node, n.Conditional):
        if _truthy(evaluate(node.test, context)):
            return evaluate(node.consequent, context)
        return evaluate(node.alternate, context)

    if isinstance(node, n.Arrow):
        return _make_arrow(node, context)

    if isinstance(node, n.Template):
        return "".join(
            part if isinstance(part, str) else to_text(evaluate(part, context))
            for part in node.parts
        )

    if isinstance(node, n.ObjectLiteral):
        return {key: evaluate(value, context) for key, value in node.entries}

    if isinstance(node, n.ArrayLiteral):
        return [evaluate(item, context) for item in node.items]

    raise ExpressionEvaluationError(f"Unsupported expression node {type(node).__name__}")
