"""Gates and graders: expressions and match predicates over reactive state.

A gate is an expression such as ``@quiz.correct === correctness.correct``.
Every ``@id`` it mentions is read from the state store under the scoped
state key for the current scope, so the same gate authored inside a
repeated container reads each copy's own state.
"""

import logging
from collections.abc import Callable, Mapping
from typing import Any

from ..core.status import Correctness
from ..errors import UnknownFunctionError
from ..expressions import (
    ExpressionContext,
    FunctionRegistry,
    References,
    create_context,
    evaluate,
    extract_structured_references,
    parse,
)
from ..ids import to_scoped_state_key
from ..state import StateStore
from .matching import MatchResult, grade_match, numerical_match, string_match

logger = logging.getLogger(__name__)

MatchFunction = Callable[..., MatchResult]

MATCH_FUNCTIONS: Mapping[str, MatchFunction] = {
    "stringMatch": string_match,
    "numericalMatch": numerical_match,
}


def _as_predicate(fn: MatchFunction) -> Callable[..., bool]:
    """Wrap a match function so expressions see a plain bool."""

    def predicate(input: Any, answer: Any, options: Mapping[str, Any] | None = None) -> bool:
        return fn(input, answer, options).matched

    predicate.__name__ = fn.__name__
    return predicate


def default_function_registry() -> FunctionRegistry:
    """Built-in helpers plus ``stringMatch`` and ``numericalMatch``."""
    functions = FunctionRegistry.with_builtins()
    for name, fn in MATCH_FUNCTIONS.items():
        functions.register(name, _as_predicate(fn))
    return functions


def _read_component(state: StateStore, state_key: str, fields: list[str]) -> dict[str, Any] | None:
    snapshot = getattr(state, "snapshot", None)
    if not fields and callable(snapshot):
        return snapshot(state_key)
    values = {}
    for name in fields:
        value = state.get(state_key, name)
        if value is not None:
            values[name] = value
    return values or None


def build_context(
    source_or_refs: str | References,
    state: StateStore,
    scope: str = "",
    *,
    static_content: Mapping[str, Any] | None = None,
    global_vars: Mapping[str, Any] | None = None,
    functions: FunctionRegistry | None = None,
) -> ExpressionContext:
    """Context holding exactly the state an expression reads.

    Args:
        source_or_refs: Expression source, or references already extracted
        state: Reactive store to read from
        scope: Scope the expression was authored in
        static_content: ``#id`` values
        global_vars: ``$id`` values
        functions: Registry (defaults to :func:`default_function_registry`)
    """
    if isinstance(source_or_refs, str):
        refs = extract_structured_references(source_or_refs)
    else:
        refs = source_or_refs

    component_state: dict[str, Any] = {}
    for component_id, fields in refs.component_state.items():
        state_key = to_scoped_state_key(component_id, scope)
        values = _read_component(state, state_key, fields)
        if values is not None:
            component_state[component_id] = values

    return create_context(
        {
            "component_state": component_state,
            "static_content": dict(static_content or {}),
            "global_vars": dict(global_vars or {}),
        },
        functions=functions if functions is not None else default_function_registry(),
    )


def evaluate_gate(
    expression: str,
    state: StateStore,
    scope: str = "",
    *,
    functions: FunctionRegistry | None = None,
) -> bool:
    """Evaluate a gate expression to a bool.

    Raises:
        ExpressionSyntaxError: If the expression does not parse
        ExpressionEvaluationError: If evaluation fails
    """
    ast = parse(expression)
    context = build_context(expression, state, scope, functions=functions)
    result = bool(evaluate(ast, context))
    logger.debug("Gate %r in scope %r -> %s", expression, scope, result)
    return result


def grade_target(
    target: str,
    predicate: str,
    answer: Any,
    *,
    state: StateStore,
    scope: str = "",
    options: Mapping[str, Any] | None = None,
    functions: FunctionRegistry | None = None,
    grader: str | None = None,
) -> Correctness:
    """Grade the ``value`` of component ``target`` with a named match predicate.

    Args:
        target: Id of the input component being graded
        predicate: Match function name (``stringMatch``, ``numericalMatch``,
            or a registered function returning a MatchResult or bool)
        answer: Expected answer passed to the predicate
        state: Reactive store holding the target's value
        scope: Scope the grader was authored in
        options: Predicate options
        functions: Registry consulted for names outside MATCH_FUNCTIONS
        grader: When given, the grader's id; ``correct`` is written under its
            scoped state key

    Raises:
        UnknownFunctionError: If ``predicate`` names no known function
    """
    fn = MATCH_FUNCTIONS.get(predicate)
    if fn is None and functions is not None:
        fn = functions.get(predicate)
    if fn is None:
        available = [*MATCH_FUNCTIONS, *(functions.names() if functions is not None else [])]
        raise UnknownFunctionError(predicate, available)

    value = state.get(to_scoped_state_key(target, scope), "value")
    outcome = fn(value, answer, options)
    if isinstance(outcome, MatchResult):
        correctness = grade_match(outcome)
    else:
        correctness = Correctness.CORRECT if outcome else Correctness.INCORRECT

    if grader is not None:
        state.set(to_scoped_state_key(grader, scope), "correct", correctness.value)
    logger.debug("Graded %s in scope %r with %s -> %s", target, scope, predicate, correctness.value)
    return correctness
