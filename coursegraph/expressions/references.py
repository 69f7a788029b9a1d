"""Static analysis of expressions: which state does an expression read?

Hosts use this to know which components an expression depends on (so they
can subscribe to exactly that state) and to fill ``{{ ... }}`` placeholders
in static text.
"""

import re
from collections.abc import Iterator
from dataclasses import dataclass, field
from typing import Any, NamedTuple

from . import nodes as n
from .evaluator import ExpressionContext, evaluate, to_text
from .parser import parse, try_parse

_INTERPOLATION_RE = re.compile(r"\{\{([^}]+)\}\}")


class Reference(NamedTuple):
    sigil: str
    id: str
    fields: tuple[str, ...] = ()


@dataclass
class References:
    """References grouped by namespace.

    ``component_state`` maps component ids to the fields read from them (an
    empty list means the whole state is read).
    """

    component_state: dict[str, list[str]] = field(default_factory=dict)
    static_content: list[str] = field(default_factory=list)
    global_vars: list[str] = field(default_factory=list)

    def is_empty(self) -> bool:
        return not (self.component_state or self.static_content or self.global_vars)


def iter_sigil_refs(node: Any) -> Iterator[n.SigilRef]:
    """Yield every SigilRef in an AST, in source order."""
    if isinstance(node, n.SigilRef):
        yield node
    elif isinstance(node, n.Node):
        for name in node.__dataclass_fields__:
            if name != "offset":
                yield from iter_sigil_refs(getattr(node, name))
    elif isinstance(node, tuple):
        for item in node:
            yield from iter_sigil_refs(item)


def extract_references(expression: str) -> list[Reference]:
    """Unique sigil references in an expression (empty if it does not parse)."""
    if not expression or not expression.strip():
        return []
    ast = try_parse(expression)
    if ast is None:
        return []
    seen: dict[Reference, None] = {}
    for ref in iter_sigil_refs(ast):
        seen.setdefault(Reference(ref.sigil, ref.id, ref.fields), None)
    return list(seen)


def to_structured(refs: list[Reference]) -> References:
    result = References()
    for ref in refs:
        if ref.sigil == "@":
            fields = result.component_state.setdefault(ref.id, [])
            if ref.fields and ref.fields[0] not in fields:
                fields.append(ref.fields[0])
        elif ref.sigil == "#":
            if ref.id not in result.static_content:
                result.static_content.append(ref.id)
        elif ref.id not in result.global_vars:
            result.global_vars.append(ref.id)
    return result


def extract_structured_references(expression: str) -> References:
    return to_structured(extract_references(expression))


def merge_references(*refs_list: References) -> References:
    """Merge several References, de-duplicating ids and fields."""
    merged = References()
    for refs in refs_list:
        for key, fields in refs.component_state.items():
            target = merged.component_state.setdefault(key, [])
            target.extend(f for f in fields if f not in target)
        merged.static_content.extend(
            i for i in refs.static_content if i not in merged.static_content
        )
        merged.global_vars.extend(
            name for name in refs.global_vars if name not in merged.global_vars
        )
    return merged


def extract_and_merge(*expressions: str) -> References:
    return merge_references(*(extract_structured_references(e) for e in expressions))


# =============================================================================
# Text interpolation
# =============================================================================


class Interpolation(NamedTuple):
    expression: str
    start: int
    end: int


def extract_interpolations(text: str) -> list[Interpolation]:
    """All ``{{ expr }}`` placeholders in ``text``."""
    return [
        Interpolation(m.group(1).strip(), m.start(), m.end())
        for m in _INTERPOLATION_RE.finditer(text)
    ]


def extract_interpolation_references(text: str) -> References:
    return extract_and_merge(*(i.expression for i in extract_interpolations(text)))


def interpolate(text: str, context: ExpressionContext) -> str:
    """Replace every ``{{ expr }}`` in ``text`` with its evaluated value.

    Raises:
        ExpressionSyntaxError: If a placeholder does not parse
    """
    parts = []
    last = 0
    for interp in extract_interpolations(text):
        parts.append(text[last:interp.start])
        parts.append(to_text(evaluate(parse(interp.expression), context)))
        last = interp.end
    parts.append(text[last:])
    return "".join(parts)
