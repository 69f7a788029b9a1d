"""AST node types for the expression language.

Nodes are frozen dataclasses. ``offset`` records where the node started in
the source and is ignored by equality, so ``parse("a+b") == parse("a + b")``.
"""

from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True)
class Node:
    offset: int = field(default=0, compare=False, kw_only=True)


@dataclass(frozen=True)
class Literal(Node):
    value: Any


@dataclass(frozen=True)
class SigilRef(Node):
    """``@id.field``, ``#id.field`` or ``$id.field``."""

    sigil: str
    id: str
    fields: tuple[str, ...] = ()


@dataclass(frozen=True)
class Identifier(Node):
    name: str


@dataclass(frozen=True)
class Member(Node):
    object: Node
    name: str


@dataclass(frozen=True)
class Index(Node):
    """Computed member access: ``items[0]``, ``obj["key"]``."""

    object: Node
    index: Node


@dataclass(frozen=True)
class Call(Node):
    callee: Node
    args: tuple[Node, ...] = ()


@dataclass(frozen=True)
class Unary(Node):
    op: str
    operand: Node


@dataclass(frozen=True)
class Binary(Node):
    op: str
    left: Node
    right: Node


@dataclass(frozen=True)
class Logical(Node):
    """``&&`` / ``||``, kept apart from Binary because they short-circuit."""

    op: str
    left: Node
    right: Node


@dataclass(frozen=True)
class Conditional(Node):
    test: Node
    consequent: Node
    alternate: Node


@dataclass(frozen=True)
class Arrow(Node):
    params: tuple[str, ...]
    body: Node


@dataclass(frozen=True)
class Template(Node):
    """Template literal; ``parts`` alternate between str and Node."""

    parts: tuple[Any, ...]


@dataclass(frozen=True)
class ObjectLiteral(Node):
    entries: tuple[tuple[str, Node], ...] = ()


@dataclass(frozen=True)
class ArrayLiteral(Node):
    items: tuple[Node, ...] = ()


def to_dict(node: Any) -> Any:
    """Plain-dict view of an AST, for display and JSON output."""
    if isinstance(node, Node):
        data: dict[str, Any] = {"type": type(node).__name__}
        for name in node.__dataclass_fields__:
            if name == "offset":
                continue
            data[name] = to_dict(getattr(node, name))
        return data
    if isinstance(node, tuple):
        return [to_dict(item) for item in node]
    return node
