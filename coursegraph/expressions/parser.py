"""Recursive-descent parser for the expression language.

Grammar, lowest precedence first:

    expression  := conditional
    conditional := or ('?' expression ':' conditional)?
    or          := and ('||' and)*
    and         := equality ('&&' equality)*
    equality    := relational (('===' | '!==' | '==' | '!=') relational)*
    relational  := additive (('<' | '>' | '<=' | '>=') additive)*
    additive    := multiplicative (('+' | '-') multiplicative)*
    multiplicative := unary (('*' | '/' | '%') unary)*
    unary       := ('!' | '-') unary | postfix
    postfix     := primary ('.' name | '[' expression ']' | '(' args ')')*
    primary     := number | string | template | true | false | null
                 | undefined | sigil ('.' field)* | arrow | name
                 | '(' expression ')' | '{' entries '}' | '[' items ']'

A sigil reference swallows dotted fields, except a field followed by ``(``,
which starts a method call: ``@answer.value.trim()`` is a call of ``trim``
on ``@answer.value``.
"""

import logging
from typing import NamedTuple

from ..config import get_config
from ..errors import ExpressionSyntaxError
from . import nodes as n
from .lexer import Token, tokenize

logger = logging.getLogger(__name__)

_KEYWORDS = {"true": True, "false": False, "null": None, "undefined": None}

# Bounds that keep parsing and evaluation well inside the interpreter stack
MAX_NESTING = 32
MAX_HEIGHT = 128


class ParseResult(NamedTuple):
    ast: n.Node | None
    error: ExpressionSyntaxError | None

    @property
    def ok(self) -> bool:
        return self.error is None


class Parser:
    """Parses one expression source into an AST."""

    def __init__(
        self,
        source: str,
        base_offset: int = 0,
        full_source: str | None = None,
        depth: int = 0,
    ):
        self.source = source
        self.base = base_offset
        self.full_source = full_source if full_source is not None else source
        self.depth = depth
        self._heights: dict[int, tuple[n.Node, int]] = {}
        try:
            self.tokens = tokenize(source)
        except ExpressionSyntaxError as e:
            raise self._relocate(e) from None
        self.pos = 0

    # ── Token helpers ──

    @property
    def current(self) -> Token:
        return self.tokens[self.pos]

    def peek(self, distance: int = 1) -> Token:
        return self.tokens[min(self.pos + distance, len(self.tokens) - 1)]

    def advance(self) -> Token:
        token = self.tokens[self.pos]
        if token.kind != "eof":
            self.pos += 1
        return token

    def accept(self, *ops: str) -> Token | None:
        if self.current.is_op(*ops):
            return self.advance()
        return None

    def expect(self, op: str, what: str | None = None) -> Token:
        if self.current.is_op(op):
            return self.advance()
        raise self.error(f"Expected {what or repr(op)}", self.current)

    def error(self, message: str, token: Token) -> ExpressionSyntaxError:
        if token.kind == "eof":
            message += " but reached end of expression"
        else:
            message += f" but found {self._describe(token)}"
        return ExpressionSyntaxError(message, self.full_source, self.base + token.offset)

    def _relocate(self, e: ExpressionSyntaxError) -> ExpressionSyntaxError:
        if self.base == 0 and self.full_source is self.source:
            return e
        return ExpressionSyntaxError(e.message, self.full_source, self.base + e.offset)

    @staticmethod
    def _describe(token: Token) -> str:
        if token.kind == "sigil":
            return repr("".join(token.value))
        if token.kind == "template":
            return "template literal"
        if token.kind == "string":
            return f"string {token.value!r}"
        return repr(str(token.value))

    def _offset(self, token: Token) -> int:
        return self.base + token.offset

    def _nest(self, token: Token) -> None:
        self.depth += 1
        if self.depth > MAX_NESTING:
            raise ExpressionSyntaxError(
                f"Expression nests more than {MAX_NESTING} levels deep",
                self.full_source,
                self._offset(token),
            )

    def _build(self, node: n.Node) -> n.Node:
        """Record the height of a composite node, rejecting overly deep trees."""
        height = 1 + max((self._height(c) for c in _children(node)), default=0)
        if height > MAX_HEIGHT:
            raise ExpressionSyntaxError(
                f"Expression has more than {MAX_HEIGHT} levels of operations",
                self.full_source,
                node.offset,
            )
        self._heights[id(node)] = (node, height)
        return node

    def _height(self, node: n.Node) -> int:
        built, height = self._heights.get(id(node), (None, 1))
        return height if built is node else 1

    # ── Entry ──

    def parse(self) -> n.Node:
        if self.current.kind == "eof":
            raise ExpressionSyntaxError("Empty expression", self.full_source, self.base)
        node = self.expression()
        if self.current.kind != "eof":
            raise self.error("Unexpected token after expression", self.current)
        return node

    # ── Grammar ──

    def expression(self) -> n.Node:
        self._nest(self.current)
        try:
            return self.conditional()
        finally:
            self.depth -= 1

    def conditional(self) -> n.Node:
        test = self.logical_or()
        start = self.accept("?")
        if start is None:
            return test
        consequent = self.expression()
        self.expect(":", "':' in conditional expression")
        self._nest(start)
        try:
            alternate = self.conditional()
        finally:
            self.depth -= 1
        return self._build(n.Conditional(test, consequent, alternate, offset=test.offset))

    def _binary_level(self, ops: tuple[str, ...], operand, node_type=n.Binary) -> n.Node:
        left = operand()
        while True:
            token = self.accept(*ops)
            if token is None:
                return left
            right = operand()
            left = self._build(node_type(token.value, left, right, offset=self._offset(token)))

    def logical_or(self) -> n.Node:
        return self._binary_level(("||",), self.logical_and, n.Logical)

    def logical_and(self) -> n.Node:
        return self._binary_level(("&&",), self.equality, n.Logical)

    def equality(self) -> n.Node:
        return self._binary_level(("===", "!==", "==", "!="), self.relational)

    def relational(self) -> n.Node:
        return self._binary_level(("<", ">", "<=", ">="), self.additive)

    def additive(self) -> n.Node:
        return self._binary_level(("+", "-"), self.multiplicative)

    def multiplicative(self) -> n.Node:
        return self._binary_level(("*", "/", "%"), self.unary)

    def unary(self) -> n.Node:
        token = self.accept("!", "-")
        if token is not None:
            self._nest(token)
            try:
                operand = self.unary()
            finally:
                self.depth -= 1
            return self._build(n.Unary(token.value, operand, offset=self._offset(token)))
        return self.postfix()

    def postfix(self) -> n.Node:
        node = self.primary()
        while True:
            if token := self.accept("."):
                name = self.current
                if name.kind != "name":
                    raise self.error("Expected property name after '.'", name)
                self.advance()
                node = self._build(n.Member(node, name.value, offset=self._offset(token)))
            elif token := self.accept("["):
                index = self.expression()
                self.expect("]", "']' to close index")
                node = self._build(n.Index(node, index, offset=self._offset(token)))
            elif self.current.is_op("("):
                node = self._build(n.Call(node, self.arguments(), offset=node.offset))
            else:
                return node

    def arguments(self) -> tuple[n.Node, ...]:
        self.expect("(")
        args: list[n.Node] = []
        if not self.accept(")"):
            while True:
                args.append(self.expression())
                if self.accept(")"):
                    break
                self.expect(",", "',' or ')' in argument list")
        return tuple(args)

    def primary(self) -> n.Node:
        token = self.current
        offset = self._offset(token)

        if token.kind == "number" or token.kind == "string":
            self.advance()
            return n.Literal(token.value, offset=offset)

        if token.kind == "template":
            self.advance()
            return self.template(token)

        if token.kind == "sigil":
            self.advance()
            return self.sigil(token)

        if token.kind == "name":
            if token.value in _KEYWORDS:
                self.advance()
                return n.Literal(_KEYWORDS[token.value], offset=offset)
            if self.peek().is_op("=>"):
                self.advance()
                self.advance()
                return self._build(n.Arrow((token.value,), self.expression(), offset=offset))
            self.advance()
            return n.Identifier(token.value, offset=offset)

        if token.is_op("("):
            if arrow := self.try_arrow_params():
                return arrow
            self.advance()
            node = self.expression()
            self.expect(")", "')' to close group")
            return node

        if token.is_op("{"):
            return self.object_literal()

        if token.is_op("["):
            self.advance()
            items: list[n.Node] = []
            if not self.accept("]"):
                while True:
                    items.append(self.expression())
                    if self.accept("]"):
                        break
                    self.expect(",", "',' or ']' in array")
            return self._build(n.ArrayLiteral(tuple(items), offset=offset))

        raise self.error("Expected a value", token)

    def try_arrow_params(self) -> n.Node | None:
        """Parse ``(a, b) => body`` if the tokens at ``(`` form one."""
        i = 1
        params: list[str] = []
        if not self.peek(i).is_op(")"):
            while True:
                tok = self.peek(i)
                if tok.kind != "name" or tok.value in _KEYWORDS:
                    return None
                params.append(tok.value)
                i += 1
                if self.peek(i).is_op(")"):
                    break
                if not self.peek(i).is_op(","):
                    return None
                i += 1
        if not self.peek(i + 1).is_op("=>"):
            return None
        start = self.current
        self.pos += i + 2
        return self._build(n.Arrow(tuple(params), self.expression(), offset=self._offset(start)))

    def sigil(self, token: Token) -> n.Node:
        sigil, ident = token.value
        fields: list[str] = []
        while (
            self.current.is_op(".")
            and self.peek().kind == "name"
            and not self.peek(2).is_op("(")
        ):
            self.advance()
            fields.append(self.advance().value)
        return n.SigilRef(sigil, ident, tuple(fields), offset=self._offset(token))

    def object_literal(self) -> n.Node:
        start = self.expect("{")
        entries: list[tuple[str, n.Node]] = []
        if not self.accept("}"):
            while True:
                key = self.current
                if key.kind not in ("name", "string", "number"):
                    raise self.error("Expected property name in object literal", key)
                self.advance()
                self.expect(":", "':' after property name")
                entries.append((str(key.value), self.expression()))
                if self.accept("}"):
                    break
                self.expect(",", "',' or '}' in object literal")
        return self._build(n.ObjectLiteral(tuple(entries), offset=self._offset(start)))

    def template(self, token: Token) -> n.Node:
        parts: list[object] = []
        for kind, value, offset in token.value:
            if kind == "text":
                parts.append(value)
            else:
                inner = Parser(value, self.base + offset, self.full_source, self.depth)
                inner._heights = self._heights
                parts.append(inner.parse())
        return self._build(n.Template(tuple(parts), offset=self._offset(token)))


def _children(node: n.Node) -> list[n.Node]:
    found: list[n.Node] = []
    pending: list[object] = [getattr(node, name) for name in node.__dataclass_fields__]
    while pending:
        item = pending.pop()
        if isinstance(item, n.Node):
            found.append(item)
        elif isinstance(item, tuple):
            pending.extend(item)
    return found


# =============================================================================
# Public API
# =============================================================================


def parse(source: str) -> n.Node:
    """Parse an expression into an AST.

    Raises:
        ExpressionSyntaxError: With the source offset of the problem
    """
    if not isinstance(source, str):
        raise TypeError(f"Expression source must be a string, got {type(source).__name__}")
    limit = get_config().expressions.max_source_length
    if len(source) > limit:
        raise ExpressionSyntaxError(
            f"Expression is too long ({len(source)} characters, limit {limit})", source, limit
        )
    return Parser(source).parse()


def try_parse(source: str) -> n.Node | None:
    """Parse, returning None instead of raising on malformed input."""
    try:
        return parse(source)
    except ExpressionSyntaxError as e:
        logger.debug("Expression %r did not parse: %s", source, e.message)
        return None


def parse_result(source: str) -> ParseResult:
    """Parse, returning the AST or the error without raising."""
    try:
        return ParseResult(parse(source), None)
    except ExpressionSyntaxError as e:
        return ParseResult(None, e)
