"""Tokenizer for the expression language."""

import re
from dataclasses import dataclass
from typing import Any

from ..errors import ExpressionSyntaxError

SIGILS = "@#$"

# Templates inside ${...} of other templates, counted from the outermost
MAX_TEMPLATE_NESTING = 16

_TOKEN_RE = re.compile(
    r"""
    (?P<ws>\s+)
  | (?P<number>(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?)
  | (?P<string>"(?:[^"\\\n]|\\.)*"|'(?:[^'\\\n]|\\.)*')
  | (?P<sigil>[@\#$][A-Za-z0-9_]+)
  | (?P<name>[A-Za-z_][A-Za-z0-9_]*)
  | (?P<op>===|!==|==|!=|<=|>=|=>|&&|\|\||[-+*/%<>!?:.,(){}\[\]])
    """,
    re.VERBOSE,
)

_ESCAPES = {"n": "\n", "t": "\t", "r": "\r", "0": "\0", "b": "\b", "f": "\f", "v": "\v"}


@dataclass(frozen=True)
class Token:
    kind: str  # number, string, template, sigil, name, op, eof
    value: Any
    offset: int

    def is_op(self, *ops: str) -> bool:
        return self.kind == "op" and self.value in ops


def _unescape(body: str) -> str:
    out = []
    i = 0
    while i < len(body):
        ch = body[i]
        if ch == "\\" and i + 1 < len(body):
            nxt = body[i + 1]
            out.append(_ESCAPES.get(nxt, nxt))
            i += 2
        else:
            out.append(ch)
            i += 1
    return "".join(out)


def _scan_template(
    source: str, start: int, nesting: int = 0
) -> tuple[list[tuple[str, Any, int]], int]:
    """Scan a template literal starting at the opening backtick.

    Returns the parts as ``("text", str, offset)`` / ``("expr", src, offset)``
    and the offset just past the closing backtick.
    """
    if nesting > MAX_TEMPLATE_NESTING:
        raise ExpressionSyntaxError(
            f"Template literals nest more than {MAX_TEMPLATE_NESTING} levels deep", source, start
        )
    parts: list[tuple[str, Any, int]] = []
    buf: list[str] = []
    i = start + 1
    text_start = i
    while i < len(source):
        ch = source[i]
        if ch == "\\" and i + 1 < len(source):
            nxt = source[i + 1]
            buf.append(_ESCAPES.get(nxt, nxt))
            i += 2
        elif ch == "`":
            if buf:
                parts.append(("text", "".join(buf), text_start))
            return parts, i + 1
        elif ch == "$" and source.startswith("${", i):
            if buf:
                parts.append(("text", "".join(buf), text_start))
                buf = []
            expr_start = i + 2
            end = _match_brace(source, expr_start, i, nesting)
            parts.append(("expr", source[expr_start:end], expr_start))
            i = end + 1
            text_start = i
        else:
            buf.append(ch)
            i += 1
    raise ExpressionSyntaxError("Unterminated template literal", source, start)


def _match_brace(source: str, i: int, opened_at: int, nesting: int = 0) -> int:
    """Find the ``}`` closing a ``${`` interpolation, skipping nested braces and strings."""
    depth = 0
    while i < len(source):
        ch = source[i]
        if ch in "'\"":
            m = _TOKEN_RE.match(source, i)
            if not m or m.lastgroup != "string":
                raise ExpressionSyntaxError("Unterminated string literal", source, i)
            i = m.end()
            continue
        if ch == "`":
            _, i = _scan_template(source, i, nesting + 1)
            continue
        if ch == "{":
            depth += 1
        elif ch == "}":
            if depth == 0:
                return i
            depth -= 1
        i += 1
    raise ExpressionSyntaxError("Unterminated ${ in template literal", source, opened_at)


def tokenize(source: str) -> list[Token]:
    """Split ``source`` into tokens, ending with an ``eof`` token.

    Raises:
        ExpressionSyntaxError: On characters or literals that cannot start a token
    """
    tokens: list[Token] = []
    pos = 0
    while pos < len(source):
        ch = source[pos]
        if ch == "`":
            parts, end = _scan_template(source, pos)
            tokens.append(Token("template", parts, pos))
            pos = end
            continue

        m = _TOKEN_RE.match(source, pos)
        if m is None:
            if ch in "'\"":
                raise ExpressionSyntaxError("Unterminated string literal", source, pos)
            if ch in SIGILS:
                raise ExpressionSyntaxError(
                    f"Expected an identifier after {ch!r}", source, pos
                )
            if ch == "=":
                raise ExpressionSyntaxError(
                    "Assignment is not allowed; use === to compare", source, pos
                )
            raise ExpressionSyntaxError(f"Unexpected character {ch!r}", source, pos)

        kind = m.lastgroup
        text = m.group()
        if kind == "number":
            value: Any = float(text) if any(c in text for c in ".eE") else int(text)
            tokens.append(Token("number", value, pos))
        elif kind == "string":
            tokens.append(Token("string", _unescape(text[1:-1]), pos))
        elif kind == "sigil":
            tokens.append(Token("sigil", (text[0], text[1:]), pos))
        elif kind in ("name", "op"):
            tokens.append(Token(kind, text, pos))
        pos = m.end()

    tokens.append(Token("eof", None, len(source)))
    return tokens
