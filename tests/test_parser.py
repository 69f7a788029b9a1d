"""Tests for the expression lexer and parser."""

import pytest

from coursegraph.config import CoursegraphConfig, ExpressionsConfig, configure
from coursegraph.errors import ExpressionSyntaxError
from coursegraph.expressions import ast_to_dict, parse, parse_result, try_parse
from coursegraph.expressions import nodes as n
from coursegraph.expressions.lexer import tokenize


class TestTokenize:
    """Tests for tokenize()."""

    def test_kinds(self):
        tokens = tokenize("@q.value === 'x' && 1.5")
        assert [t.kind for t in tokens] == [
            "sigil", "op", "name", "op", "string", "op", "number", "eof",
        ]
        assert tokens[0].value == ("@", "q")

    def test_numbers(self):
        values = [t.value for t in tokenize("1 2.5 .5 1e3")[:-1]]
        assert values == [1, 2.5, 0.5, 1000.0]
        assert isinstance(values[0], int)

    def test_string_escapes(self):
        assert tokenize(r"'a\'b\n'")[0].value == "a'b\n"

    def test_offsets(self):
        assert [t.offset for t in tokenize("a + bc")] == [0, 2, 4, 6]


class TestParse:
    """Tests for parse()."""

    def test_whitespace_does_not_matter(self):
        assert parse("a+b") == parse("a + b")

    def test_precedence(self):
        assert parse("1 + 2 * 3") == n.Binary(
            "+", n.Literal(1), n.Binary("*", n.Literal(2), n.Literal(3))
        )

    def test_left_associative(self):
        assert parse("1 - 2 - 3") == n.Binary(
            "-", n.Binary("-", n.Literal(1), n.Literal(2)), n.Literal(3)
        )

    def test_grouping(self):
        assert parse("(1 + 2) * 3") == n.Binary(
            "*", n.Binary("+", n.Literal(1), n.Literal(2)), n.Literal(3)
        )

    def test_logical_nodes(self):
        node = parse("a && b || c")
        assert isinstance(node, n.Logical)
        assert node.op == "||"
        assert isinstance(node.left, n.Logical)

    def test_conditional(self):
        assert parse("a ? 1 : b ? 2 : 3") == n.Conditional(
            n.Identifier("a"),
            n.Literal(1),
            n.Conditional(n.Identifier("b"), n.Literal(2), n.Literal(3)),
        )

    def test_keywords(self):
        assert parse("true") == n.Literal(True)
        assert parse("null") == n.Literal(None)
        assert parse("undefined") == n.Literal(None)

    def test_sigils(self):
        assert parse("@q.correct") == n.SigilRef("@", "q", ("correct",))
        assert parse("#intro") == n.SigilRef("#", "intro")
        assert parse("$course.title") == n.SigilRef("$", "course", ("title",))

    def test_method_call_on_sigil(self):
        assert parse("@answer.value.trim()") == n.Call(
            n.Member(n.SigilRef("@", "answer", ("value",)), "trim")
        )

    def test_index(self):
        assert parse("items[0]") == n.Index(n.Identifier("items"), n.Literal(0))

    def test_single_param_arrow(self):
        assert parse("x => x > 1") == n.Arrow(
            ("x",), n.Binary(">", n.Identifier("x"), n.Literal(1))
        )

    def test_multi_param_arrow(self):
        node = parse("(a, b) => a + b")
        assert isinstance(node, n.Arrow)
        assert node.params == ("a", "b")

    def test_parenthesized_name_is_not_arrow(self):
        assert parse("(a)") == n.Identifier("a")

    def test_template(self):
        assert parse("`Hi ${@name.value}!`") == n.Template(
            ("Hi ", n.SigilRef("@", "name", ("value",)), "!")
        )

    def test_nested_braces_in_template(self):
        node = parse("`${ {a: 1}.a }`")
        assert isinstance(node.parts[0], n.Member)

    def test_object_and_array_literals(self):
        assert parse("{a: 1, 'b': [2]}") == n.ObjectLiteral(
            (("a", n.Literal(1)), ("b", n.ArrayLiteral((n.Literal(2),))))
        )

    def test_offsets_recorded(self):
        node = parse("1 + @q")
        assert node.right.offset == 4

    def test_non_string_source(self):
        with pytest.raises(TypeError):
            parse(42)  # type: ignore[arg-type]


class TestSyntaxErrors:
    """Malformed sources raise ExpressionSyntaxError with an offset."""

    @pytest.mark.parametrize(
        "source, offset, fragment",
        [
            ("", 0, "Empty expression"),
            ("1 +", 3, "end of expression"),
            ("1 2", 2, "Unexpected token"),
            ("(1 + 2", 6, "')'"),
            ("a = 1", 2, "Assignment"),
            ("'abc", 0, "Unterminated string"),
            ("@ x", 0, "identifier"),
            ("1 ~ 2", 2, "Unexpected character"),
            ("`abc", 0, "template"),
            ("a.", 2, "property name"),
        ],
    )
    def test_offsets(self, source, offset, fragment):
        with pytest.raises(ExpressionSyntaxError) as exc_info:
            parse(source)
        assert exc_info.value.offset == offset
        assert fragment in exc_info.value.message
        assert exc_info.value.source == source

    def test_error_inside_template_points_into_full_source(self):
        source = "`${1 +}`"
        with pytest.raises(ExpressionSyntaxError) as exc_info:
            parse(source)
        assert exc_info.value.source == source
        assert exc_info.value.offset == 6

    def test_str_shows_caret(self):
        with pytest.raises(ExpressionSyntaxError) as exc_info:
            parse("1 2")
        assert str(exc_info.value).endswith("1 2\n    ^")

    def test_source_length_limit(self):
        configure(CoursegraphConfig(expressions=ExpressionsConfig(max_source_length=5)))
        assert parse("1 + 2") == n.Binary("+", n.Literal(1), n.Literal(2))
        with pytest.raises(ExpressionSyntaxError, match="too long"):
            parse("1 + 2 + 3")



class TestNestingLimits:
    """Deeply nested sources fail as syntax errors instead of exhausting the stack."""

    @pytest.mark.parametrize(
        "source, offset",
        [
            ("(" * 1000 + "1" + ")" * 1000, 32),
            ("!" * 3000 + "x", 31),
            ("-" * 40 + "1", 31),
            ("1+" * 300 + "1", 255),
        ],
    )
    def test_too_deep(self, source, offset):
        result = parse_result(source)
        assert not result.ok
        assert result.error.offset == offset
        assert "levels" in result.error.message
        assert try_parse(source) is None

    def test_long_conditional_chain(self):
        assert try_parse("a ? 1 : " * 500 + "0") is None

    def test_member_chain_counts_as_height(self):
        assert try_parse("a" + ".b" * 200) is None
        assert try_parse("a" + ".b" * 50) is not None

    def test_moderate_nesting_parses(self):
        assert parse("(" * 20 + "1" + ")" * 20) == n.Literal(1)
        assert parse("!" * 20 + "x").op == "!"
        assert try_parse("1+" * 100 + "1") is not None

    @staticmethod
    def _nested_template(levels):
        source = "1"
        for _ in range(levels):
            source = "`${" + source + "}`"
        return source

    def test_nested_templates(self):
        assert try_parse(self._nested_template(8)) is not None
        with pytest.raises(ExpressionSyntaxError, match="nest"):
            parse(self._nested_template(40))

class TestParseHelpers:
    """Tests for try_parse(), parse_result() and ast_to_dict()."""

    def test_try_parse(self):
        assert try_parse("1 +") is None
        assert try_parse("1") == n.Literal(1)

    def test_parse_result(self):
        ok = parse_result("a")
        assert ok.ok and ok.ast == n.Identifier("a")
        bad = parse_result("a +")
        assert not bad.ok
        assert bad.ast is None
        assert isinstance(bad.error, ExpressionSyntaxError)

    def test_ast_to_dict(self):
        assert ast_to_dict(parse("1 + x")) == {
            "type": "Binary",
            "op": "+",
            "left": {"type": "Literal", "value": 1},
            "right": {"type": "Identifier", "name": "x"},
        }
