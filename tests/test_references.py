"""Tests for reference extraction, interpolation and the function registry."""

import pytest

from coursegraph.errors import ExpressionSyntaxError
from coursegraph.expressions import (
    FunctionRegistry,
    Reference,
    References,
    create_context,
    extract_and_merge,
    extract_interpolations,
    extract_references,
    extract_structured_references,
    interpolate,
    merge_references,
)
from coursegraph.expressions.references import extract_interpolation_references


class TestExtractReferences:
    """Tests for extract_references()."""

    def test_source_order_and_dedup(self):
        refs = extract_references("@b.value + @a.value + @b.value + #intro + $course.title")
        assert refs == [
            Reference("@", "b", ("value",)),
            Reference("@", "a", ("value",)),
            Reference("#", "intro"),
            Reference("$", "course", ("title",)),
        ]

    def test_references_inside_arrows_and_templates(self):
        refs = extract_references("`${@q.value}` + [1].map(x => @r.score)")
        assert [r.id for r in refs] == ["q", "r"]

    def test_method_call_not_a_field(self):
        assert extract_references("@answer.value.trim()") == [
            Reference("@", "answer", ("value",))
        ]

    @pytest.mark.parametrize("source", ["", "   ", "1 +", "@"])
    def test_empty_or_unparseable(self, source):
        assert extract_references(source) == []


class TestStructuredReferences:
    """Tests for extract_structured_references() and merging."""

    def test_grouped_by_namespace(self):
        refs = extract_structured_references("@q.correct === correctness.correct && #intro && $week")
        assert refs.component_state == {"q": ["correct"]}
        assert refs.static_content == ["intro"]
        assert refs.global_vars == ["week"]
        assert not refs.is_empty()

    def test_whole_state_reference(self):
        assert extract_structured_references("@q").component_state == {"q": []}

    def test_first_field_only(self):
        refs = extract_structured_references("@q.value.length")
        assert refs.component_state == {"q": ["value"]}

    def test_empty(self):
        assert extract_structured_references("1 + 2").is_empty()

    def test_merge(self):
        merged = merge_references(
            References(component_state={"q": ["value"]}, static_content=["a"]),
            References(component_state={"q": ["value", "correct"], "r": []}, global_vars=["g"]),
        )
        assert merged.component_state == {"q": ["value", "correct"], "r": []}
        assert merged.static_content == ["a"]
        assert merged.global_vars == ["g"]

    def test_extract_and_merge(self):
        refs = extract_and_merge("@a.value", "@a.correct || @b.value", "broken +")
        assert refs.component_state == {"a": ["value", "correct"], "b": ["value"]}


class TestInterpolation:
    """Tests for {{ ... }} placeholders."""

    def test_extract(self):
        found = extract_interpolations("Score: {{ @q.score }} of {{$total}}")
        assert [i.expression for i in found] == ["@q.score", "$total"]
        assert found[0].start == 7

    def test_interpolation_references(self):
        refs = extract_interpolation_references("Hi {{ @name.value }}, see {{ #intro }}")
        assert refs.component_state == {"name": ["value"]}
        assert refs.static_content == ["intro"]

    def test_interpolate(self):
        ctx = create_context(
            {"component_state": {"q": {"score": 3}}, "global_vars": {"total": 4.0}}
        )
        assert interpolate("Score: {{ @q.score }}/{{ $total }}.", ctx) == "Score: 3/4."

    def test_missing_values_render_empty(self):
        assert interpolate("[{{ @nope.value }}]", create_context()) == "[]"

    def test_text_without_placeholders(self):
        assert interpolate("plain", create_context()) == "plain"

    def test_bad_placeholder(self):
        with pytest.raises(ExpressionSyntaxError):
            interpolate("{{ 1 + }}", create_context())


class TestFunctionRegistry:
    """Tests for FunctionRegistry."""

    def test_builtins(self):
        assert "wordcount" in FunctionRegistry.with_builtins()
        assert len(FunctionRegistry()) == 0

    def test_register_and_names(self):
        functions = FunctionRegistry()
        functions.register("b", len)
        functions.register("a", abs)
        assert functions.names() == ["a", "b"]
        assert functions.get("a") is abs
        assert functions.get("missing") is None

    def test_decorator_uses_function_name(self):
        functions = FunctionRegistry()

        @functions.function()
        def shout(text):
            return text.upper()

        assert functions.get("shout") is shout

    def test_invalid_name(self):
        with pytest.raises(ValueError):
            FunctionRegistry().register("not valid", len)

    def test_not_callable(self):
        with pytest.raises(TypeError):
            FunctionRegistry().register("x", 42)  # type: ignore[arg-type]

    def test_replacement_logged(self, caplog):
        functions = FunctionRegistry({"f": len})
        functions.register("f", len)
        assert caplog.text == ""
        with caplog.at_level("WARNING", logger="coursegraph.expressions.functions"):
            functions.register("f", abs)
        assert "Replacing" in caplog.text
        assert functions.get("f") is abs

    def test_copies_are_isolated(self):
        original = FunctionRegistry.with_builtins()
        copy = original.copy()
        copy.register("extra", len)
        assert "extra" not in original
