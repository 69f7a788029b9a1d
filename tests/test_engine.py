"""Tests for the resolution engine: keys, caching, scopes, errors and async work."""

import asyncio

import pytest

from coursegraph.config import CoursegraphConfig, RenderConfig
from coursegraph.core.models import BlockRef, InlineNode, MarkupKid, StaticNode, TextKid
from coursegraph.errors import HandlerError, ReferenceCycleError
from coursegraph.graph import ContentGraphStore
from coursegraph.render import (
    BaseAttributes,
    ComponentRegistry,
    ComponentSpec,
    ErrorKind,
    GraderAttributes,
    InlineError,
    InputAttributes,
    ProblemAttributes,
    RenderedBlock,
    RenderedMarkup,
    RenderHandle,
    RenderedText,
    ResolutionEngine,
    render_tree,
    repeat_scopes,
)
from coursegraph.state import InMemoryStateStore


def _node(key: str, tag: str = "Vertical", kids=(), **attributes) -> StaticNode:
    kids = tuple(BlockRef(id=k) if isinstance(k, str) else k for k in kids)
    return StaticNode(key=key, tag=tag, attributes=attributes, kids=kids)


def _registry(*specs: ComponentSpec) -> ComponentRegistry:
    return ComponentRegistry([ComponentSpec(tag="Vertical"), *specs])


def _engine(nodes, *specs, state=None, **kwargs) -> ResolutionEngine:
    return ResolutionEngine(
        ContentGraphStore(nodes), _registry(*specs), state=state, **kwargs
    )


class TestBasicResolution:
    """Resolving references into rendered blocks."""

    def test_resolves_block(self):
        engine = _engine([_node("intro", title="Hi")])
        handle = engine.resolve("intro")
        assert handle.fulfilled()
        block = handle.result()
        assert isinstance(block, RenderedBlock)
        assert block.key == "intro"
        assert block.tag == "Vertical"
        assert block.attributes == {"title": "Hi"}
        assert block.scope == ""
        assert block.state_key == "intro"

    def test_kids_resolve_in_order(self):
        engine = _engine(
            [_node("root", kids=["a", "b", "c"]), _node("a"), _node("b"), _node("c")]
        )
        block = engine.resolve("root").result()
        assert [k.result().key for k in block.kids] == ["a", "b", "c"]

    def test_list_target_returns_list_of_handles(self):
        engine = _engine([_node("a"), _node("b")])
        handles = engine.resolve(["a", BlockRef(id="b")])
        assert [h.result().key for h in handles] == ["a", "b"]

    def test_text_and_markup_kids(self):
        markup = MarkupKid(tag="p", attributes={"class": "lead"}, kids=(TextKid(text="Hello"),))
        engine = _engine([_node("root", kids=[TextKid(text="Intro"), markup])])
        block = engine.resolve("root").result()
        assert block.kids[0].result() == RenderedText("Intro")
        rendered = block.kids[1].result()
        assert isinstance(rendered, RenderedMarkup)
        assert rendered.tag == "p"
        assert rendered.attributes == {"class": "lead"}
        assert rendered.kids[0].result().text == "Hello"

    def test_handler_value(self):
        spec = ComponentSpec(tag="Greeting", handler=lambda ctx: f"Hello {ctx.attributes['name']}")
        engine = _engine([_node("g", tag="Greeting", name="Ada")], spec)
        assert engine.resolve("g").result().value == "Hello Ada"

    def test_handler_sees_resolved_kids(self):
        seen = []
        spec = ComponentSpec(
            tag="Counter", handler=lambda ctx: seen.append([k.result().key for k in ctx.kids])
        )
        engine = _engine([_node("c", tag="Counter", kids=["a"]), _node("a")], spec)
        engine.resolve("c")
        assert seen == [["a"]]

    def test_inline_node(self):
        inline = InlineNode(node=StaticNode(key="note", tag="Vertical"))
        engine = _engine([_node("root", kids=[inline])])
        kid = engine.resolve("root").result().kids[0].result()
        assert kid.key == "note"
        assert kid.state_key == "note"


class TestUnknownTag:
    """Unknown tags render as inline errors, not exceptions."""

    def test_unknown_tag_inside_parent(self):
        engine = _engine([_node("page", kids=["btn"]), _node("btn", tag="Action")])
        page = engine.resolve("page").result()
        error = page.kids[0].result()
        assert isinstance(error, InlineError)
        assert error.kind == ErrorKind.UNKNOWN_TAG
        assert error.key == "btn"
        assert error.tag == "Action"

    def test_unknown_tag_at_root(self):
        engine = _engine([_node("btn", tag="Action")])
        handle = engine.resolve("btn")
        assert handle.fulfilled()
        assert handle.result().kind == ErrorKind.UNKNOWN_TAG


class TestIdentity:
    """Same composite key, same handle."""

    def test_same_reference_same_handle(self):
        calls = []
        spec = ComponentSpec(tag="Q", handler=lambda ctx: calls.append(ctx.node.key))
        engine = _engine([_node("q", tag="Q")], spec)
        first = engine.resolve("q")
        second = engine.resolve("q")
        assert first is second
        assert calls == ["q"]

    def test_reference_forms_share_a_key_at_root(self):
        engine = _engine([_node("q")])
        assert engine.resolve("q") is engine.resolve("./q")
        assert engine.resolve("q") is engine.resolve("/q")

    def test_scope_changes_identity(self):
        engine = _engine([_node("q")])
        assert engine.resolve("q", "list:0") is not engine.resolve("q", "list:1")

    def test_overrides_change_identity(self):
        engine = _engine([_node("q", title="Original")])
        plain = engine.resolve(BlockRef(id="q"))
        a = engine.resolve(BlockRef(id="q", overrides={"title": "A"}))
        a_again = engine.resolve(BlockRef(id="q", overrides={"title": "A"}))
        b = engine.resolve(BlockRef(id="q", overrides={"title": "B"}))
        assert plain is not a
        assert a is a_again
        assert a is not b
        assert a.result().attributes["title"] == "A"

    def test_overrides_never_touch_the_graph(self):
        engine = _engine([_node("q", title="Original")])
        engine.resolve(BlockRef(id="q", overrides={"title": "Changed"}))
        assert engine.store.get("q").attributes == {"title": "Original"}
        assert engine.resolve("q").result().attributes == {"title": "Original"}

    def test_registry_not_consulted_on_cache_hit(self):
        class CountingRegistry(ComponentRegistry):
            lookups = 0

            def lookup(self, tag):
                CountingRegistry.lookups += 1
                return super().lookup(tag)

        registry = CountingRegistry([ComponentSpec(tag="Vertical")])
        engine = ResolutionEngine(ContentGraphStore([_node("q")]), registry)
        engine.resolve("q")
        engine.resolve("q")
        assert CountingRegistry.lookups == 1

    def test_text_kid_same_handle_per_scope(self):
        kid = TextKid(text="Hello")
        engine = _engine([])
        assert engine.resolve(kid) is engine.resolve(kid)
        assert engine.resolve(kid, "list:0") is not engine.resolve(kid)
        assert engine.resolve(kid).result().text == "Hello"

    @pytest.mark.parametrize(
        "ref, kind",
        [("a.b", ErrorKind.MALFORMED_REFERENCE), ("../up", ErrorKind.UNSUPPORTED_REFERENCE)],
    )
    def test_bad_reference_same_handle(self, ref, kind):
        engine = _engine([])
        first = engine.resolve(ref)
        assert first.result().kind == kind
        assert engine.resolve(ref) is first

    def test_inline_nodes_keyed_by_object(self):
        node = InlineNode(node=StaticNode(key="n", tag="Vertical"))
        twin = InlineNode(node=StaticNode(key="n", tag="Vertical"))
        engine = _engine([])
        assert engine.resolve(node) is engine.resolve(node)
        assert engine.resolve(node) is not engine.resolve(twin)

    def test_handler_resolving_itself_gets_its_own_pending_handle(self):
        seen = {}

        def handler(ctx):
            seen["handle"] = ctx.resolve(ctx.node.key)
            seen["done"] = seen["handle"].done()

        engine = _engine([_node("self", tag="SelfRef")], ComponentSpec(tag="SelfRef", handler=handler))
        handle = engine.resolve("self")
        assert seen["handle"] is handle
        assert seen["done"] is False
        assert handle.fulfilled()


class TestScopes:
    """Scope-qualified state keys."""

    def test_relative_and_absolute_under_scope(self):
        engine = _engine([_node("shared")])
        relative = engine.resolve("shared", "list:0").result()
        absolute = engine.resolve("/shared", "list:0").result()
        assert relative.state_key == "list:0:shared"
        assert absolute.state_key == "shared"
        assert absolute.scope == ""

    def test_absolute_reference_shares_root_handle(self):
        engine = _engine([_node("shared")])
        assert engine.resolve("/shared", "list:0") is engine.resolve("shared")

    def test_kids_inherit_scope(self):
        engine = _engine([_node("outer", kids=["inner"]), _node("inner")])
        outer = engine.resolve("outer", "list:2").result()
        assert outer.kids[0].result().state_key == "list:2:inner"

    def test_repeatable_container_three_copies(self):
        state = InMemoryStateStore()
        engine = _engine(
            [_node("list", tag="List", count=3, kids=["q"]), _node("q", tag="Input")],
            ComponentSpec(tag="List", child_scopes=repeat_scopes()),
            ComponentSpec(tag="Input", fields={"value": ""}),
            state=state,
        )
        block = engine.resolve("list").result()
        assert [c.scope for c in block.copies] == ["list:0", "list:1", "list:2"]
        assert block.kids == []
        keys = [c.kids[0].result().state_key for c in block.copies]
        assert keys == ["list:0:q", "list:1:q", "list:2:q"]
        assert len({id(c.kids[0]) for c in block.copies}) == 3
        for key in keys:
            assert state.get(key, "value") == ""

    def test_copies_have_independent_state(self):
        state = InMemoryStateStore()
        engine = _engine(
            [_node("list", tag="List", count=2, kids=["q"]), _node("q", tag="Input")],
            ComponentSpec(tag="List", child_scopes=repeat_scopes()),
            ComponentSpec(tag="Input", fields={"value": ""}),
            state=state,
        )
        engine.resolve("list")
        state.set("list:0:q", "value", "typed")
        assert state.get("list:1:q", "value") == ""

    def test_bad_count_rejects_container(self):
        engine = _engine(
            [_node("list", tag="List", count="many")],
            ComponentSpec(tag="List", child_scopes=repeat_scopes()),
        )
        handle = engine.resolve("list")
        assert handle.rejected()
        assert isinstance(handle.error, HandlerError)


class TestInlineErrors:
    """Structural problems become inline error results."""

    def test_not_found(self):
        engine = _engine([])
        handle = engine.resolve("ghost")
        error = handle.result()
        assert error.kind == ErrorKind.NOT_FOUND
        assert error.key == "ghost"
        assert engine.resolve("ghost") is handle

    def test_not_found_inside_parent_does_not_break_siblings(self):
        engine = _engine([_node("root", kids=["ghost", "real"]), _node("real")])
        block = engine.resolve("root").result()
        assert block.kids[0].result().kind == ErrorKind.NOT_FOUND
        assert block.kids[1].result().key == "real"

    def test_malformed_reference(self):
        engine = _engine([_node("root", kids=[BlockRef(id="bad id")])])
        error = engine.resolve("root").result().kids[0].result()
        assert error.kind == ErrorKind.MALFORMED_REFERENCE
        assert error.key == "bad id"

    def test_parent_relative_reference(self):
        engine = _engine([])
        error = engine.resolve("../up", "list:0").result()
        assert error.kind == ErrorKind.UNSUPPORTED_REFERENCE

    def test_attribute_validation(self):
        spec = ComponentSpec(tag="Box", attribute_schema=BaseAttributes)
        engine = _engine([_node("box", tag="Box", bogus=1, title=5)], spec)
        error = engine.resolve("box").result()
        assert error.kind == ErrorKind.INVALID_ATTRIBUTES
        assert "bogus" in error.fields
        assert "title" in error.fields
        assert error.technical

    def test_validated_model_available(self):
        captured = {}
        spec = ComponentSpec(
            tag="Box",
            attribute_schema=BaseAttributes,
            handler=lambda ctx: captured.setdefault("title", ctx.validated.title),
        )
        engine = _engine([_node("box", tag="Box", title="Week 1")], spec)
        block = engine.resolve("box").result()
        assert captured["title"] == "Week 1"
        assert block.validated.title == "Week 1"

    def test_inline_error_logged(self, caplog):
        engine = _engine([])
        with caplog.at_level("WARNING", logger="coursegraph.render.engine"):
            engine.resolve("ghost")
        assert "ghost" in caplog.text

    def test_inline_error_logging_can_be_disabled(self, caplog):
        config = CoursegraphConfig(render=RenderConfig(log_inline_errors=False))
        engine = _engine([], config=config)
        with caplog.at_level("WARNING", logger="coursegraph.render.engine"):
            engine.resolve("ghost")
        assert caplog.text == ""


class TestSpecialParents:
    """Components that must sit inside a particular kind of parent."""

    def _specs(self):
        return (
            ComponentSpec(tag="Problem", roles=frozenset({"grader"})),
            ComponentSpec(tag="Feedback", requires_parent="grader", attribute_schema=GraderAttributes),
        )

    def test_parent_found_by_ancestry(self):
        engine = _engine(
            [_node("p1", tag="Problem", kids=["wrap"]), _node("wrap", kids=["fb"]), _node("fb", tag="Feedback")],
            *self._specs(),
        )
        wrap = engine.resolve("p1", "list:0").result().kids[0].result()
        feedback = wrap.kids[0].result()
        assert feedback.parent_key == "list:0:p1"

    def test_parent_named_by_target(self):
        engine = _engine([_node("fb", tag="Feedback", target="p9")], *self._specs())
        assert engine.resolve("fb", "list:1").result().parent_key == "list:1:p9"

    def test_missing_parent(self):
        engine = _engine([_node("fb", tag="Feedback")], *self._specs())
        error = engine.resolve("fb").result()
        assert error.kind == ErrorKind.MISSING_PARENT
        assert "grader" in error.message


class TestCycles:
    """Reference cycles reject a fresh handle instead of recursing forever."""

    def test_two_node_cycle(self):
        engine = _engine([_node("a", kids=["b"]), _node("b", kids=["a"])])
        a = engine.resolve("a")
        assert a.fulfilled()
        b = a.result().kids[0]
        assert b.fulfilled()
        back = b.result().kids[0]
        assert back.rejected()
        assert isinstance(back.error, ReferenceCycleError)
        assert back.error.path == ["a", "b", "a"]
        assert back is not a

    def test_self_cycle(self):
        engine = _engine([_node("a", kids=["a"])])
        kid = engine.resolve("a").result().kids[0]
        assert isinstance(kid.error, ReferenceCycleError)

    def test_cycle_across_scopes_is_still_a_cycle(self):
        engine = _engine(
            [_node("list", tag="List", count=1, kids=["list"])],
            ComponentSpec(tag="List", child_scopes=repeat_scopes()),
        )
        block = engine.resolve("list").result()
        assert isinstance(block.copies[0].kids[0].error, ReferenceCycleError)

    def test_same_node_with_other_overrides_is_not_a_cycle(self):
        engine = _engine(
            [
                _node(
                    "list",
                    tag="List",
                    count=2,
                    kids=[BlockRef(id="list", overrides={"count": 0})],
                )
            ],
            ComponentSpec(tag="List", child_scopes=repeat_scopes()),
        )
        block = engine.resolve("list").result()
        inner = block.copies[0].kids[0]
        assert inner.fulfilled()
        assert inner.result().attributes["count"] == 0
        assert inner.result().copies == []

    def test_shared_node_is_not_a_cycle(self):
        engine = _engine(
            [_node("root", kids=["x", "y"]), _node("x", kids=["s"]), _node("y", kids=["s"]), _node("s")]
        )
        root = engine.resolve("root").result()
        xs = root.kids[0].result().kids[0]
        ys = root.kids[1].result().kids[0]
        assert xs is ys
        assert xs.fulfilled()

    def test_depth_limit(self):
        config = CoursegraphConfig(render=RenderConfig(max_depth=2))
        engine = _engine(
            [_node("a", kids=["b"]), _node("b", kids=["c"]), _node("c", kids=["d"]), _node("d")],
            config=config,
        )
        b = engine.resolve("a").result().kids[0].result()
        c = b.kids[0]
        assert c.rejected()
        assert c.error.path == ["a", "b", "c"]


class TestHandlerFailures:
    """Handler exceptions reject the instance's handle."""

    def _failing(self):
        def handler(ctx):
            raise ValueError("bad setup")

        return ComponentSpec(tag="Broken", handler=handler)

    def test_handler_error_rejects(self):
        engine = _engine([_node("x", tag="Broken")], self._failing())
        handle = engine.resolve("x")
        assert handle.rejected()
        error = handle.error
        assert isinstance(error, HandlerError)
        assert isinstance(error.original, ValueError)
        assert error.__cause__ is error.original
        with pytest.raises(HandlerError):
            handle.result()

    def test_rejected_kid_does_not_reject_parent(self):
        engine = _engine([_node("root", kids=["x"]), _node("x", tag="Broken")], self._failing())
        root = engine.resolve("root")
        assert root.fulfilled()
        assert root.result().kids[0].rejected()


class TestState:
    """Initial state and handler access to the reactive store."""

    def test_initial_fields_written_when_absent(self):
        state = InMemoryStateStore({"q": {"value": "kept"}})
        spec = ComponentSpec(tag="Input", fields={"value": "", "attempts": 0})
        engine = _engine([_node("q", tag="Input")], spec, state=state)
        engine.resolve("q")
        assert state.get("q", "value") == "kept"
        assert state.get("q", "attempts") == 0

    def test_handler_reads_and_writes_own_state(self):
        def handler(ctx):
            ctx.set("seen", True)
            return ctx.get("seen")

        state = InMemoryStateStore()
        engine = _engine([_node("q", tag="Input")], ComponentSpec(tag="Input", handler=handler), state=state)
        assert engine.resolve("q", "list:0").result().value is True
        assert state.get("list:0:q", "seen") is True

    def test_set_without_store_rejects(self):
        engine = _engine(
            [_node("q", tag="Input")],
            ComponentSpec(tag="Input", handler=lambda ctx: ctx.set("x", 1)),
        )
        handle = engine.resolve("q")
        assert isinstance(handle.error.original, RuntimeError)


class TestAsync:
    """Awaitable handlers and fetched nodes."""

    def test_async_handler(self):
        async def handler(ctx):
            await asyncio.sleep(0)
            return "loaded"

        async def main():
            engine = _engine([_node("a", tag="Async")], ComponentSpec(tag="Async", handler=handler))
            handle = engine.resolve("a")
            assert not handle.done()
            block = await handle
            return block.value

        assert asyncio.run(main()) == "loaded"

    def test_parent_waits_for_async_kid(self):
        async def handler(ctx):
            await asyncio.sleep(0)
            return 1

        async def main():
            engine = _engine(
                [_node("root", kids=["a"]), _node("a", tag="Async")],
                ComponentSpec(tag="Async", handler=handler),
            )
            root = engine.resolve("root")
            assert not root.done()
            block = await root
            assert block.kids[0].result().value == 1

        asyncio.run(main())

    def test_async_handler_failure(self):
        async def handler(ctx):
            raise KeyError("missing")

        async def main():
            engine = _engine([_node("a", tag="Async")], ComponentSpec(tag="Async", handler=handler))
            handle = engine.resolve("a")
            with pytest.raises(HandlerError):
                await handle
            assert isinstance(handle.error.original, KeyError)

        asyncio.run(main())

    def test_async_handler_without_loop_rejects(self):
        async def handler(ctx):
            return 1

        engine = _engine([_node("a", tag="Async")], ComponentSpec(tag="Async", handler=handler))
        handle = engine.resolve("a")
        assert handle.rejected()
        assert isinstance(handle.error.original, RuntimeError)

    def test_fetcher_loads_missing_node(self):
        fetched = []

        async def fetcher(key):
            fetched.append(key)
            await asyncio.sleep(0)
            return _node(key, title="remote")

        async def main():
            engine = _engine([], fetcher=fetcher)
            handle = engine.resolve("remote")
            assert not handle.done()
            block = await handle
            assert engine.resolve("remote") is handle
            return block

        block = asyncio.run(main())
        assert block.attributes == {"title": "remote"}
        assert fetched == ["remote"]

    def test_fetcher_miss_is_not_found(self):
        async def fetcher(key):
            return None

        async def main():
            engine = _engine([], fetcher=fetcher)
            return await engine.resolve("ghost")

        assert asyncio.run(main()).kind == ErrorKind.NOT_FOUND

    def test_fetcher_failure_is_not_found_with_detail(self):
        async def fetcher(key):
            raise ConnectionError("offline")

        async def main():
            engine = _engine([], fetcher=fetcher)
            return await engine.resolve("ghost")

        error = asyncio.run(main())
        assert error.kind == ErrorKind.NOT_FOUND
        assert "offline" in error.technical

    def test_fetcher_without_loop_reports_not_found(self):
        async def fetcher(key):
            return _node(key)

        engine = _engine([], fetcher=fetcher)
        assert engine.resolve("remote").result().kind == ErrorKind.NOT_FOUND


class TestPublish:
    """Publishing a new graph version starts a fresh cache."""

    def test_new_version_new_handles(self):
        engine = _engine([_node("q", title="v1")])
        old = engine.resolve("q")
        old_version = engine.store.version
        engine.publish(engine.store.with_nodes([_node("q", title="v2")]))
        new = engine.resolve("q")
        assert engine.store.version != old_version
        assert new is not old
        assert old.result().attributes["title"] == "v1"
        assert new.result().attributes["title"] == "v2"


class TestRenderTree:
    """Tests for render_tree()."""

    def test_tree_shape(self):
        engine = _engine(
            [
                _node("root", kids=[TextKid(text="hi"), "ghost", "list"]),
                _node("list", tag="List", count=2, kids=["q"]),
                _node("q"),
            ],
            ComponentSpec(tag="List", child_scopes=repeat_scopes()),
        )
        tree = render_tree(engine.resolve("root"))
        assert tree["tag"] == "Vertical"
        text, ghost, repeated = tree["kids"]
        assert text == {"state": "fulfilled", "text": "hi"}
        assert ghost["error"]["kind"] == "not_found_in_graph"
        assert [c["scope"] for c in repeated["copies"]] == ["list:0", "list:1"]
        assert repeated["copies"][1]["kids"][0]["state_key"] == "list:1:q"

    def test_rejected_and_pending(self):
        rejected = RenderHandle("x")
        rejected.reject(RuntimeError("boom"))
        assert render_tree(rejected) == {"state": "rejected", "error": "boom"}
        assert render_tree(RenderHandle("y"))["state"] == "pending"


class TestAttributeSchemas:
    """Shared attribute schemas use authored camelCase names."""

    def test_aliases(self):
        grader = GraderAttributes.model_validate({"answer": "4", "displayAnswer": "four"})
        assert grader.display_answer == "four"
        problem = ProblemAttributes.model_validate({"maxAttempts": "3", "showanswer": "attempted"})
        assert problem.max_attempts == "3"
        assert InputAttributes.model_validate({"class": "wide", "slot": "numerator"}).class_ == "wide"

    @pytest.mark.parametrize(
        "schema, attributes",
        [
            (ProblemAttributes, {"maxAttempts": "many"}),
            (ProblemAttributes, {"showanswer": "sometimes"}),
            (InputAttributes, {"answer": "4"}),
            (BaseAttributes, {"id": "bad id"}),
        ],
    )
    def test_rejected(self, schema, attributes):
        spec = ComponentSpec(tag="Box", attribute_schema=schema)
        engine = _engine([_node("box", tag="Box", **attributes)], spec)
        assert engine.resolve("box").result().kind == ErrorKind.INVALID_ATTRIBUTES

    def test_unlimited_attempts(self):
        assert ProblemAttributes.model_validate({"maxAttempts": ""}).max_attempts == ""


class TestFetchedCycles:
    """Cycles that only appear once fetched nodes arrive."""

    @staticmethod
    def _fetcher(nodes):
        async def fetcher(key):
            await asyncio.sleep(0)
            return nodes.get(key)

        return fetcher

    def test_cycle_between_fetched_nodes(self):
        remote = {"a": _node("a", kids=["b"]), "b": _node("b", kids=["a"])}

        async def main():
            engine = _engine([], fetcher=self._fetcher(remote))
            return await asyncio.wait_for(engine.resolve("a"), 1.0)

        a = asyncio.run(main())
        b = a.kids[0].result()
        back = b.kids[0]
        assert back.rejected()
        assert isinstance(back.error, ReferenceCycleError)
        assert back.error.path == ["a", "b", "a"]

    def test_siblings_waiting_on_each_other(self):
        remote = {"a": _node("a", kids=["b"]), "b": _node("b", kids=["a"])}

        async def main():
            engine = _engine([_node("root", kids=["a", "b"])], fetcher=self._fetcher(remote))
            return await asyncio.wait_for(engine.resolve("root"), 1.0)

        root = asyncio.run(main())
        a, b = (kid.result() for kid in root.kids)
        inner = [a.kids[0], b.kids[0]]
        rejected = [h for h in inner if h.rejected()]
        assert len(rejected) == 1
        assert isinstance(rejected[0].error, ReferenceCycleError)
        assert all(h.done() for h in inner)
