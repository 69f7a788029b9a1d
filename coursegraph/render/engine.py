"""Resolution engine: turn graph references into cached, identity-stable handles.

Resolving a target works like this:

1. Lists of kids resolve element by element, in authored order.
2. References are classified and looked up in the content graph; missing
   nodes become inline errors (or are fetched, if a fetcher is configured).
3. Reference overrides are merged into a private copy of the node.
4. The composite key (node identity, scope, overrides) is looked up in the
   per-version cache; a hit returns the existing handle untouched.
5. Otherwise a pending handle is registered first, then the tag is looked
   up, attributes are validated, kids are resolved (once per child scope for
   repeatable containers) and the component's handler runs.
6. The handle fulfils once the handler and all kids have settled, or is
   rejected if the handler raised.

Content problems (missing node, unknown tag, bad attributes, missing
parent) are reported as InlineError values so the rest of the tree still
renders. Handler failures reject the handle with a HandlerError.

Everything is synchronous until something actually needs to wait (an async
handler or a fetch); a graph with only synchronous handlers resolves fully
without an event loop.
"""

import asyncio
import inspect
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Any

from pydantic import BaseModel, ValidationError

from ..config import CoursegraphConfig, get_config
from ..core.models import BlockRef, InlineNode, MarkupKid, StaticNode, TextKid
from ..errors import (
    HandlerError,
    MalformedReferenceError,
    ReferenceCycleError,
    UnsupportedReferenceError,
)
from ..graph.store import ContentGraphStore, apply_overrides
from ..ids import ReferenceKind, classify, extend_scope, join_scope, to_scoped_state_key
from ..state import StateStore
from .cache import CacheManager, CompositeKey, inline_key, ref_key
from .handle import RenderHandle
from .registry import ComponentRegistry, ComponentSpec
from .results import (
    ErrorKind,
    InlineError,
    RenderedBlock,
    RenderedCopy,
    RenderedMarkup,
    RenderedText,
)

logger = logging.getLogger(__name__)

Fetcher = Callable[[str], Awaitable[StaticNode | None]]


# =============================================================================
# Per-version state
# =============================================================================


@dataclass
class _Generation:
    """One published graph version and its cache.

    In-flight work keeps resolving against the generation it started in, so
    publishing a new version never mixes old and new nodes.
    """

    store: ContentGraphStore
    cache: CacheManager
    # Instance handle key -> handles it waits on (its kids so far)
    waiting: dict[CompositeKey, list[RenderHandle]] = field(default_factory=dict)


@dataclass
class _Frame:
    """One instance on the ancestor chain.

    Used to locate special parents (e.g. graders) and to detect cycles. Frames
    travel with deferred work, so a fetched node still knows its ancestors.
    """

    spec: ComponentSpec
    key: str
    state_key: str
    ckey: CompositeKey
    parent: "_Frame | None" = None

    def chain(self) -> list["_Frame"]:
        """Frames from the outermost ancestor down to this one."""
        frames = []
        frame: _Frame | None = self
        while frame is not None:
            frames.append(frame)
            frame = frame.parent
        return frames[::-1]


# =============================================================================
# Handler context
# =============================================================================


@dataclass
class InstanceContext:
    """What a component handler sees when an instance is set up.

    ``attributes`` are the node's attributes after overrides; ``validated``
    is the parsed attribute model when the component declares a schema.
    ``kids``/``copies`` are filled in before the handler runs.
    """

    engine: "ResolutionEngine"
    node: StaticNode
    spec: ComponentSpec
    attributes: dict[str, Any]
    scope: str
    state_key: str
    validated: BaseModel | None = None
    parent_key: str | None = None
    kids: list[RenderHandle] = field(default_factory=list)
    copies: list[RenderedCopy] = field(default_factory=list)
    _generation: _Generation | None = field(default=None, repr=False)
    _frame: _Frame | None = field(default=None, repr=False)

    def get(self, field_name: str, default: Any = None) -> Any:
        """Read one of this instance's state fields."""
        if self.engine.state is None:
            return default
        return self.engine.state.get(self.state_key, field_name, default)

    def set(self, field_name: str, value: Any) -> None:
        """Write one of this instance's state fields."""
        if self.engine.state is None:
            raise RuntimeError("No state store configured on the resolution engine")
        self.engine.state.set(self.state_key, field_name, value)

    def resolve(self, target: Any, scope: str | None = None) -> Any:
        """Resolve another target from inside this instance.

        Defaults to this instance's scope; the instance counts as the parent
        for special-parent lookups.
        """
        return self.engine._resolve(
            target,
            self.scope if scope is None else scope,
            self._generation,
            self._frame,
            from_handler=True,
        )


# =============================================================================
# Engine
# =============================================================================


class ResolutionEngine:
    """Resolves references and inline nodes against one content graph.

    Args:
        store: Published content graph
        registry: Component registry used for tag lookup
        state: Reactive store for initial instance state (optional)
        fetcher: Async callable loading nodes missing from the store
        config: Engine settings (defaults to the global config)

    Example:
        engine = ResolutionEngine(store, registry, state=InMemoryStateStore())
        handle = engine.resolve("quiz")
        block = handle.result()   # RenderedBlock, InlineError...
    """

    def __init__(
        self,
        store: ContentGraphStore,
        registry: ComponentRegistry,
        *,
        state: StateStore | None = None,
        fetcher: Fetcher | None = None,
        config: CoursegraphConfig | None = None,
    ):
        self.registry = registry
        self.state = state
        self.fetcher = fetcher
        self.config = config or get_config()
        self._generation = _Generation(store, CacheManager(store.version))
        self._tasks: set[asyncio.Future] = set()

    @property
    def store(self) -> ContentGraphStore:
        return self._generation.store

    @property
    def cache(self) -> CacheManager:
        return self._generation.cache

    def publish(self, store: ContentGraphStore) -> None:
        """Switch to a new graph version with a fresh cache."""
        old = self._generation.store.version
        self._generation = _Generation(store, CacheManager(store.version))
        logger.info("Content graph version %s replaces %s", store.version, old)

    def resolve(self, target: Any, scope: str = "") -> Any:
        """Resolve a reference, kid, inline node, or list of kids.

        Returns a RenderHandle, or a list of handles for list input.
        """
        return self._resolve(target, scope, self._generation, None)

    # ── Dispatch ──

    def _resolve(
        self,
        target: Any,
        scope: str,
        gen: _Generation,
        frame: _Frame | None,
        from_handler: bool = False,
    ) -> Any:
        if isinstance(target, (list, tuple)):
            return [self._resolve_kid(kid, scope, gen, frame, from_handler) for kid in target]
        return self._resolve_kid(target, scope, gen, frame, from_handler)

    def _resolve_kid(
        self,
        kid: Any,
        scope: str,
        gen: _Generation,
        frame: _Frame | None,
        from_handler: bool = False,
    ) -> RenderHandle:
        if isinstance(kid, str):
            return self._resolve_ref(kid, None, scope, gen, frame, from_handler)
        if isinstance(kid, BlockRef):
            return self._resolve_ref(kid.id, kid.overrides, scope, gen, frame, from_handler)
        if isinstance(kid, InlineNode):
            return self._resolve_inline(kid.node, scope, gen, frame, from_handler)
        if isinstance(kid, StaticNode):
            return self._resolve_inline(kid, scope, gen, frame, from_handler)
        if isinstance(kid, TextKid):
            ckey = inline_key(kid, scope)
            handle = gen.cache.get(ckey)
            if handle is None:
                handle = gen.cache.register(ckey, RenderHandle(ckey), pin=kid)
                handle.fulfill(RenderedText(kid.text))
            return handle
        if isinstance(kid, MarkupKid):
            return self._resolve_markup(kid, scope, gen, frame)
        raise TypeError(f"Cannot resolve {type(kid).__name__}: {kid!r}")

    # ── References ──

    def _resolve_ref(
        self,
        ref: str,
        overrides: dict[str, Any] | None,
        scope: str,
        gen: _Generation,
        frame: _Frame | None,
        from_handler: bool = False,
    ) -> RenderHandle:
        try:
            info = classify(ref)
            if info.kind is ReferenceKind.PARENT_RELATIVE:
                raise UnsupportedReferenceError(
                    f"Parent-relative references are not supported yet: {ref!r}", ref
                )
        except MalformedReferenceError as e:
            return self._settled_error(
                ErrorKind.MALFORMED_REFERENCE, str(e), ref_key(ref, scope, overrides), gen
            )
        except UnsupportedReferenceError as e:
            return self._settled_error(
                ErrorKind.UNSUPPORTED_REFERENCE, str(e), ref_key(ref, scope, overrides), gen
            )

        key = info.bare
        # Absolute references escape the current scope entirely
        if info.kind is ReferenceKind.ABSOLUTE:
            scope = ""

        ckey = ref_key(key, scope, overrides)
        # A handler looking something up does not make its instance wait on it
        waiter = None if from_handler else frame
        if self._is_cycle(ckey, gen, waiter):
            return self._cycle_handle(ckey, key, frame)
        cached = gen.cache.get(ckey)
        if cached is not None:
            return self._depend(cached, gen, waiter)

        handle = self._depend(gen.cache.register(ckey, RenderHandle(ckey)), gen, waiter)
        node = gen.store.lookup(key)
        if node is None:
            node = gen.cache.fetched(key)
        if node is None:
            if self.fetcher is not None and self._schedule_fetch(
                handle, key, overrides, scope, gen, frame
            ):
                return handle
            handle.fulfill(self._not_found(key))
            return handle

        self._instantiate(handle, apply_overrides(node, overrides), scope, gen, frame)
        return handle

    def _resolve_inline(
        self,
        node: StaticNode,
        scope: str,
        gen: _Generation,
        frame: _Frame | None,
        from_handler: bool = False,
    ) -> RenderHandle:
        ckey = inline_key(node, scope)
        waiter = None if from_handler else frame
        if self._is_cycle(ckey, gen, waiter):
            return self._cycle_handle(ckey, node.key, frame)
        cached = gen.cache.get(ckey)
        if cached is not None:
            return self._depend(cached, gen, waiter)
        handle = self._depend(
            gen.cache.register(ckey, RenderHandle(ckey), pin=node), gen, waiter
        )
        self._instantiate(handle, node, scope, gen, frame)
        return handle

    def _resolve_markup(
        self, kid: MarkupKid, scope: str, gen: _Generation, frame: _Frame | None
    ) -> RenderHandle:
        ckey = inline_key(kid, scope)
        cached = gen.cache.get(ckey)
        if cached is not None:
            return cached
        handle = gen.cache.register(ckey, RenderHandle(ckey), pin=kid)
        kids = self._resolve(list(kid.kids), scope, gen, frame)
        markup = RenderedMarkup(kid.tag, dict(kid.attributes), kids)
        self._settle_when_ready(handle, markup, kids)
        return handle

    # ── Instantiation ──

    def _instantiate(
        self,
        handle: RenderHandle,
        node: StaticNode,
        scope: str,
        gen: _Generation,
        frame: _Frame | None,
    ) -> None:
        """Set up one instance into an already-registered pending handle."""
        spec = self.registry.lookup(node.tag)
        if spec is None:
            handle.fulfill(
                self._inline_error(
                    ErrorKind.UNKNOWN_TAG,
                    f"Unknown component <{node.tag}> for node {node.key!r}",
                    node=node,
                )
            )
            return

        validated = None
        if spec.attribute_schema is not None:
            try:
                validated = spec.attribute_schema.model_validate(node.attributes)
            except ValidationError as e:
                fields = sorted(
                    {".".join(str(p) for p in err["loc"]) or "(root)" for err in e.errors()}
                )
                handle.fulfill(
                    self._inline_error(
                        ErrorKind.INVALID_ATTRIBUTES,
                        f"Invalid attributes on {node.describe()}: {', '.join(fields)}",
                        node=node,
                        fields=fields,
                        technical=str(e),
                    )
                )
                return

        state_key = join_scope(scope, node.key)
        parent_key = None
        if spec.requires_parent:
            try:
                parent_key = self._find_parent(spec.requires_parent, node, scope, frame)
            except (MalformedReferenceError, UnsupportedReferenceError) as e:
                handle.fulfill(
                    self._inline_error(
                        ErrorKind.MALFORMED_REFERENCE, str(e), node=node, fields=["target"]
                    )
                )
                return
            if parent_key is None:
                handle.fulfill(
                    self._inline_error(
                        ErrorKind.MISSING_PARENT,
                        f"{node.describe()} must be placed inside a "
                        f"{spec.requires_parent}, or name one with target=",
                        node=node,
                    )
                )
                return

        here = _Frame(
            spec=spec, key=node.key, state_key=state_key, ckey=handle.key, parent=frame
        )
        ctx = InstanceContext(
            engine=self,
            node=node,
            spec=spec,
            attributes=dict(node.attributes),
            scope=scope,
            state_key=state_key,
            validated=validated,
            parent_key=parent_key,
            _generation=gen,
            _frame=here,
        )
        self._init_state(spec, state_key)

        try:
            segments = spec.child_scopes(ctx) if spec.child_scopes else None
            child_scopes = (
                [extend_scope(scope, s) for s in segments] if segments is not None else None
            )
        except Exception as e:
            self._reject(handle, spec, node, e)
            return

        depth_limit = self.config.render.max_depth
        ancestors = frame.chain() if frame is not None else []
        if len(ancestors) >= depth_limit:
            error = ReferenceCycleError([f.key for f in ancestors] + [node.key])
            logger.warning("Nesting deeper than %d levels: %s", depth_limit, error)
            handle.reject(error)
            return

        if child_scopes is None:
            ctx.kids = self._resolve(list(node.kids), scope, gen, here)
        else:
            ctx.copies = [
                RenderedCopy(s, self._resolve(list(node.kids), s, gen, here))
                for s in child_scopes
            ]

        try:
            outcome = spec.handler(ctx) if spec.handler is not None else None
        except Exception as e:
            self._reject(handle, spec, node, e)
            return

        block = RenderedBlock(
            key=node.key,
            tag=node.tag,
            attributes=ctx.attributes,
            scope=scope,
            state_key=state_key,
            kids=ctx.kids,
            copies=ctx.copies,
            validated=validated,
            parent_key=parent_key,
            provenance=node.provenance,
        )
        future = None
        if inspect.isawaitable(outcome):
            future = self._schedule_handler(handle, spec, node, outcome)
            if future is None:
                return
        else:
            block.value = outcome

        self._settle_when_ready(handle, block, block.all_kids(), future, spec, node)

    def _settle_when_ready(
        self,
        handle: RenderHandle,
        value: Any,
        kids: list[RenderHandle],
        future: asyncio.Future | None = None,
        spec: ComponentSpec | None = None,
        node: StaticNode | None = None,
    ) -> None:
        """Fulfil ``handle`` once all kids (and the handler future) settle.

        Rejected kids do not reject the parent; the parent embeds them.
        """
        waiting = [k for k in kids if not k.done()]
        remaining = len(waiting) + (1 if future is not None else 0)
        failure: BaseException | None = None

        if remaining == 0:
            handle.fulfill(value)
            return

        def _one_done(_: Any = None) -> None:
            nonlocal remaining
            remaining -= 1
            if remaining == 0 and not handle.done():
                if failure is not None:
                    handle.reject(failure)
                else:
                    handle.fulfill(value)

        def _handler_done(fut: asyncio.Future) -> None:
            nonlocal failure
            if fut.cancelled():
                failure = self._wrap(spec, node, asyncio.CancelledError())
            elif fut.exception() is not None:
                failure = self._wrap(spec, node, fut.exception())
            else:
                value.value = fut.result()
            _one_done()

        for kid in waiting:
            kid.add_done_callback(_one_done)
        if future is not None:
            future.add_done_callback(_handler_done)

    # ── Async work ──

    def _track(self, task: asyncio.Future) -> asyncio.Future:
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    def _schedule_handler(
        self,
        handle: RenderHandle,
        spec: ComponentSpec,
        node: StaticNode,
        outcome: Awaitable[Any],
    ) -> asyncio.Future | None:
        try:
            asyncio.get_running_loop()
        except RuntimeError:
            if inspect.iscoroutine(outcome):
                outcome.close()
            self._reject(
                handle,
                spec,
                node,
                RuntimeError("asynchronous handler needs a running event loop"),
            )
            return None
        return self._track(asyncio.ensure_future(outcome))

    def _schedule_fetch(
        self,
        handle: RenderHandle,
        key: str,
        overrides: dict[str, Any] | None,
        scope: str,
        gen: _Generation,
        frame: _Frame | None,
    ) -> bool:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.warning("Node %r is missing and no event loop is running to fetch it", key)
            return False

        async def _fetch() -> None:
            try:
                node = await self.fetcher(key)
            except Exception as e:
                logger.warning("Fetching node %r failed: %s", key, e)
                handle.fulfill(self._not_found(key, technical=f"{type(e).__name__}: {e}"))
                return
            if node is None:
                handle.fulfill(self._not_found(key))
                return
            gen.cache.remember_fetched(node)
            self._instantiate(handle, apply_overrides(node, overrides), scope, gen, frame)

        self._track(loop.create_task(_fetch()))
        return True

    # ── Helpers ──

    def _find_parent(
        self, role: str, node: StaticNode, scope: str, frame: _Frame | None
    ) -> str | None:
        target = node.attributes.get("target")
        if target:
            return to_scoped_state_key(str(target), scope)
        while frame is not None:
            if role in frame.spec.roles:
                return frame.state_key
            frame = frame.parent
        return None

    def _init_state(self, spec: ComponentSpec, state_key: str) -> None:
        if self.state is None or not spec.fields:
            return
        missing = object()
        for name, default in spec.fields.items():
            if self.state.get(state_key, name, missing) is missing:
                self.state.set(state_key, name, default)

    def _is_cycle(self, ckey: CompositeKey, gen: _Generation, frame: _Frame | None) -> bool:
        """Would resolving ``ckey`` under ``frame`` end up waiting on itself?

        True when the node is already an ancestor (same identity and overrides,
        in any scope), or when its pending handle already waits on ``frame``.
        """
        if frame is None:
            return False
        wanted = (ckey.identity, ckey.overrides)
        if any((f.ckey.identity, f.ckey.overrides) == wanted for f in frame.chain()):
            return True
        cached = gen.cache.get(ckey)
        if cached is None or cached.done():
            return False
        seen: set[Any] = set()
        stack = [cached]
        while stack:
            current = stack.pop()
            if current.done() or current.key in seen:
                continue
            if current.key == frame.ckey:
                return True
            seen.add(current.key)
            stack.extend(gen.waiting.get(current.key, ()))
        return False

    def _depend(
        self, handle: RenderHandle, gen: _Generation, frame: _Frame | None
    ) -> RenderHandle:
        if frame is not None:
            gen.waiting.setdefault(frame.ckey, []).append(handle)
        return handle

    def _cycle_handle(
        self, ckey: CompositeKey, label: str, frame: _Frame | None
    ) -> RenderHandle:
        ancestors = frame.chain() if frame is not None else []
        path = [f.key for f in ancestors] + [label]
        error = ReferenceCycleError(path)
        logger.warning("%s", error)
        handle = RenderHandle(ckey)
        handle.reject(error)
        return handle

    def _wrap(
        self, spec: ComponentSpec | None, node: StaticNode | None, exc: BaseException
    ) -> HandlerError:
        error = HandlerError(spec.tag if spec else "?", node.key if node else None, exc)
        error.__cause__ = exc
        logger.warning("%s", error)
        return error

    def _reject(
        self, handle: RenderHandle, spec: ComponentSpec, node: StaticNode, exc: BaseException
    ) -> None:
        handle.reject(self._wrap(spec, node, exc))

    def _inline_error(
        self,
        kind: ErrorKind,
        message: str,
        *,
        node: StaticNode | None = None,
        key: str | None = None,
        fields: list[str] | None = None,
        technical: str | None = None,
    ) -> InlineError:
        error = InlineError(
            kind=kind,
            message=message,
            key=node.key if node is not None else key,
            tag=node.tag if node is not None else None,
            fields=fields or [],
            technical=technical,
            provenance=list(node.provenance) if node is not None else [],
        )
        if self.config.render.log_inline_errors:
            logger.warning("%s", error)
        return error

    def _not_found(self, key: str, technical: str | None = None) -> InlineError:
        return self._inline_error(
            ErrorKind.NOT_FOUND,
            f"No content with id {key!r}",
            key=key,
            technical=technical,
        )

    def _settled_error(
        self, kind: ErrorKind, message: str, ckey: CompositeKey, gen: _Generation
    ) -> RenderHandle:
        handle = gen.cache.get(ckey)
        if handle is None:
            handle = gen.cache.register(ckey, RenderHandle(ckey))
            handle.fulfill(self._inline_error(kind, message, key=ckey.identity[1]))
        return handle
