"""Render handles: identity-stable, settle-once results of a resolution.

A handle starts ``pending`` and settles exactly once, to ``fulfilled`` with a
value or ``rejected`` with an exception. There is no cancelled state.

Consumers either read a settled handle synchronously or register a callback;
callbacks registered after settlement run immediately, so driving a graph
that is already available never touches the event loop. Handles are also
awaitable for async callers.
"""

import asyncio
import logging
from collections.abc import Callable, Generator, Hashable
from enum import Enum
from typing import Any

from ..errors import HandlePendingError, HandleStateError

logger = logging.getLogger(__name__)


class HandleState(str, Enum):
    PENDING = "pending"
    FULFILLED = "fulfilled"
    REJECTED = "rejected"


class RenderHandle:
    """Cached result of resolving one (node, scope, overrides) triple."""

    __slots__ = ("key", "_state", "_value", "_error", "_callbacks")

    def __init__(self, key: Hashable | None = None):
        self.key = key
        self._state = HandleState.PENDING
        self._value: Any = None
        self._error: BaseException | None = None
        self._callbacks: list[Callable[["RenderHandle"], None]] = []

    # ── Inspection ──

    @property
    def state(self) -> HandleState:
        return self._state

    @property
    def value(self) -> Any:
        """The fulfilled value (None while pending or after rejection)."""
        return self._value

    @property
    def error(self) -> BaseException | None:
        return self._error

    def done(self) -> bool:
        return self._state is not HandleState.PENDING

    def fulfilled(self) -> bool:
        return self._state is HandleState.FULFILLED

    def rejected(self) -> bool:
        return self._state is HandleState.REJECTED

    def result(self) -> Any:
        """Return the value, or raise the rejection error.

        Raises:
            HandlePendingError: If the handle has not settled yet
        """
        if self._state is HandleState.PENDING:
            raise HandlePendingError(f"Handle {self.key!r} is still pending")
        if self._state is HandleState.REJECTED:
            raise self._error  # type: ignore[misc]
        return self._value

    # ── Settlement ──

    def fulfill(self, value: Any) -> None:
        self._settle(HandleState.FULFILLED, value, None)

    def reject(self, error: BaseException) -> None:
        self._settle(HandleState.REJECTED, None, error)

    def _settle(
        self, state: HandleState, value: Any, error: BaseException | None
    ) -> None:
        if self._state is not HandleState.PENDING:
            raise HandleStateError(
                f"Handle {self.key!r} already {self._state.value}; cannot become {state.value}"
            )
        self._state = state
        self._value = value
        self._error = error
        callbacks, self._callbacks = self._callbacks, []
        for callback in callbacks:
            callback(self)

    # ── Subscription ──

    def add_done_callback(self, callback: Callable[["RenderHandle"], None]) -> None:
        """Call ``callback(handle)`` once settled (immediately if already settled)."""
        if self._state is HandleState.PENDING:
            self._callbacks.append(callback)
        else:
            callback(self)

    def subscribe(
        self,
        on_fulfilled: Callable[[Any], None],
        on_rejected: Callable[[BaseException], None] | None = None,
    ) -> None:
        """Subscribe-or-get-immediately.

        Already-settled handles invoke the matching callback synchronously.
        Rejections without an ``on_rejected`` callback are logged.
        """

        def _dispatch(handle: "RenderHandle") -> None:
            if handle.fulfilled():
                on_fulfilled(handle.value)
            elif on_rejected is not None:
                on_rejected(handle.error)  # type: ignore[arg-type]
            else:
                logger.debug("Unobserved rejection of handle %r: %s", handle.key, handle.error)

        self.add_done_callback(_dispatch)

    def __await__(self) -> Generator[Any, None, Any]:
        if self._state is HandleState.PENDING:
            future = asyncio.get_running_loop().create_future()

            def _resolve(handle: "RenderHandle") -> None:
                if future.done():
                    return
                if handle.fulfilled():
                    future.set_result(handle.value)
                else:
                    future.set_exception(handle.error)  # type: ignore[arg-type]

            self.add_done_callback(_resolve)
            return (yield from future)
        return self.result()

    def __repr__(self) -> str:
        return f"<RenderHandle {self.key!r} {self._state.value}>"
