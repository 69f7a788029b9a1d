"""Reactive store: per-instance fields addressed by scoped state key.

The store itself is a collaborator; the runtime only needs ``get`` and
``set``. ``InMemoryStateStore`` is the implementation used by the CLI and
tests, and supports change listeners so a host can re-evaluate gates when
state moves.
"""

import logging
from collections.abc import Callable
from typing import Any, Protocol, runtime_checkable

logger = logging.getLogger(__name__)

Listener = Callable[[str, str, Any], None]


@runtime_checkable
class StateStore(Protocol):
    """What the resolution engine and gating helpers need from a store."""

    def get(self, state_key: str, field: str, default: Any = None) -> Any: ...

    def set(self, state_key: str, field: str, value: Any) -> None: ...


class InMemoryStateStore:
    """Dict-backed store: ``{state_key: {field: value}}``."""

    def __init__(self, initial: dict[str, dict[str, Any]] | None = None):
        self._data: dict[str, dict[str, Any]] = {
            k: dict(v) for k, v in (initial or {}).items()
        }
        self._listeners: list[Listener] = []

    def get(self, state_key: str, field: str, default: Any = None) -> Any:
        return self._data.get(state_key, {}).get(field, default)

    def set(self, state_key: str, field: str, value: Any) -> None:
        fields = self._data.setdefault(state_key, {})
        if field in fields and fields[field] == value:
            return
        fields[field] = value
        logger.debug("state[%s].%s = %r", state_key, field, value)
        for listener in list(self._listeners):
            listener(state_key, field, value)

    def has(self, state_key: str, field: str) -> bool:
        return field in self._data.get(state_key, {})

    def snapshot(self, state_key: str) -> dict[str, Any] | None:
        """Copy of all fields for ``state_key``, or None if it has none."""
        fields = self._data.get(state_key)
        return dict(fields) if fields is not None else None

    def entries(self) -> dict[str, dict[str, Any]]:
        return {k: dict(v) for k, v in self._data.items()}

    def listen(self, listener: Listener) -> Callable[[], None]:
        """Register a change listener; returns a function that removes it."""
        self._listeners.append(listener)

        def _remove() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _remove

    def clear(self) -> None:
        self._data.clear()

    def __contains__(self, state_key: object) -> bool:
        return state_key in self._data

    def __len__(self) -> int:
        return len(self._data)
