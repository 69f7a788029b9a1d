"""Reactive store interface and the in-memory implementation."""

from .store import InMemoryStateStore, StateStore

__all__ = ["StateStore", "InMemoryStateStore"]
