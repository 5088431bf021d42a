# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.

"""In-process cache tier holding fragment content and parsed command names."""

from __future__ import annotations

from collections.abc import Hashable
from threading import RLock
from typing import Generic, TypeVar

from .keys import CacheKey

KeyT = TypeVar("KeyT", bound=Hashable)
ValueT = TypeVar("ValueT")


class InMemoryCacheProvider(Generic[KeyT, ValueT]):
    """Provide an in-memory cache backed by a dictionary."""

    def __init__(self) -> None:
        self._store: dict[KeyT, ValueT] = {}
        self._lock = RLock()

    def get(self, key: KeyT) -> ValueT | None:
        """Return the cached value for ``key`` when present."""

        with self._lock:
            return self._store.get(key)

    def set(self, key: KeyT, value: ValueT) -> None:
        """Store ``value`` for ``key``."""

        with self._lock:
            self._store[key] = value

    def delete(self, key: KeyT) -> None:
        """Remove the cached value stored for ``key``."""

        with self._lock:
            self._store.pop(key, None)

    def clear(self) -> None:
        """Remove all cached values maintained by the provider."""

        with self._lock:
            self._store.clear()

    def __contains__(self, key: object) -> bool:
        with self._lock:
            return key in self._store

    def __len__(self) -> int:
        with self._lock:
            return len(self._store)


class MemoryTier:
    """Process-local accelerator sharing its key space with the persistent tier."""

    def __init__(self) -> None:
        self.content: InMemoryCacheProvider[CacheKey, str] = InMemoryCacheProvider()
        self.ast: InMemoryCacheProvider[CacheKey, tuple[str, ...]] = InMemoryCacheProvider()

    def get_content(self, key: CacheKey) -> str | None:
        """Return cached raw content for ``key``."""

        return self.content.get(key)

    def set_content(self, key: CacheKey, value: str) -> None:
        """Cache raw content for ``key``."""

        self.content.set(key, value)

    def get_ast(self, key: CacheKey) -> tuple[str, ...] | None:
        """Return cached function names for ``key``."""

        return self.ast.get(key)

    def set_ast(self, key: CacheKey, value: tuple[str, ...]) -> None:
        """Cache function names for ``key``."""

        self.ast.set(key, tuple(value))

    def clear(self) -> None:
        """Drop every in-memory entry."""

        self.content.clear()
        self.ast.clear()


__all__ = ["InMemoryCacheProvider", "MemoryTier"]
