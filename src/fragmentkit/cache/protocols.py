# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.

"""Persistent cache store contract shared by the cache tiers."""

from __future__ import annotations

from abc import abstractmethod
from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Protocol, runtime_checkable

from .keys import CacheKey


@dataclass(slots=True)
class PrefetchedEntries:
    """Entries returned by one bulk read of the persistent tier.

    Attributes:
        content: Raw content keyed by cache key, for keys that were present.
        ast: Function name lists keyed by cache key, for keys that were present.
    """

    content: dict[CacheKey, str] = field(default_factory=dict)
    ast: dict[CacheKey, tuple[str, ...]] = field(default_factory=dict)


@runtime_checkable
class PersistentStore(Protocol):
    """Define the contract implemented by cross-process cache stores.

    Every method except :meth:`probe` raises
    :class:`~fragmentkit.errors.CacheStoreError` when the backing store is
    unreachable, locked past its timeout, or corrupt. Writes are upserts keyed
    on the full :class:`CacheKey`, so concurrent writers for one key converge.
    """

    @abstractmethod
    def probe(self) -> bool:
        """Return whether the store can be opened and queried."""
        raise NotImplementedError

    @abstractmethod
    def get_content(self, key: CacheKey) -> str | None:
        """Return raw content stored under ``key``, or ``None`` on a miss.

        Args:
            key: Cache key identifying the file version and parsing mode.

        Returns:
            str | None: Stored content when present.
        """
        raise NotImplementedError

    @abstractmethod
    def set_content(self, key: CacheKey, value: str) -> None:
        """Upsert raw content for ``key``.

        Args:
            key: Cache key identifying the file version and parsing mode.
            value: Raw fragment source.
        """
        raise NotImplementedError

    @abstractmethod
    def get_ast(self, key: CacheKey) -> tuple[str, ...] | None:
        """Return the function names stored under ``key``, or ``None``.

        Args:
            key: Cache key identifying the file version and parsing mode.

        Returns:
            tuple[str, ...] | None: Stored function names when present.
        """
        raise NotImplementedError

    @abstractmethod
    def set_ast(self, key: CacheKey, value: Sequence[str]) -> None:
        """Upsert the function names for ``key``.

        Args:
            key: Cache key identifying the file version and parsing mode.
            value: Ordered function names.
        """
        raise NotImplementedError

    @abstractmethod
    def fetch_many(self, keys: Sequence[CacheKey]) -> PrefetchedEntries:
        """Return every stored entry for ``keys`` in a single pass.

        Args:
            keys: Cache keys to look up.

        Returns:
            PrefetchedEntries: Content and function names that were present.
        """
        raise NotImplementedError

    @abstractmethod
    def clear(self) -> None:
        """Remove every stored entry."""
        raise NotImplementedError


__all__ = ["PersistentStore", "PrefetchedEntries"]
