# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.

"""Two-tier cache combining the in-memory and persistent stores."""

from __future__ import annotations

import importlib.util
import logging
from collections.abc import Sequence
from dataclasses import dataclass

from ..errors import CacheStoreError
from ..settings import ProfileSettings
from .keys import CacheKey
from .memory import MemoryTier
from .protocols import PersistentStore

LOGGER = logging.getLogger(__name__)


@dataclass(slots=True)
class CacheStatistics:
    """Count where cache reads were served from during this process.

    Attributes:
        memory_hits: Reads served by the in-memory tier.
        persistent_hits: Reads served by the persistent tier.
        misses: Reads that found nothing in either tier.
        store_errors: Persistent-tier failures absorbed; at most one per cache.
    """

    memory_hits: int = 0
    persistent_hits: int = 0
    misses: int = 0
    store_errors: int = 0


class FragmentCache:
    """Serve parsed fragment content from memory first, then the persistent store.

    Persistent availability is probed exactly once, at construction. When the
    store is unavailable every operation silently uses the memory tier only.
    The first persistent failure later in the session is counted and switches
    the cache to memory-only for the rest of the session.
    """

    def __init__(self, memory: MemoryTier | None = None, store: PersistentStore | None = None) -> None:
        """Initialise the cache and probe the persistent store.

        Args:
            memory: In-memory tier; a fresh one is created when omitted.
            store: Persistent tier, ``None`` for a memory-only cache.
        """

        self.memory = memory if memory is not None else MemoryTier()
        self.store = store
        self.stats = CacheStatistics()
        self._available = store is not None and store.probe()
        if store is not None and not self._available:
            LOGGER.debug("persistent cache store unavailable; running memory-only")

    def is_persistent_store_available(self) -> bool:
        """Return whether the persistent tier is still in use by this cache."""

        return self._available

    def record_store_failure(self, operation: str, exc: CacheStoreError, *, subject: str = "") -> None:
        """Count a persistent-tier failure and stop using the store for this session.

        Args:
            operation: Short label of the failed operation (``"read"``, ``"write"``).
            exc: Error raised by the store.
            subject: File path the operation concerned, when there is one.
        """

        self.stats.store_errors += 1
        if not self._available:
            return
        self._available = False
        LOGGER.debug(
            "cache store %s failed%s: %s; running memory-only",
            operation,
            f" for {subject}" if subject else "",
            exc,
        )

    def get_content(self, key: CacheKey) -> str | None:
        """Return raw content for ``key``, writing persistent hits through to memory.

        Args:
            key: Cache key of the fragment version being loaded.

        Returns:
            str | None: Cached content, or ``None`` on a miss in both tiers.
        """

        cached = self.memory.get_content(key)
        if cached is not None:
            self.stats.memory_hits += 1
            return cached
        if self.store is None or not self._available:
            self.stats.misses += 1
            return None
        try:
            value = self.store.get_content(key)
        except CacheStoreError as exc:
            self.record_store_failure("read", exc, subject=key.file_path)
            value = None
        if value is None:
            self.stats.misses += 1
            return None
        self.stats.persistent_hits += 1
        self.memory.set_content(key, value)
        return value

    def set_content(self, key: CacheKey, value: str) -> None:
        """Store raw content in both tiers; persistent failures are absorbed.

        Args:
            key: Cache key of the fragment version.
            value: Raw fragment source.
        """

        self.memory.set_content(key, value)
        if self.store is None or not self._available:
            return
        try:
            self.store.set_content(key, value)
        except CacheStoreError as exc:
            self.record_store_failure("write", exc, subject=key.file_path)

    def get_ast(self, key: CacheKey) -> tuple[str, ...] | None:
        """Return function names for ``key``, writing persistent hits through to memory.

        Args:
            key: Cache key of the fragment version being loaded.

        Returns:
            tuple[str, ...] | None: Cached names, or ``None`` on a miss in both tiers.
        """

        cached = self.memory.get_ast(key)
        if cached is not None:
            self.stats.memory_hits += 1
            return cached
        if self.store is None or not self._available:
            self.stats.misses += 1
            return None
        try:
            value = self.store.get_ast(key)
        except CacheStoreError as exc:
            self.record_store_failure("read", exc, subject=key.file_path)
            value = None
        if value is None:
            self.stats.misses += 1
            return None
        self.stats.persistent_hits += 1
        self.memory.set_ast(key, value)
        return value

    def set_ast(self, key: CacheKey, value: Sequence[str]) -> None:
        """Store function names in both tiers; persistent failures are absorbed.

        Args:
            key: Cache key of the fragment version.
            value: Ordered function names.
        """

        names = tuple(value)
        self.memory.set_ast(key, names)
        if self.store is None or not self._available:
            return
        try:
            self.store.set_ast(key, names)
        except CacheStoreError as exc:
            self.record_store_failure("write", exc, subject=key.file_path)

    def clear_memory(self) -> None:
        """Drop the in-memory tier, leaving the persistent tier intact."""

        self.memory.clear()


def sqlite_available() -> bool:
    """Return whether the interpreter ships the ``sqlite3`` module."""

    return importlib.util.find_spec("sqlite3") is not None


def build_fragment_cache(settings: ProfileSettings) -> FragmentCache:
    """Return a two-tier cache for ``settings``, memory-only without SQLite.

    Args:
        settings: Effective settings providing the cache directory and timeout.

    Returns:
        FragmentCache: Cache whose store availability has been probed once.
    """

    if not sqlite_available():
        LOGGER.debug("sqlite3 is not available; fragment cache is memory-only")
        return FragmentCache()

    from .store import SqliteFragmentStore

    return FragmentCache(store=SqliteFragmentStore(settings.cache_dir, timeout=settings.cache_timeout))


__all__ = ["CacheStatistics", "FragmentCache", "build_fragment_cache", "sqlite_available"]
