# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.

"""Provide the two-tier fragment cache and its pre-warmer.

The SQLite store lives in :mod:`fragmentkit.cache.store` and is imported only
once :func:`build_fragment_cache` has confirmed the interpreter ships
``sqlite3``.
"""

from __future__ import annotations

from .keys import CacheCandidate, CacheKey, candidates_for
from .memory import InMemoryCacheProvider, MemoryTier
from .prewarm import CachePreWarmer, PreWarmResult
from .protocols import PersistentStore, PrefetchedEntries
from .tiered import CacheStatistics, FragmentCache, build_fragment_cache, sqlite_available

__all__ = [
    "CacheCandidate",
    "CacheKey",
    "CachePreWarmer",
    "CacheStatistics",
    "FragmentCache",
    "InMemoryCacheProvider",
    "MemoryTier",
    "PersistentStore",
    "PreWarmResult",
    "PrefetchedEntries",
    "build_fragment_cache",
    "candidates_for",
    "sqlite_available",
]
