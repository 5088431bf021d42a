# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.

"""Bulk-load persistent cache entries into memory before fragments execute."""

from __future__ import annotations

import logging
import time
from collections.abc import Iterable
from dataclasses import dataclass

from ..errors import CacheStoreError
from ..fragments.models import ParsingMode
from .keys import CacheCandidate
from .tiered import FragmentCache

LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class PreWarmResult:
    """Report how many entries were copied into the memory tier.

    Attributes:
        content_prewarmed: Content entries populated from the persistent tier.
        ast_prewarmed: Function name entries populated from the persistent tier.
    """

    content_prewarmed: int = 0
    ast_prewarmed: int = 0

    @property
    def total(self) -> int:
        """Return the combined number of pre-warmed entries."""

        return self.content_prewarmed + self.ast_prewarmed


class CachePreWarmer:
    """Populate the memory tier from the persistent tier in one batch pass.

    Called once before the loader starts so the common case (nothing changed
    since the last session) performs no per-fragment persistent lookups.
    """

    def __init__(self, cache: FragmentCache) -> None:
        self._cache = cache

    def prewarm(self, candidates: Iterable[CacheCandidate], parsing_mode: ParsingMode) -> PreWarmResult:
        """Copy persistent entries for ``candidates`` into memory.

        Args:
            candidates: File identities expected to load this session.
            parsing_mode: Parsing mode the keys are built with.

        Returns:
            PreWarmResult: Counts of populated entries; zero counts when the
            persistent store is unavailable or fails.
        """

        store = self._cache.store
        if store is None or not self._cache.is_persistent_store_available():
            return PreWarmResult()

        memory = self._cache.memory
        keys = [
            key
            for key in dict.fromkeys(candidate.key(parsing_mode) for candidate in candidates)
            if key not in memory.content or key not in memory.ast
        ]
        if not keys:
            return PreWarmResult()

        started = time.perf_counter()
        try:
            entries = store.fetch_many(keys)
        except CacheStoreError as exc:
            self._cache.record_store_failure("pre-warm", exc)
            return PreWarmResult()

        for key, content in entries.content.items():
            memory.set_content(key, content)
        for key, names in entries.ast.items():
            memory.set_ast(key, names)
        result = PreWarmResult(content_prewarmed=len(entries.content), ast_prewarmed=len(entries.ast))
        LOGGER.debug(
            "cache pre-warm candidates=%d content=%d ast=%d elapsed_ms=%.1f",
            len(keys),
            result.content_prewarmed,
            result.ast_prewarmed,
            (time.perf_counter() - started) * 1000,
        )
        return result


__all__ = ["CachePreWarmer", "PreWarmResult"]
