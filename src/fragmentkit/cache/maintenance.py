# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.

"""Build, validate and prune the persistent fragment cache."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass, field
from pathlib import Path

from ..fragments.models import Fragment, ParsingMode
from ..fragments.parsing import extract_function_names
from .keys import CacheKey
from .store import SqliteFragmentStore, StoredEntry
from .tiered import FragmentCache

LOGGER = logging.getLogger(__name__)


@dataclass(slots=True)
class CacheBuildResult:
    """Summarise a cache build over a set of fragments.

    Attributes:
        cached: Fragments whose content and names are now cached.
        failed: Mapping of fragment names to the reason they could not be cached.
    """

    cached: list[str] = field(default_factory=list)
    failed: dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True, slots=True)
class CacheValidationReport:
    """Describe the health of the persistent cache.

    Attributes:
        integrity: SQLite integrity check verdict.
        total_entries: Rows inspected across both tables.
        stale_entries: Rows whose file is missing or has a different write time.
        pruned: Stale rows deleted when pruning was requested.
    """

    integrity: str
    total_entries: int
    stale_entries: tuple[StoredEntry, ...]
    pruned: int = 0

    @property
    def healthy(self) -> bool:
        """Return ``True`` when the database passed its integrity check."""

        return self.integrity == "ok"


def build_cache(fragments: Sequence[Fragment], cache: FragmentCache, parsing_mode: ParsingMode) -> CacheBuildResult:
    """Parse every fragment and write its content and names to ``cache``.

    Fragments that cannot be read or parsed are recorded, not raised.

    Args:
        fragments: Fragments to cache.
        cache: Two-tier cache receiving the entries.
        parsing_mode: Parsing mode used for keys and name extraction.

    Returns:
        CacheBuildResult: Names cached and failures encountered.
    """

    result = CacheBuildResult()
    for fragment in fragments:
        key = CacheKey.for_fragment(fragment, parsing_mode)
        try:
            source = fragment.path.read_text(encoding="utf-8")
            names = extract_function_names(source, parsing_mode, filename=str(fragment.path))
        except (OSError, UnicodeDecodeError, SyntaxError, ValueError) as exc:
            result.failed[fragment.name] = str(exc)
            LOGGER.debug("cache build skipped fragment=%s: %s", fragment.name, exc)
            continue
        cache.set_content(key, source)
        cache.set_ast(key, names)
        result.cached.append(fragment.name)
    return result


def _is_stale(entry: StoredEntry) -> bool:
    try:
        live_mtime = Path(entry.key.file_path).stat().st_mtime_ns
    except OSError:
        return True
    return live_mtime != entry.key.mtime_ns


def validate_cache(store: SqliteFragmentStore, *, prune: bool = False) -> CacheValidationReport:
    """Check the database integrity and find rows that no longer match live files.

    Args:
        store: Persistent store to inspect.
        prune: Delete stale rows after reporting them.

    Returns:
        CacheValidationReport: Integrity verdict, counts and stale rows.

    Raises:
        CacheStoreError: If the store cannot be opened.
    """

    integrity = store.integrity_check()
    entries = store.entries()
    stale = tuple(entry for entry in entries if _is_stale(entry))
    pruned = store.delete(stale) if prune and stale else 0
    return CacheValidationReport(
        integrity=integrity,
        total_entries=len(entries),
        stale_entries=stale,
        pruned=pruned,
    )


__all__ = [
    "CacheBuildResult",
    "CacheValidationReport",
    "build_cache",
    "validate_cache",
]
