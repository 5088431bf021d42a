# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.

"""Cache keys identifying fragment files by path, write time and parsing mode."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from pathlib import Path

from ..fragments.models import Fragment, ParsingMode


def normalise_cache_path(path: Path | str) -> str:
    """Return the absolute string form of ``path`` used inside cache keys."""

    return str(Path(path).absolute())


@dataclass(frozen=True, slots=True)
class CacheKey:
    """Identify one cached parse of one version of a fragment file.

    Two files with identical content but different write times are distinct
    keys; any write-time mismatch is a miss, never a stale hit.

    Attributes:
        file_path: Absolute path of the fragment file.
        mtime_ns: Last write time of the file in nanoseconds.
        parsing_mode: Parsing strategy the entry was produced with.
    """

    file_path: str
    mtime_ns: int
    parsing_mode: ParsingMode

    @classmethod
    def for_path(cls, path: Path, parsing_mode: ParsingMode) -> CacheKey:
        """Return the key for the current on-disk version of ``path``.

        Raises:
            OSError: If ``path`` cannot be stat'ed.
        """

        return cls(normalise_cache_path(path), path.stat().st_mtime_ns, parsing_mode)

    @classmethod
    def for_fragment(cls, fragment: Fragment, parsing_mode: ParsingMode) -> CacheKey:
        """Return the key for ``fragment`` as it was when discovered."""

        return cls(normalise_cache_path(fragment.path), fragment.mtime_ns, parsing_mode)


@dataclass(frozen=True, slots=True)
class CacheCandidate:
    """File identity handed to the pre-warmer.

    Attributes:
        path: Fragment file location.
        mtime_ns: Last write time recorded at discovery.
    """

    path: Path
    mtime_ns: int

    def key(self, parsing_mode: ParsingMode) -> CacheKey:
        """Return the cache key for this candidate under ``parsing_mode``."""

        return CacheKey(normalise_cache_path(self.path), self.mtime_ns, parsing_mode)


def candidates_for(fragments: Iterable[Fragment]) -> list[CacheCandidate]:
    """Return pre-warm candidates describing ``fragments``."""

    return [CacheCandidate(path=fragment.path, mtime_ns=fragment.mtime_ns) for fragment in fragments]


__all__ = ["CacheCandidate", "CacheKey", "candidates_for", "normalise_cache_path"]
