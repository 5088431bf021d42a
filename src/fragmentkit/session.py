# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.

"""Process-lifetime state shared by the resolver, cache and loader."""

from __future__ import annotations

from dataclasses import dataclass, field
from threading import Lock
from typing import Any

from .cache import FragmentCache, build_fragment_cache
from .registry import CommandRegistry
from .settings import ProfileSettings, resolve_settings


class IdempotencyTracker:
    """Record which fragments have already started loading in this process.

    ``try_begin_load`` is an atomic check-and-set, so the at-most-once
    guarantee holds even if loading is ever parallelised.
    """

    def __init__(self) -> None:
        self._loaded: set[str] = set()
        self._lock = Lock()

    def try_begin_load(self, name: str) -> bool:
        """Mark ``name`` as loaded the first time it is seen.

        Args:
            name: Fragment name about to be executed.

        Returns:
            bool: ``True`` for the first call with ``name``, ``False`` afterwards.
        """

        with self._lock:
            if name in self._loaded:
                return False
            self._loaded.add(name)
            return True

    def is_loaded(self, name: str) -> bool:
        """Return whether ``name`` has already begun loading."""

        with self._lock:
            return name in self._loaded

    @property
    def loaded(self) -> frozenset[str]:
        """Return a snapshot of the names that have begun loading."""

        with self._lock:
            return frozenset(self._loaded)

    def clear_loaded(self, name: str) -> None:
        """Forget ``name`` so it can load again. Intended for tests only."""

        with self._lock:
            self._loaded.discard(name)

    def reset(self) -> None:
        """Forget every loaded fragment. Intended for tests only."""

        with self._lock:
            self._loaded.clear()


@dataclass(slots=True)
class ProfileSession:
    """Own the mutable state of one shell session.

    Attributes:
        settings: Effective behaviour switches.
        cache: Two-tier content and AST cache.
        tracker: Guard ensuring each fragment executes at most once.
        registry: Command name to fragment mapping.
        namespace: Globals shared by every fragment executed in the session.
    """

    settings: ProfileSettings
    cache: FragmentCache
    tracker: IdempotencyTracker = field(default_factory=IdempotencyTracker)
    registry: CommandRegistry = field(default_factory=CommandRegistry)
    namespace: dict[str, Any] = field(default_factory=lambda: {"__name__": "__fragmentkit_session__"})

    @classmethod
    def create(cls, settings: ProfileSettings | None = None) -> ProfileSession:
        """Build a session, probing the persistent cache store exactly once.

        Args:
            settings: Explicit settings; resolved from the environment when ``None``.

        Returns:
            ProfileSession: Fresh session with empty tracker and registry.
        """

        resolved = resolve_settings(settings)
        return cls(settings=resolved, cache=build_fragment_cache(resolved))


__all__ = ["IdempotencyTracker", "ProfileSession"]
