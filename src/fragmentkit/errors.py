# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.

"""Custom exceptions raised by fragment loading and caching operations."""

from __future__ import annotations

from collections.abc import Iterable
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .fragments.models import LoadPlan


class FragmentkitError(RuntimeError):
    """Base class for errors raised by fragmentkit."""


class ConfigError(FragmentkitError):
    """Raised when the fragment configuration document is malformed."""


class CycleError(FragmentkitError):
    """Raised when fragment dependency declarations form a cycle.

    Attributes:
        fragments: Sorted names of every fragment that participates in a cycle.
        plan: Partial load plan covering the fragments unaffected by the cycle,
            attached when the resolver runs in strict mode.
    """

    def __init__(self, fragments: Iterable[str], *, plan: LoadPlan | None = None) -> None:
        """Initialise the error with the fragments involved in the cycle.

        Args:
            fragments: Names of the fragments implicated in the cycle.
            plan: Optional partial plan produced before the error was raised.
        """

        self.fragments: tuple[str, ...] = tuple(sorted(set(fragments)))
        self.plan = plan
        super().__init__(f"dependency cycle between fragments: {', '.join(self.fragments)}")


class FragmentExecutionError(FragmentkitError):
    """Raised (and recorded) when a fragment body fails to parse or execute."""

    def __init__(self, fragment: str, message: str) -> None:
        """Initialise the error for ``fragment``.

        Args:
            fragment: Name of the fragment that failed.
            message: Description of the underlying failure.
        """

        self.fragment = fragment
        self.message = message
        super().__init__(f"{fragment}: {message}")


class CacheStoreError(FragmentkitError):
    """Raised when the persistent cache store is unreachable or corrupt."""


__all__ = [
    "CacheStoreError",
    "ConfigError",
    "CycleError",
    "FragmentExecutionError",
    "FragmentkitError",
]
