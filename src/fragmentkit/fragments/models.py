# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.

"""Data models describing fragments and the load plans built from them."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import TYPE_CHECKING, Final, Literal, TypeAlias

if TYPE_CHECKING:
    from ..errors import CycleError

OrderHint: TypeAlias = tuple[int, int, str]
WarningReason: TypeAlias = Literal["missing", "disabled", "cycle"]

PREFIXED_GROUP: Final[int] = 0
UNPREFIXED_GROUP: Final[int] = 1


class FragmentStatus(str, Enum):
    """Enumerate lifecycle states of a fragment within one session."""

    UNLOADED = "unloaded"
    LOADING = "loading"
    LOADED = "loaded"
    FAILED = "failed"


class ParsingMode(str, Enum):
    """Enumerate the strategies used to extract command names from fragments."""

    REGEX = "regex"
    AST = "ast"

    @classmethod
    def from_raw(cls, raw: str) -> ParsingMode | None:
        """Return the mode matching ``raw`` (case-insensitive) when recognised.

        Args:
            raw: Token supplied through the environment or the CLI.

        Returns:
            ParsingMode | None: Matching mode, or ``None`` for unknown tokens.
        """

        token = raw.strip().lower()
        for member in cls:
            if member.value == token:
                return member
        return None


class CommandType(str, Enum):
    """Enumerate the kinds of commands a fragment can expose."""

    FUNCTION = "function"
    ALIAS = "alias"


@dataclass(slots=True)
class Fragment:
    """Represent one discoverable, independently loadable configuration unit.

    Attributes:
        name: Stable identifier derived from the file name without its prefix.
        path: Location of the fragment source file.
        order_hint: ``(group, numeric prefix, stem)`` tuple used to break ordering
            ties; unprefixed files are in a later group than every prefixed one.
        declared_dependencies: Names of fragments that must load first.
        environment_tags: Named environments the fragment declares membership of.
        enabled: ``False`` when the fragment header disables it.
        mtime_ns: Last write time captured at discovery, used for cache keys.
        status: Lifecycle state, mutated only by the loader.
    """

    name: str
    path: Path
    order_hint: OrderHint
    declared_dependencies: frozenset[str] = frozenset()
    environment_tags: frozenset[str] = frozenset()
    enabled: bool = True
    mtime_ns: int = 0
    status: FragmentStatus = FragmentStatus.UNLOADED

    @property
    def sort_key(self) -> tuple[int, int, str, str]:
        """Return the deterministic tie-break key used by the resolver."""

        return (*self.order_hint, self.name)


@dataclass(frozen=True, slots=True)
class DependencyWarning:
    """Describe a declared dependency that could not be satisfied.

    Attributes:
        fragment: Fragment declaring the dependency.
        dependency: Name of the dependency that was not scheduled.
        reason: ``"missing"`` when no such fragment exists, ``"disabled"`` when
            it was filtered out, ``"cycle"`` when it participates in a cycle.
    """

    fragment: str
    dependency: str
    reason: WarningReason

    def describe(self) -> str:
        """Return a human-readable summary of the warning."""

        return f"Fragment '{self.fragment}' depends on {self.reason} fragment '{self.dependency}'"


@dataclass(frozen=True, slots=True)
class LoadPlan:
    """Ordered, dependency-respecting execution sequence for one snapshot.

    Attributes:
        fragments: Fragments in the order they must execute.
        warnings: Unsatisfied dependency declarations encountered while ordering.
        cycle_error: Cycle detected among the candidate fragments, if any.
        excluded: Names of fragments filtered out by configuration or environment.
    """

    fragments: tuple[Fragment, ...]
    warnings: tuple[DependencyWarning, ...] = ()
    cycle_error: CycleError | None = None
    excluded: tuple[str, ...] = field(default=())

    @property
    def names(self) -> tuple[str, ...]:
        """Return fragment names in plan order."""

        return tuple(fragment.name for fragment in self.fragments)

    def get(self, name: str) -> Fragment | None:
        """Return the planned fragment called ``name`` when present."""

        for fragment in self.fragments:
            if fragment.name == name:
                return fragment
        return None

    def __len__(self) -> int:
        return len(self.fragments)


__all__ = [
    "CommandType",
    "DependencyWarning",
    "Fragment",
    "FragmentStatus",
    "LoadPlan",
    "OrderHint",
    "ParsingMode",
    "PREFIXED_GROUP",
    "UNPREFIXED_GROUP",
]
