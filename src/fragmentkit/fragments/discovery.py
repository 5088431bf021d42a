# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.

"""Discover fragment files and the metadata declared in their header block."""

from __future__ import annotations

import logging
import re
from collections.abc import Iterable
from dataclasses import dataclass
from pathlib import Path
from typing import Final

from .models import PREFIXED_GROUP, UNPREFIXED_GROUP, Fragment, OrderHint

LOGGER = logging.getLogger(__name__)

FRAGMENT_SUFFIX: Final[str] = ".py"
REQUIRES_KEY: Final[str] = "requires"
ENVIRONMENTS_KEY: Final[str] = "environments"
ENABLED_KEY: Final[str] = "enabled"

_PREFIX_RE: Final[re.Pattern[str]] = re.compile(r"^(?P<order>\d+)[-_.](?P<name>.+)$")
_HEADER_RE: Final[re.Pattern[str]] = re.compile(r"^#\s*(?P<key>[A-Za-z][\w-]*)\s*:\s*(?P<value>.*?)\s*$")
_FALSE_TOKENS: Final[frozenset[str]] = frozenset({"0", "false", "no", "off"})


@dataclass(frozen=True, slots=True)
class FragmentHeader:
    """Metadata declared in the leading comment block of a fragment.

    Attributes:
        requires: Names of fragments the fragment depends on.
        environments: Named environments the fragment belongs to.
        enabled: ``False`` when the header explicitly disables the fragment.
    """

    requires: frozenset[str] = frozenset()
    environments: frozenset[str] = frozenset()
    enabled: bool = True


def split_fragment_stem(stem: str) -> tuple[str, OrderHint]:
    """Return the fragment name and order hint encoded in ``stem``.

    Args:
        stem: File name without its suffix, for example ``"10-env"``.

    Returns:
        tuple[str, OrderHint]: Fragment name (``"env"``) and the order hint
        (``(0, 10, "10-env")``). Unprefixed stems sort after every prefixed one.
    """

    match = _PREFIX_RE.match(stem)
    if match is None:
        return stem, (UNPREFIXED_GROUP, 0, stem)
    return match.group("name"), (PREFIXED_GROUP, int(match.group("order")), stem)


def _split_names(value: str) -> frozenset[str]:
    return frozenset(token.strip() for token in value.split(",") if token.strip())


def parse_fragment_header(lines: Iterable[str]) -> FragmentHeader:
    """Parse the ``# Key: value`` declarations from a fragment header block.

    Only the leading run of comment and blank lines is considered; parsing
    stops at the first line of code. Unknown keys are ignored.

    Args:
        lines: Source lines of the fragment, read lazily.

    Returns:
        FragmentHeader: Declared dependencies, environments and enablement.
    """

    requires: set[str] = set()
    environments: set[str] = set()
    enabled = True
    for raw_line in lines:
        line = raw_line.strip()
        if not line:
            continue
        if not line.startswith("#"):
            break
        match = _HEADER_RE.match(line)
        if match is None:
            continue
        key = match.group("key").lower()
        value = match.group("value")
        if key == REQUIRES_KEY:
            requires.update(_split_names(value))
        elif key == ENVIRONMENTS_KEY:
            environments.update(_split_names(value))
        elif key == ENABLED_KEY:
            enabled = value.strip().lower() not in _FALSE_TOKENS
    return FragmentHeader(
        requires=frozenset(requires),
        environments=frozenset(environments),
        enabled=enabled,
    )


def _read_header(path: Path) -> FragmentHeader:
    with path.open(encoding="utf-8", errors="replace") as handle:
        return parse_fragment_header(handle)


def load_fragment(path: Path) -> Fragment:
    """Build a :class:`Fragment` for ``path`` from its name and header.

    Args:
        path: Fragment source file.

    Returns:
        Fragment: Fragment in the ``UNLOADED`` state.

    Raises:
        OSError: If the file cannot be stat'ed or read.
    """

    stat = path.stat()
    header = _read_header(path)
    name, order_hint = split_fragment_stem(path.stem)
    return Fragment(
        name=name,
        path=path,
        order_hint=order_hint,
        declared_dependencies=header.requires,
        environment_tags=header.environments,
        enabled=header.enabled,
        mtime_ns=stat.st_mtime_ns,
    )


def discover_fragments(store_root: Path) -> list[Fragment]:
    """Enumerate the fragments stored directly under ``store_root``.

    Args:
        store_root: Fragment store directory.

    Returns:
        list[Fragment]: Fragments sorted by order hint. Missing directories,
        unreadable files and duplicate names are logged and skipped.
    """

    if not store_root.is_dir():
        LOGGER.debug("fragment store %s does not exist", store_root)
        return []

    candidates = sorted(
        (
            path
            for path in store_root.iterdir()
            if path.suffix == FRAGMENT_SUFFIX and path.is_file() and not path.name.startswith(("_", "."))
        ),
        key=lambda item: split_fragment_stem(item.stem)[1],
    )

    fragments: list[Fragment] = []
    seen: dict[str, Path] = {}
    for path in candidates:
        try:
            fragment = load_fragment(path)
        except OSError as exc:
            LOGGER.warning("skipping unreadable fragment %s: %s", path, exc)
            continue
        if fragment.name in seen:
            LOGGER.warning(
                "skipping fragment %s: name '%s' already provided by %s",
                path.name,
                fragment.name,
                seen[fragment.name].name,
            )
            continue
        seen[fragment.name] = path
        fragments.append(fragment)
        LOGGER.debug(
            "discovered fragment=%s requires=%s environments=%s",
            fragment.name,
            ",".join(sorted(fragment.declared_dependencies)) or "-",
            ",".join(sorted(fragment.environment_tags)) or "-",
        )
    return fragments


__all__ = [
    "FragmentHeader",
    "discover_fragments",
    "load_fragment",
    "parse_fragment_header",
    "split_fragment_stem",
]
