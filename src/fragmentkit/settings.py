# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.

"""Resolve runtime settings from environment variable switches."""

from __future__ import annotations

import logging
import os
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Final

from .fragments.models import ParsingMode

LOGGER = logging.getLogger(__name__)

ENVIRONMENT_ENV_VAR: Final[str] = "FRAGMENTKIT_ENVIRONMENT"
PARSING_MODE_ENV_VAR: Final[str] = "FRAGMENTKIT_PARSING_MODE"
DEBUG_ENV_VAR: Final[str] = "FRAGMENTKIT_DEBUG"
CACHE_DIR_ENV_VAR: Final[str] = "FRAGMENTKIT_CACHE_DIR"
CACHE_TIMEOUT_ENV_VAR: Final[str] = "FRAGMENTKIT_CACHE_TIMEOUT"
LAZY_ENV_VAR: Final[str] = "FRAGMENTKIT_LAZY"

DEFAULT_CACHE_TIMEOUT: Final[float] = 0.5
_TRUE_TOKENS: Final[frozenset[str]] = frozenset({"1", "true", "yes", "on"})


def default_cache_dir(env: Mapping[str, str] | None = None) -> Path:
    """Return the default persistent cache directory.

    Args:
        env: Optional environment mapping used instead of :mod:`os.environ`.

    Returns:
        Path: ``$XDG_CACHE_HOME/fragmentkit`` when set, else ``~/.cache/fragmentkit``.
    """

    environment = os.environ if env is None else env
    xdg = environment.get("XDG_CACHE_HOME")
    base = Path(xdg).expanduser() if xdg else Path.home() / ".cache"
    return base / "fragmentkit"


@dataclass(frozen=True, slots=True)
class ProfileSettings:
    """Define the behaviour switches consumed by the loading engine.

    Attributes:
        environment: Active named environment selecting a fragment subset.
        parsing_mode: Strategy used to extract command names from fragments.
        debug: Enables verbose diagnostic tracing of engine decisions.
        cache_dir: Directory holding the persistent cache database.
        cache_timeout: Seconds to wait on store locks and probes.
        lazy: Defer fragments exposing commands until first use.
    """

    environment: str | None = None
    parsing_mode: ParsingMode = ParsingMode.AST
    debug: bool = False
    cache_dir: Path = field(default_factory=default_cache_dir)
    cache_timeout: float = DEFAULT_CACHE_TIMEOUT
    lazy: bool = False


def _flag(value: str | None) -> bool:
    return value is not None and value.strip().lower() in _TRUE_TOKENS


def _parse_timeout(raw: str | None) -> float:
    if raw is None or not raw.strip():
        return DEFAULT_CACHE_TIMEOUT
    try:
        value = float(raw)
    except ValueError:
        LOGGER.warning("ignoring invalid %s=%r", CACHE_TIMEOUT_ENV_VAR, raw)
        return DEFAULT_CACHE_TIMEOUT
    if value < 0:
        LOGGER.warning("ignoring negative %s=%r", CACHE_TIMEOUT_ENV_VAR, raw)
        return DEFAULT_CACHE_TIMEOUT
    return value


def _parse_mode(raw: str | None) -> ParsingMode:
    if raw is None or not raw.strip():
        return ParsingMode.AST
    mode = ParsingMode.from_raw(raw)
    if mode is None:
        LOGGER.warning("ignoring unsupported %s=%r; using ast", PARSING_MODE_ENV_VAR, raw)
        return ParsingMode.AST
    return mode


def resolve_settings(
    settings: ProfileSettings | None = None,
    *,
    env: Mapping[str, str] | None = None,
) -> ProfileSettings:
    """Return settings honouring explicit overrides, then the environment.

    Invalid environment values are logged and replaced by defaults so that a
    typo in a shell rc file never blocks startup.

    Args:
        settings: Explicit settings that take precedence when provided.
        env: Optional environment mapping used instead of :mod:`os.environ`.

    Returns:
        ProfileSettings: Effective settings.
    """

    if settings is not None:
        return settings

    environment = os.environ if env is None else env
    active = (environment.get(ENVIRONMENT_ENV_VAR) or "").strip() or None
    cache_dir_raw = (environment.get(CACHE_DIR_ENV_VAR) or "").strip()
    cache_dir = Path(cache_dir_raw).expanduser() if cache_dir_raw else default_cache_dir(environment)
    return ProfileSettings(
        environment=active,
        parsing_mode=_parse_mode(environment.get(PARSING_MODE_ENV_VAR)),
        debug=_flag(environment.get(DEBUG_ENV_VAR)),
        cache_dir=cache_dir,
        cache_timeout=_parse_timeout(environment.get(CACHE_TIMEOUT_ENV_VAR)),
        lazy=_flag(environment.get(LAZY_ENV_VAR)),
    )


__all__ = [
    "CACHE_DIR_ENV_VAR",
    "CACHE_TIMEOUT_ENV_VAR",
    "DEBUG_ENV_VAR",
    "ENVIRONMENT_ENV_VAR",
    "LAZY_ENV_VAR",
    "PARSING_MODE_ENV_VAR",
    "ProfileSettings",
    "default_cache_dir",
    "resolve_settings",
]
