# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Load the optional JSON document that disables fragments and names environments."""

from __future__ import annotations

import json
import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType
from typing import Final

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from .errors import ConfigError

LOGGER = logging.getLogger(__name__)

CONFIG_FILENAME: Final[str] = ".profile-fragments.json"


class FragmentConfigDocument(BaseModel):
    """Schema of the on-disk fragment configuration document."""

    model_config = ConfigDict(extra="ignore", frozen=True)

    disabled: list[str] = Field(default_factory=list)
    environments: dict[str, list[str]] = Field(default_factory=dict)


@dataclass(frozen=True, slots=True)
class FragmentConfig:
    """Describe which fragments are disabled and which named subsets exist.

    Attributes:
        disabled_fragments: Fragment names excluded from every load plan.
        environments: Mapping of environment names to the fragments they select.
        source: Configuration file the values were read from, when any.
        error: Message describing why the file was ignored, when it was.
    """

    disabled_fragments: frozenset[str] = frozenset()
    environments: Mapping[str, frozenset[str]] = field(default_factory=lambda: MappingProxyType({}))
    source: Path | None = None
    error: str | None = None


def config_path_for(store_root: Path) -> Path:
    """Return the configuration file location for ``store_root``."""

    return store_root / CONFIG_FILENAME


def parse_fragment_config(text: str, *, source: Path | None = None) -> FragmentConfig:
    """Parse a configuration document.

    Args:
        text: Raw JSON text.
        source: File the text was read from, recorded on the result.

    Returns:
        FragmentConfig: Parsed configuration.

    Raises:
        ConfigError: If ``text`` is not valid JSON or does not match the schema.
    """

    try:
        raw = json.loads(text)
    except json.JSONDecodeError as exc:
        raise ConfigError(f"invalid JSON: {exc}") from exc
    if not isinstance(raw, dict):
        raise ConfigError("configuration document must be a JSON object")
    try:
        document = FragmentConfigDocument.model_validate(raw)
    except ValidationError as exc:
        raise ConfigError(f"invalid configuration: {exc.error_count()} validation error(s)") from exc

    environments = {name: frozenset(members) for name, members in document.environments.items()}
    return FragmentConfig(
        disabled_fragments=frozenset(document.disabled),
        environments=MappingProxyType(environments),
        source=source,
    )


def load_fragment_config(store_root: Path) -> FragmentConfig:
    """Load the configuration for ``store_root`` without ever failing.

    A missing file yields the default configuration. An unreadable or
    malformed file is logged and also yields the default configuration, with
    ``error`` describing the problem.

    Args:
        store_root: Fragment store directory holding the configuration file.

    Returns:
        FragmentConfig: Parsed or default configuration.
    """

    path = config_path_for(store_root)
    if not path.is_file():
        return FragmentConfig()
    try:
        return parse_fragment_config(path.read_text(encoding="utf-8"), source=path)
    except OSError as exc:
        message = f"unable to read {path}: {exc}"
    except ConfigError as exc:
        message = f"{path}: {exc}"
    LOGGER.warning("ignoring fragment configuration: %s", message)
    return FragmentConfig(source=path, error=message)


__all__ = [
    "CONFIG_FILENAME",
    "FragmentConfig",
    "FragmentConfigDocument",
    "config_path_for",
    "load_fragment_config",
    "parse_fragment_config",
]
