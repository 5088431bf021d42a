# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.

"""Tests for the fragment configuration document and settings resolution."""

from __future__ import annotations

import json
import logging
from pathlib import Path

import pytest

from fragmentkit.config import CONFIG_FILENAME, load_fragment_config, parse_fragment_config
from fragmentkit.errors import ConfigError
from fragmentkit.fragments.models import ParsingMode
from fragmentkit.settings import DEFAULT_CACHE_TIMEOUT, ProfileSettings, resolve_settings


def test_missing_config_yields_defaults(store_root: Path) -> None:
    config = load_fragment_config(store_root)
    assert config.disabled_fragments == frozenset()
    assert dict(config.environments) == {}
    assert config.error is None


def test_valid_config_is_parsed(store_root: Path) -> None:
    (store_root / CONFIG_FILENAME).write_text(
        json.dumps(
            {
                "disabled": ["slow"],
                "environments": {"minimal": ["bootstrap", "env"]},
                "comment": "unknown keys are ignored",
            },
        ),
        encoding="utf-8",
    )

    config = load_fragment_config(store_root)

    assert config.disabled_fragments == frozenset({"slow"})
    assert config.environments["minimal"] == frozenset({"bootstrap", "env"})
    assert config.source == store_root / CONFIG_FILENAME


def test_malformed_config_is_ignored_with_warning(store_root: Path, caplog: pytest.LogCaptureFixture) -> None:
    (store_root / CONFIG_FILENAME).write_text("{not json", encoding="utf-8")

    with caplog.at_level(logging.WARNING, logger="fragmentkit"):
        config = load_fragment_config(store_root)

    assert config.disabled_fragments == frozenset()
    assert config.error is not None
    assert "ignoring fragment configuration" in caplog.text


def test_parse_fragment_config_rejects_wrong_shape() -> None:
    with pytest.raises(ConfigError):
        parse_fragment_config('{"disabled": "slow"}')
    with pytest.raises(ConfigError):
        parse_fragment_config("[]")


def test_resolve_settings_reads_environment_mapping(tmp_path: Path) -> None:
    settings = resolve_settings(
        env={
            "FRAGMENTKIT_ENVIRONMENT": "minimal",
            "FRAGMENTKIT_PARSING_MODE": "regex",
            "FRAGMENTKIT_DEBUG": "1",
            "FRAGMENTKIT_CACHE_DIR": str(tmp_path),
            "FRAGMENTKIT_CACHE_TIMEOUT": "2.5",
            "FRAGMENTKIT_LAZY": "yes",
        },
    )
    assert settings == ProfileSettings(
        environment="minimal",
        parsing_mode=ParsingMode.REGEX,
        debug=True,
        cache_dir=tmp_path,
        cache_timeout=2.5,
        lazy=True,
    )


def test_resolve_settings_falls_back_on_invalid_values(tmp_path: Path) -> None:
    settings = resolve_settings(
        env={
            "FRAGMENTKIT_PARSING_MODE": "yaml",
            "FRAGMENTKIT_CACHE_TIMEOUT": "soon",
            "XDG_CACHE_HOME": str(tmp_path),
        },
    )
    assert settings.parsing_mode is ParsingMode.AST
    assert settings.cache_timeout == DEFAULT_CACHE_TIMEOUT
    assert settings.cache_dir == tmp_path / "fragmentkit"
    assert settings.environment is None
    assert settings.debug is False


def test_resolve_settings_prefers_explicit_settings(tmp_path: Path) -> None:
    explicit = ProfileSettings(cache_dir=tmp_path)
    assert resolve_settings(explicit, env={"FRAGMENTKIT_DEBUG": "1"}) is explicit
