# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.

"""Shared pytest fixtures."""

from __future__ import annotations

from collections.abc import Callable, Iterable, Iterator
from pathlib import Path

import pytest

from fragmentkit.fragments.models import ParsingMode
from fragmentkit.logging import configure_diagnostics
from fragmentkit.session import ProfileSession
from fragmentkit.settings import (
    CACHE_DIR_ENV_VAR,
    CACHE_TIMEOUT_ENV_VAR,
    DEBUG_ENV_VAR,
    ENVIRONMENT_ENV_VAR,
    LAZY_ENV_VAR,
    PARSING_MODE_ENV_VAR,
    ProfileSettings,
)

FragmentWriter = Callable[..., Path]
SessionFactory = Callable[..., ProfileSession]


@pytest.fixture(autouse=True)
def _isolated_environment(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Iterator[None]:
    for name in (
        ENVIRONMENT_ENV_VAR,
        PARSING_MODE_ENV_VAR,
        DEBUG_ENV_VAR,
        CACHE_DIR_ENV_VAR,
        CACHE_TIMEOUT_ENV_VAR,
        LAZY_ENV_VAR,
    ):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("XDG_CACHE_HOME", str(tmp_path / "xdg-cache"))
    yield
    configure_diagnostics(False)


@pytest.fixture
def store_root(tmp_path: Path) -> Path:
    """Return an empty fragment store directory."""
    root = tmp_path / "profile.d"
    root.mkdir()
    return root


@pytest.fixture
def cache_dir(tmp_path: Path) -> Path:
    """Return the directory used for the persistent cache database."""
    return tmp_path / "cache"


@pytest.fixture
def write_fragment(store_root: Path) -> FragmentWriter:
    """Return a helper that writes a fragment file with an optional header."""

    def _write(
        filename: str,
        body: str = "",
        *,
        requires: Iterable[str] = (),
        environments: Iterable[str] = (),
        enabled: bool | None = None,
    ) -> Path:
        header: list[str] = []
        if requires:
            header.append(f"# Requires: {', '.join(requires)}")
        if environments:
            header.append(f"# Environments: {', '.join(environments)}")
        if enabled is not None:
            header.append(f"# Enabled: {'true' if enabled else 'false'}")
        path = store_root / filename
        path.write_text("\n".join([*header, body]) + "\n", encoding="utf-8")
        return path

    return _write


@pytest.fixture
def make_session(cache_dir: Path) -> SessionFactory:
    """Return a factory building sessions backed by the temporary cache directory."""

    def _make(
        *,
        parsing_mode: ParsingMode = ParsingMode.AST,
        environment: str | None = None,
        lazy: bool = False,
    ) -> ProfileSession:
        settings = ProfileSettings(
            environment=environment,
            parsing_mode=parsing_mode,
            cache_dir=cache_dir,
            lazy=lazy,
        )
        return ProfileSession.create(settings)

    return _make
