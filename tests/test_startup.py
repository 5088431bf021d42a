# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.

"""End-to-end tests for the startup sequence."""

from __future__ import annotations

import json
from pathlib import Path

from fragmentkit.config import CONFIG_FILENAME
from fragmentkit.settings import ProfileSettings
from fragmentkit.startup import start_profile, startup_warnings


def test_start_profile_loads_and_reports(store_root: Path, cache_dir: Path, write_fragment) -> None:
    write_fragment("10-env.py", "GREETING = 'hi'")
    write_fragment("20-git.py", "def gs():\n    return GREETING", requires=["env", "ghost"])
    write_fragment("30-broken.py", "raise RuntimeError('boom')")
    write_fragment("40-a.py", "", requires=["b"])
    write_fragment("50-b.py", "", requires=["a"])

    result = start_profile(store_root, settings=ProfileSettings(cache_dir=cache_dir))

    assert result.discovered == 5
    assert result.plan.names == ("env", "git", "broken")
    assert result.report.loaded == ("env", "git")
    assert result.session.namespace["gs"]() == "hi"
    assert startup_warnings(result) == [
        "Not loading fragments in a dependency cycle between fragments: a, b",
        "Fragment 'git' depends on missing fragment 'ghost'",
        "Fragment 'broken' failed to load: RuntimeError: boom",
    ]


def test_second_session_is_served_from_prewarmed_cache(store_root: Path, cache_dir: Path, write_fragment) -> None:
    write_fragment("10-env.py", "GREETING = 'hi'")
    write_fragment("20-git.py", "def gs():\n    return GREETING")
    settings = ProfileSettings(cache_dir=cache_dir)

    first = start_profile(store_root, settings=settings)
    second = start_profile(store_root, settings=settings)

    assert first.prewarm.total == 0
    assert second.prewarm.total == 4
    assert second.report.loaded == ("env", "git")
    assert second.session.cache.stats.misses == 0


def test_environment_and_disabled_configuration(store_root: Path, cache_dir: Path, write_fragment) -> None:
    (store_root / CONFIG_FILENAME).write_text(
        json.dumps({"disabled": ["slow"], "environments": {"minimal": ["env"]}}),
        encoding="utf-8",
    )
    write_fragment("00-bootstrap.py", "")
    write_fragment("10-env.py", "", requires=["bootstrap"])
    write_fragment("20-git.py", "", requires=["env"])
    write_fragment("30-slow.py", "")

    minimal = start_profile(store_root, settings=ProfileSettings(environment="minimal", cache_dir=cache_dir))
    full = start_profile(store_root, settings=ProfileSettings(cache_dir=cache_dir))

    assert minimal.report.loaded == ("bootstrap", "env")
    assert full.report.loaded == ("bootstrap", "env", "git")
    assert "slow" in full.plan.excluded


def test_malformed_configuration_is_reported(store_root: Path, cache_dir: Path, write_fragment) -> None:
    (store_root / CONFIG_FILENAME).write_text("{", encoding="utf-8")
    write_fragment("10-env.py", "")

    result = start_profile(store_root, settings=ProfileSettings(cache_dir=cache_dir))

    assert result.report.loaded == ("env",)
    assert startup_warnings(result)[0].startswith("Ignoring fragment configuration:")


def test_lazy_startup_defers_command_fragments(store_root: Path, cache_dir: Path, write_fragment) -> None:
    write_fragment("10-env.py", "")
    write_fragment("20-git.py", "def gs():\n    return 'status'")

    result = start_profile(store_root, settings=ProfileSettings(cache_dir=cache_dir, lazy=True))

    assert result.report.loaded == ("env",)
    assert result.report.deferred == ("git",)
    assert result.loader.resolve_command("gs")() == "status"
