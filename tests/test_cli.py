# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.

"""Tests for the fragmentkit command-line interface."""

from __future__ import annotations

from pathlib import Path

import pytest
from typer.testing import CliRunner

from fragmentkit.cache.store import DATABASE_FILENAME
from fragmentkit.cli.app import app

runner = CliRunner()


def _setup_store(write_fragment) -> None:
    write_fragment("10-env.py", "GREETING = 'hi'")
    write_fragment("20-git.py", "def gs():\n    return GREETING", requires=["env"])


def _invoke(*args: str):
    return runner.invoke(app, [*args, "--no-emoji"])


def test_load_reports_loaded_fragments(store_root: Path, cache_dir: Path, write_fragment) -> None:
    _setup_store(write_fragment)

    result = _invoke("load", "--root", str(store_root), "--cache-dir", str(cache_dir))

    assert result.exit_code == 0
    assert "Loaded 2 of 2 fragments" in result.stdout
    assert "gs" in result.stdout


def test_load_strict_fails_on_broken_fragment(store_root: Path, cache_dir: Path, write_fragment) -> None:
    _setup_store(write_fragment)
    write_fragment("30-broken.py", "raise RuntimeError('boom')")

    lenient = _invoke("load", "--root", str(store_root), "--cache-dir", str(cache_dir))
    strict = _invoke("load", "--root", str(store_root), "--cache-dir", str(cache_dir), "--strict")

    assert lenient.exit_code == 0
    assert "Fragment 'broken' failed to load: RuntimeError: boom" in lenient.stdout
    assert strict.exit_code == 1


def test_load_rejects_unknown_mode(store_root: Path, cache_dir: Path) -> None:
    result = _invoke("load", "--root", str(store_root), "--cache-dir", str(cache_dir), "--mode", "yaml")

    assert result.exit_code == 2
    assert "Unsupported parsing mode 'yaml'" in result.stdout


def test_load_missing_store(tmp_path: Path, cache_dir: Path) -> None:
    result = _invoke("load", "--root", str(tmp_path / "absent"), "--cache-dir", str(cache_dir))

    assert result.exit_code == 1
    assert "does not exist" in result.stdout


def test_plan_lists_order_and_cycles(store_root: Path, write_fragment) -> None:
    _setup_store(write_fragment)
    write_fragment("30-a.py", "", requires=["b"])
    write_fragment("40-b.py", "", requires=["a"])

    result = _invoke("plan", "--root", str(store_root))
    strict = _invoke("plan", "--root", str(store_root), "--strict")

    assert result.exit_code == 0
    assert "1. env" in result.stdout
    assert "2. git  (requires: env)" in result.stdout
    assert "dependency cycle between fragments: a, b" in result.stdout
    assert strict.exit_code == 1


def test_which_reports_owning_fragment(store_root: Path, cache_dir: Path, write_fragment) -> None:
    _setup_store(write_fragment)

    found = _invoke("which", "gs", "--root", str(store_root), "--cache-dir", str(cache_dir))
    loaded = _invoke("which", "gs", "--root", str(store_root), "--cache-dir", str(cache_dir), "--load")
    missing = _invoke("which", "nope", "--root", str(store_root), "--cache-dir", str(cache_dir))

    assert found.exit_code == 0
    assert "gs: git (function)" in found.stdout
    assert loaded.exit_code == 0
    assert "gs: git (function)" in loaded.stdout
    assert missing.exit_code == 1
    assert "No fragment defines 'nope'" in missing.stdout


def test_cache_commands(store_root: Path, cache_dir: Path, write_fragment) -> None:
    _setup_store(write_fragment)

    built = _invoke("cache", "build", "--root", str(store_root), "--cache-dir", str(cache_dir))
    stats = _invoke("cache", "stats", "--cache-dir", str(cache_dir))
    (store_root / "20-git.py").unlink()
    validated = _invoke("cache", "validate", "--cache-dir", str(cache_dir))
    pruned = _invoke("cache", "validate", "--cache-dir", str(cache_dir), "--prune")
    cleared = _invoke("cache", "clear", "--cache-dir", str(cache_dir))

    assert built.exit_code == 0
    assert "Cached 2 fragments (ast)" in built.stdout
    assert stats.exit_code == 0
    assert "Content entries" in stats.stdout
    assert validated.exit_code == 0
    assert "4 entries checked, 2 stale" in validated.stdout
    assert pruned.exit_code == 0
    assert "2 pruned" in pruned.stdout
    assert cleared.exit_code == 0
    assert "Cleared fragment cache" in cleared.stdout


def test_cache_database_maintenance_commands(
    store_root: Path,
    cache_dir: Path,
    tmp_path: Path,
    write_fragment,
) -> None:
    _setup_store(write_fragment)
    _invoke("cache", "build", "--root", str(store_root), "--cache-dir", str(cache_dir))
    backup_file = tmp_path / "backups" / "fragments.db"

    optimized = _invoke("cache", "optimize", "--cache-dir", str(cache_dir))
    backed_up = _invoke("cache", "backup", "--cache-dir", str(cache_dir), "--to", str(backup_file))
    healthy = _invoke("cache", "repair", "--cache-dir", str(cache_dir))

    assert optimized.exit_code == 0
    assert "Optimized" in optimized.stdout
    assert backed_up.exit_code == 0
    assert backup_file.is_file()
    assert healthy.exit_code == 0
    assert "nothing to repair" in healthy.stdout


def test_cache_repair_rebuilds_damaged_database(cache_dir: Path) -> None:
    cache_dir.mkdir()
    (cache_dir / DATABASE_FILENAME).write_bytes(b"garbage" * 64)

    validated = _invoke("cache", "validate", "--cache-dir", str(cache_dir))
    repaired = _invoke("cache", "repair", "--cache-dir", str(cache_dir))
    stats = _invoke("cache", "stats", "--cache-dir", str(cache_dir))

    assert validated.exit_code == 1
    assert repaired.exit_code == 0
    assert "Rebuilt empty cache database" in repaired.stdout
    assert stats.exit_code == 0


def test_cache_commands_without_sqlite(cache_dir: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr("fragmentkit.cli.commands.cache.sqlite_available", lambda: False)

    for command in ("stats", "clear", "optimize", "repair"):
        result = _invoke("cache", command, "--cache-dir", str(cache_dir))
        assert result.exit_code == 1
        assert "SQLite is not available" in result.stdout
    assert not cache_dir.exists()
