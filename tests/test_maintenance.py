# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.

"""Tests for cache build, validation and database maintenance."""

from __future__ import annotations

import os
from pathlib import Path

import pytest

from fragmentkit.cache import CacheKey, FragmentCache
from fragmentkit.cache.maintenance import build_cache, validate_cache
from fragmentkit.cache.store import DATABASE_FILENAME, SqliteFragmentStore
from fragmentkit.errors import CacheStoreError
from fragmentkit.fragments.discovery import discover_fragments
from fragmentkit.fragments.models import ParsingMode


def test_build_cache_records_parse_failures(store_root: Path, cache_dir: Path, write_fragment) -> None:
    write_fragment("10-env.py", "def greet():\n    return 1")
    write_fragment("20-bad.py", "def broken(:")
    store = SqliteFragmentStore(cache_dir)

    result = build_cache(discover_fragments(store_root), FragmentCache(store=store), ParsingMode.AST)

    assert result.cached == ["env"]
    assert list(result.failed) == ["bad"]
    env_path = store_root / "10-env.py"
    assert store.get_ast(CacheKey.for_path(env_path, ParsingMode.AST)) == ("greet",)


def test_validate_reports_and_prunes_stale_entries(store_root: Path, cache_dir: Path, write_fragment) -> None:
    env = write_fragment("10-env.py", "ENV = 1")
    git = write_fragment("20-git.py", "GIT = 1")
    store = SqliteFragmentStore(cache_dir)
    build_cache(discover_fragments(store_root), FragmentCache(store=store), ParsingMode.AST)

    git.unlink()
    stat = env.stat()
    os.utime(env, ns=(stat.st_atime_ns, stat.st_mtime_ns + 1_000_000_000))

    report = validate_cache(store)
    assert report.healthy
    assert report.total_entries == 4
    assert len(report.stale_entries) == 4
    assert report.pruned == 0

    pruned = validate_cache(store, prune=True)
    assert pruned.pruned == 4
    assert store.entries() == []


def test_validate_healthy_cache(store_root: Path, cache_dir: Path, write_fragment) -> None:
    write_fragment("10-env.py", "ENV = 1")
    store = SqliteFragmentStore(cache_dir)
    build_cache(discover_fragments(store_root), FragmentCache(store=store), ParsingMode.REGEX)

    report = validate_cache(store, prune=True)

    assert report.integrity == "ok"
    assert report.total_entries == 2
    assert report.stale_entries == ()
    assert report.pruned == 0


def test_optimize_keeps_entries_and_integrity(store_root: Path, cache_dir: Path, write_fragment) -> None:
    write_fragment("10-env.py", "ENV = 1")
    store = SqliteFragmentStore(cache_dir)
    build_cache(discover_fragments(store_root), FragmentCache(store=store), ParsingMode.AST)
    store.clear()
    build_cache(discover_fragments(store_root), FragmentCache(store=store), ParsingMode.AST)

    store.optimize()

    assert store.integrity_check() == "ok"
    assert store.statistics().content_entries == 1


def test_backup_copies_every_entry(store_root: Path, cache_dir: Path, tmp_path: Path, write_fragment) -> None:
    write_fragment("10-env.py", "def greet():\n    return 1")
    store = SqliteFragmentStore(cache_dir)
    build_cache(discover_fragments(store_root), FragmentCache(store=store), ParsingMode.AST)
    backups = tmp_path / "backups"
    backups.mkdir()

    target = store.backup(backups)

    assert target == backups / DATABASE_FILENAME
    copy = SqliteFragmentStore(backups)
    key = CacheKey.for_path(store_root / "10-env.py", ParsingMode.AST)
    assert copy.get_ast(key) == ("greet",)
    assert copy.statistics().content_entries == 1


def test_backup_onto_live_database_is_refused(cache_dir: Path) -> None:
    store = SqliteFragmentStore(cache_dir)
    assert store.probe()

    with pytest.raises(CacheStoreError):
        store.backup(store.path)


def test_repair_leaves_healthy_database_alone(store_root: Path, cache_dir: Path, write_fragment) -> None:
    write_fragment("10-env.py", "ENV = 1")
    store = SqliteFragmentStore(cache_dir)
    build_cache(discover_fragments(store_root), FragmentCache(store=store), ParsingMode.AST)

    result = store.repair()

    assert result.rebuilt is False
    assert result.integrity == "ok"
    assert store.statistics().content_entries == 1


def test_repair_rebuilds_damaged_database(cache_dir: Path) -> None:
    store = SqliteFragmentStore(cache_dir)
    assert store.probe()
    store.path.write_bytes(b"this is not an sqlite database\n" * 64)
    assert store.probe() is False

    result = store.repair()

    assert result.rebuilt is True
    assert result.integrity != "ok"
    assert store.integrity_check() == "ok"
    assert store.statistics().content_entries == 0
