# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.

"""CLI commands for maintaining the persistent fragment cache."""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING, Annotated, Any

import typer
from rich.table import Table

from ...cache.tiered import FragmentCache, sqlite_available
from ...errors import CacheStoreError
from ...fragments.discovery import discover_fragments
from ...settings import ProfileSettings
from ..shared import (
    CACHE_DIR_OPTION,
    DEBUG_OPTION,
    DEFAULT_STORE_ROOT,
    EMOJI_OPTION,
    MODE_OPTION,
    ROOT_OPTION,
    CLIError,
    CLILogger,
    build_cli_logger,
    build_settings,
)
from ..typer_ext import SortedTyper, create_typer

if TYPE_CHECKING:
    from ...cache.store import SqliteFragmentStore

cache_app = create_typer(name="cache", help="Inspect and maintain the persistent fragment cache.")


def _open_store(settings: ProfileSettings, logger: CLILogger) -> SqliteFragmentStore:
    if not sqlite_available():
        logger.fail("SQLite is not available in this interpreter; the cache is memory-only")
        raise typer.Exit(code=1)

    from ...cache.store import SqliteFragmentStore

    return SqliteFragmentStore(settings.cache_dir, timeout=settings.cache_timeout)


def _settings(logger: CLILogger, **overrides: Any) -> ProfileSettings:
    try:
        return build_settings(**overrides)
    except CLIError as exc:
        logger.fail(str(exc))
        raise typer.Exit(code=exc.exit_code) from exc


def _store_failed(logger: CLILogger, exc: CacheStoreError) -> typer.Exit:
    logger.fail(str(exc))
    return typer.Exit(code=1)


@cache_app.command("clear")
def clear_command(
    cache_dir: CACHE_DIR_OPTION = None,
    debug: DEBUG_OPTION = False,
    emoji: EMOJI_OPTION = True,
) -> None:
    """Delete every cached content and AST entry."""

    logger = build_cli_logger(emoji=emoji, debug=debug)
    store = _open_store(_settings(logger, cache_dir=cache_dir, debug=debug), logger)
    try:
        store.clear()
    except CacheStoreError as exc:
        raise _store_failed(logger, exc) from exc
    logger.ok(f"Cleared fragment cache at {store.path}")


@cache_app.command("build")
def build_command(
    root: ROOT_OPTION = DEFAULT_STORE_ROOT,
    mode: MODE_OPTION = None,
    cache_dir: CACHE_DIR_OPTION = None,
    debug: DEBUG_OPTION = False,
    emoji: EMOJI_OPTION = True,
) -> None:
    """Parse every fragment in the store and persist its content and names."""

    logger = build_cli_logger(emoji=emoji, debug=debug)
    settings = _settings(logger, mode=mode, cache_dir=cache_dir, debug=debug)
    store = _open_store(settings, logger)
    cache = FragmentCache(store=store)
    if not cache.is_persistent_store_available():
        logger.fail(f"Cache store {store.path} cannot be opened")
        raise typer.Exit(code=1)

    from ...cache.maintenance import build_cache

    result = build_cache(discover_fragments(root), cache, settings.parsing_mode)
    for name, reason in sorted(result.failed.items()):
        logger.warn(f"Fragment '{name}' was not cached: {reason}")
    if cache.stats.store_errors:
        logger.fail(f"Writing to {store.path} failed; entries were cached in memory only")
        raise typer.Exit(code=1)
    logger.ok(f"Cached {len(result.cached)} fragments ({settings.parsing_mode.value}) in {store.path}")


@cache_app.command("validate")
def validate_command(
    cache_dir: CACHE_DIR_OPTION = None,
    prune: Annotated[bool, typer.Option("--prune", help="Delete entries for changed or removed files.")] = False,
    debug: DEBUG_OPTION = False,
    emoji: EMOJI_OPTION = True,
) -> None:
    """Check database integrity and report entries that no longer match their files."""

    logger = build_cli_logger(emoji=emoji, debug=debug)
    store = _open_store(_settings(logger, cache_dir=cache_dir, debug=debug), logger)

    from ...cache.maintenance import validate_cache

    try:
        report = validate_cache(store, prune=prune)
    except CacheStoreError as exc:
        raise _store_failed(logger, exc) from exc

    for entry in report.stale_entries:
        logger.debug(f"stale {entry.table} entry: {entry.key.file_path}")
    if not report.healthy:
        logger.fail(f"Integrity check failed: {report.integrity} (run 'fragmentkit cache repair')")
        raise typer.Exit(code=1)
    message = f"{report.total_entries} entries checked, {len(report.stale_entries)} stale"
    if prune:
        message += f", {report.pruned} pruned"
    if report.stale_entries and not prune:
        logger.warn(message)
    else:
        logger.ok(message)


@cache_app.command("stats")
def stats_command(
    cache_dir: CACHE_DIR_OPTION = None,
    debug: DEBUG_OPTION = False,
    emoji: EMOJI_OPTION = True,
) -> None:
    """Show where the cache lives and how much it holds."""

    logger = build_cli_logger(emoji=emoji, debug=debug)
    store = _open_store(_settings(logger, cache_dir=cache_dir, debug=debug), logger)
    try:
        statistics = store.statistics()
    except CacheStoreError as exc:
        raise _store_failed(logger, exc) from exc

    table = Table(title="Fragment cache", show_header=False)
    table.add_column("Field", style="bold")
    table.add_column("Value")
    table.add_row("Path", str(statistics.path))
    table.add_row("Size", f"{statistics.size_bytes} bytes")
    table.add_row("Content entries", str(statistics.content_entries))
    table.add_row("AST entries", str(statistics.ast_entries))
    logger.console.print(table)


@cache_app.command("optimize")
def optimize_command(
    cache_dir: CACHE_DIR_OPTION = None,
    debug: DEBUG_OPTION = False,
    emoji: EMOJI_OPTION = True,
) -> None:
    """Refresh planner statistics and compact the cache database."""

    logger = build_cli_logger(emoji=emoji, debug=debug)
    store = _open_store(_settings(logger, cache_dir=cache_dir, debug=debug), logger)
    try:
        before = store.statistics().size_bytes
        store.optimize()
        after = store.statistics().size_bytes
    except CacheStoreError as exc:
        raise _store_failed(logger, exc) from exc
    logger.ok(f"Optimized {store.path} ({before} -> {after} bytes)")


@cache_app.command("backup")
def backup_command(
    destination: Annotated[
        Path,
        typer.Option("--to", help="Backup file, or a directory to place it in."),
    ],
    cache_dir: CACHE_DIR_OPTION = None,
    debug: DEBUG_OPTION = False,
    emoji: EMOJI_OPTION = True,
) -> None:
    """Copy the cache database to another file while it stays in use."""

    logger = build_cli_logger(emoji=emoji, debug=debug)
    store = _open_store(_settings(logger, cache_dir=cache_dir, debug=debug), logger)
    try:
        target = store.backup(destination)
    except CacheStoreError as exc:
        raise _store_failed(logger, exc) from exc
    logger.ok(f"Backed up {store.path} to {target}")


@cache_app.command("repair")
def repair_command(
    cache_dir: CACHE_DIR_OPTION = None,
    debug: DEBUG_OPTION = False,
    emoji: EMOJI_OPTION = True,
) -> None:
    """Rebuild the cache database when it fails its integrity check."""

    logger = build_cli_logger(emoji=emoji, debug=debug)
    store = _open_store(_settings(logger, cache_dir=cache_dir, debug=debug), logger)
    try:
        result = store.repair()
    except CacheStoreError as exc:
        raise _store_failed(logger, exc) from exc
    if result.rebuilt:
        logger.warn(f"Rebuilt empty cache database at {store.path} (was: {result.integrity})")
    else:
        logger.ok(f"Cache database {store.path} is healthy; nothing to repair")


def register(app: SortedTyper) -> None:
    """Register the ``cache`` command group on ``app``."""

    app.add_typer(cache_app, name="cache")


__all__ = ["cache_app", "register"]
