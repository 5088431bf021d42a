# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.

"""CLI command that loads a fragment store and reports per-fragment outcomes."""

from __future__ import annotations

from typing import Annotated

import typer
from rich.table import Table

from ...loader import LoadReport
from ...startup import StartupResult, start_profile, startup_warnings
from ..shared import (
    CACHE_DIR_OPTION,
    DEBUG_OPTION,
    DEFAULT_STORE_ROOT,
    EMOJI_OPTION,
    ENVIRONMENT_OPTION,
    MODE_OPTION,
    ROOT_OPTION,
    CLIError,
    CLILogger,
    build_cli_logger,
    build_settings,
)
from ..typer_ext import SortedTyper


def _report_table(report: LoadReport) -> Table:
    table = Table(title="Fragments", show_lines=False)
    table.add_column("Fragment", style="bold")
    table.add_column("Status")
    table.add_column("Commands")
    table.add_column("ms", justify="right")
    for result in report.results:
        table.add_row(
            result.name,
            result.status.value,
            ", ".join(result.commands),
            f"{result.duration_ms:.1f}",
        )
    for name in report.deferred:
        table.add_row(name, "deferred", "", "")
    return table


def _emit_result(result: StartupResult, logger: CLILogger) -> None:
    for message in startup_warnings(result):
        logger.warn(message)
    logger.console.print(_report_table(result.report))
    summary = (
        f"Loaded {len(result.report.loaded)} of {result.discovered} fragments "
        f"({result.prewarm.total} cache entries pre-warmed) in {result.duration_ms:.1f} ms"
    )
    if result.report.ok:
        logger.ok(summary)
    else:
        logger.warn(summary)


def load_command(
    root: ROOT_OPTION = DEFAULT_STORE_ROOT,
    environment: ENVIRONMENT_OPTION = None,
    mode: MODE_OPTION = None,
    cache_dir: CACHE_DIR_OPTION = None,
    lazy: Annotated[bool, typer.Option("--lazy", help="Defer fragments that expose commands.")] = False,
    strict: Annotated[
        bool,
        typer.Option("--strict", help="Exit non-zero when a fragment fails or a cycle is found."),
    ] = False,
    debug: DEBUG_OPTION = False,
    emoji: EMOJI_OPTION = True,
) -> None:
    """Load every fragment in the store and summarise the outcome."""

    logger = build_cli_logger(emoji=emoji, debug=debug)
    try:
        settings = build_settings(
            environment=environment,
            mode=mode,
            cache_dir=cache_dir,
            debug=debug,
            lazy=True if lazy else None,
        )
    except CLIError as exc:
        logger.fail(str(exc))
        raise typer.Exit(code=exc.exit_code) from exc

    if not root.is_dir():
        logger.fail(f"Fragment store {root} does not exist")
        raise typer.Exit(code=1)

    result = start_profile(root, settings=settings)
    _emit_result(result, logger)
    if strict and not result.report.ok:
        raise typer.Exit(code=1)


def register(app: SortedTyper) -> None:
    """Register the ``load`` command on ``app``.

    Args:
        app: Typer application receiving the command.
    """

    app.command("load", help="Load the fragment store and report the outcome.")(load_command)


__all__ = ["load_command", "register"]
