# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.

"""CLI command reporting which fragment provides a command."""

from __future__ import annotations

from typing import Annotated

import typer

from ...loader import FragmentLoader
from ...session import ProfileSession
from ...startup import plan_profile
from ..shared import (
    CACHE_DIR_OPTION,
    DEBUG_OPTION,
    DEFAULT_STORE_ROOT,
    EMOJI_OPTION,
    ENVIRONMENT_OPTION,
    MODE_OPTION,
    ROOT_OPTION,
    CLIError,
    build_cli_logger,
    build_settings,
)
from ..typer_ext import SortedTyper


def which_command(
    command: Annotated[str, typer.Argument(help="Command name to look up.")],
    root: ROOT_OPTION = DEFAULT_STORE_ROOT,
    environment: ENVIRONMENT_OPTION = None,
    mode: MODE_OPTION = None,
    cache_dir: CACHE_DIR_OPTION = None,
    load: Annotated[
        bool,
        typer.Option("--load", help="Load the owning fragment and its dependencies on demand."),
    ] = False,
    debug: DEBUG_OPTION = False,
    emoji: EMOJI_OPTION = True,
) -> None:
    """Print the fragment that defines ``command``."""

    logger = build_cli_logger(emoji=emoji, debug=debug)
    try:
        settings = build_settings(environment=environment, mode=mode, cache_dir=cache_dir, debug=debug)
    except CLIError as exc:
        logger.fail(str(exc))
        raise typer.Exit(code=exc.exit_code) from exc

    session = ProfileSession.create(settings)
    _, plan, _ = plan_profile(root, settings)
    loader = FragmentLoader(session)
    loader.index_commands(plan)

    entry = session.registry.entry(command)
    if entry is None:
        logger.fail(f"No fragment defines '{command}'")
        raise typer.Exit(code=1)

    if load:
        result = loader.load_fragment_for_command(command)
        if result is not None and result.error is not None:
            logger.fail(f"Fragment '{result.name}' failed to load: {result.error.message}")
            raise typer.Exit(code=1)
        entry = session.registry.entry(command) or entry
        logger.debug(f"loaded fragments: {', '.join(sorted(session.tracker.loaded))}")

    logger.echo(f"{entry.command_name}: {entry.fragment_name} ({entry.command_type.value})")


def register(app: SortedTyper) -> None:
    """Register the ``which`` command on ``app``."""

    app.command("which", help="Show which fragment provides a command.")(which_command)


__all__ = ["register", "which_command"]
