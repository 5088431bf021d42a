# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.

"""CLI command printing the resolved load order without executing anything."""

from __future__ import annotations

from typing import Annotated

import typer

from ...logging import configure_diagnostics
from ...startup import plan_profile
from ..shared import (
    DEBUG_OPTION,
    DEFAULT_STORE_ROOT,
    EMOJI_OPTION,
    ENVIRONMENT_OPTION,
    ROOT_OPTION,
    CLIError,
    build_cli_logger,
    build_settings,
)
from ..typer_ext import SortedTyper


def plan_command(
    root: ROOT_OPTION = DEFAULT_STORE_ROOT,
    environment: ENVIRONMENT_OPTION = None,
    strict: Annotated[bool, typer.Option("--strict", help="Exit non-zero when a cycle is found.")] = False,
    debug: DEBUG_OPTION = False,
    emoji: EMOJI_OPTION = True,
) -> None:
    """Print fragments in the order they would load."""

    logger = build_cli_logger(emoji=emoji, debug=debug)
    try:
        settings = build_settings(environment=environment, debug=debug)
    except CLIError as exc:
        logger.fail(str(exc))
        raise typer.Exit(code=exc.exit_code) from exc
    if settings.debug:
        configure_diagnostics(True)

    config, plan, discovered = plan_profile(root, settings)
    if config.error:
        logger.warn(f"Ignoring fragment configuration: {config.error}")

    for position, fragment in enumerate(plan.fragments, start=1):
        requires = ", ".join(sorted(fragment.declared_dependencies))
        suffix = f"  (requires: {requires})" if requires else ""
        logger.echo(f"{position:>3}. {fragment.name}{suffix}")

    if plan.excluded:
        logger.echo(f"Excluded: {', '.join(plan.excluded)}")
    for warning in plan.warnings:
        logger.warn(warning.describe())
    logger.debug(f"{discovered} fragments discovered, {len(plan)} planned")

    if plan.cycle_error is not None:
        logger.fail(f"Not loading fragments in a {plan.cycle_error}")
        if strict:
            raise typer.Exit(code=1)


def register(app: SortedTyper) -> None:
    """Register the ``plan`` command on ``app``."""

    app.command("plan", help="Show the resolved fragment load order.")(plan_command)


__all__ = ["plan_command", "register"]
