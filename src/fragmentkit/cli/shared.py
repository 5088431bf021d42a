# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.

"""Shared utilities for CLI commands (logging, errors, option types)."""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass
from pathlib import Path
from typing import Annotated, Final

import typer
from rich.console import Console
from rich.text import Text

from ..fragments.models import ParsingMode
from ..logging import fail as core_fail
from ..logging import ok as core_ok
from ..logging import warn as core_warn
from ..settings import ProfileSettings, resolve_settings

DEFAULT_STORE_ROOT: Final[Path] = Path("profile.d")


class CLIError(RuntimeError):
    """Error raised when a CLI command fails and should exit with a status code."""

    def __init__(self, message: str, *, exit_code: int = 1) -> None:
        """Initialise the error with a message and exit code.

        Args:
            message: Human-readable error message shown to the user.
            exit_code: Exit status associated with the failure.
        """

        super().__init__(message)
        self.exit_code = exit_code


@dataclass(slots=True)
class CLILogger:
    """Adapter around project logging helpers respecting CLI emoji settings."""

    console: Console
    use_emoji: bool
    debug_enabled: bool = False

    def fail(self, message: str) -> None:
        """Log a failure message honouring emoji preferences."""

        core_fail(message, use_emoji=self.use_emoji)

    def warn(self, message: str) -> None:
        """Log a warning message honouring emoji preferences."""

        core_warn(message, use_emoji=self.use_emoji)

    def ok(self, message: str) -> None:
        """Log a success message honouring emoji preferences."""

        core_ok(message, use_emoji=self.use_emoji)

    def echo(self, message: str) -> None:
        """Write ``message`` to stdout using Typer's echo helper."""

        typer.echo(message)

    def debug(self, message: str) -> None:
        """Emit a debug message when debug logging is enabled."""

        if self.debug_enabled:
            self.console.print(Text("[debug] ", style="bold cyan") + Text(message, style="dim"))


def build_cli_logger(*, emoji: bool, debug: bool = False, no_color: bool = False) -> CLILogger:
    """Return a ``CLILogger`` configured for the provided emoji preference.

    Args:
        emoji: Whether log output may include emoji glyphs.
        debug: Whether debug logging should be enabled.
        no_color: Whether terminal colour output should be disabled.

    Returns:
        CLILogger: Logger instance bound to a dedicated Rich console.
    """

    console = Console(no_color=no_color, highlight=False)
    return CLILogger(console=console, use_emoji=emoji, debug_enabled=debug)


def build_settings(
    *,
    environment: str | None = None,
    mode: str | None = None,
    cache_dir: Path | None = None,
    debug: bool = False,
    lazy: bool | None = None,
) -> ProfileSettings:
    """Return environment-derived settings with CLI overrides applied.

    Args:
        environment: Named environment overriding ``FRAGMENTKIT_ENVIRONMENT``.
        mode: Parsing mode token overriding ``FRAGMENTKIT_PARSING_MODE``.
        cache_dir: Cache directory overriding ``FRAGMENTKIT_CACHE_DIR``.
        debug: Force diagnostic tracing on.
        lazy: Override on-demand loading when not ``None``.

    Returns:
        ProfileSettings: Effective settings.

    Raises:
        CLIError: If ``mode`` is not a recognised parsing mode.
    """

    settings = resolve_settings()
    overrides: dict[str, object] = {}
    if environment:
        overrides["environment"] = environment
    if mode:
        parsing_mode = ParsingMode.from_raw(mode)
        if parsing_mode is None:
            raise CLIError(f"Unsupported parsing mode '{mode}' (expected 'ast' or 'regex')", exit_code=2)
        overrides["parsing_mode"] = parsing_mode
    if cache_dir is not None:
        overrides["cache_dir"] = cache_dir.expanduser()
    if debug:
        overrides["debug"] = True
    if lazy is not None:
        overrides["lazy"] = lazy
    return dataclasses.replace(settings, **overrides) if overrides else settings


ROOT_OPTION = Annotated[
    Path,
    typer.Option("--root", "-r", help="Fragment store directory.", file_okay=False),
]
ENVIRONMENT_OPTION = Annotated[
    str | None,
    typer.Option("--environment", "-e", help="Named fragment environment to activate."),
]
MODE_OPTION = Annotated[
    str | None,
    typer.Option("--mode", help="Command parsing mode: 'ast' or 'regex'."),
]
CACHE_DIR_OPTION = Annotated[
    Path | None,
    typer.Option("--cache-dir", help="Directory holding the persistent cache database."),
]
DEBUG_OPTION = Annotated[
    bool,
    typer.Option("--debug", help="Trace resolver, loader and cache decisions to stderr."),
]
EMOJI_OPTION = Annotated[
    bool,
    typer.Option("--emoji/--no-emoji", help="Toggle emoji output."),
]

__all__ = [
    "CACHE_DIR_OPTION",
    "CLIError",
    "CLILogger",
    "DEBUG_OPTION",
    "DEFAULT_STORE_ROOT",
    "EMOJI_OPTION",
    "ENVIRONMENT_OPTION",
    "MODE_OPTION",
    "ROOT_OPTION",
    "build_cli_logger",
    "build_settings",
]
