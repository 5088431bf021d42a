# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Shared Rich consoles for user-facing fragmentkit output."""

from __future__ import annotations

import sys
from functools import lru_cache
from typing import NamedTuple

from rich.console import Console


def detect_tty() -> bool:
    """Return whether stdout is attached to a terminal."""

    isatty = getattr(sys.stdout, "isatty", None)
    if isatty is None:
        return False
    try:
        return bool(isatty())
    except ValueError:
        # closed stream
        return False


class ConsoleProfile(NamedTuple):
    """Presentation flags a console is built for."""

    color: bool
    emoji: bool
    tty: bool


class RichConsoleManager:
    """Hand out one :class:`Console` per :class:`ConsoleProfile`.

    Consoles are not bound to a stream; Rich resolves ``sys.stdout`` on every
    write, so output follows stdout redirection (including test runners).
    """

    def __init__(self) -> None:
        self._consoles: dict[ConsoleProfile, Console] = {}

    def get(self, *, color: bool, emoji: bool) -> Console:
        """Return the console for ``color`` and ``emoji`` on the current stdout.

        Args:
            color: Whether ANSI styling is wanted; ignored when stdout is not a tty.
            emoji: Whether Rich should render ``:emoji:`` codes.

        Returns:
            Console: Cached console for the resulting profile.
        """

        profile = ConsoleProfile(color=color, emoji=emoji, tty=detect_tty())
        console = self._consoles.get(profile)
        if console is None:
            styled = profile.color and profile.tty
            console = Console(
                color_system="auto" if styled else None,
                force_terminal=profile.tty,
                no_color=not styled,
                emoji=profile.emoji,
                soft_wrap=True,
            )
            self._consoles[profile] = console
        return console


@lru_cache(maxsize=1)
def get_console_manager() -> RichConsoleManager:
    """Return the process-wide :class:`RichConsoleManager`."""

    return RichConsoleManager()


__all__ = ["ConsoleProfile", "RichConsoleManager", "detect_tty", "get_console_manager"]
