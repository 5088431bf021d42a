# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.

"""CLI command registry."""

from __future__ import annotations

from ..typer_ext import SortedTyper
from . import cache, load, plan, which

__all__ = ["register_commands"]


def register_commands(app: SortedTyper) -> None:
    """Register built-in CLI commands on ``app``.

    Args:
        app: Typer application receiving command registrations.
    """

    load.register(app)
    plan.register(app)
    which.register(app)
    cache.register(app)
