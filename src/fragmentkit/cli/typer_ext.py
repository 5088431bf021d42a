# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Typer application and command classes that list options alphabetically."""

from __future__ import annotations

from collections.abc import Callable, Sequence
from typing import Any, TypeVar

import typer
from click.core import Context, Parameter
from click.formatting import HelpFormatter
from typer.core import TyperCommand, TyperGroup

HelpRecord = tuple[str, str]
CommandCallback = TypeVar("CommandCallback", bound=Callable[..., Any])


def _sort_token(param: Parameter) -> str:
    """Return the lower-cased long flag (or first flag) naming ``param``."""

    flags: Sequence[str] = [*getattr(param, "opts", ()), *getattr(param, "secondary_opts", ())]
    preferred = next((flag for flag in flags if flag.startswith("--")), None)
    if preferred is None:
        preferred = flags[0] if flags else (param.name or "")
    return preferred.lstrip("-").lower()


def split_help_records(ctx: Context, params: Sequence[Parameter]) -> tuple[list[HelpRecord], list[HelpRecord]]:
    """Return argument records in declaration order and option records sorted by flag.

    Args:
        ctx: Click context of the command being documented.
        params: Parameters declared by the command.

    Returns:
        tuple[list[HelpRecord], list[HelpRecord]]: Argument and option help rows.
    """

    arguments: list[HelpRecord] = []
    keyed_options: list[tuple[str, int, HelpRecord]] = []
    for position, param in enumerate(params):
        record = param.get_help_record(ctx)
        if record is None:
            continue
        if param.param_type_name == "argument":
            arguments.append(record)
        else:
            keyed_options.append((_sort_token(param), position, record))
    keyed_options.sort(key=lambda item: (item[0], item[1]))
    return arguments, [record for _, _, record in keyed_options]


class SortedTyperCommand(TyperCommand):
    """Command whose ``--help`` lists options alphabetically."""

    def format_options(self, ctx: Context, formatter: HelpFormatter) -> None:
        arguments, options = split_help_records(ctx, self.get_params(ctx))
        for title, records in (("Arguments", arguments), ("Options", options)):
            if records:
                with formatter.section(title):
                    formatter.write_dl(records)


class SortedTyperGroup(TyperGroup):
    """Group that builds :class:`SortedTyperCommand` children."""

    command_class = SortedTyperCommand


class SortedTyper(typer.Typer):
    """Typer application defaulting to sorted groups and commands."""

    def __init__(self, *args: Any, cls: type[TyperGroup] | None = None, **kwargs: Any) -> None:
        super().__init__(*args, cls=cls or SortedTyperGroup, **kwargs)

    def command(
        self,
        name: str | None = None,
        *,
        cls: type[TyperCommand] | None = None,
        **kwargs: Any,
    ) -> Callable[[CommandCallback], CommandCallback]:
        """Register a command, defaulting ``cls`` to :class:`SortedTyperCommand`."""

        return super().command(name, cls=cls or SortedTyperCommand, **kwargs)


def create_typer(**kwargs: Any) -> SortedTyper:
    """Return a :class:`SortedTyper` built with ``kwargs``."""

    return SortedTyper(**kwargs)


__all__ = ["SortedTyper", "SortedTyperCommand", "SortedTyperGroup", "create_typer", "split_help_records"]
