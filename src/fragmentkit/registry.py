# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.

"""Map exposed command names to the fragment that defines them."""

from __future__ import annotations

import logging
from collections.abc import Iterator
from dataclasses import dataclass

from .fragments.models import CommandType

LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class CommandRegistryEntry:
    """Record which fragment provides a command.

    Attributes:
        command_name: Name the command is invoked by.
        fragment_name: Fragment that defines the command.
        command_type: Whether the command is a function or an alias.
    """

    command_name: str
    fragment_name: str
    command_type: CommandType


class CommandRegistry:
    """Provide lookups from command names to their owning fragments.

    A later registration of the same command replaces the earlier one, just
    as a later shell definition shadows an earlier one.
    """

    def __init__(self) -> None:
        self._entries: dict[str, CommandRegistryEntry] = {}

    def register(
        self,
        command_name: str,
        fragment_name: str,
        command_type: CommandType = CommandType.FUNCTION,
    ) -> CommandRegistryEntry:
        """Record that ``fragment_name`` defines ``command_name``.

        Args:
            command_name: Name the command is invoked by.
            fragment_name: Fragment providing the command.
            command_type: Kind of command being registered.

        Returns:
            CommandRegistryEntry: The stored entry.
        """

        entry = CommandRegistryEntry(command_name, fragment_name, command_type)
        previous = self._entries.get(command_name)
        if previous is not None and previous.fragment_name != fragment_name:
            LOGGER.debug(
                "command=%s redefined by fragment=%s (was %s)",
                command_name,
                fragment_name,
                previous.fragment_name,
            )
        self._entries[command_name] = entry
        return entry

    def lookup(self, command_name: str) -> str | None:
        """Return the fragment defining ``command_name``, or ``None``."""

        entry = self._entries.get(command_name)
        return entry.fragment_name if entry is not None else None

    def contains(self, command_name: str) -> bool:
        """Return whether ``command_name`` has been registered."""

        return command_name in self._entries

    def entry(self, command_name: str) -> CommandRegistryEntry | None:
        """Return the full registry entry for ``command_name``."""

        return self._entries.get(command_name)

    def commands_for(self, fragment_name: str) -> tuple[str, ...]:
        """Return the sorted command names registered by ``fragment_name``."""

        return tuple(sorted(name for name, entry in self._entries.items() if entry.fragment_name == fragment_name))

    def clear(self) -> None:
        """Forget every registered command."""

        self._entries.clear()

    def __contains__(self, command_name: object) -> bool:
        return command_name in self._entries

    def __iter__(self) -> Iterator[CommandRegistryEntry]:
        return iter(sorted(self._entries.values(), key=lambda item: item.command_name))

    def __len__(self) -> int:
        return len(self._entries)


__all__ = ["CommandRegistry", "CommandRegistryEntry"]
