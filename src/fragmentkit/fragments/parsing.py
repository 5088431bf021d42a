# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.

"""Extract the names of commands a fragment defines without executing it."""

from __future__ import annotations

import ast
import re
from typing import Final

from .models import ParsingMode

_DEF_RE: Final[re.Pattern[str]] = re.compile(r"^(?:async\s+)?def\s+(?P<name>[A-Za-z_]\w*)\s*\(", re.MULTILINE)


def _dedupe(names: list[str]) -> tuple[str, ...]:
    return tuple(dict.fromkeys(names))


def _names_from_ast(source: str, filename: str) -> tuple[str, ...]:
    """Return top-level function names found by parsing ``source``.

    Raises:
        SyntaxError: If ``source`` is not valid Python.
    """

    tree = ast.parse(source, filename=filename)
    names = [
        node.name for node in tree.body if isinstance(node, (ast.FunctionDef, ast.AsyncFunctionDef))
    ]
    return _dedupe(names)


def _names_from_regex(source: str) -> tuple[str, ...]:
    return _dedupe([match.group("name") for match in _DEF_RE.finditer(source)])


def extract_function_names(source: str, mode: ParsingMode, *, filename: str = "<fragment>") -> tuple[str, ...]:
    """Return the ordered, de-duplicated function names defined by ``source``.

    Args:
        source: Fragment source text.
        mode: Parsing strategy. ``AST`` is exact but rejects invalid source;
            ``REGEX`` only inspects unindented ``def`` lines and never fails.
        filename: Name reported in syntax errors.

    Returns:
        tuple[str, ...]: Function names in definition order.

    Raises:
        SyntaxError: If ``mode`` is ``AST`` and ``source`` cannot be parsed.
    """

    if mode is ParsingMode.AST:
        return _names_from_ast(source, filename)
    return _names_from_regex(source)


__all__ = ["extract_function_names"]
