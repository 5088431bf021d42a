# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.

"""Fragment models, discovery and parsing helpers."""

from __future__ import annotations

from .discovery import discover_fragments, load_fragment, parse_fragment_header, split_fragment_stem
from .models import (
    CommandType,
    DependencyWarning,
    Fragment,
    FragmentStatus,
    LoadPlan,
    ParsingMode,
)
from .parsing import extract_function_names

__all__ = [
    "CommandType",
    "DependencyWarning",
    "Fragment",
    "FragmentStatus",
    "LoadPlan",
    "ParsingMode",
    "discover_fragments",
    "extract_function_names",
    "load_fragment",
    "parse_fragment_header",
    "split_fragment_stem",
]
