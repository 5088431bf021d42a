# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.

"""Tests for fragment execution, isolation and on-demand loading."""

from __future__ import annotations

import sqlite3
from pathlib import Path

import pytest

from fragmentkit.cache import CacheKey
from fragmentkit.cache.store import SqliteFragmentStore
from fragmentkit.fragments.discovery import discover_fragments
from fragmentkit.fragments.models import CommandType, FragmentStatus, ParsingMode
from fragmentkit.loader import FragmentLoader, LoadStatus
from fragmentkit.resolver import resolve_plan
from fragmentkit.session import ProfileSession
from fragmentkit.settings import ProfileSettings

COMMANDS_FRAGMENT = """
import os.path
from functools import partial


def greet(name):
    return f"hi {name}"


def _hidden():
    return None


hello = greet
gs = partial(greet, "git")
join = os.path.join
VALUE = 3
"""


def _loader(store_root: Path, make_session, **session_options):
    session = make_session(**session_options)
    session.namespace["trace"] = []
    plan = resolve_plan(discover_fragments(store_root))
    return FragmentLoader(session), plan


def test_load_all_runs_fragments_in_plan_order(store_root: Path, write_fragment, make_session) -> None:
    write_fragment("30-prompt.py", "trace.append('prompt')", requires=["git"])
    write_fragment("20-git.py", "trace.append('git')", requires=["env"])
    write_fragment("40-env.py", "trace.append('env')")
    loader, plan = _loader(store_root, make_session)

    report = loader.load_all(plan)

    assert loader.session.namespace["trace"] == ["env", "git", "prompt"]
    assert report.loaded == ("env", "git", "prompt")
    assert report.ok
    assert all(fragment.status is FragmentStatus.LOADED for fragment in plan.fragments)


def test_second_pass_skips_everything(store_root: Path, write_fragment, make_session) -> None:
    write_fragment("10-env.py", "trace.append('env')")
    write_fragment("20-git.py", "trace.append('git')")
    loader, plan = _loader(store_root, make_session)

    loader.load_all(plan)
    again = loader.load_all(plan)

    assert again.skipped == ("env", "git")
    assert again.loaded == ()
    assert loader.session.namespace["trace"] == ["env", "git"]


def test_failures_are_isolated(store_root: Path, write_fragment, make_session) -> None:
    write_fragment("10-env.py", "trace.append('env')")
    write_fragment("20-broken.py", "def early():\n    return 1\n\nraise RuntimeError('boom')")
    write_fragment("30-exit.py", "raise SystemExit(3)")
    write_fragment("40-git.py", "trace.append('git')")
    loader, plan = _loader(store_root, make_session)

    report = loader.load_all(plan)

    assert report.loaded == ("env", "git")
    assert report.failed == ("broken", "exit")
    assert not report.ok
    broken = report.result_for("broken")
    assert broken is not None and broken.error is not None
    assert broken.error.message == "RuntimeError: boom"
    assert broken.commands == ("early",)
    assert loader.session.registry.lookup("early") == "broken"
    exited = report.result_for("exit")
    assert exited is not None and exited.error is not None
    assert exited.error.message == "SystemExit: 3"
    assert plan.get("broken").status is FragmentStatus.FAILED
    assert loader.session.namespace["trace"] == ["env", "git"]


def test_failed_fragment_is_not_retried(store_root: Path, write_fragment, make_session) -> None:
    write_fragment("10-broken.py", "trace.append('broken')\nraise ValueError")
    loader, plan = _loader(store_root, make_session)

    loader.load_all(plan)
    again = loader.load_all(plan)

    assert again.skipped == ("broken",)
    assert loader.session.namespace["trace"] == ["broken"]


@pytest.mark.parametrize("mode", [ParsingMode.AST, ParsingMode.REGEX])
def test_syntax_errors_fail_the_fragment_in_both_modes(
    store_root: Path,
    write_fragment,
    make_session,
    mode: ParsingMode,
) -> None:
    write_fragment("10-bad.py", "def broken(:\n    pass")
    write_fragment("20-good.py", "trace.append('good')")
    loader, plan = _loader(store_root, make_session, parsing_mode=mode)

    report = loader.load_all(plan)

    assert report.failed == ("bad",)
    assert report.loaded == ("good",)
    result = report.result_for("bad")
    assert result is not None and result.error is not None
    assert result.error.message.startswith("SyntaxError:")


def test_reentrant_load_is_skipped(store_root: Path, write_fragment, make_session) -> None:
    write_fragment("10-env.py", "trace.append('env')\n_reenter()")
    loader, plan = _loader(store_root, make_session)
    inner = []
    env = plan.get("env")
    loader.session.namespace["_reenter"] = lambda: inner.append(loader.load_fragment(env))

    report = loader.load_all(plan)

    assert report.loaded == ("env",)
    assert [result.status for result in inner] == [LoadStatus.SKIPPED]
    assert loader.session.namespace["trace"] == ["env"]


def test_commands_are_classified(store_root: Path, write_fragment, make_session) -> None:
    write_fragment("10-tools.py", COMMANDS_FRAGMENT)
    loader, plan = _loader(store_root, make_session)

    report = loader.load_all(plan)

    registry = loader.session.registry
    assert report.result_for("tools").commands == ("greet", "hello", "gs")
    assert registry.entry("greet").command_type is CommandType.FUNCTION
    assert registry.entry("hello").command_type is CommandType.ALIAS
    assert registry.entry("gs").command_type is CommandType.ALIAS
    assert "join" not in registry
    assert "_hidden" not in registry
    assert loader.session.namespace["gs"]() == "hi git"


def test_load_all_rejects_none(make_session) -> None:
    with pytest.raises(TypeError):
        FragmentLoader(make_session()).load_all(None)


def test_command_triggers_on_demand_load_with_dependencies(store_root: Path, write_fragment, make_session) -> None:
    write_fragment("10-env.py", "trace.append('env')\nGREETING = 'hello'")
    write_fragment("20-git.py", "trace.append('git')\n\ndef gs():\n    return GREETING", requires=["env"])
    write_fragment("30-other.py", "trace.append('other')")
    loader, plan = _loader(store_root, make_session)

    indexed = loader.index_commands(plan)
    assert indexed["git"] == ("gs",)
    assert loader.session.namespace["trace"] == []

    result = loader.load_fragment_for_command("gs")

    assert result is not None and result.status is LoadStatus.LOADED
    assert result.name == "git"
    assert loader.session.namespace["trace"] == ["env", "git"]
    assert loader.session.tracker.loaded == frozenset({"env", "git"})
    assert loader.load_fragment_for_command("gs") is None
    assert loader.load_fragment_for_command("unknown") is None


def test_resolve_command_returns_callable(store_root: Path, write_fragment, make_session) -> None:
    write_fragment("10-git.py", "def gs():\n    return 'status'")
    loader, plan = _loader(store_root, make_session)
    loader.index_commands(plan)

    command = loader.resolve_command("gs")

    assert command is not None and command() == "status"
    assert loader.resolve_command("missing") is None


def test_deferred_loading_keeps_command_fragments_for_first_use(
    store_root: Path,
    write_fragment,
    make_session,
) -> None:
    write_fragment("10-env.py", "trace.append('env')")
    write_fragment("20-tools.py", "trace.append('tools')\n\ndef tool():\n    return 'ran'")
    write_fragment("30-prompt.py", "trace.append('prompt')\nPROMPT = tool()", requires=["tools"])
    write_fragment("40-git.py", "trace.append('git')\n\ndef gs():\n    return 'status'")
    loader, plan = _loader(store_root, make_session, lazy=True)

    report = loader.load_deferred(plan)

    assert report.loaded == ("env", "tools", "prompt")
    assert report.deferred == ("git",)
    assert loader.session.namespace["PROMPT"] == "ran"
    assert loader.session.registry.lookup("gs") == "git"

    assert loader.resolve_command("gs")() == "status"
    assert loader.session.namespace["trace"] == ["env", "tools", "prompt", "git"]


def test_locked_cache_database_does_not_stall_loading(store_root: Path, cache_dir: Path, write_fragment) -> None:
    for index in range(10):
        write_fragment(f"{index:02d}-frag{index}.py", f"def cmd{index}():\n    return {index}")
    session = ProfileSession.create(ProfileSettings(cache_dir=cache_dir, cache_timeout=0.05))
    store = session.cache.store
    assert isinstance(store, SqliteFragmentStore)
    assert session.cache.is_persistent_store_available()
    plan = resolve_plan(discover_fragments(store_root))

    holder = sqlite3.connect(store.path, isolation_level=None)
    try:
        holder.execute("BEGIN EXCLUSIVE")
        report = FragmentLoader(session).load_all(plan)
    finally:
        holder.rollback()
        holder.close()

    assert len(report.loaded) == 10
    assert session.cache.stats.store_errors == 1
    assert store.counters.writes == 1
    assert not session.cache.is_persistent_store_available()
    assert session.registry.lookup("cmd9") == "frag9"


def test_eager_load_caches_function_names_for_indexing(store_root: Path, write_fragment, make_session) -> None:
    write_fragment("20-git.py", "def gs():\n    return 'status'")
    loader, plan = _loader(store_root, make_session)

    loader.load_all(plan)

    key = CacheKey.for_fragment(plan.fragments[0], ParsingMode.AST)
    assert loader.session.cache.memory.get_ast(key) == ("gs",)
    misses = loader.session.cache.stats.misses
    assert loader.index_commands(plan) == {"git": ("gs",)}
    assert loader.session.cache.stats.misses == misses
