# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.

"""Execute planned fragments once each, isolating per-fragment failures."""

from __future__ import annotations

import functools
import inspect
import logging
import time
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from .cache.keys import CacheKey
from .errors import CycleError, FragmentExecutionError
from .fragments.models import CommandType, DependencyWarning, Fragment, FragmentStatus, LoadPlan
from .fragments.parsing import extract_function_names
from .session import ProfileSession

LOGGER = logging.getLogger(__name__)


class LoadStatus(str, Enum):
    """Enumerate per-fragment outcomes recorded in a :class:`LoadReport`."""

    LOADED = "loaded"
    FAILED = "failed"
    SKIPPED = "skipped"


@dataclass(frozen=True, slots=True)
class FragmentResult:
    """Outcome of one attempt to load one fragment.

    Attributes:
        name: Fragment name.
        status: Loaded, failed, or skipped because it already ran.
        error: Failure captured while parsing or executing the fragment.
        commands: Commands the fragment registered.
        duration_ms: Wall time spent loading the fragment.
    """

    name: str
    status: LoadStatus
    error: FragmentExecutionError | None = None
    commands: tuple[str, ...] = ()
    duration_ms: float = 0.0


@dataclass(slots=True)
class LoadReport:
    """Collect per-fragment results and plan-level diagnostics.

    Attributes:
        results: Results in execution order.
        warnings: Unsatisfied dependency declarations carried over from the plan.
        cycle_error: Cycle excluded from the plan, if any.
        deferred: Fragments left unloaded for on-demand loading.
    """

    results: list[FragmentResult] = field(default_factory=list)
    warnings: tuple[DependencyWarning, ...] = ()
    cycle_error: CycleError | None = None
    deferred: tuple[str, ...] = ()

    def _names_with(self, status: LoadStatus) -> tuple[str, ...]:
        return tuple(result.name for result in self.results if result.status is status)

    @property
    def loaded(self) -> tuple[str, ...]:
        """Return names of fragments that loaded successfully."""

        return self._names_with(LoadStatus.LOADED)

    @property
    def failed(self) -> tuple[str, ...]:
        """Return names of fragments that failed."""

        return self._names_with(LoadStatus.FAILED)

    @property
    def skipped(self) -> tuple[str, ...]:
        """Return names of fragments skipped because they had already run."""

        return self._names_with(LoadStatus.SKIPPED)

    @property
    def ok(self) -> bool:
        """Return ``True`` when nothing failed and no cycle was excluded."""

        return not self.failed and self.cycle_error is None

    def result_for(self, name: str) -> FragmentResult | None:
        """Return the most recent result recorded for ``name``."""

        for result in reversed(self.results):
            if result.name == name:
                return result
        return None


def _describe(exc: BaseException) -> str:
    if isinstance(exc, SyntaxError):
        location = f" (line {exc.lineno})" if exc.lineno else ""
        return f"SyntaxError: {exc.msg}{location}"
    text = str(exc)
    return f"{type(exc).__name__}: {text}" if text else type(exc).__name__


class FragmentLoader:
    """Drive fragment execution for one :class:`ProfileSession`.

    Every fragment passes the session's idempotency tracker before it runs and
    is marked ``LOADING`` before its body executes, so a fragment that
    re-enters the loader cannot execute twice.
    """

    def __init__(self, session: ProfileSession) -> None:
        self._session = session
        self._fragments: dict[str, Fragment] = {}
        self._order: list[str] = []

    @property
    def session(self) -> ProfileSession:
        """Return the session this loader executes into."""

        return self._session

    def _remember(self, plan: LoadPlan) -> None:
        for fragment in plan.fragments:
            if fragment.name not in self._fragments:
                self._order.append(fragment.name)
            self._fragments[fragment.name] = fragment

    # Eager path -----------------------------------------------------------------

    def load_all(self, plan: LoadPlan | None) -> LoadReport:
        """Load every fragment of ``plan`` in order.

        No exception raised by a fragment escapes; failures are recorded in the
        returned report and loading continues with the next fragment.

        Args:
            plan: Load plan produced by the dependency resolver.

        Returns:
            LoadReport: Per-fragment results plus the plan's diagnostics.

        Raises:
            TypeError: If ``plan`` is ``None``.
        """

        if plan is None:
            raise TypeError("load_all() requires a LoadPlan, not None")
        self._remember(plan)
        report = LoadReport(warnings=plan.warnings, cycle_error=plan.cycle_error)
        for fragment in plan.fragments:
            report.results.append(self.load_fragment(fragment))
        LOGGER.debug(
            "load complete loaded=%d failed=%d skipped=%d",
            len(report.loaded),
            len(report.failed),
            len(report.skipped),
        )
        return report

    def load_deferred(self, plan: LoadPlan) -> LoadReport:
        """Load ``plan`` eagerly except fragments only needed for their commands.

        Fragments that expose commands are deferred unless an eagerly loaded
        fragment depends on them; deferred fragments load on first use through
        :meth:`load_fragment_for_command`.

        Args:
            plan: Load plan produced by the dependency resolver.

        Returns:
            LoadReport: Results for the eager fragments, with ``deferred`` set.
        """

        indexed = self.index_commands(plan)
        deferred = {name for name, commands in indexed.items() if commands}
        for fragment in plan.fragments:
            if fragment.name not in deferred:
                deferred.difference_update(self._dependency_closure(fragment))
        eager = LoadPlan(
            fragments=tuple(fragment for fragment in plan.fragments if fragment.name not in deferred),
            warnings=plan.warnings,
            cycle_error=plan.cycle_error,
            excluded=plan.excluded,
        )
        report = self.load_all(eager)
        report.deferred = tuple(name for name in plan.names if name in deferred)
        return report

    # Single fragment path --------------------------------------------------------

    def load_fragment(self, fragment: Fragment) -> FragmentResult:
        """Load ``fragment`` unless it already ran in this session.

        Args:
            fragment: Fragment to execute.

        Returns:
            FragmentResult: ``SKIPPED`` when the tracker refuses the load,
            otherwise ``LOADED`` or ``FAILED``.
        """

        self._fragments.setdefault(fragment.name, fragment)
        if not self._session.tracker.try_begin_load(fragment.name):
            LOGGER.debug("skipping fragment=%s reason=already-loaded", fragment.name)
            return FragmentResult(name=fragment.name, status=LoadStatus.SKIPPED)

        fragment.status = FragmentStatus.LOADING
        started = time.perf_counter()
        error, commands = self._execute(fragment)
        duration_ms = (time.perf_counter() - started) * 1000
        if error is None:
            fragment.status = FragmentStatus.LOADED
            LOGGER.debug("loaded fragment=%s commands=%d elapsed_ms=%.1f", fragment.name, len(commands), duration_ms)
            return FragmentResult(fragment.name, LoadStatus.LOADED, commands=commands, duration_ms=duration_ms)
        fragment.status = FragmentStatus.FAILED
        LOGGER.warning("fragment %s failed: %s", fragment.name, error.message)
        return FragmentResult(fragment.name, LoadStatus.FAILED, error=error, commands=commands, duration_ms=duration_ms)

    def _execute(self, fragment: Fragment) -> tuple[FragmentExecutionError | None, tuple[str, ...]]:
        """Run ``fragment`` and return its failure, if any, with its commands."""

        namespace = self._session.namespace
        key = CacheKey.for_fragment(fragment, self._session.settings.parsing_mode)
        before = dict(namespace)
        error: FragmentExecutionError | None = None
        try:
            source = self._source(fragment, key)
            # fills the AST cache that index_commands and later lazy sessions read
            self._function_names(fragment, key, source)
            code = compile(source, str(fragment.path), "exec")
            namespace["__file__"] = str(fragment.path)
            exec(code, namespace)  # noqa: S102 - fragment bodies run in the session namespace
        except (Exception, SystemExit) as exc:  # noqa: BLE001 - recorded on the FragmentResult
            error = FragmentExecutionError(fragment.name, _describe(exc))
        finally:
            namespace.pop("__file__", None)
        return error, self._register_commands(fragment, before)

    def _source(self, fragment: Fragment, key: CacheKey) -> str:
        cache = self._session.cache
        source = cache.get_content(key)
        if source is None:
            source = fragment.path.read_text(encoding="utf-8")
            cache.set_content(key, source)
        return source

    def _function_names(self, fragment: Fragment, key: CacheKey, source: str) -> tuple[str, ...]:
        cache = self._session.cache
        names = cache.get_ast(key)
        if names is None:
            names = extract_function_names(source, key.parsing_mode, filename=str(fragment.path))
            cache.set_ast(key, names)
        return names

    def _register_commands(self, fragment: Fragment, before: Mapping[str, Any]) -> tuple[str, ...]:
        """Record the public callables ``fragment`` bound in the namespace."""

        namespace = self._session.namespace
        module_name = namespace.get("__name__")
        registered: list[str] = []
        for name, value in namespace.items():
            if name.startswith("_") or (name in before and before[name] is value):
                continue
            command_type = _command_type(name, value, module_name)
            if command_type is None:
                continue
            self._session.registry.register(name, fragment.name, command_type)
            registered.append(name)
        return tuple(registered)

    # On-demand path --------------------------------------------------------------

    def index_commands(self, plan: LoadPlan) -> dict[str, tuple[str, ...]]:
        """Register the functions each planned fragment defines without running it.

        Fragments that cannot be read or parsed are logged and indexed with no
        commands; their failure surfaces when they are actually loaded.

        Args:
            plan: Load plan whose fragments should be indexed.

        Returns:
            dict[str, tuple[str, ...]]: Function names keyed by fragment name.
        """

        self._remember(plan)
        registry = self._session.registry
        indexed: dict[str, tuple[str, ...]] = {}
        for fragment in plan.fragments:
            key = CacheKey.for_fragment(fragment, self._session.settings.parsing_mode)
            try:
                names = self._function_names(fragment, key, self._source(fragment, key))
            except (OSError, UnicodeDecodeError, SyntaxError, ValueError) as exc:
                LOGGER.debug("unable to index fragment=%s: %s", fragment.name, exc)
                names = ()
            for name in names:
                if not name.startswith("_"):
                    registry.register(name, fragment.name, CommandType.FUNCTION)
            indexed[fragment.name] = names
        return indexed

    def _dependency_closure(self, fragment: Fragment) -> set[str]:
        closure: set[str] = set()
        pending = list(fragment.declared_dependencies)
        while pending:
            name = pending.pop()
            if name in closure or name not in self._fragments:
                continue
            closure.add(name)
            pending.extend(self._fragments[name].declared_dependencies)
        closure.discard(fragment.name)
        return closure

    def load_fragment_for_command(self, command_name: str) -> FragmentResult | None:
        """Load the fragment defining ``command_name`` if it has not loaded yet.

        Unloaded dependencies of the owning fragment load first, in plan order.

        Args:
            command_name: Command the caller needs.

        Returns:
            FragmentResult | None: Result of loading the owning fragment, or
            ``None`` when the command is unknown or its fragment already ran.
        """

        fragment_name = self._session.registry.lookup(command_name)
        if fragment_name is None:
            return None
        fragment = self._fragments.get(fragment_name)
        if fragment is None:
            LOGGER.debug("command=%s owned by unknown fragment=%s", command_name, fragment_name)
            return None
        if fragment.status is not FragmentStatus.UNLOADED:
            return None
        closure = self._dependency_closure(fragment)
        for name in self._order:
            dependency = self._fragments[name]
            if name in closure and dependency.status is FragmentStatus.UNLOADED:
                self.load_fragment(dependency)
        LOGGER.debug("on-demand load fragment=%s for command=%s", fragment.name, command_name)
        return self.load_fragment(fragment)

    def resolve_command(self, command_name: str) -> Callable[..., Any] | None:
        """Return the callable bound to ``command_name``, loading it on demand.

        Args:
            command_name: Command the caller needs.

        Returns:
            Callable[..., Any] | None: Bound callable, or ``None`` when no
            loaded fragment defines it.
        """

        value = self._session.namespace.get(command_name)
        if not callable(value):
            self.load_fragment_for_command(command_name)
            value = self._session.namespace.get(command_name)
        return value if callable(value) else None


def _command_type(name: str, value: object, module_name: object) -> CommandType | None:
    """Classify a namespace binding as a command, or ``None`` for non-commands.

    Functions defined by fragments are commands; imported callables are not.
    """

    if isinstance(value, functools.partial):
        return CommandType.ALIAS
    if not inspect.isfunction(value) or value.__module__ != module_name:
        return None
    return CommandType.FUNCTION if value.__name__ == name else CommandType.ALIAS


__all__ = ["FragmentLoader", "FragmentResult", "LoadReport", "LoadStatus"]
