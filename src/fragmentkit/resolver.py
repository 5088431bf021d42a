# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.

"""Turn discovered fragments and their declared dependencies into a load plan."""

from __future__ import annotations

import heapq
import logging
from collections.abc import Collection, Iterator, Mapping, Sequence
from typing import Final

from .errors import CycleError
from .fragments.models import DependencyWarning, Fragment, LoadPlan

LOGGER = logging.getLogger(__name__)

_EMPTY_ENVIRONMENTS: Final[Mapping[str, Collection[str]]] = {}


def _strongly_connected(nodes: Sequence[str], edges: Mapping[str, Sequence[str]]) -> list[list[str]]:
    """Return the strongly connected components of the dependency graph.

    Iterative Tarjan so long dependency chains do not hit the recursion limit.

    Args:
        nodes: Graph nodes in deterministic visiting order.
        edges: Mapping of each node to the nodes it depends on.

    Returns:
        list[list[str]]: Components in reverse topological order.
    """

    index: dict[str, int] = {}
    low: dict[str, int] = {}
    stack: list[str] = []
    on_stack: set[str] = set()
    components: list[list[str]] = []
    counter = 0

    for root in nodes:
        if root in index:
            continue
        index[root] = low[root] = counter
        counter += 1
        stack.append(root)
        on_stack.add(root)
        work: list[tuple[str, Iterator[str]]] = [(root, iter(edges[root]))]
        while work:
            node, children = work[-1]
            descended = False
            for child in children:
                if child not in index:
                    index[child] = low[child] = counter
                    counter += 1
                    stack.append(child)
                    on_stack.add(child)
                    work.append((child, iter(edges[child])))
                    descended = True
                    break
                if child in on_stack:
                    low[node] = min(low[node], index[child])
            if descended:
                continue
            work.pop()
            if work:
                parent = work[-1][0]
                low[parent] = min(low[parent], low[node])
            if low[node] == index[node]:
                component: list[str] = []
                while True:
                    member = stack.pop()
                    on_stack.discard(member)
                    component.append(member)
                    if member == node:
                        break
                components.append(component)
    return components


class DependencyResolver:
    """Compute deterministic, dependency-respecting load plans.

    An edge ``A -> B`` means ``B`` must load before ``A``. Ties between ready
    fragments are broken by order hint so an unchanged fragment set always
    yields the same plan.
    """

    def resolve(
        self,
        fragments: Sequence[Fragment] | None,
        disabled: Collection[str] = frozenset(),
        *,
        environment: str | None = None,
        environments: Mapping[str, Collection[str]] | None = None,
        strict: bool = False,
    ) -> LoadPlan:
        """Return the load plan for ``fragments``.

        Args:
            fragments: Discovered fragments.
            disabled: Names of fragments excluded by configuration.
            environment: Active named environment, ``None`` to load everything.
            environments: Mapping of environment names to their fragment names.
            strict: Raise :class:`CycleError` instead of recording it on the plan.

        Returns:
            LoadPlan: Ordered fragments with dependency warnings and any cycle.

        Raises:
            TypeError: If ``fragments`` is ``None``.
            CycleError: If ``strict`` is set and a dependency cycle exists.
        """

        if fragments is None:
            raise TypeError("resolve() requires a sequence of fragments, not None")

        by_name: dict[str, Fragment] = {}
        for fragment in fragments:
            by_name.setdefault(fragment.name, fragment)

        enabled = {
            name: fragment
            for name, fragment in by_name.items()
            if fragment.enabled and name not in disabled
        }
        selected = self._select_environment(enabled, environment, environments or _EMPTY_ENVIRONMENTS)
        excluded = tuple(sorted(set(by_name) - set(selected)))
        for name in excluded:
            LOGGER.debug("excluding fragment=%s", name)

        ordered_names = [fragment.name for fragment in sorted(selected.values(), key=lambda item: item.sort_key)]
        graph = {
            name: sorted(dep for dep in selected[name].declared_dependencies if dep in selected)
            for name in ordered_names
        }
        cycle_members = self._cycle_members(ordered_names, graph)

        schedulable = [name for name in ordered_names if name not in cycle_members]
        warnings: list[DependencyWarning] = []
        edges: dict[str, list[str]] = {}
        for name in schedulable:
            edges[name] = []
            for dep in sorted(selected[name].declared_dependencies):
                if dep in selected and dep not in cycle_members:
                    edges[name].append(dep)
                    continue
                if dep in cycle_members:
                    reason = "cycle"
                elif dep in by_name:
                    reason = "disabled"
                else:
                    reason = "missing"
                warning = DependencyWarning(fragment=name, dependency=dep, reason=reason)
                LOGGER.warning("unsatisfied dependency: %s", warning.describe())
                warnings.append(warning)

        order = self._kahn(schedulable, edges, selected)
        cycle_error = CycleError(cycle_members) if cycle_members else None
        plan = LoadPlan(
            fragments=tuple(selected[name] for name in order),
            warnings=tuple(warnings),
            cycle_error=cycle_error,
            excluded=excluded,
        )
        if cycle_error is not None:
            LOGGER.warning("%s", cycle_error)
            if strict:
                cycle_error.plan = plan
                raise cycle_error
        LOGGER.debug("load plan: %s", " -> ".join(plan.names) or "<empty>")
        return plan

    @staticmethod
    def _select_environment(
        enabled: Mapping[str, Fragment],
        environment: str | None,
        environments: Mapping[str, Collection[str]],
    ) -> dict[str, Fragment]:
        """Return the enabled fragments selected by ``environment``.

        The selection is the environment's named members plus fragments tagged
        with it, closed over their enabled transitive dependencies.
        """

        if not environment:
            return dict(enabled)

        members = set(environments.get(environment, ()))
        tagged = {name for name, fragment in enabled.items() if environment in fragment.environment_tags}
        if environment not in environments and not tagged:
            LOGGER.warning("unknown environment '%s'; loading all enabled fragments", environment)
            return dict(enabled)

        for name in sorted(members - set(enabled)):
            LOGGER.debug("environment=%s names unavailable fragment=%s", environment, name)

        pending = sorted((members | tagged) & set(enabled), reverse=True)
        selected: set[str] = set()
        while pending:
            name = pending.pop()
            if name in selected:
                continue
            selected.add(name)
            for dep in sorted(enabled[name].declared_dependencies, reverse=True):
                if dep in enabled and dep not in selected:
                    pending.append(dep)
        return {name: fragment for name, fragment in enabled.items() if name in selected}

    @staticmethod
    def _cycle_members(nodes: Sequence[str], graph: Mapping[str, Sequence[str]]) -> set[str]:
        members: set[str] = set()
        for component in _strongly_connected(nodes, graph):
            if len(component) > 1 or component[0] in graph[component[0]]:
                members.update(component)
        return members

    @staticmethod
    def _kahn(
        nodes: Sequence[str],
        edges: Mapping[str, Sequence[str]],
        fragments: Mapping[str, Fragment],
    ) -> list[str]:
        """Return ``nodes`` topologically sorted with order-hint tie breaks."""

        indegree = {name: len(edges[name]) for name in nodes}
        dependents: dict[str, list[str]] = {name: [] for name in nodes}
        for name in nodes:
            for dep in edges[name]:
                dependents[dep].append(name)

        ready = [(fragments[name].sort_key, name) for name in nodes if indegree[name] == 0]
        heapq.heapify(ready)
        order: list[str] = []
        while ready:
            _, name = heapq.heappop(ready)
            order.append(name)
            for child in dependents[name]:
                indegree[child] -= 1
                if indegree[child] == 0:
                    heapq.heappush(ready, (fragments[child].sort_key, child))
        return order


def resolve_plan(
    fragments: Sequence[Fragment] | None,
    disabled: Collection[str] = frozenset(),
    *,
    environment: str | None = None,
    environments: Mapping[str, Collection[str]] | None = None,
) -> LoadPlan:
    """Resolve ``fragments`` with a default :class:`DependencyResolver`."""

    return DependencyResolver().resolve(
        fragments,
        disabled,
        environment=environment,
        environments=environments,
    )


__all__ = ["DependencyResolver", "resolve_plan"]
