# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.

"""Run the full startup sequence: config, discovery, ordering, pre-warm, load."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from pathlib import Path

from .cache.keys import candidates_for
from .cache.prewarm import CachePreWarmer, PreWarmResult
from .config import FragmentConfig, load_fragment_config
from .fragments.discovery import discover_fragments
from .fragments.models import LoadPlan
from .loader import FragmentLoader, LoadReport
from .logging import configure_diagnostics
from .resolver import DependencyResolver
from .session import ProfileSession
from .settings import ProfileSettings

LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class StartupResult:
    """Everything produced by one startup pass.

    Attributes:
        config: Fragment configuration that was applied.
        plan: Load plan computed for the discovered fragments.
        prewarm: Pre-warm counts for the planned fragments.
        report: Per-fragment load results.
        loader: Loader bound to the session, for on-demand command loading.
        discovered: Number of fragment files found in the store.
        duration_ms: Wall time of the whole startup pass.
    """

    config: FragmentConfig
    plan: LoadPlan
    prewarm: PreWarmResult
    report: LoadReport
    loader: FragmentLoader
    discovered: int
    duration_ms: float

    @property
    def session(self) -> ProfileSession:
        """Return the session the fragments were loaded into."""

        return self.loader.session


def plan_profile(store_root: Path, settings: ProfileSettings) -> tuple[FragmentConfig, LoadPlan, int]:
    """Load configuration, discover fragments and resolve their load plan.

    Args:
        store_root: Fragment store directory.
        settings: Effective settings providing the active environment.

    Returns:
        tuple[FragmentConfig, LoadPlan, int]: Applied configuration, plan and
        number of discovered fragments.
    """

    config = load_fragment_config(store_root)
    fragments = discover_fragments(store_root)
    plan = DependencyResolver().resolve(
        fragments,
        config.disabled_fragments,
        environment=settings.environment,
        environments=config.environments,
    )
    return config, plan, len(fragments)


def start_profile(
    store_root: Path,
    *,
    settings: ProfileSettings | None = None,
    session: ProfileSession | None = None,
) -> StartupResult:
    """Load the fragments in ``store_root`` into a session.

    Args:
        store_root: Fragment store directory.
        settings: Explicit settings; ignored when ``session`` is supplied.
        session: Existing session to load into; created when omitted.

    Returns:
        StartupResult: Plan, pre-warm counts and the load report.
    """

    started = time.perf_counter()
    active = session if session is not None else ProfileSession.create(settings)
    if active.settings.debug:
        configure_diagnostics(True)

    config, plan, discovered = plan_profile(store_root, active.settings)
    prewarm = CachePreWarmer(active.cache).prewarm(candidates_for(plan.fragments), active.settings.parsing_mode)
    loader = FragmentLoader(active)
    report = loader.load_deferred(plan) if active.settings.lazy else loader.load_all(plan)
    duration_ms = (time.perf_counter() - started) * 1000
    LOGGER.debug(
        "startup fragments=%d planned=%d prewarmed=%d elapsed_ms=%.1f",
        discovered,
        len(plan),
        prewarm.total,
        duration_ms,
    )
    return StartupResult(
        config=config,
        plan=plan,
        prewarm=prewarm,
        report=report,
        loader=loader,
        discovered=discovered,
        duration_ms=duration_ms,
    )


def startup_warnings(result: StartupResult) -> list[str]:
    """Return the non-fatal warnings a user should see after startup.

    Args:
        result: Startup outcome to summarise.

    Returns:
        list[str]: One message per configuration error, cycle, unsatisfied
        dependency and failed fragment, in that order.
    """

    messages: list[str] = []
    if result.config.error:
        messages.append(f"Ignoring fragment configuration: {result.config.error}")
    if result.report.cycle_error is not None:
        messages.append(f"Not loading fragments in a {result.report.cycle_error}")
    messages.extend(warning.describe() for warning in result.report.warnings)
    for fragment_result in result.report.results:
        if fragment_result.error is not None:
            messages.append(f"Fragment '{fragment_result.name}' failed to load: {fragment_result.error.message}")
    return messages


__all__ = ["StartupResult", "plan_profile", "start_profile", "startup_warnings"]
