"""
Choose and run the refresh routines for a (system, user) package source pair.

Which routines run is a fixed decision table over every combination of the two
source enumerations; nothing is decided by nested conditionals at run time.
"""
from __future__ import annotations

import logging
from enum import Enum
from typing import Dict, NamedTuple, Optional, Tuple

import httpx

from catalog_cache.core.config import CacheConfig
from catalog_cache.core.errors import CatalogCacheError
from catalog_cache.domain.models import SourceModes, SystemPkgs, UserPkgs
from catalog_cache.services.fetcher import CatalogFetcher
from catalog_cache.services.nix import NixCommands
from catalog_cache.services.refresh import CacheRefresher
from catalog_cache.services.upstream import UpstreamClient
from catalog_cache.storage.marker_store import VersionMarkerStore

logger = logging.getLogger(__name__)


class Routine(str, Enum):
    LEGACY = "refresh_legacy"
    FLAKE = "refresh_flake"
    LATEST_PACKAGES = "refresh_latest_packages"
    ENV_UPDATE = "refresh_env_update"
    NEWEST_VERSION = "refresh_newest_version"
    PROFILE = "refresh_profile"


class Step(NamedTuple):
    routine: Routine
    best_effort: bool = False


_LEGACY = (Step(Routine.LEGACY), Step(Routine.ENV_UPDATE), Step(Routine.NEWEST_VERSION))
_ENV = (Step(Routine.ENV_UPDATE), Step(Routine.NEWEST_VERSION))
_PROFILE = (Step(Routine.PROFILE),)

REFRESH_PLAN: Dict[SourceModes, Tuple[Step, ...]] = {
    SourceModes(system=SystemPkgs.LEGACY, user=UserPkgs.ENV): _LEGACY,
    SourceModes(system=SystemPkgs.LEGACY, user=UserPkgs.PROFILE): _LEGACY + _PROFILE,
    SourceModes(system=SystemPkgs.LEGACY, user=UserPkgs.NONE): _LEGACY,
    SourceModes(system=SystemPkgs.FLAKE, user=UserPkgs.ENV): (Step(Routine.FLAKE),) + _ENV,
    SourceModes(system=SystemPkgs.FLAKE, user=UserPkgs.PROFILE): (Step(Routine.FLAKE),) + _PROFILE,
    SourceModes(system=SystemPkgs.FLAKE, user=UserPkgs.NONE): (Step(Routine.FLAKE),),
    SourceModes(system=SystemPkgs.NONE, user=UserPkgs.ENV): _ENV,
    SourceModes(system=SystemPkgs.NONE, user=UserPkgs.PROFILE): (Step(Routine.LATEST_PACKAGES, best_effort=True),) + _PROFILE,
    SourceModes(system=SystemPkgs.NONE, user=UserPkgs.NONE): (),
}


def plan_refresh(modes: SourceModes) -> Tuple[Step, ...]:
    return REFRESH_PLAN[modes]


class SourceModeDispatcher:
    def __init__(self, refresher: CacheRefresher):
        self.refresher = refresher

    def dispatch(self, system: SystemPkgs, user: UserPkgs) -> None:
        """
        Run the routines for ``(system, user)`` in order.

        The first failure propagates, except for best-effort steps whose
        failure is logged and skipped.
        """
        modes = SourceModes(system=system, user=user)
        for step in plan_refresh(modes):
            routine = getattr(self.refresher, step.routine.value)
            if not step.best_effort:
                routine()
                continue
            try:
                routine()
            except (CatalogCacheError, OSError) as e:
                logger.warning(f"Best-effort {step.routine.value} failed: {e}")


def check_cache(
    system: SystemPkgs,
    user: UserPkgs,
    config: CacheConfig,
    client: Optional[httpx.Client] = None,
) -> None:
    """
    Bring the cache directory up to date for the given package sources.

    Builds the refresh components around ``config`` and dispatches once.
    """
    own_client = client is None
    if own_client:
        client = httpx.Client(timeout=config.http_timeout)
    try:
        refresher = CacheRefresher(
            config=config,
            markers=VersionMarkerStore(config),
            nix=NixCommands(config),
            upstream=UpstreamClient(config, client),
            fetcher=CatalogFetcher(client),
        )
        SourceModeDispatcher(refresher).dispatch(system, user)
    finally:
        if own_client:
            client.close()
