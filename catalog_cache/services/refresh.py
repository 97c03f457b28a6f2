"""
Refresh routines, one per upstream source.

Every routine follows the same shape: ask an oracle for the current upstream
version, compare it with the stored marker, and only when they differ (or the
guarded catalog is missing) fetch the catalog. The marker is written last, so
an interrupted refresh leaves it stale instead of falsely fresh.

Each routine returns True when it changed something in the cache directory.
"""
from __future__ import annotations

import logging
from pathlib import Path

from catalog_cache.core.config import CacheConfig
from catalog_cache.domain.models import CatalogFile, Marker
from catalog_cache.domain.release import channel_release, flake_release
from catalog_cache.services.fetcher import CatalogFetcher
from catalog_cache.services.nix import NixCommands
from catalog_cache.services.normalizer import normalize_catalog
from catalog_cache.services.upstream import UpstreamClient
from catalog_cache.storage.marker_store import VersionMarkerStore, atomic_write_bytes

logger = logging.getLogger(__name__)


class CacheRefresher:
    def __init__(
        self,
        config: CacheConfig,
        markers: VersionMarkerStore,
        nix: NixCommands,
        upstream: UpstreamClient,
        fetcher: CatalogFetcher,
    ):
        self.config = config
        self.markers = markers
        self.nix = nix
        self.upstream = upstream
        self.fetcher = fetcher

    def _catalog(self, name: CatalogFile) -> Path:
        return self.config.catalog_path(name.value)

    def _is_current(self, marker: Marker, version: str, catalog: CatalogFile) -> bool:
        if not self.markers.is_stale(marker, version) and self._catalog(catalog).exists():
            logger.debug(f"{marker.value} is up to date ({version})")
            return True
        logger.info(f"OLD: {self.markers.read(marker)}, != NEW: {version}")
        return False

    # ------------------------------------------------------------------
    # System packages
    # ------------------------------------------------------------------

    def refresh_legacy(self) -> bool:
        """Channel-based systems: catalog of the root user's nixos channel."""
        logger.info("Setting up legacy package cache")
        self.markers.ensure_dir()
        version = self.nix.channel_version()
        release = channel_release(version)
        if self._is_current(Marker.CHNVER, version, CatalogFile.PACKAGES):
            return False

        url = self.upstream.release_catalog_url(release, version)
        self.fetcher.fetch(url, self._catalog(CatalogFile.PACKAGES))
        self.markers.write(Marker.CHNVER, version)
        return True

    def refresh_flake(self) -> bool:
        """
        Flake-based systems: search output of the flake's nixpkgs input, plus
        the newest catalog of the release channel.
        """
        logger.info("Setting up flake cache")
        self.markers.ensure_dir()
        changed = self.markers.remove(Marker.CHNVER)

        info = self.nix.nixos_version()
        release = flake_release(info.nixos_version)
        syspackages = self._catalog(CatalogFile.SYSPACKAGES)

        if self.markers.is_stale(Marker.FLAKEVER, info.nixpkgs_revision) or not syspackages.exists():
            logger.info(f"OLD FLAKEVER: {self.markers.read(Marker.FLAKEVER)}, != NEW: {info.nixpkgs_revision}")
            flake_dir = self.config.flake_dir()
            atomic_write_bytes(syspackages, self.nix.search_packages(flake_dir))
            self.markers.write(Marker.FLAKEVER, info.nixpkgs_revision)
            changed = True
        else:
            logger.debug(f"Flake revision {info.nixpkgs_revision} is up to date")

        return self._refresh_channel_catalog(release) or changed

    def refresh_latest_packages(self) -> bool:
        """Newest release-channel catalog for systems without a system source."""
        info = self.nix.nixos_version()
        release = flake_release(info.nixos_version)
        logger.info(f"Relver {release}")
        self.markers.ensure_dir()
        return self._refresh_channel_catalog(release)

    def _refresh_channel_catalog(self, release: str) -> bool:
        newrev = self.upstream.git_revision(release)
        if newrev is None:
            return False
        logger.info(f"NEW REV: {newrev}")
        packages = self._catalog(CatalogFile.PACKAGES)
        if not self.markers.is_stale(Marker.NEWVER, newrev) and packages.exists():
            return False

        url = self.upstream.channel_catalog_url(release)
        self.fetcher.fetch(url, packages)
        self.markers.write(Marker.NEWVER, newrev)
        return True

    # ------------------------------------------------------------------
    # User packages
    # ------------------------------------------------------------------

    def refresh_profile(self) -> bool:
        """``nix profile`` users: catalog of nixpkgs-unstable."""
        logger.info("Setting up profile package cache")
        self.markers.ensure_dir()
        changed = self.markers.remove(Marker.CHNVER)

        profilerev = self.upstream.unstable_commit()
        if profilerev is None:
            return changed
        logger.info(f"PROFILE REV {profilerev}")

        if not self.markers.is_stale(Marker.PROFILEVER, profilerev) and self._catalog(CatalogFile.PROFILEPACKAGES).exists():
            logger.info("PROFILEVER UP TO DATE")
            return changed

        logger.info(f"OLD PROFILEVER: {self.markers.read(Marker.PROFILEVER)}, != NEW: {profilerev}")
        self.fetcher.fetch(self.upstream.unstable_catalog_url(), self._catalog(CatalogFile.PROFILEPACKAGES))
        self.markers.write(Marker.PROFILEVER, profilerev)
        return True

    def refresh_env_update(self) -> bool:
        """``nix-env`` users: flat catalog of the nixpkgs on NIX_PATH."""
        logger.info("Setting up update cache")
        self.markers.ensure_dir()
        version = self.nix.nixpkgs_version()
        release = channel_release(version)
        if self._is_current(Marker.SYSVER, version, CatalogFile.SYSPACKAGES):
            return False

        syspackages = self._catalog(CatalogFile.SYSPACKAGES)
        self.fetcher.fetch(self.upstream.release_catalog_url(release, version), syspackages)
        normalize_catalog(syspackages)
        self.markers.write(Marker.SYSVER, version)
        return True

    def refresh_newest_version(self) -> bool:
        """Record which channel the release alias currently points at."""
        release = channel_release(self.nix.nixpkgs_version())
        latest = self.upstream.latest_channel(release)
        if latest is None:
            return False
        if not self.markers.is_stale(Marker.NEWVER, latest):
            return False

        logger.info(f"OLD: {self.markers.read(Marker.NEWVER)}, != NEW: {latest}")
        self.markers.write(Marker.NEWVER, latest)
        return True
