"""
Compare stored markers to tell the UI whether an update is available.

These only read the cache directory; run a refresh first to get current
values.
"""
from __future__ import annotations

import logging
from typing import Dict, Optional

from catalog_cache.domain.models import Marker, VersionChange
from catalog_cache.storage.marker_store import VersionMarkerStore

logger = logging.getLogger(__name__)

SHORT_REV_LENGTH = 8


def _compare(markers: VersionMarkerStore, old: Marker, new: Marker) -> Optional[VersionChange]:
    oldversion = markers.read(old)
    newversion = markers.read(new)
    if oldversion is None or newversion is None:
        return None
    if oldversion == newversion:
        logger.info(f"{old.value} matches {new.value}")
        return None
    logger.info(f"{old.value} {oldversion!r} != {new.value} {newversion!r}")
    return VersionChange(old=oldversion, new=newversion)


def system_update(markers: VersionMarkerStore) -> Optional[VersionChange]:
    """Installed nixpkgs (sysver) vs. the channel (chnver)."""
    return _compare(markers, Marker.SYSVER, Marker.CHNVER)


def flake_update(markers: VersionMarkerStore) -> Optional[VersionChange]:
    """Flake input revision vs. newest channel revision, as short hashes."""
    change = _compare(markers, Marker.FLAKEVER, Marker.NEWVER)
    if change is None:
        return None
    if len(change.old) >= SHORT_REV_LENGTH and len(change.new) >= SHORT_REV_LENGTH:
        return VersionChange(old=change.old[:SHORT_REV_LENGTH], new=change.new[:SHORT_REV_LENGTH])
    return change


def channel_update(markers: VersionMarkerStore) -> Optional[VersionChange]:
    return _compare(markers, Marker.CHNVER, Marker.NEWVER)


def flake_revision_update(markers: VersionMarkerStore) -> Optional[VersionChange]:
    return _compare(markers, Marker.FLAKEVER, Marker.NEWVER)


def all_updates(markers: VersionMarkerStore) -> Dict[str, Optional[VersionChange]]:
    return {
        "system": system_update(markers),
        "flake": flake_update(markers),
        "channel": channel_update(markers),
        "flake_revision": flake_revision_update(markers),
    }
