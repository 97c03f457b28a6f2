"""
File-backed version markers.

Each marker is a small text file in the cache directory holding the version
string of the catalog it guards, as of the last successful refresh.
"""
from __future__ import annotations

import logging
import os
import tempfile
from pathlib import Path
from typing import Dict, Optional, Union

from catalog_cache.core.config import CacheConfig
from catalog_cache.domain.models import Marker

logger = logging.getLogger(__name__)

MarkerName = Union[Marker, str]


def _name(marker: MarkerName) -> str:
    return marker.value if isinstance(marker, Marker) else marker


def atomic_write_bytes(path: Path, data: bytes) -> None:
    """Write ``data`` to a temp file next to ``path`` and move it into place."""
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
    try:
        with os.fdopen(fd, "wb") as f:
            f.write(data)
        os.replace(tmp_name, path)
    except BaseException:
        Path(tmp_name).unlink(missing_ok=True)
        raise


class VersionMarkerStore:
    """Reads, writes and compares the per-source version markers."""

    def __init__(self, config: CacheConfig):
        self.config = config

    @property
    def cache_dir(self) -> Path:
        return self.config.cache_dir

    def ensure_dir(self) -> Path:
        self.cache_dir.mkdir(parents=True, exist_ok=True)
        return self.cache_dir

    def path(self, marker: MarkerName) -> Path:
        return self.config.marker_path(_name(marker))

    def read(self, marker: MarkerName) -> Optional[str]:
        """Return the trimmed marker value, or None if it was never written."""
        try:
            return self.path(marker).read_text(encoding="utf-8").strip()
        except FileNotFoundError:
            return None

    def write(self, marker: MarkerName, value: str) -> None:
        self.ensure_dir()
        atomic_write_bytes(self.path(marker), value.strip().encode("utf-8"))
        logger.debug(f"Marker {_name(marker)} set to {value.strip()!r}")

    def remove(self, marker: MarkerName) -> bool:
        """Delete a marker. Returns True if one existed."""
        path = self.path(marker)
        if not path.exists():
            return False
        path.unlink(missing_ok=True)
        logger.debug(f"Removed marker {_name(marker)}")
        return True

    def is_stale(self, marker: MarkerName, candidate: str) -> bool:
        current = self.read(marker)
        return current is None or current != candidate.strip()

    def snapshot(self) -> Dict[str, Optional[str]]:
        """Current value of every known marker."""
        return {m.value: self.read(m) for m in Marker}
