from typing import Optional

from catalog_cache.core.config import CacheConfig, load_config
from catalog_cache.services.refresh_queue import RefreshQueue, get_queue_for
from catalog_cache.storage.marker_store import VersionMarkerStore

_config: Optional[CacheConfig] = None
_marker_store: Optional[VersionMarkerStore] = None


def get_config() -> CacheConfig:
    global _config
    if _config is None:
        _config = load_config()
    return _config


def get_marker_store() -> VersionMarkerStore:
    global _marker_store
    if _marker_store is None:
        _marker_store = VersionMarkerStore(get_config())
    return _marker_store


def get_refresh_queue() -> RefreshQueue:
    return get_queue_for(get_config())
