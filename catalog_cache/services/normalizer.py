"""
Flatten raw channel catalogs into ``{attribute: version}`` mappings.
"""
from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Dict

from pydantic import ValidationError

from catalog_cache.core.errors import ParseError
from catalog_cache.domain.models import RawCatalog
from catalog_cache.storage.marker_store import atomic_write_bytes

logger = logging.getLogger(__name__)


def normalize(document: Any) -> Dict[str, str]:
    """
    Turn ``{"packages": {"foo": {"version": "1.0", ...}}}`` into ``{"foo": "1.0"}``.
    """
    try:
        catalog = RawCatalog.model_validate(document)
    except ValidationError as e:
        raise ParseError(f"Unexpected catalog shape: {e}") from e
    return {name: pkg.version for name, pkg in catalog.packages.items()}


def normalize_catalog(path: Path) -> int:
    """
    Rewrite the raw catalog at ``path`` in its flat form.

    Returns the number of packages written.
    """
    try:
        with path.open("rb") as f:
            document = json.load(f)
    except json.JSONDecodeError as e:
        raise ParseError(f"Invalid JSON in {path}: {e}") from e

    flat = normalize(document)
    atomic_write_bytes(path, json.dumps(flat, separators=(",", ":")).encode("utf-8"))
    logger.debug(f"Normalized {len(flat)} packages in {path}")
    return len(flat)
