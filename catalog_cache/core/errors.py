"""
Errors raised while refreshing the catalog cache.

File system failures are not wrapped: they surface as the builtin ``OSError``.
"""
from __future__ import annotations


class CatalogCacheError(Exception):
    """Base class for all catalog cache failures."""


class ConfigError(CatalogCacheError):
    """The cache location or the configuration file could not be resolved."""


class ProcessError(CatalogCacheError):
    """An external tool is missing, exited non-zero or timed out."""

    def __init__(self, message: str, returncode: int | None = None, stderr: str = ""):
        super().__init__(message)
        self.returncode = returncode
        self.stderr = stderr


class NetworkError(CatalogCacheError):
    """A request to an upstream server failed."""


class DownloadError(NetworkError):
    """A catalog download answered with a non-success status."""

    def __init__(self, url: str, status_code: int):
        super().__init__(f"Failed to download {url}: HTTP {status_code}")
        self.url = url
        self.status_code = status_code


class ParseError(CatalogCacheError):
    """Malformed JSON, version string or compressed stream."""
