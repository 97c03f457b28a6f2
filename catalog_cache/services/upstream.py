"""
Version queries answered by the NixOS channel servers and GitHub.
"""
from __future__ import annotations

import logging
from typing import Optional

import httpx

from catalog_cache.core.config import CacheConfig
from catalog_cache.core.errors import NetworkError, ParseError

logger = logging.getLogger(__name__)

CHANNEL_PREFIX = "nixos-"


class UpstreamClient:
    def __init__(self, config: CacheConfig, client: httpx.Client):
        self.config = config
        self.client = client

    def _get(self, url: str, **kwargs) -> httpx.Response:
        try:
            return self.client.get(url, **kwargs)
        except httpx.HTTPError as e:
            raise NetworkError(f"Request to {url} failed: {e}") from e

    def channel_url(self, release: str) -> str:
        return f"{self.config.channels_url}/nixos-{release}"

    def release_catalog_url(self, release: str, version: str) -> str:
        return f"{self.config.releases_url}/{release}/nixos-{version}/packages.json.br"

    def channel_catalog_url(self, release: str) -> str:
        return f"{self.channel_url(release)}/packages.json.br"

    def unstable_catalog_url(self) -> str:
        return f"{self.config.channels_url}/nixpkgs-unstable/packages.json.br"

    def git_revision(self, release: str) -> Optional[str]:
        """
        Newest nixpkgs revision published on the release channel.

        Returns None (and logs) when the channel answers with an error status.
        """
        url = f"{self.channel_url(release)}/git-revision"
        response = self._get(url)
        if not response.is_success:
            logger.warning(f"Failed to get newest nixpkgs version from {url}: HTTP {response.status_code}")
            return None
        return response.text.strip()

    def latest_channel(self, release: str) -> Optional[str]:
        """
        Name of the channel the release alias currently redirects to,
        e.g. "23.05.1234.abcdef".
        """
        response = self._get(self.channel_url(release), follow_redirects=True)
        if not response.is_success:
            logger.warning(f"Channel alias {self.channel_url(release)} answered HTTP {response.status_code}")
            return None
        latest = str(response.url).rstrip("/").split("/")[-1]
        if not latest:
            return None
        return latest.removeprefix(CHANNEL_PREFIX)

    def unstable_commit(self) -> Optional[str]:
        """Head commit of nixpkgs-unstable, or None if the API refused."""
        url = self.config.commits_api_url
        response = self._get(url, headers={"User-Agent": self.config.user_agent})
        if not response.is_success:
            logger.warning(f"Failed to get nixpkgs-unstable commit from {url}: HTTP {response.status_code}")
            return None
        try:
            return response.json()["sha"]
        except (ValueError, KeyError, TypeError) as e:
            raise ParseError(f"Unexpected commit metadata from {url}: {e}") from e
