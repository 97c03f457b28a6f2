from __future__ import annotations

import json
from typing import Callable, Dict, List, Optional, Union

import brotli
import httpx
import pytest

from catalog_cache.core.config import CacheConfig
from catalog_cache.domain.models import NixosVersion
from catalog_cache.services.fetcher import CatalogFetcher
from catalog_cache.services.refresh import CacheRefresher
from catalog_cache.services.upstream import UpstreamClient
from catalog_cache.storage.marker_store import VersionMarkerStore

RELEASES = "https://releases.test/nixos"
CHANNELS = "https://channels.test"
COMMITS = "https://api.test/repos/NixOS/nixpkgs/commits/nixpkgs-unstable"


def compressed_catalog(packages: Dict[str, str]) -> bytes:
    document = {"version": 2, "packages": {name: {"version": v, "system": "x86_64-linux"} for name, v in packages.items()}}
    return brotli.compress(json.dumps(document).encode("utf-8"))


class FakeServer:
    """Routes for ``httpx.MockTransport`` that records every requested URL."""

    def __init__(self):
        self.routes: Dict[str, Callable[[httpx.Request], httpx.Response]] = {}
        self.requests: List[httpx.Request] = []

    def add(self, url: str, content: Union[bytes, str] = b"", status_code: int = 200, headers: Optional[dict] = None):
        body = content.encode("utf-8") if isinstance(content, str) else content
        self.routes[url] = lambda request: httpx.Response(status_code, stream=httpx.ByteStream(body), headers=headers)

    def redirect(self, url: str, location: str):
        self.routes[url] = lambda request: httpx.Response(302, headers={"Location": location})

    def fail(self, url: str, exc: Exception):
        def handler(request):
            raise exc
        self.routes[url] = handler

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        route = self.routes.get(str(request.url))
        if route is None:
            return httpx.Response(404)
        return route(request)

    @property
    def urls(self) -> List[str]:
        return [str(r.url) for r in self.requests]

    def count(self, url: str) -> int:
        return self.urls.count(url)


class FakeNix:
    """Stand-in for ``NixCommands`` with canned answers."""

    def __init__(
        self,
        channel: str = "23.05.1234.abcdef",
        nixpkgs: str = "23.05.1234.abcdef",
        nixos: Optional[NixosVersion] = None,
        search_output: bytes = b'{"legacyPackages.x86_64-linux.hello":{"pname":"hello","version":"2.12"}}',
    ):
        self.channel = channel
        self.nixpkgs = nixpkgs
        self.nixos = nixos or NixosVersion(nixos_version="23.05.20230601.abcdef0", nixpkgs_revision="abcdef0123456789")
        self.search_output = search_output
        self.calls: List[tuple] = []

    def channel_version(self) -> str:
        self.calls.append(("channel_version",))
        return self.channel

    def nixpkgs_version(self) -> str:
        self.calls.append(("nixpkgs_version",))
        return self.nixpkgs

    def nixos_version(self) -> NixosVersion:
        self.calls.append(("nixos_version",))
        return self.nixos

    def search_packages(self, flake_dir: str) -> bytes:
        self.calls.append(("search_packages", flake_dir))
        return self.search_output

    def searches(self) -> List[tuple]:
        return [c for c in self.calls if c[0] == "search_packages"]


@pytest.fixture
def config(tmp_path) -> CacheConfig:
    return CacheConfig(
        cache_dir=tmp_path / "cache",
        releases_url=RELEASES,
        channels_url=CHANNELS,
        commits_api_url=COMMITS,
    )


@pytest.fixture
def markers(config) -> VersionMarkerStore:
    return VersionMarkerStore(config)


@pytest.fixture
def server() -> FakeServer:
    return FakeServer()


@pytest.fixture
def client(server):
    with httpx.Client(transport=httpx.MockTransport(server.handler)) as c:
        yield c


@pytest.fixture
def nix() -> FakeNix:
    return FakeNix()


@pytest.fixture
def refresher(config, markers, nix, client) -> CacheRefresher:
    return CacheRefresher(
        config=config,
        markers=markers,
        nix=nix,
        upstream=UpstreamClient(config, client),
        fetcher=CatalogFetcher(client),
    )
