from __future__ import annotations

from catalog_cache.core.errors import ParseError

UNSTABLE = "unstable"

# Flake systems on this release track the rolling channel.
FLAKE_UNSTABLE_RELEASE = "22.11"


def _release_prefix(version: str) -> str:
    parts = version.strip().split(".")
    if len(parts) < 2 or not parts[0]:
        raise ParseError(f"Unrecognised nixpkgs version: {version!r}")
    return ".".join(parts[:2])[:5]


def channel_release(version: str) -> str:
    """
    Release identifier for a channel or nixpkgs version string.

    "23.05.1234.abcd" -> "23.05", "23.05pre123456.abcd" -> "unstable".
    """
    version = version.strip()
    release = _release_prefix(version)
    if version[5:8] == "pre":
        return UNSTABLE
    return release


def flake_release(nixos_version: str) -> str:
    """
    Release identifier for the ``nixosVersion`` reported on a flake system.

    Unlike ``channel_release`` there is no "pre" rule; instead the 22.11
    release is mapped to the rolling channel.
    """
    release = _release_prefix(nixos_version)
    if release == FLAKE_UNSTABLE_RELEASE:
        return UNSTABLE
    return release
