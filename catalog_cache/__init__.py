"""
Local cache of the Nix package catalog for the package-browsing application.

This package is responsible for:
* Tracking which upstream catalog version is stored on disk (version markers).
* Querying nix tooling and the NixOS channel servers for the current version.
* Downloading and decompressing catalogs only when upstream has changed.
* Serialising refresh runs per cache directory.
"""
