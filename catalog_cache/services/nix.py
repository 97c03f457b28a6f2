"""
Version queries answered by the local nix tooling.
"""
from __future__ import annotations

import json
import logging
import subprocess
from typing import List

from pydantic import ValidationError

from catalog_cache.core.config import CacheConfig
from catalog_cache.core.errors import ParseError, ProcessError
from catalog_cache.domain.models import NixosVersion

logger = logging.getLogger(__name__)

NIXPKGS_LIB_VERSION_EXPR = "with import <nixpkgs> {}; pkgs.lib.version"


def _unquote(output: str) -> str:
    return output.replace('"', "").strip()


class NixCommands:
    """Runs nix-instantiate, nixos-version and nix search."""

    def __init__(self, config: CacheConfig):
        self.config = config

    def _run(self, cmd: List[str]) -> subprocess.CompletedProcess:
        logger.debug(f"Running {' '.join(cmd)}")
        try:
            result = subprocess.run(
                cmd,
                capture_output=True,
                timeout=self.config.process_timeout,
            )
        except FileNotFoundError as e:
            raise ProcessError(f"{cmd[0]} not found") from e
        except subprocess.TimeoutExpired as e:
            raise ProcessError(f"{cmd[0]} timed out after {self.config.process_timeout}s") from e

        if result.returncode != 0:
            stderr = result.stderr.decode("utf-8", errors="replace").strip()
            raise ProcessError(
                f"{cmd[0]} exited with status {result.returncode}: {stderr}",
                returncode=result.returncode,
                stderr=stderr,
            )
        return result

    def _run_text(self, cmd: List[str]) -> str:
        stdout = self._run(cmd).stdout
        try:
            return stdout.decode("utf-8")
        except UnicodeDecodeError as e:
            raise ParseError(f"{cmd[0]} produced non UTF-8 output") from e

    def channel_version(self) -> str:
        """Version of the root user's nixos channel, e.g. "23.05.4321.abcdef"."""
        output = self._run_text([
            "nix-instantiate",
            "-I",
            f"nixpkgs={self.config.legacy_nixpkgs_path}",
            "<nixpkgs/lib>",
            "-A",
            "version",
            "--eval",
            "--json",
        ])
        return _unquote(output)

    def nixpkgs_version(self) -> str:
        """``pkgs.lib.version`` of the nixpkgs on NIX_PATH."""
        output = self._run_text(["nix-instantiate", "--eval", "-E", NIXPKGS_LIB_VERSION_EXPR])
        return _unquote(output)

    def nixos_version(self) -> NixosVersion:
        output = self._run_text(["nixos-version", "--json"])
        try:
            return NixosVersion.model_validate(json.loads(output))
        except (json.JSONDecodeError, ValidationError) as e:
            raise ParseError(f"Unexpected nixos-version output: {e}") from e

    def search_packages(self, flake_dir: str) -> bytes:
        """Raw JSON of every package in the nixpkgs input of ``flake_dir``."""
        return self._run(
            ["nix", "search", "--inputs-from", flake_dir, "nixpkgs", "--json"]
        ).stdout
