"""
Configuration for the catalog cache.

The cache directory is resolved once (environment variable + home directory
default) and carried in a ``CacheConfig`` that every component receives
explicitly.
"""
from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Optional

import yaml
from pydantic import BaseModel, Field, ValidationError

from catalog_cache.core.errors import ConfigError

logger = logging.getLogger(__name__)

CACHE_DIR_ENV_VAR = "NSC_CACHE_DIR"
CONFIG_FILE_ENV_VAR = "NSC_CONFIG_FILE"

APP_NAME = "nix-software-center"
DEFAULT_FLAKE_DIR = "/etc/nixos"


def _home_dir() -> Path:
    home = os.environ.get("HOME")
    if not home:
        raise ConfigError("Cannot resolve the cache directory: HOME is not set")
    return Path(home)


def resolve_cache_dir() -> Path:
    """
    Determine the cache directory path.

    Priority:
    1. Environment variable NSC_CACHE_DIR
    2. '$HOME/.cache/nix-software-center'
    """
    env_path = os.environ.get(CACHE_DIR_ENV_VAR)
    if env_path:
        return Path(env_path).expanduser()
    return _home_dir() / ".cache" / APP_NAME


def default_config_path() -> Path:
    env_path = os.environ.get(CONFIG_FILE_ENV_VAR)
    if env_path:
        return Path(env_path).expanduser()
    return _home_dir() / ".config" / APP_NAME / "config.json"


class CacheConfig(BaseModel):
    """
    Everything the refresh routines need to know about their environment.
    """

    cache_dir: Path = Field(
        default_factory=resolve_cache_dir,
        description="Directory owning all marker and catalog files.",
    )
    flake: Optional[str] = Field(
        default=None,
        description="Path to the system flake (directory or flake.nix) used by the flake refresh.",
    )
    legacy_nixpkgs_path: str = Field(
        default="/nix/var/nix/profiles/per-user/root/channels/nixos",
        description="nixpkgs search path evaluated for the legacy channel version.",
    )
    releases_url: str = Field(
        default="https://releases.nixos.org/nixos",
        description="Base URL of versioned release catalogs.",
    )
    channels_url: str = Field(
        default="https://channels.nixos.org",
        description="Base URL of channel aliases, git revisions and rolling catalogs.",
    )
    commits_api_url: str = Field(
        default="https://api.github.com/repos/NixOS/nixpkgs/commits/nixpkgs-unstable",
        description="Commit metadata endpoint for the unstable branch.",
    )
    user_agent: str = Field(default=APP_NAME)
    http_timeout: float = Field(default=60.0, gt=0)
    process_timeout: float = Field(default=600.0, gt=0)

    def marker_path(self, name: str) -> Path:
        return self.cache_dir / f"{name}.txt"

    def catalog_path(self, name: str) -> Path:
        return self.cache_dir / name

    def flake_dir(self) -> str:
        """Directory passed to ``nix search --inputs-from``."""
        if not self.flake:
            return DEFAULT_FLAKE_DIR
        return self.flake.removesuffix("/flake.nix")


def load_config(path: Optional[Path] = None, **overrides) -> CacheConfig:
    """
    Load the host application's settings file into a ``CacheConfig``.

    The file may be JSON or YAML. Keys that are not configuration fields
    (the application also stores UI settings there) are ignored. A missing
    file yields the defaults.
    """
    config_path = path or default_config_path()
    data: dict = {}
    if config_path.exists():
        try:
            raw = yaml.safe_load(config_path.read_text(encoding="utf-8"))
        except (OSError, yaml.YAMLError) as e:
            raise ConfigError(f"Cannot read configuration {config_path}: {e}") from e
        if raw is not None and not isinstance(raw, dict):
            raise ConfigError(f"Configuration {config_path} must be a mapping")
        data = raw or {}
        logger.debug(f"Loaded configuration from {config_path}")
    else:
        logger.debug(f"No configuration at {config_path}, using defaults")

    data.update(overrides)
    try:
        return CacheConfig(**data)
    except ValidationError as e:
        raise ConfigError(f"Invalid configuration in {config_path}: {e}") from e
