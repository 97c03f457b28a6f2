from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Dict, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class SystemPkgs(str, Enum):
    """Where system packages come from."""

    LEGACY = "legacy"
    FLAKE = "flake"
    NONE = "none"


class UserPkgs(str, Enum):
    """Where user packages come from."""

    ENV = "env"
    PROFILE = "profile"
    NONE = "none"


class SourceModes(BaseModel):
    """The (system, user) package source pair the dispatcher interprets."""

    model_config = ConfigDict(frozen=True)

    system: SystemPkgs = SystemPkgs.NONE
    user: UserPkgs = UserPkgs.NONE


class Marker(str, Enum):
    """Version markers stored as ``<value>.txt`` in the cache directory."""

    SYSVER = "sysver"
    CHNVER = "chnver"
    NEWVER = "newver"
    FLAKEVER = "flakever"
    PROFILEVER = "profilever"


class CatalogFile(str, Enum):
    PACKAGES = "packages.json"
    SYSPACKAGES = "syspackages.json"
    PROFILEPACKAGES = "profilepackages.json"


class NixosVersion(BaseModel):
    """Output of ``nixos-version --json``."""

    model_config = ConfigDict(populate_by_name=True)

    nixos_version: str = Field(alias="nixosVersion")
    nixpkgs_revision: str = Field(default="unknown", alias="nixpkgsRevision")

    @field_validator("nixpkgs_revision", mode="before")
    @classmethod
    def _unknown_revision(cls, value):
        # Builds from a dirty tree report null.
        if not isinstance(value, str):
            return "unknown"
        return value


class RawPackage(BaseModel):
    version: str


class RawCatalog(BaseModel):
    """Catalog as published by the channel servers."""

    packages: Dict[str, RawPackage]


class VersionChange(BaseModel):
    old: str
    new: str


class JobState(str, Enum):
    QUEUED = "queued"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    CANCELLED = "cancelled"


class RefreshJob(BaseModel):
    """One queued dispatcher run."""

    id: str
    modes: SourceModes
    state: JobState = JobState.QUEUED
    error: Optional[str] = None
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    started_at: Optional[datetime] = None
    finished_at: Optional[datetime] = None

    @property
    def finished(self) -> bool:
        return self.state in (JobState.SUCCEEDED, JobState.FAILED, JobState.CANCELLED)
