"""assets.lock models and loader.

assets.lock format (YAML):
    releases:
      - name: uaa
        version: "1.2.3"
        sha1: a9993e364706816aba3e25717850c26c9cd0d89d
    stemcell_criteria:
      os: ubuntu-xenial
      version: "190.0.0"

Every release in the lock is compiled against the single stemcell.
"""

from __future__ import annotations

import re
from typing import TYPE_CHECKING, Any

import yaml  # type: ignore[import-untyped]
from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
    ValidationInfo,
    field_validator,
)

from releasedir.release.identity import ReleaseIdentity

if TYPE_CHECKING:
    from pathlib import Path


class AssetsLockError(Exception):
    """Raised when assets.lock cannot be loaded."""


_SHA1_PATTERN = re.compile(r"^[0-9a-f]{40}$")


def _require_str(v: Any, field: str) -> str:
    """Reject non-text values; YAML reads an unquoted 1.10 as the float 1.1."""
    if v is None:
        msg = f"{field} is required"
        raise ValueError(msg)
    if not isinstance(v, str):
        msg = (
            f"{field} must be a string, got {type(v).__name__} {v!r}; "
            f"quote it in assets.lock"
        )
        raise ValueError(msg)
    return v


class LockedRelease(BaseModel):
    """One required release and its declared checksum."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    name: str = Field(min_length=1, description="Release name")
    version: str = Field(min_length=1, description="Release version")
    sha1: str = Field(default="", description="SHA1 of the compiled tarball (40 hex chars)")

    @field_validator("name", "version", mode="before")
    @classmethod
    def validate_text(cls, v: Any, info: ValidationInfo) -> str:
        return _require_str(v, info.field_name)

    @field_validator("sha1", mode="before")
    @classmethod
    def validate_sha1(cls, v: Any) -> str:
        """Allow an empty sha1 (not yet recorded), otherwise 40 lowercase hex chars."""
        if v is None:
            return ""
        v = _require_str(v, "sha1")
        if v and not _SHA1_PATTERN.match(v):
            raise ValueError(f"sha1 must be 40 lowercase hex characters, got {v!r}")
        return v


class Stemcell(BaseModel):
    """Target stemcell shared by all releases in a lock."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    os: str = Field(min_length=1, description="Stemcell operating system")
    version: str = Field(min_length=1, description="Stemcell version")

    @field_validator("os", "version", mode="before")
    @classmethod
    def validate_text(cls, v: Any, info: ValidationInfo) -> str:
        return _require_str(v, info.field_name)


class AssetsLock(BaseModel):
    """Parsed assets.lock (frozen)."""

    model_config = ConfigDict(frozen=True, extra="forbid", populate_by_name=True)

    releases: tuple[LockedRelease, ...] = Field(default=())
    stemcell: Stemcell = Field(alias="stemcell_criteria")

    def find_release(self, name: str, version: str) -> LockedRelease | None:
        """Get the locked release with this name and version."""
        for release in self.releases:
            if release.name == name and release.version == version:
                return release
        return None

    def identity_for(self, release: LockedRelease) -> ReleaseIdentity:
        """Combine a locked release with the lock's stemcell."""
        return ReleaseIdentity(
            name=release.name,
            version=release.version,
            stemcell_os=self.stemcell.os,
            stemcell_version=self.stemcell.version,
        )


def load_assets_lock(path: Path) -> AssetsLock:
    """Load and validate an assets.lock file.

    Args:
        path: Path to assets.lock.

    Returns:
        Validated AssetsLock.

    Raises:
        AssetsLockError: If the file is missing, not YAML, or fails validation.
    """
    try:
        with path.open() as f:
            data = yaml.safe_load(f)
    except OSError as e:
        msg = f"Failed to read assets lock {path}: {e}"
        raise AssetsLockError(msg) from e
    except yaml.YAMLError as e:
        msg = f"Invalid YAML in assets lock {path}: {e}"
        raise AssetsLockError(msg) from e

    if not isinstance(data, dict):
        msg = f"Assets lock {path} must contain a mapping, got {type(data).__name__}"
        raise AssetsLockError(msg)

    try:
        return AssetsLock.model_validate(data)
    except ValidationError as e:
        msg = f"Invalid assets lock {path}: {e}"
        raise AssetsLockError(msg) from e
