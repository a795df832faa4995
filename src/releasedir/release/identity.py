"""Compiled release identity.

A compiled release tarball is identified by four strings:
    {release_name}-{release_version}-{stemcell_os}-{stemcell_version}.tgz

Example:
    uaa-1.2.3-ubuntu-xenial-190.0.0.tgz
"""

from __future__ import annotations

from dataclasses import dataclass

RELEASE_TARBALL_SUFFIX = ".tgz"


@dataclass(frozen=True, order=True)
class ReleaseIdentity:
    """Identity of one compiled release.

    Hashable and ordered so it can key an inventory dict and give a stable
    processing order.

    Attributes:
        name: Release name (e.g., "uaa").
        version: Release version (e.g., "1.2.3").
        stemcell_os: Stemcell operating system (e.g., "ubuntu-xenial").
        stemcell_version: Stemcell version (e.g., "190.0.0").
    """

    name: str
    version: str
    stemcell_os: str
    stemcell_version: str

    def __str__(self) -> str:
        """Return a short human-readable form for log lines."""
        return f"{self.name}/{self.version} ({self.stemcell_os}/{self.stemcell_version})"

    def to_dict(self) -> dict[str, str]:
        """Convert to dictionary."""
        return {
            "name": self.name,
            "version": self.version,
            "stemcell_os": self.stemcell_os,
            "stemcell_version": self.stemcell_version,
        }


def release_filename(identity: ReleaseIdentity) -> str:
    """Render the canonical local tarball filename for a release.

    Args:
        identity: Release to name.

    Returns:
        Filename like "uaa-1.2.3-ubuntu-xenial-190.0.0.tgz".
    """
    return (
        f"{identity.name}-{identity.version}-"
        f"{identity.stemcell_os}-{identity.stemcell_version}{RELEASE_TARBALL_SUFFIX}"
    )
