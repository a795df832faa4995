"""Reconciliation plan: which local releases to keep, verify, or delete."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from collections.abc import Mapping
    from pathlib import Path

    from releasedir.release.identity import ReleaseIdentity
    from releasedir.release.lockfile import AssetsLock


@dataclass
class ReconcilePlan:
    """Partition of local releases against the required set.

    Attributes:
        satisfied: Required releases already present (identity -> path).
        missing: Required releases not present, sorted.
        extra: Present releases that are not required (identity -> path).
    """

    satisfied: dict[ReleaseIdentity, Path] = field(default_factory=dict)
    missing: list[ReleaseIdentity] = field(default_factory=list)
    extra: dict[ReleaseIdentity, Path] = field(default_factory=dict)

    @property
    def is_complete(self) -> bool:
        """True when every required release is present."""
        return not self.missing

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "satisfied": [identity.to_dict() for identity in sorted(self.satisfied)],
            "missing": [identity.to_dict() for identity in self.missing],
            "extra": [identity.to_dict() for identity in sorted(self.extra)],
        }


def required_releases(assets_lock: AssetsLock) -> dict[ReleaseIdentity, str]:
    """Map every release in the lock to its declared sha1.

    Args:
        assets_lock: Parsed assets.lock.

    Returns:
        Dict mapping identity (release + lock stemcell) to sha1.
    """
    return {assets_lock.identity_for(release): release.sha1 for release in assets_lock.releases}


def plan_reconciliation(
    inventory: Mapping[ReleaseIdentity, Path],
    required: Mapping[ReleaseIdentity, str],
) -> ReconcilePlan:
    """Split a local inventory into satisfied, missing, and extra releases.

    Args:
        inventory: Local releases (identity -> path).
        required: Required releases (identity -> sha1).

    Returns:
        ReconcilePlan.
    """
    plan = ReconcilePlan()
    for identity, path in inventory.items():
        if identity in required:
            plan.satisfied[identity] = path
        else:
            plan.extra[identity] = path

    plan.missing = sorted(identity for identity in required if identity not in inventory)
    return plan
