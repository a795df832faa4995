"""Reconciler: scan, verify, and prune a releases directory in one run.

Downloading missing releases belongs to the object store client; the
reconciler only reports what is missing.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Any

from releasedir.logging_config import get_logger
from releasedir.reconcile.plan import ReconcilePlan, plan_reconciliation, required_releases

if TYPE_CHECKING:
    from releasedir.local.directory import LocalReleaseDirectory
    from releasedir.metrics import ReconcileMetrics
    from releasedir.release.identity import ReleaseIdentity
    from releasedir.release.lockfile import AssetsLock

logger = get_logger(__name__)


@dataclass
class ReconcileReport:
    """Outcome of one reconciliation run.

    Attributes:
        releases_dir: Directory that was reconciled.
        plan: Partition computed from the scan.
        verified: Whether satisfied releases were checksum-verified.
        deleted: Extra releases that were deleted.
        pruning_declined: True if the user declined deletion.
    """

    releases_dir: Path
    plan: ReconcilePlan
    verified: bool = False
    deleted: list[ReleaseIdentity] = field(default_factory=list)
    pruning_declined: bool = False

    @property
    def missing(self) -> list[ReleaseIdentity]:
        return self.plan.missing

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON reports."""
        return {
            "releases_dir": str(self.releases_dir),
            "verified": self.verified,
            "satisfied": [identity.to_dict() for identity in sorted(self.plan.satisfied)],
            "missing": [identity.to_dict() for identity in self.plan.missing],
            "deleted": [identity.to_dict() for identity in self.deleted],
            "pruning_declined": self.pruning_declined,
        }


class Reconciler:
    """
    Runs the reconciliation steps in order.

    1. Scan the releases directory
    2. Plan against assets.lock
    3. Verify checksums of required releases already present
    4. Delete releases that are no longer required
    """

    def __init__(
        self,
        directory: LocalReleaseDirectory,
        *,
        metrics: ReconcileMetrics | None = None,
    ) -> None:
        self._directory = directory
        self._metrics = metrics

    def run(
        self,
        releases_dir: Path | str,
        assets_lock: AssetsLock,
        *,
        no_confirm: bool = False,
        verify: bool = True,
    ) -> ReconcileReport:
        """Reconcile a releases directory against assets.lock.

        Args:
            releases_dir: Directory holding compiled release tarballs.
            assets_lock: Parsed assets.lock.
            no_confirm: Delete extra releases without asking.
            verify: Verify checksums of the required releases present.

        Returns:
            ReconcileReport.

        Raises:
            DirectoryError: If the directory cannot be scanned.
            ChecksumMismatchError: If a present release fails verification.
            DeletionError: If an extra release cannot be deleted.
        """
        releases_dir = Path(releases_dir)

        inventory = self._directory.get_local_releases(releases_dir)
        plan = plan_reconciliation(inventory, required_releases(assets_lock))
        if self._metrics is not None:
            self._metrics.record_missing(len(plan.missing))

        report = ReconcileReport(releases_dir=releases_dir, plan=plan)

        if verify:
            if plan.satisfied:
                self._directory.verify_checksums(releases_dir, plan.satisfied, assets_lock)
            report.verified = True

        if plan.extra:
            if self._directory.delete_extra_releases(releases_dir, plan.extra, no_confirm):
                report.deleted = sorted(plan.extra)
            else:
                report.pruning_declined = True

        for identity in plan.missing:
            logger.warning(f"Release {identity} is required by assets.lock but not present")

        return report
