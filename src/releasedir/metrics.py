"""
Prometheus metrics for release directory reconciliation.

A reconciliation is a short batch run, so metrics live in a private
CollectorRegistry and are written out once via the node exporter textfile
collector rather than served over HTTP.

No release names or paths are used as labels.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from prometheus_client import Counter, Gauge, write_to_textfile
from prometheus_client.registry import CollectorRegistry

if TYPE_CHECKING:
    from pathlib import Path


class ReconcileMetrics:
    """
    Counters and gauges for one reconciliation run.

    Usage:
        metrics = ReconcileMetrics()
        directory = LocalReleaseDirectory(metrics=metrics)
        ...
        metrics.write_textfile(Path("/var/lib/node_exporter/releasedir.prom"))
    """

    def __init__(self, registry: CollectorRegistry | None = None) -> None:
        """
        Initialize metrics.

        Args:
            registry: Prometheus CollectorRegistry. If None, a new private registry is used.
        """
        self._registry = registry or CollectorRegistry()

        self._releases_scanned = Gauge(
            "releasedir_releases_scanned",
            "Compiled release tarballs found in the releases directory on the last scan",
            registry=self._registry,
        )
        self._releases_missing = Gauge(
            "releasedir_releases_missing",
            "Releases required by assets.lock that are not in the releases directory",
            registry=self._registry,
        )
        self._checksums_verified = Counter(
            "releasedir_checksums_verified",
            "Release tarballs whose sha1 matched assets.lock",
            registry=self._registry,
        )
        self._checksum_mismatches = Counter(
            "releasedir_checksum_mismatches",
            "Release tarballs removed because their sha1 did not match assets.lock",
            registry=self._registry,
        )
        self._releases_deleted = Counter(
            "releasedir_releases_deleted",
            "Extra release tarballs deleted from the releases directory",
            registry=self._registry,
        )
        self._deletion_failures = Counter(
            "releasedir_deletion_failures",
            "Release tarballs that could not be deleted",
            registry=self._registry,
        )

    @property
    def registry(self) -> CollectorRegistry:
        """Registry holding these metrics."""
        return self._registry

    def record_scan(self, releases_found: int) -> None:
        self._releases_scanned.set(releases_found)

    def record_missing(self, releases_missing: int) -> None:
        self._releases_missing.set(releases_missing)

    def record_checksum(self, *, matched: bool) -> None:
        if matched:
            self._checksums_verified.inc()
        else:
            self._checksum_mismatches.inc()

    def record_deleted(self) -> None:
        self._releases_deleted.inc()

    def record_deletion_failure(self) -> None:
        self._deletion_failures.inc()

    def write_textfile(self, path: Path) -> None:
        """Write all metrics in Prometheus text format (atomic rename).

        Raises:
            OSError: If the file or its parent directory cannot be written.
        """
        path.parent.mkdir(parents=True, exist_ok=True)
        write_to_textfile(str(path), self._registry)

    def to_dict(self) -> dict[str, Any]:
        """Convert metrics to dictionary for reports."""
        return {
            "releases_scanned": self._sample("releasedir_releases_scanned"),
            "releases_missing": self._sample("releasedir_releases_missing"),
            "checksums_verified": self._sample("releasedir_checksums_verified_total"),
            "checksum_mismatches": self._sample("releasedir_checksum_mismatches_total"),
            "releases_deleted": self._sample("releasedir_releases_deleted_total"),
            "deletion_failures": self._sample("releasedir_deletion_failures_total"),
        }

    def _sample(self, name: str) -> int:
        value = self._registry.get_sample_value(name)
        return int(value) if value is not None else 0
