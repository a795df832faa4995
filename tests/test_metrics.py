"""Tests for reconciliation metrics."""

from __future__ import annotations

from pathlib import Path

from prometheus_client.registry import CollectorRegistry

from releasedir.metrics import ReconcileMetrics


class TestReconcileMetrics:
    """ReconcileMetrics counters and export."""

    def test_starts_at_zero(self) -> None:
        assert ReconcileMetrics().to_dict() == {
            "releases_scanned": 0,
            "releases_missing": 0,
            "checksums_verified": 0,
            "checksum_mismatches": 0,
            "releases_deleted": 0,
            "deletion_failures": 0,
        }

    def test_records(self) -> None:
        metrics = ReconcileMetrics()

        metrics.record_scan(4)
        metrics.record_missing(1)
        metrics.record_checksum(matched=True)
        metrics.record_checksum(matched=True)
        metrics.record_checksum(matched=False)
        metrics.record_deleted()
        metrics.record_deletion_failure()

        assert metrics.to_dict() == {
            "releases_scanned": 4,
            "releases_missing": 1,
            "checksums_verified": 2,
            "checksum_mismatches": 1,
            "releases_deleted": 1,
            "deletion_failures": 1,
        }

    def test_gauge_overwritten_by_rescan(self) -> None:
        metrics = ReconcileMetrics()
        metrics.record_scan(4)
        metrics.record_scan(2)
        assert metrics.to_dict()["releases_scanned"] == 2

    def test_instances_do_not_share_state(self) -> None:
        first = ReconcileMetrics()
        second = ReconcileMetrics()
        first.record_deleted()
        assert second.to_dict()["releases_deleted"] == 0

    def test_uses_given_registry(self) -> None:
        registry = CollectorRegistry()
        metrics = ReconcileMetrics(registry)
        metrics.record_scan(3)

        assert metrics.registry is registry
        assert registry.get_sample_value("releasedir_releases_scanned") == 3.0

    def test_write_textfile(self, tmp_path: Path) -> None:
        metrics = ReconcileMetrics()
        metrics.record_scan(3)
        metrics.record_deleted()
        path = tmp_path / "releasedir.prom"

        metrics.write_textfile(path)

        text = path.read_text()
        assert "releasedir_releases_scanned 3.0" in text
        assert "releasedir_releases_deleted_total 1.0" in text
        assert "releasedir_checksum_mismatches_total 0.0" in text
