"""Local releases directory: inventory, checksum verification, pruning.

The releases directory holds compiled release tarballs named so that a
KeyPattern can decode each filename into a ReleaseIdentity. The directory is
assumed to be owned by a single reconciliation run; nothing here locks it.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import TYPE_CHECKING

from releasedir.logging_config import get_logger
from releasedir.release.checksum import compute_file_sha1
from releasedir.release.identity import ReleaseIdentity
from releasedir.release.pattern import (
    DEFAULT_LOCAL_RELEASE_PATTERN,
    KeyPattern,
    NoMatchError,
)

if TYPE_CHECKING:
    from collections.abc import Callable, Mapping

    from releasedir.metrics import ReconcileMetrics
    from releasedir.release.lockfile import AssetsLock

Inventory = dict[ReleaseIdentity, Path]

CHECKSUM_MISMATCH_MESSAGE = "These downloaded releases do not match the checksum"


class ReleaseDirectoryError(Exception):
    """Base exception for releases directory operations."""


class DirectoryError(ReleaseDirectoryError):
    """Raised when the releases directory cannot be listed."""

    def __init__(self, msg: str, path: Path) -> None:
        super().__init__(msg)
        self.path = path


class InventoryCollisionError(DirectoryError):
    """Raised when two files in the directory decode to the same release."""


class ChecksumMismatchError(ReleaseDirectoryError):
    """Raised when downloaded releases do not match assets.lock.

    Attributes:
        releases: Names of the releases that failed verification.
        undeleted: Paths of failed releases that could not be removed.
    """

    def __init__(self, releases: list[str], undeleted: list[Path] | None = None) -> None:
        self.releases = releases
        self.undeleted = undeleted or []
        msg = f"{CHECKSUM_MISMATCH_MESSAGE}:\n" + "\n".join(f"  - {name}" for name in releases)
        if self.undeleted:
            msg += "\nThese files could not be removed:\n" + "\n".join(
                f"  - {path}" for path in self.undeleted
            )
        super().__init__(msg)


class DeletionError(ReleaseDirectoryError):
    """Raised when a release tarball cannot be deleted."""

    def __init__(self, release: ReleaseIdentity, path: Path) -> None:
        super().__init__(f"failed to delete release {release.name}")
        self.release = release
        self.path = path


class ConfirmationError(ReleaseDirectoryError):
    """Raised when deletion needs confirmation but no confirm callable is set."""


def _deletion_prompt(releases_dir: Path, extra: Mapping[ReleaseIdentity, Path]) -> str:
    lines = [f"The following releases in {releases_dir} are not in assets.lock:"]
    lines.extend(f"  - {path.name}" for _, path in sorted(extra.items()))
    lines.append("Delete these releases? (y/N)")
    return "\n".join(lines)


class LocalReleaseDirectory:
    """
    Reconciles a local releases directory against assets.lock.

    Usage:
        directory = LocalReleaseDirectory(confirm=prompt_user)
        local = directory.get_local_releases(Path("releases"))
        directory.verify_checksums(Path("releases"), local, assets_lock)
        directory.delete_extra_releases(Path("releases"), extra, no_confirm=False)
    """

    def __init__(
        self,
        pattern: KeyPattern | None = None,
        *,
        confirm: Callable[[str], bool] | None = None,
        logger: logging.Logger | None = None,
        metrics: ReconcileMetrics | None = None,
    ) -> None:
        """
        Initialize releases directory handler.

        Args:
            pattern: Pattern decoding tarball filenames. Defaults to
                DEFAULT_LOCAL_RELEASE_PATTERN.
            confirm: Called with a prompt before deleting extra releases;
                returns True to proceed.
            logger: Logger for progress notices.
            metrics: Optional metrics sink.
        """
        self._pattern = pattern or KeyPattern(DEFAULT_LOCAL_RELEASE_PATTERN)
        self._confirm = confirm
        self._logger = logger or get_logger(__name__)
        self._metrics = metrics

    @property
    def pattern(self) -> KeyPattern:
        """Pattern used to decode tarball filenames."""
        return self._pattern

    def get_local_releases(self, releases_dir: Path | str) -> Inventory:
        """Build an inventory of the release tarballs in a directory.

        Only immediate entries are considered. Sub-directories and files whose
        names do not decode are skipped.

        Args:
            releases_dir: Directory to scan.

        Returns:
            Dict mapping release identity to absolute tarball path.

        Raises:
            DirectoryError: If the directory cannot be listed.
            InventoryCollisionError: If two files decode to the same release.
        """
        releases_dir = Path(releases_dir)
        try:
            entries = sorted(releases_dir.iterdir())
        except OSError as e:
            msg = f"failed to list releases directory {releases_dir}: {e}"
            raise DirectoryError(msg, releases_dir) from e

        releases: Inventory = {}
        for entry in entries:
            if entry.is_dir():
                continue

            try:
                identity = self._pattern.decode(entry.name)
            except NoMatchError:
                self._logger.debug(
                    "Skipping file that is not a compiled release", extra={"path": str(entry)}
                )
                continue

            path = entry.absolute()
            if identity in releases:
                msg = (
                    f"files {releases[identity]} and {path} in {releases_dir} "
                    f"are both release {identity}"
                )
                raise InventoryCollisionError(msg, releases_dir)
            releases[identity] = path

        self._logger.info(
            f"Found {len(releases)} release(s) in {releases_dir}",
            extra={"releases_dir": str(releases_dir)},
        )
        if self._metrics is not None:
            self._metrics.record_scan(len(releases))
        return releases

    def verify_checksums(
        self,
        releases_dir: Path | str,
        downloaded: Mapping[ReleaseIdentity, Path | str],
        assets_lock: AssetsLock,
    ) -> None:
        """Check downloaded tarballs against the sha1 values in assets.lock.

        Every tarball that fails is deleted immediately, then one error lists
        all of them. A release missing from the lock, or locked without a sha1,
        cannot be verified and fails the same way.

        Args:
            releases_dir: Directory holding the tarballs (for log context).
            downloaded: Dict mapping release identity to tarball path.
            assets_lock: Lock declaring the expected sha1 per release.

        Raises:
            ChecksumMismatchError: If any tarball does not match.
        """
        releases_dir = Path(releases_dir)
        stemcell = assets_lock.stemcell
        failed: list[str] = []
        undeleted: list[Path] = []

        for identity, raw_path in sorted(downloaded.items()):
            path = Path(raw_path)

            if (identity.stemcell_os, identity.stemcell_version) != (stemcell.os, stemcell.version):
                self._logger.warning(
                    f"Release {identity} was compiled for a different stemcell than "
                    f"assets.lock ({stemcell.os}/{stemcell.version})",
                    extra={"path": str(path)},
                )

            locked = assets_lock.find_release(identity.name, identity.version)
            if locked is None:
                reason = "not in assets.lock"
            elif not locked.sha1:
                reason = "assets.lock has no sha1 for it"
            else:
                try:
                    actual = compute_file_sha1(path)
                except OSError as e:
                    reason = f"could not be read: {e}"
                else:
                    reason = "" if actual == locked.sha1 else f"sha1 is {actual}, want {locked.sha1}"

            if self._metrics is not None:
                self._metrics.record_checksum(matched=not reason)
            if not reason:
                self._logger.debug(f"Checksum ok for {identity}", extra={"path": str(path)})
                continue

            self._logger.error(
                f"Release {identity} failed verification: {reason}", extra={"path": str(path)}
            )
            failed.append(identity.name)
            try:
                path.unlink(missing_ok=True)
            except OSError as e:
                self._logger.warning(
                    f"Failed to remove release {identity} after checksum mismatch: {e}",
                    extra={"path": str(path)},
                )
                undeleted.append(path)
                if self._metrics is not None:
                    self._metrics.record_deletion_failure()

        if failed:
            raise ChecksumMismatchError(failed, undeleted)

        self._logger.info(
            f"Verified {len(downloaded)} release(s) in {releases_dir}",
            extra={"releases_dir": str(releases_dir)},
        )

    def delete_extra_releases(
        self,
        releases_dir: Path | str,
        extra: Mapping[ReleaseIdentity, Path | str],
        no_confirm: bool,
    ) -> bool:
        """Delete release tarballs that are no longer required.

        The caller decides what is extra. Stops at the first file that cannot
        be deleted; files deleted before it stay deleted.

        Args:
            releases_dir: Directory holding the tarballs (for prompt and log context).
            extra: Dict mapping release identity to tarball path.
            no_confirm: Skip the confirmation prompt.

        Returns:
            True if deletion ran, False if the user declined.

        Raises:
            ConfirmationError: If confirmation is needed but no confirm callable is set.
            DeletionError: If a tarball cannot be deleted (including a missing file).
        """
        releases_dir = Path(releases_dir)
        if not extra:
            return True

        paths = {identity: Path(path) for identity, path in extra.items()}

        if not no_confirm:
            if self._confirm is None:
                msg = (
                    f"deleting {len(paths)} release(s) from {releases_dir} needs confirmation "
                    "but no confirm callable is configured"
                )
                raise ConfirmationError(msg)
            if not self._confirm(_deletion_prompt(releases_dir, paths)):
                self._logger.info("Extra releases kept; deletion declined")
                return False

        for identity, path in sorted(paths.items()):
            try:
                path.unlink()
            except OSError as e:
                if self._metrics is not None:
                    self._metrics.record_deletion_failure()
                raise DeletionError(identity, path) from e

            self._logger.info(f"Deleted extra release {identity}", extra={"path": str(path)})
            if self._metrics is not None:
                self._metrics.record_deleted()

        return True
