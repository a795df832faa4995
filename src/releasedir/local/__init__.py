"""Local releases directory inventory, verification, and pruning."""

from releasedir.local.directory import (
    CHECKSUM_MISMATCH_MESSAGE,
    ChecksumMismatchError,
    ConfirmationError,
    DeletionError,
    DirectoryError,
    Inventory,
    InventoryCollisionError,
    LocalReleaseDirectory,
    ReleaseDirectoryError,
)

__all__ = [
    "CHECKSUM_MISMATCH_MESSAGE",
    "ChecksumMismatchError",
    "ConfirmationError",
    "DeletionError",
    "DirectoryError",
    "Inventory",
    "InventoryCollisionError",
    "LocalReleaseDirectory",
    "ReleaseDirectoryError",
]
