"""Release tarball checksums (sha1, as recorded in assets.lock)."""

from __future__ import annotations

import hashlib
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from pathlib import Path

SHA1_HEX_LENGTH = 40

_CHUNK_SIZE = 8192


def compute_file_sha1(filepath: Path) -> str:
    """Compute SHA1 hash of a file.

    Args:
        filepath: Path to file.

    Returns:
        Hex-encoded SHA1 hash (40 chars).

    Raises:
        FileNotFoundError: If file doesn't exist.
    """
    hasher = hashlib.sha1()  # noqa: S324 - assets.lock records sha1
    with filepath.open("rb") as f:
        for chunk in iter(lambda: f.read(_CHUNK_SIZE), b""):
            hasher.update(chunk)
    return hasher.hexdigest()
