"""Compiled release identity, key patterns, and assets.lock.

- ReleaseIdentity value type and canonical tarball naming
- KeyPattern decoding of object store keys and local filenames
- assets.lock loading with schema validation
"""

from releasedir.release.checksum import compute_file_sha1
from releasedir.release.identity import ReleaseIdentity, release_filename
from releasedir.release.lockfile import (
    AssetsLock,
    AssetsLockError,
    LockedRelease,
    Stemcell,
    load_assets_lock,
)
from releasedir.release.pattern import (
    DEFAULT_LOCAL_RELEASE_PATTERN,
    REQUIRED_GROUPS,
    DuplicateReleaseError,
    KeyPattern,
    KeyPatternError,
    NoMatchError,
    PatternError,
    compile_key_pattern,
)

__all__ = [
    "DEFAULT_LOCAL_RELEASE_PATTERN",
    "REQUIRED_GROUPS",
    "AssetsLock",
    "AssetsLockError",
    "DuplicateReleaseError",
    "KeyPattern",
    "KeyPatternError",
    "LockedRelease",
    "NoMatchError",
    "PatternError",
    "ReleaseIdentity",
    "Stemcell",
    "compile_key_pattern",
    "compute_file_sha1",
    "load_assets_lock",
    "release_filename",
]
