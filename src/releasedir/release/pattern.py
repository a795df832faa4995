"""Key pattern decoding for compiled release storage keys.

A key pattern is a regular expression with four required named groups:
    release_name, release_version, stemcell_os, stemcell_version

Example (object store layout "2.5/<release>/<tarball>"):
    ^2.5/.+/(?P<release_name>[a-z-_]+)-(?P<release_version>[0-9\\.]+)-
    (?P<stemcell_os>[a-z-_]+)-(?P<stemcell_version>[\\d\\.]+)\\.tgz$
"""

from __future__ import annotations

import re
from typing import TYPE_CHECKING

from releasedir.logging_config import get_logger
from releasedir.release.identity import ReleaseIdentity

if TYPE_CHECKING:
    from collections.abc import Iterable

logger = get_logger(__name__)


class KeyPatternError(Exception):
    """Base exception for key pattern operations."""


class PatternError(KeyPatternError):
    """Raised when a pattern is invalid or lacks a required named group."""


class NoMatchError(KeyPatternError):
    """Raised when a key cannot be decoded into a release identity."""

    def __init__(self, msg: str, key: str) -> None:
        super().__init__(msg)
        self.key = key


class DuplicateReleaseError(KeyPatternError):
    """Raised when two keys decode to the same release identity."""


RELEASE_NAME = "release_name"
RELEASE_VERSION = "release_version"
STEMCELL_OS = "stemcell_os"
STEMCELL_VERSION = "stemcell_version"

# Fixed order used in error messages
REQUIRED_GROUPS: tuple[str, ...] = (
    RELEASE_NAME,
    RELEASE_VERSION,
    STEMCELL_OS,
    STEMCELL_VERSION,
)

# Matches release_filename() output: {name}-{version}-{os}-{stemcell_version}.tgz
# A hyphenated version suffix (1.0.0-rc.1, 2.3.0-build.4) must contain a digit or
# a dot in each segment; the first segment without one starts the stemcell os.
DEFAULT_LOCAL_RELEASE_PATTERN = (
    r"^"
    r"(?P<release_name>[a-z][a-z0-9_-]*?)"
    r"-"
    r"(?P<release_version>[0-9][0-9A-Za-z._+]*(?:-[0-9A-Za-z_+]*[0-9.][0-9A-Za-z._+]*)*)"
    r"-"
    r"(?P<stemcell_os>[a-z][a-z0-9_-]*?)"
    r"-"
    r"(?P<stemcell_version>[0-9][0-9.]*)"
    r"\.tgz$"
)


class KeyPattern:
    """Compiled key pattern.

    Usage:
        pattern = KeyPattern(r"^(?P<release_name>...)...$")
        identity = pattern.decode("uaa-1.2.3-ubuntu-xenial-190.0.0.tgz")
    """

    __slots__ = ("_regex",)

    def __init__(self, pattern: str) -> None:
        """
        Compile a key pattern.

        Args:
            pattern: Regular expression with the four required named groups.

        Raises:
            PatternError: If the pattern does not compile or lacks a required group.
        """
        try:
            regex = re.compile(pattern)
        except re.error as e:
            msg = f"invalid key pattern {pattern!r}: {e}"
            raise PatternError(msg) from e

        missing = [name for name in REQUIRED_GROUPS if name not in regex.groupindex]
        if missing:
            msg = f"key pattern {pattern!r} is missing groups: {', '.join(missing)}"
            raise PatternError(msg)

        self._regex = regex

    @property
    def pattern(self) -> str:
        """Source text of the compiled pattern."""
        return self._regex.pattern

    def __repr__(self) -> str:
        return f"KeyPattern({self.pattern!r})"

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, KeyPattern):
            return NotImplemented
        return self.pattern == other.pattern

    def __hash__(self) -> int:
        return hash(self.pattern)

    def decode(self, key: str) -> ReleaseIdentity:
        """Decode a storage key or filename into a release identity.

        The whole key must match. Captures are used verbatim.

        Args:
            key: Object store key or filename.

        Returns:
            Decoded ReleaseIdentity.

        Raises:
            NoMatchError: If the key does not match, or a required group
                captured nothing.
        """
        match = self._regex.fullmatch(key)
        if match is None:
            msg = f"key {key!r} does not match regex {self.pattern!r}"
            raise NoMatchError(msg, key)

        fields: dict[str, str] = {}
        for name in REQUIRED_GROUPS:
            value = match.group(name)
            if not value:
                msg = f"key {key!r} matched but capture {name!r} is missing"
                raise NoMatchError(msg, key)
            fields[name] = value

        return ReleaseIdentity(
            name=fields[RELEASE_NAME],
            version=fields[RELEASE_VERSION],
            stemcell_os=fields[STEMCELL_OS],
            stemcell_version=fields[STEMCELL_VERSION],
        )

    def decode_many(self, keys: Iterable[str]) -> dict[ReleaseIdentity, str]:
        """Decode a listing of keys, skipping keys that are not releases.

        Args:
            keys: Keys from an object store listing.

        Returns:
            Dict mapping identity to the key it was decoded from.

        Raises:
            DuplicateReleaseError: If two keys decode to the same identity.
        """
        releases: dict[ReleaseIdentity, str] = {}
        for key in keys:
            try:
                identity = self.decode(key)
            except NoMatchError:
                logger.debug("Skipping key that is not a compiled release", extra={"key": key})
                continue

            if identity in releases:
                msg = (
                    f"keys {releases[identity]!r} and {key!r} both decode to release {identity}"
                )
                raise DuplicateReleaseError(msg)
            releases[identity] = key

        return releases


def compile_key_pattern(pattern: str) -> KeyPattern:
    """Compile a key pattern.

    Args:
        pattern: Regular expression with the four required named groups.

    Returns:
        Compiled KeyPattern.

    Raises:
        PatternError: If a required named group is missing.
    """
    return KeyPattern(pattern)
