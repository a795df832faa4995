"""Reconciliation configuration.

ReconcileConfig is frozen (immutable). It is loaded from YAML:

    releases_dir: releases
    assets_lock: assets.lock
    local_release_pattern: '^(?P<release_name>...)...\\.tgz$'
    no_confirm: false
    verify_checksums: true
    log_level: INFO
    json_logs: false

releases_dir and assets_lock fall back to RELEASEDIR_RELEASES_DIR and
RELEASEDIR_ASSETS_LOCK when the file omits them.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any

import yaml  # type: ignore[import-untyped]
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from releasedir.release.pattern import DEFAULT_LOCAL_RELEASE_PATTERN, KeyPattern, PatternError

ENV_RELEASES_DIR = "RELEASEDIR_RELEASES_DIR"
ENV_ASSETS_LOCK = "RELEASEDIR_ASSETS_LOCK"

_ENV_FALLBACKS = {
    "releases_dir": ENV_RELEASES_DIR,
    "assets_lock": ENV_ASSETS_LOCK,
}


class ConfigError(Exception):
    """Raised when configuration cannot be loaded or is invalid."""


class ReconcileConfig(BaseModel):
    """Reconciliation configuration (frozen)."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    releases_dir: Path = Field(description="Directory holding compiled release tarballs")
    assets_lock: Path = Field(description="Path to assets.lock")
    local_release_pattern: str = Field(
        default=DEFAULT_LOCAL_RELEASE_PATTERN,
        description="Pattern decoding tarball filenames into release identities",
    )
    no_confirm: bool = Field(default=False, description="Delete extra releases without asking")
    verify_checksums: bool = Field(default=True, description="Verify sha1 of present releases")
    log_level: str = Field(default="INFO", description="Log level name")
    json_logs: bool = Field(default=False, description="Emit JSON log lines")

    @field_validator("local_release_pattern")
    @classmethod
    def validate_pattern(cls, v: str) -> str:
        """Pattern must compile with all required named groups."""
        try:
            KeyPattern(v)
        except PatternError as e:
            raise ValueError(str(e)) from e
        return v

    @field_validator("log_level", mode="before")
    @classmethod
    def validate_log_level(cls, v: Any) -> str:
        level = str(v).upper()
        if level not in logging.getLevelNamesMapping():
            raise ValueError(f"unknown log level {v!r}")
        return level

    def key_pattern(self) -> KeyPattern:
        """Compiled local release pattern."""
        return KeyPattern(self.local_release_pattern)


def read_config_file(path: Path) -> dict[str, Any]:
    """Read raw configuration values from a YAML file.

    Relative paths in the file are resolved against the file's directory.

    Args:
        path: Path to YAML config file.

    Returns:
        Unvalidated configuration values.

    Raises:
        ConfigError: If the file cannot be read or is not a YAML mapping.
    """
    try:
        with path.open() as f:
            data = yaml.safe_load(f) or {}
    except OSError as e:
        msg = f"Failed to read config {path}: {e}"
        raise ConfigError(msg) from e
    except yaml.YAMLError as e:
        msg = f"Invalid YAML in config {path}: {e}"
        raise ConfigError(msg) from e

    if not isinstance(data, dict):
        msg = f"Config {path} must contain a mapping, got {type(data).__name__}"
        raise ConfigError(msg)

    for key in _ENV_FALLBACKS:
        value = data.get(key)
        if isinstance(value, str) and not Path(value).is_absolute():
            data[key] = path.parent / value

    return data


def build_config(data: dict[str, Any]) -> ReconcileConfig:
    """Validate configuration values, filling paths from the environment.

    Args:
        data: Raw configuration values.

    Returns:
        Validated ReconcileConfig.

    Raises:
        ConfigError: If validation fails.
    """
    values = dict(data)
    for key, env_var in _ENV_FALLBACKS.items():
        if values.get(key) is None and os.environ.get(env_var):
            values[key] = os.environ[env_var]

    try:
        return ReconcileConfig.model_validate(values)
    except ValidationError as e:
        msg = f"Invalid configuration: {e}"
        raise ConfigError(msg) from e


def load_config(path: Path) -> ReconcileConfig:
    """Load and validate configuration from a YAML file.

    Args:
        path: Path to YAML config file.

    Returns:
        Validated ReconcileConfig.

    Raises:
        ConfigError: If the file cannot be read or is invalid.
    """
    return build_config(read_config_file(path))
