"""
Structured logging configuration for releasedir.

Provides JSON-formatted (or human-readable) logging with:
- Credential filtering (object store keys and secrets never reach logs)
- Presigned URLs reduced to their path
- Bounded extra fields (long release lists are summarized)

Usage:
    from releasedir.logging_config import setup_logging, get_logger

    setup_logging()  # Call once at startup
    logger = get_logger(__name__)
    logger.info("message", extra={"release": "uaa"})
"""

from __future__ import annotations

import json
import logging
import re
import sys
from datetime import UTC, datetime
from typing import Any
from urllib.parse import urlsplit

# Matches URLs, including presigned object store URLs with signatures in the query
_URL_PATTERN = re.compile(r"(https?://[^\s\"'<>]+)")

_SENSITIVE_PATTERNS: list[tuple[re.Pattern[str], str]] = [
    # aws_secret_access_key=..., secret_access_key: ...
    (
        re.compile(r"\b(aws_)?(secret_access_key|session_token)[=:]\s*['\"]?[\w/+=\-]+['\"]?", re.I),
        "[SECRET]",
    ),
    # AWS access key ids
    (re.compile(r"\b(AKIA|ASIA)[0-9A-Z]{16}\b"), "[ACCESS_KEY_ID]"),
    # Bearer tokens
    (re.compile(r"\b(bearer|token)[=:\s]+['\"]?[\w\-\.]+['\"]?", re.I), "[TOKEN]"),
    # user:password@ in URLs that slipped past URL normalization
    (re.compile(r"//[^/\s:@]+:[^/\s@]+@"), "//[CREDENTIALS]@"),
]

# Extra fields that should NEVER appear in logs
BLOCKED_FIELDS: frozenset[str] = frozenset(
    {
        "secret",
        "token",
        "password",
        "access_key",
        "credential",
        "authorization",
        "session",
    }
)

# Lists longer than this are summarized
MAX_LIST_ITEMS = 20

_RESERVED_RECORD_ATTRS: frozenset[str] = frozenset(
    {
        "name",
        "msg",
        "args",
        "created",
        "filename",
        "funcName",
        "levelname",
        "levelno",
        "lineno",
        "module",
        "msecs",
        "pathname",
        "process",
        "processName",
        "relativeCreated",
        "stack_info",
        "exc_info",
        "exc_text",
        "thread",
        "threadName",
        "message",
        "taskName",
    }
)


def _sanitize_url_in_text(match: re.Match[str]) -> str:
    """Replace URL with scheme, host and path only."""
    parts = urlsplit(match.group(1))
    host = parts.hostname or ""
    return f"{parts.scheme}://{host}{parts.path}"


def _sanitize_text(text: str) -> str:
    """Sanitize free-form text (msg, exc) to remove credentials.

    Removes/normalizes:
    - URLs → scheme://host/path (drops presigned query strings and userinfo)
    - secret access keys, session tokens → [SECRET]
    - access key ids → [ACCESS_KEY_ID]
    """
    if not text:
        return text

    result = _URL_PATTERN.sub(_sanitize_url_in_text, text)

    for pattern, replacement in _SENSITIVE_PATTERNS:
        result = pattern.sub(replacement, result)

    return result


def _filter_log_record(record: dict[str, Any], *, _depth: int = 0) -> dict[str, Any]:
    """Drop credential fields and bound the size of extra fields.

    Recursively filters nested dicts up to depth 3.
    """
    if _depth > 3:
        return {"_truncated": "max depth exceeded"}

    filtered: dict[str, Any] = {}

    for key, value in record.items():
        key_lower = key.lower()

        if any(blocked in key_lower for blocked in BLOCKED_FIELDS):
            continue

        if isinstance(value, (int, float, bool, type(None))):
            filtered[key] = value
        elif isinstance(value, str):
            filtered[key] = _sanitize_text(value)
        elif isinstance(value, (list, tuple, set, frozenset)):
            if len(value) <= MAX_LIST_ITEMS:
                filtered[key] = [
                    v if isinstance(v, (int, float, bool)) else _sanitize_text(str(v))
                    for v in value
                ]
            else:
                filtered[key] = f"[list:{len(value)} items]"
        elif isinstance(value, dict):
            filtered[key] = _filter_log_record(value, _depth=_depth + 1)
        else:
            # Paths, ReleaseIdentity, etc.
            filtered[key] = _sanitize_text(str(value))

    return filtered


def _extra_fields(record: logging.LogRecord) -> dict[str, Any]:
    return {k: v for k, v in record.__dict__.items() if k not in _RESERVED_RECORD_ATTRS}


class JsonFormatter(logging.Formatter):
    """JSON log formatter for structured logging.

    Output format (one object per line):
    {"ts":"2026-01-01T00:00:00.000+00:00","level":"INFO","logger":"module","msg":"...", ...}
    """

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON."""
        log_dict: dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, tz=UTC).isoformat(timespec="milliseconds"),
            "level": record.levelname,
            "logger": record.name,
            "msg": _sanitize_text(record.getMessage()),
        }

        if record.levelno >= logging.WARNING:
            log_dict["file"] = record.filename
            log_dict["line"] = record.lineno

        if record.exc_info:
            log_dict["exc"] = _sanitize_text(self.formatException(record.exc_info))

        extra = _extra_fields(record)
        if extra:
            log_dict.update(_filter_log_record(extra))

        return json.dumps(log_dict, default=str, ensure_ascii=False)


class SimpleFormatter(logging.Formatter):
    """Human-readable formatter for interactive runs."""

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as human-readable string."""
        base = f"{record.levelname:8s} {record.name}: {_sanitize_text(record.getMessage())}"

        extra = _extra_fields(record)
        if extra:
            filtered = _filter_log_record(extra)
            if filtered:
                extra_str = " ".join(f"{k}={v}" for k, v in filtered.items())
                base = f"{base} | {extra_str}"

        if record.exc_info:
            base = f"{base}\n{_sanitize_text(self.formatException(record.exc_info))}"

        return base


def setup_logging(
    *,
    level: int | str = logging.INFO,
    json_format: bool = False,
    stream: Any = None,
) -> None:
    """Configure logging for the application.

    Call once at startup.

    Args:
        level: Log level (default INFO).
        json_format: Use JSON formatter (default False, human-readable).
        stream: Output stream (default stderr).
    """
    if stream is None:
        stream = sys.stderr

    handler = logging.StreamHandler(stream)
    handler.setFormatter(JsonFormatter() if json_format else SimpleFormatter())

    root = logging.getLogger()
    root.setLevel(level)

    # Remove existing handlers to avoid duplicates
    root.handlers.clear()
    root.addHandler(handler)

    # Object store clients are chatty at INFO
    logging.getLogger("botocore").setLevel(logging.WARNING)
    logging.getLogger("urllib3").setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    """Get a logger instance.

    Args:
        name: Logger name (typically __name__).

    Returns:
        Logger instance.
    """
    return logging.getLogger(name)
