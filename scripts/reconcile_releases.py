#!/usr/bin/env python3
"""
Reconcile a directory of compiled release tarballs against assets.lock.

Scans the releases directory, verifies the sha1 of every required release
already present, deletes releases assets.lock no longer requires, and reports
releases that still need to be downloaded.

Usage:
    python scripts/reconcile_releases.py --releases-dir releases --assets-lock assets.lock

    # From a config file, no prompt, with a JSON report:
    python scripts/reconcile_releases.py --config releasedir.yml --no-confirm \\
        --report results/reconcile.json

Exit codes:
    0 = directory matches assets.lock
    1 = error (bad config, unreadable directory, checksum mismatch, failed delete)
    2 = reconciled, but required releases are missing
"""

from __future__ import annotations

import argparse
import sys
from pathlib import Path
from typing import Any

import orjson

from releasedir.config import ConfigError, ReconcileConfig, build_config, read_config_file
from releasedir.local.directory import LocalReleaseDirectory, ReleaseDirectoryError
from releasedir.logging_config import get_logger, setup_logging
from releasedir.metrics import ReconcileMetrics
from releasedir.reconcile.reconciler import Reconciler
from releasedir.release.identity import release_filename
from releasedir.release.lockfile import AssetsLockError, load_assets_lock

logger = get_logger("reconcile_releases")

EXIT_OK = 0
EXIT_ERROR = 1
EXIT_MISSING = 2


def prompt_confirm(prompt: str) -> bool:
    """Ask on the terminal; anything but y/yes declines."""
    print(prompt)
    try:
        answer = input("> ")
    except EOFError:
        return False
    return answer.strip().lower() in {"y", "yes"}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Reconcile a releases directory against assets.lock.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "--config",
        "-c",
        type=Path,
        default=None,
        help="YAML config file (flags below override it)",
    )
    parser.add_argument(
        "--releases-dir",
        type=Path,
        default=None,
        help="Directory holding compiled release tarballs",
    )
    parser.add_argument(
        "--assets-lock",
        type=Path,
        default=None,
        help="Path to assets.lock",
    )
    parser.add_argument(
        "--pattern",
        type=str,
        default=None,
        help="Regex decoding tarball filenames (needs release_name, release_version, "
        "stemcell_os, stemcell_version groups)",
    )
    parser.add_argument(
        "--no-confirm",
        action="store_true",
        default=None,
        help="Delete extra releases without asking",
    )
    parser.add_argument(
        "--skip-verify",
        action="store_true",
        help="Do not verify checksums of releases already present",
    )
    parser.add_argument(
        "--report",
        type=Path,
        default=None,
        help="Write a JSON report to this path",
    )
    parser.add_argument(
        "--metrics-textfile",
        type=Path,
        default=None,
        help="Write Prometheus metrics to this .prom file",
    )
    parser.add_argument(
        "--log-level",
        type=str,
        default=None,
        help="Log level (default: INFO)",
    )
    parser.add_argument(
        "--json-logs",
        action="store_true",
        default=None,
        help="Emit JSON log lines",
    )
    return parser


def resolve_config(args: argparse.Namespace) -> ReconcileConfig:
    """Merge the config file (if any) with command line overrides.

    Raises:
        ConfigError: If the merged configuration is invalid.
    """
    values: dict[str, Any] = {}
    if args.config is not None:
        values = read_config_file(args.config)

    overrides = {
        "releases_dir": args.releases_dir,
        "assets_lock": args.assets_lock,
        "local_release_pattern": args.pattern,
        "no_confirm": args.no_confirm,
        "log_level": args.log_level,
        "json_logs": args.json_logs,
    }
    values.update({k: v for k, v in overrides.items() if v is not None})
    if args.skip_verify:
        values["verify_checksums"] = False

    return build_config(values)


def write_report(path: Path, data: dict[str, Any]) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("wb") as f:
        f.write(orjson.dumps(data, option=orjson.OPT_INDENT_2 | orjson.OPT_SORT_KEYS))


def main(argv: list[str] | None = None) -> int:
    """Main entry point."""
    args = build_parser().parse_args(argv)

    try:
        config = resolve_config(args)
    except ConfigError as e:
        setup_logging()
        logger.error(str(e))
        return EXIT_ERROR

    setup_logging(level=config.log_level, json_format=config.json_logs)

    try:
        assets_lock = load_assets_lock(config.assets_lock)
    except AssetsLockError as e:
        logger.error(str(e))
        return EXIT_ERROR

    metrics = ReconcileMetrics()
    directory = LocalReleaseDirectory(
        config.key_pattern(),
        confirm=prompt_confirm,
        metrics=metrics,
    )
    reconciler = Reconciler(directory, metrics=metrics)

    report: dict[str, Any] = {"releases_dir": str(config.releases_dir)}
    exit_code = EXIT_OK
    try:
        result = reconciler.run(
            config.releases_dir,
            assets_lock,
            no_confirm=config.no_confirm,
            verify=config.verify_checksums,
        )
    except ReleaseDirectoryError as e:
        logger.error(str(e))
        report["error"] = str(e)
        exit_code = EXIT_ERROR
    else:
        report.update(result.to_dict())
        if result.missing:
            logger.warning(
                f"{len(result.missing)} release(s) still need to be downloaded",
                extra={
                    "releases": [release_filename(identity) for identity in result.missing],
                    "pattern": directory.pattern.pattern,
                },
            )
            exit_code = EXIT_MISSING
        else:
            logger.info("Releases directory matches assets.lock")

    report["metrics"] = metrics.to_dict()

    if args.report is not None:
        try:
            write_report(args.report, report)
        except OSError as e:
            logger.error(f"Failed to write report {args.report}: {e}")
            exit_code = EXIT_ERROR
        else:
            logger.info(f"Report saved to {args.report}")

    if args.metrics_textfile is not None:
        try:
            metrics.write_textfile(args.metrics_textfile)
        except OSError as e:
            logger.error(f"Failed to write metrics {args.metrics_textfile}: {e}")
            exit_code = EXIT_ERROR

    return exit_code


if __name__ == "__main__":
    sys.exit(main())
