"""
Tests for scripts/reconcile_releases.py command line entry point.
"""
from __future__ import annotations

import logging
from collections.abc import Iterator
from pathlib import Path

import orjson
import pytest

from releasedir.config import ENV_ASSETS_LOCK, ENV_RELEASES_DIR, ConfigError
from releasedir.release.pattern import DEFAULT_LOCAL_RELEASE_PATTERN
from scripts.reconcile_releases import (
    EXIT_ERROR,
    EXIT_MISSING,
    EXIT_OK,
    build_parser,
    main,
    prompt_confirm,
    resolve_config,
)

ABC_SHA1 = "a9993e364706816aba3e25717850c26c9cd0d89d"

ASSETS_LOCK = f"""\
releases:
  - name: uaa
    version: "1.2.3"
    sha1: {ABC_SHA1}
  - name: bpm
    version: "1.1.0"
    sha1: {ABC_SHA1}
stemcell_criteria:
  os: ubuntu-xenial
  version: "190.0.0"
"""

UAA = "uaa-1.2.3-ubuntu-xenial-190.0.0.tgz"
BPM = "bpm-1.1.0-ubuntu-xenial-190.0.0.tgz"
OLD_UAA = "uaa-1.2.2-ubuntu-xenial-190.0.0.tgz"


@pytest.fixture(autouse=True)
def _clear_env(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv(ENV_RELEASES_DIR, raising=False)
    monkeypatch.delenv(ENV_ASSETS_LOCK, raising=False)


@pytest.fixture(autouse=True)
def _restore_root_logger() -> Iterator[None]:
    root = logging.getLogger()
    handlers = list(root.handlers)
    level = root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)


@pytest.fixture
def workspace(tmp_path: Path) -> Path:
    (tmp_path / "releases").mkdir()
    (tmp_path / "assets.lock").write_text(ASSETS_LOCK)
    return tmp_path


def _args(workspace: Path, *extra: str) -> list[str]:
    return [
        "--releases-dir",
        str(workspace / "releases"),
        "--assets-lock",
        str(workspace / "assets.lock"),
        *extra,
    ]


def _read_report(path: Path) -> dict:
    return orjson.loads(path.read_bytes())


class TestResolveConfig:
    """Config file and flag merging."""

    def test_flags_only(self, workspace: Path) -> None:
        args = build_parser().parse_args(_args(workspace, "--no-confirm", "--skip-verify"))

        config = resolve_config(args)

        assert config.releases_dir == workspace / "releases"
        assert config.no_confirm is True
        assert config.verify_checksums is False

    def test_flags_override_file(self, workspace: Path) -> None:
        config_path = workspace / "releasedir.yml"
        config_path.write_text(
            "releases_dir: releases\nassets_lock: assets.lock\nlog_level: DEBUG\n"
        )
        args = build_parser().parse_args(
            ["--config", str(config_path), "--releases-dir", "/srv/releases"]
        )

        config = resolve_config(args)

        assert config.releases_dir == Path("/srv/releases")
        assert config.assets_lock == workspace / "assets.lock"
        assert config.log_level == "DEBUG"

    def test_unset_flags_keep_file_values(self, workspace: Path) -> None:
        config_path = workspace / "releasedir.yml"
        config_path.write_text(
            "releases_dir: releases\nassets_lock: assets.lock\n"
            "no_confirm: true\njson_logs: true\n"
        )
        args = build_parser().parse_args(["--config", str(config_path)])

        config = resolve_config(args)

        assert config.no_confirm is True
        assert config.json_logs is True

    def test_missing_paths(self) -> None:
        with pytest.raises(ConfigError):
            resolve_config(build_parser().parse_args([]))


class TestPromptConfirm:
    """Terminal confirmation."""

    @pytest.mark.parametrize("answer", ["y", "yes", " YES "])
    def test_accepts(self, monkeypatch: pytest.MonkeyPatch, answer: str) -> None:
        monkeypatch.setattr("builtins.input", lambda _prompt: answer)
        assert prompt_confirm("delete?") is True

    @pytest.mark.parametrize("answer", ["", "n", "no", "sure"])
    def test_declines(self, monkeypatch: pytest.MonkeyPatch, answer: str) -> None:
        monkeypatch.setattr("builtins.input", lambda _prompt: answer)
        assert prompt_confirm("delete?") is False

    def test_eof_declines(self, monkeypatch: pytest.MonkeyPatch) -> None:
        def _eof(_prompt: str) -> str:
            raise EOFError

        monkeypatch.setattr("builtins.input", _eof)
        assert prompt_confirm("delete?") is False

    def test_prints_prompt(
        self, monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]
    ) -> None:
        monkeypatch.setattr("builtins.input", lambda _prompt: "n")
        prompt_confirm("release uaa will be deleted")
        assert "release uaa will be deleted" in capsys.readouterr().out


class TestMain:
    """End-to-end runs of main()."""

    def test_complete_directory(self, workspace: Path) -> None:
        releases = workspace / "releases"
        (releases / UAA).write_bytes(b"abc")
        (releases / BPM).write_bytes(b"abc")
        report_path = workspace / "results" / "report.json"

        exit_code = main(_args(workspace, "--report", str(report_path)))

        assert exit_code == EXIT_OK
        report = _read_report(report_path)
        assert report["verified"] is True
        assert report["missing"] == []
        assert report["metrics"]["checksums_verified"] == 2
        assert report["metrics"]["releases_scanned"] == 2

    def test_missing_releases(self, workspace: Path) -> None:
        (workspace / "releases" / UAA).write_bytes(b"abc")
        report_path = workspace / "report.json"

        exit_code = main(_args(workspace, "--report", str(report_path)))

        assert exit_code == EXIT_MISSING
        report = _read_report(report_path)
        assert [r["name"] for r in report["missing"]] == ["bpm"]

    def test_prunes_without_prompt(self, workspace: Path) -> None:
        releases = workspace / "releases"
        (releases / UAA).write_bytes(b"abc")
        (releases / BPM).write_bytes(b"abc")
        (releases / OLD_UAA).write_bytes(b"old")

        exit_code = main(_args(workspace, "--no-confirm"))

        assert exit_code == EXIT_OK
        assert not (releases / OLD_UAA).exists()

    def test_prompt_declined_keeps_extras(
        self, workspace: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        releases = workspace / "releases"
        (releases / UAA).write_bytes(b"abc")
        (releases / BPM).write_bytes(b"abc")
        (releases / OLD_UAA).write_bytes(b"old")
        monkeypatch.setattr("builtins.input", lambda _prompt: "n")
        report_path = workspace / "report.json"

        exit_code = main(_args(workspace, "--report", str(report_path)))

        assert exit_code == EXIT_OK
        assert (releases / OLD_UAA).exists()
        assert _read_report(report_path)["pruning_declined"] is True

    def test_checksum_mismatch(self, workspace: Path) -> None:
        releases = workspace / "releases"
        (releases / UAA).write_bytes(b"tampered")
        report_path = workspace / "report.json"

        exit_code = main(_args(workspace, "--report", str(report_path)))

        assert exit_code == EXIT_ERROR
        assert not (releases / UAA).exists()
        report = _read_report(report_path)
        assert "do not match the checksum" in report["error"]
        assert report["metrics"]["checksum_mismatches"] == 1

    def test_skip_verify(self, workspace: Path) -> None:
        releases = workspace / "releases"
        (releases / UAA).write_bytes(b"tampered")
        (releases / BPM).write_bytes(b"tampered")

        assert main(_args(workspace, "--skip-verify")) == EXIT_OK
        assert (releases / UAA).exists()

    def test_missing_releases_dir(self, workspace: Path) -> None:
        (workspace / "releases").rmdir()
        assert main(_args(workspace)) == EXIT_ERROR

    def test_bad_assets_lock(self, workspace: Path) -> None:
        (workspace / "assets.lock").write_text("releases: [\n")
        assert main(_args(workspace)) == EXIT_ERROR

    def test_bad_pattern(self, workspace: Path) -> None:
        assert main(_args(workspace, "--pattern", "^(.+)$")) == EXIT_ERROR

    def test_metrics_textfile(self, workspace: Path) -> None:
        (workspace / "releases" / UAA).write_bytes(b"abc")
        prom = workspace / "releasedir.prom"

        main(_args(workspace, "--metrics-textfile", str(prom)))

        text = prom.read_text()
        assert "releasedir_releases_scanned 1.0" in text
        assert "releasedir_releases_missing 1.0" in text

    def test_metrics_textfile_creates_parent(self, workspace: Path) -> None:
        prom = workspace / "node_exporter" / "textfile" / "releasedir.prom"

        main(_args(workspace, "--metrics-textfile", str(prom)))

        assert prom.exists()

    def test_unwritable_metrics_textfile(self, workspace: Path) -> None:
        """An output path under a regular file fails the run cleanly."""
        (workspace / "releases" / UAA).write_bytes(b"abc")
        (workspace / "releases" / BPM).write_bytes(b"abc")
        prom = workspace / "assets.lock" / "releasedir.prom"

        assert main(_args(workspace, "--metrics-textfile", str(prom))) == EXIT_ERROR

    def test_unwritable_report(self, workspace: Path) -> None:
        (workspace / "releases" / UAA).write_bytes(b"abc")
        (workspace / "releases" / BPM).write_bytes(b"abc")
        report_path = workspace / "assets.lock" / "report.json"

        assert main(_args(workspace, "--report", str(report_path))) == EXIT_ERROR

    def test_unquoted_lock_version_keeps_directory(self, workspace: Path) -> None:
        """A lock YAML would misread (1.10 -> 1.1) fails before anything is pruned."""
        (workspace / "assets.lock").write_text(
            "releases:\n"
            "  - name: uaa\n"
            "    version: 1.10\n"
            f"    sha1: {ABC_SHA1}\n"
            "stemcell_criteria:\n"
            "  os: ubuntu-jammy\n"
            '  version: "1.83"\n'
        )
        required = workspace / "releases" / "uaa-1.10-ubuntu-jammy-1.83.tgz"
        required.write_bytes(b"abc")

        assert main(_args(workspace, "--no-confirm", "--skip-verify")) == EXIT_ERROR
        assert required.exists()

    def test_missing_warning_names_pattern(
        self, workspace: Path, capsys: pytest.CaptureFixture[str]
    ) -> None:
        """The still-missing warning carries the filename pattern in effect."""
        (workspace / "releases" / UAA).write_bytes(b"abc")

        assert main(_args(workspace, "--json-logs")) == EXIT_MISSING

        lines = [orjson.loads(line) for line in capsys.readouterr().err.splitlines() if line]
        warning = next(line for line in lines if "still need to be downloaded" in line["msg"])
        assert warning["releases"] == [BPM]
        assert warning["pattern"] == DEFAULT_LOCAL_RELEASE_PATTERN
