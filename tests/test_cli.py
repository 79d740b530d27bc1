"""
Unit Tests for Command Line Interface

Author: shadowsync Project
License: MIT
"""

import logging

import pytest
import yaml
from unittest.mock import patch

from shadowsync.cli import EXIT_ERROR, EXIT_FAILED_ACTIONS, EXIT_OK, build_parser, main, parse_overrides
from shadowsync.config.schema import SyncSettings
from shadowsync.core.errors import ScanError

from conftest import NEW_NS, write_file


@pytest.fixture(autouse=True)
def isolated(monkeypatch, tmp_path):
    """Keep the environment and the shadowsync logger configuration per test."""
    monkeypatch.chdir(tmp_path)
    for name in list(SyncSettings.__fields__) + ["config"]:
        monkeypatch.delenv(f"SHADOWSYNC_{name.upper()}", raising=False)
    yield
    logging.getLogger("shadowsync").handlers.clear()


class TestParser:
    def test_unset_flags_are_none(self):
        """Test that options left out do not override other settings sources."""
        overrides = parse_overrides(build_parser().parse_args(["src", "dst"]))

        assert overrides["source"] == "src"
        assert overrides["dry_run"] is None
        assert overrides["delete"] is None

    def test_negative_flags(self):
        args = build_parser().parse_args(["src", "dst", "--no-delete", "--no-keep-versions", "-n", "--log-level", "debug"])
        overrides = parse_overrides(args)

        assert overrides["delete"] is False
        assert overrides["keep_versions"] is False
        assert overrides["dry_run"] is True
        assert overrides["log_level"] == "DEBUG"


class TestMain:
    """Test suite for exit codes."""

    def test_successful_run(self, roots):
        source, target = roots
        write_file(source, "a.txt", "alpha")

        assert main([str(source), str(target)]) == EXIT_OK
        assert (target / "a.txt").read_text() == "alpha"

    def test_dry_run_flag(self, roots, tmp_path):
        source, target = roots
        write_file(source, "a.txt")

        code = main([str(source), str(target), "--dry-run", "--log-dir", str(tmp_path / "logs")])

        assert code == EXIT_OK
        assert list(target.iterdir()) == []

    def test_config_file(self, roots, tmp_path):
        source, target = roots
        write_file(source, "a.txt")
        config_path = tmp_path / "config.yaml"
        config_path.write_text(yaml.safe_dump({"source": str(source), "target": str(target)}))

        assert main(["-c", str(config_path)]) == EXIT_OK
        assert (target / "a.txt").exists()

    def test_missing_target_is_config_error(self, roots):
        source, _ = roots

        assert main([str(source)]) == EXIT_ERROR

    def test_nested_roots_is_config_error(self, roots):
        source, _ = roots
        (source / "inner").mkdir()

        assert main([str(source), str(source / "inner")]) == EXIT_ERROR

    def test_failed_actions_exit_code(self, roots):
        source, target = roots
        write_file(source, "f.txt", "new", mtime_ns=NEW_NS)
        write_file(target, "f.txt", "old")

        with patch("shadowsync.utils.file_ops.LocalFileSystem.copy_file", side_effect=OSError("disk full")):
            assert main([str(source), str(target)]) == EXIT_FAILED_ACTIONS

        assert (target / "f.txt").read_text() == "old"

    def test_scan_error_exit_code(self, roots):
        source, target = roots

        with patch("shadowsync.cli.SyncEngine.run", side_effect=ScanError("gone", str(source))):
            assert main([str(source), str(target)]) == EXIT_ERROR


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
