"""
Unit Tests for Run Log

Author: shadowsync Project
License: MIT
"""

import json
from datetime import datetime

import pytest

from shadowsync.core.models import (
    Action,
    ActionResult,
    ActionStatus,
    RelocationReason,
    RunCounters,
)
from shadowsync.core.run_log import RunLog


def read_records(path):
    return [json.loads(line) for line in path.read_text(encoding="utf-8").splitlines()]


class TestRunLog:
    """Test suite for RunLog."""

    def test_writes_json_lines(self, tmp_path, make_settings):
        """Test header, action and summary records."""
        path = tmp_path / "logs" / "shadowsync_run.log"
        action = Action.relocate(("old", "file.txt"), RelocationReason.ORPHANED)
        saved = tmp_path / "lf" / "old" / "file.txt"

        with RunLog(path) as run_log:
            run_log.header(make_settings(), "20240101T000000_000000", datetime(2024, 1, 1))
            run_log.attempted(action)
            run_log.record(ActionResult(action, ActionStatus.SUCCEEDED, lost_and_found_path=saved))
            run_log.summary(RunCounters(relocated=1), run_id="20240101T000000_000000")

        header, attempted, outcome, summary = read_records(path)

        assert header["event"] == "header"
        assert header["settings"]["checksum"] is False
        assert header["settings"]["source"] == make_settings().source
        assert attempted["status"] == "attempted"
        assert outcome["action"] == "relocate"
        assert outcome["path"] == "old/file.txt"
        assert outcome["reason"] == "orphaned"
        assert outcome["status"] == "succeeded"
        assert outcome["lost_and_found"] == str(saved)
        assert summary["event"] == "summary"
        assert summary["counters"]["relocated"] == 1

    def test_versioned_overwrite_marked_superseded(self, tmp_path):
        """Test that the old version's reason is recorded, not inferred."""
        path = tmp_path / "run.log"
        versioned = Action.overwrite_file(("docs", "f.txt"), versioned=True)
        plain = Action.overwrite_file(("docs", "g.txt"), versioned=False)

        with RunLog(path) as run_log:
            run_log.record(ActionResult(versioned, ActionStatus.SUCCEEDED, lost_and_found_path=tmp_path / "lf"))
            run_log.record(ActionResult(plain, ActionStatus.SUCCEEDED))

        first, second = read_records(path)
        assert first["reason"] == "superseded"
        assert first["versioned"] is True
        assert second["reason"] is None

    def test_failure_logged_as_error(self, tmp_path):
        path = tmp_path / "run.log"
        action = Action.copy_file(("x.txt",))

        with RunLog(path) as run_log:
            run_log.record(ActionResult(action, ActionStatus.FAILED, error_message="boom"))

        [record] = read_records(path)
        assert record["levelname"] == "ERROR"
        assert record["error"] == "boom"

    def test_abort_is_recorded(self, tmp_path):
        """Test that an exception inside the run leaves a closing record."""
        path = tmp_path / "run.log"

        with pytest.raises(RuntimeError):
            with RunLog(path) as run_log:
                run_log.note("scan warning", event="scan_warning")
                raise RuntimeError("disk vanished")

        records = read_records(path)
        assert records[-1]["event"] == "error"
        assert "disk vanished" in records[-1]["message"]

    def test_write_after_close_rejected(self, tmp_path):
        run_log = RunLog(tmp_path / "run.log").open()
        run_log.close()
        run_log.close()

        with pytest.raises(RuntimeError):
            run_log.note("late")

    def test_verbose_echoes_to_stdout(self, tmp_path, capsys):
        with RunLog(tmp_path / "run.log", verbose=True) as run_log:
            run_log.note("hello there")

        assert "hello there" in capsys.readouterr().out


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
