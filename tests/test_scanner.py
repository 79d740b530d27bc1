"""
Unit Tests for Snapshot Builder

Author: shadowsync Project
License: MIT
"""

import os

import pytest
from unittest.mock import Mock

from shadowsync.core.errors import ScanError
from shadowsync.core.models import EntryKind, is_tool_artifact
from shadowsync.sync_engine.scanner import SnapshotBuilder
from shadowsync.utils.file_ops import DirEntryInfo, EntryType, LocalFileSystem

from conftest import OLD_NS, write_file


@pytest.fixture
def builder():
    return SnapshotBuilder(LocalFileSystem(retry_attempts=1, retry_delay=0))


class TestSnapshotBuilder:
    """Test suite for SnapshotBuilder."""

    def test_builds_tree(self, builder, tmp_path):
        """Test that files and folders land at their relative paths."""
        write_file(tmp_path, "A/B/c.txt", "hello")
        write_file(tmp_path, "top.txt")
        (tmp_path / "empty").mkdir()

        snapshot = builder.build(tmp_path)

        leaf = snapshot.get(("A", "B", "c.txt"))
        assert leaf.kind is EntryKind.FILE
        assert leaf.size == 5
        assert leaf.mtime_ns == OLD_NS
        assert snapshot.get(("empty",)).is_folder
        assert snapshot.get(("empty",)).children == {}
        assert snapshot.warnings == []

    def test_lexicographic_order(self, builder, tmp_path):
        for name in ["b", "c", "a"]:
            write_file(tmp_path, f"{name}/file")

        snapshot = builder.build(tmp_path)

        paths = [entry.path for entry in snapshot.iter_entries()]
        assert paths == [("a",), ("a", "file"), ("b",), ("b", "file"), ("c",), ("c", "file")]

    def test_symlinks_skipped_with_warning(self, builder, tmp_path):
        """Test that links are never followed or recorded."""
        write_file(tmp_path, "real/file.txt")
        os.symlink(tmp_path / "real", tmp_path / "link")

        snapshot = builder.build(tmp_path)

        assert snapshot.get(("link",)) is None
        assert snapshot.get(("real", "file.txt")) is not None
        assert any("link" in warning for warning in snapshot.warnings)

    def test_missing_root_raises(self, builder, tmp_path):
        with pytest.raises(ScanError):
            builder.build(tmp_path / "missing")

    def test_file_root_raises(self, builder, tmp_path):
        path = write_file(tmp_path, "file.txt")

        with pytest.raises(ScanError, match="not a directory"):
            builder.build(path)

    def test_unreadable_root_raises(self, tmp_path):
        fs = Mock()
        fs.scan_dir.side_effect = PermissionError("denied")

        with pytest.raises(ScanError, match="Cannot read root"):
            SnapshotBuilder(fs).build(tmp_path)

    def test_unreadable_subfolder_skipped(self, tmp_path):
        """Test that a failing subfolder is reported, not fatal."""
        def scan_dir(path):
            if path == tmp_path.resolve():
                return [
                    DirEntryInfo("locked", EntryType.DIRECTORY),
                    DirEntryInfo("ok.txt", EntryType.FILE, 3, OLD_NS),
                ]
            raise PermissionError("denied")

        fs = Mock()
        fs.scan_dir.side_effect = scan_dir

        snapshot = SnapshotBuilder(fs).build(tmp_path)

        assert snapshot.get(("locked",)) is None
        assert snapshot.get(("ok.txt",)).size == 3
        assert len(snapshot.warnings) == 1

    def test_ignore_applies_to_root_children(self, builder, tmp_path):
        """Test that tool artifacts are only ignored at the top level."""
        write_file(tmp_path, "SHADOWSYNC_LOST_AND_FOUND_20240101T000000_000000/x")
        write_file(tmp_path, "shadowsync_20240101T000000_000000.log")
        write_file(tmp_path, "sub/shadowsync_note.log")

        snapshot = builder.build(tmp_path, ignore=is_tool_artifact)

        assert [entry.path for entry in snapshot.iter_entries()] == [
            ("sub",), ("sub", "shadowsync_note.log")
        ]


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
