"""
Unit Tests for Move Matcher

Author: shadowsync Project
License: MIT
"""

import pytest

from shadowsync.core.models import ContentSignature, Entry, EntryKind
from shadowsync.sync_engine.move_matcher import MoveMatcher, Relocation
from shadowsync.sync_engine.scanner import SnapshotBuilder
from shadowsync.utils.file_ops import LocalFileSystem

from conftest import write_file


def scan(root):
    return SnapshotBuilder(LocalFileSystem(retry_attempts=1, retry_delay=0)).build(root)


def folder(name, *children):
    entry = Entry(name=name, kind=EntryKind.FOLDER, path=(name,))
    for child_name, kind in children:
        entry.children[child_name] = Entry(name=child_name, kind=kind, path=(name, child_name))
    return entry


class TestContentSignature:
    """Test suite for folder signatures."""

    def test_order_independent(self):
        first = folder("a", ("x", EntryKind.FILE), ("y", EntryKind.FILE))
        second = folder("b", ("y", EntryKind.FILE), ("x", EntryKind.FILE))

        assert ContentSignature.of(first) == ContentSignature.of(second)

    def test_kind_matters(self):
        as_file = folder("a", ("x", EntryKind.FILE))
        as_folder = folder("b", ("x", EntryKind.FOLDER))

        assert ContentSignature.of(as_file) != ContentSignature.of(as_folder)

    def test_empty(self):
        assert ContentSignature.of(folder("a")).is_empty()


class TestMoveMatcher:
    """Test suite for MoveMatcher."""

    def test_detects_rename(self, roots):
        """Test the A/B -> A/C rename case."""
        source, target = roots
        write_file(source, "A/C/x.txt")
        write_file(source, "A/C/y.txt")
        write_file(target, "A/B/x.txt")
        write_file(target, "A/B/y.txt")

        relocations = MoveMatcher().match(scan(source), scan(target))

        assert relocations == [Relocation(("A", "B"), ("A", "C"))]

    def test_no_candidates(self, roots):
        source, target = roots
        write_file(source, "same/file")
        write_file(target, "same/file")

        assert MoveMatcher().match(scan(source), scan(target)) == []

    def test_ambiguous_left_unmatched(self, roots):
        """Test that two orphans and two new folders with one signature stay unmatched."""
        source, target = roots
        for name in ["new1", "new2"]:
            write_file(source, f"{name}/data.bin")
        for name in ["old1", "old2"]:
            write_file(target, f"{name}/data.bin")

        assert MoveMatcher().match(scan(source), scan(target)) == []

    def test_name_tie_break(self, roots):
        """Test that a shared base name resolves an ambiguous group."""
        source, target = roots
        write_file(source, "moved/photos/img.jpg")
        write_file(source, "moved/videos/img.jpg")
        write_file(target, "photos/img.jpg")
        write_file(target, "videos/img.jpg")

        relocations = MoveMatcher().match(scan(source), scan(target))

        assert Relocation(("photos",), ("moved", "photos")) in relocations
        assert Relocation(("videos",), ("moved", "videos")) in relocations

    def test_empty_folders_never_match(self, roots):
        source, target = roots
        (source / "fresh").mkdir()
        (target / "stale").mkdir()

        assert MoveMatcher().match(scan(source), scan(target)) == []

    def test_descendants_not_matched_separately(self, roots):
        """Test that a matched folder carries its subtree."""
        source, target = roots
        write_file(source, "Renamed/inner/deep.txt")
        write_file(source, "Renamed/top.txt")
        write_file(target, "Original/inner/deep.txt")
        write_file(target, "Original/top.txt")

        relocations = MoveMatcher().match(scan(source), scan(target))

        assert relocations == [Relocation(("Original",), ("Renamed",))]

    def test_ancestors_of_matched_folders_withdrawn(self, roots):
        """Test that a parent whose child already moved is not matched later."""
        source, target = roots
        write_file(source, "N1/B/w")
        write_file(source, "N1/k")
        write_file(source, "M/N2/B/w")
        write_file(source, "M/N2/k")
        write_file(source, "R/z")
        write_file(target, "A/B/z")
        write_file(target, "A/k")
        write_file(target, "O/N2/B/w")
        write_file(target, "O/N2/k")
        source_snapshot = scan(source)
        target_snapshot = scan(target)
        matcher = MoveMatcher()

        relocations = matcher.match(source_snapshot, target_snapshot)

        assert relocations == [
            Relocation(("A", "B"), ("R",)),
            Relocation(("O",), ("M",)),
        ]
        assert matcher.apply(target_snapshot, relocations) == relocations
        assert target_snapshot.get(("R", "z")) is not None
        assert target_snapshot.get(("M", "N2", "B", "w")) is not None

    def test_apply_skips_missing_folder(self, roots):
        """Test that a relocation whose folder is gone is dropped, not fatal."""
        _, target = roots
        write_file(target, "present/x.txt")
        target_snapshot = scan(target)
        relocations = [
            Relocation(("gone",), ("elsewhere",)),
            Relocation(("present",), ("moved",)),
        ]

        applied = MoveMatcher().apply(target_snapshot, relocations)

        assert applied == [Relocation(("present",), ("moved",))]
        assert target_snapshot.get(("moved", "x.txt")) is not None

    def test_apply_rewrites_snapshot(self, roots):
        """Test that apply moves the subtree and keeps entry identity."""
        source, target = roots
        write_file(source, "A/C/x.txt")
        write_file(target, "A/B/x.txt")
        target_snapshot = scan(target)
        original = target_snapshot.get(("A", "B", "x.txt"))
        matcher = MoveMatcher()

        applied = matcher.apply(target_snapshot, matcher.match(scan(source), target_snapshot))

        assert applied == [Relocation(("A", "B"), ("A", "C"))]
        assert target_snapshot.get(("A", "B")) is None
        moved = target_snapshot.get(("A", "C", "x.txt"))
        assert moved is original
        assert moved.path == ("A", "C", "x.txt")
        assert moved.origin == ("A", "B", "x.txt")

    def test_apply_skips_blocked_destination(self, roots):
        """Test that a relocation under a target file is dropped."""
        source, target = roots
        write_file(target, "old/x.txt")
        write_file(target, "blocker")
        target_snapshot = scan(target)

        applied = MoveMatcher().apply(target_snapshot, [Relocation(("old",), ("blocker", "old"))])

        assert applied == []
        assert target_snapshot.get(("old", "x.txt")) is not None


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
