"""
Move Matcher

Finds folders that were moved or renamed in the source since the last run,
so the target copy can be moved instead of being copied again and the old
location sent to lost-and-found.

A target folder with no source entry at its path (orphan) is paired with a
source folder with no target entry at its path (new) when both have the
same ContentSignature: the same immediate child names. File contents are
never read, so two unrelated folders with identical child names can be
paired; the file sync that follows reconciles any content difference.

Matching is 1:1 and deterministic:
- folders with no children never take part (an empty signature says nothing)
- a signature shared by exactly one orphan and one new folder is a match
- a signature shared by more folders is resolved only by base name: an
  orphan and a new folder with the same name, unique on both sides
- anything else is left unmatched and handled as orphan/new by the planner

Matched folders take their subtrees with them, so descendants of a matched
pair are withdrawn. So are its ancestors: their signatures describe a tree
that the move is about to change. Groups are recomputed until nothing
changes.

Author: shadowsync Project
License: MIT
"""

from collections import defaultdict
from dataclasses import dataclass
from typing import Dict, Iterable, List, Set, Tuple

from ..utils.logger import get_logger
from ..core.errors import PlanningError
from ..core.models import ContentSignature, Entry, RelPath, Snapshot, format_path

logger = get_logger(__name__)


@dataclass(frozen=True)
class Relocation:
    """A target folder that should move from old_path to new_path."""
    old_path: RelPath
    new_path: RelPath

    def __str__(self) -> str:
        return f"{format_path(self.old_path)} -> {format_path(self.new_path)}"


def _overlaps(path: RelPath, matched: Iterable[RelPath]) -> bool:
    """True if path is a matched folder, inside one, or contains one."""
    return any(
        path[:len(other)] == other or other[:len(path)] == path
        for other in matched
    )


class MoveMatcher:
    """Pairs orphan target folders with new source folders."""

    def match(self, source: Snapshot, target: Snapshot) -> List[Relocation]:
        """
        Find relocations between two snapshots.

        Args:
            source: Source snapshot
            target: Target snapshot (not modified)

        Returns:
            Relocations ordered by old path
        """
        orphans = [
            folder for folder in target.iter_folders()
            if source.get(folder.path) is None
        ]
        new_folders = [
            folder for folder in source.iter_folders()
            if target.get(folder.path) is None
        ]
        logger.debug(f"Move candidates: {len(orphans)} orphan, {len(new_folders)} new folders")

        matched_old: Set[RelPath] = set()
        matched_new: Set[RelPath] = set()
        relocations: List[Relocation] = []

        ambiguous: List[List[Entry]] = []
        while True:
            orphans = [
                f for f in orphans
                if not _overlaps(f.path, matched_old) and not f.signature().is_empty()
            ]
            new_folders = [
                f for f in new_folders
                if not _overlaps(f.path, matched_new) and not f.signature().is_empty()
            ]

            pairs, ambiguous = self._resolve_groups(orphans, new_folders)
            if not pairs:
                break

            # Shallowest first; a deeper pair may sit inside an accepted one
            round_accepted = 0
            for orphan, new in sorted(pairs, key=lambda p: (len(p[0].path), p[0].path)):
                if _overlaps(orphan.path, matched_old) or _overlaps(new.path, matched_new):
                    continue
                relocations.append(Relocation(orphan.path, new.path))
                matched_old.add(orphan.path)
                matched_new.add(new.path)
                round_accepted += 1
                logger.info(f"Detected moved folder: {format_path(orphan.path)} -> {format_path(new.path)}")

            if not round_accepted:
                break

        for group in ambiguous:
            logger.warning(
                f"Ambiguous folder move, leaving unmatched: "
                f"{', '.join(format_path(f.path) for f in group)}"
            )

        relocations.sort(key=lambda r: r.old_path)
        return relocations

    def _resolve_groups(
        self,
        orphans: List[Entry],
        new_folders: List[Entry]
    ) -> Tuple[List[Tuple[Entry, Entry]], List[List[Entry]]]:
        """
        Pair candidates that share a signature.

        Returns:
            Tuple of (pairs, ambiguous orphan groups left unmatched)
        """
        groups: Dict[ContentSignature, Tuple[List[Entry], List[Entry]]] = defaultdict(lambda: ([], []))
        for folder in orphans:
            groups[folder.signature()][0].append(folder)
        for folder in new_folders:
            groups[folder.signature()][1].append(folder)

        pairs: List[Tuple[Entry, Entry]] = []
        ambiguous: List[List[Entry]] = []
        for signature, (old_side, new_side) in groups.items():
            if not old_side or not new_side:
                continue
            if len(old_side) == 1 and len(new_side) == 1:
                pairs.append((old_side[0], new_side[0]))
                continue

            # Tie-break on base name, only where the name is unique on both sides
            old_by_name = defaultdict(list)
            new_by_name = defaultdict(list)
            for folder in old_side:
                old_by_name[folder.name].append(folder)
            for folder in new_side:
                new_by_name[folder.name].append(folder)

            resolved = set()
            for name in sorted(old_by_name):
                if len(old_by_name[name]) == 1 and len(new_by_name.get(name, [])) == 1:
                    pairs.append((old_by_name[name][0], new_by_name[name][0]))
                    resolved.add(old_by_name[name][0].path)

            unresolved = [f for f in old_side if f.path not in resolved]
            if unresolved:
                ambiguous.append(unresolved)
        return pairs, ambiguous

    def apply(self, target: Snapshot, relocations: List[Relocation]) -> List[Relocation]:
        """
        Move matched folders inside the target snapshot.

        After this, the target snapshot describes the tree as it will be once
        the MOVE_FOLDER actions have run. A relocation whose new parent is a
        file on the target, or whose folder is no longer there, is dropped
        with a warning; the planner then handles those paths as orphan/new.

        Returns:
            The relocations that were applied
        """
        applied = []
        for relocation in relocations:
            try:
                target.relocate(relocation.old_path, relocation.new_path)
            except (KeyError, PlanningError) as e:
                logger.warning(f"Not moving {relocation}: {e}")
                continue
            applied.append(relocation)
        return applied
