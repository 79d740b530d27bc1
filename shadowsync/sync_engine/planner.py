"""
Sync Planner

Walks the source snapshot and the relocated target snapshot side by side
and produces the ordered action plan:

1. MOVE_FOLDER for every matched relocation
2. CREATE_FOLDER / COPY_FILE / OVERWRITE_FILE / CONFLICT, in walk order
3. RELOCATE (or NOOP when deleting is disabled), in walk order

Moves come first so later actions address final folder locations, and
relocations come last so nothing is sent to lost-and-found while a move
into the same namespace is still pending.

Author: shadowsync Project
License: MIT
"""

from typing import List, Optional

from ..utils.logger import get_logger
from ..core.models import (
    Action,
    Entry,
    RelocationReason,
    Snapshot,
    SyncPlan,
    format_path,
)
from .comparator import ComparisonPolicy
from .move_matcher import Relocation

logger = get_logger(__name__)


class SyncPlanner:
    """Builds a SyncPlan from two snapshots."""

    def __init__(
        self,
        policy: ComparisonPolicy,
        sync_files: bool = True,
        delete: bool = True,
        keep_versions: bool = True
    ):
        """
        Initialize the planner.

        Args:
            policy: Up-to-date test for file pairs
            sync_files: Plan copies and overwrites
            delete: Relocate orphans (otherwise only report them)
            keep_versions: Keep overwritten files in lost-and-found
        """
        self.policy = policy
        self.sync_files = sync_files
        self.delete = delete
        self.keep_versions = keep_versions

    def plan(
        self,
        source: Snapshot,
        target: Snapshot,
        relocations: Optional[List[Relocation]] = None
    ) -> SyncPlan:
        """
        Produce the action plan.

        Args:
            source: Source snapshot
            target: Target snapshot, with relocations already applied
            relocations: Folder moves found by the MoveMatcher

        Returns:
            Phase-ordered SyncPlan
        """
        moves = [Action.move_folder(r.old_path, r.new_path) for r in relocations or []]
        transfers: List[Action] = []
        removals: List[Action] = []

        self._walk(source.root, target.root, transfers, removals)

        plan = SyncPlan(moves + transfers + removals)
        logger.info(
            f"Planned {len(plan)} actions: {len(moves)} moves, "
            f"{len(transfers)} transfers, {len(removals)} relocations/reports"
        )
        return plan

    def _walk(
        self,
        source_folder: Entry,
        target_folder: Entry,
        transfers: List[Action],
        removals: List[Action]
    ) -> None:
        names = sorted(set(source_folder.children) | set(target_folder.children))

        for name in names:
            source = source_folder.children.get(name)
            target = target_folder.children.get(name)

            if target is None:
                if source.is_folder:
                    self._plan_new_folder(source, transfers)
                elif self.sync_files:
                    transfers.append(Action.copy_file(source.path))
            elif source is None:
                removals.append(self._orphan(target))
            elif source.kind is not target.kind:
                detail = f"source is a {source.kind.value}, target is a {target.kind.value}"
                logger.warning(f"Conflict at {format_path(source.path)}: {detail}")
                transfers.append(Action.conflict(source.path, detail))
            elif source.is_folder:
                self._walk(source, target, transfers, removals)
            elif self.sync_files and not self.policy.is_up_to_date(source, target):
                transfers.append(Action.overwrite_file(source.path, versioned=self.keep_versions))

    def _plan_new_folder(self, folder: Entry, transfers: List[Action]) -> None:
        """Copy a subtree missing from the target; empty folders are created explicitly."""
        if not self.sync_files:
            return
        for entry in folder.walk():
            if entry.is_file:
                transfers.append(Action.copy_file(entry.path))
            elif not entry.children:
                transfers.append(Action.create_folder(entry.path))

    def _orphan(self, entry: Entry) -> Action:
        if self.delete:
            return Action.relocate(entry.path, RelocationReason.ORPHANED)
        return Action.noop(
            entry.path,
            f"{entry.kind.value} not in source; kept because delete is disabled"
        )
