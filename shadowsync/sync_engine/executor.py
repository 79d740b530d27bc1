"""
Execution Engine

Applies a SyncPlan to the target, or simulates it in dry-run mode.

Every action is checked against the filesystem before it runs, in dry runs
too, so a dry run reports the same missing sources and blocked paths a real
run would hit. A failing action is recorded and the engine moves on to the
next one. Nothing on the target is deleted: orphans and superseded file
versions are moved under a per-run lost-and-found folder, keeping their
relative paths.

Author: shadowsync Project
License: MIT
"""

from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import Callable, Dict, List, Optional, Tuple

from ..utils.logger import get_logger
from ..utils.file_ops import FileSystem
from ..core.errors import ExecutionError
from ..core.models import (
    Action,
    ActionKind,
    ActionResult,
    ActionStatus,
    Phase,
    RelPath,
    RunContext,
    SyncPlan,
    format_path,
)
from ..core.run_log import RunLog

logger = get_logger(__name__)

TEMP_SUFFIX = ".shadowsync-tmp"


class ExecutionEngine:
    """
    Runs planned actions phase by phase.

    Phases are separated by a barrier. Within the transfer phase actions may
    run on a thread pool (settings.workers > 1); the other phases always run
    sequentially.
    """

    def __init__(self, context: RunContext, fs: FileSystem, run_log: Optional[RunLog] = None):
        """
        Initialize the engine.

        Args:
            context: Run context (settings, roots, counters)
            fs: Filesystem to act on
            run_log: Run log receiving one record per outcome
        """
        self.context = context
        self.fs = fs
        self.run_log = run_log
        # (old, new) folder moves already simulated during a dry run
        self._simulated_moves: List[Tuple[RelPath, RelPath]] = []

        self._handlers: Dict[ActionKind, Callable[[Action], ActionResult]] = {
            ActionKind.MOVE_FOLDER: self._move_folder,
            ActionKind.CREATE_FOLDER: self._create_folder,
            ActionKind.COPY_FILE: self._copy_file,
            ActionKind.OVERWRITE_FILE: self._overwrite_file,
            ActionKind.RELOCATE: self._relocate,
            ActionKind.CONFLICT: self._report,
            ActionKind.NOOP: self._report,
        }

    @property
    def dry_run(self) -> bool:
        return self.context.dry_run

    def execute(self, plan: SyncPlan) -> List[ActionResult]:
        """
        Run every action of the plan.

        Args:
            plan: Phase-ordered plan

        Returns:
            One ActionResult per action, in plan order
        """
        plan.check_order()
        mode = "Simulating" if self.dry_run else "Executing"
        logger.info(f"{mode} {len(plan)} actions")

        results: List[ActionResult] = []
        for phase, actions in plan.by_phase().items():
            if not actions:
                continue
            workers = self.context.settings.workers
            if phase is Phase.TRANSFERS and workers > 1 and not self.dry_run:
                with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="shadowsync") as pool:
                    results.extend(pool.map(self.execute_action, actions))
            else:
                results.extend(self.execute_action(action) for action in actions)

        counters = self.context.counters
        logger.info(
            f"Finished: {len(results) - counters.failed} ok, {counters.failed} failed"
        )
        return results

    def execute_action(self, action: Action) -> ActionResult:
        """Run one action; failures become FAILED results."""
        if self.run_log is not None and not self.dry_run and action.kind not in (ActionKind.CONFLICT, ActionKind.NOOP):
            self.run_log.attempted(action)

        try:
            result = self._handlers[action.kind](action)
        except (ExecutionError, OSError) as e:
            logger.error(f"Failed {action}: {e}")
            result = ActionResult(action, ActionStatus.FAILED, error_message=str(e))

        self.context.record(result)
        if self.run_log is not None:
            self.run_log.record(result)
        return result

    # Paths

    def _source(self, path: RelPath) -> Path:
        return self.context.source_root.joinpath(*path)

    def _target(self, path: RelPath) -> Path:
        """Where a target path is on disk right now (dry runs map simulated moves back)."""
        for old, new in self._simulated_moves:
            if path[:len(new)] == new:
                path = old + path[len(new):]
                break
        return self.context.target_root.joinpath(*path)

    def _blocked_parent(self, path: RelPath) -> Optional[Path]:
        """First existing ancestor of path that is not a directory, if any."""
        for depth in range(1, len(path)):
            ancestor = self._target(path[:depth])
            if not self.fs.exists(ancestor):
                return None
            if not self.fs.is_dir(ancestor):
                return ancestor
        return None

    def _require_free(self, path: RelPath) -> None:
        blocked = self._blocked_parent(path)
        if blocked is not None:
            raise ExecutionError(f"Parent path is not a folder: {blocked}")
        if self.fs.exists(self._target(path)):
            raise ExecutionError(f"Target already exists: {self._target(path)}")

    def _require_source_file(self, path: RelPath) -> Path:
        source = self._source(path)
        if not self.fs.is_file(source):
            raise ExecutionError(f"Source file missing: {source}")
        return source

    def _lost_and_found_destination(self, path: RelPath) -> Path:
        destination = self.context.lost_and_found_root.joinpath(*path)
        counter = 1
        while self.fs.exists(destination):
            destination = destination.with_name(f"{path[-1]}~{counter}")
            counter += 1
        return destination

    def _move_to_lost_and_found(self, path: RelPath) -> Path:
        current = self._target(path)
        destination = self._lost_and_found_destination(path)
        self.fs.make_dirs(destination.parent)
        self.fs.move(current, destination)
        logger.debug(f"Moved {current} to {destination}")
        return destination

    def _copy_into_place(self, source: Path, target: Path) -> None:
        """Copy through a temporary sibling so target is never left half-written."""
        temp = target.with_name(f".{target.name}{TEMP_SUFFIX}")
        try:
            self.fs.copy_file(source, temp)
            self.fs.replace_file(temp, target)
        except OSError:
            if self.fs.exists(temp):
                self.fs.remove(temp)
            raise

    def _done(self, action: Action, lost_and_found: Optional[Path] = None) -> ActionResult:
        status = ActionStatus.SIMULATED if self.dry_run else ActionStatus.SUCCEEDED
        return ActionResult(action, status, lost_and_found_path=lost_and_found)

    # Handlers

    def _move_folder(self, action: Action) -> ActionResult:
        old = self._target(action.path)
        if not self.fs.is_dir(old):
            raise ExecutionError(f"Folder to move is missing: {old}")
        self._require_free(action.destination)

        if self.dry_run:
            self._simulated_moves.append((action.path, action.destination))
            return self._done(action)

        new = self._target(action.destination)
        self.fs.make_dirs(new.parent)
        self.fs.move(old, new)
        logger.info(f"Moved folder {format_path(action.path)} -> {format_path(action.destination)}")
        return self._done(action)

    def _create_folder(self, action: Action) -> ActionResult:
        target = self._target(action.path)
        if self.fs.is_dir(target):
            return ActionResult(action, ActionStatus.SKIPPED, error_message="Folder already exists")
        self._require_free(action.path)

        if not self.dry_run:
            self.fs.make_dirs(target)
        return self._done(action)

    def _copy_file(self, action: Action) -> ActionResult:
        source = self._require_source_file(action.source_path)
        self._require_free(action.path)

        if not self.dry_run:
            target = self._target(action.path)
            self.fs.make_dirs(target.parent)
            self._copy_into_place(source, target)
        return self._done(action)

    def _overwrite_file(self, action: Action) -> ActionResult:
        source = self._require_source_file(action.source_path)
        target = self._target(action.path)
        if not self.fs.is_file(target):
            raise ExecutionError(f"File to overwrite is missing: {target}")

        if not action.versioned:
            if not self.dry_run:
                self._copy_into_place(source, target)
            return self._done(action)

        if self.dry_run:
            return self._done(action, self.context.lost_and_found_root.joinpath(*action.path))

        # Keep the old version first; without it there is no overwrite
        try:
            saved = self._move_to_lost_and_found(action.path)
        except OSError as e:
            raise ExecutionError(f"Could not keep previous version of {target}: {e}") from e

        try:
            self._copy_into_place(source, target)
        except OSError as e:
            try:
                self.fs.move(saved, target)
            except OSError as restore_error:
                raise ExecutionError(
                    f"Copy failed ({e}); previous version left at {saved} ({restore_error})"
                ) from e
            raise ExecutionError(f"Copy failed, previous version restored: {e}") from e

        logger.debug(
            f"Overwrote {format_path(action.path)}; previous version kept as {saved} "
            f"({action.reason.value})"
        )
        return self._done(action, saved)

    def _relocate(self, action: Action) -> ActionResult:
        target = self._target(action.path)
        if not self.fs.exists(target):
            raise ExecutionError(f"Entry to relocate is missing: {target}")

        if self.dry_run:
            return self._done(action, self.context.lost_and_found_root.joinpath(*action.path))

        saved = self._move_to_lost_and_found(action.path)
        logger.info(f"Relocated {format_path(action.path)} to lost-and-found ({action.reason.value})")
        return self._done(action, saved)

    def _report(self, action: Action) -> ActionResult:
        return ActionResult(action, ActionStatus.SKIPPED, error_message=action.detail or None)
