"""
Sync Engine

Coordinates one synchronization run: scan both roots, detect moved
folders, plan, execute (or simulate) and write the run log.

Author: shadowsync Project
License: MIT
"""

from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Callable, Dict, List, Optional, Tuple

from ..utils.logger import get_logger
from ..utils.file_ops import FileSystem, LocalFileSystem
from ..config.schema import SyncSettings
from ..sync_engine.scanner import SnapshotBuilder
from ..sync_engine.comparator import ComparisonPolicy
from ..sync_engine.move_matcher import MoveMatcher, Relocation
from ..sync_engine.planner import SyncPlanner
from ..sync_engine.executor import ExecutionEngine
from .errors import ScanError
from .models import ActionResult, RunContext, RunCounters, Snapshot, SyncPlan, is_tool_artifact
from .run_log import RunLog

logger = get_logger(__name__)


@dataclass
class RunReport:
    """Everything a caller needs to know about a finished run."""
    run_id: str
    dry_run: bool
    counters: RunCounters
    plan: SyncPlan
    results: List[ActionResult] = field(default_factory=list)
    relocations: List[Relocation] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    log_path: Optional[Path] = None
    lost_and_found_path: Optional[Path] = None

    @property
    def success(self) -> bool:
        return self.counters.failed == 0

    def __repr__(self) -> str:
        return f"RunReport(run_id={self.run_id}, actions={len(self.plan)}, failed={self.counters.failed})"


class SyncEngine:
    """
    Core synchronization engine.

    Runs scan -> match moves -> plan -> execute for one pair of roots. Each
    call to run() uses a fresh RunContext.
    """

    def __init__(
        self,
        settings: SyncSettings,
        fs: Optional[FileSystem] = None
    ):
        """
        Initialize sync engine.

        Args:
            settings: Validated settings for the run
            fs: Filesystem implementation (defaults to the local disk)
        """
        self.settings = settings
        self.fs = fs or LocalFileSystem(
            retry_attempts=settings.retry_attempts,
            retry_delay=settings.retry_delay
        )
        self.builder = SnapshotBuilder(self.fs)
        self.matcher = MoveMatcher()
        self._last_report: Optional[RunReport] = None

        logger.debug("SyncEngine initialized")

    def run(self, started_at: Optional[datetime] = None) -> RunReport:
        """
        Run one synchronization.

        Args:
            started_at: Run start time; names the log and lost-and-found
                folder (defaults to now)

        Returns:
            RunReport with counters, plan and results

        Raises:
            ScanError: If either root cannot be scanned
        """
        context = RunContext(self.settings, started_at)
        mode = " (dry run)" if context.dry_run else ""
        logger.info(f"Starting run {context.run_id}{mode}: {context.source_root} -> {context.target_root}")

        self._check_roots(context)

        with RunLog(context.log_path, verbose=self.settings.verbose) as run_log:
            run_log.header(self.settings, context.run_id, context.started_at)

            source, target = self._scan(context)
            warnings = [f"source: {w}" for w in source.warnings] + [f"target: {w}" for w in target.warnings]
            for warning in warnings:
                run_log.note(warning, event="scan_warning")

            relocations: List[Relocation] = []
            if self.settings.move_folders:
                relocations = self.matcher.match(source, target)
                relocations = self.matcher.apply(target, relocations)

            policy = ComparisonPolicy(
                self.fs,
                source.root_path,
                target.root_path,
                checksum=self.settings.checksum,
                hash_algorithm=self.settings.hash_algorithm
            )
            planner = SyncPlanner(
                policy,
                sync_files=self.settings.sync_files,
                delete=self.settings.delete,
                keep_versions=self.settings.keep_versions
            )
            plan = planner.plan(source, target, relocations)

            engine = ExecutionEngine(context, self.fs, run_log)
            results = engine.execute(plan)

            run_log.summary(context.counters, run_id=context.run_id, dry_run=context.dry_run)

        lost_and_found = context.lost_and_found_root
        report = RunReport(
            run_id=context.run_id,
            dry_run=context.dry_run,
            counters=context.counters,
            plan=plan,
            results=results,
            relocations=relocations,
            warnings=warnings,
            log_path=context.log_path,
            lost_and_found_path=lost_and_found if self.fs.exists(lost_and_found) else None
        )
        self._last_report = report

        counts = ", ".join(f"{name}: {count}" for name, count in context.counters.as_dict().items())
        logger.info(f"Run {context.run_id} finished{mode}. {counts}")
        if report.lost_and_found_path:
            logger.info(f"Removed and superseded content kept in {report.lost_and_found_path}")
        logger.info(f"Run log: {context.log_path}")
        return report

    def _check_roots(self, context: RunContext) -> None:
        """Fail before anything is written if either root is gone."""
        for label, root in (("Source", context.source_root), ("Target", context.target_root)):
            if not root.is_dir():
                logger.error(f"{label} folder not found: {root}")
                raise ScanError(f"{label} folder not found: {root}", str(root))

    def _target_ignore(self, context: RunContext) -> Callable[[str], bool]:
        """
        Predicate hiding earlier runs' logs and lost-and-found folders.

        Names that also exist at the source root are real content and stay
        visible.
        """
        try:
            source_names = {info.name for info in self.fs.scan_dir(context.source_root)}
        except OSError as e:
            raise ScanError(f"Cannot read root {context.source_root}: {e}", str(context.source_root)) from e
        return lambda name: is_tool_artifact(name) and name not in source_names

    def _scan(self, context: RunContext) -> Tuple[Snapshot, Snapshot]:
        """Scan both roots concurrently; either failing aborts the run."""
        target_ignore = self._target_ignore(context)
        with ThreadPoolExecutor(max_workers=2, thread_name_prefix="shadowsync-scan") as pool:
            source_future = pool.submit(self.builder.build, context.source_root)
            target_future = pool.submit(self.builder.build, context.target_root, target_ignore)
            try:
                return source_future.result(), target_future.result()
            except ScanError as e:
                logger.error(f"Scan failed: {e}")
                raise

    def get_stats(self) -> Dict[str, int]:
        """Get counters of the most recent run."""
        if self._last_report is None:
            return RunCounters().as_dict()
        return self._last_report.counters.as_dict()
