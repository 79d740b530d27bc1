"""
Run Log

Append-only JSON-lines record of one sync run: a header with the resolved
settings, one record per action outcome and a closing summary. Each line is
flushed as it is written, so an interrupted run still leaves a valid prefix.
Records carry paths, action kind, outcome and lost-and-found destinations,
which is what reversing a run would need.

Author: shadowsync Project
License: MIT
"""

import itertools
import logging
import sys
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Optional

from pythonjsonlogger import jsonlogger

from ..config.schema import SyncSettings
from .models import Action, ActionResult, ActionStatus, RunCounters

_instances = itertools.count()


class RunLog:
    """
    Writer for the per-run log file.

    Uses its own non-propagating logger, so run records never mix with
    application log output. Handler locks serialize concurrent writes.
    """

    def __init__(self, path: Path, verbose: bool = False):
        """
        Initialize the run log.

        Args:
            path: Log file to create (parent directories are created)
            verbose: Also print each record to stdout
        """
        self.path = Path(path)
        self.verbose = verbose
        self.records_written = 0
        self._logger: Optional[logging.Logger] = None

    def open(self) -> "RunLog":
        """Create the log file and attach handlers."""
        if self._logger is not None:
            return self

        self.path.parent.mkdir(parents=True, exist_ok=True)

        logger = logging.getLogger(f"shadowsync.runlog.{next(_instances)}")
        logger.setLevel(logging.INFO)
        logger.propagate = False

        file_handler = logging.FileHandler(self.path, mode="a", encoding="utf-8")
        file_handler.setFormatter(jsonlogger.JsonFormatter(
            '%(asctime)s %(levelname)s %(message)s',
            datefmt='%Y-%m-%dT%H:%M:%S%z'
        ))
        logger.addHandler(file_handler)

        if self.verbose:
            console_handler = logging.StreamHandler(sys.stdout)
            console_handler.setFormatter(logging.Formatter(
                '%(asctime)s: %(message)s',
                datefmt='%Y-%m-%d %H:%M:%S'
            ))
            logger.addHandler(console_handler)

        self._logger = logger
        return self

    def close(self) -> None:
        """Flush and detach handlers; safe to call more than once."""
        if self._logger is None:
            return
        for handler in list(self._logger.handlers):
            handler.flush()
            handler.close()
            self._logger.removeHandler(handler)
        self._logger = None

    def __enter__(self) -> "RunLog":
        return self.open()

    def __exit__(self, exc_type, exc, tb) -> None:
        if exc is not None:
            self.error(f"Run aborted: {exc}")
        self.close()

    def _write(self, level: int, message: str, fields: Dict[str, Any]) -> None:
        if self._logger is None:
            raise RuntimeError("Run log is not open")
        self._logger.log(level, message, extra=fields)
        self.records_written += 1

    def header(self, settings: SyncSettings, run_id: str, started_at: datetime) -> None:
        """Record the fully resolved configuration of the run."""
        self._write(logging.INFO, f"shadowsync run {run_id} started", {
            "event": "header",
            "run_id": run_id,
            "started_at": started_at.isoformat(),
            "settings": settings.dict(),
        })

    def attempted(self, action: Action) -> None:
        """Record that an action is about to touch the filesystem."""
        fields = action.to_dict()
        fields.update(event="action", status=ActionStatus.ATTEMPTED.value)
        self._write(logging.INFO, f"{action}: {ActionStatus.ATTEMPTED.value}", fields)

    def record(self, result: ActionResult) -> None:
        """Record the outcome of an action."""
        fields = result.action.to_dict()
        fields.update(
            event="action",
            status=result.status.value,
            error=result.error_message,
            lost_and_found=str(result.lost_and_found_path) if result.lost_and_found_path else None,
        )
        message = f"{result.action}: {result.status.value}"
        if result.error_message:
            message += f" ({result.error_message})"
        if result.lost_and_found_path:
            message += f" [kept at {result.lost_and_found_path}]"
        level = logging.ERROR if result.status is ActionStatus.FAILED else logging.INFO
        self._write(level, message, fields)

    def note(self, message: str, **fields: Any) -> None:
        """Record a free-form event such as a scan warning."""
        fields.setdefault("event", "note")
        self._write(logging.WARNING, message, fields)

    def error(self, message: str) -> None:
        """Record a fatal error; ignored if the log is already closed."""
        if self._logger is None:
            return
        self._write(logging.ERROR, message, {"event": "error"})

    def summary(self, counters: RunCounters, **fields: Any) -> None:
        """Record the end-of-run counts."""
        fields.update(event="summary", counters=counters.as_dict())
        text = ", ".join(f"{name}={count}" for name, count in counters.as_dict().items())
        self._write(logging.INFO, f"Run finished: {text}", fields)
