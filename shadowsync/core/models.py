"""
Data Models

Snapshot trees, planned actions, action results and the per-run context
shared by the sync engine components.

Author: shadowsync Project
License: MIT
"""

import tempfile
import threading
from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum, IntEnum
from pathlib import Path
from typing import Dict, Iterator, List, Optional, Tuple

from ..config.schema import SyncSettings
from .errors import PlanningError

# Path of an entry relative to its snapshot root, one item per segment
RelPath = Tuple[str, ...]

LOST_AND_FOUND_PREFIX = "SHADOWSYNC_LOST_AND_FOUND_"
LOG_FILE_PREFIX = "shadowsync_"
LOG_FILE_SUFFIX = ".log"
RUN_ID_FORMAT = "%Y%m%dT%H%M%S_%f"


def format_path(path: RelPath) -> str:
    """Render a relative path with forward slashes (root is '.')."""
    return "/".join(path) if path else "."


class EntryKind(Enum):
    """Kind of filesystem object in a snapshot."""
    FILE = "file"
    FOLDER = "folder"


@dataclass(eq=False)
class Entry:
    """
    One file or folder in a snapshot.

    Folders own their children, keyed and ordered by name. Entries compare
    by identity so a relocated folder is still the same object.
    """
    name: str
    kind: EntryKind
    path: RelPath
    size: int = 0
    mtime_ns: int = 0
    content_hash: Optional[str] = None
    children: Dict[str, "Entry"] = field(default_factory=dict)
    # Where the entry was scanned; unchanged by relocation
    origin: Optional[RelPath] = None

    def __post_init__(self):
        if self.origin is None:
            self.origin = self.path

    @property
    def is_file(self) -> bool:
        return self.kind is EntryKind.FILE

    @property
    def is_folder(self) -> bool:
        return self.kind is EntryKind.FOLDER

    def signature(self) -> "ContentSignature":
        """Signature of the immediate children (folders only)."""
        return ContentSignature.of(self)

    def walk(self) -> Iterator["Entry"]:
        """Yield this entry and all descendants, parents before children."""
        yield self
        for child in self.children.values():
            yield from child.walk()

    def contains_files(self) -> bool:
        return any(entry.is_file for entry in self.walk())

    def _rebase(self, path: RelPath) -> None:
        self.path = path
        self.name = path[-1] if path else ""
        for name, child in self.children.items():
            child._rebase(path + (name,))

    def __repr__(self) -> str:
        return f"Entry({self.kind.value}, {format_path(self.path)!r})"


@dataclass(frozen=True)
class ContentSignature:
    """
    Order-independent summary of a folder's immediate child names.

    Folder names and file names are kept apart, so a file "x" and a folder
    "x" do not produce the same signature.
    """
    items: frozenset

    @classmethod
    def of(cls, folder: Entry) -> "ContentSignature":
        counts = Counter(
            (child.kind.value, child.name) for child in folder.children.values()
        )
        return cls(frozenset(counts.items()))

    def is_empty(self) -> bool:
        return not self.items


class Snapshot:
    """
    Tree of Entries rooted at a scanned directory.

    Immutable once built, except for relocate(), which the move matcher
    uses to carry a folder subtree to its new path before planning.
    """

    def __init__(self, root_path: Path, root: Optional[Entry] = None):
        self.root_path = Path(root_path)
        self.root = root or Entry(name="", kind=EntryKind.FOLDER, path=())
        self.warnings: List[str] = []

    def get(self, path: RelPath) -> Optional[Entry]:
        """Return the entry at a relative path, or None."""
        node = self.root
        for segment in path:
            if not node.is_folder:
                return None
            node = node.children.get(segment)
            if node is None:
                return None
        return node

    def iter_entries(self) -> Iterator[Entry]:
        """Yield every entry except the root, in lexicographic walk order."""
        walker = self.root.walk()
        next(walker)
        yield from walker

    def iter_folders(self) -> Iterator[Entry]:
        return (entry for entry in self.iter_entries() if entry.is_folder)

    def absolute(self, path: RelPath) -> Path:
        return self.root_path.joinpath(*path)

    def ensure_folder(self, path: RelPath) -> Entry:
        """
        Return the folder at path, creating placeholder folders as needed.

        Raises:
            PlanningError: If a file occupies part of the path
        """
        node = self.root
        for index, segment in enumerate(path):
            child = node.children.get(segment)
            if child is None:
                child = Entry(name=segment, kind=EntryKind.FOLDER, path=path[:index + 1])
                node.children[segment] = child
                node.children = dict(sorted(node.children.items()))
            elif not child.is_folder:
                raise PlanningError(
                    f"Cannot place folder under file: {format_path(path[:index + 1])}",
                    format_path(path)
                )
            node = child
        return node

    def relocate(self, old: RelPath, new: RelPath) -> Entry:
        """
        Move the folder at old to new inside this snapshot.

        The subtree keeps its Entry objects; only recorded paths change.

        Raises:
            KeyError: If there is no folder at old
            PlanningError: If something already occupies new
        """
        entry = self.get(old)
        if entry is None or not entry.is_folder or not old:
            raise KeyError(f"No folder at {format_path(old)}")
        if self.get(new) is not None:
            raise PlanningError(f"Relocation target occupied: {format_path(new)}", format_path(new))

        new_parent = self.ensure_folder(new[:-1])
        old_parent = self.get(old[:-1])
        del old_parent.children[old[-1]]

        new_parent.children[new[-1]] = entry
        new_parent.children = dict(sorted(new_parent.children.items()))
        entry._rebase(new)
        return entry


class ActionKind(Enum):
    """Kinds of planned work."""
    MOVE_FOLDER = "move_folder"
    CREATE_FOLDER = "create_folder"
    COPY_FILE = "copy_file"
    OVERWRITE_FILE = "overwrite_file"
    CONFLICT = "conflict"
    RELOCATE = "relocate"
    NOOP = "noop"

    @property
    def phase(self) -> "Phase":
        return _PHASES[self]


class Phase(IntEnum):
    """Execution phases; a plan never goes back to an earlier phase."""
    MOVES = 0
    TRANSFERS = 1
    RELOCATIONS = 2


_PHASES = {
    ActionKind.MOVE_FOLDER: Phase.MOVES,
    ActionKind.CREATE_FOLDER: Phase.TRANSFERS,
    ActionKind.COPY_FILE: Phase.TRANSFERS,
    ActionKind.OVERWRITE_FILE: Phase.TRANSFERS,
    ActionKind.CONFLICT: Phase.TRANSFERS,
    ActionKind.RELOCATE: Phase.RELOCATIONS,
    ActionKind.NOOP: Phase.RELOCATIONS,
}


class RelocationReason(Enum):
    """Why target content goes to lost-and-found."""
    ORPHANED = "orphaned"
    SUPERSEDED = "superseded"


@dataclass(frozen=True)
class Action:
    """
    A planned unit of work against the target.

    path is always the target-relative path the action operates on; for
    MOVE_FOLDER it is the old location and destination the new one.
    """
    kind: ActionKind
    path: RelPath
    source_path: Optional[RelPath] = None
    destination: Optional[RelPath] = None
    versioned: bool = False
    reason: Optional[RelocationReason] = None
    detail: str = ""
    created_at: datetime = field(default_factory=datetime.now, compare=False)

    @classmethod
    def move_folder(cls, old: RelPath, new: RelPath) -> "Action":
        return cls(ActionKind.MOVE_FOLDER, old, destination=new)

    @classmethod
    def create_folder(cls, path: RelPath) -> "Action":
        return cls(ActionKind.CREATE_FOLDER, path, source_path=path)

    @classmethod
    def copy_file(cls, path: RelPath) -> "Action":
        return cls(ActionKind.COPY_FILE, path, source_path=path)

    @classmethod
    def overwrite_file(cls, path: RelPath, versioned: bool) -> "Action":
        reason = RelocationReason.SUPERSEDED if versioned else None
        return cls(ActionKind.OVERWRITE_FILE, path, source_path=path, versioned=versioned, reason=reason)

    @classmethod
    def relocate(cls, path: RelPath, reason: RelocationReason) -> "Action":
        return cls(ActionKind.RELOCATE, path, reason=reason)

    @classmethod
    def conflict(cls, path: RelPath, detail: str) -> "Action":
        return cls(ActionKind.CONFLICT, path, source_path=path, detail=detail)

    @classmethod
    def noop(cls, path: RelPath, detail: str) -> "Action":
        return cls(ActionKind.NOOP, path, detail=detail)

    def to_dict(self) -> dict:
        """Convert to dictionary for serialization."""
        return {
            'action': self.kind.value,
            'path': format_path(self.path),
            'source_path': format_path(self.source_path) if self.source_path is not None else None,
            'destination': format_path(self.destination) if self.destination is not None else None,
            'versioned': self.versioned,
            'reason': self.reason.value if self.reason else None,
            'detail': self.detail or None,
            'planned_at': self.created_at.isoformat(),
        }

    def __str__(self) -> str:
        text = f"{self.kind.value} {format_path(self.path)}"
        if self.destination is not None:
            text += f" -> {format_path(self.destination)}"
        if self.reason is not None:
            text += f" ({self.reason.value})"
        return text


@dataclass
class SyncPlan:
    """Ordered list of actions produced by the planner."""
    actions: List[Action] = field(default_factory=list)

    def __iter__(self) -> Iterator[Action]:
        return iter(self.actions)

    def __len__(self) -> int:
        return len(self.actions)

    def of_kind(self, kind: ActionKind) -> List[Action]:
        return [action for action in self.actions if action.kind is kind]

    def is_noop(self) -> bool:
        """True when nothing but NOOP actions remain."""
        return all(action.kind is ActionKind.NOOP for action in self.actions)

    def by_phase(self) -> Dict[Phase, List[Action]]:
        phases: Dict[Phase, List[Action]] = {phase: [] for phase in Phase}
        for action in self.actions:
            phases[action.kind.phase].append(action)
        return phases

    def check_order(self) -> None:
        """
        Verify that actions are grouped by phase.

        Raises:
            PlanningError: If a later phase precedes an earlier one
        """
        current = Phase.MOVES
        for action in self.actions:
            if action.kind.phase < current:
                raise PlanningError(f"Action out of phase order: {action}", format_path(action.path))
            current = action.kind.phase


class ActionStatus(Enum):
    """Outcome of one action."""
    ATTEMPTED = "attempted"
    SUCCEEDED = "succeeded"
    SIMULATED = "simulated"
    SKIPPED = "skipped"
    FAILED = "failed"


@dataclass
class ActionResult:
    """Result of executing (or simulating) one action."""
    action: Action
    status: ActionStatus
    error_message: Optional[str] = None
    lost_and_found_path: Optional[Path] = None
    timestamp: datetime = field(default_factory=datetime.now)

    @property
    def success(self) -> bool:
        return self.status in (ActionStatus.SUCCEEDED, ActionStatus.SIMULATED, ActionStatus.SKIPPED)


@dataclass
class RunCounters:
    """Aggregate counts for the end-of-run summary."""
    moved: int = 0
    created: int = 0
    copied: int = 0
    overwritten: int = 0
    relocated: int = 0
    skipped: int = 0
    conflicts: int = 0
    failed: int = 0

    def as_dict(self) -> Dict[str, int]:
        return dict(self.__dict__)


_SUCCESS_COUNTERS = {
    ActionKind.MOVE_FOLDER: "moved",
    ActionKind.CREATE_FOLDER: "created",
    ActionKind.COPY_FILE: "copied",
    ActionKind.OVERWRITE_FILE: "overwritten",
    ActionKind.RELOCATE: "relocated",
    ActionKind.NOOP: "skipped",
    ActionKind.CONFLICT: "conflicts",
}


class RunContext:
    """
    State for one invocation.

    Read-only after construction apart from the counters, which the
    execution engine updates through record().
    """

    def __init__(self, settings: SyncSettings, started_at: Optional[datetime] = None):
        self.settings = settings
        self.started_at = started_at or datetime.now()
        self.run_id = self.started_at.strftime(RUN_ID_FORMAT)
        self.counters = RunCounters()
        self._lock = threading.Lock()

    @property
    def dry_run(self) -> bool:
        return self.settings.dry_run

    @property
    def source_root(self) -> Path:
        return Path(self.settings.source)

    @property
    def target_root(self) -> Path:
        return Path(self.settings.target)

    @property
    def lost_and_found_root(self) -> Path:
        return self.target_root / f"{LOST_AND_FOUND_PREFIX}{self.run_id}"

    @property
    def log_path(self) -> Path:
        if self.settings.log_dir:
            log_dir = Path(self.settings.log_dir)
        elif self.dry_run:
            # Dry runs must leave the target untouched
            log_dir = Path(tempfile.gettempdir())
        else:
            log_dir = self.target_root
        return log_dir / f"{LOG_FILE_PREFIX}{self.run_id}{LOG_FILE_SUFFIX}"

    def record(self, result: ActionResult) -> None:
        """Update counters from an action result."""
        with self._lock:
            if result.status is ActionStatus.FAILED:
                self.counters.failed += 1
            elif result.action.kind is ActionKind.CONFLICT:
                self.counters.conflicts += 1
            elif result.status is ActionStatus.SKIPPED:
                self.counters.skipped += 1
            else:
                name = _SUCCESS_COUNTERS[result.action.kind]
                setattr(self.counters, name, getattr(self.counters, name) + 1)


def is_tool_artifact(name: str) -> bool:
    """True for lost-and-found folders and run logs written by earlier runs."""
    return name.startswith(LOST_AND_FOUND_PREFIX) or (
        name.startswith(LOG_FILE_PREFIX) and name.endswith(LOG_FILE_SUFFIX)
    )
