"""
Snapshot Builder

Walks a root directory and builds a Snapshot of its files and folders.
Children are visited in lexicographic order, so two scans of the same
tree always produce the same snapshot.

Symbolic links below the root are never followed: they are skipped with a
warning, as are FIFOs, sockets and device files. Errors on individual
entries are recorded and skipped; errors on the root are fatal.

Author: shadowsync Project
License: MIT
"""

from pathlib import Path
from typing import Callable, Optional

from ..utils.logger import get_logger
from ..utils.file_ops import EntryType, FileSystem
from ..core.errors import ScanError
from ..core.models import Entry, EntryKind, RelPath, Snapshot, format_path

logger = get_logger(__name__)


class SnapshotBuilder:
    """Builds Snapshots through a FileSystem."""

    def __init__(self, fs: FileSystem):
        self.fs = fs

    def build(self, root: Path, ignore: Optional[Callable[[str], bool]] = None) -> Snapshot:
        """
        Scan a directory tree.

        Args:
            root: Directory to scan (followed if it is a symlink)
            ignore: Predicate over the names of the root's immediate
                children; matching entries are left out of the snapshot

        Returns:
            Snapshot of the tree

        Raises:
            ScanError: If the root is missing, not a directory or unreadable
        """
        root = Path(root)
        try:
            root = root.resolve(strict=True)
        except (OSError, RuntimeError) as e:
            raise ScanError(f"Root not found: {root} ({e})", str(root)) from e

        if not root.is_dir():
            raise ScanError(f"Root is not a directory: {root}", str(root))

        snapshot = Snapshot(root)
        logger.info(f"Scanning {root}")

        try:
            self._scan_folder(snapshot, snapshot.root, ignore)
        except OSError as e:
            raise ScanError(f"Cannot read root {root}: {e}", str(root)) from e

        file_count = sum(1 for entry in snapshot.iter_entries() if entry.is_file)
        logger.info(
            f"Scanned {root}: {file_count} files, "
            f"{sum(1 for _ in snapshot.iter_folders())} folders, "
            f"{len(snapshot.warnings)} warnings"
        )
        return snapshot

    def _scan_folder(
        self,
        snapshot: Snapshot,
        folder: Entry,
        ignore: Optional[Callable[[str], bool]]
    ) -> None:
        """Fill in folder.children; raises OSError only if folder is unreadable."""
        listing = self.fs.scan_dir(snapshot.absolute(folder.path))

        for info in sorted(listing, key=lambda item: item.name):
            path: RelPath = folder.path + (info.name,)

            if not folder.path and ignore is not None and ignore(info.name):
                logger.debug(f"Ignoring {format_path(path)}")
                continue

            if info.type is EntryType.SYMLINK:
                self._warn(snapshot, f"Skipping symbolic link: {format_path(path)}")
                continue
            if info.type is EntryType.OTHER:
                self._warn(snapshot, f"Skipping special file: {format_path(path)}")
                continue

            if info.type is EntryType.FILE:
                folder.children[info.name] = Entry(
                    name=info.name,
                    kind=EntryKind.FILE,
                    path=path,
                    size=info.size,
                    mtime_ns=info.mtime_ns
                )
                continue

            child = Entry(name=info.name, kind=EntryKind.FOLDER, path=path)
            try:
                self._scan_folder(snapshot, child, ignore)
            except OSError as e:
                self._warn(snapshot, f"Skipping unreadable folder {format_path(path)}: {e}")
                continue
            folder.children[info.name] = child

    def _warn(self, snapshot: Snapshot, message: str) -> None:
        logger.warning(f"{snapshot.root_path}: {message}")
        snapshot.warnings.append(message)
