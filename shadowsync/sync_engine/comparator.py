"""
Comparison Policy

Decides whether the target copy of a file is up to date with the source.

Baseline: sizes are equal AND the target is at least as new as the source.
A target that is newer but has a different size is stale.

Checksum mode: a size mismatch is stale without reading either file; when
sizes match, content hashes decide regardless of modification times. If a
file cannot be hashed the pair is treated as stale, which leads to a safe
(versioned) overwrite instead of silently skipping it.

Author: shadowsync Project
License: MIT
"""

from pathlib import Path

from ..utils.logger import get_logger
from ..utils.file_ops import FileSystem
from ..core.errors import ComparisonError
from ..core.models import Entry, format_path

logger = get_logger(__name__)


class ComparisonPolicy:
    """Up-to-date test for a source/target file pair at the same path."""

    def __init__(
        self,
        fs: FileSystem,
        source_root: Path,
        target_root: Path,
        checksum: bool = False,
        hash_algorithm: str = "sha256"
    ):
        """
        Initialize the policy.

        Args:
            fs: Filesystem used for hashing
            source_root: Absolute path of the source snapshot root
            target_root: Absolute path of the target snapshot root
            checksum: Enable content hashing for same-size pairs
            hash_algorithm: hashlib algorithm name
        """
        self.fs = fs
        self.source_root = Path(source_root)
        self.target_root = Path(target_root)
        self.checksum = checksum
        self.hash_algorithm = hash_algorithm
        self.hashes_computed = 0

    @staticmethod
    def metadata_up_to_date(source: Entry, target: Entry) -> bool:
        """Size/mtime test (both conditions must hold)."""
        return source.size == target.size and target.mtime_ns >= source.mtime_ns

    def is_up_to_date(self, source: Entry, target: Entry) -> bool:
        """
        Compare two file entries occupying the same relative path.

        Args:
            source: File entry from the source snapshot
            target: File entry from the (relocated) target snapshot

        Returns:
            True if the target needs no update
        """
        if not self.checksum:
            return self.metadata_up_to_date(source, target)

        if source.size != target.size:
            return False

        try:
            source_hash = self._content_hash(source, self.source_root)
            target_hash = self._content_hash(target, self.target_root)
        except ComparisonError as e:
            logger.warning(f"{e}; assuming stale")
            return False

        if source_hash == target_hash:
            if not self.metadata_up_to_date(source, target):
                logger.debug(f"Same content despite metadata change: {format_path(source.path)}")
            return True
        return False

    def _content_hash(self, entry: Entry, root: Path) -> str:
        if entry.content_hash is None:
            path = root.joinpath(*entry.origin)
            try:
                entry.content_hash = self.fs.hash_file(path, self.hash_algorithm)
            except (OSError, ValueError) as e:
                raise ComparisonError(f"Cannot hash {path}: {e}", str(path)) from e
            self.hashes_computed += 1
        return entry.content_hash
