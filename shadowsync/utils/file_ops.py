"""
File Operation Utilities

Provides the filesystem capability consumed by the sync engine: directory
listing, hashing, copying, moving and removal, with a bounded retry
for transient errors. The engine only talks to the FileSystem interface,
so tests can substitute their own implementation.

Author: shadowsync Project
License: MIT
"""

import errno
import os
import shutil
import hashlib
import time
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Callable, List, TypeVar

from .logger import get_logger

logger = get_logger(__name__)

T = TypeVar("T")

# errno values worth retrying: the resource is briefly held by someone else
TRANSIENT_ERRNOS = {errno.EBUSY, errno.EAGAIN, errno.ETXTBSY}
# ERROR_SHARING_VIOLATION, ERROR_LOCK_VIOLATION
TRANSIENT_WINERRORS = {32, 33}


def calculate_file_hash(file_path: str, algorithm: str = "sha256", chunk_size: int = 65536) -> str:
    """
    Calculate hash of a file.

    Args:
        file_path: Path to the file
        algorithm: Hash algorithm (md5, sha1, sha256, etc.)
        chunk_size: Size of chunks to read (bytes)

    Returns:
        Hexadecimal hash string

    Raises:
        FileNotFoundError: If file doesn't exist
        ValueError: If algorithm is unsupported
    """
    if not os.path.exists(file_path):
        raise FileNotFoundError(f"File not found: {file_path}")

    try:
        hash_func = hashlib.new(algorithm)
    except ValueError:
        raise ValueError(f"Unsupported hash algorithm: {algorithm}")

    with open(file_path, 'rb') as f:
        while chunk := f.read(chunk_size):
            hash_func.update(chunk)

    return hash_func.hexdigest()


def is_transient_error(error: BaseException) -> bool:
    """Return True for OS errors that usually clear up on their own."""
    if isinstance(error, (BlockingIOError, InterruptedError)):
        return True
    if isinstance(error, OSError):
        if getattr(error, "winerror", None) in TRANSIENT_WINERRORS:
            return True
        return error.errno in TRANSIENT_ERRNOS
    return False


def with_retry(
    operation: Callable[[], T],
    attempts: int = 3,
    delay: float = 0.5,
    description: str = "filesystem operation"
) -> T:
    """
    Run an operation, retrying transient OS errors.

    Args:
        operation: Zero-argument callable to run
        attempts: Total number of attempts (at least one)
        delay: Seconds to wait between attempts
        description: Text used in log messages

    Returns:
        Whatever the operation returns

    Raises:
        OSError: The last error once attempts are exhausted, or the first
            non-transient error
    """
    attempts = max(1, attempts)
    for attempt in range(1, attempts + 1):
        try:
            return operation()
        except OSError as e:
            if attempt >= attempts or not is_transient_error(e):
                raise
            logger.warning(
                f"Transient error during {description} "
                f"(attempt {attempt}/{attempts}): {e}"
            )
            time.sleep(delay)
    raise AssertionError("unreachable")


class EntryType(Enum):
    """What a directory entry turned out to be."""
    FILE = "file"
    DIRECTORY = "directory"
    SYMLINK = "symlink"
    OTHER = "other"


@dataclass(frozen=True)
class DirEntryInfo:
    """One child returned by FileSystem.scan_dir()."""
    name: str
    type: EntryType
    size: int = 0
    mtime_ns: int = 0


class FileSystem:
    """
    Filesystem capability used by the sync engine.

    Implementations must not follow symbolic links when reporting entry
    types in scan_dir().
    """

    def scan_dir(self, path: Path) -> List[DirEntryInfo]:
        raise NotImplementedError

    def hash_file(self, path: Path, algorithm: str = "sha256") -> str:
        raise NotImplementedError

    def make_dirs(self, path: Path) -> None:
        raise NotImplementedError

    def copy_file(self, source: Path, destination: Path) -> None:
        raise NotImplementedError

    def replace_file(self, source: Path, destination: Path) -> None:
        raise NotImplementedError

    def move(self, source: Path, destination: Path) -> None:
        raise NotImplementedError

    def remove(self, path: Path) -> None:
        raise NotImplementedError

    def exists(self, path: Path) -> bool:
        raise NotImplementedError

    def is_dir(self, path: Path) -> bool:
        raise NotImplementedError

    def is_file(self, path: Path) -> bool:
        raise NotImplementedError


class LocalFileSystem(FileSystem):
    """
    FileSystem backed by the local disk.

    Mutating operations and reads go through with_retry() so a file that
    is briefly locked does not fail the action outright.
    """

    def __init__(self, retry_attempts: int = 3, retry_delay: float = 0.5):
        """
        Initialize the local filesystem.

        Args:
            retry_attempts: Attempts per operation for transient errors
            retry_delay: Seconds between attempts
        """
        self.retry_attempts = retry_attempts
        self.retry_delay = retry_delay

    def _retry(self, operation: Callable[[], T], description: str) -> T:
        return with_retry(
            operation,
            attempts=self.retry_attempts,
            delay=self.retry_delay,
            description=description
        )

    def scan_dir(self, path: Path) -> List[DirEntryInfo]:
        """
        List the immediate children of a directory.

        Symbolic links are reported as SYMLINK and never followed.

        Raises:
            OSError: If the directory itself cannot be listed
        """
        entries = []
        with os.scandir(path) as it:
            for entry in it:
                try:
                    if entry.is_symlink():
                        entries.append(DirEntryInfo(entry.name, EntryType.SYMLINK))
                    elif entry.is_dir(follow_symlinks=False):
                        entries.append(DirEntryInfo(entry.name, EntryType.DIRECTORY))
                    elif entry.is_file(follow_symlinks=False):
                        st = entry.stat(follow_symlinks=False)
                        entries.append(DirEntryInfo(
                            entry.name, EntryType.FILE, st.st_size, st.st_mtime_ns
                        ))
                    else:
                        entries.append(DirEntryInfo(entry.name, EntryType.OTHER))
                except FileNotFoundError:
                    # Vanished between listing and stat
                    logger.debug(f"Entry disappeared during scan: {entry.path}")
        return entries

    def hash_file(self, path: Path, algorithm: str = "sha256") -> str:
        return self._retry(
            lambda: calculate_file_hash(str(path), algorithm=algorithm),
            f"hashing {path}"
        )

    def make_dirs(self, path: Path) -> None:
        self._retry(
            lambda: Path(path).mkdir(parents=True, exist_ok=True),
            f"creating {path}"
        )

    def copy_file(self, source: Path, destination: Path) -> None:
        """Copy file contents and metadata (including mtime)."""
        self._retry(
            lambda: shutil.copy2(str(source), str(destination)),
            f"copying {source}"
        )

    def replace_file(self, source: Path, destination: Path) -> None:
        """Atomically replace destination with source (same filesystem)."""
        self._retry(
            lambda: os.replace(str(source), str(destination)),
            f"replacing {destination}"
        )

    def move(self, source: Path, destination: Path) -> None:
        self._retry(
            lambda: shutil.move(str(source), str(destination)),
            f"moving {source}"
        )

    def remove(self, path: Path) -> None:
        def _remove():
            if os.path.isdir(path) and not os.path.islink(path):
                shutil.rmtree(path)
            else:
                os.remove(path)
        self._retry(_remove, f"removing {path}")

    def exists(self, path: Path) -> bool:
        return os.path.lexists(path)

    def is_dir(self, path: Path) -> bool:
        return os.path.isdir(path) and not os.path.islink(path)

    def is_file(self, path: Path) -> bool:
        return os.path.isfile(path) and not os.path.islink(path)
