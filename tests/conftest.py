"""
Shared test fixtures.

Author: shadowsync Project
License: MIT
"""

import os
from pathlib import Path
from typing import Dict, Optional, Union

import pytest

from shadowsync.config.schema import SyncSettings

# Fixed timestamps so size/mtime comparisons are deterministic
OLD_NS = 1_600_000_000 * 10**9
NEW_NS = 1_700_000_000 * 10**9


def write_file(
    root: Path,
    relpath: str,
    content: Union[str, bytes] = "data",
    mtime_ns: Optional[int] = OLD_NS
) -> Path:
    """Create a file (and its parents) with a fixed modification time."""
    path = root / relpath
    path.parent.mkdir(parents=True, exist_ok=True)
    if isinstance(content, str):
        content = content.encode("utf-8")
    path.write_bytes(content)
    if mtime_ns is not None:
        os.utime(path, ns=(mtime_ns, mtime_ns))
    return path


def tree_state(root: Path, skip_artifacts: bool = True) -> Dict[str, object]:
    """Map every relative path under root to its bytes (files) or 'dir'."""
    state = {}
    for path in sorted(root.rglob("*")):
        rel = path.relative_to(root).as_posix()
        if skip_artifacts and rel.split("/")[0].startswith(("SHADOWSYNC_LOST_AND_FOUND_", "shadowsync_")):
            continue
        state[rel] = "dir" if path.is_dir() else path.read_bytes()
    return state


def lost_and_found(target: Path) -> Path:
    """The single lost-and-found folder of a target."""
    folders = sorted(target.glob("SHADOWSYNC_LOST_AND_FOUND_*"))
    assert len(folders) == 1, folders
    return folders[0]


@pytest.fixture
def roots(tmp_path):
    """Empty source and target directories."""
    source = tmp_path / "source"
    target = tmp_path / "target"
    source.mkdir()
    target.mkdir()
    return source, target


@pytest.fixture
def make_settings(roots, tmp_path):
    """Factory for settings pointing at the roots fixture."""
    source, target = roots

    def _make(**overrides) -> SyncSettings:
        values = {
            "source": str(source),
            "target": str(target),
            "retry_delay": 0,
        }
        values.update(overrides)
        return SyncSettings(**values)

    return _make
