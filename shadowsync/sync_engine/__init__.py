"""
Sync Engine Module

Snapshot building, comparison policy, move detection, planning and
execution.

Author: shadowsync Project
License: MIT
"""

from .scanner import SnapshotBuilder
from .comparator import ComparisonPolicy
from .move_matcher import MoveMatcher, Relocation
from .planner import SyncPlanner
from .executor import ExecutionEngine

__all__ = [
    'SnapshotBuilder',
    'ComparisonPolicy',
    'MoveMatcher',
    'Relocation',
    'SyncPlanner',
    'ExecutionEngine',
]
