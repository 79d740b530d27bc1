"""
Error Types

Exception hierarchy for shadowsync. Only configuration and root-level scan
failures abort a run; the other kinds are recorded per entry or per action.

Author: shadowsync Project
License: MIT
"""

from typing import Optional


class ShadowSyncError(Exception):
    """Base class for all shadowsync errors."""


class ConfigurationError(ShadowSyncError):
    """Settings are missing or invalid. Raised before any scan begins."""


class ScanError(ShadowSyncError):
    """A snapshot root could not be scanned."""

    def __init__(self, message: str, path: Optional[str] = None):
        super().__init__(message)
        self.path = path


class ComparisonError(ShadowSyncError):
    """A file could not be hashed during comparison."""

    def __init__(self, message: str, path: Optional[str] = None):
        super().__init__(message)
        self.path = path


class PlanningError(ShadowSyncError):
    """A path cannot be reconciled automatically (e.g. file vs. folder)."""

    def __init__(self, message: str, path: Optional[str] = None):
        super().__init__(message)
        self.path = path


class ExecutionError(ShadowSyncError):
    """A single action could not be applied."""
