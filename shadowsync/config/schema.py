"""
Configuration Schema and Models

Defines the Pydantic model for a resolved sync run, providing validation,
default values, and type checking for all options.

Author: shadowsync Project
License: MIT
"""

import hashlib
from enum import Enum
from typing import Optional
from pydantic import BaseModel, Field, validator
from pathlib import Path


class LogLevel(str, Enum):
    """Logging level options."""
    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


TRUE_STRINGS = {"true", "yes", "on", "1"}
FALSE_STRINGS = {"false", "no", "off", "0"}


def parse_bool(value) -> bool:
    """
    Convert a config value to a boolean.

    Accepts true/yes/on/1 and false/no/off/0 in any case.

    Raises:
        ValueError: For any other string
    """
    if isinstance(value, bool):
        return value
    if isinstance(value, int):
        return bool(value)
    text = str(value).strip().lower()
    if text in TRUE_STRINGS:
        return True
    if text in FALSE_STRINGS:
        return False
    raise ValueError(f"Invalid boolean value {value}")


class SyncSettings(BaseModel):
    """
    Resolved settings for one sync run.

    Loaded from YAML, environment variables and command-line overrides by
    the ConfigLoader. The sync engine treats it as read-only.
    """

    source: str = Field(
        description="Directory tree treated as ground truth (never modified)"
    )
    target: str = Field(
        description="Backup directory tree mutated to mirror the source"
    )
    verbose: bool = Field(
        default=False,
        description="Echo run log records to stdout"
    )
    dry_run: bool = Field(
        default=False,
        description="Plan and log without touching the filesystem"
    )
    move_folders: bool = Field(
        default=True,
        description="Detect folders moved or renamed in the source and move them on the target"
    )
    sync_files: bool = Field(
        default=True,
        description="Copy new files and overwrite outdated ones"
    )
    delete: bool = Field(
        default=True,
        description="Relocate target entries missing from the source to lost-and-found"
    )
    keep_versions: bool = Field(
        default=True,
        description="Keep overwritten target files in lost-and-found"
    )
    checksum: bool = Field(
        default=False,
        description="Compare file contents by hash when sizes match"
    )
    hash_algorithm: str = Field(
        default="sha256",
        description="hashlib algorithm used in checksum mode"
    )
    retry_attempts: int = Field(
        default=3,
        description="Attempts per filesystem operation for transient errors"
    )
    retry_delay: float = Field(
        default=0.5,
        description="Delay between retries in seconds"
    )
    workers: int = Field(
        default=1,
        description="Threads used for copy/overwrite actions"
    )
    log_dir: Optional[str] = Field(
        default=None,
        description="Directory for the run log (None uses the target, or the temp dir for dry runs)"
    )
    log_level: LogLevel = Field(
        default=LogLevel.INFO.value,
        description="Application logging level"
    )
    json_logs: bool = Field(
        default=False,
        description="Use JSON formatting for application logs"
    )

    class Config:
        """Pydantic configuration."""
        use_enum_values = True
        validate_assignment = True

    @validator("source", "target")
    def validate_root(cls, v):
        """Reject empty root paths."""
        if not str(v).strip():
            raise ValueError("Path must not be empty")
        return str(v).strip()

    @validator(
        "verbose", "dry_run", "move_folders", "sync_files",
        "delete", "keep_versions", "checksum", "json_logs",
        pre=True
    )
    def coerce_bool(cls, v):
        """Accept yes/no/on/off style booleans."""
        return parse_bool(v)

    @validator("retry_attempts", "workers")
    def validate_positive(cls, v):
        """Ensure counts are at least one."""
        if v < 1:
            raise ValueError(f"Must be at least 1: {v}")
        return v

    @validator("retry_delay")
    def validate_delay(cls, v):
        """Ensure delay is not negative."""
        if v < 0:
            raise ValueError(f"Delay must not be negative: {v}")
        return v

    @validator("hash_algorithm")
    def validate_hash_algorithm(cls, v):
        """Ensure hashlib knows the algorithm."""
        if v.lower() not in hashlib.algorithms_available:
            raise ValueError(f"Unsupported hash algorithm: {v}")
        return v.lower()

    @validator("target")
    def validate_distinct_roots(cls, v, values):
        """Ensure source and target do not overlap."""
        source = values.get("source")
        if source is None:
            return v
        source_path = Path(source).expanduser().resolve()
        target_path = Path(v).expanduser().resolve()
        if source_path == target_path:
            raise ValueError("Source and target must be different directories")
        if source_path in target_path.parents or target_path in source_path.parents:
            raise ValueError("Source and target must not be nested inside each other")
        return v
