"""
Error types raised by HydraBot.

Only startup failures (config, lock) are fatal. Failures during normal
operation (task cycles, message handlers, interactions, guild deployment)
are caught and logged where they happen and are not represented here.
"""

from __future__ import annotations

from enum import Enum
from pathlib import Path


class HydraBotError(Exception):
    """Base class for all HydraBot errors."""


class ConfigMissing(HydraBotError):
    """The config file does not exist."""

    def __init__(self, path: Path) -> None:
        super().__init__(f"config file not found: {path}")
        self.path = path


class ConfigParseError(HydraBotError):
    """The config file exists but is not valid JSON or fails validation."""

    def __init__(self, path: Path, reason: str) -> None:
        super().__init__(f"could not parse config file {path}: {reason}")
        self.path = path
        self.reason = reason


class CacheReadError(HydraBotError):
    """A cache file exists but could not be read or decoded."""

    def __init__(self, path: Path, reason: str) -> None:
        super().__init__(f"could not read cache file {path}: {reason}")
        self.path = path


class LockHeld(HydraBotError):
    """Another process holds the lock on the cache directory."""

    def __init__(self, path: Path) -> None:
        super().__init__(f"directory is locked by another instance: {path}")
        self.path = path


class ReplayErrorType(str, Enum):
    """Why a replay file could not be parsed."""

    UNSUPPORTED_OLD = "unsupported_old"
    UNKNOWN = "unknown"


class ReplayParseError(HydraBotError):
    """A replay file could not be parsed."""

    def __init__(self, message: str, error_type: ReplayErrorType = ReplayErrorType.UNKNOWN) -> None:
        super().__init__(message)
        self.error_type = error_type
