"""
exceptions.py — Error types for filekeep.

ConfigurationError, WatcherInitError and EventSourceClosed are fatal.
BackupError subclasses describe a single failed backup; the dispatcher
logs them and keeps going.
"""

from __future__ import annotations

from pathlib import Path


class FileKeepError(Exception):
    pass


class ConfigurationError(FileKeepError):
    """The configuration is unreadable, malformed, or names unresolvable paths."""


class WatcherInitError(FileKeepError):
    """The file-system observer could not be created or started."""


class EventSourceClosed(FileKeepError):
    """No further events can ever arrive from the event source."""


class BackupError(FileKeepError):
    def __init__(self, path: Path | str, message: str):
        super().__init__(message)
        self.path = path


class PathResolutionError(BackupError):
    def __init__(self, path: Path | str, cause: OSError):
        super().__init__(path, f"Failed to canonicalize {str(path)!r}: {cause}")
        self.cause = cause


class NoRuleForPathError(BackupError):
    def __init__(self, path: Path | str):
        super().__init__(path, f"Don't have a backup rule for file at {str(path)!r}")


class InvalidFileNameError(BackupError):
    def __init__(self, path: Path | str):
        super().__init__(path, f"The path the write event happened at has no file name: {str(path)!r}")


class CopyFailedError(BackupError):
    def __init__(self, path: Path | str, destination: Path, cause: OSError):
        super().__init__(path, f"Failed to copy {str(path)!r} to {str(destination)!r}: {cause}")
        self.destination = destination
        self.cause = cause
