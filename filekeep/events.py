"""
events.py — Shared event schema for filekeep.

Defines the FileEvent dataclass that the debounce layer emits and the
dispatcher consumes, plus the EventKind enum that discriminates it.
"""

from __future__ import annotations

import enum
import time
from dataclasses import dataclass, field
from pathlib import Path


class EventKind(enum.Enum):
    """Semantic (already debounced) file-system event kinds."""

    NOTICE_WRITE = "notice_write"
    NOTICE_REMOVE = "notice_remove"
    CREATE = "create"
    WRITE = "write"
    CHMOD = "chmod"
    REMOVE = "remove"
    RENAME = "rename"
    RESCAN = "rescan"
    ERROR = "error"


@dataclass(frozen=True)
class FileEvent:
    """Represents a single debounced file-system event.

    Attributes:
        kind:      What happened.  Only ``EventKind.WRITE`` triggers a backup.
        path:      Affected file.  For RENAME this is the old path; for ERROR
                   it may be ``None``.
        dest_path: New path of a RENAME, ``None`` for every other kind.
        error:     Description of the failure for ERROR events.
        timestamp: Unix epoch time when the event was emitted.
    """

    kind: EventKind
    path: Path | None
    dest_path: Path | None = None
    error: str | None = None
    timestamp: float = field(default_factory=time.time)
