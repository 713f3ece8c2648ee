"""
backup.py — Backup writer for filekeep.

Given the path of a file that was just written, looks up its backup
directory in the rule table and copies the file's current contents to
``<backup_dir>/<basename>-<YYYYMMDD-HHMMSS-ffffff>`` (UTC).

Failures are raised as :class:`~filekeep.exceptions.BackupError`
subclasses.  Nothing here retries; the caller logs and moves on, and the
next write to the same file tries again.
"""

from __future__ import annotations

import contextlib
import logging
import shutil
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable

from filekeep.exceptions import (
    CopyFailedError,
    InvalidFileNameError,
    NoRuleForPathError,
    PathResolutionError,
)
from filekeep.rules import RuleTable, canonicalize

logger = logging.getLogger(__name__)

TIMESTAMP_FORMAT = "%Y%m%d-%H%M%S-%f"


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def backup_name(basename: str, instant: datetime) -> str:
    """Return the backup file name for *basename* captured at *instant*.

    A naive *instant* is taken to already be UTC.

    >>> backup_name("data.txt", datetime(2024, 3, 1, 12, 0, 0, 123456))
    'data.txt-20240301-120000-123456'
    """
    if instant.tzinfo is not None:
        instant = instant.astimezone(timezone.utc)
    return f"{basename}-{instant.strftime(TIMESTAMP_FORMAT)}"


class BackupWriter:
    """Copies watched files into their backup directories.

    Parameters:
        rule_table: Canonical watched file -> canonical backup directory.
        clock:      Returns the instant used to name a backup.  Called once
                    per backup, when processing starts.
    """

    def __init__(
        self,
        rule_table: RuleTable,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._rule_table = rule_table
        self._clock = clock

    def backup(self, changed_path: str | Path) -> Path:
        """Back up *changed_path* and return the path of the new copy."""
        # non-strict: a file deleted since the event still maps to its rule,
        # and the copy below reports it missing
        try:
            canonical_path = canonicalize(changed_path, strict=False)
        except (OSError, RuntimeError) as exc:
            raise PathResolutionError(changed_path, exc) from exc

        backup_dir = self._rule_table.get(canonical_path)
        if backup_dir is None:
            raise NoRuleForPathError(canonical_path)

        if not canonical_path.name:
            raise InvalidFileNameError(canonical_path)

        destination = backup_dir / backup_name(canonical_path.name, self._clock())

        logger.debug("Backing up %s to %s", canonical_path, destination)
        created = False
        try:
            with open(canonical_path, "rb") as fsrc:
                # "x" never opens an existing artifact
                with open(destination, "xb") as fdst:
                    created = True
                    shutil.copyfileobj(fsrc, fdst)
            shutil.copymode(canonical_path, destination)
        except OSError as exc:
            if created:
                with contextlib.suppress(OSError):
                    destination.unlink()
            raise CopyFailedError(canonical_path, destination, exc) from exc
        return destination
