"""
dispatcher.py — Event dispatch loop for filekeep.

Consumes debounced FileEvents one at a time, in delivery order, on the
calling thread.  Only WRITE events trigger a backup; every other kind is
logged and otherwise ignored.  A failed backup is logged and never stops
the loop.
"""

from __future__ import annotations

import logging
import queue
import threading
from pathlib import Path
from typing import Optional

from filekeep.backup import BackupWriter
from filekeep.events import EventKind, FileEvent
from filekeep.exceptions import BackupError, EventSourceClosed
from filekeep.monitor import EventSource

logger = logging.getLogger(__name__)

# How often the loop checks its stop event while idle
POLL_INTERVAL_SECONDS = 0.5

_DEBUG_MESSAGES = {
    EventKind.NOTICE_WRITE: "NoticeWrite event: Something is happening with %s.",
    EventKind.NOTICE_REMOVE: "NoticeRemove event: %s is being removed.",
    EventKind.CREATE: "Create event: %s was just created.",
    EventKind.CHMOD: "Chmod event: The attributes of %s just changed.",
    EventKind.REMOVE: "Remove event: %s removed.",
}


def dispatch(event: FileEvent, writer: BackupWriter) -> Optional[Path]:
    """Handle a single event.  Returns the backup path for a successful WRITE."""
    kind = event.kind

    if kind is EventKind.WRITE:
        logger.debug("Write event: %s was just written to.", event.path)
        try:
            return writer.backup(event.path)
        except BackupError as exc:
            logger.error("Error while processing write event in file %s: %s", event.path, exc)
        except Exception:
            logger.exception("Unexpected error while backing up %s", event.path)
        return None

    if kind is EventKind.RENAME:
        logger.debug("Rename event: %s renamed to %s.", event.path, event.dest_path)
    elif kind is EventKind.RESCAN:
        logger.debug("Rescan event.")
    elif kind is EventKind.ERROR:
        logger.error("Error event: Encountered error %s while watching %s.", event.error, event.path)
    else:
        logger.debug(_DEBUG_MESSAGES[kind], event.path)
    return None


def run(
    source: EventSource,
    writer: BackupWriter,
    stop_event: Optional[threading.Event] = None,
) -> None:
    """Dispatch events until *stop_event* is set.

    Without a stop event this never returns normally.

    Raises:
        EventSourceClosed: the event source is disconnected.
    """
    timeout = None if stop_event is None else POLL_INTERVAL_SECONDS
    while stop_event is None or not stop_event.is_set():
        try:
            event = source.next(timeout=timeout)
        except queue.Empty:
            continue
        dispatch(event, writer)
    logger.info("Dispatch loop stopped.")


def drain(source: EventSource, writer: BackupWriter) -> int:
    """Dispatch every event still queued in *source* without blocking.

    Used after an orderly stop, once the watch handle has flushed its
    pending changes.  Returns the number of events handled.
    """
    count = 0
    while True:
        try:
            event = source.next(timeout=0)
        except (queue.Empty, EventSourceClosed):
            break
        dispatch(event, writer)
        count += 1
    if count:
        logger.info("Drained %d pending event(s).", count)
    return count
