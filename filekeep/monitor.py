"""
monitor.py — File-system watch registration for filekeep.

Uses the ``watchdog`` library to watch the configured files.  Raw events
are filtered down to the watched files, coalesced by a
:class:`~filekeep.debounce.Debouncer`, and delivered to the dispatcher
through an :class:`EventSource`.

Public API
----------
register(rule_table, debounce_seconds)
    Validate every rule, create backup directories, start watching.
    Returns ``(WatchHandle, EventSource)``.

EventSource.next(timeout)
    Block until the next debounced FileEvent arrives.
"""

from __future__ import annotations

import logging
import os
import queue
import time
from pathlib import Path
from typing import Callable, Dict, Iterable, Optional, Tuple

from watchdog.events import (
    FileCreatedEvent,
    FileDeletedEvent,
    FileModifiedEvent,
    FileMovedEvent,
    FileSystemEvent,
    FileSystemEventHandler,
)
from watchdog.observers import Observer

from filekeep.config import DEFAULT_DEBOUNCE_SECONDS
from filekeep.debounce import Debouncer
from filekeep.events import FileEvent
from filekeep.exceptions import EventSourceClosed, WatcherInitError
from filekeep.rules import RuleTable

logger = logging.getLogger(__name__)

# How often a blocking ``next()`` checks that the observer is still alive
_LIVENESS_POLL_SECONDS = 1.0

_CLOSED = object()


# ---------------------------------------------------------------------------
# Event source
# ---------------------------------------------------------------------------

class EventSource:
    """Thread-safe FIFO of debounced events with a blocking ``next()``.

    The source counts as disconnected once :meth:`close` has been called
    and every queued event has been consumed, or once the bound observer
    thread has died.
    """

    def __init__(self, observer=None) -> None:  # noqa: ANN001
        self._queue: queue.Queue = queue.Queue()
        self._observer = observer

    def bind(self, observer) -> None:  # noqa: ANN001
        self._observer = observer

    def put(self, event: FileEvent) -> None:
        self._queue.put(event)

    def close(self) -> None:
        self._queue.put(_CLOSED)

    def next(self, timeout: Optional[float] = None) -> FileEvent:
        """Return the next event.

        Raises:
            queue.Empty: *timeout* elapsed without an event.
            EventSourceClosed: no event can ever arrive again.
        """
        deadline = None if timeout is None else time.monotonic() + timeout
        while True:
            if deadline is None:
                wait = _LIVENESS_POLL_SECONDS
            else:
                wait = max(0.0, min(_LIVENESS_POLL_SECONDS, deadline - time.monotonic()))
            try:
                item = self._queue.get(timeout=wait)
            except queue.Empty:
                if self._observer is not None and not self._observer.is_alive():
                    raise EventSourceClosed("The file-system observer thread has stopped.")
                if deadline is not None and time.monotonic() >= deadline:
                    raise
                continue
            if item is _CLOSED:
                # stay closed for every later call
                self._queue.put(_CLOSED)
                raise EventSourceClosed("The event source was closed.")
            return item


# ---------------------------------------------------------------------------
# watchdog handler
# ---------------------------------------------------------------------------

def _stat_signature(path: Path) -> Optional[Tuple[int, int]]:
    try:
        st = path.stat()
    except OSError:
        return None
    return st.st_size, st.st_mtime_ns


class _FileKeepHandler(FileSystemEventHandler):
    """Forwards watchdog events for the watched files to the debouncer."""

    def __init__(
        self,
        debouncer: Debouncer,
        watched_files: Iterable[Path],
        watched_dirs: Iterable[Path],
    ) -> None:
        super().__init__()
        self._debouncer = debouncer
        self._watched_files = frozenset(watched_files)
        self._watched_dirs = frozenset(watched_dirs)
        # last seen (size, mtime); an unchanged signature means only metadata moved
        self._signatures: Dict[Path, Optional[Tuple[int, int]]] = {
            p: _stat_signature(p) for p in self._watched_files
        }

    def on_any_event(self, event: FileSystemEvent) -> None:
        try:
            self._route(event)
        except Exception:
            logger.exception("Failed to handle watchdog event: %s", event)

    def _route(self, event: FileSystemEvent) -> None:
        src = Path(os.fsdecode(event.src_path))

        if event.is_directory:
            # the watch itself goes away with its directory
            if src in self._watched_dirs and event.event_type in ("deleted", "moved"):
                self._debouncer.on_error(f"Watched directory was {event.event_type}.", src)
            return

        if isinstance(event, FileMovedEvent):
            dest = Path(os.fsdecode(event.dest_path))
            if src in self._watched_files or dest in self._watched_files:
                self._debouncer.on_moved(src, dest)
            if dest in self._watched_files:
                # save-by-rename: the watched file now has new contents
                self._signatures[dest] = _stat_signature(dest)
                self._debouncer.on_modified(dest)
            return

        if src not in self._watched_files:
            return

        if isinstance(event, FileModifiedEvent):
            signature = _stat_signature(src)
            if signature is not None and signature == self._signatures.get(src):
                self._debouncer.on_attrib(src)
            else:
                self._signatures[src] = signature
                self._debouncer.on_modified(src)
        elif isinstance(event, FileCreatedEvent):
            self._signatures[src] = _stat_signature(src)
            self._debouncer.on_created(src)
        elif isinstance(event, FileDeletedEvent):
            self._signatures[src] = None
            self._debouncer.on_deleted(src)


# ---------------------------------------------------------------------------
# Registration
# ---------------------------------------------------------------------------

class WatchHandle:
    """Keeps the observer and debouncer alive; :meth:`stop` tears both down."""

    def __init__(self, observer, debouncer: Debouncer, source: EventSource, watched_files: Iterable[Path]) -> None:  # noqa: ANN001
        self.observer = observer
        self.debouncer = debouncer
        self.source = source
        self.watched_files = frozenset(watched_files)

    def stop(self, flush: bool = True) -> None:
        """Stop the observer and close the event source.

        With *flush* set, changes still inside the debounce window are
        emitted into the source before it is closed, so a final
        :func:`~filekeep.dispatcher.drain` can still back them up.
        Otherwise they are discarded.
        """
        self.observer.stop()
        self.observer.join(timeout=5)
        if flush:
            self.debouncer.flush()
        else:
            self.debouncer.cancel()
        self.source.close()
        logger.info("Monitor stopped.")


def _validate_rule(file_path: Path, backup_dir: Path) -> bool:
    if not file_path.is_file():
        logger.error("Can't monitor %s. Does not exist or is not a file.", file_path)
        return False

    if backup_dir.exists() and not backup_dir.is_dir():
        logger.error(
            "Can't store backups to %s. The path already exists and is not a directory.",
            backup_dir,
        )
        return False

    try:
        backup_dir.mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        logger.error("Failed to create backup location %s. %s", backup_dir, exc)

    return True


def register(
    rule_table: RuleTable,
    debounce_seconds: float = DEFAULT_DEBOUNCE_SECONDS,
    observer_factory: Callable[[], object] = Observer,
) -> Tuple[WatchHandle, EventSource]:
    """Validate every rule and start watching the valid ones.

    Invalid rules are logged and skipped.  Each watched file's directory is
    scheduled non-recursively (once per directory) and only events for the
    watched files themselves are forwarded.

    Raises:
        WatcherInitError: the observer could not be created or started.
    """
    watched_files = []
    for file_path, backup_dir in rule_table.items():
        if not _validate_rule(file_path, backup_dir):
            continue
        logger.debug("Starting watch on file %s. Saving backups to %s.", file_path, backup_dir)
        watched_files.append(file_path)

    watched_dirs = sorted({p.parent for p in watched_files})

    source = EventSource()
    debouncer = Debouncer(source.put, delay=debounce_seconds)
    handler = _FileKeepHandler(debouncer, watched_files, watched_dirs)

    try:
        observer = observer_factory()
        for directory in watched_dirs:
            observer.schedule(handler, str(directory), recursive=False)
        observer.daemon = True
        observer.start()
    except (OSError, RuntimeError) as exc:
        raise WatcherInitError(f"Failed to create file change watcher: {exc}") from exc

    source.bind(observer)
    logger.info(
        "Monitor started: %d of %d rule(s) active across %d directories.",
        len(watched_files),
        len(rule_table),
        len(watched_dirs),
    )
    return WatchHandle(observer, debouncer, source, watched_files), source
