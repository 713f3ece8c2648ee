"""
debounce.py — Per-path debounce buffer for filekeep.

watchdog reports every raw change.  The Debouncer coalesces them per path
and emits a single FileEvent once the path has been quiet for the window;
write and remove notices go out immediately.
"""

from __future__ import annotations

import logging
import threading
from pathlib import Path
from typing import Callable, Dict, Optional

from filekeep.events import EventKind, FileEvent

logger = logging.getLogger(__name__)


class Debouncer:
    """Coalesces raw changes per path and emits one event once the path is quiet.

    ``emit`` is called from the observer thread for immediate notices and
    from timer threads for debounced events; it must be thread-safe.
    """

    def __init__(self, emit: Callable[[FileEvent], None], delay: float = 5.0):
        self.delay = delay
        self._emit = emit
        self._lock = threading.Lock()
        self._pending: Dict[Path, FileEvent] = {}
        self._timers: Dict[Path, threading.Timer] = {}

    # ------------------------------------------------------------------
    # Raw callbacks
    # ------------------------------------------------------------------

    def on_modified(self, path: Path) -> None:
        with self._lock:
            current = self._pending.get(path)
            if current is None:
                self._emit(FileEvent(EventKind.NOTICE_WRITE, path))
            if current is None or current.kind not in (EventKind.CREATE, EventKind.WRITE):
                self._pending[path] = FileEvent(EventKind.WRITE, path)
            self._restart_timer(path)

    def on_attrib(self, path: Path) -> None:
        with self._lock:
            current = self._pending.get(path)
            if current is None or current.kind in (EventKind.CHMOD, EventKind.REMOVE):
                self._pending[path] = FileEvent(EventKind.CHMOD, path)
            self._restart_timer(path)

    def on_created(self, path: Path) -> None:
        with self._lock:
            self._pending[path] = FileEvent(EventKind.CREATE, path)
            self._restart_timer(path)

    def on_deleted(self, path: Path) -> None:
        with self._lock:
            self._emit(FileEvent(EventKind.NOTICE_REMOVE, path))
            current = self._pending.get(path)
            if current is not None and current.kind is EventKind.CREATE:
                # created and removed within one window: nothing to report
                self._drop(path)
                return
            self._pending[path] = FileEvent(EventKind.REMOVE, path)
            self._restart_timer(path)

    def on_moved(self, src: Path, dest: Path) -> None:
        with self._lock:
            self._drop(src)
            self._pending[src] = FileEvent(EventKind.RENAME, src, dest_path=dest)
            self._restart_timer(src)

    def on_error(self, error: str, path: Optional[Path] = None) -> None:
        with self._lock:
            self._emit(FileEvent(EventKind.ERROR, path, error=error))

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def flush(self) -> None:
        """Emit every pending event now, in insertion order."""
        with self._lock:
            events = list(self._pending.values())
            for timer in self._timers.values():
                timer.cancel()
            self._pending.clear()
            self._timers.clear()
            for event in events:
                self._emit(event)

    def cancel(self) -> None:
        """Drop every pending event without emitting it."""
        with self._lock:
            for timer in self._timers.values():
                timer.cancel()
            if self._pending:
                logger.debug("Discarding %d pending event(s)", len(self._pending))
            self._pending.clear()
            self._timers.clear()

    @property
    def pending_count(self) -> int:
        with self._lock:
            return len(self._pending)

    # ------------------------------------------------------------------
    # Internals (caller holds the lock)
    # ------------------------------------------------------------------

    def _restart_timer(self, path: Path) -> None:
        timer = self._timers.get(path)
        if timer is not None:
            timer.cancel()
        timer = threading.Timer(self.delay, self._fire, args=(path,))
        timer.daemon = True
        self._timers[path] = timer
        timer.start()

    def _drop(self, path: Path) -> None:
        timer = self._timers.pop(path, None)
        if timer is not None:
            timer.cancel()
        self._pending.pop(path, None)

    def _fire(self, path: Path) -> None:
        with self._lock:
            # a restarted timer may already be running when cancelled
            if self._timers.get(path) is not threading.current_thread():
                return
            del self._timers[path]
            event = self._pending.pop(path, None)
            if event is not None:
                self._emit(event)
