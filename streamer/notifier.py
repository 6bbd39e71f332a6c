"""ChangeNotifier: watchdog event handler that wakes idle line sources."""

import logging
import os
import threading

from watchdog.events import (
    EVENT_TYPE_CREATED,
    EVENT_TYPE_DELETED,
    EVENT_TYPE_MODIFIED,
    EVENT_TYPE_MOVED,
    FileSystemEventHandler,
)
from watchdog.observers import Observer

logger = logging.getLogger(__name__)

_WAKE_EVENTS = {EVENT_TYPE_CREATED, EVENT_TYPE_DELETED, EVENT_TYPE_MODIFIED, EVENT_TYPE_MOVED}


class ChangeNotifier(FileSystemEventHandler):
    """Sets a registered threading.Event whenever its file changes.

    One observer watches the parent directory of every registered file, so a
    rename or re-create of the file is seen as well as appends.
    """

    def __init__(self):
        super().__init__()
        self._observer = Observer()
        self._lock = threading.Lock()
        self._waiters: dict[str, list[threading.Event]] = {}
        self._dirs: set[str] = set()

    def start(self):
        self._observer.start()

    def stop(self):
        self._observer.stop()
        self._observer.join(timeout=5)

    def watch(self, path: str, wake: threading.Event):
        """Register *wake* to be set on any change to *path*."""
        abs_path = os.path.abspath(path)
        dir_path = os.path.dirname(abs_path)
        with self._lock:
            self._waiters.setdefault(abs_path, []).append(wake)
            if dir_path in self._dirs:
                return
            self._dirs.add(dir_path)
        try:
            self._observer.schedule(self, dir_path, recursive=False)
        except OSError:
            with self._lock:
                self._dirs.discard(dir_path)
                self._waiters[abs_path].remove(wake)
            raise
        logger.debug("Watching directory: %s", dir_path)

    def unwatch(self, path: str, wake: threading.Event):
        abs_path = os.path.abspath(path)
        with self._lock:
            waiters = self._waiters.get(abs_path, [])
            if wake in waiters:
                waiters.remove(wake)

    def on_any_event(self, event):
        if event.is_directory or event.event_type not in _WAKE_EVENTS:
            return
        paths = [event.src_path, getattr(event, "dest_path", "")]
        with self._lock:
            for p in paths:
                if not p:
                    continue
                for wake in self._waiters.get(os.path.abspath(os.fsdecode(p)), []):
                    wake.set()
