"""Thread-safe per-file event counters shared by every tail worker."""

import threading

LINES_SEEN = "lines_seen"
BLANKS_SEEN = "blanks_seen"
OVER_SIZE = "over_size"


def counter_key(path: str, suffix: str) -> str:
    """Return the counter name for *suffix* events on *path*."""
    return f"{path}:{suffix}"


class StatCounters:
    """Process-wide mapping of counter name to count.

    Keys are created on first increment and never removed.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._counts: dict[str, int] = {}

    def increment(self, key: str, n: int = 1):
        with self._lock:
            self._counts[key] = self._counts.get(key, 0) + n

    def get(self, key: str) -> int:
        with self._lock:
            return self._counts.get(key, 0)

    def snapshot(self) -> dict[str, int]:
        """Return a point-in-time copy of all counters."""
        with self._lock:
            return dict(self._counts)
