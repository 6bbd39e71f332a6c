import threading
import time

import pytest

from streamer.counters import StatCounters
from streamer.errors import PublishError


class RecordingBus:
    """In-memory stand-in for NatsBus that records every publish."""

    def __init__(self, max_payload: int = 1024 * 1024, fail_after: int | None = None):
        self._max_payload = max_payload
        self.max_payload_reads = 0
        self.published: list[tuple[str, bytes]] = []
        self.closed = False
        self._fail_after = fail_after
        self._lock = threading.Lock()

    @property
    def max_payload(self) -> int:
        self.max_payload_reads += 1
        return self._max_payload

    def publish(self, subject: str, payload: bytes):
        with self._lock:
            if self._fail_after is not None and len(self.published) >= self._fail_after:
                raise PublishError("connection closed")
            self.published.append((subject, payload))

    def stats(self) -> dict:
        with self._lock:
            return {
                "in_bytes": 0,
                "out_bytes": sum(len(p) for _, p in self.published),
                "in_msgs": 0,
                "out_msgs": len(self.published),
            }

    def close(self):
        self.closed = True

    def wait_for(self, count: int, timeout: float = 3.0) -> bool:
        deadline = time.monotonic() + timeout
        while time.monotonic() < deadline:
            with self._lock:
                if len(self.published) >= count:
                    return True
            time.sleep(0.02)
        return False


def collect_lines(source, count: int, timeout: float = 3.0) -> list[str]:
    """Iterate *source* on a helper thread until *count* lines or *timeout*."""
    received: list[str] = []
    done = threading.Event()

    def consume():
        for line in source:
            received.append(line)
            if len(received) >= count:
                break
        done.set()

    t = threading.Thread(target=consume, daemon=True)
    t.start()
    done.wait(timeout)
    return received


@pytest.fixture
def recording_bus():
    """Factory for RecordingBus instances with custom limits or failures."""
    return RecordingBus


@pytest.fixture
def bus(recording_bus):
    return recording_bus()


@pytest.fixture
def collect():
    return collect_lines


@pytest.fixture
def counters():
    return StatCounters()


@pytest.fixture
def shutdown():
    event = threading.Event()
    yield event
    event.set()
