"""TailWorker: ships every line of one file to the bus."""

import enum
import logging
import threading

from streamer.counters import BLANKS_SEEN, LINES_SEEN, OVER_SIZE, StatCounters, counter_key
from streamer.encoder import encode
from streamer.errors import StreamerError
from streamer.paths import PathSpec
from streamer.subject import subject_for
from streamer.tail import LineSource

logger = logging.getLogger(__name__)


class WorkerState(enum.Enum):
    STARTING = "starting"
    RUNNING = "running"
    DRAINING = "draining"
    TERMINATED = "terminated"


class TailWorker:
    """Tails one file and publishes each non-blank line under one subject.

    The worker never restarts itself: once its line source ends or fails,
    or a publish fails, it stays TERMINATED and keeps the error on ``error``.
    """

    def __init__(
        self,
        spec: PathSpec,
        bus,
        counters: StatCounters,
        hostname: str,
        prefix: str = "",
        separator: str = ".",
        poll_interval: float = 0.5,
        missing_timeout: float = 30.0,
        notifier=None,
        shutdown_event: threading.Event | None = None,
        source_factory=LineSource,
    ):
        self._spec = spec
        self._bus = bus
        self._counters = counters
        self._hostname = hostname
        self._subject = subject_for(spec.prefix or prefix, spec.path, separator)
        self._poll_interval = poll_interval
        self._missing_timeout = missing_timeout
        self._notifier = notifier
        self._shutdown = shutdown_event
        self._source_factory = source_factory
        self._source = None
        self._max_payload = 0
        self._published = 0
        self.state = WorkerState.STARTING
        self.error: Exception | None = None

        self._lines_key = counter_key(spec.path, LINES_SEEN)
        self._blanks_key = counter_key(spec.path, BLANKS_SEEN)
        self._over_size_key = counter_key(spec.path, OVER_SIZE)

    @property
    def path(self) -> str:
        return self._spec.path

    @property
    def subject(self) -> str:
        return self._subject

    @property
    def published(self) -> int:
        return self._published

    def run(self):
        """Tail until the source ends or an error occurs. Never raises StreamerError or OSError."""
        try:
            self._start()
            logger.info("Starting to tail forever: file=%s subject=%s", self.path, self._subject)
            self._run_loop()
            logger.info("Line source ended: file=%s subject=%s", self.path, self._subject)
        except (StreamerError, OSError) as e:
            self.error = e
            logger.warning(
                "Problem tailing file: file=%s subject=%s error=%s", self.path, self._subject, e
            )
        finally:
            self.state = WorkerState.DRAINING
            if self._source is not None:
                self._source.close()
            self.state = WorkerState.TERMINATED

    def _start(self):
        self._max_payload = self._bus.max_payload
        self._source = self._source_factory(
            self._spec.path,
            poll_interval=self._poll_interval,
            missing_timeout=self._missing_timeout,
            notifier=self._notifier,
            shutdown_event=self._shutdown,
            max_line_bytes=self._max_payload,
            on_oversize=self._drop_unbuffered,
        )
        self.state = WorkerState.RUNNING

    def _run_loop(self):
        for line in self._source:
            self._handle_line(line)

    def _handle_line(self, line: str):
        msg = line.strip()
        if not msg:
            self._counters.increment(self._blanks_key)
            return

        self._counters.increment(self._lines_key)
        payload = encode(self._spec.path, self._hostname, msg)
        if len(payload) > self._max_payload:
            logger.warning(
                "Dropping oversized line: file=%s subject=%s size=%d max_payload=%d",
                self.path, self._subject, len(payload), self._max_payload,
            )
            self._counters.increment(self._over_size_key)
            return

        self._bus.publish(self._subject, payload)
        self._published += 1

    def _drop_unbuffered(self, size: int):
        # the source discarded a line longer than any payload could hold
        self._counters.increment(self._lines_key)
        self._counters.increment(self._over_size_key)
