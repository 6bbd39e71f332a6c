"""Periodic observability record combining bus and per-file counters."""

import json
import logging
import threading

from streamer.counters import StatCounters

logger = logging.getLogger(__name__)

BUS_STATS = ("in_bytes", "out_bytes", "in_msgs", "out_msgs")


def log_record(record: dict):
    """Default sink: one compact JSON line per record."""
    logger.info("[stats] %s", json.dumps(record, sort_keys=True, separators=(",", ":")))


class StatReporter:
    """Background thread that emits one stats record every *interval* seconds.

    An interval of 0 disables reporting.
    """

    def __init__(
        self,
        bus,
        counters: StatCounters,
        interval: float,
        shutdown_event: threading.Event,
        sink=None,
    ):
        self._bus = bus
        self._counters = counters
        self._interval = interval
        self._shutdown = shutdown_event
        self._sink = sink or log_record
        self._thread: threading.Thread | None = None

    @property
    def enabled(self) -> bool:
        return self._interval > 0

    def start(self):
        """Start the reporter thread, unless reporting is disabled."""
        if not self.enabled:
            logger.debug("Stats reporting disabled")
            return
        self._thread = threading.Thread(target=self._report_loop, name="stat-reporter", daemon=True)
        self._thread.start()

    def stop(self):
        """Signal the reporter to stop and wait for it."""
        self._shutdown.set()
        if self._thread:
            self._thread.join(timeout=5)

    def build_record(self) -> dict:
        bus_stats = self._bus.stats()
        record = {name: bus_stats.get(name, 0) for name in BUS_STATS}
        record.update(self._counters.snapshot())
        return record

    def report_once(self) -> dict:
        record = self.build_record()
        self._sink(record)
        return record

    def _report_loop(self):
        while not self._shutdown.wait(self._interval):
            try:
                self.report_once()
            except Exception:
                logger.exception("Failed to emit stats record")
