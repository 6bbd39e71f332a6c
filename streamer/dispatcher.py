"""Dispatcher: one tail worker thread per file, joined before returning."""

import logging
import os
import threading

from streamer.counters import StatCounters
from streamer.errors import DispatchError
from streamer.paths import PathSpec
from streamer.worker import TailWorker

logger = logging.getLogger(__name__)


class Dispatcher:
    """Fans out a TailWorker per PathSpec and waits for all of them.

    There is no limit on the number of concurrent workers. A failing worker
    only logs; it never stops the others.
    """

    def __init__(
        self,
        bus,
        counters: StatCounters,
        hostname: str,
        prefix: str = "",
        separator: str = ".",
        poll_interval: float = 0.5,
        missing_timeout: float = 30.0,
        notifier=None,
        shutdown_event: threading.Event | None = None,
    ):
        self._bus = bus
        self._counters = counters
        self._hostname = hostname
        self._prefix = prefix
        self._separator = separator
        self._poll_interval = poll_interval
        self._missing_timeout = missing_timeout
        self._notifier = notifier
        self._shutdown = shutdown_event

    def build_worker(self, spec: PathSpec) -> TailWorker:
        return TailWorker(
            spec,
            self._bus,
            self._counters,
            self._hostname,
            prefix=self._prefix,
            separator=self._separator,
            poll_interval=self._poll_interval,
            missing_timeout=self._missing_timeout,
            notifier=self._notifier,
            shutdown_event=self._shutdown,
        )

    def run(self, specs: list[PathSpec]) -> list[TailWorker]:
        """Run one worker per PathSpec and block until every worker has terminated."""
        logger.debug("Building tailers for %d file(s)", len(specs))
        workers: list[TailWorker] = []
        threads: list[threading.Thread] = []
        try:
            for spec in specs:
                worker = self.build_worker(spec)
                t = threading.Thread(
                    target=worker.run,
                    name=f"tail-{os.path.basename(spec.path)}",
                    daemon=True,
                )
                t.start()
                workers.append(worker)
                threads.append(t)
        except RuntimeError as e:
            logger.error("Could not spawn tail worker: %s", e)
            self._join(threads)
            raise DispatchError(f"could not spawn tail worker: {e}") from e

        logger.debug("Waiting for %d tailer(s) to complete", len(threads))
        self._join(threads)

        failed = sum(1 for w in workers if w.error is not None)
        logger.info("All tailers finished: %d file(s), %d with errors", len(workers), failed)
        return workers

    @staticmethod
    def _join(threads: list[threading.Thread]):
        for t in threads:
            t.join()
