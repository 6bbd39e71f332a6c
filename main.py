"""Entry point for the log streamer."""

import logging
import socket
import sys
import threading

from streamer.bus import NatsBus
from streamer.config import load_config
from streamer.counters import StatCounters
from streamer.dispatcher import Dispatcher
from streamer.errors import StreamerError
from streamer.logging_setup import configure_logging
from streamer.notifier import ChangeNotifier
from streamer.paths import resolve_paths
from streamer.reporter import StatReporter


def run(config) -> int:
    logger = logging.getLogger(__name__)

    specs = resolve_paths(config.paths)
    hostname = socket.gethostname()
    logger.info("Starting streamer on %s: %d file(s), prefix=%r", hostname, len(specs), config.prefix)

    bus = NatsBus.connect(config.nats)
    counters = StatCounters()
    notifier = ChangeNotifier()
    reporter = StatReporter(bus, counters, config.report_sec, threading.Event())

    notifier.start()
    reporter.start()
    try:
        dispatcher = Dispatcher(
            bus,
            counters,
            hostname,
            prefix=config.prefix,
            separator=config.separator,
            poll_interval=config.poll_interval,
            missing_timeout=config.missing_timeout,
            notifier=notifier,
        )
        dispatcher.run(specs)
    finally:
        reporter.stop()
        notifier.stop()
        bus.close()
    return 0


def main(argv: list[str] | None = None) -> int:
    try:
        config = load_config(argv)
    except StreamerError as e:
        print(f"streamer: {e}", file=sys.stderr)
        return 1

    try:
        logger = configure_logging(config.log)
    except OSError as e:
        print(f"streamer: cannot open log file: {e}", file=sys.stderr)
        return 1

    try:
        return run(config)
    except StreamerError as e:
        logger.error("Fatal: %s", e)
        return 1


if __name__ == "__main__":
    sys.exit(main())
