"""Tests for the periodic stats reporter."""

import json
import logging
import threading
import time

from streamer.counters import StatCounters
from streamer.reporter import StatReporter


class TestBuildRecord:
    def test_merges_bus_and_counters(self, bus):
        bus.publish("s", b"12345")
        counters = StatCounters()
        counters.increment("/tmp/a.log:lines_seen")

        reporter = StatReporter(bus, counters, 1, threading.Event())
        record = reporter.build_record()

        assert record == {
            "in_bytes": 0,
            "out_bytes": 5,
            "in_msgs": 0,
            "out_msgs": 1,
            "/tmp/a.log:lines_seen": 1,
        }

    def test_missing_bus_stats_default_to_zero(self):
        class QuietBus:
            def stats(self):
                return {}

        record = StatReporter(QuietBus(), StatCounters(), 1, threading.Event()).build_record()
        assert record == {"in_bytes": 0, "out_bytes": 0, "in_msgs": 0, "out_msgs": 0}


class TestReportLoop:
    def test_emits_records_on_interval(self, bus):
        records = []
        shutdown = threading.Event()
        reporter = StatReporter(bus, StatCounters(), 0.05, shutdown, sink=records.append)
        reporter.start()
        time.sleep(0.3)
        reporter.stop()

        assert len(records) >= 2

    def test_zero_interval_disables(self, bus):
        records = []
        reporter = StatReporter(bus, StatCounters(), 0, threading.Event(), sink=records.append)
        assert not reporter.enabled
        reporter.start()
        time.sleep(0.1)
        reporter.stop()

        assert records == []

    def test_stop_is_prompt(self, bus):
        reporter = StatReporter(bus, StatCounters(), 60, threading.Event())
        reporter.start()
        start = time.monotonic()
        reporter.stop()
        assert time.monotonic() - start < 1.0

    def test_sink_failure_does_not_kill_thread(self, bus):
        calls = []

        def flaky(record):
            calls.append(record)
            if len(calls) == 1:
                raise ValueError("boom")

        reporter = StatReporter(bus, StatCounters(), 0.05, threading.Event(), sink=flaky)
        reporter.start()
        time.sleep(0.3)
        reporter.stop()
        assert len(calls) >= 2


class TestDefaultSink:
    def test_logs_json_record(self, bus, caplog):
        counters = StatCounters()
        counters.increment("k")
        reporter = StatReporter(bus, counters, 1, threading.Event())

        with caplog.at_level(logging.INFO, logger="streamer.reporter"):
            reporter.report_once()

        message = caplog.records[-1].getMessage()
        assert message.startswith("[stats] ")
        assert json.loads(message[len("[stats] "):])["k"] == 1
