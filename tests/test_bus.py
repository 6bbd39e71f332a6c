"""Tests for the NATS bus adapter, using a fake asyncio client."""

import asyncio
import threading

import pytest
from nats.errors import ConnectionClosedError

from streamer.bus import NatsBus, create_tls_context
from streamer.config import NatsConfig
from streamer.errors import PublishError


class FakeClient:
    def __init__(self, max_payload=1024, error=None, delay=0.0):
        self.max_payload = max_payload
        self.error = error
        self.delay = delay
        self.published = []
        self.drained = False
        self.stats = {
            "in_msgs": 1, "out_msgs": 2, "in_bytes": 3, "out_bytes": 4, "reconnects": 5,
        }

    async def publish(self, subject, payload=b""):
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        self.published.append((subject, payload))

    async def drain(self):
        self.drained = True


@pytest.fixture
def make_bus():
    buses = []

    def factory(client, **kwargs):
        bus = NatsBus(client, **kwargs)
        buses.append(bus)
        return bus

    yield factory
    for bus in buses:
        bus.close()


class TestPublish:
    def test_publish_reaches_client(self, make_bus):
        client = FakeClient()
        bus = make_bus(client)
        bus.publish("svc.a_log", b'{"@msg":"x"}')
        assert client.published == [("svc.a_log", b'{"@msg":"x"}')]

    def test_client_error_wrapped(self, make_bus):
        bus = make_bus(FakeClient(error=ConnectionClosedError()))
        with pytest.raises(PublishError) as exc_info:
            bus.publish("s", b"x")
        assert isinstance(exc_info.value.__cause__, ConnectionClosedError)

    def test_timeout_wrapped(self, make_bus):
        bus = make_bus(FakeClient(delay=2.0), publish_timeout=0.1)
        with pytest.raises(PublishError):
            bus.publish("s", b"x")

    def test_concurrent_publishers_keep_per_thread_order(self, make_bus):
        client = FakeClient()
        bus = make_bus(client)

        def publish_many(name):
            for i in range(50):
                bus.publish(name, str(i).encode())

        threads = [threading.Thread(target=publish_many, args=(f"t{n}",)) for n in range(4)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert len(client.published) == 200
        for n in range(4):
            seq = [int(p) for s, p in client.published if s == f"t{n}"]
            assert seq == list(range(50))


class TestStatsAndLimits:
    def test_max_payload(self, make_bus):
        assert make_bus(FakeClient(max_payload=512)).max_payload == 512

    def test_stats_mapped(self, make_bus):
        assert make_bus(FakeClient()).stats() == {
            "in_msgs": 1, "out_msgs": 2, "in_bytes": 3, "out_bytes": 4,
        }


class TestClose:
    def test_close_drains(self):
        client = FakeClient()
        bus = NatsBus(client)
        bus.close()
        assert client.drained

    def test_close_tolerates_drain_error(self):
        class BrokenDrain(FakeClient):
            async def drain(self):
                raise ConnectionClosedError()

        NatsBus(BrokenDrain()).close()


class TestConnectOptions:
    def test_plain(self, make_bus):
        bus = make_bus(FakeClient())
        opts = bus.connect_options(NatsConfig(servers=["nats://a:4222"], name="n"))
        assert opts["servers"] == ["nats://a:4222"]
        assert opts["name"] == "n"
        assert "user" not in opts
        assert "token" not in opts
        assert "tls" not in opts
        assert callable(opts["error_cb"])

    def test_credentials(self, make_bus):
        bus = make_bus(FakeClient())
        opts = bus.connect_options(NatsConfig(user="u", password="p", token="t"))
        assert opts["user"] == "u"
        assert opts["password"] == "p"
        assert opts["token"] == "t"


class TestTlsContext:
    def test_none_without_files(self):
        assert create_tls_context(NatsConfig()) is None

    def test_missing_ca_raises(self):
        with pytest.raises((FileNotFoundError, OSError)):
            create_tls_context(NatsConfig(ca_file="/nonexistent/ca.pem"))
