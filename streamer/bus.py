"""NATS bus adapter: a thread-safe, blocking facade over the asyncio nats-py client."""

import asyncio
import logging
import ssl
import threading
from concurrent.futures import TimeoutError as FuturesTimeoutError

from nats.aio.client import Client as NATS
from nats.errors import Error as NatsError

from streamer.config import NatsConfig
from streamer.errors import BusConnectError, PublishError

logger = logging.getLogger(__name__)

STAT_NAMES = ("in_bytes", "out_bytes", "in_msgs", "out_msgs")


def create_tls_context(conf: NatsConfig) -> ssl.SSLContext | None:
    """Build a client SSL context from the configured files, or None for plain TCP."""
    if not (conf.ca_file or conf.cert_file):
        return None
    ctx = ssl.SSLContext(ssl.PROTOCOL_TLS_CLIENT)
    ctx.minimum_version = ssl.TLSVersion.TLSv1_2
    if conf.ca_file:
        ctx.load_verify_locations(conf.ca_file)
    else:
        ctx.load_default_certs()
    if conf.cert_file:
        ctx.load_cert_chain(certfile=conf.cert_file, keyfile=conf.key_file or None)
    return ctx


class NatsBus:
    """Runs a nats-py client on a private event loop thread.

    Every method may be called from any thread; ``publish`` blocks the caller
    until the client has accepted the message or ``publish_timeout`` expires.
    Reconnection is left entirely to the client.
    """

    def __init__(self, client, publish_timeout: float = 5.0, loop: asyncio.AbstractEventLoop | None = None):
        self._client = client
        self._publish_timeout = publish_timeout
        self._thread: threading.Thread | None = None
        if loop is None:
            loop = asyncio.new_event_loop()
            self._thread = threading.Thread(target=loop.run_forever, name="nats-loop", daemon=True)
            self._thread.start()
        self._loop = loop

    @classmethod
    def connect(cls, conf: NatsConfig) -> "NatsBus":
        """Open a connection to the configured servers."""
        bus = cls(NATS(), publish_timeout=conf.publish_timeout)
        logger.debug("Connecting to nats: servers=%s name=%s", conf.servers, conf.name)
        try:
            bus._call(bus._client.connect(**bus.connect_options(conf)))
        except (NatsError, OSError, FuturesTimeoutError) as e:
            bus._stop_loop()
            raise BusConnectError(f"cannot connect to {conf.servers}: {e}") from e
        logger.info("Connected to nats (max_payload=%d)", bus.max_payload)
        return bus

    def connect_options(self, conf: NatsConfig) -> dict:
        opts = {
            "servers": conf.servers,
            "name": conf.name,
            "connect_timeout": conf.connect_timeout,
            "reconnect_time_wait": conf.reconnect_time_wait,
            "max_reconnect_attempts": conf.max_reconnect_attempts,
            "error_cb": self._on_error,
            "disconnected_cb": self._on_disconnected,
            "reconnected_cb": self._on_reconnected,
            "closed_cb": self._on_closed,
        }
        if conf.user:
            opts["user"] = conf.user
            opts["password"] = conf.password
        if conf.token:
            opts["token"] = conf.token
        tls = create_tls_context(conf)
        if tls is not None:
            opts["tls"] = tls
        return opts

    @property
    def max_payload(self) -> int:
        return self._client.max_payload

    def publish(self, subject: str, payload: bytes):
        try:
            self._call(self._client.publish(subject, payload), timeout=self._publish_timeout)
        except (NatsError, OSError, FuturesTimeoutError) as e:
            raise PublishError(f"publish to {subject} failed: {e!r}") from e

    def stats(self) -> dict:
        stats = self._client.stats
        return {name: stats.get(name, 0) for name in STAT_NAMES}

    def close(self):
        """Drain the connection and stop the event loop."""
        try:
            self._call(self._client.drain(), timeout=self._publish_timeout)
        except (NatsError, OSError, FuturesTimeoutError) as e:
            logger.warning("Error draining nats connection: %s", e)
        finally:
            self._stop_loop()

    def _call(self, coro, timeout: float | None = None):
        future = asyncio.run_coroutine_threadsafe(coro, self._loop)
        try:
            return future.result(timeout)
        except FuturesTimeoutError:
            future.cancel()
            raise

    def _stop_loop(self):
        if self._thread is None:
            return
        self._loop.call_soon_threadsafe(self._loop.stop)
        self._thread.join(timeout=5)
        self._loop.close()
        self._thread = None

    async def _on_error(self, e):
        logger.warning("nats error: %s", e)

    async def _on_disconnected(self):
        logger.warning("Disconnected from nats")

    async def _on_reconnected(self):
        url = self._client.connected_url
        logger.info("Reconnected to nats at %s", url.netloc if url else "?")

    async def _on_closed(self):
        logger.info("nats connection closed")
