import asyncio
from typing import Callable, Optional

import pytest
import pytest_asyncio

from tello_edu.adapters.udp import ChannelClosedError, TransportError
from tello_edu.config import CommandConfig, DroneConfig, SafetyConfig
from tello_edu.session import TelloSession

PEER = ("192.168.10.1", 8889)

Responder = Callable[[str], Optional[str]]


def default_responder(text: str) -> Optional[str]:
    # The drone never answers RC frames.
    if text.startswith("rc "):
        return None
    return "ok"


class FakeChannel:
    """In-memory stand-in for UDPChannel that records every datagram sent."""

    def __init__(
        self,
        name: str,
        *,
        local_host: str = "0.0.0.0",
        local_port: int = 0,
        remote=None,
        responder: Optional[Responder] = None,
        reply_delay: float = 0.0,
    ) -> None:
        self.name = name
        self.local_host = local_host
        self.local_port = local_port
        self.remote = remote
        self.responder = responder
        self.reply_delay = reply_delay

        self.is_open = False
        self.closed = False
        self.fail_open = False
        self.fail_send = False
        self.sent: list[tuple[float, str]] = []
        self.error_handlers: list = []
        self._handler = None

    @property
    def texts(self) -> list[str]:
        return [text for _, text in self.sent]

    async def open(self) -> None:
        if self.fail_open:
            raise OSError(98, "Address already in use")
        self.is_open = True

    def send(self, data: bytes) -> None:
        if not self.is_open:
            raise ChannelClosedError(f"{self.name} channel is not open")
        if self.fail_send:
            raise TransportError("Network is unreachable")

        loop = asyncio.get_running_loop()
        text = data.decode("utf-8")
        self.sent.append((loop.time(), text))

        if self.responder is None:
            return
        reply = self.responder(text)
        if reply is None:
            return
        if self.reply_delay > 0:
            loop.call_later(self.reply_delay, self.feed, reply)
        else:
            loop.call_soon(self.feed, reply)

    def feed(self, payload) -> None:
        if isinstance(payload, str):
            payload = payload.encode("utf-8")
        if self._handler is not None:
            self._handler(payload, PEER)

    def set_message_handler(self, handler) -> None:
        self._handler = handler

    def register_error_handler(self, handler) -> None:
        self.error_handlers.append(handler)

    def close(self) -> None:
        self.is_open = False
        self.closed = True
        self._handler = None


class FakeChannelFactory:
    """Channel factory recording the channels a session creates, by name."""

    def __init__(self) -> None:
        self.responder: Responder = default_responder
        self.reply_delay = 0.0
        self.fail_open: set[str] = set()
        self.channels: dict[str, FakeChannel] = {}
        self.created: list[FakeChannel] = []

    def __call__(self, name, *, local_host, local_port, remote=None) -> FakeChannel:
        channel = FakeChannel(
            name,
            local_host=local_host,
            local_port=local_port,
            remote=remote,
            # Route through the factory so tests can swap the responder later.
            responder=(lambda text: self.responder(text)) if name == "command" else None,
            reply_delay=self.reply_delay,
        )
        channel.fail_open = name in self.fail_open
        self.channels[name] = channel
        self.created.append(channel)
        return channel

    @property
    def command(self) -> FakeChannel:
        return self.channels["command"]

    @property
    def state(self) -> FakeChannel:
        return self.channels["state"]


@pytest.fixture
def channel_factory() -> FakeChannelFactory:
    return FakeChannelFactory()


@pytest_asyncio.fixture
async def make_session(channel_factory):
    """Build sessions wired to fake channels with short test timings."""

    sessions: list[TelloSession] = []

    def _create(
        *,
        response_timeout: float = 0.2,
        settle_delay: float = 0.0,
        monitor_interval: float = 0.05,
        connection_timeout: float = 5.0,
        low_battery_threshold: int = 10,
        auto_land: bool = True,
    ) -> TelloSession:
        session = TelloSession(
            DroneConfig(response_timeout_seconds=response_timeout),
            command_config=CommandConfig(
                settle_delay_seconds=settle_delay,
                takeoff_timeout_seconds=response_timeout,
                land_timeout_seconds=response_timeout,
                throwfly_timeout_seconds=response_timeout,
            ),
            safety_config=SafetyConfig(
                low_battery_threshold=low_battery_threshold,
                auto_land_on_low_battery=auto_land,
                connection_timeout_seconds=connection_timeout,
                monitor_interval_seconds=monitor_interval,
            ),
            channel_factory=channel_factory,
        )
        sessions.append(session)
        return session

    yield _create

    for session in sessions:
        await session.disconnect()


@pytest_asyncio.fixture
async def connected_session(make_session, channel_factory):
    session = make_session()
    response = await session.connect()
    assert response.success
    yield session
    await session.disconnect()
