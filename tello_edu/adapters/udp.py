"""UDP adapter wrapping asyncio datagram endpoints."""

from __future__ import annotations

import asyncio
import logging
from typing import Callable, List, Optional

from ..protocols import Address, DatagramHandler

LOGGER = logging.getLogger(__name__)

ErrorHandler = Callable[[Exception], None]


class TransportError(RuntimeError):
    """Raised when a datagram cannot be handed to the socket."""


class ChannelClosedError(TransportError):
    """Raised when a channel is used after it was closed or before it was opened."""


class NotConnectedError(TransportError):
    """Raised when a command is issued without an open command channel."""


class _ChannelProtocol(asyncio.DatagramProtocol):
    def __init__(self, channel: "UDPChannel") -> None:
        self._channel = channel

    def datagram_received(self, data: bytes, addr: Address) -> None:
        self._channel._on_datagram(data, addr)

    def error_received(self, exc: Exception) -> None:
        self._channel._on_error(exc)

    def connection_lost(self, exc: Optional[Exception]) -> None:
        if exc is not None:
            self._channel._on_error(exc)


class UDPChannel:
    """One bound UDP socket dedicated to a single logical channel.

    The channel owns its socket exclusively. Inbound datagrams are routed to
    a single message handler; outbound datagrams always go to ``remote``.
    """

    def __init__(
        self,
        name: str,
        *,
        local_host: str,
        local_port: int,
        remote: Optional[Address] = None,
    ) -> None:
        self.name = name
        self.local_host = local_host
        self.local_port = local_port
        self.remote = remote

        self._transport: Optional[asyncio.DatagramTransport] = None
        self._message_handler: Optional[DatagramHandler] = None
        self._error_handlers: List[ErrorHandler] = []

    @property
    def is_open(self) -> bool:
        return self._transport is not None and not self._transport.is_closing()

    @property
    def local_address(self) -> Optional[Address]:
        if self._transport is None:
            return None
        sockname = self._transport.get_extra_info("sockname")
        return (sockname[0], sockname[1]) if sockname else None

    async def open(self) -> None:
        """Bind the local socket.

        Raises:
            OSError: If the local address cannot be bound.
        """

        if self.is_open:
            return

        loop = asyncio.get_running_loop()
        transport, _ = await loop.create_datagram_endpoint(
            lambda: _ChannelProtocol(self),
            local_addr=(self.local_host, self.local_port),
        )
        self._transport = transport
        LOGGER.debug(
            "%s channel bound to %s:%s", self.name, self.local_host, self.local_port
        )

    def send(self, data: bytes) -> None:
        transport = self._transport
        if transport is None or transport.is_closing():
            raise ChannelClosedError(f"{self.name} channel is not open")
        if self.remote is None:
            raise TransportError(f"{self.name} channel has no remote address")

        try:
            transport.sendto(data, self.remote)
        except OSError as exc:
            raise TransportError(f"{self.name} send failed: {exc}") from exc
        LOGGER.debug("%s -> %s: %r", self.name, self.remote, data)

    def set_message_handler(self, handler: Optional[DatagramHandler]) -> None:
        self._message_handler = handler

    def register_error_handler(self, handler: ErrorHandler) -> None:
        self._error_handlers.append(handler)

    def close(self) -> None:
        transport = self._transport
        self._transport = None
        self._message_handler = None
        if transport is not None:
            transport.close()
            LOGGER.debug("%s channel closed", self.name)

    # ------------------------------------------------------------------
    # Protocol callbacks
    # ------------------------------------------------------------------
    def _on_datagram(self, data: bytes, addr: Address) -> None:
        handler = self._message_handler
        if handler is None:
            return
        try:
            handler(data, addr)
        except Exception:
            LOGGER.exception("%s datagram handler failed", self.name)

    def _on_error(self, exc: Exception) -> None:
        LOGGER.warning("%s channel error: %s", self.name, exc)
        for handler in list(self._error_handlers):
            try:
                handler(exc)
            except Exception:
                LOGGER.exception("%s error handler failed", self.name)
