"""Protocol definitions for transport channels and listeners."""

from __future__ import annotations

from typing import Any, Awaitable, Callable, Optional, Protocol, Tuple

Address = Tuple[str, int]
DatagramHandler = Callable[[bytes, Address], None]
ListenerType = Callable[..., Awaitable[None] | None]


class DatagramChannel(Protocol):
    """Minimal contract for a bound datagram channel."""

    name: str

    @property
    def is_open(self) -> bool:
        ...

    async def open(self) -> None:
        """Bind the local socket."""
        ...

    def send(self, data: bytes) -> None:
        """Send one datagram to the peer.

        Raises:
            TransportError: If the datagram cannot be handed to the socket.
        """
        ...

    def set_message_handler(self, handler: Optional[DatagramHandler]) -> None:
        ...

    def register_error_handler(self, handler: Callable[[Exception], Any]) -> None:
        ...

    def close(self) -> None:
        ...


class ChannelFactory(Protocol):
    def __call__(
        self,
        name: str,
        *,
        local_host: str,
        local_port: int,
        remote: Optional[Address] = None,
    ) -> DatagramChannel:
        ...
