"""Adapter modules for external integrations."""

from .udp import (
    ChannelClosedError,
    NotConnectedError,
    TransportError,
    UDPChannel,
)

__all__ = [
    "ChannelClosedError",
    "NotConnectedError",
    "TransportError",
    "UDPChannel",
]
