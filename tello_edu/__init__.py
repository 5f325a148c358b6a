"""Client-side driver for the Tello EDU UDP text SDK."""

from .adapters import ChannelClosedError, NotConnectedError, TransportError, UDPChannel
from .commands import CommandDispatcher
from .config import TelloConfig, load_config
from .models import Acceleration, Command, CommandResponse, TelemetrySnapshot
from .safety import SafetyMonitor
from .session import ConnectionState, TelloSession
from .telemetry import parse_state

__version__ = "0.1.0"

__all__ = [
    "Acceleration",
    "ChannelClosedError",
    "Command",
    "CommandDispatcher",
    "CommandResponse",
    "ConnectionState",
    "NotConnectedError",
    "SafetyMonitor",
    "TelemetrySnapshot",
    "TelloConfig",
    "TelloSession",
    "TransportError",
    "UDPChannel",
    "load_config",
    "parse_state",
    "__version__",
]
