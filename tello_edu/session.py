"""Connection lifecycle and typed flight operations for one drone.

A :class:`TelloSession` owns the three UDP channels (command, state and
video), the command dispatcher and the safety monitor. Discrete commands go
through the dispatcher; continuous RC control is written straight to the
command channel without waiting for a reply.
"""

from __future__ import annotations

import asyncio
import logging
import math
import time
from enum import Enum
from typing import List, Optional, Set

from . import constants
from .adapters.udp import NotConnectedError, TransportError, UDPChannel
from .commands import CommandDispatcher
from .config import CommandConfig, DroneConfig, SafetyConfig
from .models import Command, CommandResponse, TelemetrySnapshot
from .protocols import Address, ChannelFactory, DatagramChannel, ListenerType
from .safety import SafetyMonitor
from .telemetry import parse_state

LOGGER = logging.getLogger(__name__)

MOVE_DIRECTIONS = ("up", "down", "left", "right", "forward", "back")
ROTATE_DIRECTIONS = ("cw", "ccw")
FLIP_DIRECTIONS = ("l", "r", "f", "b")
VIDEO_RESOLUTIONS = ("high", "low")
VIDEO_FPS = ("high", "middle", "low")

MOVE_RANGE = (20, 500)
ROTATE_RANGE = (1, 360)
SPEED_RANGE = (10, 100)
COORDINATE_RANGE = (-500, 500)
CURVE_SPEED_RANGE = (10, 60)
MISSION_PAD_RANGE = (1, 8)
BITRATE_RANGE = (0, 5)
DIRECTION_MODE_RANGE = (0, 2)


class ConnectionState(str, Enum):
    """Current state of the drone session."""

    DISCONNECTED = "disconnected"
    """No channels are open."""

    CONNECTING = "connecting"
    """Channels are being bound and the SDK handshake is in progress."""

    CONNECTED = "connected"
    """Handshake succeeded and the drone is on the ground."""

    FLYING = "flying"
    """A takeoff command succeeded."""

    ERROR = "error"
    """Handshake failure, socket error or telemetry loss; reconnect to recover."""


def _in_range(value: float, bounds: tuple[int, int]) -> bool:
    low, high = bounds
    return low <= value <= high


def _clamp_rc(value: float) -> int:
    if math.isnan(value):
        return 0
    value = max(-constants.RC_LIMIT, min(constants.RC_LIMIT, value))
    return int(math.floor(value + 0.5))


def _has_whitespace(value: str) -> bool:
    return any(char.isspace() for char in value)


class TelloSession:
    """Client-side session for a single drone speaking the text SDK."""

    def __init__(
        self,
        config: Optional[DroneConfig] = None,
        *,
        command_config: Optional[CommandConfig] = None,
        safety_config: Optional[SafetyConfig] = None,
        channel_factory: ChannelFactory = UDPChannel,
    ) -> None:
        self.config = config or DroneConfig()
        self._command_config = command_config or CommandConfig()
        safety = safety_config or SafetyConfig()
        self._channel_factory = channel_factory

        self._command_channel: Optional[DatagramChannel] = None
        self._state_channel: Optional[DatagramChannel] = None
        self._video_channel: Optional[DatagramChannel] = None
        self._dispatcher: Optional[CommandDispatcher] = None

        self._connection_state = ConnectionState.DISCONNECTED
        self._snapshot = TelemetrySnapshot()
        self._last_update: Optional[float] = None

        self._state_listeners: List[ListenerType] = []
        self._connection_listeners: List[ListenerType] = []
        self._low_battery_listeners: List[ListenerType] = []
        self._video_listeners: List[ListenerType] = []
        self._background: Set[asyncio.Task[None]] = set()

        self.safety = SafetyMonitor(
            self,
            interval=safety.monitor_interval_seconds,
            connection_timeout=safety.connection_timeout_seconds,
            low_battery_threshold=safety.low_battery_threshold,
            auto_land_on_low_battery=safety.auto_land_on_low_battery,
        )

    # ------------------------------------------------------------------
    # State accessors
    # ------------------------------------------------------------------
    @property
    def state(self) -> TelemetrySnapshot:
        """Most recent telemetry snapshot."""
        return self._snapshot

    @property
    def connection_state(self) -> ConnectionState:
        return self._connection_state

    @property
    def is_connected(self) -> bool:
        return self._connection_state in (
            ConnectionState.CONNECTED,
            ConnectionState.FLYING,
        )

    @property
    def is_flying(self) -> bool:
        return self._connection_state == ConnectionState.FLYING

    @property
    def pending_commands(self) -> int:
        return self._dispatcher.pending_count if self._dispatcher is not None else 0

    @property
    def video_locator(self) -> str:
        """Locator a video surface can open to read the raw H.264 stream."""
        return f"udp://@{constants.DEFAULT_BIND_HOST}:{self.config.video_port}"

    def seconds_since_last_update(self) -> Optional[float]:
        if self._last_update is None:
            return None
        return time.monotonic() - self._last_update

    # ------------------------------------------------------------------
    # Listeners
    # ------------------------------------------------------------------
    def add_state_listener(self, listener: ListenerType) -> None:
        self._state_listeners.append(listener)

    def remove_state_listener(self, listener: ListenerType) -> None:
        if listener in self._state_listeners:
            self._state_listeners.remove(listener)

    def add_connection_listener(self, listener: ListenerType) -> None:
        self._connection_listeners.append(listener)

    def remove_connection_listener(self, listener: ListenerType) -> None:
        if listener in self._connection_listeners:
            self._connection_listeners.remove(listener)

    def add_low_battery_listener(self, listener: ListenerType) -> None:
        self._low_battery_listeners.append(listener)

    def remove_low_battery_listener(self, listener: ListenerType) -> None:
        if listener in self._low_battery_listeners:
            self._low_battery_listeners.remove(listener)

    def add_video_listener(self, listener: ListenerType) -> None:
        self._video_listeners.append(listener)

    def remove_video_listener(self, listener: ListenerType) -> None:
        if listener in self._video_listeners:
            self._video_listeners.remove(listener)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------
    async def connect(self) -> CommandResponse:
        """Bind the command and state channels and enter SDK mode."""

        if self._connection_state in (
            ConnectionState.CONNECTING,
            ConnectionState.CONNECTED,
            ConnectionState.FLYING,
        ):
            return CommandResponse.failure("Already connected")

        self._set_connection_state(ConnectionState.CONNECTING)
        # Channels and the monitor survive the error state. Release both so the
        # telemetry grace period restarts with this attempt.
        await self.safety.stop()
        await self._teardown_channels()
        LOGGER.info(
            "Connecting to drone at %s:%s", self.config.host, self.config.command_port
        )

        try:
            command_channel = self._channel_factory(
                "command",
                local_host=self.config.bind_host,
                local_port=self.config.command_port,
                remote=(self.config.host, self.config.command_port),
            )
            state_channel = self._channel_factory(
                "state",
                local_host=self.config.bind_host,
                local_port=self.config.state_port,
            )
            self._command_channel = command_channel
            self._state_channel = state_channel

            await command_channel.open()
            await state_channel.open()

            dispatcher = CommandDispatcher(
                command_channel,
                default_timeout=self.config.response_timeout_seconds,
                settle_delay=self._command_config.settle_delay_seconds,
            )
            self._dispatcher = dispatcher
            command_channel.set_message_handler(dispatcher.handle_datagram)
            command_channel.register_error_handler(self._handle_command_channel_error)
            state_channel.set_message_handler(self._handle_state_datagram)
            self._last_update = None

            response = await self.send_command(constants.HANDSHAKE_COMMAND)
        except (OSError, TransportError) as exc:
            LOGGER.error("Connection to %s failed: %s", self.config.host, exc)
            if self._connection_state == ConnectionState.CONNECTING:
                self._set_connection_state(ConnectionState.ERROR)
            return CommandResponse.failure(str(exc) or "Connection failed")

        if self._connection_state != ConnectionState.CONNECTING:
            # disconnect() or a channel error ran while the handshake was pending.
            LOGGER.warning(
                "Handshake finished in state %s; not marking connected",
                self._connection_state.value,
            )
            return CommandResponse.failure(
                f"Connection {self._connection_state.value} during handshake"
            )

        if response.success:
            self._set_connection_state(ConnectionState.CONNECTED)
            self.safety.start()
        else:
            LOGGER.error("SDK handshake rejected: %s", response.message)
            self._set_connection_state(ConnectionState.ERROR)
        return response

    async def disconnect(self) -> None:
        """Stop monitoring, close every channel and reject pending commands."""

        await self.safety.stop()
        # A handshake rejected by the teardown must not move the state to error.
        self._set_connection_state(ConnectionState.DISCONNECTED)
        await self._teardown_channels()
        LOGGER.info("Disconnected from drone at %s", self.config.host)

    def mark_connection_lost(self, reason: str = "telemetry lost") -> None:
        if self._connection_state == ConnectionState.ERROR:
            return
        LOGGER.warning("Connection lost: %s", reason)
        self._set_connection_state(ConnectionState.ERROR)

    async def _teardown_channels(self) -> None:
        dispatcher = self._dispatcher
        self._dispatcher = None
        if dispatcher is not None:
            await dispatcher.aclose()

        for channel in (self._command_channel, self._state_channel, self._video_channel):
            if channel is not None:
                channel.close()

        self._command_channel = None
        self._state_channel = None
        self._video_channel = None

    # ------------------------------------------------------------------
    # Command dispatch
    # ------------------------------------------------------------------
    async def submit(self, command: Command) -> CommandResponse:
        """Queue ``command`` on the dispatcher.

        Raises:
            NotConnectedError: If no command channel is open.
            TransportError: If the datagram could not be sent.
        """

        dispatcher = self._dispatcher
        if dispatcher is None or dispatcher.closed:
            raise NotConnectedError(constants.NOT_CONNECTED_MESSAGE)
        return await dispatcher.submit(command)

    async def send_command(
        self,
        text: str,
        *,
        timeout: Optional[float] = None,
        expect_response: bool = True,
    ) -> CommandResponse:
        return await self.submit(
            Command(text=text, timeout=timeout, expect_response=expect_response)
        )

    # ------------------------------------------------------------------
    # Flight
    # ------------------------------------------------------------------
    async def takeoff(self) -> CommandResponse:
        response = await self.send_command(
            "takeoff", timeout=self._command_config.takeoff_timeout_seconds
        )
        if response.success and self._connection_state == ConnectionState.CONNECTED:
            self._set_connection_state(ConnectionState.FLYING)
        return response

    async def land(self) -> CommandResponse:
        response = await self.send_command(
            "land", timeout=self._command_config.land_timeout_seconds
        )
        if response.success and self._connection_state == ConnectionState.FLYING:
            self._set_connection_state(ConnectionState.CONNECTED)
        return response

    async def emergency(self) -> CommandResponse:
        """Cut the motors immediately. The tracked state is left unchanged."""
        return await self.send_command("emergency", expect_response=False)

    async def throw_takeoff(self) -> CommandResponse:
        response = await self.send_command(
            "throwfly", timeout=self._command_config.throwfly_timeout_seconds
        )
        if response.success and self._connection_state == ConnectionState.CONNECTED:
            self._set_connection_state(ConnectionState.FLYING)
        return response

    async def move(self, direction: str, distance: int) -> CommandResponse:
        if direction not in MOVE_DIRECTIONS:
            return CommandResponse.failure(
                f"Direction must be one of: {', '.join(MOVE_DIRECTIONS)}"
            )
        if not _in_range(distance, MOVE_RANGE):
            return CommandResponse.failure("Distance must be 20-500cm")
        return await self.send_command(f"{direction} {int(distance)}")

    async def rotate(self, direction: str, degrees: int) -> CommandResponse:
        if direction not in ROTATE_DIRECTIONS:
            return CommandResponse.failure("Rotation must be cw or ccw")
        if not _in_range(degrees, ROTATE_RANGE):
            return CommandResponse.failure("Degrees must be 1-360")
        return await self.send_command(f"{direction} {int(degrees)}")

    async def flip(self, direction: str) -> CommandResponse:
        if direction not in FLIP_DIRECTIONS:
            return CommandResponse.failure("Flip direction must be one of: l, r, f, b")
        return await self.send_command(f"flip {direction}")

    async def set_speed(self, speed: int) -> CommandResponse:
        if not _in_range(speed, SPEED_RANGE):
            return CommandResponse.failure("Speed must be 10-100 cm/s")
        return await self.send_command(f"speed {int(speed)}")

    def send_rc_control(
        self, left_right: float, forward_backward: float, up_down: float, yaw: float
    ) -> None:
        """Send one RC velocity frame, bypassing the command queue.

        Each axis is clamped to -100..100 and rounded. No reply is awaited.
        """

        command = "rc {} {} {} {}".format(
            _clamp_rc(left_right),
            _clamp_rc(forward_backward),
            _clamp_rc(up_down),
            _clamp_rc(yaw),
        )

        channel = self._command_channel
        if channel is None or not channel.is_open:
            LOGGER.warning("Cannot send RC control: not connected")
            return

        try:
            channel.send(command.encode("utf-8"))
        except TransportError as exc:
            LOGGER.error("RC control send failed: %s", exc)

    async def stop(self) -> CommandResponse:
        """Zero all RC axes so the drone hovers in place."""
        self.send_rc_control(0, 0, 0, 0)
        return CommandResponse(success=True, message="Stopped")

    # ------------------------------------------------------------------
    # Point-to-point and mission pad navigation
    # ------------------------------------------------------------------
    async def go_xyz_speed(self, x: int, y: int, z: int, speed: int) -> CommandResponse:
        invalid = self._validate_go(speed, x, y, z)
        if invalid is not None:
            return invalid
        return await self.send_command(f"go {int(x)} {int(y)} {int(z)} {int(speed)}")

    async def go_xyz_speed_mid(
        self, x: int, y: int, z: int, speed: int, mid: int
    ) -> CommandResponse:
        invalid = self._validate_go(speed, x, y, z) or self._validate_pads(mid)
        if invalid is not None:
            return invalid
        return await self.send_command(
            f"go {int(x)} {int(y)} {int(z)} {int(speed)} m{int(mid)}"
        )

    async def curve_xyz_speed(
        self, x1: int, y1: int, z1: int, x2: int, y2: int, z2: int, speed: int
    ) -> CommandResponse:
        invalid = self._validate_curve(speed, x1, y1, z1, x2, y2, z2)
        if invalid is not None:
            return invalid
        return await self.send_command(
            f"curve {int(x1)} {int(y1)} {int(z1)} {int(x2)} {int(y2)} {int(z2)} "
            f"{int(speed)}"
        )

    async def curve_xyz_speed_mid(
        self,
        x1: int,
        y1: int,
        z1: int,
        x2: int,
        y2: int,
        z2: int,
        speed: int,
        mid: int,
    ) -> CommandResponse:
        invalid = self._validate_curve(
            speed, x1, y1, z1, x2, y2, z2
        ) or self._validate_pads(mid)
        if invalid is not None:
            return invalid
        return await self.send_command(
            f"curve {int(x1)} {int(y1)} {int(z1)} {int(x2)} {int(y2)} {int(z2)} "
            f"{int(speed)} m{int(mid)}"
        )

    async def jump(
        self, x: int, y: int, z: int, speed: int, yaw: int, mid1: int, mid2: int
    ) -> CommandResponse:
        """Fly to (x, y, z) relative to pad ``mid2`` after locating pad ``mid1``."""
        invalid = self._validate_go(speed, x, y, z) or self._validate_pads(mid1, mid2)
        if invalid is not None:
            return invalid
        return await self.send_command(
            f"jump {int(x)} {int(y)} {int(z)} {int(speed)} {int(yaw)} "
            f"m{int(mid1)} m{int(mid2)}"
        )

    async def enable_mission_pads(self) -> CommandResponse:
        return await self.send_command("mon")

    async def disable_mission_pads(self) -> CommandResponse:
        return await self.send_command("moff")

    async def set_mission_pad_detection_direction(self, direction: int) -> CommandResponse:
        """0 = downward, 1 = forward, 2 = both."""
        if not _in_range(direction, DIRECTION_MODE_RANGE):
            return CommandResponse.failure("Detection direction must be 0, 1 or 2")
        return await self.send_command(f"mdirection {int(direction)}")

    @staticmethod
    def _validate_coordinates(*values: int) -> Optional[CommandResponse]:
        if all(_in_range(value, COORDINATE_RANGE) for value in values):
            return None
        return CommandResponse.failure("Coordinates must be -500 to 500 cm")

    def _validate_go(self, speed: int, *coordinates: int) -> Optional[CommandResponse]:
        invalid = self._validate_coordinates(*coordinates)
        if invalid is not None:
            return invalid
        if not _in_range(speed, SPEED_RANGE):
            return CommandResponse.failure("Speed must be 10-100 cm/s")
        return None

    def _validate_curve(
        self, speed: int, *coordinates: int
    ) -> Optional[CommandResponse]:
        invalid = self._validate_coordinates(*coordinates)
        if invalid is not None:
            return invalid
        if not _in_range(speed, CURVE_SPEED_RANGE):
            return CommandResponse.failure("Speed must be 10-60 cm/s for curves")
        return None

    @staticmethod
    def _validate_pads(*pads: int) -> Optional[CommandResponse]:
        if all(_in_range(pad, MISSION_PAD_RANGE) for pad in pads):
            return None
        return CommandResponse.failure("Mission pad ID must be 1-8")

    # ------------------------------------------------------------------
    # Video
    # ------------------------------------------------------------------
    async def streamon(self) -> CommandResponse:
        """Open the video channel (once) and ask the drone to start streaming."""

        if self._dispatcher is None:
            raise NotConnectedError(constants.NOT_CONNECTED_MESSAGE)

        if self._video_channel is None:
            channel = self._channel_factory(
                "video",
                local_host=self.config.bind_host,
                local_port=self.config.video_port,
            )
            try:
                await channel.open()
            except OSError as exc:
                LOGGER.error("Failed to bind video channel: %s", exc)
                return CommandResponse.failure(
                    str(exc) or "Failed to start video stream"
                )
            channel.set_message_handler(self._handle_video_datagram)
            self._video_channel = channel

        return await self.send_command("streamon")

    async def streamoff(self) -> CommandResponse:
        try:
            return await self.send_command("streamoff")
        finally:
            if self._video_channel is not None:
                self._video_channel.close()
                self._video_channel = None

    async def set_video_bitrate(self, bitrate: int) -> CommandResponse:
        """0 = auto, 1-5 = 1-5 Mbps."""
        if not _in_range(bitrate, BITRATE_RANGE):
            return CommandResponse.failure("Bitrate must be 0-5")
        return await self.send_command(f"setbitrate {int(bitrate)}")

    async def set_video_resolution(self, resolution: str) -> CommandResponse:
        if resolution not in VIDEO_RESOLUTIONS:
            return CommandResponse.failure("Resolution must be high or low")
        return await self.send_command(f"setresolution {resolution}")

    async def set_video_fps(self, fps: str) -> CommandResponse:
        if fps not in VIDEO_FPS:
            return CommandResponse.failure("FPS must be high, middle or low")
        return await self.send_command(f"setfps {fps}")

    async def set_video_camera_direction(self, direction: int) -> CommandResponse:
        """0 = forward camera, 1 = downward camera, 2 = both."""
        if not _in_range(direction, DIRECTION_MODE_RANGE):
            return CommandResponse.failure("Camera direction must be 0, 1 or 2")
        return await self.send_command(f"downvision {int(direction)}")

    # ------------------------------------------------------------------
    # Motors, configuration and maintenance
    # ------------------------------------------------------------------
    async def motor_on(self) -> CommandResponse:
        return await self.send_command("motoron")

    async def motor_off(self) -> CommandResponse:
        return await self.send_command("motoroff")

    async def set_wifi_credentials(self, ssid: str, password: str) -> CommandResponse:
        """Rename the drone's own access point. The drone reboots afterwards."""
        invalid = self._validate_wifi(ssid, password)
        if invalid is not None:
            return invalid
        return await self.send_command(f"wifi {ssid} {password}")

    async def connect_to_wifi(self, ssid: str, password: str) -> CommandResponse:
        """Join an existing network in station mode."""
        invalid = self._validate_wifi(ssid, password)
        if invalid is not None:
            return invalid
        return await self.send_command(f"ap {ssid} {password}")

    @staticmethod
    def _validate_wifi(ssid: str, password: str) -> Optional[CommandResponse]:
        if not ssid or not password:
            return CommandResponse.failure("SSID and password are required")
        if _has_whitespace(ssid) or _has_whitespace(password):
            return CommandResponse.failure("SSID and password cannot contain spaces")
        return None

    async def reboot(self) -> CommandResponse:
        return await self.send_command("reboot", expect_response=False)

    async def send_expansion_command(self, command: str) -> CommandResponse:
        command = command.strip()
        if not command:
            return CommandResponse.failure("Expansion command is required")
        return await self.send_command(f"EXT {command}")

    # ------------------------------------------------------------------
    # Read commands
    # ------------------------------------------------------------------
    async def query_sdk_version(self) -> CommandResponse:
        return await self.send_command("sdk?")

    async def query_serial_number(self) -> CommandResponse:
        return await self.send_command("sn?")

    async def query_wifi_snr(self) -> CommandResponse:
        return await self.send_command("wifi?")

    async def query_speed(self) -> CommandResponse:
        return await self.send_command("speed?")

    async def query_battery(self) -> CommandResponse:
        return await self.send_command("battery?")

    async def query_time(self) -> CommandResponse:
        return await self.send_command("time?")

    async def query_height(self) -> CommandResponse:
        return await self.send_command("height?")

    async def query_temperature(self) -> CommandResponse:
        return await self.send_command("temp?")

    async def query_attitude(self) -> CommandResponse:
        return await self.send_command("attitude?")

    async def query_barometer(self) -> CommandResponse:
        return await self.send_command("baro?")

    async def query_tof(self) -> CommandResponse:
        return await self.send_command("tof?")

    # ------------------------------------------------------------------
    # Safety settings
    # ------------------------------------------------------------------
    def set_low_battery_threshold(self, threshold: int) -> None:
        self.safety.set_low_battery_threshold(threshold)

    def set_auto_land_on_low_battery(self, enabled: bool) -> None:
        self.safety.set_auto_land_on_low_battery(enabled)

    def set_connection_timeout(self, seconds: float) -> None:
        self.safety.set_connection_timeout(seconds)

    # ------------------------------------------------------------------
    # Channel callbacks
    # ------------------------------------------------------------------
    def _handle_state_datagram(self, data: bytes, addr: Address) -> None:
        snapshot = parse_state(data.decode("ascii", errors="replace"))
        self._snapshot = snapshot
        self._last_update = time.monotonic()

        if snapshot.battery is not None and self.safety.check_battery(snapshot.battery):
            self._notify(self._low_battery_listeners, snapshot.battery)

        self._notify(self._state_listeners, snapshot)

    def _handle_video_datagram(self, data: bytes, addr: Address) -> None:
        self._notify(self._video_listeners, data)

    def _handle_command_channel_error(self, exc: Exception) -> None:
        LOGGER.error("Command channel error: %s", exc)
        self._set_connection_state(ConnectionState.ERROR)

    # ------------------------------------------------------------------
    # Notification helpers
    # ------------------------------------------------------------------
    def _set_connection_state(self, state: ConnectionState) -> None:
        if state == self._connection_state:
            return

        previous = self._connection_state
        self._connection_state = state
        LOGGER.info("Connection state %s -> %s", previous.value, state.value)
        self._notify(self._connection_listeners, state)

    def _notify(self, listeners: List[ListenerType], *args: object) -> None:
        for listener in list(listeners):
            try:
                result = listener(*args)
            except Exception:
                LOGGER.exception("Listener %r failed", listener)
                continue
            if asyncio.iscoroutine(result):
                task = asyncio.ensure_future(result)
                self._background.add(task)
                task.add_done_callback(self._on_listener_done)

    def _on_listener_done(self, task: asyncio.Task[None]) -> None:
        self._background.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            LOGGER.error("Listener coroutine failed: %s", exc, exc_info=exc)
