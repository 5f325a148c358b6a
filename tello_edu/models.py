"""Domain models for commands, responses and telemetry."""

from __future__ import annotations

from dataclasses import dataclass, fields
from typing import Any, Dict, Optional


@dataclass(frozen=True, slots=True)
class Command:
    """A single textual SDK command.

    Attributes:
        text: Encoded command, e.g. ``"up 50"``.
        timeout: Response timeout override in seconds (None = dispatcher default).
        expect_response: When False the command is sent and reported as
            successful without waiting for a reply.
    """

    text: str
    timeout: Optional[float] = None
    expect_response: bool = True


@dataclass(frozen=True, slots=True)
class CommandResponse:
    success: bool
    message: str

    @classmethod
    def failure(cls, message: str) -> "CommandResponse":
        return cls(success=False, message=message)


@dataclass(slots=True)
class Acceleration:
    x: float = 0.0
    y: float = 0.0
    z: float = 0.0


@dataclass(slots=True)
class TelemetrySnapshot:
    """Typed view of one telemetry datagram.

    Every field is None unless its key was present in the datagram the
    snapshot was parsed from. Snapshots replace each other wholesale; values
    are never carried over from an earlier datagram.
    """

    pitch: Optional[float] = None
    roll: Optional[float] = None
    yaw: Optional[float] = None
    speed_x: Optional[float] = None
    speed_y: Optional[float] = None
    speed_z: Optional[float] = None
    temp_low: Optional[float] = None
    temp_high: Optional[float] = None
    tof: Optional[float] = None
    height: Optional[float] = None
    battery: Optional[float] = None
    barometer: Optional[float] = None
    time: Optional[float] = None
    acceleration: Optional[Acceleration] = None
    # Mission pad fields; mission_pad_id is -1 when no pad is detected.
    mission_pad_id: Optional[float] = None
    mission_pad_x: Optional[float] = None
    mission_pad_y: Optional[float] = None
    mission_pad_z: Optional[float] = None

    def as_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {}
        for item in fields(self):
            value = getattr(self, item.name)
            if value is None:
                continue
            if isinstance(value, Acceleration):
                value = {"x": value.x, "y": value.y, "z": value.z}
            payload[item.name] = value
        return payload

    def is_empty(self) -> bool:
        return not self.as_dict()
