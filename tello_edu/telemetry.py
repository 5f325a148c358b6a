"""Parser for the drone's semicolon-delimited state datagrams.

The drone broadcasts lines such as::

    mid:-1;x:0;y:0;z:0;pitch:0;roll:0;yaw:0;vgx:0;vgy:0;vgz:0;templ:60;
    temph:63;tof:10;h:0;bat:87;baro:152.34;time:0;agx:-2.00;agy:0.00;agz:-998.00;

Keys arrive in no guaranteed order and unknown keys are ignored.
"""

from __future__ import annotations

import math

from .models import Acceleration, TelemetrySnapshot


FIELD_MAP = {
    "pitch": "pitch",
    "roll": "roll",
    "yaw": "yaw",
    "vgx": "speed_x",
    "vgy": "speed_y",
    "vgz": "speed_z",
    "templ": "temp_low",
    "temph": "temp_high",
    "tof": "tof",
    "h": "height",
    "bat": "battery",
    "baro": "barometer",
    "time": "time",
    "mid": "mission_pad_id",
    # Bare coordinates are only meaningful relative to a detected mission pad.
    "x": "mission_pad_x",
    "y": "mission_pad_y",
    "z": "mission_pad_z",
}

ACCELERATION_KEYS = {"agx": "x", "agy": "y", "agz": "z"}


def _to_float(value: str) -> float:
    try:
        return float(value)
    except ValueError:
        return math.nan


def parse_state(line: str) -> TelemetrySnapshot:
    """Parse one state line into a sparse :class:`TelemetrySnapshot`.

    Malformed pairs are skipped and unparseable numbers become NaN; this
    function never raises for bad input.
    """

    snapshot = TelemetrySnapshot()

    for pair in line.strip().split(";"):
        key, _, value = pair.partition(":")
        key = key.strip()
        value = value.strip()
        if not key or not value:
            continue

        if key in ACCELERATION_KEYS:
            if snapshot.acceleration is None:
                snapshot.acceleration = Acceleration()
            setattr(snapshot.acceleration, ACCELERATION_KEYS[key], _to_float(value))
            continue

        attribute = FIELD_MAP.get(key)
        if attribute is None:
            continue
        setattr(snapshot, attribute, _to_float(value))

    return snapshot
