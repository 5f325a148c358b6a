"""Tests for the state datagram parser."""

import math

from tello_edu.models import Acceleration
from tello_edu.telemetry import parse_state

FULL_LINE = (
    "mid:-1;x:0;y:0;z:0;mpry:0,0,0;pitch:1;roll:-2;yaw:45;vgx:3;vgy:0;vgz:-1;"
    "templ:60;temph:63;tof:10;h:120;bat:87;baro:152.34;time:12;"
    "agx:-2.00;agy:0.00;agz:-998.00;\r\n"
)


def test_parse_full_line_maps_every_known_key():
    snapshot = parse_state(FULL_LINE)

    assert snapshot.pitch == 1.0
    assert snapshot.roll == -2.0
    assert snapshot.yaw == 45.0
    assert snapshot.speed_x == 3.0
    assert snapshot.speed_y == 0.0
    assert snapshot.speed_z == -1.0
    assert snapshot.temp_low == 60.0
    assert snapshot.temp_high == 63.0
    assert snapshot.tof == 10.0
    assert snapshot.height == 120.0
    assert snapshot.battery == 87.0
    assert snapshot.barometer == 152.34
    assert snapshot.time == 12.0
    assert snapshot.acceleration == Acceleration(x=-2.0, y=0.0, z=-998.0)
    assert snapshot.mission_pad_id == -1.0
    assert (snapshot.mission_pad_x, snapshot.mission_pad_y, snapshot.mission_pad_z) == (
        0.0,
        0.0,
        0.0,
    )


def test_absent_keys_are_absent_not_carried_over():
    first = parse_state("bat:50;h:100;")
    second = parse_state("bat:48;")

    assert first.height == 100.0
    assert second.height is None
    assert second.battery == 48.0
    assert second.as_dict() == {"battery": 48.0}


def test_single_acceleration_axis_defaults_others_to_zero():
    snapshot = parse_state("agy:12.5;")

    assert snapshot.acceleration == Acceleration(x=0.0, y=12.5, z=0.0)


def test_unknown_keys_and_malformed_pairs_are_skipped():
    snapshot = parse_state("foo:1;bat;:5;h:;pitch:3;;wifi:90;")

    assert snapshot.as_dict() == {"pitch": 3.0}


def test_unparseable_number_becomes_nan():
    snapshot = parse_state("bat:abc;h:10;")

    assert math.isnan(snapshot.battery)
    assert snapshot.height == 10.0


def test_empty_line_yields_empty_snapshot():
    snapshot = parse_state("   \r\n")

    assert snapshot.is_empty()
    assert snapshot.acceleration is None


def test_as_dict_flattens_acceleration():
    snapshot = parse_state("agx:1;agz:3;bat:20;")

    assert snapshot.as_dict() == {
        "battery": 20.0,
        "acceleration": {"x": 1.0, "y": 0.0, "z": 3.0},
    }
