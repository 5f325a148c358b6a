from pathlib import Path

from tello_edu import constants
from tello_edu.config import load_config, save_config


def test_load_config_defaults(tmp_path: Path) -> None:
    config_path = tmp_path / "tello-edu.cfg"
    config = load_config(config_path)

    assert config.drone.host == "192.168.10.1"
    assert config.drone.command_port == 8889
    assert config.drone.state_port == 8890
    assert config.drone.video_port == 11111
    assert config.drone.response_timeout_seconds == 7.0
    assert config.commands.settle_delay_seconds == 0.1
    assert config.commands.takeoff_timeout_seconds == 20.0
    assert config.commands.land_timeout_seconds == 20.0
    assert config.commands.throwfly_timeout_seconds == 15.0
    assert config.safety.low_battery_threshold == 10
    assert config.safety.auto_land_on_low_battery is True
    assert config.safety.connection_timeout_seconds == 5.0
    assert config.safety.monitor_interval_seconds == 1.0
    assert config.resilience.auto_reconnect is False
    assert config.resilience.health_port == 0
    assert config.path == config_path


def test_load_config_overrides_defaults(tmp_path: Path) -> None:
    config_file = tmp_path / "tello-edu.cfg"
    config_file.write_text(
        """
[drone]
host = 192.168.1.42
response_timeout_seconds = 3.5

[commands]
settle_delay_seconds = 0.25

[safety]
low_battery_threshold = 20
auto_land_on_low_battery = false

[logging]
level = DEBUG
log_network = true

[resilience]
auto_reconnect = true
health_enabled = true
health_port = 8080
"""
    )

    config = load_config(config_file)

    assert config.drone.host == "192.168.1.42"
    assert config.drone.command_port == constants.DEFAULT_COMMAND_PORT
    assert config.drone.response_timeout_seconds == 3.5
    assert config.commands.settle_delay_seconds == 0.25
    assert config.safety.low_battery_threshold == 20
    assert config.safety.auto_land_on_low_battery is False
    assert config.logging.level == "DEBUG"
    assert config.logging.log_network is True
    assert config.resilience.auto_reconnect is True
    assert config.resilience.health_enabled is True
    assert config.resilience.health_port == 8080


def test_load_config_clamps_out_of_range_values(tmp_path: Path) -> None:
    config_file = tmp_path / "tello-edu.cfg"
    config_file.write_text(
        """
[drone]
response_timeout_seconds = 0

[commands]
settle_delay_seconds = -1

[safety]
low_battery_threshold = 150
connection_timeout_seconds = 0
monitor_interval_seconds = 0

[resilience]
reconnect_jitter_ratio = 4
"""
    )

    config = load_config(config_file)

    assert config.drone.response_timeout_seconds == 0.1
    assert config.commands.settle_delay_seconds == 0.0
    assert config.safety.low_battery_threshold == 100
    assert config.safety.connection_timeout_seconds == 0.1
    assert config.safety.monitor_interval_seconds == 0.05
    assert config.resilience.reconnect_jitter_ratio == 1.0


def test_save_config_round_trips_raw_values(tmp_path: Path) -> None:
    config_path = tmp_path / "nested" / "tello-edu.cfg"
    config = load_config(config_path)
    config.raw.set("drone", "host", "10.0.0.7")

    save_config(config)

    assert config_path.exists()
    reloaded = load_config(config_path)
    assert reloaded.drone.host == "10.0.0.7"
