"""Configuration loader for tello-edu."""

from __future__ import annotations

from configparser import ConfigParser
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from . import constants


@dataclass(slots=True)
class DroneConfig:
    host: str = constants.DEFAULT_DRONE_HOST
    command_port: int = constants.DEFAULT_COMMAND_PORT
    state_port: int = constants.DEFAULT_STATE_PORT
    video_port: int = constants.DEFAULT_VIDEO_PORT
    bind_host: str = constants.DEFAULT_BIND_HOST
    response_timeout_seconds: float = constants.DEFAULT_RESPONSE_TIMEOUT_SECONDS


@dataclass(slots=True)
class CommandConfig:
    settle_delay_seconds: float = constants.DEFAULT_SETTLE_DELAY_SECONDS
    takeoff_timeout_seconds: float = constants.DEFAULT_TAKEOFF_TIMEOUT_SECONDS
    land_timeout_seconds: float = constants.DEFAULT_LAND_TIMEOUT_SECONDS
    throwfly_timeout_seconds: float = constants.DEFAULT_THROWFLY_TIMEOUT_SECONDS


@dataclass(slots=True)
class SafetyConfig:
    low_battery_threshold: int = constants.DEFAULT_LOW_BATTERY_THRESHOLD
    auto_land_on_low_battery: bool = True
    connection_timeout_seconds: float = constants.DEFAULT_CONNECTION_TIMEOUT_SECONDS
    monitor_interval_seconds: float = constants.DEFAULT_MONITOR_INTERVAL_SECONDS


@dataclass(slots=True)
class LoggingConfig:
    level: str = "INFO"
    path: Optional[Path] = constants.DEFAULT_LOG_PATH
    log_network: bool = False


@dataclass(slots=True)
class ResilienceConfig:
    auto_reconnect: bool = False
    reconnect_initial_seconds: float = 1.0
    reconnect_max_seconds: float = 30.0
    reconnect_jitter_ratio: float = 0.5
    health_enabled: bool = False
    health_host: str = "127.0.0.1"
    health_port: int = 0


@dataclass(slots=True)
class TelloConfig:
    drone: DroneConfig
    commands: CommandConfig
    safety: SafetyConfig
    logging: LoggingConfig
    resilience: ResilienceConfig
    raw: ConfigParser
    path: Path


def load_config(path: Optional[Path] = None) -> TelloConfig:
    """Load configuration from disk, applying defaults where necessary."""

    config_path = path or constants.DEFAULT_CONFIG_PATH
    parser = ConfigParser()
    parser.read_dict(
        {
            "drone": {
                "host": constants.DEFAULT_DRONE_HOST,
                "command_port": str(constants.DEFAULT_COMMAND_PORT),
                "state_port": str(constants.DEFAULT_STATE_PORT),
                "video_port": str(constants.DEFAULT_VIDEO_PORT),
                "bind_host": constants.DEFAULT_BIND_HOST,
                "response_timeout_seconds": str(
                    constants.DEFAULT_RESPONSE_TIMEOUT_SECONDS
                ),
            },
            "commands": {
                "settle_delay_seconds": str(constants.DEFAULT_SETTLE_DELAY_SECONDS),
                "takeoff_timeout_seconds": str(
                    constants.DEFAULT_TAKEOFF_TIMEOUT_SECONDS
                ),
                "land_timeout_seconds": str(constants.DEFAULT_LAND_TIMEOUT_SECONDS),
                "throwfly_timeout_seconds": str(
                    constants.DEFAULT_THROWFLY_TIMEOUT_SECONDS
                ),
            },
            "safety": {
                "low_battery_threshold": str(constants.DEFAULT_LOW_BATTERY_THRESHOLD),
                "auto_land_on_low_battery": "true",
                "connection_timeout_seconds": str(
                    constants.DEFAULT_CONNECTION_TIMEOUT_SECONDS
                ),
                "monitor_interval_seconds": str(
                    constants.DEFAULT_MONITOR_INTERVAL_SECONDS
                ),
            },
            "logging": {
                "level": "INFO",
                "path": str(constants.DEFAULT_LOG_PATH),
                "log_network": "false",
            },
            "resilience": {
                "auto_reconnect": "false",
                "reconnect_initial_seconds": "1.0",
                "reconnect_max_seconds": "30.0",
                "reconnect_jitter_ratio": "0.5",
                "health_enabled": "false",
                "health_host": "127.0.0.1",
                "health_port": "0",
            },
        }
    )

    if config_path.exists():
        parser.read(config_path)

    drone_defaults = DroneConfig()
    drone = DroneConfig(
        host=parser.get("drone", "host"),
        command_port=parser.getint(
            "drone", "command_port", fallback=drone_defaults.command_port
        ),
        state_port=parser.getint(
            "drone", "state_port", fallback=drone_defaults.state_port
        ),
        video_port=parser.getint(
            "drone", "video_port", fallback=drone_defaults.video_port
        ),
        bind_host=parser.get("drone", "bind_host", fallback=drone_defaults.bind_host),
        response_timeout_seconds=max(
            0.1,
            parser.getfloat(
                "drone",
                "response_timeout_seconds",
                fallback=drone_defaults.response_timeout_seconds,
            ),
        ),
    )

    command_defaults = CommandConfig()
    commands = CommandConfig(
        settle_delay_seconds=max(
            0.0,
            parser.getfloat(
                "commands",
                "settle_delay_seconds",
                fallback=command_defaults.settle_delay_seconds,
            ),
        ),
        takeoff_timeout_seconds=parser.getfloat(
            "commands",
            "takeoff_timeout_seconds",
            fallback=command_defaults.takeoff_timeout_seconds,
        ),
        land_timeout_seconds=parser.getfloat(
            "commands",
            "land_timeout_seconds",
            fallback=command_defaults.land_timeout_seconds,
        ),
        throwfly_timeout_seconds=parser.getfloat(
            "commands",
            "throwfly_timeout_seconds",
            fallback=command_defaults.throwfly_timeout_seconds,
        ),
    )

    safety_defaults = SafetyConfig()
    safety = SafetyConfig(
        low_battery_threshold=max(
            0,
            min(
                100,
                parser.getint(
                    "safety",
                    "low_battery_threshold",
                    fallback=safety_defaults.low_battery_threshold,
                ),
            ),
        ),
        auto_land_on_low_battery=parser.getboolean(
            "safety", "auto_land_on_low_battery", fallback=True
        ),
        connection_timeout_seconds=max(
            0.1,
            parser.getfloat(
                "safety",
                "connection_timeout_seconds",
                fallback=safety_defaults.connection_timeout_seconds,
            ),
        ),
        monitor_interval_seconds=max(
            0.05,
            parser.getfloat(
                "safety",
                "monitor_interval_seconds",
                fallback=safety_defaults.monitor_interval_seconds,
            ),
        ),
    )

    logging_config = LoggingConfig(
        level=parser.get("logging", "level", fallback="INFO"),
        path=Path(
            parser.get("logging", "path", fallback=str(constants.DEFAULT_LOG_PATH))
        ).expanduser(),
        log_network=parser.getboolean("logging", "log_network", fallback=False),
    )

    resilience = ResilienceConfig(
        auto_reconnect=parser.getboolean(
            "resilience", "auto_reconnect", fallback=False
        ),
        reconnect_initial_seconds=parser.getfloat(
            "resilience", "reconnect_initial_seconds", fallback=1.0
        ),
        reconnect_max_seconds=parser.getfloat(
            "resilience", "reconnect_max_seconds", fallback=30.0
        ),
        reconnect_jitter_ratio=max(
            0.0,
            min(
                1.0,
                parser.getfloat("resilience", "reconnect_jitter_ratio", fallback=0.5),
            ),
        ),
        health_enabled=parser.getboolean(
            "resilience", "health_enabled", fallback=False
        ),
        health_host=parser.get("resilience", "health_host", fallback="127.0.0.1"),
        health_port=parser.getint("resilience", "health_port", fallback=0),
    )

    return TelloConfig(
        drone=drone,
        commands=commands,
        safety=safety,
        logging=logging_config,
        resilience=resilience,
        raw=parser,
        path=config_path,
    )


def save_config(config: TelloConfig) -> None:
    """Persist the current configuration to disk."""

    config_path = config.path
    config_path.parent.mkdir(parents=True, exist_ok=True)
    with config_path.open("w", encoding="utf-8") as stream:
        config.raw.write(stream)
