"""Constants used across the tello-edu package."""

from __future__ import annotations

from pathlib import Path

APP_NAME = "tello-edu"
DEFAULT_CONFIG_FILENAME = f"{APP_NAME}.cfg"
DEFAULT_CONFIG_PATH = Path.home() / ".config" / APP_NAME / DEFAULT_CONFIG_FILENAME
DEFAULT_LOG_PATH = Path.home() / ".local" / "state" / APP_NAME / f"{APP_NAME}.log"

DEFAULT_DRONE_HOST = "192.168.10.1"
DEFAULT_BIND_HOST = "0.0.0.0"
DEFAULT_COMMAND_PORT = 8889
DEFAULT_STATE_PORT = 8890
DEFAULT_VIDEO_PORT = 11111

DEFAULT_RESPONSE_TIMEOUT_SECONDS = 7.0
DEFAULT_TAKEOFF_TIMEOUT_SECONDS = 20.0
DEFAULT_LAND_TIMEOUT_SECONDS = 20.0
DEFAULT_THROWFLY_TIMEOUT_SECONDS = 15.0
# The drone drops commands that arrive back-to-back.
DEFAULT_SETTLE_DELAY_SECONDS = 0.1

DEFAULT_MONITOR_INTERVAL_SECONDS = 1.0
DEFAULT_CONNECTION_TIMEOUT_SECONDS = 5.0
DEFAULT_LOW_BATTERY_THRESHOLD = 10

RC_LIMIT = 100

HANDSHAKE_COMMAND = "command"
OK_RESPONSE = "ok"
TIMEOUT_MESSAGE = "Command timeout"
SENT_MESSAGE = "Command sent"
NOT_CONNECTED_MESSAGE = "Not connected"
