"""Logging setup for the driver and its long-running service."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"

# Loggers that emit one record per datagram or HTTP request.
NETWORK_LOGGERS = {
    "tello_edu.adapters.udp": logging.INFO,
    "tello_edu.commands": logging.INFO,
    "aiohttp.access": logging.WARNING,
    "asyncio": logging.WARNING,
}


def configure_logging(
    level: str = "INFO", *, log_path: Optional[Path] = None, log_network: bool = False
) -> None:
    """Install console (and optionally file) handlers on the root logger.

    Sent and received SDK datagrams are logged at DEBUG by the UDP adapter and
    the command dispatcher. Those records, along with aiohttp access lines,
    are held back unless ``log_network`` is set, so ``level="DEBUG"`` alone
    shows session and safety decisions without one line per RC frame.
    """

    logging.captureWarnings(True)

    root = logging.getLogger()
    for handler in list(root.handlers):
        root.removeHandler(handler)

    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format=LOG_FORMAT,
    )

    if log_path:
        log_path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_path)
        file_handler.setFormatter(logging.Formatter(LOG_FORMAT))
        root.addHandler(file_handler)

    for name, quiet_level in NETWORK_LOGGERS.items():
        # NOTSET lets the logger inherit the root level again.
        logging.getLogger(name).setLevel(logging.NOTSET if log_network else quiet_level)
