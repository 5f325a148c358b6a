"""Command-line interface for tello-edu."""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from pathlib import Path
from typing import Optional, Sequence

from . import constants
from .adapters.udp import TransportError
from .app import TelloApp
from .config import TelloConfig, load_config
from .logging import configure_logging
from .session import TelloSession

LOGGER = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="tello-edu", description="Client driver for the Tello EDU text SDK"
    )
    parser.add_argument(
        "-c",
        "--config",
        type=Path,
        default=constants.DEFAULT_CONFIG_PATH,
        help=f"Path to configuration file (default: {constants.DEFAULT_CONFIG_PATH})",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("start", help="Connect and supervise the drone session")

    send_parser = subparsers.add_parser(
        "send", help="Connect, send SDK commands in order and print each response"
    )
    send_parser.add_argument(
        "commands",
        nargs="+",
        help='SDK command strings, e.g. "battery?" "takeoff" "up 50" "land"',
    )

    subparsers.add_parser(
        "show-config", help="Print the resolved configuration and exit"
    )

    return parser


async def send_commands(
    session: TelloSession, commands: Sequence[str]
) -> int:
    """Run ``commands`` through a fresh connection. Returns a process exit code."""

    response = await session.connect()
    if not response.success:
        print(f"connect: {response.message}")
        await session.disconnect()
        return 1

    exit_code = 0
    try:
        for text in commands:
            try:
                response = await session.send_command(text)
            except TransportError as exc:
                print(f"{text}: {exc}")
                return 1
            print(f"{text}: {response.message}")
            if not response.success:
                exit_code = 1
    finally:
        await session.disconnect()
    return exit_code


def _build_session(config: TelloConfig) -> TelloSession:
    return TelloSession(
        config.drone,
        command_config=config.commands,
        safety_config=config.safety,
    )


def main(argv: Optional[list[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    config = load_config(args.config)

    if args.command == "start":
        TelloApp.start(config)
        return 0

    if args.command == "send":
        configure_logging(
            config.logging.level, log_network=config.logging.log_network
        )
        return asyncio.run(send_commands(_build_session(config), args.commands))

    if args.command == "show-config":
        print(f"Configuration loaded from {config.path!s}\n")
        for section in config.raw.sections():
            print(f"[{section}]")
            for key, value in config.raw[section].items():
                print(f"{key} = {value}")
            print()
        return 0

    LOGGER.error("Unknown command: %s", args.command)
    return 1


if __name__ == "__main__":
    sys.exit(main())
