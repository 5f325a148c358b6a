"""Serialized command dispatch over the command channel.

The SDK has no request identifiers: a reply is whatever datagram arrives
next on the command channel. The dispatcher therefore keeps exactly one
command in flight and drains its queue strictly in submission order, pausing
for a settle delay between consecutive commands.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from collections import deque
from dataclasses import dataclass
from typing import Deque, Optional

from . import constants
from .adapters.udp import ChannelClosedError, TransportError
from .models import Command, CommandResponse
from .protocols import Address, DatagramChannel

LOGGER = logging.getLogger(__name__)


@dataclass(slots=True)
class PendingCommand:
    command: Command
    future: asyncio.Future[CommandResponse]


class CommandDispatcher:
    """Queue commands and match each one with the next inbound datagram."""

    def __init__(
        self,
        channel: DatagramChannel,
        *,
        default_timeout: float = constants.DEFAULT_RESPONSE_TIMEOUT_SECONDS,
        settle_delay: float = constants.DEFAULT_SETTLE_DELAY_SECONDS,
    ) -> None:
        self._channel = channel
        self._default_timeout = default_timeout
        self._settle_delay = settle_delay

        self._queue: Deque[PendingCommand] = deque()
        self._in_flight: Optional[PendingCommand] = None
        self._waiter: Optional[asyncio.Future[str]] = None
        self._worker: Optional[asyncio.Task[None]] = None
        self._closed = False

    @property
    def pending_count(self) -> int:
        return len(self._queue) + (1 if self._in_flight is not None else 0)

    @property
    def closed(self) -> bool:
        return self._closed

    async def submit(self, command: Command) -> CommandResponse:
        """Queue ``command`` and wait for its response.

        Protocol failures and timeouts are returned as unsuccessful responses.

        Raises:
            TransportError: If the command could not be sent, or the
                dispatcher was closed before the command completed.
        """

        if self._closed:
            raise ChannelClosedError("Command dispatcher is closed")

        loop = asyncio.get_running_loop()
        entry = PendingCommand(command=command, future=loop.create_future())
        self._queue.append(entry)

        if self._worker is None or self._worker.done():
            self._worker = asyncio.create_task(self._drain())

        return await entry.future

    def handle_datagram(self, data: bytes, addr: Address) -> None:
        """Resolve the command currently awaiting a reply, if any."""

        text = data.decode("utf-8", errors="replace").strip()
        waiter = self._waiter
        if waiter is None or waiter.done():
            LOGGER.debug("Discarding unsolicited response %r from %s", text, addr)
            return
        waiter.set_result(text)

    def close(self) -> None:
        """Reject every queued and in-flight command and stop the worker."""

        if self._closed:
            return
        self._closed = True

        error = ChannelClosedError("Command channel closed")
        if self._waiter is not None and not self._waiter.done():
            self._waiter.cancel()
        self._waiter = None

        entries = list(self._queue)
        self._queue.clear()
        if self._in_flight is not None:
            entries.insert(0, self._in_flight)
            self._in_flight = None

        for entry in entries:
            if not entry.future.done():
                entry.future.set_exception(error)

        if self._worker is not None:
            self._worker.cancel()
            self._worker = None

        if entries:
            LOGGER.info("Rejected %d pending command(s) on close", len(entries))

    async def aclose(self) -> None:
        worker = self._worker
        self.close()
        if worker is not None:
            with contextlib.suppress(asyncio.CancelledError):
                await worker

    # ------------------------------------------------------------------
    # Worker
    # ------------------------------------------------------------------
    async def _drain(self) -> None:
        while self._queue and not self._closed:
            entry = self._queue.popleft()
            if entry.future.done():
                # Caller gave up before the command was sent.
                continue

            self._in_flight = entry
            try:
                response = await self._execute(entry.command)
            except TransportError as exc:
                LOGGER.error("Failed to send %r: %s", entry.command.text, exc)
                if not entry.future.done():
                    entry.future.set_exception(exc)
            else:
                if not entry.future.done():
                    entry.future.set_result(response)
            finally:
                self._in_flight = None

            await asyncio.sleep(self._settle_delay)

    async def _execute(self, command: Command) -> CommandResponse:
        if not command.expect_response:
            self._channel.send(command.text.encode("utf-8"))
            LOGGER.debug("Sent %r without awaiting a response", command.text)
            return CommandResponse(success=True, message=constants.SENT_MESSAGE)

        timeout = (
            command.timeout if command.timeout is not None else self._default_timeout
        )
        waiter: asyncio.Future[str] = asyncio.get_running_loop().create_future()
        self._waiter = waiter
        try:
            self._channel.send(command.text.encode("utf-8"))
            LOGGER.debug("Sent %r (timeout=%.1fs)", command.text, timeout)
            try:
                reply = await asyncio.wait_for(waiter, timeout=timeout)
            except asyncio.TimeoutError:
                LOGGER.warning(
                    "No response to %r after %.1fs", command.text, timeout
                )
                return CommandResponse(
                    success=False, message=constants.TIMEOUT_MESSAGE
                )
        finally:
            if self._waiter is waiter:
                self._waiter = None

        success = reply == constants.OK_RESPONSE
        if success:
            LOGGER.debug("%r -> ok", command.text)
        else:
            LOGGER.info("%r -> %r", command.text, reply)
        return CommandResponse(success=success, message=reply)
