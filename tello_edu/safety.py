"""Telemetry liveness and battery watchdog.

The monitor only reads session state and calls public session methods; it
never touches the sockets itself.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import time
from typing import TYPE_CHECKING, Optional

from . import constants

if TYPE_CHECKING:
    from .session import TelloSession

LOGGER = logging.getLogger(__name__)


class SafetyMonitor:
    """Auto-land on telemetry loss or low battery.

    Liveness is checked once per ``interval`` while the monitor runs. Battery
    is checked by the session for every telemetry snapshot. At most one
    automatic landing is in flight at any time.
    """

    def __init__(
        self,
        session: TelloSession,
        *,
        interval: float = constants.DEFAULT_MONITOR_INTERVAL_SECONDS,
        connection_timeout: float = constants.DEFAULT_CONNECTION_TIMEOUT_SECONDS,
        low_battery_threshold: int = constants.DEFAULT_LOW_BATTERY_THRESHOLD,
        auto_land_on_low_battery: bool = True,
    ) -> None:
        self._session = session
        self.interval = interval
        self.connection_timeout = connection_timeout
        self.low_battery_threshold = low_battery_threshold
        self.auto_land_on_low_battery = auto_land_on_low_battery

        self._task: Optional[asyncio.Task[None]] = None
        self._auto_land_task: Optional[asyncio.Task[None]] = None
        self._started_at: Optional[float] = None
        self._battery_low = False

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    @property
    def auto_land_in_progress(self) -> bool:
        return self._auto_land_task is not None and not self._auto_land_task.done()

    def start(self) -> None:
        if self.running:
            LOGGER.warning("Safety monitor already running")
            return

        self._started_at = time.monotonic()
        self._battery_low = False
        self._task = asyncio.create_task(self._run())

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await self._task
        self._task = None

    # ------------------------------------------------------------------
    # Settings
    # ------------------------------------------------------------------
    def set_low_battery_threshold(self, threshold: int) -> None:
        if not 0 <= threshold <= 100:
            LOGGER.warning("Ignoring low battery threshold %s (expected 0-100)", threshold)
            return
        self.low_battery_threshold = threshold

    def set_auto_land_on_low_battery(self, enabled: bool) -> None:
        self.auto_land_on_low_battery = enabled

    def set_connection_timeout(self, seconds: float) -> None:
        if seconds <= 0:
            LOGGER.warning("Ignoring connection timeout %s (must be positive)", seconds)
            return
        self.connection_timeout = seconds

    # ------------------------------------------------------------------
    # Checks
    # ------------------------------------------------------------------
    def check_liveness(self) -> bool:
        """Run one liveness check. Returns True when telemetry is stale."""

        elapsed = self._session.seconds_since_last_update()
        if elapsed is None:
            # No telemetry yet: measure from when monitoring started.
            started = self._started_at if self._started_at is not None else time.monotonic()
            elapsed = time.monotonic() - started

        if elapsed <= self.connection_timeout:
            return False

        if self._session.is_flying:
            self._schedule_auto_land("connection loss")
        self._session.mark_connection_lost(f"no telemetry for {elapsed:.1f}s")
        return True

    def check_battery(self, battery: float) -> bool:
        """Evaluate one battery reading. Returns True when it is at or below threshold."""

        if not battery <= self.low_battery_threshold:
            self._battery_low = False
            return False

        if not self._battery_low:
            LOGGER.warning("Low battery: %.0f%%", battery)
            self._battery_low = True

        if self.auto_land_on_low_battery and self._session.is_flying:
            self._schedule_auto_land("low battery")
        return True

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------
    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self.interval)
            try:
                self.check_liveness()
            except Exception:
                LOGGER.exception("Liveness check failed")

    def _schedule_auto_land(self, reason: str) -> None:
        if self.auto_land_in_progress:
            LOGGER.debug("Auto-land already in progress; ignoring %s", reason)
            return
        LOGGER.warning("Auto-landing due to %s", reason)
        self._auto_land_task = asyncio.create_task(self._auto_land(reason))

    async def _auto_land(self, reason: str) -> None:
        try:
            response = await self._session.land()
        except Exception as exc:
            LOGGER.error("Auto-land (%s) failed: %s", reason, exc)
            return
        if not response.success:
            LOGGER.error("Auto-land (%s) rejected: %s", reason, response.message)
