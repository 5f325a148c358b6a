"""Long-running service entry-point for tello-edu."""

from __future__ import annotations

import asyncio
import logging
import random
from typing import Optional

from .adapters.udp import TransportError
from .config import TelloConfig, load_config
from .health import HealthReporter, HealthServer
from .logging import configure_logging
from .session import ConnectionState, TelloSession

LOGGER = logging.getLogger(__name__)


class TelloApp:
    """Coordinates the session, health endpoint and reconnection.

    The app keeps one :class:`TelloSession` alive until shutdown. When
    ``resilience.auto_reconnect`` is enabled, an errored session is
    reconnected with exponential backoff; otherwise the error state is left
    for an operator to handle.
    """

    def __init__(
        self,
        config: Optional[TelloConfig] = None,
        *,
        session: Optional[TelloSession] = None,
        max_connect_attempts: int = 10,
    ) -> None:
        self._config = config or load_config()
        self._session = session or TelloSession(
            self._config.drone,
            command_config=self._config.commands,
            safety_config=self._config.safety,
        )
        self._max_connect_attempts = max_connect_attempts
        self._health = HealthReporter()
        self._health_server: Optional[HealthServer] = None
        self._shutdown_event: Optional[asyncio.Event] = None

    @property
    def session(self) -> TelloSession:
        return self._session

    @property
    def health(self) -> HealthReporter:
        return self._health

    async def run(self) -> None:
        """Connect and supervise the session until shutdown is requested."""

        self._shutdown_event = asyncio.Event()

        LOGGER.info("tello-edu starting with config: %s", self._config.path)
        await self._start_health_server()

        try:
            if not await self._connect():
                LOGGER.warning("Drone connection failed; running in degraded mode")
            await self._supervise()
        except asyncio.CancelledError:
            LOGGER.info("tello-edu received shutdown signal")
            raise
        finally:
            await self._stop_services()

    def request_shutdown(self) -> None:
        if self._shutdown_event is not None:
            self._shutdown_event.set()

    @classmethod
    def start(cls, config: Optional[TelloConfig] = None) -> None:
        instance = cls(config=config)
        configure_logging(
            instance._config.logging.level,
            log_path=instance._config.logging.path,
            log_network=instance._config.logging.log_network,
        )
        try:
            asyncio.run(instance.run())
        except KeyboardInterrupt:
            LOGGER.info("tello-edu received shutdown signal")

    # ------------------------------------------------------------------
    # Connection management
    # ------------------------------------------------------------------
    async def _connect(self) -> bool:
        response = await self._session.connect()
        if response.success:
            return True

        LOGGER.error("Connect failed: %s", response.message)
        if not self._config.resilience.auto_reconnect:
            return False
        return await self._connect_with_backoff()

    async def _connect_with_backoff(self) -> bool:
        """Attempt connection with exponential backoff.

        Returns:
            True if connection succeeded, False otherwise.
        """
        resilience = self._config.resilience
        delay = max(0.5, resilience.reconnect_initial_seconds)
        max_delay = max(delay, resilience.reconnect_max_seconds)
        jitter_ratio = max(0.0, min(1.0, resilience.reconnect_jitter_ratio))
        assert self._shutdown_event is not None

        attempt = 0
        while not self._shutdown_event.is_set() and attempt < self._max_connect_attempts:
            attempt += 1

            sleep_for = delay
            if jitter_ratio > 0.0:
                jitter = delay * jitter_ratio
                sleep_for = random.uniform(max(0.1, delay - jitter), delay + jitter)

            LOGGER.info("Reconnect attempt %d in %.1fs", attempt, sleep_for)
            try:
                await asyncio.wait_for(self._shutdown_event.wait(), timeout=sleep_for)
                break
            except asyncio.TimeoutError:
                pass

            response = await self._session.connect()
            if response.success:
                LOGGER.info("Reconnect attempt %d succeeded", attempt)
                return True

            LOGGER.warning("Reconnect attempt %d failed: %s", attempt, response.message)
            delay = min(delay * 2, max_delay)

        return False

    async def _supervise(self) -> None:
        assert self._shutdown_event is not None
        interval = self._config.safety.monitor_interval_seconds

        while not self._shutdown_event.is_set():
            await self._health.observe_session(self._session)

            if (
                self._config.resilience.auto_reconnect
                and self._session.connection_state == ConnectionState.ERROR
            ):
                if self._session.safety.auto_land_in_progress:
                    # Reconnecting would close the channel the land reply arrives on.
                    LOGGER.debug("Auto-land in progress; deferring reconnect")
                else:
                    LOGGER.info("Session in error state; reconnecting")
                    await self._connect_with_backoff()

            try:
                await asyncio.wait_for(self._shutdown_event.wait(), timeout=interval)
            except asyncio.TimeoutError:
                pass

    # ------------------------------------------------------------------
    # Startup / shutdown
    # ------------------------------------------------------------------
    async def _start_health_server(self) -> None:
        resilience = self._config.resilience
        if not resilience.health_enabled or resilience.health_port <= 0:
            return

        server = HealthServer(
            self._health,
            resilience.health_host,
            resilience.health_port,
        )
        try:
            await server.start()
        except OSError as exc:
            LOGGER.error("Failed to start health endpoint: %s", exc)
            await self._health.update("health-endpoint", False, str(exc))
        else:
            self._health_server = server

    async def _stop_services(self) -> None:
        if self._session.is_flying:
            LOGGER.warning("Landing before shutdown")
            try:
                response = await self._session.land()
            except TransportError as exc:
                LOGGER.error("Landing before shutdown failed: %s", exc)
            else:
                if not response.success:
                    LOGGER.error("Landing before shutdown rejected: %s", response.message)

        await self._session.disconnect()

        if self._health_server is not None:
            await self._health_server.stop()
            self._health_server = None

        if self._shutdown_event is not None:
            self._shutdown_event.set()
