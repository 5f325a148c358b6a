"""Health and telemetry HTTP endpoint for a running drone session."""

from __future__ import annotations

import asyncio
import contextlib
import logging
import math
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any, Dict, Optional

from aiohttp import web

if TYPE_CHECKING:
    from .session import TelloSession

LOGGER = logging.getLogger(__name__)


def sanitize_for_json(value: Any) -> Any:
    """Convert NaN/Inf floats to None for JSON compatibility."""
    if isinstance(value, float):
        if math.isnan(value) or math.isinf(value):
            return None
    elif isinstance(value, dict):
        return {k: sanitize_for_json(v) for k, v in value.items()}
    elif isinstance(value, (list, tuple)):
        return [sanitize_for_json(v) for v in value]
    return value


@dataclass(slots=True)
class ComponentStatus:
    name: str
    healthy: bool
    detail: Optional[str] = None
    updated_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def as_dict(self) -> Dict[str, object]:
        return {
            "name": self.name,
            "healthy": self.healthy,
            "detail": self.detail,
            "updatedAt": self.updated_at.isoformat(timespec="seconds"),
        }


class HealthReporter:
    """Keeps the latest drone, telemetry and battery status.

    ``observe_session`` is called periodically by the app; the HTTP server
    only reads what was last observed.
    """

    def __init__(self) -> None:
        self._status: Dict[str, ComponentStatus] = {}
        self._telemetry: Dict[str, Any] = {}
        self._connection_state: Optional[str] = None
        self._lock = asyncio.Lock()

    async def update(
        self, name: str, healthy: bool, detail: Optional[str] = None
    ) -> None:
        async with self._lock:
            self._status[name] = ComponentStatus(
                name=name, healthy=healthy, detail=detail
            )

    async def observe_session(self, session: TelloSession) -> None:
        state = session.connection_state
        await self.update("drone", session.is_connected, state.value)

        age = session.seconds_since_last_update()
        if age is None:
            await self.update("telemetry", False, "no telemetry received")
        else:
            await self.update(
                "telemetry",
                age <= session.safety.connection_timeout,
                f"last update {age:.1f}s ago",
            )

        battery = session.state.battery
        if battery is not None and not math.isnan(battery):
            await self.update(
                "battery",
                battery > session.safety.low_battery_threshold,
                f"{battery:.0f}%",
            )

        async with self._lock:
            self._connection_state = state.value
            self._telemetry = session.state.as_dict()

    async def snapshot(self) -> Dict[str, object]:
        async with self._lock:
            components = [status.as_dict() for status in self._status.values()]
            connection_state = self._connection_state

        healthy = all(item["healthy"] for item in components)
        return {
            "status": "ok" if healthy else "degraded",
            "connectionState": connection_state,
            "components": components,
        }

    async def telemetry(self) -> Dict[str, Any]:
        async with self._lock:
            return sanitize_for_json(dict(self._telemetry))


class HealthServer:
    """Minimal HTTP server exposing `/healthz` and `/telemetry`."""

    def __init__(self, reporter: HealthReporter, host: str, port: int) -> None:
        self._reporter = reporter
        self._host = host
        self._port = port
        self._runner: Optional[web.AppRunner] = None
        self._site: Optional[web.TCPSite] = None

    async def start(self) -> None:
        app = web.Application()
        app.router.add_get("/healthz", self._handle_health)
        app.router.add_get("/telemetry", self._handle_telemetry)

        self._runner = web.AppRunner(app)
        await self._runner.setup()
        self._site = web.TCPSite(self._runner, self._host, self._port)
        await self._site.start()
        LOGGER.info(
            "Health endpoint listening on http://%s:%s/healthz", self._host, self._port
        )

    async def stop(self) -> None:
        with contextlib.suppress(Exception):
            if self._site is not None:
                await self._site.stop()
        if self._runner is not None:
            await self._runner.cleanup()
        self._site = None
        self._runner = None

    async def _handle_health(self, request: web.Request) -> web.Response:
        snapshot = await self._reporter.snapshot()
        status = 200 if snapshot["status"] == "ok" else 503
        return web.json_response(snapshot, status=status)

    async def _handle_telemetry(self, request: web.Request) -> web.Response:
        return web.json_response(await self._reporter.telemetry())
