"""Tests for TelloApp supervision and reconnection."""

from __future__ import annotations

import asyncio
from pathlib import Path

import pytest

from tello_edu.app import TelloApp
from tello_edu.config import TelloConfig, load_config
from tello_edu.session import ConnectionState


def _build_config(tmp_path: Path, *, auto_reconnect: bool = False) -> TelloConfig:
    config = load_config(tmp_path / "tello-edu.cfg")
    config.safety.monitor_interval_seconds = 0.02
    config.resilience.auto_reconnect = auto_reconnect
    config.resilience.reconnect_initial_seconds = 0.5
    config.resilience.reconnect_max_seconds = 0.5
    config.resilience.reconnect_jitter_ratio = 0.0
    return config


async def _wait_until(predicate, timeout: float = 2.0) -> None:
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not met before timeout")
        await asyncio.sleep(0.01)


@pytest.mark.asyncio
async def test_run_connects_and_shuts_down_cleanly(tmp_path, make_session, channel_factory):
    session = make_session()
    app = TelloApp(_build_config(tmp_path), session=session)

    task = asyncio.create_task(app.run())
    await _wait_until(lambda: session.connection_state == ConnectionState.CONNECTED)

    app.request_shutdown()
    await asyncio.wait_for(task, timeout=1.0)

    assert session.connection_state == ConnectionState.DISCONNECTED
    assert channel_factory.command.closed is True
    assert "land" not in channel_factory.command.texts


@pytest.mark.asyncio
async def test_shutdown_lands_a_flying_drone(tmp_path, make_session, channel_factory):
    session = make_session()
    app = TelloApp(_build_config(tmp_path), session=session)

    task = asyncio.create_task(app.run())
    await _wait_until(lambda: session.connection_state == ConnectionState.CONNECTED)
    assert (await session.takeoff()).success

    app.request_shutdown()
    await asyncio.wait_for(task, timeout=1.0)

    assert channel_factory.command.texts[-1] == "land"
    assert session.connection_state == ConnectionState.DISCONNECTED


@pytest.mark.asyncio
async def test_failed_connect_without_auto_reconnect_stays_in_error(
    tmp_path, make_session, channel_factory
):
    channel_factory.responder = lambda text: "error"
    session = make_session()
    app = TelloApp(_build_config(tmp_path), session=session)

    task = asyncio.create_task(app.run())
    await asyncio.sleep(0.1)

    snapshot = await app.health.snapshot()
    assert snapshot["status"] == "degraded"
    assert snapshot["connectionState"] == "error"
    assert channel_factory.command.texts == ["command"]

    app.request_shutdown()
    await asyncio.wait_for(task, timeout=1.0)


@pytest.mark.asyncio
async def test_auto_reconnect_recovers_after_failed_connect(
    tmp_path, make_session, channel_factory
):
    channel_factory.responder = lambda text: "error"
    session = make_session()
    app = TelloApp(_build_config(tmp_path, auto_reconnect=True), session=session)

    task = asyncio.create_task(app.run())
    await _wait_until(lambda: session.connection_state == ConnectionState.ERROR)

    channel_factory.responder = lambda text: "ok"
    await _wait_until(lambda: session.connection_state == ConnectionState.CONNECTED)

    assert len([c for c in channel_factory.created if c.name == "command"]) == 2

    app.request_shutdown()
    await asyncio.wait_for(task, timeout=1.0)


@pytest.mark.asyncio
async def test_reconnect_waits_for_auto_land_after_telemetry_loss(
    tmp_path, make_session, channel_factory
):
    # The land reply is held back so the automatic landing stays in flight.
    channel_factory.responder = lambda text: None if text == "land" else "ok"
    session = make_session(
        response_timeout=2.0, connection_timeout=0.1, monitor_interval=0.02
    )
    app = TelloApp(_build_config(tmp_path, auto_reconnect=True), session=session)

    task = asyncio.create_task(app.run())
    await _wait_until(lambda: session.connection_state == ConnectionState.CONNECTED)
    first_channel = channel_factory.command
    assert (await session.takeoff()).success

    await _wait_until(lambda: session.connection_state == ConnectionState.ERROR)
    await _wait_until(lambda: "land" in first_channel.texts)
    # Longer than one supervision tick plus the reconnect delay.
    await asyncio.sleep(0.8)

    assert session.safety.auto_land_in_progress is True
    assert len([c for c in channel_factory.created if c.name == "command"]) == 1

    first_channel.feed("ok")
    await _wait_until(lambda: not session.safety.auto_land_in_progress)
    await _wait_until(
        lambda: len([c for c in channel_factory.created if c.name == "command"]) == 2
    )

    assert first_channel.texts.count("land") == 1
    assert first_channel.closed is True

    app.request_shutdown()
    await asyncio.wait_for(task, timeout=2.0)
