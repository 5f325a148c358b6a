from pathlib import Path

import pytest

from tello_edu.cli import build_parser, main, send_commands
from tello_edu.session import ConnectionState


def test_parser_collects_send_commands() -> None:
    args = build_parser().parse_args(["-c", "drone.cfg", "send", "battery?", "up 50"])

    assert args.command == "send"
    assert args.commands == ["battery?", "up 50"]
    assert args.config == Path("drone.cfg")


def test_parser_requires_subcommand() -> None:
    with pytest.raises(SystemExit):
        build_parser().parse_args([])


def test_show_config_prints_sections(tmp_path: Path, capsys) -> None:
    config_path = tmp_path / "tello-edu.cfg"
    config_path.write_text("[drone]\nhost = 10.0.0.9\n", encoding="utf-8")

    exit_code = main(["-c", str(config_path), "show-config"])

    output = capsys.readouterr().out
    assert exit_code == 0
    assert f"Configuration loaded from {config_path}" in output
    assert "[drone]" in output
    assert "host = 10.0.0.9" in output
    assert "[safety]" in output


@pytest.mark.asyncio
async def test_send_commands_prints_each_response(make_session, channel_factory, capsys):
    replies = {"battery?": "87"}
    channel_factory.responder = lambda text: replies.get(text, "ok")
    session = make_session()

    exit_code = await send_commands(session, ["takeoff", "battery?", "land"])

    output = capsys.readouterr().out.splitlines()
    assert output == ["takeoff: ok", "battery?: 87", "land: ok"]
    # Read commands reply with a value, not "ok".
    assert exit_code == 1
    assert session.connection_state == ConnectionState.DISCONNECTED
    assert channel_factory.command.closed is True


@pytest.mark.asyncio
async def test_send_commands_succeeds_when_every_reply_is_ok(make_session, capsys):
    session = make_session()

    exit_code = await send_commands(session, ["motoron", "motoroff"])

    assert exit_code == 0
    assert capsys.readouterr().out.splitlines() == ["motoron: ok", "motoroff: ok"]


@pytest.mark.asyncio
async def test_send_commands_reports_connect_failure(make_session, channel_factory, capsys):
    channel_factory.responder = lambda text: "error"
    session = make_session()

    exit_code = await send_commands(session, ["takeoff"])

    assert exit_code == 1
    assert capsys.readouterr().out.strip() == "connect: error"
    assert channel_factory.command.texts == ["command"]
    assert session.connection_state == ConnectionState.DISCONNECTED
