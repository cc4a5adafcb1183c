from __future__ import annotations

import io
import json
from pathlib import Path

import pytest
from dotenv import dotenv_values
from rich.console import Console

from termstory.api.models import Mode
from termstory.cli import LineRouter, build_parser
from termstory.config import settings_from_env
from termstory.console import RichConsole
from termstory.core.lines import LineRecord
from termstory.session import ConsoleSession


async def _scene(session: ConsoleSession) -> None:
    session.feed(json.dumps({"t": "scene", "text": "Room.", "choices": ["A", "B"]}))
    await session.drain()


def test_settings_from_env(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("TERMSTORY_URL", "ws://example:9000/ws")
    monkeypatch.setenv("TERMSTORY_FX", "OFF")
    monkeypatch.setenv("TERMSTORY_MAX_LINES", "50")
    monkeypatch.setenv("TERMSTORY_RECONNECT_JITTER", "0")
    settings = settings_from_env()
    assert settings.url == "ws://example:9000/ws"
    assert settings.typing.enabled is False
    assert settings.scroll.max_lines == 50
    assert settings.reconnect.jitter == 0.0
    assert settings.reconnect.delay_s == 1.5


def test_settings_defaults(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in ("TERMSTORY_URL", "TERMSTORY_FX", "TERMSTORY_MAX_LINES", "TERMSTORY_CHAR_DELAY_MS"):
        monkeypatch.delenv(name, raising=False)
    settings = settings_from_env()
    assert settings.typing.enabled is True
    assert settings.typing.char_delay_ms == 14
    assert settings.scroll.max_lines == 1000


def test_parser_flags() -> None:
    args = build_parser().parse_args(["--url", "ws://h/ws", "--no-fx", "--log-level", "debug"])
    assert args.url == "ws://h/ws"
    assert args.no_fx is True
    assert args.log_level == "debug"


@pytest.mark.asyncio
async def test_router_sends_terminal_input(plain_session: ConsoleSession, sender) -> None:
    router = LineRouter(plain_session)
    assert await router.handle("ls -la") is True
    assert sender.dumps() == [{"t": "input", "text": "ls -la"}]


@pytest.mark.asyncio
async def test_router_picks_choice_by_line_number(plain_session: ConsoleSession, sender) -> None:
    router = LineRouter(plain_session)
    await _scene(plain_session)
    assert plain_session.display.view.texts == [" ", " ", "Room.", " ", "1) A", "2) B"]

    await router.handle(":6")
    assert sender.dumps() == [{"t": "choice", "index": 2}]


@pytest.mark.asyncio
async def test_router_submits_story_text(plain_session: ConsoleSession, sender) -> None:
    router = LineRouter(plain_session)
    await _scene(plain_session)
    await router.handle("1")
    assert sender.dumps() == [{"t": "choice", "index": 1}]
    assert plain_session.story.awaiting_outcome is True


@pytest.mark.asyncio
async def test_router_local_commands(plain_session: ConsoleSession) -> None:
    router = LineRouter(plain_session)
    renderer = plain_session.display.renderer
    renderer.commit([LineRecord(text=f"row {i}") for i in range(100)])

    await router.handle(":up")
    assert renderer.auto_scroll is False
    await router.handle(":latest")
    assert renderer.auto_scroll is True

    await router.handle(":fx")
    assert plain_session.display.animating is True
    plain_session.display.set_animation(False)

    await router.handle(":bogus")
    await plain_session.drain()
    assert plain_session.display.view.texts[-2:] == ["FX: on", "unknown command: :bogus"]

    assert await router.handle(":q") is False


@pytest.mark.asyncio
async def test_console_footer_tracks_session(plain_session: ConsoleSession) -> None:
    out = io.StringIO()
    console = RichConsole(plain_session, console=Console(file=out, width=80))
    assert console.footer().plain.startswith("offline | terminal")

    await _scene(plain_session)
    assert plain_session.mode == Mode.story
    assert "choose 1-2" in console.footer().plain

    console.console.print(console.render())
    assert "1) A" in out.getvalue()


@pytest.mark.asyncio
async def test_fx_toggle_is_saved_to_the_env_file(plain_session: ConsoleSession, tmp_path: Path) -> None:
    env_file = tmp_path / ".env"
    router = LineRouter(plain_session, env_file=env_file)

    await router.handle(":fx")
    assert dotenv_values(env_file)["TERMSTORY_FX"] == "on"

    await router.handle(":fx")
    assert plain_session.display.animating is False
    assert dotenv_values(env_file)["TERMSTORY_FX"] == "off"
