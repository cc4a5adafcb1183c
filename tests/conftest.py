from __future__ import annotations

import asyncio
from dataclasses import replace

import pytest

from termstory.api.models import OutboundMessage
from termstory.config import ConsoleSettings, ScrollSettings, TypingSettings
from termstory.display import Display
from termstory.session import ConsoleSession


class RecordingSender:
    """Outbound sink that keeps every message the client sends."""

    def __init__(self) -> None:
        self.sent: list[OutboundMessage] = []

    async def __call__(self, message: OutboundMessage) -> None:
        self.sent.append(message)

    def dumps(self) -> list[dict[str, object]]:
        return [m.model_dump() for m in self.sent]


async def tick(n: int = 2) -> None:
    """Let callbacks scheduled with `call_soon` run."""

    for _ in range(n):
        await asyncio.sleep(0)


@pytest.fixture()
def plain_settings() -> ConsoleSettings:
    return ConsoleSettings(typing=TypingSettings(enabled=False))


@pytest.fixture()
def fast_typing_settings() -> ConsoleSettings:
    # Animated, but every pause is a bare loop yield.
    return ConsoleSettings(
        typing=TypingSettings(enabled=True, char_delay_ms=0, line_delay_ms=0, scene_intro_delay_ms=0),
    )


@pytest.fixture()
def small_settings(plain_settings: ConsoleSettings) -> ConsoleSettings:
    return replace(plain_settings, scroll=ScrollSettings(max_lines=5))


@pytest.fixture()
def sender() -> RecordingSender:
    return RecordingSender()


@pytest.fixture()
def plain_session(plain_settings: ConsoleSettings, sender: RecordingSender) -> ConsoleSession:
    return ConsoleSession(plain_settings, display=Display(plain_settings), send=sender)


@pytest.fixture()
def typing_session(fast_typing_settings: ConsoleSettings, sender: RecordingSender) -> ConsoleSession:
    return ConsoleSession(fast_typing_settings, display=Display(fast_typing_settings), send=sender)
