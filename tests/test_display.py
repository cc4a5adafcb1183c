from __future__ import annotations

import asyncio

import pytest

from termstory.config import ConsoleSettings, TypingSettings
from termstory.core.lines import ScrollbackView
from termstory.display import Display


@pytest.mark.asyncio
async def test_turning_fx_off_keeps_queued_lines_in_order() -> None:
    display = Display(ConsoleSettings(typing=TypingSettings(enabled=True, char_delay_ms=5, line_delay_ms=0)))

    first = display.line("abc")
    second = display.line("def")
    await asyncio.sleep(0)
    display.set_animation(False)
    third = display.line("ghi")

    await asyncio.gather(first, second, third)
    assert display.view.texts == ["abc", "def", "ghi"]

    # Nothing left to drain, so plain lines use the batch again.
    assert display.animator.busy is False
    later = display.line("jkl")
    assert display.renderer.has_pending is True
    await later
    assert display.view.texts[-1] == "jkl"


@pytest.mark.asyncio
async def test_display_uses_the_supplied_view() -> None:
    view = ScrollbackView(client_height=64, line_height=16)
    display = Display(ConsoleSettings(typing=TypingSettings(enabled=False)), view=view)
    await display.line("x")
    assert display.view is view
    assert view.texts == ["x"]
