from __future__ import annotations

import asyncio

import pytest

from termstory.animator import TypingAnimator
from termstory.config import TypingSettings
from termstory.core.lines import LineType
from termstory.renderer import LineRenderer


def _fast(**overrides: object) -> TypingSettings:
    params: dict[str, object] = {"enabled": True, "char_delay_ms": 0, "line_delay_ms": 0}
    params.update(overrides)
    return TypingSettings(**params)  # type: ignore[arg-type]


@pytest.mark.asyncio
async def test_reveal_grows_one_character_per_tick() -> None:
    renderer = LineRenderer()
    animator = TypingAnimator(renderer, settings=_fast())
    seen: list[str] = []
    renderer.subscribe(lambda: seen.append(renderer.view.texts[-1] if len(renderer.view) else ""))

    await animator.reveal("abc", "standard")

    # Empty slot first, then one character at a time.
    assert seen == ["", "a", "ab", "abc"]
    assert renderer.view.texts == ["abc"]


@pytest.mark.asyncio
async def test_lines_never_start_before_the_previous_one_resolved() -> None:
    renderer = LineRenderer()
    animator = TypingAnimator(renderer, settings=_fast())
    futures: list[asyncio.Future[None]] = []
    violations: list[int] = []

    def _check() -> None:
        opened = len(renderer.view)
        for k, fut in enumerate(futures[: opened - 1]):
            if not fut.done():
                violations.append(k)

    renderer.subscribe(_check)
    for text in ["first line", "second", "", "fourth"]:
        futures.append(animator.reveal(text))

    await asyncio.gather(*futures)

    assert violations == []
    assert renderer.view.texts == ["first line", "second", "", "fourth"]


@pytest.mark.asyncio
async def test_completion_order_is_fifo() -> None:
    renderer = LineRenderer()
    animator = TypingAnimator(renderer, settings=_fast())
    done_order: list[str] = []

    for text in ["one", "two", "three"]:
        animator.reveal(text).add_done_callback(lambda _f, t=text: done_order.append(t))
    await animator.idle()
    await asyncio.sleep(0)

    assert done_order == ["one", "two", "three"]


@pytest.mark.asyncio
async def test_long_lines_skip_the_reveal() -> None:
    renderer = LineRenderer()
    animator = TypingAnimator(renderer, settings=_fast(max_chars_per_line=5))
    seen: list[str] = []
    renderer.subscribe(lambda: seen.append(renderer.view.texts[-1]))

    await animator.reveal("x" * 6, LineType.system)

    assert seen == ["x" * 6]
    assert renderer.view.records[0].type == LineType.system


@pytest.mark.asyncio
async def test_disabled_animator_renders_whole_line_at_once() -> None:
    renderer = LineRenderer()
    animator = TypingAnimator(renderer, settings=_fast(enabled=False))
    seen: list[str] = []
    renderer.subscribe(lambda: seen.append(renderer.view.texts[-1]))

    await animator.reveal("hello")

    assert seen == ["hello"]


@pytest.mark.asyncio
async def test_turning_animation_off_finishes_the_current_line() -> None:
    renderer = LineRenderer()
    animator = TypingAnimator(renderer, settings=_fast(char_delay_ms=5))
    fut = animator.reveal("a fairly long line of text")

    await asyncio.sleep(0.012)
    assert 0 < len(renderer.view.texts[0]) < len("a fairly long line of text")

    animator.enabled = False
    await asyncio.wait_for(fut, timeout=1)
    assert renderer.view.texts == ["a fairly long line of text"]


@pytest.mark.asyncio
async def test_clear_does_not_stop_an_in_flight_reveal() -> None:
    renderer = LineRenderer()
    animator = TypingAnimator(renderer, settings=_fast())
    fut = animator.reveal("detached")
    await asyncio.sleep(0)

    renderer.clear()
    await fut

    assert renderer.view.texts == []


@pytest.mark.asyncio
async def test_choice_index_is_kept_on_revealed_lines() -> None:
    renderer = LineRenderer()
    animator = TypingAnimator(renderer, settings=_fast())

    await animator.reveal("1) go", choice_index=1)

    record = renderer.view.records[0]
    assert record.is_choice is True
    assert record.choice_index == 1


@pytest.mark.asyncio
async def test_close_cancels_unrevealed_requests() -> None:
    renderer = LineRenderer()
    animator = TypingAnimator(renderer, settings=_fast(char_delay_ms=50))
    first = animator.reveal("slow line")
    second = animator.reveal("never shown")
    await asyncio.sleep(0)

    await animator.close()

    assert first.cancelled()
    assert second.cancelled()
    assert renderer.view.texts == [""]
