from __future__ import annotations

import asyncio
from collections.abc import Sequence

from termstory.animator import TypingAnimator
from termstory.config import ConsoleSettings
from termstory.core.lines import LineRecord, LineType, ScrollbackView
from termstory.renderer import LineRenderer


class Display:
    """Single write surface for the session and the story controller.

    `line()` routes through the typing animator while animation is enabled, and
    through the renderer's per-tick batch otherwise. Either way it returns an
    awaitable that resolves once the line is on screen in its final form.
    """

    def __init__(self, settings: ConsoleSettings | None = None, *, view: ScrollbackView | None = None) -> None:
        self.settings = settings or ConsoleSettings()
        self.renderer = LineRenderer(view, settings=self.settings.scroll)
        self.animator = TypingAnimator(self.renderer, settings=self.settings.typing)

    @property
    def view(self) -> ScrollbackView:
        return self.renderer.view

    @property
    def animating(self) -> bool:
        return self.animator.enabled

    def set_animation(self, enabled: bool) -> None:
        self.animator.enabled = enabled

    def line(self, text: str | None, type: LineType | str | None = None) -> asyncio.Future[None]:
        # Queued reveals drain through the animator even after FX is turned off,
        # so a newer batched line cannot overtake them.
        if self.animator.enabled or self.animator.busy:
            return self.animator.reveal(text, type)
        self.renderer.append(text, type)
        return self.renderer.when_flushed()

    async def blank_lines(self, count: int) -> None:
        for _ in range(count):
            await self.line(" ", LineType.spacer)

    async def block(self, records: Sequence[LineRecord]) -> None:
        """Commit several records at once, after any reveal still in flight."""

        await self.animator.idle()
        self.renderer.commit(records)

    def partial(self, text: str | None, type: LineType | str | None = None) -> None:
        self.renderer.update_last(text, type)

    def clear(self) -> None:
        self.renderer.clear()

    async def close(self) -> None:
        await self.animator.close()
