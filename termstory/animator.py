from __future__ import annotations

import asyncio
import logging
from collections import deque
from dataclasses import dataclass

from termstory.config import TypingSettings
from termstory.core.lines import LineRecord, LineType
from termstory.renderer import LineRenderer

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class TypingTask:
    record: LineRecord
    done: asyncio.Future[None]


class TypingAnimator:
    """Serialized character-by-character reveal on top of a `LineRenderer`.

    One line animates at a time. Requests are served FIFO by a single worker task
    and every request runs to completion; the returned future resolves after the
    line is fully shown and the inter-line pause has elapsed.
    """

    def __init__(self, renderer: LineRenderer, *, settings: TypingSettings | None = None) -> None:
        self.renderer = renderer
        self.settings = settings or TypingSettings()
        self.enabled = self.settings.enabled
        self.active = False
        self._queue: deque[TypingTask] = deque()
        self._worker: asyncio.Task[None] | None = None
        self._current: TypingTask | None = None

    @property
    def pending(self) -> int:
        return len(self._queue)

    @property
    def busy(self) -> bool:
        """A line is mid-reveal or still queued."""

        return self.active or bool(self._queue)

    def reveal(
        self,
        text: str | None,
        type: LineType | str | None = None,
        *,
        choice_index: int | None = None,
    ) -> asyncio.Future[None]:
        loop = asyncio.get_running_loop()
        record = LineRecord(
            text=text or "",
            type=LineType.parse(type),
            is_choice=choice_index is not None,
            choice_index=choice_index,
        )
        task = TypingTask(record=record, done=loop.create_future())
        self._queue.append(task)
        if self._worker is None or self._worker.done():
            self._worker = loop.create_task(self._run(), name="typing-animator")
        return task.done

    async def _run(self) -> None:
        while self._queue:
            task = self._queue.popleft()
            self._current = task
            self.active = True
            try:
                await self._reveal_one(task.record)
            except Exception as e:
                logger.exception("line reveal failed")
                if not task.done.done():
                    task.done.set_exception(e)
                continue
            finally:
                self.active = False
                self._current = None
            if not task.done.done():
                task.done.set_result(None)

    def _should_type(self, text: str) -> bool:
        return self.enabled and len(text) <= self.settings.max_chars_per_line

    async def _reveal_one(self, record: LineRecord) -> None:
        text = record.text
        if not self._should_type(text):
            self.renderer.open_line(record)
            return

        # Empty slot first so the scroll position settles before the text grows.
        slot = self.renderer.open_line(record.with_text(""))
        char_delay = self.settings.char_delay_ms / 1000
        index = 0
        while True:
            await asyncio.sleep(char_delay)
            if not self.enabled:
                self.renderer.set_text(slot, text)
                return
            index += 1
            self.renderer.set_text(slot, text[:index])
            if index >= len(text):
                break
        await asyncio.sleep(self.settings.line_delay_ms / 1000)

    async def idle(self) -> None:
        """Wait until every queued reveal has resolved."""

        while self._worker is not None and not self._worker.done():
            await asyncio.shield(self._worker)

    async def close(self) -> None:
        """Stop the worker at shutdown; unrevealed requests are cancelled."""

        worker, self._worker = self._worker, None
        if self._current is not None:
            self._current.done.cancel()
        while self._queue:
            self._queue.popleft().done.cancel()
        if worker is not None and not worker.done():
            worker.cancel()
            try:
                await worker
            except asyncio.CancelledError:
                pass
