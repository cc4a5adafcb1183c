from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Sequence

from termstory.config import ScrollSettings
from termstory.core.lines import LineRecord, LineType, ScrollbackView, ViewLine

logger = logging.getLogger(__name__)


class LineRenderer:
    """Capacity-bounded, batched, auto-scrolling owner of the scrollback view.

    Contract:
      - `append` queues a line; all appends issued within one loop iteration are
        committed as a single view mutation, in call order.
      - `commit` / `open_line` / `update_last` / `clear` mutate the view now, after
        flushing anything still batched.
      - after every commit the view is capped at `max_lines` (oldest evicted first)
        and scrolled to the bottom unless the viewer scrolled away.
    """

    def __init__(self, view: ScrollbackView | None = None, *, settings: ScrollSettings | None = None) -> None:
        self.view = view if view is not None else ScrollbackView()
        self.settings = settings or ScrollSettings()
        self.auto_scroll = True
        self._batch: list[LineRecord] = []
        self._flush_handle: asyncio.Handle | None = None
        self._waiters: list[asyncio.Future[None]] = []
        self._listeners: list[Callable[[], None]] = []

    # ---- observers ----

    def subscribe(self, listener: Callable[[], None]) -> None:
        """Register a callback invoked after every view mutation."""

        self._listeners.append(listener)

    def _changed(self) -> None:
        self.view.touch()
        for listener in self._listeners:
            listener()

    @property
    def show_jump_to_latest(self) -> bool:
        return not self.auto_scroll

    # ---- batched path ----

    def append(self, text: str | None, type: LineType | str | None = None) -> None:
        self._batch.append(LineRecord(text=text or "", type=LineType.parse(type)))
        self._schedule_flush()

    def _schedule_flush(self) -> None:
        if self._flush_handle is not None:
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            # Outside a loop there is no tick to coalesce into.
            self.flush()
            return
        self._flush_handle = loop.call_soon(self.flush)

    @property
    def has_pending(self) -> bool:
        return bool(self._batch)

    def when_flushed(self) -> asyncio.Future[None]:
        """Future resolved once everything batched so far is in the view."""

        done: asyncio.Future[None] = asyncio.get_running_loop().create_future()
        if self._batch:
            self._waiters.append(done)
        else:
            done.set_result(None)
        return done

    def _wake_waiters(self) -> None:
        waiters, self._waiters = self._waiters, []
        for waiter in waiters:
            if not waiter.done():
                waiter.set_result(None)

    def flush(self) -> None:
        if self._flush_handle is not None:
            self._flush_handle.cancel()
            self._flush_handle = None
        if not self._batch:
            return
        batch, self._batch = self._batch, []
        self._commit_slots([ViewLine(r) for r in batch])
        self._wake_waiters()

    # ---- immediate path ----

    def commit(self, records: Sequence[LineRecord]) -> list[ViewLine]:
        self.flush()
        slots = [ViewLine(r) for r in records]
        if slots:
            self._commit_slots(slots)
        return slots

    def open_line(self, record: LineRecord) -> ViewLine:
        """Commit a single slot that the caller keeps mutating via `set_text`."""

        return self.commit([record])[0]

    def set_text(self, slot: ViewLine, text: str) -> None:
        slot.record = slot.record.with_text(text)
        if self.auto_scroll:
            self.view.scroll_to_bottom()
        self._changed()

    def update_last(self, text: str | None, type: LineType | str | None = None) -> None:
        self.flush()
        last = self.view.last
        if last is None:
            self.commit([LineRecord(text=text or "", type=LineType.parse(type))])
            return
        record = last.record.with_text(text or "")
        if type:
            record = LineRecord(text=record.text, type=LineType.parse(type))
        last.record = record
        if self.auto_scroll:
            self.view.scroll_to_bottom()
        self._changed()

    def clear(self) -> None:
        # Batched lines not yet shown belong to the cleared screen.
        if self._flush_handle is not None:
            self._flush_handle.cancel()
            self._flush_handle = None
        self._batch = []
        self._wake_waiters()
        self.view.remove_all()
        self._changed()

    def _commit_slots(self, slots: list[ViewLine]) -> None:
        self.view.append(slots)
        evicted = 0
        while len(self.view) > self.settings.max_lines:
            self.view.pop_oldest()
            evicted += 1
        if evicted:
            logger.debug("evicted %d scrollback line(s)", evicted)
        if self.auto_scroll:
            self.view.scroll_to_bottom()
        self._changed()

    # ---- scrolling ----

    def is_near_bottom(self) -> bool:
        return self.view.distance_from_bottom() <= self.settings.near_bottom_threshold

    def on_scroll(self, scroll_top: int) -> None:
        """Viewer scrolled manually; auto-scroll follows the near-bottom test."""

        self.view.scroll_to(scroll_top)
        self.auto_scroll = self.is_near_bottom()
        self._changed()

    def jump_to_latest(self) -> None:
        self.auto_scroll = True
        self.view.scroll_to_bottom()
        self._changed()
