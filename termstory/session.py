from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from dataclasses import dataclass

from termstory.api.models import (
    ClearMessage,
    ErrorMessage,
    InboundMessage,
    LineItem,
    LineMessage,
    LinesMessage,
    Mode,
    ModeMessage,
    OutboundMessage,
    PromptMessage,
    SceneMessage,
    parse_inbound,
)
from termstory.config import ConsoleSettings
from termstory.core.lines import LineType
from termstory.display import Display
from termstory.errors import ProtocolError
from termstory.story import Sender, StoryController
from termstory.terminal_input import PromptState

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class Frame:
    raw: str | bytes


@dataclass(frozen=True, slots=True)
class AdvanceSignal:
    pass


@dataclass(frozen=True, slots=True)
class LocalLine:
    text: str
    type: LineType = LineType.standard


@dataclass(frozen=True, slots=True)
class LocalClear:
    pass


@dataclass(frozen=True, slots=True)
class ConnectionReset:
    pass


SessionEvent = Frame | AdvanceSignal | LocalLine | LocalClear | ConnectionReset


class ConsoleSession:
    """One console attached to one backend connection.

    Transport frames, the player's advance signal and locally generated lines all
    go through one queue drained by `run()`. That single consumer is what orders
    a scene against the outcome line and advance signal that gate it.
    """

    def __init__(
        self,
        settings: ConsoleSettings | None = None,
        *,
        display: Display | None = None,
        send: Sender | None = None,
    ) -> None:
        self.settings = settings or ConsoleSettings()
        self.display = display or Display(self.settings)
        self._send = send
        self.story = StoryController(self.display, send=self.send)
        self.mode = Mode.terminal
        self.prompt = PromptState()
        self.online = False
        self._events: asyncio.Queue[SessionEvent] = asyncio.Queue()
        self._listeners: list[Callable[[], None]] = []

    # ---- wiring ----

    def attach(self, send: Sender) -> None:
        self._send = send

    def subscribe(self, listener: Callable[[], None]) -> None:
        """Called after mode, prompt or connection status changes."""

        self._listeners.append(listener)

    def _changed(self) -> None:
        for listener in self._listeners:
            listener()

    async def send(self, message: OutboundMessage) -> None:
        if self._send is None:
            logger.debug("no transport attached; dropping %s", message.t)
            return
        await self._send(message)

    def set_online(self, online: bool) -> None:
        self.online = online
        self._changed()

    def set_mode(self, mode: Mode) -> None:
        if mode == self.mode:
            return
        self.mode = mode
        if mode == Mode.terminal:
            self.story.reset()
        logger.debug("mode -> %s", mode.value)
        self._changed()

    # ---- producers ----

    def feed(self, raw: str | bytes) -> None:
        self._events.put_nowait(Frame(raw))

    def request_advance(self) -> None:
        self._events.put_nowait(AdvanceSignal())

    def notice(self, text: str, type: LineType = LineType.system) -> None:
        self._events.put_nowait(LocalLine(text, type))

    def clear_local(self) -> None:
        self._events.put_nowait(LocalClear())

    def connection_lost(self) -> None:
        self._events.put_nowait(ConnectionReset())

    # ---- consumer ----

    async def run(self) -> None:
        while True:
            event = await self._events.get()
            try:
                await self.process(event)
            finally:
                self._events.task_done()

    async def drain(self) -> None:
        """Process every queued event without waiting for new ones."""

        while not self._events.empty():
            event = self._events.get_nowait()
            try:
                await self.process(event)
            finally:
                self._events.task_done()

    async def process(self, event: SessionEvent) -> None:
        if isinstance(event, Frame):
            await self.handle_frame(event.raw)
        elif isinstance(event, AdvanceSignal):
            await self.story.on_advance()
        elif isinstance(event, LocalLine):
            await self.display.line(event.text, event.type)
        elif isinstance(event, LocalClear):
            self.display.clear()
        elif isinstance(event, ConnectionReset):
            self.set_online(False)
            self.story.reset()
            await self.display.line("disconnected - retrying shortly", LineType.error)

    async def handle_frame(self, raw: str | bytes) -> None:
        try:
            message = parse_inbound(raw)
        except ProtocolError as e:
            logger.warning("dropping frame: %s", e.__cause__ or e)
            await self.display.line(str(e), LineType.error)
            return
        if message is None:
            return
        await self.handle(message)

    async def handle(self, message: InboundMessage) -> None:
        logger.debug("inbound %s", message.t)
        if isinstance(message, ModeMessage):
            self.set_mode(message.mode)
        elif isinstance(message, PromptMessage):
            self.prompt = PromptState.from_message(message)
            self._changed()
        elif isinstance(message, LineMessage):
            await self._line(message)
        elif isinstance(message, LinesMessage):
            for item in message.items:
                if item is not None:
                    await self._line(item)
        elif isinstance(message, ClearMessage):
            self.display.clear()
        elif isinstance(message, ErrorMessage):
            await self.display.line(message.message or "error", LineType.error)
        elif isinstance(message, SceneMessage):
            self.set_mode(Mode.story)
            await self.story.on_scene(message)

    async def _line(self, item: LineItem) -> None:
        if item.partial:
            self.display.partial(item.text, item.type)
            return
        if self.mode == Mode.story and item.is_system and await self.story.on_outcome(item.text):
            return
        if self.story.awaiting_advance:
            # The screen is frozen on the outcome until the player advances.
            return
        await self.display.line(item.text, item.type)

    # ---- player input that bypasses the queue ----

    async def select(self, index: object) -> bool:
        return await self.story.select(index)

    async def click(self, position: int) -> bool:
        return await self.story.select_line(self.display.view.line_at(position))
