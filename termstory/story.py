from __future__ import annotations

import asyncio
import logging
import math
from collections.abc import Awaitable, Callable

from termstory.api.models import Choice, ChoiceRequest, OutboundMessage, SceneMessage
from termstory.core.lines import LineRecord, LineType
from termstory.display import Display
from termstory.fsm import StoryFlow, StoryPhase

logger = logging.getLogger(__name__)

Sender = Callable[[OutboundMessage], Awaitable[None]]

ADVANCE_HINT = "(press enter)"


def parse_choice_index(value: object) -> int | None:
    """Coerce a keypress, submitted text, or clicked index to a choice number.

    Returns None for anything that is not a finite whole number.
    """

    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value) if math.isfinite(value) and value.is_integer() else None
    if isinstance(value, str):
        raw = value.strip()
        if not raw:
            return None
        try:
            return int(raw)
        except ValueError:
            pass
        try:
            as_float = float(raw)
        except ValueError:
            return None
        return parse_choice_index(as_float)
    return None


def outcome_label(text: str | None) -> str:
    trimmed = (text or "").strip()
    return f"{trimmed} {ADVANCE_HINT}" if trimmed else ADVANCE_HINT


class StoryController:
    """Presents scenes and gates advancement on the outcome line.

    All flow state lives in one `StoryFlow` plus the single pending-scene slot.
    Scene, outcome and advance events are expected to arrive from one consumer
    (see `ConsoleSession.run`), so they never interleave with each other; only
    `select` is called from input handlers directly.
    """

    def __init__(self, display: Display, *, send: Sender) -> None:
        self.display = display
        self.send = send
        self.flow = StoryFlow()
        self.choices: list[Choice] = []
        self.pending_scene: SceneMessage | None = None
        self.advance_requested = False

    @property
    def phase(self) -> StoryPhase:
        return self.flow.phase

    @property
    def accepts_choice(self) -> bool:
        return self.flow.current_state == self.flow.awaiting_choice and bool(self.choices)

    @property
    def awaiting_outcome(self) -> bool:
        return self.flow.current_state == self.flow.advancing

    @property
    def awaiting_advance(self) -> bool:
        return self.flow.current_state == self.flow.pending_advance

    # ---- inbound ----

    async def on_scene(self, scene: SceneMessage) -> None:
        state = self.flow.current_state
        if state in (self.flow.idle, self.flow.awaiting_choice):
            await self._present(scene)
            return

        # Single slot: a newer scene replaces an older buffered one.
        if self.pending_scene is not None:
            logger.debug("replacing buffered scene")
        self.pending_scene = scene

        if state == self.flow.advancing:
            # No outcome line came for the submitted choice; show the bare gate.
            await self.on_outcome("")
        elif state == self.flow.pending_advance and self.advance_requested:
            await self._release()

    async def on_outcome(self, text: str | None) -> bool:
        """Render the outcome line for the submitted choice and close the gate.

        Returns False (and renders nothing) when no choice is awaiting an outcome.
        """

        if not self.awaiting_outcome:
            return False
        self.advance_requested = False
        await self.display.blank_lines(1)
        await self.display.line(outcome_label(text), LineType.system)
        self.flow.outcome_shown()
        return True

    async def on_advance(self) -> None:
        if not self.awaiting_advance:
            return
        if self.pending_scene is None:
            self.advance_requested = True
            return
        await self._release()

    # ---- player input ----

    async def select(self, index: object) -> bool:
        """Submit a choice. Invalid or untimely selections are ignored."""

        if not self.accepts_choice:
            return False
        n = parse_choice_index(index)
        if n is None or not 1 <= n <= len(self.choices):
            return False

        self.flow.choice_submitted()
        self.choices = []
        self.pending_scene = None
        self.advance_requested = False
        await self.send(ChoiceRequest(index=n))
        return True

    async def select_line(self, record: LineRecord | None) -> bool:
        if record is None or not record.is_choice or record.choice_index is None:
            return False
        return await self.select(record.choice_index)

    def reset(self) -> None:
        self.flow.reset()
        self.choices = []
        self.pending_scene = None
        self.advance_requested = False

    # ---- rendering ----

    async def _release(self) -> None:
        scene, self.pending_scene = self.pending_scene, None
        self.advance_requested = False
        if scene is not None:
            await self._present(scene)

    async def _present(self, scene: SceneMessage) -> None:
        next_scene: SceneMessage | None = scene
        while next_scene is not None:
            await self._render(next_scene)
            # Only a scene that slipped in mid-render can be waiting here.
            next_scene, self.pending_scene = self.pending_scene, None

    async def _render(self, scene: SceneMessage) -> None:
        typing = self.display.settings.typing
        self.flow.scene_started()
        self.choices = []
        self.display.clear()

        if self.display.animating and typing.scene_intro_delay_ms > 0:
            await asyncio.sleep(typing.scene_intro_delay_ms / 1000)
        await self.display.blank_lines(typing.scene_padding_lines)
        if self.display.animating:
            for text in scene.text_lines:
                await self.display.line(text, LineType.standard)
        else:
            await self.display.block([LineRecord(text=text) for text in scene.text_lines])
        await self.display.blank_lines(1)

        await self.display.block(
            [LineRecord.choice(index=i, label=choice.label) for i, choice in enumerate(scene.choices, start=1)]
        )
        self.choices = list(scene.choices)
        self.flow.scene_rendered()
