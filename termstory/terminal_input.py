from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from termstory.api.models import ControlRequest, InputRequest, Mode, PromptMessage
from termstory.core.lines import LineType

if TYPE_CHECKING:
    from termstory.session import ConsoleSession


@dataclass(frozen=True, slots=True)
class PromptState:
    user: str = ""
    host: str = ""
    cwd: str = ""
    symbol: str = "$"

    @staticmethod
    def from_message(message: PromptMessage) -> "PromptState":
        return PromptState(
            user=message.user or "",
            host=message.host or "",
            cwd=message.cwd or "",
            symbol=message.symbol or "$",
        )

    def render(self) -> str:
        user = f"{self.user}@" if self.user else ""
        cwd = f":{self.cwd}" if self.cwd else ""
        return f"{user}{self.host}{cwd}{self.symbol}"


@dataclass(slots=True)
class CommandHistory:
    """Shell-style history: walking off the end restores the unsent draft."""

    entries: list[str] = field(default_factory=list)
    index: int = 0
    draft: str = ""

    def push(self, text: str) -> None:
        self.entries.append(text)
        self.index = len(self.entries)
        self.draft = ""

    def previous(self, current: str) -> str:
        if self.index == len(self.entries):
            self.draft = current
        self.index = max(0, self.index - 1)
        return self.entries[self.index] if self.entries else ""

    def next(self) -> str:
        self.index = min(len(self.entries), self.index + 1)
        if self.index == len(self.entries):
            return self.draft
        return self.entries[self.index]


class TerminalInput:
    """Terminal-mode input surface: line submission and control keys."""

    def __init__(self, session: "ConsoleSession") -> None:
        self.session = session
        self.history = CommandHistory()

    @property
    def active(self) -> bool:
        return self.session.mode == Mode.terminal

    async def submit(self, text: str) -> bool:
        if not self.active or not text.strip():
            return False
        self.session.notice(f"{self.session.prompt.render()} {text}", LineType.standard)
        self.history.push(text)
        await self.session.send(InputRequest(text=text))
        return True

    async def clear_screen(self) -> None:
        """Ctrl-L."""

        self.session.clear_local()
        await self.session.send(ControlRequest(action="clear"))

    async def interrupt(self) -> None:
        """Ctrl-C."""

        self.session.notice("^C", LineType.system)
        await self.session.send(ControlRequest(action="interrupt"))


class StoryInput:
    """Story-mode input surface: numbered choices and the advance key."""

    def __init__(self, session: "ConsoleSession") -> None:
        self.session = session

    @property
    def active(self) -> bool:
        return self.session.mode == Mode.story

    async def submit(self, text: str) -> bool:
        """Enter on the story prompt: advance when gated, otherwise pick a choice."""

        if not self.active:
            return False
        if self.session.story.awaiting_advance:
            self.session.request_advance()
            return True
        return await self.session.select(text)

    async def key(self, key: str) -> bool:
        if not self.active:
            return False
        if key.lower() == "enter":
            return await self.submit("")
        if key.isdigit():
            return await self.session.select(key)
        return False
