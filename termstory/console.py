from __future__ import annotations

from rich.console import Console, Group, RenderableType
from rich.live import Live
from rich.text import Text

from termstory.api.models import Mode
from termstory.core.lines import LineType
from termstory.session import ConsoleSession

LINE_STYLES: dict[LineType, str] = {
    LineType.standard: "green",
    LineType.system: "bold cyan",
    LineType.error: "bold red",
    LineType.choice: "yellow",
    LineType.spacer: "",
}


class RichConsole:
    """Draws the visible part of the scrollback plus a status footer with rich."""

    def __init__(self, session: ConsoleSession, *, console: Console | None = None) -> None:
        self.session = session
        self.console = console or Console()
        self._live: Live | None = None
        session.display.renderer.subscribe(self.refresh)
        session.subscribe(self.refresh)

    def footer(self) -> Text:
        session = self.session
        status = Text("online" if session.online else "offline", style="green" if session.online else "red")
        parts = [status, Text(" | "), Text(session.mode.value, style="dim")]
        if not session.display.renderer.auto_scroll:
            parts.append(Text("  [jump to latest: :latest]", style="bold yellow"))
        if not session.display.animating:
            parts.append(Text("  FX: off", style="dim"))
        if session.mode == Mode.story:
            if session.story.awaiting_advance:
                hint = "press enter to continue"
            elif session.story.accepts_choice:
                hint = f"choose 1-{len(session.story.choices)}"
            else:
                hint = ""
            prompt_line = Text(f"> {hint}", style="yellow")
        else:
            prompt_line = Text(f"{session.prompt.render()} ", style="bold green")
        return Text.assemble(*parts, "\n", prompt_line)

    def render(self) -> RenderableType:
        lines = [Text(record.text, style=LINE_STYLES[record.type]) for record in self.session.display.view.visible()]
        return Group(*lines, Text(""), self.footer())

    def refresh(self) -> None:
        if self._live is not None:
            self._live.update(self.render(), refresh=True)

    def __enter__(self) -> "RichConsole":
        self._live = Live(self.render(), console=self.console, auto_refresh=False, transient=False)
        self._live.__enter__()
        return self

    def __exit__(self, *exc: object) -> None:
        live, self._live = self._live, None
        if live is not None:
            live.__exit__(None, None, None)
