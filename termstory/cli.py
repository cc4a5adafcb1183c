from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from dataclasses import replace
from pathlib import Path

from dotenv import load_dotenv
from rich.console import Console

from termstory.config import ConsoleSettings, save_fx_preference, settings_from_env
from termstory.console import RichConsole
from termstory.core.lines import LineType, ScrollbackView
from termstory.display import Display
from termstory.infra.transport import WebSocketTransport
from termstory.session import ConsoleSession
from termstory.terminal_input import StoryInput, TerminalInput

logger = logging.getLogger(__name__)

# Rows are drawn this many view units tall so the near-bottom threshold keeps its scale.
ROW_UNITS = 16


class LineRouter:
    """Routes one line of stdin to the active input surface or a local command."""

    def __init__(self, session: ConsoleSession, *, env_file: Path | None = None) -> None:
        self.session = session
        self.env_file = env_file
        self.terminal = TerminalInput(session)
        self.story = StoryInput(session)

    async def handle(self, line: str) -> bool:
        """Returns False when the user asked to quit."""

        command = line.strip()
        if command.startswith(":"):
            return await self._command(command[1:])
        if self.story.active:
            await self.story.submit(line)
        else:
            await self.terminal.submit(line)
        return True

    async def _command(self, name: str) -> bool:
        renderer = self.session.display.renderer
        view = renderer.view
        if name in ("q", "quit"):
            return False
        if name == "clear":
            await self.terminal.clear_screen()
        elif name == "interrupt":
            await self.terminal.interrupt()
        elif name == "fx":
            enabled = not self.session.display.animating
            self.session.display.set_animation(enabled)
            if self.env_file is not None:
                save_fx_preference(enabled, self.env_file)
            self.session.notice(f"FX: {'on' if enabled else 'off'}", LineType.system)
        elif name == "latest":
            renderer.jump_to_latest()
        elif name == "up":
            renderer.on_scroll(view.scroll_top - view.client_height)
        elif name == "down":
            renderer.on_scroll(view.scroll_top + view.client_height)
        elif name.isdigit():
            await self.session.click(int(name) - 1)
        else:
            self.session.notice(f"unknown command: :{name}", LineType.error)
        return True


async def _read_stdin(router: LineRouter) -> None:
    while True:
        line = await asyncio.to_thread(sys.stdin.readline)
        if not line:
            return
        if not await router.handle(line.rstrip("\n")):
            return


async def run_console(settings: ConsoleSettings, *, env_file: Path | None = None) -> None:
    console = Console()
    # Leave room for the blank separator and the two footer rows.
    rows = max(5, console.size.height - 3)
    view = ScrollbackView(client_height=rows * ROW_UNITS, line_height=ROW_UNITS)
    session = ConsoleSession(settings, display=Display(settings, view=view))
    transport = WebSocketTransport(session, settings)
    session.attach(transport.send)
    router = LineRouter(session, env_file=env_file)

    with RichConsole(session, console=console):
        consumer = asyncio.create_task(session.run(), name="session")
        connection = asyncio.create_task(transport.run(), name="transport")
        try:
            await _read_stdin(router)
        finally:
            connection.cancel()
            consumer.cancel()
            await asyncio.gather(connection, consumer, return_exceptions=True)
            await session.display.close()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="termstory", description="Console client for terminal and story backends")
    parser.add_argument("--url", help="backend websocket url (default: $TERMSTORY_URL)")
    parser.add_argument("--no-fx", action="store_true", help="disable the typing animation")
    parser.add_argument("--log-level", default="WARNING")
    parser.add_argument("--log-file", type=Path, help="write logs here instead of stderr")
    return parser


def main(argv: list[str] | None = None) -> int:
    env_file = Path.cwd() / ".env"
    load_dotenv(env_file, override=False)
    args = build_parser().parse_args(argv)

    logging.basicConfig(
        level=getattr(logging, str(args.log_level).upper(), logging.WARNING),
        filename=str(args.log_file) if args.log_file else None,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    settings = settings_from_env()
    if args.url:
        settings = replace(settings, url=args.url)
    if args.no_fx:
        settings = settings.without_animation()

    try:
        asyncio.run(run_console(settings, env_file=env_file))
    except KeyboardInterrupt:
        return 130
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
