from __future__ import annotations

import os
from dataclasses import dataclass, field, replace
from pathlib import Path

from dotenv import set_key


@dataclass(frozen=True, slots=True)
class TypingSettings:
    enabled: bool = True
    char_delay_ms: int = 14
    line_delay_ms: int = 40
    # Longer lines skip the reveal so machine-generated output stays fast.
    max_chars_per_line: int = 600
    scene_intro_delay_ms: int = 260
    scene_padding_lines: int = 2


@dataclass(frozen=True, slots=True)
class ScrollSettings:
    max_lines: int = 1000
    near_bottom_threshold: int = 24


@dataclass(frozen=True, slots=True)
class ReconnectSettings:
    delay_s: float = 1.5
    # Fraction of `delay_s`; each wait is drawn from delay * (1 +/- jitter).
    jitter: float = 0.2


@dataclass(frozen=True, slots=True)
class ConsoleSettings:
    url: str = "ws://127.0.0.1:8000/ws"
    backend_name: str = "env0"
    typing: TypingSettings = field(default_factory=TypingSettings)
    scroll: ScrollSettings = field(default_factory=ScrollSettings)
    reconnect: ReconnectSettings = field(default_factory=ReconnectSettings)

    def without_animation(self) -> "ConsoleSettings":
        return replace(self, typing=replace(self.typing, enabled=False))


def _env_int(name: str, default: int) -> int:
    raw = os.environ.get(name)
    return int(raw) if raw else default


def _env_float(name: str, default: float) -> float:
    raw = os.environ.get(name)
    return float(raw) if raw else default


def fx_enabled_from_env() -> bool:
    """`TERMSTORY_FX=off` is the persisted "FX: off" preference."""

    return os.environ.get("TERMSTORY_FX", "on").strip().lower() != "off"


def save_fx_preference(enabled: bool, env_file: Path) -> None:
    """Write the FX toggle to `env_file` so the next start picks it up."""

    env_file.touch(exist_ok=True)
    set_key(str(env_file), "TERMSTORY_FX", "on" if enabled else "off")


def settings_from_env() -> ConsoleSettings:
    defaults = ConsoleSettings()
    typing = TypingSettings(
        enabled=fx_enabled_from_env(),
        char_delay_ms=_env_int("TERMSTORY_CHAR_DELAY_MS", defaults.typing.char_delay_ms),
        line_delay_ms=_env_int("TERMSTORY_LINE_DELAY_MS", defaults.typing.line_delay_ms),
        max_chars_per_line=defaults.typing.max_chars_per_line,
        scene_intro_delay_ms=defaults.typing.scene_intro_delay_ms,
        scene_padding_lines=defaults.typing.scene_padding_lines,
    )
    return ConsoleSettings(
        url=os.environ.get("TERMSTORY_URL", defaults.url),
        backend_name=os.environ.get("TERMSTORY_BACKEND_NAME", defaults.backend_name),
        typing=typing,
        scroll=ScrollSettings(max_lines=_env_int("TERMSTORY_MAX_LINES", defaults.scroll.max_lines)),
        reconnect=ReconnectSettings(
            delay_s=_env_float("TERMSTORY_RECONNECT_DELAY_S", defaults.reconnect.delay_s),
            jitter=_env_float("TERMSTORY_RECONNECT_JITTER", defaults.reconnect.jitter),
        ),
    )
