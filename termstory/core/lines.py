from __future__ import annotations

from collections import deque
from dataclasses import dataclass, replace
from enum import StrEnum


class LineType(StrEnum):
    standard = "standard"
    system = "system"
    error = "error"
    choice = "choice"
    spacer = "spacer"

    @classmethod
    def parse(cls, value: object) -> "LineType":
        """Normalize a wire `type` value; unknown or missing values are `standard`."""

        if isinstance(value, LineType):
            return value
        if value is None:
            return cls.standard
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            return cls.standard


@dataclass(frozen=True, slots=True)
class LineRecord:
    text: str = ""
    type: LineType = LineType.standard
    is_choice: bool = False
    choice_index: int | None = None

    @staticmethod
    def choice(*, index: int, label: str) -> "LineRecord":
        return LineRecord(text=f"{index}) {label}", type=LineType.choice, is_choice=True, choice_index=index)

    def with_text(self, text: str) -> "LineRecord":
        return replace(self, text=text)


class ViewLine:
    """A slot in the view holding the currently displayed record.

    The slot outlives its place in the view: an animation that still holds a
    slot after a clear keeps updating a detached object.
    """

    __slots__ = ("record",)

    def __init__(self, record: LineRecord) -> None:
        self.record = record

    def __repr__(self) -> str:
        return f"ViewLine({self.record!r})"


class ScrollbackView:
    """In-memory scrollback: ordered line slots plus scroll geometry.

    Geometry is measured in abstract units; every line is `line_height` units tall.
    """

    def __init__(self, *, client_height: int = 480, line_height: int = 16) -> None:
        self.lines: deque[ViewLine] = deque()
        self.client_height = client_height
        self.line_height = line_height
        self.scroll_top = 0
        self.revision = 0

    def __len__(self) -> int:
        return len(self.lines)

    @property
    def records(self) -> list[LineRecord]:
        return [slot.record for slot in self.lines]

    @property
    def texts(self) -> list[str]:
        return [slot.record.text for slot in self.lines]

    @property
    def last(self) -> ViewLine | None:
        return self.lines[-1] if self.lines else None

    @property
    def scroll_height(self) -> int:
        return max(self.client_height, len(self.lines) * self.line_height)

    @property
    def max_scroll_top(self) -> int:
        return self.scroll_height - self.client_height

    def distance_from_bottom(self) -> int:
        return self.scroll_height - self.scroll_top - self.client_height

    def scroll_to(self, top: int) -> None:
        self.scroll_top = max(0, min(int(top), self.max_scroll_top))

    def scroll_to_bottom(self) -> None:
        self.scroll_top = self.max_scroll_top

    def append(self, slots: list[ViewLine]) -> None:
        self.lines.extend(slots)
        self.touch()

    def pop_oldest(self) -> ViewLine:
        slot = self.lines.popleft()
        self.scroll_to(self.scroll_top)
        return slot

    def remove_all(self) -> None:
        self.lines.clear()
        self.scroll_top = 0
        self.touch()

    def line_at(self, position: int) -> LineRecord | None:
        if position < 0 or position >= len(self.lines):
            return None
        return self.lines[position].record

    def visible(self) -> list[LineRecord]:
        """Records intersecting the viewport, top to bottom."""

        first = self.scroll_top // self.line_height
        count = -(-self.client_height // self.line_height)
        return [self.lines[i].record for i in range(first, min(len(self.lines), first + count))]

    def touch(self) -> None:
        self.revision += 1
