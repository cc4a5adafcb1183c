from __future__ import annotations

import json
from enum import StrEnum
from typing import Annotated, Any, Literal

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError, field_validator

from termstory.errors import ProtocolError


class Mode(StrEnum):
    terminal = "terminal"
    story = "story"

    @classmethod
    def parse(cls, value: object) -> "Mode":
        return cls.story if value == "story" else cls.terminal


SCENE_TAGS = ("story", "scene", "storyScene", "StoryScene")


class _Inbound(BaseModel):
    # Backends may attach extra fields; only the documented ones are consumed.
    model_config = ConfigDict(extra="ignore")


class ModeMessage(_Inbound):
    t: Literal["mode"]
    value: Any = None

    @property
    def mode(self) -> Mode:
        return Mode.parse(self.value)


class PromptMessage(_Inbound):
    t: Literal["prompt"]
    user: str | None = None
    host: str | None = None
    cwd: str | None = None
    symbol: str | None = None

    @field_validator("user", "host", "cwd", "symbol", mode="before")
    @classmethod
    def _as_str(cls, v: Any) -> str | None:
        return None if v is None else str(v)


class LineItem(_Inbound):
    text: str = ""
    type: str | None = None
    partial: bool = False

    @field_validator("text", mode="before")
    @classmethod
    def _text_or_empty(cls, v: Any) -> str:
        return "" if v is None else str(v)

    @field_validator("type", mode="before")
    @classmethod
    def _type_as_str(cls, v: Any) -> str | None:
        return None if v is None else str(v)

    @property
    def is_system(self) -> bool:
        return (self.type or "").lower() == "system"


class LineMessage(LineItem):
    t: Literal["line"]


class LinesMessage(_Inbound):
    t: Literal["lines"]
    items: list[LineItem | None] = Field(default_factory=list)

    @field_validator("items", mode="before")
    @classmethod
    def _items_list(cls, v: Any) -> list[Any]:
        # A non-array `items` carries nothing to render.
        return v if isinstance(v, list) else []

    @field_validator("items", mode="after")
    @classmethod
    def _drop_empty(cls, v: list[LineItem | None]) -> list[LineItem | None]:
        return [item for item in v if item is not None]


class ClearMessage(_Inbound):
    t: Literal["clear"]


class ErrorMessage(_Inbound):
    t: Literal["err"]
    message: str | None = None

    @field_validator("message", mode="before")
    @classmethod
    def _message_as_str(cls, v: Any) -> str | None:
        return None if v is None else str(v)


class Choice(BaseModel):
    label: str = ""


class SceneMessage(_Inbound):
    t: Literal["story", "scene", "storyScene", "StoryScene"]
    text: str = ""
    choices: list[Choice] = Field(default_factory=list)

    @field_validator("text", mode="before")
    @classmethod
    def _text_or_empty(cls, v: Any) -> str:
        return "" if v is None else str(v)

    @field_validator("choices", mode="before")
    @classmethod
    def _normalize_choices(cls, v: Any) -> list[dict[str, str]]:
        """Choices arrive as plain strings or as `{text}` objects."""

        if not isinstance(v, list):
            return []
        out: list[dict[str, str]] = []
        for item in v:
            if isinstance(item, str):
                out.append({"label": item})
            elif isinstance(item, dict):
                out.append({"label": str(item.get("text") or "")})
            else:
                out.append({"label": ""})
        return out

    @property
    def text_lines(self) -> list[str]:
        return self.text.replace("\r\n", "\n").split("\n")


InboundMessage = Annotated[
    ModeMessage | PromptMessage | LineMessage | LinesMessage | ClearMessage | ErrorMessage | SceneMessage,
    Field(discriminator="t"),
]

_inbound_adapter: TypeAdapter[InboundMessage] = TypeAdapter(InboundMessage)

KNOWN_TAGS = frozenset({"mode", "prompt", "line", "lines", "clear", "err", *SCENE_TAGS})


def parse_inbound(raw: str | bytes) -> InboundMessage | None:
    """Decode one websocket frame.

    Returns None for payloads that carry nothing for this client (non-objects,
    unknown tags). Raises ProtocolError for frames that cannot be decoded.
    """

    try:
        data = json.loads(raw)
    except (TypeError, ValueError) as e:
        raise ProtocolError("malformed message ignored") from e

    if not isinstance(data, dict):
        return None
    tag = data.get("t")
    if not isinstance(tag, str) or tag not in KNOWN_TAGS:
        return None

    try:
        return _inbound_adapter.validate_python(data)
    except ValidationError as e:
        raise ProtocolError("malformed message ignored") from e


class InputRequest(BaseModel):
    t: Literal["input"] = "input"
    text: str


class ChoiceRequest(BaseModel):
    t: Literal["choice"] = "choice"
    index: int = Field(..., ge=1)


class ControlRequest(BaseModel):
    t: Literal["control"] = "control"
    action: Literal["clear", "interrupt"]


OutboundMessage = InputRequest | ChoiceRequest | ControlRequest
