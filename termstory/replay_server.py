"""Scripted replay backend for local runs and integration tests.

Replays a fixed story over `/ws` using the same frames a real backend sends.
Serve `termstory.replay_server:app` with any ASGI server; point `TERMSTORY_REPLAY_SCRIPT`
at a JSON script to replace the built-in one.
"""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Any

from fastapi import APIRouter, FastAPI, WebSocket, WebSocketDisconnect
from pydantic import BaseModel, Field, model_validator

logger = logging.getLogger(__name__)


class ScriptChoice(BaseModel):
    text: str
    outcome: str = ""
    # None ends the story.
    next: str | None = None


class ScriptScene(BaseModel):
    text: str
    choices: list[ScriptChoice] = Field(default_factory=list)


class ScriptPrompt(BaseModel):
    user: str = "guest"
    host: str = "env0"
    cwd: str = "~"


class StoryScript(BaseModel):
    title: str = "story"
    start: str
    scenes: dict[str, ScriptScene]
    prompt: ScriptPrompt = Field(default_factory=ScriptPrompt)
    ending: str = "The story ends here."

    @model_validator(mode="after")
    def _check_links(self) -> "StoryScript":
        if self.start not in self.scenes:
            raise ValueError(f"start scene '{self.start}' is not defined")
        for scene_id, scene in self.scenes.items():
            for choice in scene.choices:
                if choice.next is not None and choice.next not in self.scenes:
                    raise ValueError(f"scene '{scene_id}' links to unknown scene '{choice.next}'")
        return self


DEFAULT_SCRIPT = StoryScript(
    title="the relay station",
    start="gate",
    scenes={
        "gate": ScriptScene(
            text="The relay station hums in the fog.\nA rusted gate stands half open.",
            choices=[
                ScriptChoice(text="Slip through the gate", outcome="The hinges groan but hold.", next="yard"),
                ScriptChoice(text="Walk the fence line", outcome="You find a cut in the wire.", next="yard"),
                ScriptChoice(text="Turn back", outcome="The fog swallows the road home."),
            ],
        ),
        "yard": ScriptScene(
            text="Cable spools litter the yard.\nA light flickers in the control hut.",
            choices=[
                ScriptChoice(text="Knock on the hut door", outcome="Nobody answers, but the door gives."),
                ScriptChoice(text="Climb the mast", outcome="From the top you see the whole valley."),
            ],
        ),
    },
)


def load_script(path: Path) -> StoryScript:
    return StoryScript.model_validate(json.loads(path.read_text(encoding="utf-8")))


def script_from_env() -> StoryScript:
    raw = os.environ.get("TERMSTORY_REPLAY_SCRIPT")
    return load_script(Path(raw)) if raw else DEFAULT_SCRIPT


class ReplayCursor:
    """Per-connection position in the script; turns client frames into replies."""

    def __init__(self, script: StoryScript) -> None:
        self.script = script
        self.scene_id: str | None = script.start
        self.mode = "story"

    def _scene_frame(self, scene_id: str) -> dict[str, Any]:
        scene = self.script.scenes[scene_id]
        return {"t": "scene", "text": scene.text, "choices": [{"text": c.text} for c in scene.choices]}

    def opening(self) -> list[dict[str, Any]]:
        prompt = self.script.prompt
        frames: list[dict[str, Any]] = [
            {"t": "prompt", "user": prompt.user, "host": prompt.host, "cwd": prompt.cwd},
            {"t": "mode", "value": self.mode},
        ]
        # A finished story reopens in terminal mode with nothing to choose.
        if self.scene_id is not None:
            frames.append(self._scene_frame(self.scene_id))
        return frames

    def handle_text(self, text: str) -> list[dict[str, Any]]:
        try:
            payload = json.loads(text)
        except ValueError:
            return [{"t": "err", "message": "invalid json"}]
        if not isinstance(payload, dict):
            return [{"t": "err", "message": "expected an object"}]
        return self.handle(payload)

    def handle(self, payload: dict[str, Any]) -> list[dict[str, Any]]:
        tag = payload.get("t")
        if tag == "choice":
            return self._choose(payload.get("index"))
        if tag == "input":
            if self.mode != "terminal":
                return []
            return [{"t": "line", "text": str(payload.get("text", "")), "type": "standard"}]
        if tag == "control":
            action = payload.get("action")
            if action == "clear":
                return [{"t": "clear"}]
            if action == "interrupt":
                return [{"t": "line", "text": "interrupted", "type": "system"}]
            return [{"t": "err", "message": f"unknown control action: {action}"}]
        return [{"t": "err", "message": f"unknown message: {tag}"}]

    def _choose(self, index: Any) -> list[dict[str, Any]]:
        if self.scene_id is None or not isinstance(index, int) or isinstance(index, bool):
            return [{"t": "err", "message": "no choice expected"}]
        scene = self.script.scenes[self.scene_id]
        if not 1 <= index <= len(scene.choices):
            return [{"t": "err", "message": f"choice out of range: {index}"}]

        choice = scene.choices[index - 1]
        frames: list[dict[str, Any]] = [{"t": "line", "text": choice.outcome, "type": "system"}]
        self.scene_id = choice.next
        if self.scene_id is not None:
            frames.append(self._scene_frame(self.scene_id))
            return frames

        self.mode = "terminal"
        frames.append({"t": "mode", "value": "terminal"})
        frames.append({"t": "line", "text": self.script.ending, "type": "standard"})
        return frames


def create_router(script: StoryScript) -> APIRouter:
    router = APIRouter()

    @router.websocket("/ws")
    async def replay_ws(websocket: WebSocket) -> None:
        await websocket.accept()
        cursor = ReplayCursor(script)
        try:
            for frame in cursor.opening():
                await websocket.send_json(frame)
            while True:
                text = await websocket.receive_text()
                for frame in cursor.handle_text(text):
                    await websocket.send_json(frame)
        except WebSocketDisconnect:
            logger.debug("replay client disconnected")

    @router.get("/healthcheck")
    async def healthcheck() -> dict[str, str]:
        return {"status": "ok"}

    @router.get("/info")
    async def info() -> dict[str, str]:
        return {"name": "termstory-replay", "script": script.title}

    return router


def create_app(script: StoryScript | None = None) -> FastAPI:
    app = FastAPI(title="termstory-replay", version="0.1.0")
    app.include_router(create_router(script or script_from_env()))
    return app


app = create_app()
