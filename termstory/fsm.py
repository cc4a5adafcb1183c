from __future__ import annotations

import logging
from enum import StrEnum

from statemachine import State, StateMachine

logger = logging.getLogger(__name__)


class StoryPhase(StrEnum):
    idle = "idle"
    rendering_scene = "rendering_scene"
    awaiting_choice = "awaiting_choice"
    advancing = "advancing"
    pending_advance = "pending_advance"


class StoryFlow(StateMachine):
    """Story-mode flow: scene -> choice -> outcome gate -> next scene.

    The class body is the whole transition table; anything not listed raises
    `TransitionNotAllowed`. Side effects (rendering, sending) live in
    `StoryController`, which is the only owner of an instance.
    """

    idle = State(StoryPhase.idle.value, value=StoryPhase.idle.value, initial=True)
    rendering_scene = State(StoryPhase.rendering_scene.value, value=StoryPhase.rendering_scene.value)
    awaiting_choice = State(StoryPhase.awaiting_choice.value, value=StoryPhase.awaiting_choice.value)
    advancing = State(StoryPhase.advancing.value, value=StoryPhase.advancing.value)
    pending_advance = State(StoryPhase.pending_advance.value, value=StoryPhase.pending_advance.value)

    # Not gating and not mid-submission: a scene may start (or replace the one on screen).
    scene_started = (
        idle.to(rendering_scene)
        | awaiting_choice.to(rendering_scene)
        | pending_advance.to(rendering_scene)
    )
    scene_rendered = rendering_scene.to(awaiting_choice)
    choice_submitted = awaiting_choice.to(advancing)
    outcome_shown = advancing.to(pending_advance)
    reset = (
        idle.to.itself()
        | rendering_scene.to(idle)
        | awaiting_choice.to(idle)
        | advancing.to(idle)
        | pending_advance.to(idle)
    )

    @property
    def phase(self) -> StoryPhase:
        return StoryPhase(str(self.current_state.value))

    def after_transition(self, event: str, source: State, target: State) -> None:
        logger.debug("story flow %s: %s -> %s", event, source.id, target.id)
