from __future__ import annotations

import pytest
from statemachine.exceptions import TransitionNotAllowed

from termstory.fsm import StoryFlow, StoryPhase


def test_full_cycle_through_every_phase() -> None:
    flow = StoryFlow()
    assert flow.phase == StoryPhase.idle

    flow.scene_started()
    assert flow.phase == StoryPhase.rendering_scene
    flow.scene_rendered()
    assert flow.phase == StoryPhase.awaiting_choice
    flow.choice_submitted()
    assert flow.phase == StoryPhase.advancing
    flow.outcome_shown()
    assert flow.phase == StoryPhase.pending_advance
    flow.scene_started()
    assert flow.phase == StoryPhase.rendering_scene


@pytest.mark.parametrize(
    ("setup", "event"),
    [
        ([], "choice_submitted"),
        ([], "outcome_shown"),
        (["scene_started"], "choice_submitted"),
        (["scene_started", "scene_rendered", "choice_submitted"], "scene_started"),
        (["scene_started", "scene_rendered", "choice_submitted", "outcome_shown"], "choice_submitted"),
    ],
)
def test_transitions_outside_the_table_are_rejected(setup: list[str], event: str) -> None:
    flow = StoryFlow()
    for name in setup:
        flow.send(name)

    with pytest.raises(TransitionNotAllowed):
        flow.send(event)


@pytest.mark.parametrize("steps", [0, 1, 2, 3, 4])
def test_reset_returns_to_idle_from_anywhere(steps: int) -> None:
    flow = StoryFlow()
    for name in ["scene_started", "scene_rendered", "choice_submitted", "outcome_shown"][:steps]:
        flow.send(name)

    flow.reset()
    assert flow.phase == StoryPhase.idle
