"""Store actions.

The action set is closed: every state change goes through one of the models
below. Each carries a string `type` tag, which is what the store logs and
what the `Action` union discriminates on.
"""

from __future__ import annotations

from typing import Annotated, Literal, Union

from pydantic import BaseModel, ConfigDict, Field

from jianghu.models import EventResult, GameEvent, GameState, Item, Npc, PlayerState


class _Action(BaseModel):
    model_config = ConfigDict(frozen=True)


class ReplaceState(_Action):
    """Initialise, or replace wholesale on load."""

    type: Literal["replace_state"] = "replace_state"
    state: GameState


class ApplyEventResult(_Action):
    type: Literal["apply_event_result"] = "apply_event_result"
    result: EventResult


class EnqueueEvent(_Action):
    type: Literal["enqueue_event"] = "enqueue_event"
    event: GameEvent


class ShiftEvent(_Action):
    """Drop the head of the event queue."""

    type: Literal["shift_event"] = "shift_event"


class MarkEventTriggered(_Action):
    type: Literal["mark_event_triggered"] = "mark_event_triggered"
    event_id: str


class UpdateNpcs(_Action):
    type: Literal["update_npcs"] = "update_npcs"
    npcs: tuple[Npc, ...]


class UpdateSceneNpcs(_Action):
    type: Literal["update_scene_npcs"] = "update_scene_npcs"
    npcs: tuple[Npc, ...]


class UpdateInventory(_Action):
    type: Literal["update_inventory"] = "update_inventory"
    inventory: tuple[Item, ...]


class AdvanceTime(_Action):
    type: Literal["advance_time"] = "advance_time"
    ticks: int = Field(ge=0)


class SetPlayer(_Action):
    type: Literal["set_player"] = "set_player"
    player: PlayerState


class AddExperience(_Action):
    type: Literal["add_experience"] = "add_experience"
    amount: int = Field(ge=0)


class LevelUp(_Action):
    type: Literal["level_up"] = "level_up"


Action = Annotated[
    Union[
        ReplaceState,
        ApplyEventResult,
        EnqueueEvent,
        ShiftEvent,
        MarkEventTriggered,
        UpdateNpcs,
        UpdateSceneNpcs,
        UpdateInventory,
        AdvanceTime,
        SetPlayer,
        AddExperience,
        LevelUp,
    ],
    Field(discriminator="type"),
]

ACTION_TYPES: tuple[type[_Action], ...] = (
    ReplaceState,
    ApplyEventResult,
    EnqueueEvent,
    ShiftEvent,
    MarkEventTriggered,
    UpdateNpcs,
    UpdateSceneNpcs,
    UpdateInventory,
    AdvanceTime,
    SetPlayer,
    AddExperience,
    LevelUp,
)
