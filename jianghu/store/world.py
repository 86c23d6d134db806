"""World slice reducer: NPC roster and the transient scene NPCs."""

from __future__ import annotations

from jianghu.actions import Action, UpdateNpcs, UpdateSceneNpcs
from jianghu.models import GameState


def world_reducer(state: GameState, action: Action) -> GameState:
    if isinstance(action, UpdateNpcs):
        world = state.world.model_copy(update={"npcs": action.npcs})
        return state.model_copy(update={"world": world})
    if isinstance(action, UpdateSceneNpcs):
        return state.model_copy(update={"scene_npcs": action.npcs})
    return state
