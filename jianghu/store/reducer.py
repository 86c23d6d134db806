"""Root reducer.

Root-level cases (wholesale replacement, time) are handled here; everything
else is threaded through the slice reducers in order. Each reducer returns
its input unchanged when the action is not its concern, so the store can
detect a no-op by identity.
"""

from __future__ import annotations

from collections.abc import Callable

from jianghu.actions import Action, AdvanceTime, ReplaceState
from jianghu.models import GameState
from jianghu.timekeeping import advance_time

from .events import event_queue_reducer
from .player import player_reducer
from .world import world_reducer

Reducer = Callable[[GameState, Action], GameState]


def _player_slice(state: GameState, action: Action) -> GameState:
    player = player_reducer(state.player, action)
    if player is state.player:
        return state
    return state.model_copy(update={"player": player})


def _root_cases(state: GameState, action: Action) -> GameState:
    if isinstance(action, ReplaceState):
        return action.state
    if isinstance(action, AdvanceTime):
        time = advance_time(state.time, action.ticks)
        if time is state.time:
            return state
        return state.model_copy(update={"time": time})
    return state


def combine_reducers(*reducers: Reducer) -> Reducer:
    """Compose reducers left to right; each sees the previous one's output."""

    def combined(state: GameState, action: Action) -> GameState:
        for reducer in reducers:
            state = reducer(state, action)
        return state

    return combined


game_reducer: Reducer = combine_reducers(
    _root_cases,
    _player_slice,
    event_queue_reducer,
    world_reducer,
)
