"""Event-queue slice reducer: the queue and the fire-once set."""

from __future__ import annotations

from jianghu.actions import Action, EnqueueEvent, MarkEventTriggered, ShiftEvent
from jianghu.models import GameState


def event_queue_reducer(state: GameState, action: Action) -> GameState:
    if isinstance(action, EnqueueEvent):
        return state.model_copy(update={"event_queue": state.event_queue + (action.event,)})
    if isinstance(action, ShiftEvent):
        if not state.event_queue:
            return state
        return state.model_copy(update={"event_queue": state.event_queue[1:]})
    if isinstance(action, MarkEventTriggered):
        if action.event_id in state.triggered_once_events:
            return state
        return state.model_copy(update={
            "triggered_once_events": state.triggered_once_events | {action.event_id},
        })
    return state
