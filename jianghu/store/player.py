"""Player slice reducer."""

from __future__ import annotations

from jianghu.actions import (
    Action,
    AddExperience,
    ApplyEventResult,
    LevelUp,
    SetPlayer,
    UpdateInventory,
)
from jianghu.cultivation import add_experience, level_up
from jianghu.models import EventResult, PlayerState


def _clamp(value: int, low: int, high: int) -> int:
    return max(low, min(high, value))


def apply_event_result(player: PlayerState, result: EventResult) -> PlayerState:
    """Apply stat/attribute deltas and mood. hp/mp are clamped to [0, max]."""
    update: dict = {}

    if result.player_stats:
        stats = player.stats
        delta = result.player_stats
        update["stats"] = stats.model_copy(update={
            "hp": _clamp(stats.hp + (delta.hp or 0), 0, stats.max_hp),
            "mp": _clamp(stats.mp + (delta.mp or 0), 0, stats.max_mp),
        })

    if result.player_attributes:
        attrs = player.attributes
        delta = result.player_attributes
        update["attributes"] = attrs.model_copy(update={
            "strength": attrs.strength + (delta.strength or 0),
            "constitution": attrs.constitution + (delta.constitution or 0),
            "intelligence": attrs.intelligence + (delta.intelligence or 0),
            "agility": attrs.agility + (delta.agility or 0),
        })

    if result.player_mood:
        update["mood"] = result.player_mood

    if not update:
        return player
    return player.model_copy(update=update)


def player_reducer(player: PlayerState, action: Action) -> PlayerState:
    if isinstance(action, ApplyEventResult):
        return apply_event_result(player, action.result)
    if isinstance(action, UpdateInventory):
        return player.model_copy(update={"inventory": action.inventory})
    if isinstance(action, SetPlayer):
        return action.player
    if isinstance(action, AddExperience):
        return add_experience(player, action.amount)
    if isinstance(action, LevelUp):
        return level_up(player)
    return player
