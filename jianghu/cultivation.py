"""Experience and levelling."""

from __future__ import annotations

from jianghu.models import PlayerState
from jianghu.rules import EXP_PER_LEVEL


def experience_for_next_level(level: int) -> int:
    return level * EXP_PER_LEVEL


def level_up(player: PlayerState) -> PlayerState:
    """One level up: experience resets, every attribute +1, hp/mp fully restored."""
    attrs = player.attributes
    stats = player.stats
    return player.model_copy(update={
        "level": player.level + 1,
        "experience": 0,
        "attributes": attrs.model_copy(update={
            "strength": attrs.strength + 1,
            "constitution": attrs.constitution + 1,
            "intelligence": attrs.intelligence + 1,
            "agility": attrs.agility + 1,
        }),
        "stats": stats.model_copy(update={"hp": stats.max_hp, "mp": stats.max_mp}),
    })


def add_experience(player: PlayerState, amount: int) -> PlayerState:
    """Add experience, levelling up once if the threshold is reached."""
    if amount == 0:
        return player
    player = player.model_copy(update={"experience": player.experience + amount})
    if player.experience >= experience_for_next_level(player.level):
        return level_up(player)
    return player
