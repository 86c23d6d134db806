"""Save/load: GameState <-> SaveGame.

Only the durable part of the state is saved. The event queue and the
current scene's NPCs are transient and come back empty.
"""

from __future__ import annotations

from typing import Any

from pydantic import ValidationError

from jianghu.models import GameState, SaveGame


class SaveGameError(ValueError):
    """Raised when save data is missing, corrupted or of the wrong shape."""


def serialize_state(state: GameState) -> SaveGame:
    return SaveGame(
        player=state.player,
        world=state.world,
        time=state.time,
        triggered_once_events=sorted(state.triggered_once_events),
    )


def deserialize_state(data: SaveGame | dict[str, Any] | str | bytes) -> GameState:
    """Rebuild a GameState from a SaveGame, its dict form or its JSON."""
    try:
        if isinstance(data, SaveGame):
            save = data
        elif isinstance(data, (str, bytes)):
            save = SaveGame.model_validate_json(data)
        else:
            save = SaveGame.model_validate(data)
        return GameState(
            player=save.player,
            world=save.world,
            time=save.time,
            triggered_once_events=frozenset(save.triggered_once_events),
        )
    except ValidationError as e:
        raise SaveGameError(f"Invalid save data: {e.error_count()} error(s)") from e
