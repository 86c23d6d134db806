"""Death and succession.

A hero whose hp reaches zero is written into the event log as a LEGACY
record, and a successor with a fresh body takes their place. Every later
narration is told against the joined stories of the fallen.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Any

from jianghu.actions import SetPlayer
from jianghu.models import GameState, PlayerState
from jianghu.storage import Storage
from jianghu.world import create_initial_player

logger = logging.getLogger(__name__)

LEGACY = "LEGACY"


def is_fallen(player: PlayerState) -> bool:
    return player.stats.hp <= 0


def successor_name(fallen: str) -> str:
    return f"Nameless (heir of {fallen})"


def legacy_summary(storage: Storage) -> str | None:
    """The stories of every fallen hero, newest first, or None."""
    stories = [e.details.get("story") for e in storage.find_events(LEGACY)]
    joined = " ".join(s for s in stories if isinstance(s, str) and s)
    return joined or None


def handle_legacy(storage: Storage, clock: Callable[[], str]):
    """Thunk: record the current hero's fall and put a successor in their place.

    Dispatching the thunk returns the successor.
    """

    async def thunk(dispatch: Callable[..., Any], get_state: Callable[[], GameState]) -> PlayerState:
        fallen = get_state().player
        storage.append_event(LEGACY, clock(), {
            "name": fallen.name,
            "realm": fallen.realm.value,
            "level": fallen.level,
            "story": (
                f"A wanderer named {fallen.name} fell in the jianghu, "
                f"having reached the {fallen.realm.value} realm."
            ),
        })
        successor = create_initial_player(successor_name(fallen.name))
        await dispatch(SetPlayer(player=successor))
        logger.info("%s has fallen; %s takes up the road", fallen.name, successor.name)
        return successor

    return thunk
