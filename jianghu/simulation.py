"""World tick: the multi-step update run between player turns."""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Any

from jianghu.actions import AdvanceTime, UpdateNpcs
from jianghu.factions import FactionSystem
from jianghu.models import GameState
from jianghu.npcs import grow_npcs
from jianghu.rules import TICKS_PER_TURN

logger = logging.getLogger(__name__)


def world_tick(faction_system: FactionSystem, ticks: int = TICKS_PER_TURN):
    """Thunk: grow NPCs, evolve factions, then advance the clock.

    Each step commits on its own. Dispatching the thunk returns the faction
    summary string.
    """

    async def thunk(dispatch: Callable[..., Any], get_state: Callable[[], GameState]) -> str:
        await dispatch(UpdateNpcs(npcs=grow_npcs(get_state().world.npcs)))
        summary = await faction_system.evolve_factions()
        await dispatch(AdvanceTime(ticks=ticks))
        logger.debug("World tick done: %s", summary)
        return summary

    return thunk
