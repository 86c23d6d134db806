"""NPC growth between ticks."""

from __future__ import annotations

from collections.abc import Iterable

from jianghu.models import Npc


def grow_npcs(npcs: Iterable[Npc]) -> tuple[Npc, ...]:
    """Every living NPC trains a little: +1 strength. The dead stay as they are."""
    grown: list[Npc] = []
    for npc in npcs:
        if npc.alive:
            attrs = npc.attributes
            npc = npc.model_copy(update={
                "attributes": attrs.model_copy(update={"strength": attrs.strength + 1}),
            })
        grown.append(npc)
    return tuple(grown)
