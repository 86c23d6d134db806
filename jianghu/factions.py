"""Faction simulation: reputation drift, relationship strain, war declarations.

Meant to run once per world tick. Everything it changes lives in storage,
not in GameState; the returned summary string is what the narrative layer
sees as world context.
"""

from __future__ import annotations

import logging
import random
from collections.abc import Callable

from jianghu.models import Faction, FactionRelationship
from jianghu.rules import WAR_DECLARATION_THRESHOLD
from jianghu.storage import Storage

logger = logging.getLogger(__name__)

WAR_START = "WAR_START"
QUIET_SUMMARY = "The jianghu lies calm; the great sects keep their peace."


class FactionSystem:
    """Evolves factions stored in `storage`.

    Args:
        storage:        persistence for factions, relationships and the event log.
        clock:          returns the current in-game time as text; used as the
                        timestamp of war records.
        rng:            source of randomness, injectable for deterministic tests.
        war_threshold:  hostile intensity at or above which war is declared.
    """

    def __init__(
        self,
        storage: Storage,
        clock: Callable[[], str],
        rng: random.Random | None = None,
        war_threshold: int = WAR_DECLARATION_THRESHOLD,
    ) -> None:
        self._storage = storage
        self._clock = clock
        self._rng = rng or random.Random()
        self._war_threshold = war_threshold

    async def evolve_factions(self) -> str:
        """Run one simulation step and return a summary of what changed."""
        logger.info("Evolving factions")
        fragments: list[str] = []

        for faction in self._storage.get_factions():
            fragment = self._update_reputation(faction)
            if fragment:
                fragments.append(fragment)
            self._update_relationships(faction)

        fragments.extend(await self.check_for_major_faction_events())
        logger.info("Faction evolution done (%d notable changes)", len(fragments))

        if not fragments:
            return QUIET_SUMMARY
        return "Undercurrents stir in the jianghu: " + " ".join(fragments)

    def _reputation_delta(self, faction: Faction) -> int:
        if faction.alignment == "righteous":
            return self._rng.randint(0, 2)
        if faction.alignment == "villainous":
            return -self._rng.randint(0, 2)
        return 0

    def _update_reputation(self, faction: Faction) -> str | None:
        delta = self._reputation_delta(faction)
        if delta == 0:
            return None
        self._storage.update_faction_reputation(faction.id, delta)
        trend = "rises slightly" if delta > 0 else "declines"
        return f"The standing of {faction.name} {trend}."

    def _intensity_delta(self, rel: FactionRelationship) -> int:
        if rel.status == "hostile":
            return self._rng.randint(0, 2)
        if rel.status == "allied":
            return self._rng.randint(0, 1)
        return self._rng.randint(-1, 1)

    def _update_relationships(self, faction: Faction) -> None:
        for rel in self._storage.get_relationships(source_id=faction.id):
            delta = self._intensity_delta(rel)
            if delta:
                self._storage.update_relationship_intensity(rel.id, delta)

    async def check_for_major_faction_events(self) -> list[str]:
        """Record a war declaration for each hostile pair at or above the
        threshold that has none yet. Returns one sentence per new war."""
        names = {f.id: f.name for f in self._storage.get_factions()}
        declared: list[str] = []

        for rel in self._storage.find_hostile_relationships(self._war_threshold):
            source = names.get(rel.source_id)
            target = names.get(rel.target_id)
            if source is None or target is None:
                logger.warning("Relationship %d refers to a missing faction", rel.id)
                continue
            if self._storage.find_first_event(WAR_START, faction1=source, faction2=target):
                continue

            reason = f"Hostility has reached its peak: {source} declares war on {target}!"
            self._storage.append_event(
                WAR_START,
                self._clock(),
                {"faction1": source, "faction2": target, "reason": reason},
            )
            logger.info("War declared: %s -> %s", source, target)
            declared.append(reason)

        return declared

    async def is_faction_war_happening(self) -> bool:
        """True once any war has been declared. Wars never end."""
        return self._storage.find_first_event(WAR_START) is not None
