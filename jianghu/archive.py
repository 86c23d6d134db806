"""Archival of long-lived world state (NPCs, fire-once events) to storage.

Unlike the rest of the core, archival does not mask persistence failures:
they surface as ArchiveError.
"""

from __future__ import annotations

import logging

from pydantic import ValidationError

from jianghu.models import GameState, Npc, NpcRecord
from jianghu.storage import Storage

logger = logging.getLogger(__name__)

TRIGGERED_ONCE_KEY = "triggered_once_events"


class ArchiveError(RuntimeError):
    """Raised when world state cannot be written to or read from storage."""


def archive_world_state(state: GameState, storage: Storage) -> int:
    """Upsert every NPC with a valid location, and the fire-once ids.

    Returns the number of NPCs archived.
    """
    logger.info("Archiving world state")
    locations = state.world.locations
    try:
        archived = 0
        for npc in state.world.npcs:
            location = locations.get(npc.location_id)
            if location is None:
                logger.warning("NPC %r has an invalid location id %d; skipping", npc.name, npc.location_id)
                continue
            storage.upsert_npc(NpcRecord(
                name=npc.name,
                sect=npc.sect,
                realm=npc.realm,
                alive=npc.alive,
                location=location.name,
                reputation=npc.reputation,
            ))
            archived += 1
        storage.set_meta(TRIGGERED_ONCE_KEY, sorted(state.triggered_once_events))
    except (OSError, ValueError) as e:
        logger.error("Failed to archive world state: %s", e)
        raise ArchiveError("Storage failed during world state archival") from e

    logger.info("Archived %d NPCs", archived)
    return archived


def load_world_from_archive(state: GameState, storage: Storage) -> GameState:
    """Return `state` with archived NPCs and fire-once ids applied.

    Archived NPCs whose location name no longer exists in the world are
    dropped. With nothing archived, the corresponding part of `state` is
    kept as is.
    """
    logger.info("Loading world state from archive")
    try:
        records = storage.get_npcs()
        once_ids = storage.get_meta(TRIGGERED_ONCE_KEY)
    except (OSError, ValueError, ValidationError) as e:
        logger.error("Failed to load world state from archive: %s", e)
        raise ArchiveError("Storage failed while loading world state") from e

    update: dict = {}

    if records:
        by_name = {loc.name: loc.id for loc in state.world.locations.values()}
        npcs = tuple(
            Npc(
                id=i,
                name=record.name,
                sect=record.sect,
                realm=record.realm,
                alive=record.alive,
                location_id=by_name[record.location],
                reputation=record.reputation,
            )
            for i, record in enumerate(records, start=1)
            if record.location in by_name
        )
        update["world"] = state.world.model_copy(update={"npcs": npcs})
        logger.info("Loaded %d NPCs from archive", len(npcs))
    else:
        logger.warning("No archived NPCs found")

    if once_ids is not None:
        update["triggered_once_events"] = frozenset(once_ids)
        logger.info("Loaded %d fire-once events from archive", len(once_ids))
    else:
        logger.warning("No archived fire-once events found")

    return state.model_copy(update=update) if update else state
