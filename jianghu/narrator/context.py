"""Natural-language summaries of game state for prompts."""

from __future__ import annotations

from jianghu.models import DispatchContext, GameState, LocationContext, Tone, WorldContext
from jianghu.timekeeping import format_time


def build_context_summary(state: GameState) -> str:
    """Who the hero is, where they stand, and the latest rumour."""
    player = state.player
    location = state.world.current_location
    location_name = location.name if location else "an unknown place"
    location_description = (
        location.description if location and location.description else "a land shrouded in mist"
    )

    if state.event_queue:
        latest = state.event_queue[-1]
        rumour = f"Word on the road tells of {latest.title}: {latest.description}"
    else:
        rumour = "The rivers and lakes have been quiet of late."

    return "\n".join([
        "---",
        "**The world of the game**",
        "",
        f"You are **{player.name}**, a wanderer of the jianghu.",
        f"*   **Realm**: {player.realm.value} (level {player.level})",
        f"*   **Location**: {location_name}. {location_description}",
        f"*   **Rumours**: {rumour}",
        "---",
    ])


def build_dispatch_context(
    state: GameState,
    scene_summary: str,
    world_summary: str = "",
    faction_context: str | None = None,
    legacy_summary: str | None = None,
    tone: Tone = "fatalistic",
    event_type: str | None = None,
    importance: int | None = None,
) -> DispatchContext:
    location = state.world.current_location
    return DispatchContext(
        player=state.player,
        world=WorldContext(
            time=format_time(state.time),
            location=LocationContext(
                name=location.name if location else "Unknown",
                description=location.description if location else "",
            ),
            summary=world_summary,
        ),
        scene_summary=scene_summary,
        faction_context=faction_context,
        legacy_summary=legacy_summary,
        tone=tone,
        event_type=event_type,
        importance=importance,
    )
