"""World generation and initial state.

generate_world() is deterministic for a given seed: the same seed always
produces the same map and NPC placement.
"""

from __future__ import annotations

import random

from jianghu.models import (
    GameState,
    Item,
    Location,
    LocationType,
    Npc,
    PlayerState,
    TimeState,
    World,
)

WORLD_SIZE = 10

LOCATION_NAMES: dict[LocationType, list[str]] = {
    "town": ["Luoyang", "Chang'an", "Kaifeng", "Hangzhou"],
    "wilds": ["Black Wind Mountain", "Nameless Valley", "Rubble Slope", "Deep Forest"],
    "river": ["Yellow River", "Yangtze", "Huai River", "Wei River"],
    "sect": ["Mount Hua Sect", "Beggars' Sect", "Demonic Cult", "Shaolin Temple"],
}

DIRECTIONS = ["east", "south", "west", "north"]
OPPOSITE = {"east": "west", "west": "east", "south": "north", "north": "south"}

NPC_NAMES = ["Li Xunhuan", "The Sweeping Monk", "Dongfang Bubai", "Linghu Chong", "Huang Rong"]

STARTER_INVENTORY = (
    Item(name="Wound Salve", description="A common remedy every traveller carries."),
    Item(name="Rusty Iron Sword"),
)


def generate_world(seed: str) -> World:
    """Ten locations joined by 1–3 random exits each, plus five NPCs.

    Every exit points at a valid location id. A back-link in the opposite
    direction is added when that direction is still free on the target, so
    the graph is mostly but not strictly symmetric.
    """
    rng = random.Random(seed)
    types = list(LOCATION_NAMES)

    drafts: dict[int, dict] = {}
    for loc_id in range(1, WORLD_SIZE + 1):
        loc_type = rng.choice(types)
        name = rng.choice(LOCATION_NAMES[loc_type])
        drafts[loc_id] = {
            "id": loc_id,
            "name": f"{name} ({loc_id})",  # id suffix disambiguates repeated names
            "type": loc_type,
            "description": f"This is {name}, a stretch of the jianghu few have mapped.",
            "exits": {},
        }

    for loc_id, draft in drafts.items():
        for _ in range(rng.randint(1, 3)):
            target_id = rng.randint(1, WORLD_SIZE)
            if target_id == loc_id:
                continue
            direction = rng.choice(DIRECTIONS)
            if direction in draft["exits"]:
                continue
            draft["exits"][direction] = target_id
            back = OPPOSITE[direction]
            target_exits = drafts[target_id]["exits"]
            if back not in target_exits:
                target_exits[back] = loc_id

    npcs = tuple(
        Npc(id=i + 1, name=name, location_id=rng.randint(1, WORLD_SIZE))
        for i, name in enumerate(NPC_NAMES)
    )

    return World(
        locations={loc_id: Location(**d) for loc_id, d in drafts.items()},
        npcs=npcs,
        current_location_id=1,
    )


def create_initial_player(name: str) -> PlayerState:
    return PlayerState(name=name, inventory=STARTER_INVENTORY)


def create_initial_state(seed: str, player_name: str = "Nameless") -> GameState:
    return GameState(
        player=create_initial_player(player_name),
        world=generate_world(seed),
        time=TimeState(),
    )
