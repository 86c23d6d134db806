"""Tests for world generation and the initial state."""

from jianghu.world import NPC_NAMES, STARTER_INVENTORY, WORLD_SIZE, create_initial_state, generate_world


def test_same_seed_same_world():
    assert generate_world("wudang") == generate_world("wudang")


def test_different_seeds_differ():
    worlds = {generate_world(f"seed-{i}").model_dump_json() for i in range(5)}
    assert len(worlds) > 1


def test_locations():
    world = generate_world("river")
    assert sorted(world.locations) == list(range(1, WORLD_SIZE + 1))
    assert world.current_location_id == 1
    assert world.current_location is world.locations[1]
    assert len({loc.name for loc in world.locations.values()}) == WORLD_SIZE


def test_exits_point_at_valid_locations():
    for seed in ("a", "b", "c", "d"):
        world = generate_world(seed)
        for loc in world.locations.values():
            for target in loc.exits.values():
                assert target in world.locations
                assert target != loc.id


def test_npcs():
    world = generate_world("npcs")
    assert [n.name for n in world.npcs] == NPC_NAMES
    assert [n.id for n in world.npcs] == [1, 2, 3, 4, 5]
    assert all(n.location_id in world.locations for n in world.npcs)
    assert all(n.alive for n in world.npcs)


def test_initial_state():
    state = create_initial_state("seed", player_name="Linghu")
    assert state.player.name == "Linghu"
    assert state.player.level == 1
    assert state.player.inventory == STARTER_INVENTORY
    assert state.event_queue == ()
    assert state.triggered_once_events == frozenset()
    assert (state.time.year, state.time.hour) == (1, 6)
