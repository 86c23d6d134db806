import json

import pytest

from jianghu.models import NpcRecord
from jianghu.serialization import serialize_state
from jianghu.storage import Storage


# ── Factions ─────────────────────────────────────────────────


def test_upsert_faction_assigns_ids(storage: Storage):
    wudang = storage.upsert_faction("Wudang Sect", "righteous", 1000)
    cult = storage.upsert_faction("Demonic Cult", "villainous", -1000)
    assert (wudang.id, cult.id) == (1, 2)
    assert [f.name for f in storage.get_factions()] == ["Wudang Sect", "Demonic Cult"]


def test_upsert_faction_keeps_id(storage: Storage):
    storage.upsert_faction("Wudang Sect", "righteous", 1000)
    updated = storage.upsert_faction("Wudang Sect", "neutral", 10, "Withdrawn from the world.")
    assert updated.id == 1
    assert storage.get_faction(1).alignment == "neutral"
    assert len(storage.get_factions()) == 1


def test_get_faction_missing(storage: Storage):
    assert storage.get_faction(7) is None
    assert storage.get_faction_by_name("Nobody") is None


def test_update_faction_reputation(storage: Storage):
    storage.upsert_faction("Beggars' Sect", "righteous", 800)
    assert storage.update_faction_reputation(1, -5).reputation == 795
    assert storage.get_faction_by_name("Beggars' Sect").reputation == 795


def test_update_missing_faction_raises(storage: Storage):
    with pytest.raises(KeyError):
        storage.update_faction_reputation(1, 1)


# ── Relationships ───────────────────────────────────────────


def test_relationships_are_directed(storage: Storage):
    storage.upsert_relationship(1, 2, "hostile", 50)
    storage.upsert_relationship(2, 1, "neutral", 0)
    assert storage.get_relationship(1, 2).status == "hostile"
    assert storage.get_relationship(2, 1).status == "neutral"
    assert storage.get_relationship(1, 3) is None
    assert [r.target_id for r in storage.get_relationships(source_id=1)] == [2]


def test_upsert_relationship_keeps_id(storage: Storage):
    first = storage.upsert_relationship(1, 2, "hostile", 50)
    again = storage.upsert_relationship(1, 2, "allied", 5)
    assert again.id == first.id
    assert len(storage.get_relationships()) == 1


def test_update_relationship_intensity(storage: Storage):
    rel = storage.upsert_relationship(1, 2, "hostile", 50)
    assert storage.update_relationship_intensity(rel.id, 3).intensity == 53
    with pytest.raises(KeyError):
        storage.update_relationship_intensity(99, 1)


def test_find_hostile_relationships(storage: Storage):
    storage.upsert_relationship(1, 2, "hostile", 100)
    storage.upsert_relationship(2, 1, "hostile", 99)
    storage.upsert_relationship(1, 3, "allied", 200)
    assert [(r.source_id, r.target_id) for r in storage.find_hostile_relationships(100)] == [(1, 2)]


# ── NPCs & metadata ─────────────────────────────────────────


def test_upsert_npc_by_name(storage: Storage):
    storage.upsert_npc(NpcRecord(name="Huang Rong", location="Hangzhou (4)"))
    storage.upsert_npc(NpcRecord(name="Li Xunhuan", location="Luoyang (1)"))
    storage.upsert_npc(NpcRecord(name="Huang Rong", location="Kaifeng (2)", alive=False))
    npcs = storage.get_npcs()
    assert [n.name for n in npcs] == ["Huang Rong", "Li Xunhuan"]
    assert npcs[0].location == "Kaifeng (2)"
    assert npcs[0].alive is False


def test_meta(storage: Storage):
    assert storage.get_meta("missing") is None
    assert storage.get_meta("missing", []) == []
    storage.set_meta("triggered_once_events", ["hermit_in_the_cave"])
    storage.set_meta("other", 1)
    assert storage.get_meta("triggered_once_events") == ["hermit_in_the_cave"]


# ── Event log ───────────────────────────────────────────────


def test_append_event(storage: Storage):
    entry = storage.append_event("WAR_START", "hour 6", {"faction1": "A", "faction2": "B"})
    assert entry.id == 1
    log = storage.get_event_log()
    assert log == [entry]
    raw = json.loads((storage.base_path / "event_log.json").read_text())
    assert isinstance(raw[0]["created_at"], str)


def test_find_events_filters_by_details(storage: Storage):
    storage.append_event("WAR_START", "t1", {"faction1": "A", "faction2": "B"})
    storage.append_event("WAR_START", "t2", {"faction1": "B", "faction2": "A"})
    storage.append_event("TRUCE", "t3", {"faction1": "A", "faction2": "B"})
    assert len(storage.find_events("WAR_START")) == 2
    assert [e.timestamp for e in storage.find_events("WAR_START", faction1="A", faction2="B")] == ["t1"]
    assert storage.find_events("WAR_START", faction1="C") == []


def test_find_first_event_is_newest(storage: Storage):
    storage.append_event("WAR_START", "first", {})
    storage.append_event("WAR_START", "second", {})
    assert storage.find_first_event("WAR_START").timestamp == "second"
    assert storage.find_first_event("TRUCE") is None


# ── Save slots ──────────────────────────────────────────────


def test_save_slots(storage: Storage, state):
    assert storage.list_saves() == []
    assert storage.read_save("slot1") is None
    storage.write_save("slot1", serialize_state(state))
    storage.write_save("autosave", serialize_state(state))
    assert storage.list_saves() == ["autosave", "slot1"]
    assert json.loads(storage.read_save("slot1"))["player"]["name"] == "Linghu"


@pytest.mark.parametrize("slot", ["", "../escape", "a b", "slot.json", "名"])
def test_invalid_slot_names(storage: Storage, state, slot: str):
    with pytest.raises(ValueError):
        storage.write_save(slot, serialize_state(state))
    with pytest.raises(ValueError):
        storage.read_save(slot)


def test_storage_creates_directories(tmp_path):
    Storage(tmp_path / "nested" / "data")
    assert (tmp_path / "nested" / "data" / "saves").is_dir()
