"""JSON file storage.

All persistent state lives in flat JSON files under a configurable base
directory. There is no database or ORM; reads and writes go through plain
helper methods that load and dump JSON.

Directory layout:

    {base}/
      factions.json          ← list of Faction, unique by name
      relationships.json     ← list of FactionRelationship, unique by (source_id, target_id)
      npcs.json              ← list of archived NpcRecord, unique by name
      meta.json              ← free-form key/value metadata
      event_log.json         ← append-only list of EventLogEntry
      saves/
        {slot}.json          ← SaveGame
"""

from __future__ import annotations

import json
import re
from pathlib import Path
from typing import Any

from jianghu.models import (
    Alignment,
    EventLogEntry,
    Faction,
    FactionRelationship,
    NpcRecord,
    RelationshipStatus,
    SaveGame,
)

_SLOT_RE = re.compile(r"^[A-Za-z0-9_-]+$")


class Storage:
    def __init__(self, base_path: Path) -> None:
        self._base = Path(base_path)
        self._saves = self._base / "saves"
        self._saves.mkdir(parents=True, exist_ok=True)

    @property
    def base_path(self) -> Path:
        return self._base

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _read_json(self, path: Path, default: Any) -> Any:
        if not path.exists():
            return default
        return json.loads(path.read_text())

    def _write_json(self, path: Path, data: Any) -> None:
        path.write_text(json.dumps(data, indent=2, ensure_ascii=False))

    @staticmethod
    def _next_id(records: list[Any]) -> int:
        return max((r.id for r in records), default=0) + 1

    # ------------------------------------------------------------------
    # Factions
    # ------------------------------------------------------------------

    def get_factions(self) -> list[Faction]:
        return [Faction.model_validate(f) for f in self._read_json(self._base / "factions.json", [])]

    def _write_factions(self, factions: list[Faction]) -> None:
        self._write_json(self._base / "factions.json", [f.model_dump() for f in factions])

    def get_faction(self, faction_id: int) -> Faction | None:
        return next((f for f in self.get_factions() if f.id == faction_id), None)

    def get_faction_by_name(self, name: str) -> Faction | None:
        return next((f for f in self.get_factions() if f.name == name), None)

    def upsert_faction(
        self,
        name: str,
        alignment: Alignment,
        reputation: int = 0,
        description: str = "",
    ) -> Faction:
        """Upsert a faction by name. An existing faction keeps its id."""
        factions = self.get_factions()
        for i, f in enumerate(factions):
            if f.name == name:
                factions[i] = Faction(
                    id=f.id, name=name, alignment=alignment,
                    reputation=reputation, description=description,
                )
                self._write_factions(factions)
                return factions[i]
        faction = Faction(
            id=self._next_id(factions), name=name, alignment=alignment,
            reputation=reputation, description=description,
        )
        factions.append(faction)
        self._write_factions(factions)
        return faction

    def update_faction_reputation(self, faction_id: int, delta: int) -> Faction:
        factions = self.get_factions()
        for f in factions:
            if f.id == faction_id:
                f.reputation += delta
                self._write_factions(factions)
                return f
        raise KeyError(f"Faction {faction_id} not found")

    # ------------------------------------------------------------------
    # Faction relationships (directed)
    # ------------------------------------------------------------------

    def get_relationships(self, source_id: int | None = None) -> list[FactionRelationship]:
        rels = [
            FactionRelationship.model_validate(r)
            for r in self._read_json(self._base / "relationships.json", [])
        ]
        if source_id is not None:
            rels = [r for r in rels if r.source_id == source_id]
        return rels

    def _write_relationships(self, rels: list[FactionRelationship]) -> None:
        self._write_json(self._base / "relationships.json", [r.model_dump() for r in rels])

    def get_relationship(self, source_id: int, target_id: int) -> FactionRelationship | None:
        return next(
            (r for r in self.get_relationships(source_id) if r.target_id == target_id),
            None,
        )

    def upsert_relationship(
        self,
        source_id: int,
        target_id: int,
        status: RelationshipStatus = "neutral",
        intensity: int = 0,
    ) -> FactionRelationship:
        """Upsert a relationship by its ordered (source, target) pair."""
        rels = self.get_relationships()
        for i, r in enumerate(rels):
            if r.source_id == source_id and r.target_id == target_id:
                rels[i] = FactionRelationship(
                    id=r.id, source_id=source_id, target_id=target_id,
                    status=status, intensity=intensity,
                )
                self._write_relationships(rels)
                return rels[i]
        rel = FactionRelationship(
            id=self._next_id(rels), source_id=source_id, target_id=target_id,
            status=status, intensity=intensity,
        )
        rels.append(rel)
        self._write_relationships(rels)
        return rel

    def update_relationship_intensity(self, relationship_id: int, delta: int) -> FactionRelationship:
        rels = self.get_relationships()
        for r in rels:
            if r.id == relationship_id:
                r.intensity += delta
                self._write_relationships(rels)
                return r
        raise KeyError(f"Relationship {relationship_id} not found")

    def find_hostile_relationships(self, threshold: int) -> list[FactionRelationship]:
        return [
            r for r in self.get_relationships()
            if r.status == "hostile" and r.intensity >= threshold
        ]

    # ------------------------------------------------------------------
    # Archived NPCs
    # ------------------------------------------------------------------

    def get_npcs(self) -> list[NpcRecord]:
        return [NpcRecord.model_validate(n) for n in self._read_json(self._base / "npcs.json", [])]

    def upsert_npc(self, record: NpcRecord) -> None:
        """Upsert an NPC record by name."""
        npcs = self.get_npcs()
        for i, n in enumerate(npcs):
            if n.name == record.name:
                npcs[i] = record
                break
        else:
            npcs.append(record)
        self._write_json(self._base / "npcs.json", [n.model_dump() for n in npcs])

    # ------------------------------------------------------------------
    # Metadata (key/value)
    # ------------------------------------------------------------------

    def get_meta(self, key: str, default: Any = None) -> Any:
        return self._read_json(self._base / "meta.json", {}).get(key, default)

    def set_meta(self, key: str, value: Any) -> None:
        meta = self._read_json(self._base / "meta.json", {})
        meta[key] = value
        self._write_json(self._base / "meta.json", meta)

    # ------------------------------------------------------------------
    # Event log (append-only)
    # ------------------------------------------------------------------

    def get_event_log(self) -> list[EventLogEntry]:
        return [
            EventLogEntry.model_validate(e)
            for e in self._read_json(self._base / "event_log.json", [])
        ]

    def append_event(self, event_type: str, timestamp: str, details: dict[str, Any]) -> EventLogEntry:
        log = self.get_event_log()
        entry = EventLogEntry(
            id=self._next_id(log), type=event_type, timestamp=timestamp, details=details,
        )
        log.append(entry)
        self._write_json(
            self._base / "event_log.json",
            [e.model_dump(mode="json") for e in log],
        )
        return entry

    def find_events(self, event_type: str, **details: Any) -> list[EventLogEntry]:
        """Entries of `event_type`, newest first.

        Keyword arguments must equal the corresponding `details` fields.
        """
        matches = [
            e for e in self.get_event_log()
            if e.type == event_type
            and all(e.details.get(k) == v for k, v in details.items())
        ]
        matches.sort(key=lambda e: (e.created_at, e.id), reverse=True)
        return matches

    def find_first_event(self, event_type: str, **details: Any) -> EventLogEntry | None:
        matches = self.find_events(event_type, **details)
        return matches[0] if matches else None

    # ------------------------------------------------------------------
    # Save slots
    # ------------------------------------------------------------------

    def _save_file(self, slot: str) -> Path:
        if not _SLOT_RE.match(slot):
            raise ValueError(f"Invalid save slot name: {slot!r}")
        return self._saves / f"{slot}.json"

    def write_save(self, slot: str, save: SaveGame) -> None:
        self._save_file(slot).write_text(save.model_dump_json(indent=2))

    def read_save(self, slot: str) -> str | None:
        """Raw JSON of a save slot, or None if the slot is empty."""
        path = self._save_file(slot)
        if not path.exists():
            return None
        return path.read_text()

    def list_saves(self) -> list[str]:
        return sorted(p.stem for p in self._saves.glob("*.json"))


# ---------------------------------------------------------------------------
# Seed data
# ---------------------------------------------------------------------------

DEFAULT_FACTIONS: list[dict[str, Any]] = [
    {"name": "Wudang Sect", "alignment": "righteous", "reputation": 1000,
     "description": "Second only to Shaolin in the martial world."},
    {"name": "Beggars' Sect", "alignment": "righteous", "reputation": 800,
     "description": "The largest sect under heaven, with disciples on every road."},
    {"name": "Demonic Cult", "alignment": "villainous", "reputation": -1000,
     "description": "Secretive and ruthless, shunned by every orthodox sect."},
    {"name": "Sword Forge Manor", "alignment": "neutral", "reputation": 500,
     "description": "Famed across the land for the blades it forges."},
    {"name": "Five Poisons Sect", "alignment": "villainous", "reputation": -700,
     "description": "Masters of venom, as unpredictable as their poisons."},
]


def _initial_relationship(source: Faction, target: Faction) -> tuple[RelationshipStatus, int]:
    if source.alignment == target.alignment:
        return "allied", 20
    if {source.alignment, target.alignment} == {"righteous", "villainous"}:
        return "hostile", 50
    return "neutral", 0


def seed_factions(storage: Storage) -> list[Faction]:
    """Create the default sects and their relationships.

    Existing factions and relationships are left untouched, so seeding an
    already-seeded store is a no-op.
    """
    for data in DEFAULT_FACTIONS:
        if storage.get_faction_by_name(data["name"]) is None:
            storage.upsert_faction(**data)

    factions = storage.get_factions()
    for source in factions:
        for target in factions:
            if source.id == target.id or storage.get_relationship(source.id, target.id):
                continue
            status, intensity = _initial_relationship(source, target)
            storage.upsert_relationship(source.id, target.id, status, intensity)
    return factions
