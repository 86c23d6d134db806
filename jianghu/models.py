"""Core domain models.

Every subsystem operates on these types. Pydantic is used for validation and
serialisation at every data boundary (event catalogs, rule files, backend
JSON, save files, HTTP bodies).

State models are frozen and hold tuples / frozensets instead of lists / sets:
a committed GameState is never mutated in place. Reducers build the next
state with model_copy(update=...), sharing every untouched branch.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field


class _Frozen(BaseModel):
    model_config = ConfigDict(frozen=True)


# ---------------------------------------------------------------------------
# Player
# ---------------------------------------------------------------------------

class Realm(str, Enum):
    """Cultivation tiers, weakest first."""

    MORTAL = "mortal"
    QI_REFINING = "qi_refining"
    TRUE_QI = "true_qi"
    INNATE = "innate"
    GRANDMASTER = "grandmaster"

    @property
    def rank(self) -> int:
        return list(Realm).index(self)

    def __lt__(self, other: object) -> bool:
        if not isinstance(other, Realm):
            return NotImplemented
        return self.rank < other.rank


class Attributes(_Frozen):
    strength: int = 10
    constitution: int = 10
    intelligence: int = 10
    agility: int = 10


class Stats(_Frozen):
    hp: int = 100
    max_hp: int = 100
    mp: int = 50
    max_mp: int = 50


class Item(_Frozen):
    name: str
    description: str = ""


class PlayerState(_Frozen):
    name: str
    level: int = 1
    experience: int = 0
    attributes: Attributes = Field(default_factory=Attributes)
    stats: Stats = Field(default_factory=Stats)
    realm: Realm = Realm.MORTAL
    mood: str = "calm"
    inventory: tuple[Item, ...] = ()


# ---------------------------------------------------------------------------
# World
# ---------------------------------------------------------------------------

LocationType = Literal["town", "wilds", "river", "sect"]


class Location(_Frozen):
    id: int
    name: str
    type: LocationType
    description: str = ""
    exits: dict[str, int] = Field(default_factory=dict)  # direction -> location id


class NpcAttributes(_Frozen):
    strength: int = 10
    constitution: int = 10


class Npc(_Frozen):
    id: int
    name: str
    realm: str = Realm.MORTAL.value
    sect: str | None = None
    alive: bool = True
    location_id: int
    reputation: int = 0
    stats: Stats = Field(default_factory=Stats)
    attributes: NpcAttributes = Field(default_factory=NpcAttributes)


class World(_Frozen):
    locations: dict[int, Location] = Field(default_factory=dict)
    npcs: tuple[Npc, ...] = ()
    current_location_id: int = 0

    @property
    def current_location(self) -> Location | None:
        return self.locations.get(self.current_location_id)


class TimeState(_Frozen):
    year: int = 1
    month: int = 1
    day: int = 1
    hour: int = 6
    tick: int = 0


# ---------------------------------------------------------------------------
# Events
# ---------------------------------------------------------------------------

EventCategory = Literal["combat", "opportunity", "social", "trade", "trap", "illusion"]

# A bound trigger: (state, helpers) -> bool | Awaitable[bool].
BoundTrigger = Callable[..., Any]


def never(_state: Any, _helpers: Mapping[str, Any]) -> bool:
    """Bound trigger that never fires."""
    return False


class StatDelta(_Frozen):
    hp: int | None = None
    mp: int | None = None


class AttributeDelta(_Frozen):
    strength: int | None = None
    constitution: int | None = None
    intelligence: int | None = None
    agility: int | None = None


class EventResult(_Frozen):
    """Outcome of a choice. Applying one is the only way stats change outside
    combat and levelling."""

    description: str
    player_stats: StatDelta | None = None
    player_attributes: AttributeDelta | None = None
    player_mood: str | None = None
    data: Any = None  # free-form payload, e.g. trade details


class EventChoice(_Frozen):
    text: str
    action: str
    result: EventResult | None = None


class GameEvent(_Frozen):
    id: str
    category: EventCategory
    title: str
    description: str
    trigger: BoundTrigger = Field(default=never, exclude=True)
    choices: tuple[EventChoice, ...] | None = None
    once: bool = False


class EventDefinition(BaseModel):
    """An event as it appears in a catalog file, before its trigger is bound.

    `trigger` is either a bare identifier / expression string, or
    {"id": ..., "args": [...]} (any extra keys are passed through as config).
    """

    id: str
    category: EventCategory
    title: str
    description: str
    trigger: str | dict[str, Any] = "always"
    choices: list[EventChoice] | None = None
    once: bool = False


# ---------------------------------------------------------------------------
# Aggregate root
# ---------------------------------------------------------------------------

class GameState(_Frozen):
    player: PlayerState
    world: World = Field(default_factory=World)
    time: TimeState = Field(default_factory=TimeState)
    event_queue: tuple[GameEvent, ...] = ()  # FIFO
    triggered_once_events: frozenset[str] = frozenset()
    scene_npcs: tuple[Npc, ...] = ()  # transient, never persisted


class SaveGame(BaseModel):
    """The persisted subset of a GameState."""

    player: PlayerState
    world: World
    time: TimeState = Field(default_factory=TimeState)
    triggered_once_events: list[str] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Sects
# ---------------------------------------------------------------------------

Alignment = Literal["righteous", "villainous", "neutral"]
RelationshipStatus = Literal["allied", "hostile", "neutral"]


class Faction(BaseModel):
    id: int
    name: str
    alignment: Alignment
    reputation: int = 0
    description: str = ""


class FactionRelationship(BaseModel):
    """Directed: how `source_id` regards `target_id`."""

    id: int
    source_id: int
    target_id: int
    status: RelationshipStatus = "neutral"
    intensity: int = 0


class NpcRecord(BaseModel):
    """Archived NPC. Location is stored by name, not id."""

    name: str
    sect: str | None = None
    realm: str = Realm.MORTAL.value
    alive: bool = True
    location: str
    reputation: int = 0


class EventLogEntry(BaseModel):
    id: int
    type: str
    timestamp: str  # in-game time
    details: dict[str, Any] = Field(default_factory=dict)
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


# ---------------------------------------------------------------------------
# Narration
# ---------------------------------------------------------------------------

class NarrativeTier(str, Enum):
    TEMPLATE = "template"
    LIGHT_LLM = "light_llm"
    HEAVY_LLM = "heavy_llm"


class NarrativeRule(BaseModel):
    """First rule whose every condition equals the context field wins."""

    comment: str = ""
    conditions: dict[str, Any] = Field(default_factory=dict)
    tier: NarrativeTier
    model: str | None = None


Tone = Literal["fatalistic", "humorous", "philosophical", "mad"]


class LocationContext(BaseModel):
    name: str
    description: str = ""


class WorldContext(BaseModel):
    time: str
    location: LocationContext
    summary: str = ""


class DispatchContext(BaseModel):
    player: PlayerState
    world: WorldContext
    scene_summary: str
    faction_context: str | None = None
    legacy_summary: str | None = None
    tone: Tone = "fatalistic"
    event_type: str | None = None
    importance: int | None = None


class NarrativeOutput(BaseModel):
    narration: str
    options: list[EventChoice]
