"""Game session: one player's turn loop over the store and the engines.

A turn (next_scene) runs the world tick, picks the scene's event, and narrates
it: an event with preset choices is told by its own description, anything
else goes to the narrative dispatcher. choose() applies the picked option's
result; trading and appraisal options open a follow-up scene, and a hero
whose hp falls to zero is succeeded by an heir.
"""

from __future__ import annotations

import logging

from pydantic import BaseModel

from jianghu.actions import ApplyEventResult, ReplaceState, ShiftEvent, UpdateInventory, UpdateSceneNpcs
from jianghu.archive import archive_world_state, load_world_from_archive
from jianghu.encounters import appraise_item, interaction_options, introduce, open_trade, traded_inventory
from jianghu.events import EventEngine
from jianghu.factions import FactionSystem
from jianghu.legacy import handle_legacy, is_fallen, legacy_summary
from jianghu.models import EventChoice, EventResult, GameEvent, GameState, NarrativeOutput, Tone
from jianghu.narrator import NarrativeDispatcher, build_dispatch_context
from jianghu.rules import TICKS_PER_TURN
from jianghu.serialization import deserialize_state, serialize_state
from jianghu.simulation import world_tick
from jianghu.storage import Storage
from jianghu.store import GameStore
from jianghu.timekeeping import format_time

logger = logging.getLogger(__name__)

QUIET_SCENE = "Nothing stirs. The road stretches on beneath an indifferent sky."
REBIRTH = "You wake in a stranger's body, the last breath of your predecessor still in your ears."


class Scene(BaseModel):
    event: GameEvent | None = None
    narration: str
    options: list[EventChoice]
    world_summary: str = ""


class GameSession:
    def __init__(
        self,
        store: GameStore,
        events: EventEngine,
        factions: FactionSystem,
        dispatcher: NarrativeDispatcher,
        storage: Storage,
        tone: Tone = "fatalistic",
        ticks_per_turn: int = TICKS_PER_TURN,
        dynamic_events: bool = False,
    ) -> None:
        self.store = store
        self.events = events
        self.factions = factions
        self.dispatcher = dispatcher
        self.storage = storage
        self.tone = tone
        self.ticks_per_turn = ticks_per_turn
        self.dynamic_events = dynamic_events
        self._options: list[EventChoice] = []
        self._last_outcome: str | None = None
        self._follow_up: Scene | None = None

    @property
    def options(self) -> list[EventChoice]:
        return list(self._options)

    @property
    def last_outcome(self) -> str | None:
        """What the last choice led to; the next quiet scene starts from it."""
        return self._last_outcome

    @property
    def follow_up(self) -> Scene | None:
        """The scene opened by the last choice (a trade, an appraisal), if any."""
        return self._follow_up

    async def _next_event(self) -> GameEvent | None:
        state = self.store.state
        if state.event_queue:
            event = state.event_queue[0]
            await self.store.dispatch(ShiftEvent())
            return event

        event = await self.events.trigger_random_event(state)
        if event is None and self.dynamic_events:
            if await self.events.trigger_dynamic_event(state) is not None:
                event = self.store.state.event_queue[0]
                await self.store.dispatch(ShiftEvent())
        return event

    async def _narrate(self, event: GameEvent | None, world_summary: str) -> NarrativeOutput:
        if event is not None:
            scene_summary = f"{event.title}. {event.description}"
        else:
            scene_summary = self._last_outcome or QUIET_SCENE

        scene_npcs = self.store.state.scene_npcs
        if scene_npcs:
            scene_summary = f"{scene_summary} {introduce(scene_npcs)}"

        faction_context = None
        if await self.factions.is_faction_war_happening():
            faction_context = "The great sects are at war."

        context = build_dispatch_context(
            self.store.state,
            scene_summary=scene_summary,
            world_summary=world_summary,
            faction_context=faction_context,
            legacy_summary=legacy_summary(self.storage),
            tone=self.tone,
            event_type=event.category if event else "explore",
        )
        output = await self.dispatcher.dispatch(context)
        return NarrativeOutput(
            narration=output.narration,
            options=output.options + interaction_options(scene_npcs),
        )

    async def next_scene(self) -> Scene:
        if self.store.state.scene_npcs:
            await self.store.dispatch(UpdateSceneNpcs(npcs=()))
        self._follow_up = None

        summary = await self.store.dispatch(world_tick(self.factions, self.ticks_per_turn))
        event = await self._next_event()

        if event is not None and event.choices:
            logger.debug("Using the preset choices of %r", event.id)
            narration, options = event.description, list(event.choices)
        else:
            output = await self._narrate(event, summary)
            narration, options = output.narration, output.options

        self._options = options
        return Scene(event=event, narration=narration, options=options, world_summary=summary)

    async def choose(self, index: int) -> EventResult | None:
        """Apply the result of option `index` from the last scene.

        Raises IndexError when there is no such option.
        """
        if not 0 <= index < len(self._options):
            raise IndexError(f"No option {index}; {len(self._options)} available")
        choice = self._options[index]
        self._options = []
        self._follow_up = None
        logger.debug("Player chose %r", choice.text)

        if choice.result is not None:
            await self.store.dispatch(ApplyEventResult(result=choice.result))
        inventory = traded_inventory(self.store.state.player, choice)
        if inventory is not None:
            await self.store.dispatch(UpdateInventory(inventory=inventory))
        self._last_outcome = choice.result.description if choice.result else choice.text

        if is_fallen(self.store.state.player):
            await self.store.dispatch(handle_legacy(self.storage, lambda: format_time(self.store.state.time)))
            self._last_outcome = REBIRTH
        elif choice.action == "trade":
            self._open_follow_up(await open_trade(self.dispatcher, self.store.state))
        elif choice.action == "identify_item":
            self._open_follow_up(await appraise_item(self.dispatcher, self.store))
        return choice.result

    def _open_follow_up(self, output: NarrativeOutput) -> None:
        self._options = list(output.options)
        self._follow_up = Scene(narration=output.narration, options=self._options)

    def save(self, slot: str) -> None:
        self.storage.write_save(slot, serialize_state(self.store.state))

    async def load(self, slot: str) -> GameState | None:
        """Replace the game with slot `slot`. None if the slot is empty."""
        raw = self.storage.read_save(slot)
        if raw is None:
            return None
        await self.store.dispatch(ReplaceState(state=deserialize_state(raw)))
        self._options = []
        self._follow_up = None
        return self.store.state

    def archive(self) -> int:
        return archive_world_state(self.store.state, self.storage)

    async def restore_from_archive(self) -> GameState:
        restored = load_world_from_archive(self.store.state, self.storage)
        await self.store.dispatch(ReplaceState(state=restored))
        return self.store.state
