"""Event engine.

Holds the event pool built from catalog definitions, decides each tick which
(if any) event fires, and can ask the generation backend to invent a one-off
event.

Triggers are bound once, in initialize(). A definition's trigger is resolved
in this order:

    {"id": ..., "args": [...]}     registered trigger with that config
    "registered_id"                registered trigger with empty config
    "<expression>"                 the expression trigger
    anything else                  never fires (logged); the event is kept
"""

from __future__ import annotations

import inspect
import json
import logging
import random
import uuid
from collections.abc import Iterable, Mapping
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from jianghu.actions import EnqueueEvent, MarkEventTriggered, UpdateSceneNpcs
from jianghu.encounters import create_scene_npc, split_npc_tag
from jianghu.expressions import ExpressionError, Name, parse_expression
from jianghu.factions import FactionSystem
from jianghu.llm import GenerationBackend, GenerationRequest
from jianghu.models import BoundTrigger, EventDefinition, GameEvent, GameState, never
from jianghu.narrator.context import build_context_summary
from jianghu.narrator.prompts import PromptError, render_named_prompt
from jianghu.store import GameStore
from jianghu.triggers import EXPRESSION_TRIGGER, TriggerRegistry

logger = logging.getLogger(__name__)

DEFAULT_CATALOG = Path(__file__).parent / "data" / "events.json"


def load_event_catalog(*paths: Path) -> list[EventDefinition]:
    """Concatenate event definitions from catalog files, in order.

    Later files add to earlier ones; nothing is merged by id. A file that
    cannot be read or validated is skipped with a warning.
    """
    definitions: list[EventDefinition] = []
    for path in paths:
        try:
            raw = json.loads(Path(path).read_text(encoding="utf-8"))
            loaded = [EventDefinition.model_validate(d) for d in raw]
        except (OSError, UnicodeDecodeError, json.JSONDecodeError, TypeError, ValidationError) as e:
            logger.warning("Could not load event catalog %s: %s", path, e)
            continue
        logger.info("Loaded %d events from %s", len(loaded), path)
        definitions.extend(loaded)
    return definitions


class EventEngine:
    def __init__(
        self,
        store: GameStore,
        registry: TriggerRegistry,
        definitions: Iterable[EventDefinition] = (),
        backend: GenerationBackend | None = None,
        faction_system: FactionSystem | None = None,
        rng: random.Random | None = None,
    ) -> None:
        self._store = store
        self._registry = registry
        self._definitions = list(definitions)
        self._backend = backend
        self._rng = rng or random.Random()
        self._pool: tuple[GameEvent, ...] = ()

        self._helpers: dict[str, Any] = {"random_int": self._rng.randint}
        if faction_system is not None:
            self._helpers["is_faction_war_happening"] = faction_system.is_faction_war_happening

    @property
    def pool(self) -> tuple[GameEvent, ...]:
        return self._pool

    @property
    def helpers(self) -> Mapping[str, Any]:
        return dict(self._helpers)

    def initialize(self) -> tuple[GameEvent, ...]:
        """Bind every definition's trigger and build the event pool."""
        self._pool = tuple(
            GameEvent(
                id=d.id,
                category=d.category,
                title=d.title,
                description=d.description,
                trigger=self._bind(d),
                choices=tuple(d.choices) if d.choices is not None else None,
                once=d.once,
            )
            for d in self._definitions
        )
        logger.info("Event engine ready with %d events", len(self._pool))
        return self._pool

    def _bind(self, definition: EventDefinition) -> BoundTrigger:
        declared = definition.trigger

        if isinstance(declared, dict):
            trigger_id = declared.get("id")
            if isinstance(trigger_id, str) and trigger_id in self._registry:
                config = {k: v for k, v in declared.items() if k != "id"}
                return self._registry.bind(trigger_id, config)
            logger.warning("Event %r has unknown trigger %r; it will never fire", definition.id, trigger_id)
            return never

        if declared in self._registry:
            return self._registry.bind(declared)

        try:
            node = parse_expression(declared)
        except ExpressionError as e:
            logger.warning("Event %r has an invalid trigger %r (%s); it will never fire", definition.id, declared, e)
            return never
        if isinstance(node, Name) and node.id not in self._helpers:
            logger.warning("Event %r has unknown trigger %r; it will never fire", definition.id, declared)
            return never
        return self._registry.bind(EXPRESSION_TRIGGER, {"expression": declared})

    async def trigger_random_event(self, state: GameState | None = None) -> GameEvent | None:
        """Pick one eligible event uniformly at random, or None.

        Triggers are evaluated one at a time; a trigger that raises only
        excludes its own event. A chosen fire-once event is recorded in the
        store before it is returned.
        """
        if state is None:
            state = self._store.state

        candidates: list[GameEvent] = []
        for event in self._pool:
            if event.once and event.id in state.triggered_once_events:
                continue
            try:
                fired = event.trigger(state, self._helpers)
                if inspect.isawaitable(fired):
                    fired = await fired
            except Exception:
                logger.exception("Trigger for event %r failed", event.id)
                continue
            if fired:
                candidates.append(event)

        if not candidates:
            return None

        event = self._rng.choice(candidates)
        logger.info("Triggered event: %s", event.title)
        if event.once:
            await self._store.dispatch(MarkEventTriggered(event_id=event.id))
        return event

    async def trigger_dynamic_event(self, state: GameState | None = None) -> GameEvent | None:
        """Ask the backend for an ad-hoc encounter and queue it.

        A closing "NPC: <type>" line in the reply also brings that scene NPC
        into the scene. Returns the queued event, or None when generation
        failed.
        """
        if self._backend is None:
            logger.warning("No generation backend; dynamic events are disabled")
            return None
        if state is None:
            state = self._store.state

        try:
            prompt = render_named_prompt("story_engine", {"context": build_context_summary(state)})
        except PromptError:
            logger.exception("Story engine prompt failed to render")
            return None

        try:
            response = await self._backend.generate(GenerationRequest(prompt=prompt, format="text"))
        except Exception:
            logger.exception("Generation backend raised during dynamic event generation")
            return None
        content, npc_type = split_npc_tag(response.content) if response.success else ("", None)
        if not content:
            logger.error("Dynamic event generation failed: %s", response.error or "empty response")
            return None

        event = GameEvent(
            id=f"dynamic-{uuid.uuid4().hex[:12]}",
            category="opportunity",
            title="A Twist of Fate",
            description=content,
            trigger=never,
            once=True,
        )
        await self._store.dispatch(EnqueueEvent(event=event))
        logger.info("Queued dynamic event %s", event.id)

        if npc_type is not None:
            current = self._store.state
            npc = create_scene_npc(npc_type, current.world.current_location_id, current.scene_npcs)
            await self._store.dispatch(UpdateSceneNpcs(npcs=current.scene_npcs + (npc,)))
            logger.info("%s joins the scene", npc.name)
        return event
