"""Scene NPCs and their interactions.

The story engine may close a dynamic encounter with an "NPC: <type>" line.
The named NPC joins the scene, adds one interaction option to it, and leaves
when the next scene begins. Trading and appraisal each ask the backend for a
short JSON reply and turn it into a follow-up scene.
"""

from __future__ import annotations

import logging
import re
from typing import Any

from pydantic import BaseModel, Field, ValidationError

from jianghu.actions import UpdateInventory
from jianghu.models import EventChoice, EventResult, GameState, Item, NarrativeOutput, Npc, PlayerState
from jianghu.narrator import NarrativeDispatcher
from jianghu.narrator.parsing import extract_json_object
from jianghu.narrator.prompts import PromptError, render_named_prompt
from jianghu.store import GameStore

logger = logging.getLogger(__name__)

# scene NPC ids start here so they never collide with world NPC ids
SCENE_NPC_ID_BASE = 10_000

_NPC_LINE_RE = re.compile(r"^[ \t]*NPC:[ \t]*([A-Za-z_]+).*$", re.MULTILINE)


class SceneNpcType(BaseModel):
    name: str
    option: EventChoice


SCENE_NPC_TYPES: dict[str, SceneNpcType] = {
    "merchant": SceneNpcType(
        name="Wandering Merchant",
        option=EventChoice(
            text="Trade with the merchant",
            action="trade",
            result=EventResult(description="You step closer to see what the merchant is selling."),
        ),
    ),
    "sweeping_monk": SceneNpcType(
        name="Old Monk with a Broom",
        option=EventChoice(
            text="Ask the old monk for guidance",
            action="learn_skill",
            result=EventResult(description="You bow deeply to the old monk."),
        ),
    ),
    "item_master": SceneNpcType(
        name="Master of Many Treasures",
        option=EventChoice(
            text="Ask the master to appraise your belongings",
            action="identify_item",
            result=EventResult(description="You lay your belongings out for the master to see."),
        ),
    ),
}


# ---------------------------------------------------------------------------
# Spawning
# ---------------------------------------------------------------------------

def split_npc_tag(text: str) -> tuple[str, str | None]:
    """Strip "NPC: <type>" lines from a story-engine reply.

    Returns the remaining text and the last named type, or None when no
    known type was named.
    """
    found = [m.group(1).lower() for m in _NPC_LINE_RE.finditer(text)]
    remaining = _NPC_LINE_RE.sub("", text).strip()
    known = [t for t in found if t in SCENE_NPC_TYPES]
    if found and not known:
        logger.warning("Story engine named unknown scene NPC type(s): %s", ", ".join(found))
    return remaining, known[-1] if known else None


def create_scene_npc(npc_type: str, location_id: int, present: tuple[Npc, ...] = ()) -> Npc:
    return Npc(
        id=SCENE_NPC_ID_BASE + len(present),
        name=SCENE_NPC_TYPES[npc_type].name,
        location_id=location_id,
    )


def interaction_options(scene_npcs: tuple[Npc, ...]) -> list[EventChoice]:
    options: list[EventChoice] = []
    for npc_type in SCENE_NPC_TYPES.values():
        if any(npc.name == npc_type.name for npc in scene_npcs):
            options.append(npc_type.option)
    return options


def introduce(scene_npcs: tuple[Npc, ...]) -> str:
    return f"You meet {' and '.join(npc.name for npc in scene_npcs)} here."


# ---------------------------------------------------------------------------
# Backend replies
# ---------------------------------------------------------------------------

class TradeGood(BaseModel):
    name: str
    buy_price: int = Field(ge=0)


class Acquisition(BaseModel):
    name: str
    sell_price: int = Field(ge=0)


class TradeOffer(BaseModel):
    dialogue: str
    goods: list[TradeGood] = Field(default_factory=list)
    acquisitions: list[Acquisition] = Field(default_factory=list)


class ItemIdentification(BaseModel):
    original_name: str
    name: str
    description: str = ""


class Appraisal(BaseModel):
    dialogue: str
    identification: ItemIdentification


def _leave(text: str, description: str) -> list[EventChoice]:
    return [EventChoice(text=text, action="narrate", result=EventResult(description=description))]


async def _ask(dispatcher: NarrativeDispatcher, prompt_name: str, context: dict[str, Any], model: type[BaseModel]):
    try:
        prompt = render_named_prompt(prompt_name, context)
    except PromptError:
        logger.exception("%s prompt failed to render", prompt_name)
        return None

    response = await dispatcher.generate_raw(prompt)
    if not response.success:
        logger.error("%s reply failed: %s", prompt_name, response.error)
        return None
    data = extract_json_object(response.content)
    if data is None:
        logger.error("%s reply is not JSON: %.200r", prompt_name, response.content)
        return None
    try:
        return model.model_validate(data)
    except ValidationError as e:
        logger.error("%s reply is invalid: %s", prompt_name, e)
        return None


# ---------------------------------------------------------------------------
# Interactions
# ---------------------------------------------------------------------------

async def open_trade(dispatcher: NarrativeDispatcher, state: GameState) -> NarrativeOutput:
    location = state.world.current_location
    offer: TradeOffer | None = await _ask(dispatcher, "trader", {
        "player": state.player.model_dump(mode="json"),
        "location_name": location.name if location else "the roadside",
    }, TradeOffer)

    if offer is None:
        return NarrativeOutput(
            narration="The merchant seems uninterested and waves you away.",
            options=_leave("Continue on", "You shrug and walk on."),
        )

    carried = {item.name for item in state.player.inventory}
    options = [
        EventChoice(
            text=f"[Buy] {good.name} ({good.buy_price} taels)",
            action="buy",
            result=EventResult(description=f"You buy the {good.name}.",
                               data={"item": good.name, "price": good.buy_price}),
        )
        for good in offer.goods
    ]
    options.extend(
        EventChoice(
            text=f"[Sell] {wanted.name} ({wanted.sell_price} taels)",
            action="sell",
            result=EventResult(description=f"You sell the {wanted.name}.",
                               data={"item": wanted.name, "price": wanted.sell_price}),
        )
        for wanted in offer.acquisitions
        if wanted.name in carried
    )
    options.extend(_leave("Leave", "You end your talk with the merchant."))
    return NarrativeOutput(narration=offer.dialogue, options=options)


def traded_inventory(player: PlayerState, choice: EventChoice) -> tuple[Item, ...] | None:
    """Inventory after a buy/sell choice, or None when nothing changes.

    Prices are shown but not charged.
    """
    # TODO: charge and pay prices once PlayerState carries a purse
    data = choice.result.data if choice.result else None
    name = data.get("item") if isinstance(data, dict) else None
    if not isinstance(name, str) or not name:
        return None

    if choice.action == "buy":
        return player.inventory + (Item(name=name),)
    if choice.action == "sell":
        for i, item in enumerate(player.inventory):
            if item.name == name:
                return player.inventory[:i] + player.inventory[i + 1:]
    return None


async def appraise_item(dispatcher: NarrativeDispatcher, store: GameStore) -> NarrativeOutput:
    """Identify the first carried item and rename it in the inventory."""
    inventory = store.state.player.inventory
    if not inventory:
        return NarrativeOutput(
            narration="You carry nothing worth appraising.",
            options=_leave("Leave", "You smile awkwardly and step back."),
        )

    target = inventory[0]
    appraisal: Appraisal | None = await _ask(
        dispatcher, "item_master", {"item": target.model_dump(mode="json")}, Appraisal,
    )
    if appraisal is None:
        return NarrativeOutput(
            narration='"An ordinary thing." The master glances at it and says no more.',
            options=_leave("Leave", "It seems the thing really is worth little."),
        )

    found = appraisal.identification
    identified = Item(name=found.name, description=found.description)
    # the inventory may have changed while the backend was busy
    current = store.state.player.inventory
    updated = tuple(identified if item == target else item for item in current)
    if updated != current:
        await store.dispatch(UpdateInventory(inventory=updated))
    return NarrativeOutput(
        narration=appraisal.dialogue,
        options=_leave("Thank the master", f"You see the {target.name} with new eyes."),
    )
