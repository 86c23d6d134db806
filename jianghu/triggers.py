"""Trigger registry.

A trigger is a predicate over game state:

    def trigger(state: GameState, config: Mapping, helpers: Mapping) -> bool | Awaitable[bool]

`config` is whatever the event definition declared alongside the trigger id
(usually {"args": [...]}); `helpers` holds the named helper functions that
expressions may call (random_int, is_faction_war_happening, ...).

Event definitions refer to triggers by id, so catalogs loaded later (mods,
extra catalog files) can override a built-in trigger by registering the same
id again.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable, Mapping
from typing import Any, Union

from jianghu.expressions import evaluate_expression
from jianghu.models import GameState

logger = logging.getLogger(__name__)

TriggerFn = Callable[[GameState, Mapping[str, Any], Mapping[str, Any]], Union[bool, Awaitable[bool]]]

EXPRESSION_TRIGGER = "expression"


def _arg(config: Mapping[str, Any], index: int = 0) -> Any:
    args = config.get("args") or []
    if len(args) <= index:
        raise ValueError(f"Trigger needs at least {index + 1} argument(s), got {len(args)}")
    return args[index]


# ---------------------------------------------------------------------------
# Built-in triggers
# ---------------------------------------------------------------------------

def always(state: GameState, config: Mapping[str, Any], helpers: Mapping[str, Any]) -> bool:
    return True


def player_in_location(state: GameState, config: Mapping[str, Any], helpers: Mapping[str, Any]) -> bool:
    """args: [location_id]"""
    return state.world.current_location_id == int(_arg(config))


def player_is_strong(state: GameState, config: Mapping[str, Any], helpers: Mapping[str, Any]) -> bool:
    """args: [strength_threshold]"""
    return state.player.attributes.strength >= int(_arg(config))


async def expression(state: GameState, config: Mapping[str, Any], helpers: Mapping[str, Any]) -> bool:
    """config: {"expression": "<source>"}

    Fails closed: a parse or evaluation error is logged and reads as False.
    """
    source = config.get("expression", "")
    env = {**helpers, "state": state}
    try:
        return await evaluate_expression(source, env)
    except Exception:
        logger.exception("Trigger expression failed: %r", source)
        return False


CORE_TRIGGERS: dict[str, TriggerFn] = {
    "always": always,
    "player_in_location": player_in_location,
    "player_is_strong": player_is_strong,
    EXPRESSION_TRIGGER: expression,
}


# ---------------------------------------------------------------------------
# Registry
# ---------------------------------------------------------------------------

class TriggerRegistry:
    def __init__(self, include_core: bool = True) -> None:
        self._triggers: dict[str, TriggerFn] = dict(CORE_TRIGGERS) if include_core else {}

    def register(self, trigger_id: str, fn: TriggerFn) -> None:
        """Insert or overwrite a trigger. Overwrites are logged, not refused."""
        if trigger_id in self._triggers:
            logger.warning("Trigger %r is being overwritten", trigger_id)
        self._triggers[trigger_id] = fn

    def get(self, trigger_id: str) -> TriggerFn | None:
        return self._triggers.get(trigger_id)

    def __contains__(self, trigger_id: object) -> bool:
        return trigger_id in self._triggers

    def ids(self) -> list[str]:
        return sorted(self._triggers)

    def bind(self, trigger_id: str, config: Mapping[str, Any] | None = None) -> Callable[..., Any]:
        """Return (state, helpers) -> result for a registered trigger.

        Raises KeyError for unknown ids.
        """
        fn = self._triggers[trigger_id]
        bound_config = dict(config or {})

        def bound(state: GameState, helpers: Mapping[str, Any]) -> Any:
            return fn(state, bound_config, helpers)

        bound.__name__ = f"trigger:{trigger_id}"
        return bound
