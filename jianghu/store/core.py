"""GameStore — the single writer of GameState.

dispatch() accepts either a plain action or a thunk:

    async def thunk(dispatch, get_state) -> Any: ...

Plain actions are reduced synchronously against the current snapshot and
committed in one step, so no awaiting caller can observe a half-applied
state. Thunks sequence several dispatches; each inner dispatch commits and
notifies on its own (they are not batched into one transaction).
"""

from __future__ import annotations

import inspect
import logging
from collections.abc import Awaitable, Callable
from typing import Any, Union

from jianghu.actions import ACTION_TYPES, Action
from jianghu.models import GameState

from .reducer import Reducer, game_reducer

logger = logging.getLogger(__name__)

Subscriber = Callable[[GameState], None]
Dispatch = Callable[["Action | Thunk"], Awaitable[Any]]
Thunk = Callable[[Dispatch, Callable[[], GameState]], Union[Awaitable[Any], Any]]


class GameStore:
    def __init__(self, initial_state: GameState, reducer: Reducer = game_reducer) -> None:
        self._state = initial_state
        self._reducer = reducer
        self._subscribers: list[Subscriber] = []

    @property
    def state(self) -> GameState:
        return self._state

    def get_state(self) -> GameState:
        return self._state

    async def dispatch(self, action: Action | Thunk) -> Any:
        """Reduce and commit an action, or run a thunk and return its result."""
        if isinstance(action, ACTION_TYPES):
            self._commit(action)
            return None
        if callable(action):
            result = action(self.dispatch, self.get_state)
            if inspect.isawaitable(result):
                result = await result
            return result
        raise TypeError(f"Cannot dispatch {type(action).__name__}: not an action or thunk")

    def _commit(self, action: Action) -> None:
        next_state = self._reducer(self._state, action)
        if next_state is self._state:
            logger.debug("dispatch %s: no change", action.type)
            return
        self._state = next_state
        logger.debug("dispatch %s: committed", action.type)
        self._notify()

    def subscribe(self, subscriber: Subscriber) -> Callable[[], None]:
        """Register a subscriber; returns a function that unsubscribes it."""
        self._subscribers.append(subscriber)

        def unsubscribe() -> None:
            if subscriber in self._subscribers:
                self._subscribers.remove(subscriber)

        return unsubscribe

    def _notify(self) -> None:
        # Snapshot the list so a subscriber may unsubscribe while being notified.
        for subscriber in list(self._subscribers):
            try:
                subscriber(self._state)
            except Exception:
                logger.exception("Store subscriber %r failed", subscriber)
