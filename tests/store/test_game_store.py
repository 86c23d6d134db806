"""Tests for GameStore — dispatch, thunks and subscribers."""

import logging

import pytest

from jianghu.actions import AdvanceTime, EnqueueEvent, MarkEventTriggered, ShiftEvent
from jianghu.models import GameEvent, GameState
from jianghu.store import GameStore


def _event(event_id: str) -> GameEvent:
    return GameEvent(id=event_id, category="trade", title=event_id, description="")


class TestDispatch:
    async def test_action_commits(self, store: GameStore) -> None:
        before = store.state
        result = await store.dispatch(AdvanceTime(ticks=60))
        assert result is None
        assert store.state is not before
        assert store.get_state() is store.state
        assert before.time.hour == 6  # previous snapshot untouched

    async def test_noop_does_not_notify(self, store: GameStore) -> None:
        seen: list[GameState] = []
        store.subscribe(seen.append)
        before = store.state
        await store.dispatch(ShiftEvent())
        assert store.state is before
        assert seen == []

    async def test_subscribers_get_new_state_in_order(self, store: GameStore) -> None:
        calls: list[tuple[str, GameState]] = []
        store.subscribe(lambda s: calls.append(("first", s)))
        store.subscribe(lambda s: calls.append(("second", s)))
        await store.dispatch(MarkEventTriggered(event_id="x"))
        assert [name for name, _ in calls] == ["first", "second"]
        assert all(s is store.state for _, s in calls)

    async def test_failing_subscriber_does_not_block_others(self, store: GameStore, caplog) -> None:
        seen: list[GameState] = []

        def broken(_state: GameState) -> None:
            raise RuntimeError("subscriber bug")

        store.subscribe(broken)
        store.subscribe(seen.append)
        with caplog.at_level(logging.ERROR, logger="jianghu.store.core"):
            await store.dispatch(AdvanceTime(ticks=1))
        assert seen == [store.state]
        assert "subscriber" in caplog.text

    async def test_unsubscribe(self, store: GameStore) -> None:
        seen: list[GameState] = []
        unsubscribe = store.subscribe(seen.append)
        unsubscribe()
        unsubscribe()  # second call is harmless
        await store.dispatch(AdvanceTime(ticks=1))
        assert seen == []

    async def test_unsubscribe_while_notifying(self, store: GameStore) -> None:
        seen: list[str] = []
        unsubscribers = []

        def once(_state: GameState) -> None:
            seen.append("once")
            unsubscribers[0]()

        unsubscribers.append(store.subscribe(once))
        store.subscribe(lambda _s: seen.append("always"))
        await store.dispatch(AdvanceTime(ticks=1))
        await store.dispatch(AdvanceTime(ticks=1))
        assert seen == ["once", "always", "always"]

    async def test_rejects_non_actions(self, store: GameStore) -> None:
        with pytest.raises(TypeError):
            await store.dispatch({"type": "advance_time", "ticks": 1})


class TestThunks:
    async def test_async_thunk_result_is_returned(self, store: GameStore) -> None:
        async def thunk(dispatch, get_state):
            await dispatch(EnqueueEvent(event=_event("a")))
            await dispatch(EnqueueEvent(event=_event("b")))
            return len(get_state().event_queue)

        assert await store.dispatch(thunk) == 2

    async def test_sync_thunk(self, store: GameStore) -> None:
        assert await store.dispatch(lambda dispatch, get_state: get_state().player.name) == "Linghu"

    async def test_each_inner_dispatch_notifies(self, store: GameStore) -> None:
        seen: list[int] = []
        store.subscribe(lambda s: seen.append(len(s.event_queue)))

        async def thunk(dispatch, get_state):
            await dispatch(EnqueueEvent(event=_event("a")))
            await dispatch(EnqueueEvent(event=_event("b")))

        await store.dispatch(thunk)
        assert seen == [1, 2]

    async def test_nested_thunks(self, store: GameStore) -> None:
        async def inner(dispatch, get_state):
            await dispatch(AdvanceTime(ticks=60))
            return "inner"

        async def outer(dispatch, get_state):
            return await dispatch(inner) + "+outer"

        assert await store.dispatch(outer) == "inner+outer"
        assert store.state.time.hour == 7

    async def test_custom_reducer(self, state: GameState) -> None:
        store = GameStore(state, reducer=lambda s, a: s)
        await store.dispatch(AdvanceTime(ticks=60))
        assert store.state is state
