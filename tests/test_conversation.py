"""Tests for the conversation store and its per-device locking."""

from __future__ import annotations

import asyncio

import pytest

from home_message_router import ConversationState, ConversationStore, DialogMode


class FakeClock:
    def __init__(self) -> None:
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now


class TestConversationState:
    def test_default_mode_is_main(self):
        assert ConversationState().dialog_mode is DialogMode.MAIN

    def test_transition_returns_new_state(self):
        state = ConversationState()
        admin = state.transition(DialogMode.ADMIN)
        assert admin.dialog_mode is DialogMode.ADMIN
        assert state.dialog_mode is DialogMode.MAIN

    def test_transition_to_same_mode_is_identity(self):
        state = ConversationState(dialog_mode=DialogMode.ADMIN)
        assert state.transition(DialogMode.ADMIN) is state


class TestConversationStore:
    def test_unseen_device_starts_in_main(self):
        store = ConversationStore()
        assert "D1" not in store
        assert store.get("D1").dialog_mode is DialogMode.MAIN
        assert "D1" in store

    def test_set_and_get(self):
        store = ConversationStore()
        store.set("D1", ConversationState(dialog_mode=DialogMode.ADMIN))
        assert store.get("D1").dialog_mode is DialogMode.ADMIN
        assert store.get("D2").dialog_mode is DialogMode.MAIN

    def test_capacity_evicts_oldest_conversation(self):
        store = ConversationStore(max_conversations=2)
        store.set("D1", ConversationState(dialog_mode=DialogMode.ADMIN))
        store.set("D2", ConversationState(dialog_mode=DialogMode.ADMIN))
        store.set("D1", ConversationState(dialog_mode=DialogMode.ADMIN))
        store.set("D3", ConversationState())

        assert len(store) == 2  # noqa: PLR2004
        assert "D2" not in store
        assert store.get("D1").dialog_mode is DialogMode.ADMIN

    def test_sessions_never_expire_by_default(self):
        clock = FakeClock()
        store = ConversationStore(clock=clock)
        store.set("D1", ConversationState(dialog_mode=DialogMode.ADMIN))
        clock.now += 10**6
        assert store.get("D1").dialog_mode is DialogMode.ADMIN

    def test_idle_admin_session_expires(self):
        clock = FakeClock()
        store = ConversationStore(session_ttl_seconds=60, clock=clock)
        store.set("D1", ConversationState(dialog_mode=DialogMode.ADMIN))

        clock.now += 30
        assert store.get("D1").dialog_mode is DialogMode.ADMIN

        clock.now += 61
        assert store.get("D1").dialog_mode is DialogMode.MAIN

    def test_tracking_session_expires(self):
        clock = FakeClock()
        store = ConversationStore(session_ttl_seconds=60, clock=clock)
        store.set("D1", ConversationState(dialog_mode=DialogMode.TRACKING_AWAIT_CODE))
        clock.now += 120
        assert store.get("D1").dialog_mode is DialogMode.MAIN


class TestConversationLocking:
    @pytest.mark.asyncio
    async def test_same_device_is_serialized(self):
        store = ConversationStore()
        events = []

        async def worker(name: str):
            async with store.lock("D1"):
                events.append(f"{name}-start")
                await asyncio.sleep(0.01)
                events.append(f"{name}-end")

        await asyncio.gather(worker("a"), worker("b"))

        assert events == ["a-start", "a-end", "b-start", "b-end"]

    @pytest.mark.asyncio
    async def test_different_devices_run_in_parallel(self):
        store = ConversationStore()
        inside = asyncio.Event()
        released = asyncio.Event()

        async def holder():
            async with store.lock("D1"):
                inside.set()
                await released.wait()

        holder_task = asyncio.create_task(holder())
        await inside.wait()

        # D2 must not wait for D1
        async with asyncio.timeout(1):
            async with store.lock("D2"):
                pass

        released.set()
        await holder_task

    @pytest.mark.asyncio
    async def test_waiters_are_served_in_arrival_order(self):
        store = ConversationStore()
        order = []

        async def worker(index: int):
            async with store.lock("D1"):
                order.append(index)
                await asyncio.sleep(0)

        await asyncio.gather(*(worker(i) for i in range(5)))

        assert order == [0, 1, 2, 3, 4]
