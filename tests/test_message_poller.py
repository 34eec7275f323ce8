"""Tests for MessagePoller dispatch ordering and stop semantics."""

from __future__ import annotations

import asyncio

import pytest

from vicoa_bridge.adapters.message_poller import MessagePoller
from vicoa_bridge.shared.models.message import RemoteMessage


class _QueueSource:
    def __init__(self, batches):
        self.batches = list(batches)
        self.calls = 0

    async def get_pending_messages(self):
        self.calls += 1
        return self.batches.pop(0) if self.batches else []


def _user(mid: str, content: str) -> RemoteMessage:
    return RemoteMessage(id=mid, content=content, sender_type="USER")


@pytest.mark.asyncio
async def test_tick_dispatches_user_messages_in_order():
    handled: list[str] = []

    async def on_message(message):
        await asyncio.sleep(0)
        handled.append(message.content)

    source = _QueueSource([[
        _user("1", "first"),
        RemoteMessage(id="2", content="agent echo", sender_type="AGENT"),
        _user("3", ""),
        _user("4", "second"),
    ]])
    poller = MessagePoller(source, on_message)

    assert await poller.tick() == 2
    assert handled == ["first", "second"]


@pytest.mark.asyncio
async def test_handler_failure_does_not_drop_later_messages():
    handled: list[str] = []

    async def on_message(message):
        if message.content == "bad":
            raise RuntimeError("boom")
        handled.append(message.content)

    poller = MessagePoller(_QueueSource([[_user("1", "bad"), _user("2", "good")]]), on_message)
    await poller.tick()
    assert handled == ["good"]


@pytest.mark.asyncio
async def test_start_polls_until_stopped():
    handled: list[str] = []

    async def on_message(message):
        handled.append(message.content)

    source = _QueueSource([[_user("1", "a")], [], [_user("2", "b")]])
    poller = MessagePoller(source, on_message, interval_seconds=0.01)
    poller.start()
    poller.start()  # second start is a no-op
    for _ in range(200):
        if len(handled) == 2:
            break
        await asyncio.sleep(0.01)
    poller.stop()
    await asyncio.wait_for(poller.wait_closed(), timeout=1.0)

    assert handled == ["a", "b"]
    assert not poller.running
    calls = source.calls
    await asyncio.sleep(0.05)
    assert source.calls == calls


@pytest.mark.asyncio
async def test_in_flight_tick_completes_after_stop():
    handled: list[str] = []
    poller: MessagePoller

    async def on_message(message):
        handled.append(message.content)
        poller.stop()

    poller = MessagePoller(
        _QueueSource([[_user("1", "a"), _user("2", "b")], [_user("3", "c")]]),
        on_message,
        interval_seconds=0.01,
    )
    poller.start()
    await asyncio.wait_for(poller.wait_closed(), timeout=1.0)
    assert handled == ["a", "b"]
