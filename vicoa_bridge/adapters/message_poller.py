"""Fixed-interval poller for dashboard messages.

Each tick fetches pending messages and hands user messages to the callback
one at a time, awaiting each, so prompts reach the terminal in the order
they were sent. ``stop()`` takes effect before the next tick; a tick that
is already running completes.
"""
from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import Protocol

from vicoa_bridge.shared.models.message import RemoteMessage
from vicoa_bridge.shared.text import preview

logger = logging.getLogger(__name__)

MessageHandler = Callable[[RemoteMessage], Awaitable[None]]


class PendingMessageSource(Protocol):
    async def get_pending_messages(self) -> list[RemoteMessage]: ...


class MessagePoller:
    def __init__(
        self,
        source: PendingMessageSource,
        on_message: MessageHandler,
        interval_seconds: float = 1.0,
    ) -> None:
        self._source = source
        self._on_message = on_message
        self._interval = interval_seconds
        self._stop = asyncio.Event()
        self._task: asyncio.Task | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.running:
            return
        logger.info("Starting message poller (interval=%.1fs)", self._interval)
        self._stop.clear()
        self._task = asyncio.create_task(self._run(), name="vicoa-message-poller")

    def stop(self) -> None:
        if self._task is None:
            return
        self._stop.set()
        logger.info("Stopped message poller")

    async def wait_closed(self) -> None:
        if self._task is not None:
            await self._task
            self._task = None

    async def tick(self) -> int:
        """Poll once and dispatch. Returns the number of messages handled."""
        handled = 0
        for message in await self._source.get_pending_messages():
            if not message.from_user:
                continue
            logger.debug("Received user message: %s", preview(message.content, 100))
            try:
                await self._on_message(message)
            except Exception:
                logger.exception("Error handling dashboard message %s", message.id)
            handled += 1
        return handled

    async def _run(self) -> None:
        while not self._stop.is_set():
            try:
                await self.tick()
            except Exception:
                logger.exception("Error polling messages")
            try:
                await asyncio.wait_for(self._stop.wait(), timeout=self._interval)
            except asyncio.TimeoutError:
                continue
