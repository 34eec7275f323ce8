"""Async event bus between the terminal event stream and the orchestrator.

The stream reader parses each server-sent event and publishes it here.
The orchestrator's consumer loop takes events one at a time, so handlers
for two terminal events never interleave.
"""
from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator
from typing import Any

from vicoa_bridge.adapters.events import TerminalEvent, dict_to_event

logger = logging.getLogger(__name__)


class EventBus:
    """Async queue bridging the terminal event stream to its consumer."""

    def __init__(self, maxsize: int = 5000) -> None:
        self._queue: asyncio.Queue[TerminalEvent] = asyncio.Queue(maxsize=maxsize)
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def qsize(self) -> int:
        return self._queue.qsize()

    async def publish(self, data: dict[str, Any]) -> None:
        """Parse a raw event payload and queue it."""
        await self.emit(dict_to_event(data))

    async def emit(self, event: TerminalEvent) -> None:
        if self._closed:
            return
        try:
            # Backpressure on the stream reader instead of dropping.
            await asyncio.wait_for(self._queue.put(event), timeout=30.0)
        except asyncio.TimeoutError:
            logger.error(
                "EventBus queue blocked for 30s, dropping: %s (queue size: %d)",
                event.event_type,
                self._queue.qsize(),
            )

    async def consume(self) -> AsyncIterator[TerminalEvent]:
        """Yield events as they arrive. Stops on close()."""
        while not self._closed:
            try:
                event = await asyncio.wait_for(self._queue.get(), timeout=0.5)
            except asyncio.TimeoutError:
                continue
            yield event

    def close(self) -> None:
        """Stop the consumer loop permanently."""
        self._closed = True
