"""Bounded FIFO registries used for de-duplication across the bridge.

Both registries are deques with an explicit high-water mark. They differ in
what a membership check does:

- ``EchoSuppressor`` holds normalized texts that arrived from the dashboard.
  A successful check consumes the entry (one-shot), so the same text typed
  later in the terminal is forwarded normally.
- ``SentMessageTracker`` holds assistant message ids already forwarded. A
  check never mutates; the ``message.updated`` event may re-fire for a
  finalized id and only the first occurrence should be forwarded.
"""
from __future__ import annotations

import logging
from collections import deque

from vicoa_bridge.shared.text import normalize_message

logger = logging.getLogger(__name__)

DEFAULT_ECHO_BUFFER_SIZE = 50
DEFAULT_ECHO_EVICT_BATCH = 40
DEFAULT_SENT_MESSAGE_LIMIT = 200


class EchoSuppressor:
    """Remembers dashboard-originated texts so the terminal observer skips them.

    When the buffer grows past ``max_size`` the oldest ``evict_batch``
    entries are dropped in one operation rather than one per insert.
    """

    def __init__(
        self,
        max_size: int = DEFAULT_ECHO_BUFFER_SIZE,
        evict_batch: int = DEFAULT_ECHO_EVICT_BATCH,
    ) -> None:
        if max_size < 1:
            raise ValueError("max_size must be positive")
        self._max_size = max_size
        self._evict_batch = max(1, min(evict_batch, max_size))
        self._buffer: deque[str] = deque()

    def __len__(self) -> int:
        return len(self._buffer)

    def __contains__(self, text: object) -> bool:
        return isinstance(text, str) and normalize_message(text) in self._buffer

    def record(self, text: str) -> None:
        self._buffer.append(normalize_message(text))
        if len(self._buffer) > self._max_size:
            for _ in range(self._evict_batch):
                self._buffer.popleft()
            logger.debug(
                "Echo buffer overflow: evicted %d entries (%d left)",
                self._evict_batch,
                len(self._buffer),
            )

    def consume_if_present(self, text: str) -> bool:
        """Remove one matching entry and return True, or return False."""
        normalized = normalize_message(text)
        try:
            self._buffer.remove(normalized)
        except ValueError:
            return False
        return True


class SentMessageTracker:
    """Set of forwarded message ids, bounded by insertion order."""

    def __init__(self, max_size: int = DEFAULT_SENT_MESSAGE_LIMIT) -> None:
        if max_size < 1:
            raise ValueError("max_size must be positive")
        self._max_size = max_size
        self._ids: set[str] = set()
        self._order: deque[str] = deque()

    def __len__(self) -> int:
        return len(self._order)

    def track(self, message_id: str) -> None:
        if message_id in self._ids:
            return
        self._ids.add(message_id)
        self._order.append(message_id)
        if len(self._order) > self._max_size:
            evicted = self._order.popleft()
            self._ids.discard(evicted)

    def has(self, message_id: str) -> bool:
        return message_id in self._ids
