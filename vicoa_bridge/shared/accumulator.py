"""Per-message part accumulation.

The terminal streams a message as many ``message.part.updated`` events: full
snapshots, text deltas, reasoning traces, file attachments. The accumulator
folds them into one ordered body per message id. State for a message lives
from the first event that references it until the message is finalized;
keeping it longer would let a replayed event re-send stale content.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field

from vicoa_bridge.shared.formatters.parts import (
    REASONING_LIMIT,
    render_file_part,
    render_reasoning_part,
)
from vicoa_bridge.shared.models.parts import (
    FilePart,
    Part,
    PatchPart,
    ReasoningPart,
    TextPart,
    ToolPart,
)

logger = logging.getLogger(__name__)

PART_SEPARATOR = "\n\n"
# Messages that never finalize (no completion time) are dropped oldest first.
DEFAULT_MAX_MESSAGES = 200


@dataclass
class MessagePartState:
    """Assembly state for one message.

    Attributes:
        order: Part ids in first-seen order. Defines assembly order.
        parts: Rendered content per part id. A part missing here
            contributes nothing even if it has a slot in ``order``.
        text_accumulators: Running text of streaming text parts, so deltas
            append to a stable base instead of overwriting it.
    """

    order: list[str] = field(default_factory=list)
    parts: dict[str, str] = field(default_factory=dict)
    text_accumulators: dict[str, str] = field(default_factory=dict)


def set_part_content(state: MessagePartState, part_id: str, content: str | None) -> None:
    """Store rendered content, keeping the slot in ``order`` even when empty."""
    if part_id not in state.order:
        state.order.append(part_id)
    if not content:
        state.parts.pop(part_id, None)
        return
    state.parts[part_id] = content


class MessagePartAccumulator:
    """Registry of ``MessagePartState`` keyed by message id."""

    def __init__(
        self,
        reasoning_limit: int = REASONING_LIMIT,
        max_messages: int = DEFAULT_MAX_MESSAGES,
    ) -> None:
        self._reasoning_limit = reasoning_limit
        self._max_messages = max(1, max_messages)
        self._states: dict[str, MessagePartState] = {}

    def __contains__(self, message_id: object) -> bool:
        return message_id in self._states

    def __len__(self) -> int:
        return len(self._states)

    def state_for(self, message_id: str) -> MessagePartState:
        state = self._states.get(message_id)
        if state is None:
            if len(self._states) >= self._max_messages:
                oldest = next(iter(self._states))
                del self._states[oldest]
                logger.debug("Dropped unfinalized parts of message %s", oldest)
            state = MessagePartState()
            self._states[message_id] = state
        return state

    def apply_part_event(self, part: Part, delta: str | None = None) -> None:
        """Fold one part event into its message's state.

        Tool parts are not accumulated: the orchestrator forwards each one
        as its own message once it reaches a terminal status.
        """
        if not part.message_id:
            return
        if isinstance(part, ToolPart):
            return

        if isinstance(part, TextPart):
            state = self.state_for(part.message_id)
            current = state.text_accumulators.get(part.id, "")
            if isinstance(delta, str):
                next_text = current + delta
            else:
                next_text = part.text or current
            state.text_accumulators[part.id] = next_text
            set_part_content(state, part.id, next_text)
        elif isinstance(part, FilePart):
            # Only images are useful on the dashboard. Other attachments are
            # source dumps; the tool usage line already names the file.
            if part.is_image:
                set_part_content(self.state_for(part.message_id), part.id, render_file_part(part))
        elif isinstance(part, PatchPart):
            return
        elif isinstance(part, ReasoningPart):
            content = render_reasoning_part(part, self._reasoning_limit)
            set_part_content(self.state_for(part.message_id), part.id, content)
        else:
            logger.debug("Ignoring part %s of kind %r", part.id, part.type)

    def assemble(self, message_id: str) -> str:
        state = self._states.get(message_id)
        if state is None:
            return ""
        rendered = (state.parts.get(part_id) for part_id in state.order)
        return PART_SEPARATOR.join(p for p in rendered if p and p.strip()).strip()

    def texts(self, message_id: str) -> list[str]:
        """Raw text of each text part, in order. Used for user-authored messages."""
        state = self._states.get(message_id)
        if state is None:
            return []
        return [
            state.text_accumulators[part_id]
            for part_id in state.order
            if part_id in state.text_accumulators
        ]

    def discard(self, message_id: str) -> None:
        self._states.pop(message_id, None)

    def finalize(self, message_id: str) -> str:
        """Assemble a finished message and release its state."""
        text = self.assemble(message_id)
        self.discard(message_id)
        return text
