"""Permission request presentation and reply correlation.

When the terminal asks for permission the bridge forwards the request to the
dashboard with a numbered options block and records a ``PendingPermission``.
A later free-text reply from the dashboard is matched against the pending
options. A match resolves the request exactly once:

    Open --claim(reply)--> Resolved      (decision sent to the terminal)
    Open --discard(id)---> Resolved      (terminal reports it already replied)
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum

from vicoa_bridge.shared.models.message import PermissionInfo
from vicoa_bridge.shared.text import truncate_text

logger = logging.getLogger(__name__)

OPTIONS_OPEN = "[OPTIONS]"
OPTIONS_CLOSE = "[/OPTIONS]"
WRITE_PREVIEW_LIMIT = 500
MAX_CUSTOM_OPTIONS = 3


class Decision(str, Enum):
    ONCE = "once"
    ALWAYS = "always"
    REJECT = "reject"


@dataclass(frozen=True)
class PermissionOption:
    label: str
    decision: Decision


DEFAULT_PERMISSION_OPTIONS: tuple[PermissionOption, ...] = (
    PermissionOption("Allow", Decision.ONCE),
    PermissionOption("Allow always", Decision.ALWAYS),
    PermissionOption("Reject", Decision.REJECT),
)

_POSITIONAL_DECISIONS = (Decision.ONCE, Decision.ALWAYS, Decision.REJECT)

# Checked after label and ordinal matching, so "1" only lands here when the
# options list is empty or the reply is out of range.
KEYWORD_DECISIONS: dict[Decision, frozenset[str]] = {
    Decision.ONCE: frozenset({"allow", "yes", "y", "ok", "approve", "1"}),
    Decision.ALWAYS: frozenset({"always", "forever", "permanent", "2"}),
    Decision.REJECT: frozenset({"reject", "no", "n", "deny", "cancel", "3"}),
}


@dataclass
class PendingPermission:
    id: str
    session_id: str
    options: list[PermissionOption] = field(default_factory=list)
    remote_message_id: str | None = None


def build_permission_options(permission: PermissionInfo) -> list[PermissionOption]:
    """Use custom labels from the request metadata, or the default triple.

    Custom labels are paired positionally with once/always/reject; anything
    past the third label is ignored.
    """
    labels = permission.metadata.get("options") if permission.metadata else None
    if isinstance(labels, list) and labels:
        return [
            PermissionOption(str(label), decision)
            for label, decision in zip(labels[:MAX_CUSTOM_OPTIONS], _POSITIONAL_DECISIONS)
        ]
    return list(DEFAULT_PERMISSION_OPTIONS)


def format_options_block(options: list[PermissionOption]) -> str:
    lines = [f"{i}. {opt.label}" for i, opt in enumerate(options, start=1)]
    return "\n".join([OPTIONS_OPEN, *lines, OPTIONS_CLOSE])


def _format_input_preview(kind: str, tool_input: dict) -> str:
    if kind == "edit" and tool_input.get("old_string") and tool_input.get("new_string"):
        lines = ["", "```diff"]
        lines.extend(f"- {line}" for line in str(tool_input["old_string"]).split("\n"))
        lines.extend(f"+ {line}" for line in str(tool_input["new_string"]).split("\n"))
        lines.append("```")
        return "\n".join(lines)
    if kind == "write" and tool_input.get("content"):
        preview = truncate_text(str(tool_input["content"]), WRITE_PREVIEW_LIMIT)
        return f"\n```\n{preview}\n```"
    if kind == "bash" and tool_input.get("command"):
        return f"\n```bash\n{tool_input['command']}\n```"
    return ""


def format_permission_request(permission: PermissionInfo, options: list[PermissionOption]) -> str:
    """Markdown prompt for the dashboard, ending in the options envelope."""
    kind = permission.type or "unknown"
    patterns = permission.patterns

    message = "**Permission Required**\n\n"
    if not patterns:
        message += f"**{kind}**"
    elif len(patterns) == 1:
        message += f"**{kind}** (`{patterns[0]}`)"
    else:
        message += f"**{kind}** ({len(patterns)} patterns)\n"
        message += "".join(f"  • `{p}`\n" for p in patterns)

    meta = permission.metadata or {}
    tool_input = meta.get("input")
    if isinstance(tool_input, dict):
        message += _format_input_preview(kind, tool_input)

    description = meta.get("description")
    if isinstance(description, str) and description:
        message += f"\n\n{description}"

    return f"{message}\n\n{format_options_block(options)}"


def parse_permission_reply(reply: str, options: list[PermissionOption]) -> Decision | None:
    """Match a free-text reply to a decision, or None when it is not a reply."""
    normalized = reply.strip().lower()

    for opt in options:
        if opt.label.lower() == normalized:
            return opt.decision

    try:
        ordinal = int(normalized)
    except ValueError:
        ordinal = None
    if ordinal is not None and 1 <= ordinal <= len(options):
        return options[ordinal - 1].decision

    for decision, words in KEYWORD_DECISIONS.items():
        if normalized in words:
            return decision
    return None


class PermissionCorrelator:
    """Pending permission requests keyed by permission id."""

    def __init__(self) -> None:
        self._pending: dict[str, PendingPermission] = {}

    def __contains__(self, permission_id: object) -> bool:
        return permission_id in self._pending

    def __len__(self) -> int:
        return len(self._pending)

    def get(self, permission_id: str) -> PendingPermission | None:
        return self._pending.get(permission_id)

    def open(
        self,
        permission: PermissionInfo,
        options: list[PermissionOption],
        remote_message_id: str | None = None,
    ) -> PendingPermission:
        if permission.id in self._pending:
            logger.warning("Permission %s re-opened; replacing pending entry", permission.id)
        pending = PendingPermission(
            id=permission.id,
            session_id=permission.session_id,
            options=list(options),
            remote_message_id=remote_message_id,
        )
        self._pending[permission.id] = pending
        return pending

    def claim(self, reply: str) -> tuple[PendingPermission, Decision] | None:
        """Resolve the first pending permission the reply matches.

        The entry is removed before the caller sends the decision, so a second
        reply arriving while that call is in flight cannot answer it again.
        """
        for permission_id, pending in self._pending.items():
            decision = parse_permission_reply(reply, pending.options)
            if decision is None:
                continue
            del self._pending[permission_id]
            return pending, decision
        return None

    def discard(self, permission_id: str) -> bool:
        """Drop a permission the terminal reports as already answered."""
        return self._pending.pop(permission_id, None) is not None
