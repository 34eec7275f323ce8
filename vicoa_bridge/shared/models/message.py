"""Message, session and permission models seen by the bridge."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class MessageRole(Enum):
    USER = "user"
    ASSISTANT = "assistant"


class SenderType(Enum):
    USER = "USER"
    AGENT = "AGENT"


@dataclass
class MessageInfo:
    id: str
    session_id: str = ""
    role: str = ""
    completed_at: float | None = None
    # Agent the terminal used for a user message (the selector position).
    agent: str | None = None
    # For assistant messages: the user message being answered.
    parent_id: str | None = None

    @property
    def is_user(self) -> bool:
        return self.role == MessageRole.USER.value

    @property
    def is_completed_assistant(self) -> bool:
        return self.role == MessageRole.ASSISTANT.value and self.completed_at is not None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "MessageInfo":
        time_info = data.get("time") if isinstance(data.get("time"), dict) else {}
        completed = time_info.get("completed")
        agent = data.get("agent")
        parent = data.get("parentID")
        return cls(
            id=str(data.get("id") or ""),
            session_id=str(data.get("sessionID") or ""),
            role=str(data.get("role") or ""),
            completed_at=completed if isinstance(completed, (int, float)) else None,
            agent=agent if isinstance(agent, str) and agent else None,
            parent_id=parent if isinstance(parent, str) and parent else None,
        )


@dataclass
class SessionInfo:
    id: str
    title: str | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "SessionInfo":
        title = data.get("title")
        return cls(
            id=str(data.get("id") or ""),
            title=title if isinstance(title, str) else None,
        )


@dataclass
class PermissionInfo:
    id: str
    session_id: str
    type: str = "unknown"
    patterns: list[str] = field(default_factory=list)
    metadata: dict[str, Any] = field(default_factory=dict)
    title: str | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "PermissionInfo":
        # Older servers send type/pattern, newer ones permission/patterns.
        kind = data.get("permission") or data.get("type") or "unknown"
        patterns: list[str] = []
        if isinstance(data.get("patterns"), list):
            patterns = [str(p) for p in data["patterns"]]
        elif isinstance(data.get("pattern"), list):
            patterns = [str(p) for p in data["pattern"]]
        elif isinstance(data.get("pattern"), str):
            patterns = [data["pattern"]]
        metadata = data.get("metadata")
        title = data.get("title")
        return cls(
            id=str(data.get("id") or ""),
            session_id=str(data.get("sessionID") or ""),
            type=str(kind),
            patterns=patterns,
            metadata=metadata if isinstance(metadata, dict) else {},
            title=title if isinstance(title, str) else None,
        )


@dataclass
class RemoteMessage:
    """A message queued on the dashboard for this agent instance."""

    id: str
    content: str
    sender_type: str = SenderType.USER.value
    requires_user_input: bool = False
    created_at: str | None = None

    @property
    def from_user(self) -> bool:
        return self.sender_type == SenderType.USER.value and bool(self.content)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "RemoteMessage":
        return cls(
            id=str(data.get("id") or ""),
            content=str(data.get("content") or ""),
            sender_type=str(data.get("sender_type") or SenderType.USER.value),
            requires_user_input=bool(data.get("requires_user_input", False)),
            created_at=data.get("created_at"),
        )
