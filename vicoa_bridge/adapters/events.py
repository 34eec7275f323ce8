"""Event types emitted by the OpenCode server.

Each server-sent event is a ``{"type": ..., "properties": {...}}`` object,
parsed into a typed dataclass for safe consumption by the orchestrator.
"""
from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

from vicoa_bridge.shared.models.message import MessageInfo, PermissionInfo, SessionInfo
from vicoa_bridge.shared.models.parts import Part, TextPart, parse_part


@dataclass
class TerminalEvent:
    """Base event from the terminal. Unrecognized types keep raw properties."""
    event_type: str = ""
    properties: dict[str, Any] = field(default_factory=dict)


@dataclass
class PartUpdated(TerminalEvent):
    event_type: str = "message.part.updated"
    part: Part | None = None
    delta: str | None = None


@dataclass
class MessageUpdated(TerminalEvent):
    event_type: str = "message.updated"
    message: MessageInfo | None = None


@dataclass
class PermissionAsked(TerminalEvent):
    event_type: str = "permission.asked"
    permission: PermissionInfo | None = None


@dataclass
class PermissionReplied(TerminalEvent):
    event_type: str = "permission.replied"
    permission_id: str = ""
    session_id: str = ""
    response: str = ""


@dataclass
class SessionCreated(TerminalEvent):
    event_type: str = "session.created"
    session: SessionInfo | None = None


@dataclass
class SessionUpdated(TerminalEvent):
    event_type: str = "session.updated"
    session: SessionInfo | None = None


@dataclass
class SessionDeleted(TerminalEvent):
    event_type: str = "session.deleted"
    session: SessionInfo | None = None


@dataclass
class SessionIdle(TerminalEvent):
    event_type: str = "session.idle"
    session_id: str = ""


@dataclass
class SessionStatusChanged(TerminalEvent):
    event_type: str = "session.status"
    session_id: str = ""
    status: str = ""  # idle, busy, retry


@dataclass
class SessionErrored(TerminalEvent):
    event_type: str = "session.error"
    session_id: str = ""
    message: str | None = None


@dataclass
class ServerConnected(TerminalEvent):
    event_type: str = "server.connected"


@dataclass
class InstanceDisposed(TerminalEvent):
    event_type: str = "server.instance.disposed"


@dataclass
class ChatMessage(TerminalEvent):
    """A user message as typed in the terminal, with all of its parts."""
    event_type: str = "chat.message"
    message: MessageInfo | None = None
    parts: list[Part] = field(default_factory=list)

    @property
    def text_parts(self) -> list[TextPart]:
        return [p for p in self.parts if isinstance(p, TextPart)]


def _dict(value: Any) -> dict[str, Any]:
    return value if isinstance(value, dict) else {}


def _session_from(props: dict[str, Any]) -> SessionInfo | None:
    info = props.get("info")
    return SessionInfo.from_dict(info) if isinstance(info, dict) else None


def error_message(props: dict[str, Any]) -> str | None:
    """Pull a human-readable message out of an error event's properties.

    Handles ``{"error": {"message": ...}}``, ``{"error": {"data":
    {"message": ...}}}``, ``{"error": "..."}`` and ``{"message": "..."}``.
    """
    error = props.get("error")
    if isinstance(error, dict):
        if error.get("message"):
            return str(error["message"])
        data = _dict(error.get("data"))
        if data.get("message"):
            return str(data["message"])
        return None
    if isinstance(error, str) and error:
        return error
    message = props.get("message")
    if isinstance(message, str) and message:
        return message
    return None


def _part_updated(props: dict[str, Any]) -> PartUpdated:
    part = props.get("part")
    delta = props.get("delta")
    return PartUpdated(
        part=parse_part(part) if isinstance(part, dict) else None,
        delta=delta if isinstance(delta, str) else None,
    )


def _message_updated(props: dict[str, Any]) -> MessageUpdated:
    info = props.get("info")
    return MessageUpdated(
        message=MessageInfo.from_dict(info) if isinstance(info, dict) else None,
    )


def _permission_asked(props: dict[str, Any]) -> PermissionAsked:
    return PermissionAsked(permission=PermissionInfo.from_dict(props))


def _permission_replied(props: dict[str, Any]) -> PermissionReplied:
    return PermissionReplied(
        permission_id=str(props.get("permissionID") or props.get("requestID") or ""),
        session_id=str(props.get("sessionID") or ""),
        response=str(props.get("response") or props.get("reply") or ""),
    )


def _session_status(props: dict[str, Any]) -> SessionStatusChanged:
    status = props.get("status")
    kind = status.get("type") if isinstance(status, dict) else status
    return SessionStatusChanged(
        session_id=str(props.get("sessionID") or ""),
        status=kind if isinstance(kind, str) else "",
    )


def _chat_message(props: dict[str, Any]) -> ChatMessage:
    info = props.get("message") or props.get("info")
    parts = props.get("parts")
    return ChatMessage(
        message=MessageInfo.from_dict(info) if isinstance(info, dict) else None,
        parts=[parse_part(p) for p in parts if isinstance(p, dict)] if isinstance(parts, list) else [],
    )


_EVENT_PARSERS: dict[str, Callable[[dict[str, Any]], TerminalEvent]] = {
    "message.part.updated": _part_updated,
    "message.updated": _message_updated,
    # Runtime name is permission.asked; older SDK typedefs say permission.updated.
    "permission.asked": _permission_asked,
    "permission.updated": _permission_asked,
    "permission.replied": _permission_replied,
    "session.created": lambda p: SessionCreated(session=_session_from(p)),
    "session.updated": lambda p: SessionUpdated(session=_session_from(p)),
    "session.deleted": lambda p: SessionDeleted(session=_session_from(p)),
    "session.idle": lambda p: SessionIdle(session_id=str(p.get("sessionID") or "")),
    "session.status": _session_status,
    "session.error": lambda p: SessionErrored(
        session_id=str(p.get("sessionID") or ""), message=error_message(p),
    ),
    "server.connected": lambda p: ServerConnected(),
    "server.instance.disposed": lambda p: InstanceDisposed(),
    "global.disposed": lambda p: InstanceDisposed(),
    "chat.message": _chat_message,
}


def dict_to_event(data: dict[str, Any]) -> TerminalEvent:
    """Convert a terminal event payload to a typed event dataclass."""
    event_type = str(data.get("type") or "")
    props = _dict(data.get("properties"))
    parser = _EVENT_PARSERS.get(event_type)
    if parser is None:
        return TerminalEvent(event_type=event_type, properties=props)
    event = parser(props)
    event.event_type = event_type
    event.properties = props
    return event
