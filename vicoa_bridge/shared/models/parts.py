"""Message part models.

A part is a fragment of a terminal message (text chunk, file reference,
reasoning trace, tool invocation, patch marker) that arrives incrementally.
``parse_part`` turns the terminal's JSON payload into one of these
dataclasses, keyed on the ``type`` tag.
"""

from dataclasses import dataclass, field
from typing import Any


@dataclass
class Part:
    id: str
    message_id: str
    session_id: str = ""
    type: str = ""


@dataclass
class TextPart(Part):
    type: str = "text"
    text: str = ""
    synthetic: bool = False


@dataclass
class FilePart(Part):
    type: str = "file"
    mime: str = ""
    filename: str | None = None
    url: str | None = None
    source_path: str | None = None
    source_text: str | None = None

    @property
    def is_image(self) -> bool:
        return self.mime.startswith("image/") and bool(self.url)


@dataclass
class ReasoningPart(Part):
    type: str = "reasoning"
    text: str = ""


@dataclass
class ToolState:
    status: str = "pending"  # pending, running, completed, error
    input: dict[str, Any] = field(default_factory=dict)
    output: str | None = None
    error: str | None = None
    title: str | None = None

    @property
    def finished(self) -> bool:
        return self.status in ("completed", "error")


@dataclass
class ToolPart(Part):
    type: str = "tool"
    tool: str = ""
    call_id: str = ""
    state: ToolState = field(default_factory=ToolState)


@dataclass
class PatchPart(Part):
    type: str = "patch"
    files: list[str] = field(default_factory=list)


@dataclass
class UnknownPart(Part):
    raw: dict[str, Any] = field(default_factory=dict)


def _str(data: dict[str, Any], key: str, default: str = "") -> str:
    value = data.get(key)
    return value if isinstance(value, str) else default


def _opt_str(data: dict[str, Any], key: str) -> str | None:
    value = data.get(key)
    return value if isinstance(value, str) else None


def _parse_tool_state(data: Any) -> ToolState:
    if not isinstance(data, dict):
        return ToolState()
    raw_input = data.get("input")
    output = data.get("output")
    error = data.get("error")
    return ToolState(
        status=_str(data, "status", "pending"),
        input=raw_input if isinstance(raw_input, dict) else {},
        output=output if isinstance(output, str) else None,
        error=str(error) if error is not None else None,
        title=_opt_str(data, "title"),
    )


def parse_part(data: dict[str, Any]) -> Part:
    """Build a typed part from the terminal's ``message.part.updated`` payload."""
    base = dict(
        id=_str(data, "id"),
        message_id=_str(data, "messageID"),
        session_id=_str(data, "sessionID"),
    )
    kind = _str(data, "type")

    if kind == "text":
        return TextPart(
            **base,
            text=_str(data, "text"),
            synthetic=bool(data.get("synthetic", False)),
        )
    if kind == "file":
        source = data.get("source") if isinstance(data.get("source"), dict) else {}
        source_text = source.get("text") if isinstance(source.get("text"), dict) else {}
        return FilePart(
            **base,
            mime=_str(data, "mime"),
            filename=_opt_str(data, "filename"),
            url=_opt_str(data, "url"),
            source_path=_opt_str(source, "path"),
            source_text=_opt_str(source_text, "value"),
        )
    if kind == "reasoning":
        return ReasoningPart(**base, text=_str(data, "text"))
    if kind == "tool":
        return ToolPart(
            **base,
            tool=_str(data, "tool"),
            call_id=_str(data, "callID"),
            state=_parse_tool_state(data.get("state")),
        )
    if kind == "patch":
        files = data.get("files")
        return PatchPart(
            **base,
            files=[str(f) for f in files] if isinstance(files, list) else [],
        )
    return UnknownPart(**base, type=kind, raw=dict(data))
