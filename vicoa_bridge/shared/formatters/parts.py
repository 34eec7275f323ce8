"""Plain-text / markdown rendering of terminal message parts.

Tool usage lines are produced by a registry of per-tool formatters. Adding a
new tool format requires only a single decorated function:

    @tool_formatter("mytool")
    def _format_my_tool(name, args):
        return f"Using tool: {name} - ..."

Every renderer can be called through ``try_format`` which wraps the call in a
``FormatResult``. Each part kind declares its fallback string, used when the
renderer fails, so a broken part never loses the surrounding message.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Any, Callable

from vicoa_bridge.shared.models.parts import FilePart, ReasoningPart, ToolPart
from vicoa_bridge.shared.text import truncate_text

logger = logging.getLogger(__name__)

REASONING_LIMIT = 200
ERROR_LIMIT = 200

LANGUAGE_MAP: dict[str, str] = {
    "py": "python",
    "js": "javascript",
    "ts": "typescript",
    "jsx": "jsx",
    "tsx": "tsx",
    "java": "java",
    "cpp": "cpp",
    "c": "c",
    "cs": "csharp",
    "rb": "ruby",
    "go": "go",
    "rs": "rust",
    "php": "php",
    "swift": "swift",
    "kt": "kotlin",
    "yaml": "yaml",
    "yml": "yaml",
    "json": "json",
    "xml": "xml",
    "html": "html",
    "css": "css",
    "scss": "scss",
    "sql": "sql",
    "sh": "bash",
    "bash": "bash",
    "md": "markdown",
    "txt": "text",
}

# Tools whose result is noise: raw file/list content on the read side, or a
# boilerplate confirmation on the write side. Only the usage line is shown.
SUPPRESS_OUTPUT_TOOLS: frozenset[str] = frozenset({
    "read", "notebookread", "list", "ls", "glob", "grep", "todoread", "lsp",
    "write", "edit", "multiedit", "patch", "notebookedit", "todowrite",
})

TODO_SYMBOLS: dict[str, str] = {
    "pending": "○",
    "in_progress": "◐",
    "completed": "●",
}


# ── Result type ──


@dataclass(frozen=True)
class FormatResult:
    """Outcome of a renderer call: the text, or the error that stopped it."""

    text: str | None = None
    error: Exception | None = None

    @property
    def ok(self) -> bool:
        return self.error is None and self.text is not None

    def or_fallback(self, fallback: str) -> str:
        return self.text if self.ok else fallback


def try_format(renderer: Callable[..., str], *args: Any) -> FormatResult:
    try:
        return FormatResult(text=renderer(*args))
    except Exception as exc:
        logger.debug("Renderer %s failed", getattr(renderer, "__name__", renderer), exc_info=True)
        return FormatResult(error=exc)


# ── Input helpers ──


def detect_language(file_path: str) -> str:
    extension = file_path.rsplit(".", 1)[-1] if "." in file_path else ""
    return LANGUAGE_MAP.get(extension, "")


def _get_string(args: dict, keys: list[str], fallback: str = "") -> str:
    for key in keys:
        value = args.get(key)
        if isinstance(value, str):
            return value
    return fallback


def _get_bool(args: dict, keys: list[str], fallback: bool = False) -> bool:
    for key in keys:
        value = args.get(key)
        if isinstance(value, bool):
            return value
    return fallback


def _get_list(args: dict, keys: list[str]) -> list:
    for key in keys:
        value = args.get(key)
        if isinstance(value, list):
            return value
    return []


def format_diff_block(old_text: str, new_text: str) -> list[str]:
    """Render a fenced diff, keeping up to two lines of shared context."""
    lines = ["```diff"]

    if not old_text and new_text:
        lines.extend(f"+ {line}" for line in new_text.split("\n"))
    elif old_text and not new_text:
        lines.extend(f"- {line}" for line in old_text.split("\n"))
    else:
        old_lines = old_text.split("\n")
        new_lines = new_text.split("\n")

        prefix_len = 0
        for old, new in zip(old_lines, new_lines):
            if old != new:
                break
            prefix_len += 1

        old_rest = old_lines[prefix_len:]
        new_rest = new_lines[prefix_len:]

        suffix_len = 0
        if old_rest and new_rest:
            for i in range(1, min(len(old_rest), len(new_rest)) + 1):
                if old_rest[-i] != new_rest[-i]:
                    break
                suffix_len += 1

        changed_old = old_rest[: len(old_rest) - suffix_len]
        changed_new = new_rest[: len(new_rest) - suffix_len]

        if (prefix_len or suffix_len) and (changed_old or changed_new):
            context_before = old_lines[:prefix_len][-2:]
            context_after = old_rest[len(old_rest) - suffix_len:][:2]
            lines.extend(f"  {line}" for line in context_before)
            lines.extend(f"- {line}" for line in changed_old)
            lines.extend(f"+ {line}" for line in changed_new)
            lines.extend(f"  {line}" for line in context_after)
        else:
            lines.extend(f"- {line}" for line in old_lines)
            lines.extend(f"+ {line}" for line in new_lines)

    lines.append("```")
    return lines


# ── Tool usage registry ──

_FORMATTERS: dict[str, Callable[[str, dict], str]] = {}


def tool_formatter(*names: str):
    """Decorator registering a usage formatter under one or more tool names."""

    def decorator(fn: Callable[[str, dict], str]):
        for name in names:
            _FORMATTERS[name.lower()] = fn
        return fn

    return decorator


@tool_formatter("write")
def _format_write(name: str, args: dict) -> str:
    file_path = _get_string(args, ["file_path", "filePath", "path", "filename"], "unknown")
    content = _get_string(args, ["content", "text", "value"])
    lang = detect_language(file_path)
    lines = [f"Using tool: Write - `{file_path}`", f"```{lang}", content, "```"]
    return "\n".join(line for line in lines if line)


@tool_formatter("read", "notebookread", "notebookedit")
def _format_read(name: str, args: dict) -> str:
    file_path = _get_string(args, ["file_path", "filePath", "path", "notebook_path"], "unknown")
    return f"Using tool: {name} - `{file_path}`"


@tool_formatter("edit")
def _format_edit(name: str, args: dict) -> str:
    file_path = _get_string(args, ["file_path", "filePath", "path"], "unknown")
    old_string = _get_string(args, ["old_string", "oldString"])
    new_string = _get_string(args, ["new_string", "newString"])

    lines = [f"Using tool: **Edit** - `{file_path}`"]
    if _get_bool(args, ["replace_all", "replaceAll"]):
        lines.append("*Replacing all occurrences*")
    lines.append("")
    lines.extend(format_diff_block(old_string, new_string))
    return "\n".join(lines)


@tool_formatter("multiedit")
def _format_multi_edit(name: str, args: dict) -> str:
    file_path = _get_string(args, ["file_path", "filePath", "path"], "unknown")
    edits = [e for e in _get_list(args, ["edits"]) if isinstance(e, dict)]
    plural = "" if len(edits) == 1 else "s"
    lines = [
        f"Using tool: **MultiEdit** - `{file_path}`",
        f"*Making {len(edits)} edit{plural}:*",
        "",
    ]
    for index, edit in enumerate(edits, start=1):
        old_string = _get_string(edit, ["old_string", "oldString"])
        new_string = _get_string(edit, ["new_string", "newString"])
        replace_all = bool(edit.get("replace_all", edit.get("replaceAll", False)))
        if replace_all:
            lines.append(f"### Edit {index} *(replacing all occurrences)*")
        else:
            lines.append(f"### Edit {index}")
        lines.append("")
        lines.extend(format_diff_block(old_string, new_string))
        lines.append("")
    return "\n".join(lines)


@tool_formatter("bash")
def _format_bash(name: str, args: dict) -> str:
    return f"Using tool: Bash - `{_get_string(args, ['command', 'cmd'])}`"


@tool_formatter("grep", "glob")
def _format_search(name: str, args: dict) -> str:
    pattern = _get_string(args, ["pattern", "query"], "unknown")
    path = _get_string(args, ["path", "directory"], "current directory")
    return f"Using tool: {name} - `{truncate_text(pattern, 50)}` in {path}"


@tool_formatter("list", "ls")
def _format_list(name: str, args: dict) -> str:
    return f"Using tool: list - `{_get_string(args, ['path'], 'unknown')}`"


@tool_formatter("patch")
def _format_patch(name: str, args: dict) -> str:
    return f"Using tool: patch - `{_get_string(args, ['file', 'path'], 'unknown')}`"


@tool_formatter("skill")
def _format_skill(name: str, args: dict) -> str:
    return f"Using tool: skill - `{_get_string(args, ['name', 'skill'], 'unknown')}`"


@tool_formatter("question")
def _format_question(name: str, args: dict) -> str:
    text = _get_string(args, ["text", "question", "message"])
    return f"Asking: {truncate_text(text, 100)}" if text else "Using tool: question"


@tool_formatter("lsp")
def _format_lsp(name: str, args: dict) -> str:
    command = _get_string(args, ["command", "method"], "unknown")
    file = _get_string(args, ["file", "path"])
    if file:
        return f"Using tool: lsp - {command} on `{file}`"
    return f"Using tool: lsp - {command}"


@tool_formatter("todowrite")
def _format_todo_write(name: str, args: dict) -> str:
    todos = [t for t in _get_list(args, ["todos"]) if isinstance(t, dict)]
    if not todos:
        return "Using tool: TodoWrite - clearing todo list"
    lines = ["Using tool: TodoWrite - Todo List", ""]
    for todo in todos:
        status = todo.get("status") if isinstance(todo.get("status"), str) else "pending"
        content = todo.get("content") if isinstance(todo.get("content"), str) else ""
        symbol = TODO_SYMBOLS.get(status, "•")
        lines.append(f"{symbol} {truncate_text(content, 100)}")
    return "\n".join(lines)


@tool_formatter("todoread")
def _format_todo_read(name: str, args: dict) -> str:
    return "Using tool: todoread"


@tool_formatter("task")
def _format_task(name: str, args: dict) -> str:
    description = _get_string(args, ["description"], "unknown task")
    agent = _get_string(args, ["subagent_type", "subagentType", "agent"], "unknown")
    return f"Using tool: Task - {truncate_text(description, 50)} (agent: {agent})"


@tool_formatter("webfetch")
def _format_web_fetch(name: str, args: dict) -> str:
    return f"Using tool: WebFetch - `{truncate_text(_get_string(args, ['url'], 'unknown'), 80)}`"


@tool_formatter("websearch")
def _format_web_search(name: str, args: dict) -> str:
    return f"Using tool: WebSearch - {truncate_text(_get_string(args, ['query'], 'unknown'), 80)}"


@tool_formatter("ListMcpResourcesTool")
def _format_list_mcp_resources(name: str, args: dict) -> str:
    return "Using tool: List MCP Resources"


_DEFAULT_KEYS = ["file", "path", "query", "content", "message", "description", "name"]


def _format_default(name: str, args: dict) -> str:
    for key in _DEFAULT_KEYS:
        value = args.get(key)
        if isinstance(value, str):
            return f"Using tool: {name} - {truncate_text(value, 50)}"
    return f"Using tool: {name}"


def format_tool_usage(tool_name: str, args: dict | None) -> str:
    """One usage line (plus optional body) describing a tool invocation."""
    # Dashboard-side tools would only echo the dashboard back to itself.
    if tool_name.startswith("mcp__vicoa__"):
        return f"Using tool: {tool_name}"
    formatter = _FORMATTERS.get(tool_name.lower(), _format_default)
    return formatter(tool_name, args or {})


def format_tool_result(output: str) -> str:
    """Summarize JSON objects by their keys; other output is shown in full."""
    try:
        parsed = json.loads(output)
    except (json.JSONDecodeError, TypeError):
        return output
    if isinstance(parsed, dict):
        keys = list(parsed)
        shown = keys[:3]
        summary = f"JSON object with keys: {', '.join(shown)}"
        if len(shown) < len(keys):
            return f"{summary} and {len(keys) - len(shown)} more"
        return summary
    return output


def should_suppress_tool_output(tool_name: str) -> bool:
    return tool_name.lower() in SUPPRESS_OUTPUT_TOOLS


# ── Part renderers ──


def format_tool_part(part: ToolPart) -> str:
    base = format_tool_usage(part.tool, part.state.input)
    status = part.state.status

    if status == "completed":
        if should_suppress_tool_output(part.tool) or not part.state.output:
            return base
        return f"{base}\nResult: {format_tool_result(part.state.output)}"

    if status == "error":
        error = truncate_text(part.state.error, ERROR_LIMIT) if part.state.error else "Unknown error"
        return f"{base}\n{error}"

    return base


def format_reasoning_part(part: ReasoningPart, limit: int = REASONING_LIMIT) -> str:
    if not part.text:
        return ""
    return f"[Thinking: {truncate_text(part.text, limit)}]"


def format_file_part(part: FilePart) -> str:
    if part.is_image:
        return f"![{part.filename or 'image'}]({part.url})"

    path = part.source_path or part.filename or part.url or "file"
    if part.source_text:
        lang = detect_language(path)
        return "\n".join([f"File: `{path}`", f"```{lang}", part.source_text, "```"])
    return f"File: `{path}`"


# ── Fallbacks (used when the renderer above fails) ──


def tool_part_fallback(part: ToolPart) -> str:
    return f"Using tool: {part.tool}"


def file_part_fallback(part: FilePart) -> str:
    return f"File: `{part.filename}`" if part.filename else "File attached"


REASONING_FALLBACK = ""


def render_tool_part(part: ToolPart) -> str:
    return try_format(format_tool_part, part).or_fallback(tool_part_fallback(part))


def render_file_part(part: FilePart) -> str:
    return try_format(format_file_part, part).or_fallback(file_part_fallback(part))


def render_reasoning_part(part: ReasoningPart, limit: int = REASONING_LIMIT) -> str:
    return try_format(format_reasoning_part, part, limit).or_fallback(REASONING_FALLBACK)
