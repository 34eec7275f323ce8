"""Slash command parser, dispatch tables and custom command discovery."""

from __future__ import annotations

import logging
import os
import re
import sys
from dataclasses import dataclass
from pathlib import Path

logger = logging.getLogger(__name__)

OPENCODE_SLASH_AGENT_TYPE = "opencode"

# Built-in slash commands that map to a terminal action.
SLASH_COMMAND_ACTIONS: dict[str, str] = {
    "sessions": "session.list",
    "resume": "session.list",
    "continue": "session.list",
    "new": "session.new",
    "clear": "session.new",
    "models": "model.list",
    "agents": "agent.list",
    "mcps": "mcp.list",
    "connect": "provider.connect",
    "status": "opencode.status",
    "themes": "theme.switch",
    "help": "help.show",
    "exit": "app.exit",
    "quit": "app.exit",
    "q": "app.exit",
    "editor": "prompt.editor",
    "share": "session.share",
    "rename": "session.rename",
    "timeline": "session.timeline",
    "fork": "session.fork",
    "compact": "session.compact",
    "summarize": "session.compact",
    "unshare": "session.unshare",
    "undo": "session.undo",
    "redo": "session.redo",
    "timestamps": "session.toggle.timestamps",
    "toggle-timestamps": "session.toggle.timestamps",
    "thinking": "session.toggle.thinking",
    "toggle-thinking": "session.toggle.thinking",
    "copy": "session.copy",
    "export": "session.export",
}

# Actions the terminal exposes as keybinding commands. Everything else is
# published as a ``tui.command.execute`` event.
EXECUTE_COMMAND_KEYS: dict[str, str] = {
    "session.new": "session_new",
    "session.share": "session_share",
    "session.interrupt": "session_interrupt",
    "session.compact": "session_compact",
    "session.page.up": "messages_page_up",
    "session.page.down": "messages_page_down",
    "session.line.up": "messages_line_up",
    "session.line.down": "messages_line_down",
    "session.half.page.up": "messages_half_page_up",
    "session.half.page.down": "messages_half_page_down",
    "session.first": "messages_first",
    "session.last": "messages_last",
    "agent.cycle": "agent_cycle",
}


@dataclass
class ParsedSlashCommand:
    """A parsed slash command."""

    name: str  # lowercased
    raw_name: str
    arguments: str

    @property
    def action(self) -> str | None:
        return SLASH_COMMAND_ACTIONS.get(self.name)

    @property
    def is_direct(self) -> bool:
        """Built-in with no arguments: run the action instead of prompting."""
        return self.action is not None and not self.arguments


def parse_slash_command(text: str) -> ParsedSlashCommand | None:
    """Parse a /command from input text.

    Returns None if text does not start with '/' or names nothing.
    """
    stripped = text.strip()
    if not stripped.startswith("/"):
        return None
    body = stripped[1:].strip()
    if not body:
        return None
    raw_name, *rest = body.split()
    return ParsedSlashCommand(
        name=raw_name.lower(),
        raw_name=raw_name,
        arguments=" ".join(rest).strip(),
    )


def command_roots(project_dir: str | None, home_dir: str | Path) -> list[Path]:
    """Directories that may hold a ``commands/`` tree, without duplicates."""
    home = Path(home_dir)
    roots: list[Path] = []

    def add(path: Path) -> None:
        if path not in roots:
            roots.append(path)

    if os.environ.get("OPENCODE_CONFIG_DIR"):
        add(Path(os.environ["OPENCODE_CONFIG_DIR"]))
    if os.environ.get("XDG_CONFIG_HOME"):
        add(Path(os.environ["XDG_CONFIG_HOME"]) / "opencode")
    add(home / ".config" / "opencode")
    if sys.platform == "win32":
        app_data = os.environ.get("APPDATA") or str(home / "AppData" / "Roaming")
        add(Path(app_data) / "opencode")
    add(home / ".opencode")
    if project_dir:
        add(Path(project_dir) / ".opencode")
    return roots


_QUOTES = re.compile(r"^['\"]|['\"]$")


def parse_command_description(content: str, fallback_name: str) -> str:
    """Description from YAML front matter, else the first non-empty line."""
    lines = content.split("\n")
    description = ""

    if lines and lines[0].strip() == "---":
        for line in lines[1:]:
            line = line.strip()
            if line == "---":
                break
            key, _, value = line.partition(":")
            value = value.strip()
            if key.strip().lower() == "description" and value:
                description = _QUOTES.sub("", value).strip()
                break

    if not description:
        for line in lines:
            stripped = line.strip()
            if not stripped:
                continue
            description = stripped.lstrip("#").strip() if stripped.startswith("#") else stripped
            break

    return description or f"Custom command: {fallback_name}"


def scan_opencode_commands(
    project_dir: str | None,
    home_dir: str | Path,
) -> dict[str, dict[str, str]]:
    """Find custom commands as ``{name: {"description": ...}}``.

    A command's name is its markdown path under ``commands/`` without the
    extension, using ``/`` separators. Later roots override earlier ones.
    """
    commands: dict[str, dict[str, str]] = {}
    for root in command_roots(project_dir, home_dir):
        command_root = root / "commands"
        if not command_root.is_dir():
            continue
        for path in sorted(command_root.rglob("*")):
            if not path.is_file() or path.suffix.lower() != ".md":
                continue
            name = path.relative_to(command_root).with_suffix("").as_posix()
            if not name:
                continue
            try:
                content = path.read_text(encoding="utf-8")
            except (OSError, UnicodeDecodeError) as exc:
                logger.debug("Skipping unreadable command %s: %s", path, exc)
                continue
            commands[name] = {"description": parse_command_description(content, name)}
    logger.debug("Found %d custom command(s)", len(commands))
    return commands
