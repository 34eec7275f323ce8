"""Text normalization used to detect duplicate message content."""

from __future__ import annotations

import re

# When the user types @filename or @folder in the terminal, OpenCode resolves
# the reference by running the read/list tool and appending the result to the
# user message. Forms seen in the wild:
#   1) "Called the Read tool with the following input: {...}\n<file>...</file>"
#   2) bare "<file>...</file>" blocks
#   3) an unclosed "<file>" tag followed by content
#   4) directory listings (folder path followed by indented entries)
_TOOL_RESULT_HEADER = re.compile(r"Called the \w+ tool with the following input:[\s\S]*")
_FILE_BLOCK = re.compile(r"<file>[\s\S]*?</file>")
_UNCLOSED_FILE_TAG = re.compile(r"<file>[\s\S]*")
_DIRECTORY_LISTING = re.compile(r"^/[^\n]+/\n(?:[ \t]+[^\n]+\n)+", re.MULTILINE)


def normalize_message(content: str) -> str:
    """Canonical form for duplicate comparison: LF line endings, trimmed."""
    return (content or "").replace("\r\n", "\n").strip()


def strip_tool_results(text: str) -> str:
    """Remove tool output that the terminal splices into user messages."""
    cleaned = _TOOL_RESULT_HEADER.sub("", text or "")
    # Closed blocks must go before the unclosed-tag sweep.
    cleaned = _FILE_BLOCK.sub("", cleaned)
    cleaned = _UNCLOSED_FILE_TAG.sub("", cleaned)
    cleaned = _DIRECTORY_LISTING.sub("", cleaned)
    return cleaned


def truncate_text(text: str, max_length: int = 100) -> str:
    """Cut *text* to *max_length* characters, marking the cut with '...'."""
    if len(text) <= max_length:
        return text
    return text[:max_length] + "..."


def preview(text: str, limit: int = 80) -> str:
    """Single log-friendly preview of a message body."""
    return truncate_text(text or "", limit)
