"""API key lookup shared with the Vicoa CLI.

Priority:
1. ``VICOA_API_KEY`` environment variable
2. ``write_key`` in ``~/.vicoa/credentials.json``
"""
from __future__ import annotations

import json
import logging
import os
from pathlib import Path

logger = logging.getLogger(__name__)


def credentials_path(home: str | Path | None = None) -> Path:
    return (Path(home) if home is not None else Path.home()) / ".vicoa" / "credentials.json"


def load_api_key(path: Path | None = None) -> str | None:
    """Read ``write_key`` from the credentials file, or None."""
    path = path or credentials_path()
    if not path.is_file():
        return None
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, ValueError) as exc:
        logger.error("Error reading credentials file %s: %s", path, exc)
        return None
    key = data.get("write_key") if isinstance(data, dict) else None
    if isinstance(key, str) and key.strip():
        return key.strip()
    return None


def get_api_key(path: Path | None = None) -> str | None:
    env_key = os.environ.get("VICOA_API_KEY", "").strip()
    if env_key:
        return env_key
    return load_api_key(path)
