"""Project path display helpers."""

from __future__ import annotations

from pathlib import Path


def format_project_path(project_path: str | Path, home: str | Path | None = None) -> str:
    """Absolute path with the home directory prefix replaced by ``~``.

    >>> format_project_path("/home/ada/projects/app", home="/home/ada")
    '~/projects/app'
    """
    absolute = Path(project_path).expanduser().resolve()
    home_dir = Path(home) if home is not None else Path.home()
    try:
        relative = absolute.relative_to(home_dir)
    except ValueError:
        return str(absolute)
    return "~" if relative == Path(".") else f"~/{relative.as_posix()}"
