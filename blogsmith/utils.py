from __future__ import annotations

import posixpath
from pathlib import Path


def parse_bool(value: object) -> bool:
    if isinstance(value, bool):
        return value
    if value is None:
        return False
    if isinstance(value, (int, float)):
        return value != 0
    if isinstance(value, str):
        return value.strip().lower() in {"1", "true", "yes", "y", "on"}
    return False


def parse_int(value: object, default: int) -> int:
    if value is None:
        return default
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, int):
        return value
    try:
        return int(str(value).strip())
    except ValueError:
        return default


def join_url(base: str, path: str) -> str:
    base = base.rstrip("/")
    path = path.lstrip("/")
    if not path:
        return base
    return f"{base}/{path}"


def root_for(page_path: str) -> str:
    """Relative prefix leading from ``page_path`` back to the output root."""
    depth = len(posixpath.dirname(page_path).split("/")) if posixpath.dirname(page_path) else 0
    if depth == 0:
        return "."
    return "/".join([".."] * depth)


def is_within(path: Path, root: Path) -> bool:
    return path.resolve().is_relative_to(root.resolve())
