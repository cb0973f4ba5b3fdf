from __future__ import annotations

from pathlib import Path
from typing import Iterable, Optional


class SiteError(Exception):
    """Base class for every error that should stop a build."""


class ParseError(SiteError):
    def __init__(self, path: Optional[Path], message: str) -> None:
        self.path = path
        self.message = message
        super().__init__(str(self))

    def __str__(self) -> str:
        if self.path is None:
            return self.message
        return f"{self.path}: {self.message}"


class LoadError(SiteError):
    """Every problem found while reading the content store, reported together."""

    def __init__(self, errors: Iterable[SiteError | str]) -> None:
        self.errors = list(errors)
        super().__init__(str(self))

    def __str__(self) -> str:
        count = len(self.errors)
        lines = [f"{count} content error{'s' if count != 1 else ''}:"]
        lines.extend(f"  {error}" for error in self.errors)
        return "\n".join(lines)


class RenderError(SiteError):
    def __init__(self, page: str, message: str) -> None:
        self.page = page
        self.message = message
        super().__init__(f"{page}: {message}")


class WriteError(SiteError):
    def __init__(self, path: Path, message: str) -> None:
        self.path = path
        self.message = message
        super().__init__(f"{path}: {message}")


class ConfigError(SiteError):
    pass
