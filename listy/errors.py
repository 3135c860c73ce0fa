"""Exception types raised by activity loading and persistence."""

from __future__ import annotations

from pathlib import Path


class ListyError(Exception):
    """Base class for recoverable listy failures."""


class ActivityError(ListyError):
    """An activity file could not be read or failed validation."""

    def __init__(self, message: str, path: Path | None = None) -> None:
        self.path = path
        super().__init__(f"{path.name}: {message}" if path is not None else message)


class PersistError(ListyError):
    """Committed variable values could not be written back to disk."""
