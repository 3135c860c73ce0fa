"""Plain-text mirror of the round log.

LLM commands receive this file's path as ``$_BUFFER``. ANSI styling is
stripped. A session starts with an empty file, undo cuts it back to where
the undone round began, and Ctrl+L empties it again.
"""

from __future__ import annotations

import os
from pathlib import Path

from ..logs import get_logger
from .ansi import strip_ansi

logger = get_logger(__name__)


class ScrollbackBuffer:
    def __init__(self, path: Path) -> None:
        self.path = Path(path)

    def _write(self, text: str, mode: str) -> None:
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with self.path.open(mode, encoding="utf-8") as handle:
                handle.write(text)
        except OSError as exc:
            logger.warning("scrollback write failed (%s): %s", self.path, exc)

    def append(self, text: str) -> None:
        self._write(strip_ansi(text) + "\n", "a")

    def clear(self) -> None:
        self._write("", "w")

    def size(self) -> int:
        try:
            return self.path.stat().st_size
        except OSError:
            return 0

    def truncate(self, size: int) -> None:
        try:
            os.truncate(self.path, size)
        except OSError as exc:
            logger.warning("scrollback truncate failed (%s): %s", self.path, exc)

    def read_text(self) -> str:
        try:
            return self.path.read_text(encoding="utf-8")
        except OSError:
            return ""
