"""Per-mode submission history with arrow-key navigation."""

from __future__ import annotations

from collections.abc import Mapping

MAX_HISTORY = 200


class _ModeHistory:
    def __init__(self) -> None:
        self.entries: list[str] = []
        self.index: int | None = None
        self.draft = ""

    def reset(self) -> None:
        self.index = None
        self.draft = ""


class HistoryManager:
    """Independent histories for CMD, LLM, SHELL and WORD buffers.

    ``navigate_up`` walks toward older entries and remembers the unsent
    draft; ``navigate_down`` walks back and finally returns that draft.
    Both return ``None`` when there is nowhere to go.
    """

    def __init__(self, limit: int = MAX_HISTORY) -> None:
        self._limit = limit
        self._modes: dict[str, _ModeHistory] = {}

    def _mode(self, mode: str) -> _ModeHistory:
        return self._modes.setdefault(mode, _ModeHistory())

    def entries(self, mode: str) -> list[str]:
        return list(self._mode(mode).entries)

    def add(self, mode: str, entry: str) -> None:
        if not entry.strip():
            return
        history = self._mode(mode)
        if history.entries and history.entries[-1] == entry:
            history.reset()
            return
        history.entries.append(entry)
        del history.entries[: -self._limit]
        history.reset()

    def reset_navigation(self, mode: str) -> None:
        self._mode(mode).reset()

    def navigate_up(self, mode: str, current: str) -> str | None:
        history = self._mode(mode)
        if not history.entries:
            return None
        if history.index is None:
            history.draft = current
            history.index = len(history.entries) - 1
        elif history.index > 0:
            history.index -= 1
        else:
            return None
        return history.entries[history.index]

    def navigate_down(self, mode: str) -> str | None:
        history = self._mode(mode)
        if history.index is None:
            return None
        if history.index < len(history.entries) - 1:
            history.index += 1
            return history.entries[history.index]
        draft = history.draft
        history.reset()
        return draft

    def load(self, seeds: Mapping[str, list[str]] | None) -> None:
        """Replace every history with the activity's ``history:`` seeds."""
        self._modes.clear()
        for mode, entries in (seeds or {}).items():
            history = self._mode(mode)
            history.entries = [str(entry) for entry in entries][-self._limit :]
