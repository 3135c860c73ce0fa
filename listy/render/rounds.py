"""Round log: the undoable unit of scroll-region output.

Each round keeps the terminal rows it printed (already wrapped to the width
at print time), so the log knows both how many rows to erase on undo and
which earlier rows to paint back. Only the newest ``row_limit`` rows of a
round are kept; older ones are counted but can never be repainted anyway.
"""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass
class Round:
    command: str
    lines: list[str] = field(default_factory=list)
    text: list[str] = field(default_factory=list)
    dropped: int = 0
    # Scrollback file size when the round began.
    mark: int = 0

    @property
    def rows(self) -> int:
        return self.dropped + len(self.lines)

    def trim(self, limit: int) -> None:
        excess = len(self.lines) - limit
        if excess > 0:
            del self.lines[:excess]
            self.dropped += excess
        del self.text[:-limit]


class RoundLog:
    """Append-only list of rounds; only the newest may be removed."""

    def __init__(self, row_limit: int | None = None) -> None:
        self._rounds: list[Round] = []
        self._open: Round | None = None
        self.row_limit = row_limit

    def __len__(self) -> int:
        return len(self._rounds)

    @property
    def rounds(self) -> list[Round]:
        return list(self._rounds)

    @property
    def is_open(self) -> bool:
        return self._open is not None

    @property
    def total_rows(self) -> int:
        return sum(round_.rows for round_ in self._rounds)

    def start(self, command: str, mark: int = 0) -> Round:
        round_ = Round(command, mark=mark)
        self._rounds.append(round_)
        self._open = round_
        return round_

    def end(self) -> None:
        self._open = None

    def record(self, rows: list[str], text: str | None = None, mark: int = 0) -> Round:
        """Attach printed rows (and their unwrapped text) to the open round.

        Output printed outside any round becomes a round of its own, starting
        at ``mark``.
        """
        target = self._open
        if target is None:
            target = Round("", mark=mark)
            self._rounds.append(target)
        target.lines.extend(rows)
        if text is not None:
            target.text.append(text)
        if self.row_limit is not None:
            target.trim(max(1, self.row_limit))
        return target

    def pop(self) -> Round | None:
        if not self._rounds:
            return None
        round_ = self._rounds.pop()
        if round_ is self._open:
            self._open = None
        return round_

    def history_rows(self, limit: int | None = None) -> list[str]:
        """The newest ``limit`` rows across all rounds, oldest first."""
        rows: list[str] = []
        for round_ in reversed(self._rounds):
            rows[:0] = round_.lines
            if limit is not None and len(rows) >= limit:
                return rows[-limit:]
        return rows

    def history_text(self) -> list[str]:
        return [text for round_ in self._rounds for text in round_.text]

    def clear(self) -> None:
        self._rounds.clear()
        self._open = None
