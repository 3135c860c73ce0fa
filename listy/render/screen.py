"""Scroll-region terminal renderer.

Output scrolls inside rows ``1..rows - status_height``; the status bar (and
the INPUT-mode variable line) live below the region and are redrawn after
every print. Printed rows are recorded into the round log so the newest
round can be erased and the rows above it painted back.
"""

from __future__ import annotations

import shutil
import time
from collections.abc import Callable
from dataclasses import dataclass

from ..logs import get_logger
from .ansi import (
    CLEAR_LINE,
    CLEAR_SCREEN,
    CLEAR_SCROLLBACK,
    HIDE_CURSOR,
    RESET,
    RESET_SCROLL_REGION,
    RESTORE_CURSOR,
    SAVE_CURSOR,
    SHOW_CURSOR,
    clip_ansi_line,
    move_to,
    scroll_down,
    set_scroll_region,
    wrap_ansi_line,
)
from .highlight import DEFAULT_STYLE, highlight_command
from .rounds import Round, RoundLog
from .scrollback import ScrollbackBuffer
from .statusbar import StatusView, render_status_line, render_variable_line
from .theme import DEFAULT_THEME, StatusTheme

logger = get_logger(__name__)

SPINNER_FRAMES = "⠋⠙⠹⠸⠼⠴⠦⠧⠇⠏"
SPINNER_INTERVAL_MS = 80
UNDO_LABEL_MAX = 40


@dataclass(frozen=True)
class TerminalGeometry:
    columns: int
    rows: int
    status_height: int

    @property
    def scroll_bottom(self) -> int:
        return max(1, self.rows - self.status_height)


def terminal_size() -> tuple[int, int]:
    size = shutil.get_terminal_size((80, 24))
    return size.columns, size.lines


class TerminalRenderer:
    def __init__(
        self,
        write: Callable[[str], object],
        size_provider: Callable[[], tuple[int, int]] = terminal_size,
        clock: Callable[[], float] = time.monotonic,
        theme: StatusTheme = DEFAULT_THEME,
        ms_per_char: int = 60,
        min_flash_ms: int = 1200,
        highlight: str | None = DEFAULT_STYLE,
        scrollback: ScrollbackBuffer | None = None,
    ) -> None:
        self._write = write
        self._size = size_provider
        self._clock = clock
        self.theme = theme
        self.ms_per_char = ms_per_char
        self.min_flash_ms = min_flash_ms
        self.highlight_style = highlight
        self.scrollback = scrollback
        self.rounds = RoundLog()
        self._status_height = 1
        self._size_seen: tuple[int, int] | None = None
        self._last_status = StatusView()
        self._flash_text: str | None = None
        self._flash_until = 0.0
        self._spinner_active = False
        self._spinner_frame = 0
        self._spinner_due = 0.0

    # Geometry

    def geometry(self, status: StatusView | None = None) -> TerminalGeometry:
        cols, rows = self._size()
        height = status.status_height if status is not None else self._status_height
        return TerminalGeometry(columns=max(1, cols), rows=max(2, rows), status_height=height)

    @property
    def round_count(self) -> int:
        return len(self.rounds)

    def _bottom_anchored(self, height: int) -> list[str]:
        rows = self.rounds.history_rows(limit=height)
        return [""] * (height - len(rows)) + rows

    def _ensure_region(self, status: StatusView) -> str:
        """Return the escapes that move the region to fit ``status``'s height."""
        if self._size_seen is not None and self._size() != self._size_seen:
            return self._relayout(status)
        wanted = status.status_height
        if wanted == self._status_height:
            return ""
        old = self.geometry()
        self._status_height = wanted
        new = self.geometry()
        out = [move_to(old.rows - i) + CLEAR_LINE for i in range(old.status_height)]
        if new.scroll_bottom < old.scroll_bottom:
            # Push history up so the rows taken by the status area keep nothing.
            out.append(move_to(old.scroll_bottom) + "\n" * (old.scroll_bottom - new.scroll_bottom))
            out.append(set_scroll_region(1, new.scroll_bottom))
        else:
            gained = new.scroll_bottom - old.scroll_bottom
            out.append(set_scroll_region(1, new.scroll_bottom))
            out.append(move_to(1) + scroll_down(gained))
            for index, row in enumerate(self._bottom_anchored(new.scroll_bottom)[:gained]):
                out.append(move_to(1 + index) + CLEAR_LINE + row + RESET)
        return "".join(out)

    def _relayout(self, status: StatusView) -> str:
        """Redo the region for the current size and paint history back into it."""
        self._size_seen = self._size()
        self._status_height = status.status_height
        geometry = self.geometry()
        logger.debug("relayout for %dx%d", geometry.columns, geometry.rows)
        out = [HIDE_CURSOR + CLEAR_SCREEN + set_scroll_region(1, geometry.scroll_bottom)]
        for index, row in enumerate(self._bottom_anchored(geometry.scroll_bottom)):
            out.append(move_to(1 + index) + CLEAR_LINE + clip_ansi_line(row, geometry.columns) + RESET)
        out.append(move_to(geometry.scroll_bottom))
        return "".join(out)

    # Lifecycle

    def init_terminal(self, status: StatusView) -> None:
        """Start a session: empty screen and scrollback file, fresh region."""
        if self.scrollback is not None:
            self.scrollback.clear()
        self._size_seen = self._size()
        self._status_height = status.status_height
        bottom = self.geometry().scroll_bottom
        self._write(HIDE_CURSOR + CLEAR_SCREEN + set_scroll_region(1, bottom) + move_to(1, 1))
        self.render_status(status)

    def resize(self, status: StatusView) -> None:
        self._write(self._relayout(status))
        self.render_status(status)

    def reset_terminal(self) -> None:
        self.stop_spinner()
        self._write(RESET + RESET_SCROLL_REGION + CLEAR_SCREEN + SHOW_CURSOR)

    def emergency_cleanup(self) -> None:
        """Best-effort restore before a forced exit; never raises."""
        self._spinner_active = False
        try:
            rows = self.geometry().rows
            self._write(RESET + RESET_SCROLL_REGION + move_to(rows) + "\r\n" + SHOW_CURSOR)
        except OSError as exc:
            logger.debug("emergency cleanup write failed: %s", exc)

    def clear(self, status: StatusView) -> None:
        """Wipe screen, terminal scrollback, round log and the scrollback file."""
        self.rounds.clear()
        self._write(CLEAR_SCROLLBACK + CLEAR_SCREEN)
        self.init_terminal(status)

    # Output

    def format_echo(self, prefix: str, command: str) -> str:
        if self.highlight_style is None:
            return f"{prefix} {command}"
        return f"{prefix} {highlight_command(command, self.highlight_style)}"

    def format_error(self, text: str) -> str:
        if not self.theme.error:
            return text
        return f"{self.theme.error}{text}{self.theme.reset}"

    def print_output(self, text: str, status: StatusView | None = None) -> int:
        """Print ``text`` at the bottom of the scroll region; returns rows used."""
        status = status if status is not None else self._last_status
        out = [self._ensure_region(status)]
        geometry = self.geometry()
        rows: list[str] = []
        for line in text.split("\n"):
            rows.extend(wrap_ansi_line(line, geometry.columns))

        out.append(HIDE_CURSOR + SAVE_CURSOR)
        for row in rows:
            out.append(move_to(geometry.scroll_bottom) + "\n\r" + row + RESET)
        out.append(RESTORE_CURSOR)
        self._write("".join(out))

        self.rounds.row_limit = geometry.rows
        self.rounds.record(rows, text, mark=self._scrollback_mark())
        if self.scrollback is not None:
            self.scrollback.append(text)
        self.render_status(status)
        return len(rows)

    def _scrollback_mark(self) -> int:
        return self.scrollback.size() if self.scrollback is not None else 0

    def start_round(self, command: str) -> Round:
        return self.rounds.start(command, mark=self._scrollback_mark())

    def end_round(self) -> None:
        self.rounds.end()

    def undo_last_round(self, status: StatusView | None = None) -> Round | None:
        """Erase the newest round's rows and paint earlier history back down."""
        status = status if status is not None else self._last_status
        if not self.rounds:
            self.show_flash("No rounds to undo", status)
            return None

        out = [self._ensure_region(status)]
        round_ = self.rounds.pop()
        bottom = self.geometry().scroll_bottom
        erase = min(round_.rows, bottom)
        out.append(HIDE_CURSOR + SAVE_CURSOR)
        for offset in range(erase):
            out.append(move_to(bottom - offset) + CLEAR_LINE)
        out.append(move_to(1) + scroll_down(erase))
        for index, row in enumerate(self._bottom_anchored(bottom)[:erase]):
            out.append(move_to(1 + index) + CLEAR_LINE + row + RESET)
        out.append(RESTORE_CURSOR)
        self._write("".join(out))

        if self.scrollback is not None:
            self.scrollback.truncate(round_.mark)
        label = round_.command or "(empty)"
        if len(label) > UNDO_LABEL_MAX:
            label = label[: UNDO_LABEL_MAX - 3] + "..."
        self.show_flash(f"Undid: {label}", status)
        return round_

    # Status area

    def flash_duration_ms(self, text: str) -> int:
        return max(self.min_flash_ms, len(text) * self.ms_per_char)

    @property
    def flash_text(self) -> str | None:
        return self._flash_text

    def show_flash(self, text: str, status: StatusView | None = None) -> None:
        self._flash_text = text
        self._flash_until = self._clock() + self.flash_duration_ms(text) / 1000.0
        self.render_status(status if status is not None else self._last_status)

    @property
    def spinner_active(self) -> bool:
        return self._spinner_active

    def start_spinner(self) -> None:
        self._spinner_active = True
        self._spinner_frame = 0
        self._spinner_due = self._clock() + SPINNER_INTERVAL_MS / 1000.0

    def stop_spinner(self) -> None:
        self._spinner_active = False

    def tick(self, status: StatusView) -> bool:
        """Advance spinner and expire flash; redraws and returns True on change."""
        now = self._clock()
        changed = False
        if self._flash_text is not None and now >= self._flash_until:
            self._flash_text = None
            changed = True
        if self._spinner_active and now >= self._spinner_due:
            self._spinner_frame = (self._spinner_frame + 1) % len(SPINNER_FRAMES)
            self._spinner_due = now + SPINNER_INTERVAL_MS / 1000.0
            changed = True
        if changed:
            self.render_status(status)
        return changed

    def status_lines(self, status: StatusView) -> list[str]:
        """The status rows top to bottom, without cursor movement."""
        cols = self.geometry(status).columns
        spinner = SPINNER_FRAMES[self._spinner_frame] if self._spinner_active else ""
        lines = []
        if status.status_height == 2:
            lines.append(render_variable_line(status, self.theme, cols))
        lines.append(render_status_line(status, self.theme, cols, flash=self._flash_text, spinner=spinner))
        return lines

    def render_status(self, status: StatusView) -> None:
        self._last_status = status
        out = [self._ensure_region(status)]
        geometry = self.geometry()
        lines = self.status_lines(status)
        out.append(HIDE_CURSOR + SAVE_CURSOR)
        first_row = geometry.rows - len(lines) + 1
        for offset, line in enumerate(lines):
            out.append(move_to(first_row + offset) + CLEAR_LINE + line + RESET)
        out.append(RESTORE_CURSOR)
        self._write("".join(out))
