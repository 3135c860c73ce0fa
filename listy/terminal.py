"""Terminal control helpers for the REPL session.

Owns the raw-mode lifecycle and unbuffered writes to the output fd. The
screen itself stays on the main buffer so output remains in the terminal's
own scrollback.
"""

from __future__ import annotations

import contextlib
import os
import termios
import tty


class TerminalController:
    """Manage raw-mode transitions for a tty pair of file descriptors."""

    def __init__(self, stdin_fd: int, stdout_fd: int) -> None:
        """Capture tty state; raises ``termios.error`` when stdin is not a tty."""
        self.stdin_fd = stdin_fd
        self.stdout_fd = stdout_fd
        self._saved_tty_state = termios.tcgetattr(stdin_fd)
        self._raw = False

    @property
    def is_raw(self) -> bool:
        return self._raw

    def enable_raw_mode(self) -> None:
        tty.setraw(self.stdin_fd, termios.TCSAFLUSH)
        self._raw = True

    def disable_raw_mode(self) -> None:
        termios.tcsetattr(self.stdin_fd, termios.TCSAFLUSH, self._saved_tty_state)
        self._raw = False

    def write(self, text: str) -> None:
        data = text.encode("utf-8", errors="replace")
        while data:
            try:
                written = os.write(self.stdout_fd, data)
            except InterruptedError:
                continue
            data = data[written:]

    @contextlib.contextmanager
    def raw_mode(self):
        """Context manager that brackets the session with raw enter/exit calls."""
        try:
            self.enable_raw_mode()
            yield
        finally:
            self.disable_raw_mode()

    @contextlib.contextmanager
    def suspended(self):
        """Hand the tty back in cooked mode while an interactive child runs."""
        was_raw = self._raw
        if was_raw:
            self.disable_raw_mode()
        try:
            yield
        finally:
            if was_raw:
                self.enable_raw_mode()
