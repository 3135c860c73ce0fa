"""Terminal rendering: scroll region, status bar, rounds and highlighting."""

from .rounds import Round, RoundLog
from .screen import TerminalGeometry, TerminalRenderer, terminal_size
from .scrollback import ScrollbackBuffer
from .statusbar import StatusView, VariableChip, build_context
from .theme import DEFAULT_THEME, PLAIN_THEME, StatusTheme, activity_color, resolve_theme

__all__ = [
    "DEFAULT_THEME",
    "PLAIN_THEME",
    "Round",
    "RoundLog",
    "ScrollbackBuffer",
    "StatusTheme",
    "StatusView",
    "TerminalGeometry",
    "TerminalRenderer",
    "VariableChip",
    "activity_color",
    "build_context",
    "resolve_theme",
    "terminal_size",
]
