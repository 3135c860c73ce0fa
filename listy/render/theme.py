"""Status-bar ANSI palette and activity badge colours.

Only chrome is themed here; echoed command lines are coloured separately by
the Pygments style named in config.
"""

from __future__ import annotations

import re
from dataclasses import dataclass

NAMED_BACKGROUNDS = {
    "black": "\033[40m",
    "red": "\033[41m",
    "green": "\033[42m",
    "yellow": "\033[43m",
    "blue": "\033[44m",
    "magenta": "\033[45m",
    "cyan": "\033[46m",
    "white": "\033[47m",
    "brightBlack": "\033[100m",
    "brightRed": "\033[101m",
    "brightGreen": "\033[102m",
    "brightYellow": "\033[103m",
    "brightBlue": "\033[104m",
    "brightMagenta": "\033[105m",
    "brightCyan": "\033[106m",
    "brightWhite": "\033[107m",
}

DEFAULT_ACTIVITY_COLORS = (
    "#005f73",
    "#0a9396",
    "#94d2bd",
    "#e9d8a6",
    "#ee9b00",
    "#ca6702",
    "#bb3e03",
    "#ae2012",
    "#9b2226",
    "#001219",
)
HOTKEY_CHIP_COLOR = "#3a86ff"

_HEX_RE = re.compile(r"^#?([0-9a-fA-F]{6})$")


def background_for(color: str | None) -> str:
    """Return the SGR background for a named or ``#rrggbb`` colour (blue fallback)."""
    if not color:
        return NAMED_BACKGROUNDS["blue"]
    match = _HEX_RE.match(color)
    if match:
        value = match.group(1)
        r, g, b = (int(value[i : i + 2], 16) for i in (0, 2, 4))
        return f"\033[48;2;{r};{g};{b}m"
    return NAMED_BACKGROUNDS.get(color, NAMED_BACKGROUNDS["blue"])


def activity_color(color: str | None, index: int) -> str:
    """Explicit activity colour, else a palette entry picked by sorted index."""
    if color:
        return color
    return DEFAULT_ACTIVITY_COLORS[index % len(DEFAULT_ACTIVITY_COLORS)]


@dataclass(frozen=True)
class StatusTheme:
    """Semantic ANSI palette used by the status renderer."""

    name: str
    reset: str
    bold: str
    reverse: str
    badge_fg: str
    mode_normal: str
    mode_cmd: str
    mode_input: str
    mode_agent: str
    mode_line: str
    flash: str
    spinner: str
    error: str
    colored_badges: bool = True


DEFAULT_THEME = StatusTheme(
    name="default",
    reset="\033[0m",
    bold="\033[1m",
    reverse="\033[7m",
    badge_fg="\033[37m",
    mode_normal="\033[2m",
    mode_cmd="\033[36m",
    mode_input="\033[33m",
    mode_agent="\033[35m",
    mode_line="\033[32m",
    flash="\033[1;33m",
    spinner="\033[36m",
    error="\033[31m",
)

PLAIN_THEME = StatusTheme(
    name="plain",
    reset="",
    bold="",
    reverse="",
    badge_fg="",
    mode_normal="",
    mode_cmd="",
    mode_input="",
    mode_agent="",
    mode_line="",
    flash="",
    spinner="",
    error="",
    colored_badges=False,
)


def resolve_theme(no_color: bool) -> StatusTheme:
    return PLAIN_THEME if no_color else DEFAULT_THEME
