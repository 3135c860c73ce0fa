"""Echo-line highlighting and child-output sanitizing.

Echoed command lines are coloured with Pygments' ``BashLexer``. Child output
keeps its SGR colours but loses cursor-movement sequences and control bytes
that would corrupt the scroll region.
"""

from __future__ import annotations

import re

from pygments import highlight as pygments_highlight
from pygments.formatters import Terminal256Formatter
from pygments.lexers import BashLexer
from pygments.styles import get_style_by_name
from pygments.util import ClassNotFound

DEFAULT_STYLE = "monokai"

_ESCAPE_RE = re.compile(r"\x1b\][^\x07\x1b]*(?:\x07|\x1b\\)?|\x1b\[[0-9;?]*[ -/]*[@-~]|\x1b[@-Z\\-_]")
_CONTROL_RE = re.compile(r"[\x00-\x08\x0b\x0c\x0e-\x1a\x1c-\x1f\x7f]|\x1b(?!\[)")

_LEXER = BashLexer()
_FORMATTERS: dict[str, Terminal256Formatter] = {}


def _normalize_style(style: str) -> str:
    try:
        get_style_by_name(style)
    except ClassNotFound:
        return DEFAULT_STYLE
    return style


def _formatter_for_style(style: str) -> Terminal256Formatter:
    formatter = _FORMATTERS.get(style)
    if formatter is None:
        formatter = Terminal256Formatter(style=_normalize_style(style))
        _FORMATTERS[style] = formatter
    return formatter


def highlight_command(command: str, style: str = DEFAULT_STYLE) -> str:
    """Return ``command`` with shell syntax colouring and no trailing newline."""
    if not command:
        return command
    return pygments_highlight(command, _LEXER, _formatter_for_style(style)).rstrip("\n")


def sanitize_output(text: str) -> str:
    """Keep printable text and SGR colours from one line of child output."""
    if "\r" in text:
        # Progress-style redraws: only the last carriage-return segment is visible.
        text = text.rstrip("\r").rsplit("\r", 1)[-1]

    def keep_sgr(match: re.Match[str]) -> str:
        seq = match.group(0)
        return seq if seq.startswith("\x1b[") and seq.endswith("m") else ""

    text = _ESCAPE_RE.sub(keep_sgr, text)
    return _CONTROL_RE.sub("", text)
