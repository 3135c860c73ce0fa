"""Status bar and INPUT-mode variable line rendering.

Both lines are pure functions of a ``StatusView`` snapshot so they can be
rendered and tested without a terminal.
"""

from __future__ import annotations

import re
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from .ansi import clip_ansi_line, display_width
from .theme import HOTKEY_CHIP_COLOR, StatusTheme, background_for

CURSOR_BLOCK = "█"
ELLIPSIS = "..."

_BRACED_RE = re.compile(r"\$\{(\w+)(?::(\w+))?\}")
_PLAIN_RE = re.compile(r"\$(\w+)")


@dataclass(frozen=True)
class VariableChip:
    name: str
    text: str
    hotkey: str | None = None


@dataclass(frozen=True)
class StatusView:
    """Everything the status area shows, captured at render time."""

    activity: str | None = None
    activity_color: str | None = None
    mode: str = "NORMAL"
    buffer: str = ""
    context: str = ""
    variables: tuple[VariableChip, ...] = ()
    active_variable: str | None = None

    @property
    def status_height(self) -> int:
        return 2 if self.mode == "INPUT" else 1


def format_status_template(template: str, formatted: Mapping[str, str]) -> str:
    """Expand ``$VAR``, ``${VAR}`` and ``${VAR:short}`` (first letter, lowercased)."""

    def braced(match: re.Match[str]) -> str:
        name, modifier = match.groups()
        if name not in formatted:
            return match.group(0)
        text = formatted[name]
        if modifier == "short":
            return text[:1].lower()
        return text

    def plain(match: re.Match[str]) -> str:
        name = match.group(1)
        return formatted[name] if name in formatted else match.group(0)

    return _PLAIN_RE.sub(plain, _BRACED_RE.sub(braced, template))


def trading_summary(values: Mapping[str, Any], formatted: Mapping[str, str]) -> str:
    """Default context, e.g. ``5x IWM 1/17 225p @ $0.45``."""
    symbol = values.get("SYMBOL")
    if not symbol or values.get("QTY") is None:
        return ""
    parts = f"{formatted.get('QTY', values['QTY'])}x {formatted.get('SYMBOL', symbol)}"
    if values.get("EXP"):
        parts += f" {formatted.get('EXP', values['EXP'])}"
    if values.get("STRIKE") is not None:
        parts += f" {formatted.get('STRIKE', values['STRIKE'])}"
    if values.get("TYPE"):
        parts += str(values["TYPE"])[:1].lower()
    if values.get("PRICE") is not None:
        parts += f" @ ${formatted.get('PRICE', values['PRICE'])}"
    return parts


def build_context(status_format: str | None, values: Mapping[str, Any], formatted: Mapping[str, str]) -> str:
    if status_format:
        return format_status_template(status_format, formatted)
    return trading_summary(values, formatted)


def format_badge(view: StatusView, theme: StatusTheme) -> str:
    name = view.activity or "none"
    if not theme.colored_badges:
        return f"[{name}]"
    return f"{theme.bold}{background_for(view.activity_color)}{theme.badge_fg} {name} {theme.reset}"


def format_mode(mode: str, theme: StatusTheme) -> str:
    styles = {
        "NORMAL": theme.mode_normal,
        "CMD": theme.mode_cmd,
        "INPUT": theme.mode_input,
        "AGENT": theme.mode_agent,
    }
    style = styles.get(mode, theme.mode_line)
    return f"{style}-- {mode} --{theme.reset}"


def render_status_line(
    view: StatusView,
    theme: StatusTheme,
    cols: int,
    flash: str | None = None,
    spinner: str = "",
) -> str:
    """Left: badge, buffer, block cursor. Right: context (or flash) and mode."""
    left = f"{format_badge(view, theme)} {view.buffer}{CURSOR_BLOCK}"
    right_parts = []
    if spinner:
        right_parts.append(f"{theme.spinner}{spinner}{theme.reset}")
    if flash:
        right_parts.append(f"{theme.flash}{flash}{theme.reset}")
    elif view.context:
        right_parts.append(view.context)
    right_parts.append(format_mode(view.mode, theme))
    right = "  ".join(right_parts)

    left_width = display_width(left)
    right_width = display_width(right)
    if left_width + right_width <= cols:
        return left + " " * (cols - left_width - right_width) + right
    room = cols - right_width - len(ELLIPSIS)
    if room <= 0:
        return clip_ansi_line(right, cols)
    return clip_ansi_line(left, room) + theme.reset + ELLIPSIS + right


def render_variable_line(view: StatusView, theme: StatusTheme, cols: int) -> str:
    chip_bg = background_for(HOTKEY_CHIP_COLOR) if theme.colored_badges else ""
    parts: list[str] = []
    for chip in view.variables:
        label = f"{chip.name}:{chip.text}"
        hotkey = ""
        if chip.hotkey:
            hotkey = f"{chip_bg}{theme.badge_fg}{chip.hotkey}{theme.reset} "
        if chip.name == view.active_variable:
            label = f"{theme.reverse}{label}{theme.reset}" if theme.reverse else f">{label}<"
        parts.append(hotkey + label)
    return clip_ansi_line("  ".join(parts), cols)
