"""CMD-mode (``:``) command table.

Each handler receives the controller and the whitespace-split arguments and
reports through ``repl.print_block``; only ``:q`` has an effect beyond output.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING

from ..variables import format_value, parse_value

if TYPE_CHECKING:
    from .controller import Repl


@dataclass(frozen=True)
class ColonCommand:
    names: tuple[str, ...]
    usage: str
    summary: str
    handler: Callable[[Repl, list[str]], None]


def _set(repl: Repl, args: list[str]) -> None:
    if len(args) < 2:
        repl.print_block(":set", ["Usage: :set VAR VALUE"])
        return
    name, raw = args[0], " ".join(args[1:])
    definition = repl.store.get_definition(name)
    if definition is None:
        repl.print_block(":set", [f"Unknown variable: {name}"])
        return
    value = parse_value(raw, definition)
    if value is None:
        repl.print_block(":set", [f"Invalid value for {name}"])
        return
    repl.store.set(name, value)
    repl.print_block(":set", [f"{name}={format_value(value, definition)}"])


def _unset(repl: Repl, args: list[str]) -> None:
    if not args:
        repl.print_block(":unset", ["Usage: :unset VAR"])
        return
    name = args[0]
    if not repl.store.reset(name):
        repl.print_block(":unset", [f"Unknown variable: {name}"])
        return
    repl.print_block(":unset", [f"{name} reset to default"])


def _vars(repl: Repl, args: list[str]) -> None:
    lines = repl.store.formatted_display()
    repl.print_block(":vars", lines or ["No variables in this activity"])


def _reload(repl: Repl, args: list[str]) -> None:
    repl.reload_activities()


def _help(repl: Repl, args: list[str]) -> None:
    lines = ["Commands:"]
    for command in COLON_COMMANDS:
        lines.append(f"  {command.usage:<16} {command.summary}")
    repl.print_block(":help", lines)


def _quit(repl: Repl, args: list[str]) -> None:
    repl.stop()


COLON_COMMANDS: tuple[ColonCommand, ...] = (
    ColonCommand(("set",), ":set VAR VALUE", "Set a variable for this session", _set),
    ColonCommand(("unset",), ":unset VAR", "Reset a variable to its default", _unset),
    ColonCommand(("vars",), ":vars", "Show all variable values", _vars),
    ColonCommand(("reload",), ":reload", "Reload activity files", _reload),
    ColonCommand(("help",), ":help", "Show this help", _help),
    ColonCommand(("q", "quit"), ":q, :quit", "Exit", _quit),
)

_BY_NAME = {name: command for command in COLON_COMMANDS for name in command.names}


def find_colon_command(name: str) -> ColonCommand | None:
    return _BY_NAME.get(name)


def run_colon_command(repl: Repl, text: str) -> bool:
    """Run one CMD-mode submission; False when the command is unknown."""
    parts = text.strip().split()
    if not parts:
        return False
    command = find_colon_command(parts[0])
    if command is None:
        repl.print_block(f":{parts[0]}", [f"Unknown command: {parts[0]}"])
        return False
    command.handler(repl, parts[1:])
    return True
