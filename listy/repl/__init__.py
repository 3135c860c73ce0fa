"""Interactive REPL: the session controller and its CMD-mode commands."""

from .commands import COLON_COMMANDS, ColonCommand, find_colon_command, run_colon_command
from .controller import EXIT_PROMPT, Repl

__all__ = [
    "COLON_COMMANDS",
    "ColonCommand",
    "EXIT_PROMPT",
    "Repl",
    "find_colon_command",
    "run_colon_command",
]
