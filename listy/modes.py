"""Interaction modes and the keystroke state machine.

``ModeMachine`` owns the active mode, the per-mode single-line buffers and
the INPUT edit session. It performs no I/O: ``handle`` returns an action
describing what the controller should do, or ``None`` when the key only
changed machine state (or was ignored).
"""

from __future__ import annotations

import enum
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from typing import Any, Protocol, Union

from .input import KeyEvent, KeyType
from .variables import VariableDefinition, VariableType


class Mode(str, enum.Enum):
    NORMAL = "NORMAL"
    CMD = "CMD"
    INPUT = "INPUT"
    LLM = "LLM"
    SHELL = "SHELL"
    WORD = "WORD"
    VOICE = "VOICE"
    AGENT = "AGENT"


TRIGGERS = {
    ":": Mode.CMD,
    "@": Mode.LLM,
    "!": Mode.SHELL,
    "%": Mode.WORD,
    "#": Mode.VOICE,
}
LINE_MODES = (Mode.CMD, Mode.LLM, Mode.SHELL, Mode.WORD)
STEPPABLE_TYPES = (VariableType.INT, VariableType.FLOAT, VariableType.ENUM, VariableType.DATE)
AGENT_NOTICE = "AGENT mode: Not yet implemented"


class ModeContext(Protocol):
    """Read-only lookups the machine needs from the current activity."""

    def get_definition(self, name: str) -> VariableDefinition | None: ...

    def find_by_hotkey(self, key: str) -> VariableDefinition | None: ...

    def is_command_hotkey(self, key: str) -> bool: ...

    def first_variable(self) -> VariableDefinition | None: ...

    def next_variable(self, name: str) -> VariableDefinition | None: ...

    def prev_variable(self, name: str) -> VariableDefinition | None: ...

    def formatted_value(self, name: str) -> str: ...

    def snapshot_values(self) -> dict[str, Any]: ...


@dataclass
class EditSession:
    """Live INPUT-mode edit. ``snapshot`` is taken once per entry."""

    variable: str
    raw_text: str
    snapshot: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class Submit:
    mode: Mode
    text: str


@dataclass(frozen=True)
class RunHotkey:
    key: str


@dataclass(frozen=True)
class BeginEdit:
    variable: str


@dataclass(frozen=True)
class ApplyEditText:
    variable: str
    text: str


@dataclass(frozen=True)
class StepValue:
    variable: str
    amount: int


@dataclass(frozen=True)
class CommitEdit:
    variable: str


@dataclass(frozen=True)
class DiscardEdit:
    snapshot: Mapping[str, Any]


@dataclass(frozen=True)
class BrowseHistory:
    mode: Mode
    direction: int


@dataclass(frozen=True)
class SwitchActivity:
    offset: int


@dataclass(frozen=True)
class ShowHelp:
    pass


@dataclass(frozen=True)
class StartVoice:
    pass


@dataclass(frozen=True)
class StopVoice:
    pass


@dataclass(frozen=True)
class Notice:
    text: str


Action = Union[
    Submit,
    RunHotkey,
    BeginEdit,
    ApplyEditText,
    StepValue,
    CommitEdit,
    DiscardEdit,
    BrowseHistory,
    SwitchActivity,
    ShowHelp,
    StartVoice,
    StopVoice,
    Notice,
]


class ModeMachine:
    def __init__(self) -> None:
        self.mode = Mode.NORMAL
        self._buffers: dict[Mode, str] = {mode: "" for mode in Mode if mode is not Mode.INPUT}
        self.edit: EditSession | None = None
        self._handlers: dict[Mode, Callable[[KeyEvent, ModeContext], Action | None]] = {
            Mode.NORMAL: self._handle_normal,
            Mode.CMD: self._handle_line,
            Mode.LLM: self._handle_line,
            Mode.SHELL: self._handle_line,
            Mode.WORD: self._handle_line,
            Mode.INPUT: self._handle_input,
            Mode.VOICE: self._handle_voice,
            Mode.AGENT: self._handle_agent,
        }

    # Buffers

    @property
    def buffer(self) -> str:
        """The single live buffer of the active mode."""
        if self.mode is Mode.INPUT:
            return self.edit.raw_text if self.edit is not None else ""
        return self._buffers[self.mode]

    def buffers(self) -> dict[str, str]:
        """All buffers by mode name; at most one is non-empty."""
        result = {mode.value: text for mode, text in self._buffers.items()}
        result[Mode.INPUT.value] = self.edit.raw_text if self.edit is not None else ""
        return result

    def set_buffer(self, text: str) -> None:
        if self.mode is Mode.INPUT:
            if self.edit is not None:
                self.edit.raw_text = text
            return
        self._buffers[self.mode] = text

    def clear_buffer(self) -> None:
        self.set_buffer("")

    def _clear_all(self) -> None:
        for mode in self._buffers:
            self._buffers[mode] = ""
        if self.edit is not None:
            self.edit.raw_text = ""

    # Transitions

    def enter(self, mode: Mode) -> None:
        """Switch modes; every buffer starts empty and leaving INPUT ends the edit."""
        self._clear_all()
        if mode is not Mode.INPUT:
            self.edit = None
        self.mode = mode

    def begin_edit(self, definition: VariableDefinition, context: ModeContext, blank: bool) -> BeginEdit:
        snapshot = self.edit.snapshot if self.edit is not None else context.snapshot_values()
        self.enter(Mode.INPUT)
        text = "" if blank else context.formatted_value(definition.name)
        self.edit = EditSession(variable=definition.name, raw_text=text, snapshot=snapshot)
        return BeginEdit(definition.name)

    def handle(self, key: KeyEvent, context: ModeContext) -> Action | None:
        return self._handlers[self.mode](key, context)

    def _handle_normal(self, key: KeyEvent, context: ModeContext) -> Action | None:
        if key.is_special("escape"):
            self.clear_buffer()
            return None
        if key.is_special("tab"):
            return SwitchActivity(1)
        if key.is_special("shift-tab"):
            return SwitchActivity(-1)
        if key.is_special("enter"):
            text = self.buffer
            self.clear_buffer()
            return Submit(Mode.NORMAL, text) if text else None
        if key.is_special("backspace"):
            self.set_buffer(self.buffer[:-1])
            return None
        if key.type is not KeyType.CHAR:
            return None

        ch = key.key
        if self.buffer:
            self.set_buffer(self.buffer + ch)
            return None
        if ch in TRIGGERS:
            target = TRIGGERS[ch]
            self.enter(target)
            return StartVoice() if target is Mode.VOICE else None
        if ch == "?":
            return ShowHelp()
        if ch == "$":
            first = context.first_variable()
            if first is None:
                return Notice("No variables in this activity")
            return self.begin_edit(first, context, blank=False)
        definition = context.find_by_hotkey(ch)
        if definition is not None:
            return self.begin_edit(definition, context, blank=True)
        if context.is_command_hotkey(ch):
            return RunHotkey(ch)
        self.set_buffer(ch)
        return None

    def _handle_line(self, key: KeyEvent, context: ModeContext) -> Action | None:
        mode = self.mode
        if key.is_special("escape"):
            self.enter(Mode.NORMAL)
            return None
        if key.is_special("enter"):
            text = self.buffer
            if mode is Mode.CMD:
                self.enter(Mode.NORMAL)
            else:
                self.clear_buffer()
            return Submit(mode, text) if text else None
        if key.is_arrow("up"):
            return BrowseHistory(mode, -1)
        if key.is_arrow("down"):
            return BrowseHistory(mode, 1)
        if key.is_special("backspace"):
            self.set_buffer(self.buffer[:-1])
            return None
        if key.type is KeyType.CHAR:
            self.set_buffer(self.buffer + key.key)
        return None

    def _handle_input(self, key: KeyEvent, context: ModeContext) -> Action | None:
        edit = self.edit
        if edit is None:
            self.enter(Mode.NORMAL)
            return None
        name = edit.variable
        if key.is_special("escape"):
            snapshot = edit.snapshot
            self.enter(Mode.NORMAL)
            return DiscardEdit(snapshot)
        if key.is_special("enter"):
            self.enter(Mode.NORMAL)
            return CommitEdit(name)
        if key.is_arrow("left") or key.is_arrow("right"):
            if key.key == "left":
                target = context.prev_variable(name)
            else:
                target = context.next_variable(name)
            if target is None:
                return None
            edit.variable = target.name
            edit.raw_text = context.formatted_value(target.name)
            return BeginEdit(target.name)
        if key.is_arrow("up"):
            return StepValue(name, 1)
        if key.is_arrow("down"):
            return StepValue(name, -1)
        if key.is_char("+") or key.is_char("-"):
            definition = context.get_definition(name)
            if definition is not None and definition.type in STEPPABLE_TYPES:
                return StepValue(name, 1 if key.key == "+" else -1)
        if key.is_special("backspace"):
            if not edit.raw_text:
                return None
            edit.raw_text = edit.raw_text[:-1]
            return ApplyEditText(name, edit.raw_text)
        if key.type is KeyType.CHAR:
            edit.raw_text += key.key
            return ApplyEditText(name, edit.raw_text)
        return None

    def _handle_voice(self, key: KeyEvent, context: ModeContext) -> Action | None:
        if key.is_special("escape"):
            self.enter(Mode.NORMAL)
            return StopVoice()
        return None

    def _handle_agent(self, key: KeyEvent, context: ModeContext) -> Action | None:
        self.enter(Mode.NORMAL)
        if key.is_special("escape"):
            return None
        return Notice(AGENT_NOTICE)
