"""Activity model and the in-memory variable store.

The store owns the runtime value of every variable, keyed by activity and
variable name. It is an explicit object handed to the REPL, never a module
global. Persistence and YAML parsing live in ``listy.activities``.
"""

from __future__ import annotations

import re
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from datetime import date
from pathlib import Path
from typing import Any

from .variables import VariableDefinition, default_value, format_value


@dataclass(frozen=True)
class CommandDefinition:
    """One entry of an activity's ``commands`` mapping."""

    key: str
    shell: str
    description: str | None = None
    word: str | None = None
    voice: str | None = None
    interactive: bool = False
    llm_prepend: str | None = None

    @classmethod
    def from_raw(cls, key: str, raw: object) -> CommandDefinition:
        """Accept either a bare shell string or a mapping with ``shell``."""
        if isinstance(raw, str):
            return cls(key=key, shell=raw)
        if not isinstance(raw, Mapping):
            raise ValueError(f"command {key!r} must be a string or a mapping with 'shell'")
        shell = raw.get("shell")
        if not isinstance(shell, str) or not shell:
            raise ValueError(f"command {key!r} needs a 'shell' string")

        def optional(name: str) -> str | None:
            value = raw.get(name)
            return str(value) if value is not None else None

        return cls(
            key=key,
            shell=str(shell),
            description=optional("description"),
            word=optional("word"),
            voice=optional("voice"),
            interactive=bool(raw.get("interactive", False)),
            llm_prepend=optional("llm_prepend"),
        )


@dataclass(frozen=True)
class Skill:
    """LLM context snippet added when ``pattern`` matches the prompt."""

    pattern: str
    llm_prepend: str

    def matches(self, prompt: str) -> bool:
        try:
            return re.search(self.pattern, prompt, re.IGNORECASE) is not None
        except re.error:
            return False


@dataclass
class Activity:
    name: str
    variables: dict[str, VariableDefinition] = field(default_factory=dict)
    commands: dict[str, CommandDefinition] = field(default_factory=dict)
    aliases: dict[str, str] = field(default_factory=dict)
    env: dict[str, str] = field(default_factory=dict)
    history: dict[str, list[str]] = field(default_factory=dict)
    skills: list[Skill] = field(default_factory=list)
    description: str = ""
    color: str | None = None
    status_format: str | None = None
    llm_context: str | None = None
    path: Path | None = None


class ActivityStore:
    """Runtime variable values for every loaded activity.

    Accessors operate on the current activity. Variable traversal follows
    declared order and wraps at both ends; activities are ordered by name.
    """

    def __init__(self, activities: Iterable[Activity] = (), today: date | None = None) -> None:
        self._activities: dict[str, Activity] = {}
        self._values: dict[str, dict[str, Any]] = {}
        self._today = today
        self.current_name: str | None = None
        for activity in activities:
            self.register(activity)

    def register(self, activity: Activity) -> None:
        self._activities[activity.name] = activity
        self._values[activity.name] = {
            name: default_value(definition, self._today) for name, definition in activity.variables.items()
        }
        if self.current_name is None:
            self.current_name = self.activity_names()[0]

    def clear(self) -> None:
        self._activities.clear()
        self._values.clear()
        self.current_name = None

    # Activities

    def activity_names(self) -> list[str]:
        return sorted(self._activities)

    def activity_index(self, name: str | None) -> int:
        names = self.activity_names()
        return names.index(name) if name in names else 0

    def set_current(self, name: str) -> bool:
        if name not in self._activities:
            return False
        self.current_name = name
        return True

    @property
    def current(self) -> Activity | None:
        if self.current_name is None:
            return None
        return self._activities.get(self.current_name)

    def _adjacent_activity(self, offset: int) -> str | None:
        names = self.activity_names()
        if not names:
            return None
        idx = names.index(self.current_name) if self.current_name in names else 0
        return names[(idx + offset) % len(names)]

    def next_activity(self) -> str | None:
        return self._adjacent_activity(1)

    def prev_activity(self) -> str | None:
        return self._adjacent_activity(-1)

    # Variables

    def definitions(self) -> dict[str, VariableDefinition]:
        activity = self.current
        return dict(activity.variables) if activity is not None else {}

    def get_definition(self, name: str) -> VariableDefinition | None:
        activity = self.current
        return activity.variables.get(name) if activity is not None else None

    def get(self, name: str) -> Any:
        if self.current_name is None:
            return None
        return self._values.get(self.current_name, {}).get(name)

    def set(self, name: str, value: Any) -> bool:
        if self.get_definition(name) is None:
            return False
        self._values[self.current_name][name] = value
        return True

    def reset(self, name: str) -> bool:
        """Return ``name`` to its declared default."""
        definition = self.get_definition(name)
        if definition is None:
            return False
        self._values[self.current_name][name] = default_value(definition, self._today)
        return True

    def values(self) -> dict[str, Any]:
        if self.current_name is None:
            return {}
        return dict(self._values.get(self.current_name, {}))

    def formatted_values(self) -> dict[str, str]:
        values = self.values()
        return {name: format_value(values.get(name), definition) for name, definition in self.definitions().items()}

    def formatted_display(self) -> list[str]:
        return [f"{name}:{text}" for name, text in self.formatted_values().items()]

    def first_variable(self) -> VariableDefinition | None:
        definitions = list(self.definitions().values())
        return definitions[0] if definitions else None

    def _adjacent_variable(self, name: str, offset: int) -> VariableDefinition | None:
        definitions = list(self.definitions().values())
        names = [definition.name for definition in definitions]
        if name not in names:
            return None
        return definitions[(names.index(name) + offset) % len(definitions)]

    def next_variable(self, name: str) -> VariableDefinition | None:
        return self._adjacent_variable(name, 1)

    def prev_variable(self, name: str) -> VariableDefinition | None:
        return self._adjacent_variable(name, -1)

    def find_by_hotkey(self, key: str) -> VariableDefinition | None:
        for definition in self.definitions().values():
            if definition.hotkey == key:
                return definition
        return None

    def snapshot_values(self) -> dict[str, Any]:
        return self.values()

    def restore_values(self, snapshot: Mapping[str, Any]) -> None:
        if self.current_name is None:
            return
        current = self._values.setdefault(self.current_name, {})
        current.clear()
        current.update(snapshot)

    # Commands

    def command_keys(self) -> list[str]:
        activity = self.current
        if activity is None:
            return []
        return list(activity.commands) + [alias for alias in activity.aliases if alias not in activity.commands]

    def find_command(self, key: str) -> CommandDefinition | None:
        """Resolve ``key`` directly or through the activity's aliases."""
        activity = self.current
        if activity is None:
            return None
        command = activity.commands.get(key)
        if command is not None:
            return command
        target = activity.aliases.get(key)
        return activity.commands.get(target) if target is not None else None

    def match_command_prefix(self, buffer: str) -> tuple[CommandDefinition, str] | None:
        """Split ``buffer`` into the longest command key and trailing input."""
        for length in range(len(buffer), 0, -1):
            command = self.find_command(buffer[:length])
            if command is not None:
                return command, buffer[length:]
        return None

    def find_command_by_word(self, word: str) -> CommandDefinition | None:
        wanted = word.strip().lower()
        activity = self.current
        if activity is None or not wanted:
            return None
        for command in activity.commands.values():
            if command.word and command.word.lower() == wanted:
                return command
        return None

    def find_command_by_voice(self, text: str) -> CommandDefinition | None:
        """First command whose ``voice`` regex matches ``text`` wins."""
        activity = self.current
        if activity is None:
            return None
        for command in activity.commands.values():
            if not command.voice:
                continue
            try:
                if re.search(command.voice, text, re.IGNORECASE):
                    return command
            except re.error:
                continue
        return None
