"""Activity YAML loading, validation, and value write-back.

Files are read with ruamel.yaml in round-trip mode so that committing edited
variable values only touches their ``value:`` fields and keeps comments,
key order, and quoting of everything else.
"""

from __future__ import annotations

import math
import re
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import date
from pathlib import Path
from typing import Any

from ruamel.yaml import YAML
from ruamel.yaml.error import YAMLError

from .errors import ActivityError, PersistError
from .logs import get_logger
from .store import Activity, CommandDefinition, Skill
from .variables import VariableDefinition, VariableType

logger = get_logger(__name__)

ACTIVITY_SUFFIXES = (".yml", ".yaml")
HISTORY_MODES = ("CMD", "LLM", "SHELL", "WORD")


@dataclass
class LoadResult:
    activities: list[Activity] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)


def _yaml() -> YAML:
    yaml = YAML()
    yaml.preserve_quotes = True
    return yaml


def _validate_variable(name: str, data: object) -> list[str]:
    prefix = f"variable {name!r}"
    if not isinstance(data, Mapping):
        return [f"{prefix}: must be a mapping"]
    errors: list[str] = []
    var_type = data.get("type")
    valid = [t.value for t in VariableType]
    if var_type is None:
        errors.append(f"{prefix}: missing 'type'")
    elif str(var_type) not in valid:
        errors.append(f"{prefix}: type must be one of {', '.join(valid)}")

    raw_range = data.get("range")
    if raw_range is not None:
        if var_type in ("int", "float"):
            if not isinstance(raw_range, list) or len(raw_range) != 2:
                errors.append(f"{prefix}: range for {var_type} must be [min, max]")
        elif var_type == "enum":
            if not isinstance(raw_range, list) or not raw_range:
                errors.append(f"{prefix}: range for enum must be a non-empty list")
        elif var_type == "date":
            if not (isinstance(raw_range, str) and ".." in raw_range) and not (
                isinstance(raw_range, list) and len(raw_range) == 2
            ):
                errors.append(f"{prefix}: range for date must be 'YYYY-MM-DD..YYYY-MM-DD'")

    step = data.get("step")
    if step is not None and (isinstance(step, bool) or not isinstance(step, (int, float)) or step <= 0):
        errors.append(f"{prefix}: step must be a positive number")

    hotkey = data.get("hotkey")
    if hotkey is not None and len(str(hotkey)) != 1:
        errors.append(f"{prefix}: hotkey must be a single character")

    validate = data.get("validate")
    if validate is not None:
        try:
            re.compile(str(validate))
        except re.error as exc:
            errors.append(f"{prefix}: validate is not a valid regex: {exc}")
    return errors


def _string_map(data: object, label: str) -> dict[str, str]:
    if data is None:
        return {}
    if not isinstance(data, Mapping):
        raise ValueError(f"'{label}' must be a mapping")
    return {str(key): str(value) for key, value in data.items()}


def _history(data: object) -> dict[str, list[str]]:
    if not isinstance(data, Mapping):
        return {}
    history: dict[str, list[str]] = {}
    for mode, entries in data.items():
        mode_name = str(mode).upper()
        if mode_name in HISTORY_MODES and isinstance(entries, list):
            history[mode_name] = [str(entry) for entry in entries]
    return history


def _skills(data: object) -> list[Skill]:
    if data is None:
        return []
    if not isinstance(data, list):
        raise ValueError("'skills' must be a list")
    skills: list[Skill] = []
    for index, item in enumerate(data):
        if not isinstance(item, Mapping) or not item.get("pattern") or not item.get("llm_prepend"):
            raise ValueError(f"skills[{index}] needs 'pattern' and 'llm_prepend'")
        try:
            re.compile(str(item["pattern"]))
        except re.error as exc:
            raise ValueError(f"skills[{index}]: pattern is not a valid regex: {exc}") from exc
        skills.append(Skill(pattern=str(item["pattern"]), llm_prepend=str(item["llm_prepend"])))
    return skills


def activity_from_mapping(data: object, path: Path | None = None) -> Activity:
    """Validate a parsed YAML document and build an ``Activity``.

    Raises ``ActivityError`` listing every problem found.
    """
    if not isinstance(data, Mapping):
        raise ActivityError("top level must be a mapping", path)
    name = data.get("name")
    if not isinstance(name, str) or not name.strip():
        raise ActivityError("missing 'name' (string)", path)

    errors: list[str] = []
    raw_variables = data.get("variables") or {}
    if not isinstance(raw_variables, Mapping):
        errors.append("'variables' must be a mapping")
        raw_variables = {}
    for var_name, var_data in raw_variables.items():
        errors.extend(_validate_variable(str(var_name), var_data))

    commands: dict[str, CommandDefinition] = {}
    raw_commands = data.get("commands") or {}
    if not isinstance(raw_commands, Mapping):
        errors.append("'commands' must be a mapping")
        raw_commands = {}
    for key, raw in raw_commands.items():
        try:
            commands[str(key)] = CommandDefinition.from_raw(str(key), raw)
        except ValueError as exc:
            errors.append(str(exc))

    try:
        aliases = _string_map(data.get("aliases"), "aliases")
        env = _string_map(data.get("env"), "env")
        skills = _skills(data.get("skills"))
    except ValueError as exc:
        errors.append(str(exc))
        aliases, env, skills = {}, {}, []

    if errors:
        raise ActivityError("; ".join(errors), path)

    variables = {
        str(var_name): VariableDefinition.from_mapping(str(var_name), var_data)
        for var_name, var_data in raw_variables.items()
    }
    status_format = data.get("status_format", data.get("statusFormat"))
    color = data.get("color")
    llm_context = data.get("llm_context")
    return Activity(
        name=name.strip(),
        variables=variables,
        commands=commands,
        aliases=aliases,
        env=env,
        history=_history(data.get("history")),
        skills=skills,
        description=str(data.get("description") or ""),
        color=str(color) if color is not None else None,
        status_format=str(status_format) if status_format is not None else None,
        llm_context=str(llm_context) if llm_context is not None else None,
        path=path,
    )


def load_activity_file(path: Path) -> Activity:
    try:
        with path.open("r", encoding="utf-8") as handle:
            data = _yaml().load(handle)
    except (OSError, YAMLError) as exc:
        raise ActivityError(f"cannot read: {exc}", path) from exc
    return activity_from_mapping(data, path)


def activity_files(directory: Path) -> list[Path]:
    try:
        entries = sorted(directory.iterdir())
    except OSError:
        return []
    return [entry for entry in entries if entry.suffix in ACTIVITY_SUFFIXES and entry.is_file()]


def load_activities(directory: Path) -> LoadResult:
    """Load every activity file in ``directory``; bad files are reported, not fatal."""
    result = LoadResult()
    try:
        directory.mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        result.errors.append(f"cannot create {directory}: {exc}")
        return result

    seen: set[str] = set()
    for path in activity_files(directory):
        try:
            activity = load_activity_file(path)
        except ActivityError as exc:
            logger.warning("skipping activity: %s", exc)
            result.errors.append(str(exc))
            continue
        if activity.name in seen:
            result.errors.append(f"{path.name}: duplicate activity name {activity.name!r}")
            continue
        seen.add(activity.name)
        result.activities.append(activity)

    result.activities.sort(key=lambda activity: activity.name)
    logger.info("loaded %d activities from %s", len(result.activities), directory)
    return result


def _yaml_scalar(value: Any, definition: VariableDefinition) -> Any:
    """Convert a runtime value into what gets written under ``value:``."""
    if isinstance(value, date):
        return value.isoformat()
    if definition.type is VariableType.INT and isinstance(value, (int, float)):
        return int(value)
    if definition.type is VariableType.FLOAT and isinstance(value, (int, float)):
        return float(value) if math.isfinite(value) else None
    return str(value)


def persist_variable_values(activity: Activity, values: Mapping[str, Any]) -> None:
    """Write ``values`` into the activity file's ``variables.*.value`` fields.

    Values that are ``None`` drop their ``value:`` key. Raises ``PersistError``.
    """
    path = activity.path
    if path is None:
        raise PersistError(f"activity {activity.name!r} has no file")
    yaml = _yaml()
    try:
        with path.open("r", encoding="utf-8") as handle:
            document = yaml.load(handle)
    except (OSError, YAMLError) as exc:
        raise PersistError(f"cannot read {path.name}: {exc}") from exc

    variables = document.get("variables") if isinstance(document, Mapping) else None
    if not isinstance(variables, Mapping):
        raise PersistError(f"{path.name} has no 'variables' mapping")

    for name, definition in activity.variables.items():
        entry = variables.get(name)
        if not isinstance(entry, dict) or name not in values:
            continue
        value = values[name]
        scalar = None if value is None else _yaml_scalar(value, definition)
        if scalar is None:
            entry.pop("value", None)
        else:
            entry["value"] = scalar

    try:
        with path.open("w", encoding="utf-8") as handle:
            yaml.dump(document, handle)
    except (OSError, YAMLError) as exc:
        raise PersistError(f"cannot write {path.name}: {exc}") from exc
    logger.info("persisted %d values to %s", len(values), path)
