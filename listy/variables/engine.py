"""Typed parse/format/step/validate operations for activity variables.

Every function is pure and works only on ``(value, definition)``.
Numbers and dates clamp at their range ends; enums wrap around.
"""

from __future__ import annotations

import math
import re
from datetime import date, datetime
from typing import Any

from .dates import add_days, format_date, parse_date, parse_date_range, parse_relative_date
from .definition import VariableDefinition, VariableType
from .printf import sprintf

_INT_RE = re.compile(r"^[+-]?\d+$")
_FLOAT_RE = re.compile(r"^[+-]?(?:\d+(?:\.\d*)?|\.\d+)(?:[eE][+-]?\d+)?$")
FLOAT_DIGITS = 10


def parse_value(text: str, definition: VariableDefinition, today: date | None = None) -> Any:
    """Parse raw editor text into a typed value.

    Returns ``None`` when ``text`` is not acceptable for the type; callers
    treat that as "leave the value unchanged".
    """
    var_type = definition.type
    if var_type is VariableType.STRING:
        return text
    stripped = text.strip()
    if var_type is VariableType.INT:
        return int(stripped) if _INT_RE.match(stripped) else None
    if var_type is VariableType.FLOAT:
        if not _FLOAT_RE.match(stripped):
            return None
        parsed = float(stripped)
        return parsed if math.isfinite(parsed) else None
    if var_type is VariableType.ENUM:
        return text if text in definition.members else None
    if var_type is VariableType.DATE:
        return parse_date(stripped, today)
    return text


def format_value(value: Any, definition: VariableDefinition) -> str:
    if value is None:
        return ""
    var_type = definition.type
    if var_type in (VariableType.INT, VariableType.FLOAT):
        if definition.format:
            return sprintf(definition.format, value)
        return str(value)
    if var_type is VariableType.DATE:
        if isinstance(value, date):
            return format_date(value, definition.format)
        return str(value)
    return str(value)


def _clamp_number(value: float, definition: VariableDefinition) -> float:
    bounds = definition.numeric_bounds
    if bounds is None:
        return value
    low, high = bounds
    return max(low, min(high, value))


def _finish_number(value: float, definition: VariableDefinition) -> int | float:
    if definition.type is VariableType.INT:
        return int(math.floor(value))
    return round(float(value), FLOAT_DIGITS)


def _clamp_date(value: date, definition: VariableDefinition) -> date:
    bounds = parse_date_range(definition.range)
    if bounds is None:
        return value
    low, high = bounds
    if value < low:
        return low
    if value > high:
        return high
    return value


def _step(value: Any, definition: VariableDefinition, amount: int) -> Any:
    delta = definition.effective_step * amount
    var_type = definition.type
    if var_type in (VariableType.INT, VariableType.FLOAT):
        current = value if isinstance(value, (int, float)) else 0
        return _finish_number(_clamp_number(current + delta, definition), definition)
    if var_type is VariableType.ENUM:
        members = definition.members
        if not members:
            return value
        try:
            idx = members.index(str(value))
        except ValueError:
            return members[0] if amount > 0 else members[-1]
        return members[(idx + amount) % len(members)]
    if var_type is VariableType.DATE:
        current = value if isinstance(value, date) else date.today()
        return _clamp_date(add_days(current, delta), definition)
    return value


def increment_value(value: Any, definition: VariableDefinition, amount: int = 1) -> Any:
    """Step forward by ``amount × step`` (enum: ``amount`` members)."""
    return _step(value, definition, amount)


def decrement_value(value: Any, definition: VariableDefinition, amount: int = 1) -> Any:
    return _step(value, definition, -amount)


def is_valid_value(value: Any, definition: VariableDefinition) -> bool:
    """Check type and range membership; used by validation hooks only."""
    if value is None:
        return False
    var_type = definition.type
    if var_type in (VariableType.INT, VariableType.FLOAT):
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            return False
        if isinstance(value, float) and not math.isfinite(value):
            return False
        if var_type is VariableType.INT and not isinstance(value, int):
            return False
        bounds = definition.numeric_bounds
        return bounds is None or bounds[0] <= value <= bounds[1]
    if var_type is VariableType.STRING:
        if not isinstance(value, str):
            return False
        if definition.validate:
            try:
                return re.fullmatch(definition.validate, value) is not None
            except re.error:
                return True
        return True
    if var_type is VariableType.ENUM:
        return str(value) in definition.members
    if var_type is VariableType.DATE:
        if not isinstance(value, date):
            return False
        bounds = parse_date_range(definition.range)
        return bounds is None or bounds[0] <= value <= bounds[1]
    return True


def coerce_literal(raw: Any, definition: VariableDefinition, today: date | None = None) -> Any:
    """Convert a YAML scalar into the variable's runtime type.

    Unlike ``parse_value`` this is lenient: unusable literals fall back to the
    type default instead of being rejected.
    """
    if raw is None:
        return type_default(definition, today)
    var_type = definition.type
    try:
        if var_type is VariableType.INT:
            return int(math.floor(float(raw)))
        if var_type is VariableType.FLOAT:
            return float(raw)
    except (TypeError, ValueError):
        return type_default(definition, today)
    if var_type is VariableType.DATE:
        if isinstance(raw, datetime):
            return raw.date()
        if isinstance(raw, date):
            return raw
        text = str(raw)
        parsed = parse_date(text, today) or parse_relative_date(text, today)
        return parsed if parsed is not None else type_default(definition, today)
    return str(raw)


def type_default(definition: VariableDefinition, today: date | None = None) -> Any:
    var_type = definition.type
    if var_type is VariableType.INT:
        return 0
    if var_type is VariableType.FLOAT:
        return 0.0
    if var_type is VariableType.ENUM:
        members = definition.members
        return members[0] if members else ""
    if var_type is VariableType.DATE:
        return today or date.today()
    return ""


def default_value(definition: VariableDefinition, today: date | None = None) -> Any:
    """Initial runtime value: persisted ``value``, then ``default``, then type default."""
    if definition.value is not None:
        return coerce_literal(definition.value, definition, today)
    if definition.default is not None:
        return coerce_literal(definition.default, definition, today)
    return type_default(definition, today)
