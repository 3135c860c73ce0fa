"""Variable schema entries supplied by activity files."""

from __future__ import annotations

import enum
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any


class VariableType(str, enum.Enum):
    INT = "int"
    FLOAT = "float"
    STRING = "string"
    ENUM = "enum"
    DATE = "date"


VALID_TYPES = frozenset(t.value for t in VariableType)


@dataclass(frozen=True)
class VariableDefinition:
    """Read-only definition of one activity variable.

    ``range`` is ``(min, max)`` for numbers, the member tuple for enums, and
    either ``"YYYY-MM-DD..YYYY-MM-DD"`` or a two-item tuple for dates.
    ``value`` is the persisted literal; ``default`` is used when it is absent.
    """

    name: str
    type: VariableType
    range: Any = None
    step: float | int | None = None
    format: str | None = None
    hotkey: str | None = None
    validate: str | None = None
    default: Any = None
    value: Any = None
    description: str | None = None

    @property
    def effective_step(self) -> float | int:
        return self.step if self.step else 1

    @property
    def numeric_bounds(self) -> tuple[float, float] | None:
        """Return ``(min, max)`` for numeric ranges, else ``None``."""
        if self.type not in (VariableType.INT, VariableType.FLOAT):
            return None
        if not isinstance(self.range, (list, tuple)) or len(self.range) != 2:
            return None
        low, high = self.range
        if not isinstance(low, (int, float)) or not isinstance(high, (int, float)):
            return None
        return (low, high)

    @property
    def members(self) -> tuple[str, ...]:
        """Enum members in declared order (empty for other types)."""
        if self.type is not VariableType.ENUM or not isinstance(self.range, (list, tuple)):
            return ()
        return tuple(str(item) for item in self.range)

    @classmethod
    def from_mapping(cls, name: str, data: Mapping[str, Any]) -> VariableDefinition:
        """Build a definition from a parsed YAML mapping.

        Raises ``ValueError`` for unknown types; other fields are taken as-is.
        """
        raw_type = str(data.get("type", "string"))
        try:
            var_type = VariableType(raw_type)
        except ValueError as exc:
            raise ValueError(f"variable {name}: unknown type {raw_type!r}") from exc
        raw_range = data.get("range")
        if isinstance(raw_range, list):
            raw_range = tuple(raw_range)
        hotkey = data.get("hotkey")
        return cls(
            name=name,
            type=var_type,
            range=raw_range,
            step=data.get("step"),
            format=data.get("format"),
            hotkey=str(hotkey) if hotkey is not None else None,
            validate=data.get("validate"),
            default=data.get("default"),
            value=data.get("value"),
            description=data.get("description"),
        )
