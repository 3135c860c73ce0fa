"""Variable type engine: definitions, typed operations, and templates."""

from .definition import VALID_TYPES, VariableDefinition, VariableType
from .engine import (
    coerce_literal,
    decrement_value,
    default_value,
    format_value,
    increment_value,
    is_valid_value,
    parse_value,
    type_default,
)
from .template import extract_variables, substitute

__all__ = [
    "VALID_TYPES",
    "VariableDefinition",
    "VariableType",
    "coerce_literal",
    "decrement_value",
    "default_value",
    "extract_variables",
    "format_value",
    "increment_value",
    "is_valid_value",
    "parse_value",
    "substitute",
    "type_default",
]
