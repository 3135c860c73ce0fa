"""Shell-template variable substitution.

Supports ``$VAR``, ``${VAR}``, ``$VAR:type:format``, ``${VAR:type:format}``
and ``$INPUT`` / ``${INPUT}``. Unknown names are left untouched.
"""

from __future__ import annotations

import re
from collections.abc import Mapping
from datetime import date
from typing import Any

from .dates import format_date, parse_date

_INPUT_RE = re.compile(r"\$INPUT\b|\$\{INPUT\}")
_TYPED_RE = re.compile(r"\$([A-Z_][A-Z0-9_]*):(\w+):([^\s\"']+)")
_TYPED_BRACED_RE = re.compile(r"\$\{([A-Z_][A-Z0-9_]*):(\w+):([^}]+)\}")
_BRACED_RE = re.compile(r"\$\{([A-Z_][A-Z0-9_]*)\}")
_PLAIN_RE = re.compile(r"\$([A-Z_][A-Z0-9_]*)\b")


def format_with_spec(value: Any, type_name: str, fmt: str) -> str:
    """Render ``value`` with an inline ``:type:format`` override."""
    if value is None or value == "":
        return ""
    if type_name == "date":
        parsed = value if isinstance(value, date) else parse_date(str(value))
        if parsed is not None:
            return format_date(parsed, fmt)
    return str(value)


def substitute(
    template: str,
    formatted: Mapping[str, str],
    user_input: str = "",
    raw_values: Mapping[str, Any] | None = None,
) -> str:
    """Expand ``template`` with pre-formatted values.

    ``raw_values`` feeds the ``:type:format`` forms so dates can be
    re-formatted from their typed value; it defaults to ``formatted``.
    """
    raw = raw_values if raw_values is not None else formatted
    result = _INPUT_RE.sub(lambda _m: user_input, template)

    def typed(match: re.Match[str]) -> str:
        name, type_name, fmt = match.groups()
        if name not in raw:
            return match.group(0)
        return format_with_spec(raw[name], type_name, fmt)

    def plain(match: re.Match[str]) -> str:
        name = match.group(1)
        return formatted[name] if name in formatted else match.group(0)

    result = _TYPED_RE.sub(typed, result)
    result = _TYPED_BRACED_RE.sub(typed, result)
    result = _BRACED_RE.sub(plain, result)
    return _PLAIN_RE.sub(plain, result)


def extract_variables(template: str) -> list[str]:
    """Return referenced variable names in first-seen order."""
    seen: dict[str, None] = {}
    for pattern in (_BRACED_RE, _PLAIN_RE):
        for match in pattern.finditer(template):
            seen.setdefault(match.group(1), None)
    return list(seen)
