"""Date parsing and token-pattern formatting.

Supported input forms: ``YYYY-MM-DD``, ``M/d/yy``, ``M/d/yyyy`` and ``M/d``
(current year). Format tokens: ``yyyy``/``YYYY``, ``yy``, ``MM``, ``M``,
``dd``, ``d``.
"""

from __future__ import annotations

import re
from collections.abc import Sequence
from datetime import date, timedelta

DEFAULT_DATE_PATTERN = "M/d"

_ISO_RE = re.compile(r"^(\d{4})-(\d{1,2})-(\d{1,2})$")
_MDY_RE = re.compile(r"^(\d{1,2})/(\d{1,2})/(\d{2}|\d{4})$")
_MD_RE = re.compile(r"^(\d{1,2})/(\d{1,2})$")
# Alternation order is longest-first so "MM" never matches as two "M".
_TOKEN_RE = re.compile(r"[yY]{4}|[yY]{2}|MM|M|dd|d")
_RELATIVE_RE = re.compile(r"^today\s*(?:([+-])\s*(\d+))?$", re.IGNORECASE)


def _safe_date(year: int, month: int, day: int) -> date | None:
    try:
        return date(year, month, day)
    except ValueError:
        return None


def parse_date(text: str | None, today: date | None = None) -> date | None:
    """Parse a user-entered date, returning ``None`` when it is not a date."""
    if not text:
        return None
    text = text.strip()
    match = _ISO_RE.match(text)
    if match:
        year, month, day = (int(part) for part in match.groups())
        return _safe_date(year, month, day)
    match = _MDY_RE.match(text)
    if match:
        month, day, year = (int(part) for part in match.groups())
        if len(match.group(3)) == 2:
            year += 2000 if year < 50 else 1900
        return _safe_date(year, month, day)
    match = _MD_RE.match(text)
    if match:
        month, day = (int(part) for part in match.groups())
        year = (today or date.today()).year
        return _safe_date(year, month, day)
    return None


def parse_relative_date(text: str, today: date | None = None) -> date | None:
    """Resolve ``today``, ``today+N`` and ``today-N`` default expressions."""
    match = _RELATIVE_RE.match(text.strip())
    if match is None:
        return None
    base = today or date.today()
    sign, amount = match.groups()
    if amount is None:
        return base
    days = int(amount)
    return base + timedelta(days=days if sign == "+" else -days)


def format_date(value: date | None, pattern: str | None = None) -> str:
    if not isinstance(value, date):
        return ""
    year = value.year

    def replace(match: re.Match[str]) -> str:
        token = match.group(0)
        if len(token) == 4:
            return str(year)
        if token in ("yy", "YY", "yY", "Yy"):
            return f"{year % 100:02d}"
        if token == "MM":
            return f"{value.month:02d}"
        if token == "M":
            return str(value.month)
        if token == "dd":
            return f"{value.day:02d}"
        return str(value.day)

    return _TOKEN_RE.sub(replace, pattern or DEFAULT_DATE_PATTERN)


def parse_date_range(raw: object, today: date | None = None) -> tuple[date, date] | None:
    """Return ``(min, max)`` from ``"A..B"`` or a two-item sequence."""
    if isinstance(raw, str):
        if ".." not in raw:
            return None
        parts = raw.split("..")
        if len(parts) != 2:
            return None
    elif isinstance(raw, Sequence) and len(raw) == 2:
        parts = list(raw)
    else:
        return None

    bounds: list[date] = []
    for part in parts:
        if isinstance(part, date):
            bounds.append(part)
            continue
        text = str(part).strip()
        parsed = parse_date(text, today) or parse_relative_date(text, today)
        if parsed is None:
            return None
        bounds.append(parsed)
    return bounds[0], bounds[1]


def add_days(value: date, days: int | float) -> date:
    return value + timedelta(days=int(days))
