"""printf-style number formatting for variable display.

Only the first conversion in the format string is substituted; any literal
prefix/suffix (``"$%.2f"``, ``"%d shares"``) is kept.
"""

from __future__ import annotations

import math
import re

PRINTF_RE = re.compile(r"%(-?)(0?)(\d*)(?:\.(\d+))?([dfsxXeE%])")


def _coerce(value: object, conversion: str) -> object:
    if conversion in "dxX":
        return int(math.floor(float(value)))  # type: ignore[arg-type]
    if conversion in "feE":
        return float(value)  # type: ignore[arg-type]
    return str(value)


def sprintf(fmt: str | None, value: object) -> str:
    """Format ``value`` with the first ``%`` conversion found in ``fmt``."""
    if not fmt:
        return str(value)
    match = PRINTF_RE.search(fmt)
    if match is None:
        return fmt
    left_align, zero_pad, width, precision, conversion = match.groups()
    if conversion == "%":
        rendered = "%"
    else:
        spec = "%" + left_align + zero_pad + width
        if precision is not None:
            spec += "." + precision
        spec += conversion
        try:
            rendered = spec % (_coerce(value, conversion),)
        except (TypeError, ValueError):
            rendered = str(value)
    return fmt[: match.start()] + rendered + fmt[match.end() :]
