"""Persistent JSON config helpers.

Stores activity directory, flash timing, LLM shell template and device
settings. All access is defensive: malformed or missing config falls back
to defaults, field by field.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, replace
from pathlib import Path

from platformdirs import user_cache_dir, user_config_dir

APP_NAME = "listy"
CONFIG_FILENAME = "config.json"
CONFIG_DIR = Path(user_config_dir(APP_NAME, appauthor=False))
CONFIG_PATH = CONFIG_DIR / CONFIG_FILENAME
CACHE_DIR = Path(user_cache_dir(APP_NAME, appauthor=False))

DEFAULT_FLASH_MS_PER_CHAR = 60
DEFAULT_FLASH_MIN_MS = 1200
DEFAULT_AGENT = "default"
DEFAULT_PYGMENTS_STYLE = "monokai"


@dataclass(frozen=True)
class AppConfig:
    activity_dir: Path
    flash_ms_per_char: int = DEFAULT_FLASH_MS_PER_CHAR
    flash_min_ms: int = DEFAULT_FLASH_MIN_MS
    llm_shell: str | None = None
    default_agent: str = DEFAULT_AGENT
    jog_enabled: bool = True
    jog_device: str | None = None
    log_file: str | None = None
    pygments_style: str = DEFAULT_PYGMENTS_STYLE
    no_color: bool = False
    buffer_path: Path = CACHE_DIR / "buffer.log"

    def with_overrides(self, **changes: object) -> AppConfig:
        """Return a copy with non-``None`` overrides applied."""
        return replace(self, **{key: value for key, value in changes.items() if value is not None})


def load_config() -> dict[str, object]:
    """Load the persisted JSON config object.

    Returns an empty dict when the file is missing, unreadable, malformed, or
    does not decode to a top-level JSON object.
    """
    try:
        data = json.loads(CONFIG_PATH.read_text(encoding="utf-8"))
    except (OSError, ValueError):
        return {}
    return data if isinstance(data, dict) else {}


def _positive_int(value: object, fallback: int) -> int:
    """Accept strictly positive integers; booleans and other types fall back."""
    if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
        return fallback
    return value


def _optional_str(value: object) -> str | None:
    if not isinstance(value, str):
        return None
    stripped = value.strip()
    return stripped if stripped else None


def load_app_config() -> AppConfig:
    """Build the session config from ``config.json`` with per-field fallbacks."""
    data = load_config()
    activity_dir = _optional_str(data.get("activity_dir"))
    jog_enabled = data.get("jog_enabled")
    return AppConfig(
        activity_dir=Path(activity_dir).expanduser() if activity_dir else CONFIG_DIR / "activity",
        flash_ms_per_char=_positive_int(data.get("flash_ms_per_char"), DEFAULT_FLASH_MS_PER_CHAR),
        flash_min_ms=_positive_int(data.get("flash_min_ms"), DEFAULT_FLASH_MIN_MS),
        llm_shell=_optional_str(data.get("llm_shell")),
        default_agent=_optional_str(data.get("default_agent")) or DEFAULT_AGENT,
        jog_enabled=jog_enabled if isinstance(jog_enabled, bool) else True,
        jog_device=_optional_str(data.get("jog_device")),
        log_file=_optional_str(data.get("log_file")),
        pygments_style=_optional_str(data.get("pygments_style")) or DEFAULT_PYGMENTS_STYLE,
    )

