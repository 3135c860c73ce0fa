"""Logging setup for listy.

The terminal belongs to the renderer, so log records only ever go to a file.
Logging stays disabled unless a log file path is configured.
"""

from __future__ import annotations

import logging
from datetime import datetime
from pathlib import Path

_configured = False
_log_file: Path | None = None

# Keep the stdlib last-resort handler from writing into the TUI.
logging.getLogger("listy").addHandler(logging.NullHandler())


class MillisecondFormatter(logging.Formatter):
    def formatTime(self, record, datefmt=None):
        ct = datetime.fromtimestamp(record.created)
        return ct.strftime("%Y-%m-%d %H:%M:%S.%f")[:-3]


def setup_logging(log_file_path: str | Path | None = None, mode: str = "a") -> None:
    """Route all ``listy`` loggers to ``log_file_path`` (once per process)."""
    global _configured, _log_file

    if _configured or not log_file_path:
        return

    _log_file = Path(log_file_path).expanduser()
    _log_file.parent.mkdir(parents=True, exist_ok=True)

    handler = logging.FileHandler(str(_log_file), mode=mode, encoding="utf-8")
    handler.setLevel(logging.DEBUG)
    handler.setFormatter(MillisecondFormatter("[%(asctime)s] [%(levelname)s] %(name)s: %(message)s"))

    logger = logging.getLogger("listy")
    logger.handlers.clear()
    logger.addHandler(handler)
    logger.setLevel(logging.DEBUG)
    logger.propagate = False

    _configured = True
    logger.info("Logging initialized")


def get_logger(name: str) -> logging.Logger:
    """Get a logger for the specified module name."""
    return logging.getLogger(name)


def is_logging_enabled() -> bool:
    return _configured


def get_log_file() -> Path | None:
    return _log_file
