"""Non-blocking stdin reads for the REPL loop.

Waits on ``select`` for at most ``timeout_ms`` and returns whatever bytes
the tty has buffered, so pasted text arrives as one chunk.
"""

from __future__ import annotations

import os
import select

READ_CHUNK_SIZE = 1024


def wait_readable(fds: list[int], timeout_ms: int | None) -> list[int]:
    """Return the subset of ``fds`` that is readable within the timeout."""
    timeout = None if timeout_ms is None else max(0.0, timeout_ms / 1000.0)
    try:
        ready, _, _ = select.select(fds, [], [], timeout)
    except InterruptedError:
        return []
    return list(ready)


def read_chunk(fd: int, timeout_ms: int | None = None) -> bytes:
    """Read one chunk of available bytes, or ``b""`` on timeout/EOF."""
    if timeout_ms is not None and not wait_readable([fd], timeout_ms):
        return b""
    try:
        return os.read(fd, READ_CHUNK_SIZE)
    except (BlockingIOError, InterruptedError):
        return b""
