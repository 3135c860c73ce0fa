"""Events published by background sources into the REPL queue.

Producers (jog wheel, voice listener, child-output readers, signal hooks)
only ever ``put`` these; the REPL loop is the single consumer.
"""

from __future__ import annotations

import enum
from collections.abc import Callable
from dataclasses import dataclass


class JogDirection(str, enum.Enum):
    CW = "CW"
    CCW = "CCW"


@dataclass(frozen=True)
class JogPulse:
    direction: JogDirection


@dataclass(frozen=True)
class VoiceTranscript:
    normalized: str
    original: str
    timestamp: str = ""


@dataclass(frozen=True)
class ChildOutput:
    run_id: int
    stream: str
    text: str


@dataclass(frozen=True)
class ChildExited:
    run_id: int
    code: int
    error: str | None = None


@dataclass(frozen=True)
class InterruptRequested:
    """SIGINT delivered as a signal rather than as a ``0x03`` byte."""


@dataclass(frozen=True)
class TerminalResized:
    pass


Publish = Callable[[object], None]
