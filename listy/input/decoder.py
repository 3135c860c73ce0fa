"""Raw terminal byte decoding.

Turns byte chunks read from a raw-mode tty into classified key events.
One chunk may carry several keys (paste, fast typing); order is preserved.
Incomplete escape sequences at a chunk boundary are held until the next
chunk arrives or the reader calls ``flush`` after a short quiet period.
"""

from __future__ import annotations

import codecs
import enum
from dataclasses import dataclass

ESC = "\x1b"
ESC_SEQUENCE_TIMEOUT_MS = 25

# CSI: ESC [ <parameter bytes 0x30-0x3f>* <intermediate bytes 0x20-0x2f>* <final 0x40-0x7e>
_CSI_PARAM = frozenset(chr(code) for code in range(0x30, 0x40))
_CSI_INTERMEDIATE = frozenset(chr(code) for code in range(0x20, 0x30))
_MAX_SEQUENCE_LEN = 32


class KeyType(str, enum.Enum):
    CHAR = "char"
    CTRL = "ctrl"
    SPECIAL = "special"
    ARROW = "arrow"
    ESCAPE_SEQ = "escape-seq"
    UNKNOWN = "unknown"


@dataclass(frozen=True)
class KeyEvent:
    """One logical keypress."""

    type: KeyType
    key: str
    raw: str

    def is_char(self, ch: str | None = None) -> bool:
        return self.type is KeyType.CHAR and (ch is None or self.key == ch)

    def is_ctrl(self, name: str) -> bool:
        return self.type is KeyType.CTRL and self.key == name

    def is_special(self, name: str) -> bool:
        return self.type is KeyType.SPECIAL and self.key == name

    def is_arrow(self, name: str | None = None) -> bool:
        return self.type is KeyType.ARROW and (name is None or self.key == name)


CONTROL_KEYS = {
    "\x03": "c",
    "\x04": "d",
    "\x0c": "l",
    "\x18": "x",
}

SPECIAL_KEYS = {
    "\r": "enter",
    "\n": "enter",
    "\x7f": "backspace",
    "\x08": "backspace",
    "\t": "tab",
}

ARROW_FINALS = {
    "A": "up",
    "B": "down",
    "C": "right",
    "D": "left",
}


def _char_event(ch: str) -> KeyEvent:
    if ch in CONTROL_KEYS:
        return KeyEvent(KeyType.CTRL, CONTROL_KEYS[ch], ch)
    if ch in SPECIAL_KEYS:
        return KeyEvent(KeyType.SPECIAL, SPECIAL_KEYS[ch], ch)
    if " " <= ch <= "~":
        return KeyEvent(KeyType.CHAR, ch, ch)
    if ord(ch) > 0x7F and ch.isprintable():
        # Non-ASCII text is passed through as-is; no width handling.
        return KeyEvent(KeyType.CHAR, ch, ch)
    return KeyEvent(KeyType.UNKNOWN, ch, ch)


def _csi_event(seq: str) -> KeyEvent:
    """Classify a complete ``ESC [ ... final`` sequence."""
    params = seq[2:-1]
    final = seq[-1]
    if final in ARROW_FINALS and (not params or params.startswith("1;")):
        return KeyEvent(KeyType.ARROW, ARROW_FINALS[final], seq)
    if final == "Z" and not params:
        return KeyEvent(KeyType.SPECIAL, "shift-tab", seq)
    if final == "~" and params == "3":
        return KeyEvent(KeyType.SPECIAL, "delete", seq)
    return KeyEvent(KeyType.ESCAPE_SEQ, seq, seq)


class KeyDecoder:
    """Incremental decoder from raw tty bytes to ``KeyEvent`` values."""

    def __init__(self) -> None:
        self._utf8 = codecs.getincrementaldecoder("utf-8")(errors="replace")
        self._pending = ""

    @property
    def has_pending(self) -> bool:
        """True while an escape sequence is waiting for more bytes."""
        return bool(self._pending)

    def feed(self, chunk: bytes) -> list[KeyEvent]:
        """Decode ``chunk`` and return every complete key it finishes."""
        text = self._pending + self._utf8.decode(chunk)
        self._pending = ""
        events: list[KeyEvent] = []
        i = 0
        n = len(text)
        while i < n:
            ch = text[i]
            if ch == ESC:
                consumed, event = self._scan_escape(text, i)
                if event is None:
                    self._pending = text[i:]
                    break
                events.append(event)
                i += consumed
                continue
            if ch == "\r" and i + 1 < n and text[i + 1] == "\n":
                events.append(KeyEvent(KeyType.SPECIAL, "enter", "\r\n"))
                i += 2
                continue
            events.append(_char_event(ch))
            i += 1
        return events

    def flush(self) -> list[KeyEvent]:
        """Resolve a held partial sequence after the escape timeout elapsed."""
        pending = self._pending
        self._pending = ""
        if not pending:
            return []
        if pending == ESC:
            return [KeyEvent(KeyType.SPECIAL, "escape", ESC)]
        return [KeyEvent(KeyType.ESCAPE_SEQ, pending, pending)]

    def reset(self) -> None:
        self._pending = ""
        self._utf8.reset()

    @staticmethod
    def _scan_escape(text: str, start: int) -> tuple[int, KeyEvent | None]:
        """Return ``(consumed, event)``; ``event`` is None for an incomplete tail."""
        n = len(text)
        if start + 1 >= n:
            return 0, None
        nxt = text[start + 1]
        if nxt == ESC:
            return 1, KeyEvent(KeyType.SPECIAL, "escape", ESC)
        if nxt == "O":
            if start + 2 >= n:
                return 0, None
            final = text[start + 2]
            seq = text[start : start + 3]
            if final in ARROW_FINALS:
                return 3, KeyEvent(KeyType.ARROW, ARROW_FINALS[final], seq)
            return 3, KeyEvent(KeyType.ESCAPE_SEQ, seq, seq)
        if nxt != "[":
            # ESC followed by an ordinary key: a bare escape, then that key.
            return 1, KeyEvent(KeyType.SPECIAL, "escape", ESC)

        i = start + 2
        while i < n and text[i] in _CSI_PARAM:
            i += 1
        while i < n and text[i] in _CSI_INTERMEDIATE:
            i += 1
        if i >= n:
            if i - start > _MAX_SEQUENCE_LEN:
                seq = text[start:i]
                return i - start, KeyEvent(KeyType.ESCAPE_SEQ, seq, seq)
            return 0, None
        final = text[i]
        seq = text[start : i + 1]
        if not ("\x40" <= final <= "\x7e"):
            # Malformed: surface what we scanned and resume at the odd byte.
            seq = text[start:i]
            return i - start, KeyEvent(KeyType.ESCAPE_SEQ, seq, seq)
        return i + 1 - start, _csi_event(seq)


def parse_key(data: bytes) -> list[KeyEvent]:
    """Decode one self-contained chunk, resolving any trailing partial sequence."""
    decoder = KeyDecoder()
    return decoder.feed(data) + decoder.flush()


__all__ = [
    "ESC_SEQUENCE_TIMEOUT_MS",
    "KeyDecoder",
    "KeyEvent",
    "KeyType",
    "parse_key",
]
