"""Input-layer public API: byte decoding and stdin reads."""

from .decoder import ESC_SEQUENCE_TIMEOUT_MS, KeyDecoder, KeyEvent, KeyType, parse_key
from .reader import read_chunk, wait_readable

__all__ = [
    "ESC_SEQUENCE_TIMEOUT_MS",
    "KeyDecoder",
    "KeyEvent",
    "KeyType",
    "parse_key",
    "read_chunk",
    "wait_readable",
]
