"""Voice transcription source backed by the ``perception-voice`` client.

VOICE mode sets a read marker, then polls for transcripts every 200 ms on a
background thread and publishes normalized ``VoiceTranscript`` events.
"""

from __future__ import annotations

import json
import os
import re
import shutil
import subprocess
import threading

from .events import Publish, VoiceTranscript
from .logs import get_logger

logger = get_logger(__name__)

VOICE_BINARY = "perception-voice"
POLL_INTERVAL_SECONDS = 0.2
CLIENT_TIMEOUT_SECONDS = 5.0

_NON_ALNUM_RE = re.compile(r"[^a-z0-9\s]")
_SPACE_RE = re.compile(r"\s+")


def normalize_voice_text(text: str) -> str:
    """Lowercase, drop punctuation, collapse whitespace."""
    lowered = _NON_ALNUM_RE.sub("", text.strip().lower())
    return _SPACE_RE.sub(" ", lowered).strip()


def parse_transcripts(output: str) -> list[dict]:
    """Parse JSONL client output, skipping malformed or empty entries."""
    items: list[dict] = []
    for line in output.splitlines():
        line = line.strip()
        if not line:
            continue
        try:
            item = json.loads(line)
        except ValueError:
            continue
        if isinstance(item, dict) and item.get("text"):
            items.append(item)
    return items


class VoiceListener:
    """Background poller for the voice transcription client."""

    def __init__(
        self,
        publish: Publish,
        binary: str = VOICE_BINARY,
        poll_interval: float = POLL_INTERVAL_SECONDS,
        client_uid: str | None = None,
    ) -> None:
        self._publish = publish
        self._binary = binary
        self._poll_interval = poll_interval
        self.client_uid = client_uid or f"listy_{os.getpid()}"
        self._thread: threading.Thread | None = None
        self._stop = threading.Event()

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def _run_client(self, action: str) -> subprocess.CompletedProcess | None:
        try:
            return subprocess.run(
                [self._binary, "client", action, self.client_uid],
                stdin=subprocess.DEVNULL,
                capture_output=True,
                text=True,
                timeout=CLIENT_TIMEOUT_SECONDS,
                check=False,
            )
        except (OSError, subprocess.SubprocessError) as exc:
            logger.warning("voice client %s failed: %s", action, exc)
            return None

    def start(self) -> bool:
        """Begin polling in the background. Returns ``False`` without a client."""
        if self.running:
            return True
        if shutil.which(self._binary) is None:
            logger.info("%s not found; voice disabled", self._binary)
            return False
        self._stop.clear()
        self._thread = threading.Thread(target=self._poll, name="listy-voice", daemon=True)
        self._thread.start()
        return True

    def stop(self) -> None:
        self._stop.set()
        thread = self._thread
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout=CLIENT_TIMEOUT_SECONDS)
        self._thread = None

    def poll_once(self) -> int:
        """Fetch pending transcripts and publish them; returns how many."""
        result = self._run_client("get")
        if result is None or result.returncode != 0:
            return 0
        published = 0
        for item in parse_transcripts(result.stdout):
            original = str(item["text"])
            normalized = normalize_voice_text(original)
            if not normalized:
                continue
            self._publish(VoiceTranscript(normalized, original, str(item.get("ts", ""))))
            published += 1
        return published

    def _poll(self) -> None:
        # Marks "now" so transcripts spoken before the listener started are skipped.
        if self._run_client("set") is None:
            return
        while not self._stop.wait(self._poll_interval):
            self.poll_once()
