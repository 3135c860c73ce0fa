"""MIDI jog-wheel input source.

Polls a ``/dev/snd/midiC*`` character device without blocking and publishes
one ``JogPulse`` per control-change message from the wheel. A missing or
unreadable device simply leaves the source disabled.
"""

from __future__ import annotations

import os
import threading
from pathlib import Path

from .events import JogDirection, JogPulse, Publish
from .logs import get_logger

logger = get_logger(__name__)

MIDI_DEVICE_DIR = Path("/dev/snd")
PREFERRED_DEVICE = "midiC4"
CONTROL_CHANGE = 0xB0
JOG_CONTROLLER = 0x0A
JOG_CLOCKWISE = 0x01
MESSAGE_SIZE = 3
START_DELAY_SECONDS = 0.1


def list_midi_devices(device_dir: Path = MIDI_DEVICE_DIR) -> list[Path]:
    """Return raw MIDI device nodes in name order (empty when none exist)."""
    try:
        entries = sorted(entry.name for entry in device_dir.iterdir())
    except OSError:
        return []
    return [device_dir / name for name in entries if name.startswith("midiC")]


def pick_device(devices: list[Path]) -> Path | None:
    if not devices:
        return None
    for device in devices:
        if PREFERRED_DEVICE in device.name:
            return device
    return devices[-1]


def parse_jog_message(status: int, controller: int, value: int) -> JogDirection | None:
    """Decode a 3-byte control-change message into a rotation direction."""
    if status & 0xF0 != CONTROL_CHANGE:
        return None
    if controller != JOG_CONTROLLER:
        return None
    return JogDirection.CW if value == JOG_CLOCKWISE else JogDirection.CCW


class JogWheelSource:
    """Background poller publishing ``JogPulse`` events."""

    def __init__(
        self,
        publish: Publish,
        device_path: str | Path | None = None,
        poll_interval: float = 0.005,
        start_delay: float = START_DELAY_SECONDS,
    ) -> None:
        self._publish = publish
        self._requested_path = Path(device_path) if device_path else None
        self._poll_interval = poll_interval
        self._start_delay = start_delay
        self._fd: int | None = None
        self._thread: threading.Thread | None = None
        self._stop = threading.Event()
        self.device_path: Path | None = None

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> bool:
        """Open the device and begin polling. Safe to call repeatedly."""
        if self.running:
            return True

        device = self._requested_path or pick_device(list_midi_devices())
        if device is None:
            logger.info("no MIDI device found; jog wheel disabled")
            return False
        try:
            self._fd = os.open(str(device), os.O_RDONLY | os.O_NONBLOCK)
        except OSError as exc:
            logger.warning("cannot open jog device %s: %s", device, exc)
            return False

        self.device_path = device
        self._stop.clear()
        self._thread = threading.Thread(target=self._poll, name="listy-jog-wheel", daemon=True)
        self._thread.start()
        logger.info("jog wheel polling %s", device)
        return True

    def stop(self) -> None:
        self._stop.set()
        thread = self._thread
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout=1.0)
        self._thread = None
        if self._fd is not None:
            try:
                os.close(self._fd)
            except OSError:
                pass
            self._fd = None

    def _poll(self) -> None:
        if self._stop.wait(self._start_delay):
            return
        while not self._stop.is_set():
            fd = self._fd
            if fd is None:
                return
            try:
                data = os.read(fd, MESSAGE_SIZE)
            except BlockingIOError:
                data = b""
            except OSError as exc:
                logger.warning("jog device read failed: %s", exc)
                return
            if len(data) == MESSAGE_SIZE:
                direction = parse_jog_message(data[0], data[1], data[2])
                if direction is not None:
                    self._publish(JogPulse(direction))
            self._stop.wait(self._poll_interval)
