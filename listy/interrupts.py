"""Escalating Ctrl+C policy for the running child process.

The first interrupt asks the child's process group to stop, the second
kills it, and the third runs the emergency callback and exits the program.
"""

from __future__ import annotations

import enum
import os
import signal
from collections.abc import Callable

from .logs import get_logger

logger = get_logger(__name__)

FORCE_EXIT_CODE = 130


class InterruptState(enum.Enum):
    IDLE = "idle"
    CHILD_INTERRUPTED = "child-interrupted"
    CHILD_KILLED = "child-killed"
    FORCE_EXIT = "force-exit"


_NEXT_STATE = {
    InterruptState.IDLE: InterruptState.CHILD_INTERRUPTED,
    InterruptState.CHILD_INTERRUPTED: InterruptState.CHILD_KILLED,
    InterruptState.CHILD_KILLED: InterruptState.FORCE_EXIT,
    InterruptState.FORCE_EXIT: InterruptState.FORCE_EXIT,
}


class InterruptManager:
    """Track the current child and escalate repeated interrupts against it."""

    def __init__(self, exit_func: Callable[[int], object] = os._exit) -> None:
        self._exit = exit_func
        self._process = None
        self._on_parent_exit: Callable[[], None] | None = None
        self.state = InterruptState.IDLE
        self.interrupt_count = 0

    @property
    def has_child(self) -> bool:
        return self._process is not None

    def register(self, process, on_parent_exit: Callable[[], None] | None = None) -> None:
        """Record ``process`` (a ``subprocess.Popen``) and reset escalation."""
        self._process = process
        self._on_parent_exit = on_parent_exit
        self.state = InterruptState.IDLE
        self.interrupt_count = 0

    def unregister(self) -> None:
        self._process = None
        self._on_parent_exit = None
        self.state = InterruptState.IDLE
        self.interrupt_count = 0

    def handle_interrupt(self) -> bool:
        """Escalate one step. Returns ``False`` when no child is registered."""
        process = self._process
        if process is None:
            return False

        self.interrupt_count += 1
        self.state = _NEXT_STATE[self.state]
        if self.state is InterruptState.CHILD_INTERRUPTED:
            self._signal(process, signal.SIGINT)
        elif self.state is InterruptState.CHILD_KILLED:
            self._signal(process, signal.SIGKILL)
        else:
            logger.warning("third interrupt for pid %s, forcing exit", process.pid)
            try:
                if self._on_parent_exit is not None:
                    self._on_parent_exit()
            finally:
                self._exit(FORCE_EXIT_CODE)
        return True

    @staticmethod
    def _signal(process, signum: int) -> None:
        logger.info("sending %s to pid %s", signal.Signals(signum).name, process.pid)
        try:
            os.killpg(os.getpgid(process.pid), signum)
            return
        except (ProcessLookupError, PermissionError, OSError) as exc:
            logger.debug("process group signal failed (%s); signalling child", exc)
        try:
            process.send_signal(signum)
        except (ProcessLookupError, OSError) as exc:
            logger.debug("child signal failed: %s", exc)
