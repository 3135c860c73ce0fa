"""REPL controller: routes keys and device events, drives the renderer.

``Repl`` is the composition root. Keys are decoded on the main thread and
passed through the mode machine; whatever action comes back is applied
against the store, the executor and the renderer. Background sources (jog
wheel, voice listener, child readers, signal handlers) only ``publish``
events to one queue that ``run`` drains between stdin reads.
"""

from __future__ import annotations

import os
import queue
import signal
import termios
import time
from collections.abc import Callable, Mapping
from pathlib import Path
from typing import Any

from ..activities import LoadResult, load_activities, persist_variable_values
from ..config import AppConfig
from ..errors import PersistError
from ..events import (
    ChildExited,
    ChildOutput,
    InterruptRequested,
    JogDirection,
    JogPulse,
    TerminalResized,
    VoiceTranscript,
)
from ..executor import CommandExecutor, split_agent_prefix
from ..history import HistoryManager
from ..input import ESC_SEQUENCE_TIMEOUT_MS, KeyDecoder, KeyEvent, KeyType, read_chunk, wait_readable
from ..interrupts import InterruptManager
from ..logs import get_logger
from ..modes import (
    ApplyEditText,
    BeginEdit,
    BrowseHistory,
    CommitEdit,
    DiscardEdit,
    LINE_MODES,
    Mode,
    ModeMachine,
    Notice,
    RunHotkey,
    ShowHelp,
    StartVoice,
    StepValue,
    StopVoice,
    Submit,
    SwitchActivity,
)
from ..render import StatusView, TerminalRenderer, VariableChip, activity_color, build_context
from ..render.highlight import sanitize_output
from ..store import Activity, ActivityStore
from ..variables import VariableDefinition, decrement_value, format_value, increment_value, parse_value
from .commands import run_colon_command

logger = get_logger(__name__)

TICK_MS = 80
EXIT_CONFIRM_SECONDS = 1.0
EXIT_PROMPT = "Press Ctrl+C again to exit"
BUSY_NOTICE = "Command still running"


class Repl:
    """The interactive session.

    Everything except ``publish`` must be called from the thread running
    ``run``; tests drive ``handle_key`` and ``handle_event`` directly.
    """

    def __init__(
        self,
        store: ActivityStore,
        renderer: TerminalRenderer,
        config: AppConfig,
        *,
        executor: CommandExecutor | None = None,
        interrupts: InterruptManager | None = None,
        machine: ModeMachine | None = None,
        history: HistoryManager | None = None,
        decoder: KeyDecoder | None = None,
        terminal=None,
        jog=None,
        voice=None,
        persist: Callable[[Activity, Mapping[str, Any]], None] = persist_variable_values,
        loader: Callable[[Path], LoadResult] = load_activities,
        clock: Callable[[], float] = time.monotonic,
        stdin_fd: int | None = None,
    ) -> None:
        self.store = store
        self.renderer = renderer
        self.config = config
        self.events: queue.SimpleQueue = queue.SimpleQueue()
        self.interrupts = interrupts or InterruptManager()
        self.executor = executor or CommandExecutor(
            store,
            self.publish,
            self.interrupts,
            config.buffer_path,
            llm_shell=config.llm_shell,
        )
        self.machine = machine or ModeMachine()
        self.history = history or HistoryManager()
        self.decoder = decoder or KeyDecoder()
        self.terminal = terminal
        self.jog = jog
        self.voice = voice
        self._persist = persist
        self._loader = loader
        self._clock = clock
        self.stdin_fd = stdin_fd

        self.running = True
        self.exit_presses = 0
        self._exit_deadline = 0.0
        self._combo_pending = False
        self.last_command_key: str | None = None
        self.agent: str | None = None
        self._partial: dict[str, str] = {}
        self._interactive = False
        self._wake_r: int | None = None
        self._wake_w: int | None = None

        activity = store.current
        self.history.load(activity.history if activity is not None else None)

    # Event queue

    def publish(self, event: object) -> None:
        """Thread-safe hand-off into the main loop."""
        self.events.put(event)
        if self._wake_w is not None:
            try:
                os.write(self._wake_w, b"\0")
            except (BlockingIOError, OSError):
                pass

    # ModeContext

    def get_definition(self, name: str) -> VariableDefinition | None:
        return self.store.get_definition(name)

    def find_by_hotkey(self, key: str) -> VariableDefinition | None:
        return self.store.find_by_hotkey(key)

    def is_command_hotkey(self, key: str) -> bool:
        return self.store.find_command(key) is not None

    def first_variable(self) -> VariableDefinition | None:
        return self.store.first_variable()

    def next_variable(self, name: str) -> VariableDefinition | None:
        return self.store.next_variable(name)

    def prev_variable(self, name: str) -> VariableDefinition | None:
        return self.store.prev_variable(name)

    def formatted_value(self, name: str) -> str:
        definition = self.store.get_definition(name)
        if definition is None:
            return ""
        return format_value(self.store.get(name), definition)

    def snapshot_values(self) -> dict[str, Any]:
        return self.store.snapshot_values()

    # Rendering

    def status_view(self) -> StatusView:
        activity = self.store.current
        name = self.store.current_name
        values = self.store.values()
        formatted = self.store.formatted_values()
        chips: tuple[VariableChip, ...] = ()
        edit = self.machine.edit
        if self.machine.mode is Mode.INPUT:
            chips = tuple(
                VariableChip(definition.name, formatted.get(definition.name, ""), definition.hotkey)
                for definition in self.store.definitions().values()
            )
        return StatusView(
            activity=name,
            activity_color=activity_color(activity.color if activity else None, self.store.activity_index(name)),
            mode=self.machine.mode.value,
            buffer=self.machine.buffer,
            context=build_context(activity.status_format if activity else None, values, formatted),
            variables=chips,
            active_variable=edit.variable if edit is not None else None,
        )

    def render(self) -> None:
        self.renderer.render_status(self.status_view())

    def flash(self, text: str) -> None:
        self.renderer.show_flash(text, self.status_view())

    def print_line(self, text: str) -> None:
        self.renderer.print_output(text, self.status_view())

    def print_block(self, label: str, lines: list[str]) -> None:
        """Print ``lines`` as a round of their own, closed by a blank row."""
        self.renderer.start_round(label)
        for line in lines:
            self.print_line(line)
        self.print_line("")
        self.renderer.end_round()

    # Keys

    def handle_key(self, key: KeyEvent) -> None:
        if key.is_ctrl("c"):
            self.handle_interrupt()
            return
        self.exit_presses = 0

        if self._combo_pending:
            self._combo_pending = False
            if key.is_char("u"):
                self.undo()
            self.render()
            return
        if key.is_ctrl("x"):
            self._combo_pending = True
            return
        if key.is_ctrl("d"):
            self.stop()
            return
        if key.is_ctrl("l"):
            self.clear_screen()
            return
        if key.type in (KeyType.ESCAPE_SEQ, KeyType.UNKNOWN):
            logger.debug("ignored key %r", key.raw)
            return

        before = self.machine.mode
        action = self.machine.handle(key, self)
        if action is not None:
            self.apply(action)
        if before in LINE_MODES and self.machine.mode is not before:
            self.history.reset_navigation(before.value)
        self.render()

    def handle_interrupt(self) -> None:
        """One Ctrl+C: escalate against a child, otherwise confirm exit."""
        if self.interrupts.handle_interrupt():
            logger.info("interrupt forwarded to child (%s)", self.interrupts.state.value)
            return
        self.exit_presses += 1
        if self.exit_presses >= 2:
            self.stop()
            return
        self._exit_deadline = self._clock() + EXIT_CONFIRM_SECONDS
        self.flash(EXIT_PROMPT)

    # Actions

    def apply(self, action: object) -> None:
        handler = self._action_handlers().get(type(action))
        if handler is None:
            logger.debug("unhandled action %r", action)
            return
        handler(action)

    def _action_handlers(self) -> dict[type, Callable[[Any], None]]:
        return {
            Submit: self._on_submit,
            RunHotkey: lambda action: self.run_command(action.key),
            BeginEdit: lambda action: None,
            ApplyEditText: self._on_edit_text,
            StepValue: lambda action: self.step_variable(action.variable, action.amount),
            CommitEdit: self._on_commit,
            DiscardEdit: lambda action: self.store.restore_values(action.snapshot),
            BrowseHistory: self._on_browse_history,
            SwitchActivity: lambda action: self.switch_activity(action.offset),
            ShowHelp: lambda action: self.show_help(),
            StartVoice: lambda action: self.start_voice(),
            StopVoice: lambda action: self.stop_voice(),
            Notice: lambda action: self.flash(action.text),
        }

    def _on_submit(self, action: Submit) -> None:
        text = action.text
        if action.mode is Mode.NORMAL:
            match = self.store.match_command_prefix(text)
            if match is None:
                self.flash(f"Unknown command: {text}")
                return
            command, rest = match
            self.run_command(command.key, rest.strip())
            return

        self.history.add(action.mode.value, text)
        if action.mode is Mode.CMD:
            run_colon_command(self, text)
        elif action.mode is Mode.LLM:
            self.submit_llm(text)
        elif action.mode is Mode.SHELL:
            self.run_shell(text)
        elif action.mode is Mode.WORD:
            self.run_word(text)

    def _on_edit_text(self, action: ApplyEditText) -> None:
        definition = self.store.get_definition(action.variable)
        if definition is None:
            return
        if action.text == "":
            self.store.set(action.variable, None)
            return
        value = parse_value(action.text, definition)
        if value is not None:
            self.store.set(action.variable, value)

    def _on_commit(self, action: CommitEdit) -> None:
        activity = self.store.current
        if activity is None:
            return
        try:
            self._persist(activity, self.store.values())
        except PersistError as exc:
            logger.warning("persist failed: %s", exc)
            self.print_block("save", [self.renderer.format_error(f"Error saving: {exc}")])

    def _on_browse_history(self, action: BrowseHistory) -> None:
        mode = action.mode.value
        if action.direction < 0:
            entry = self.history.navigate_up(mode, self.machine.buffer)
        else:
            entry = self.history.navigate_down(mode)
        if entry is not None:
            self.machine.set_buffer(entry)

    def step_variable(self, name: str, amount: int) -> None:
        """Increment (``amount > 0``) or decrement and show the new value."""
        definition = self.store.get_definition(name)
        if definition is None:
            return
        current = self.store.get(name)
        if amount >= 0:
            value = increment_value(current, definition, amount)
        else:
            value = decrement_value(current, definition, -amount)
        self.store.set(name, value)
        edit = self.machine.edit
        if edit is not None and edit.variable == name:
            self.machine.set_buffer(format_value(value, definition))

    def switch_activity(self, offset: int) -> None:
        name = self.store.next_activity() if offset > 0 else self.store.prev_activity()
        if name is None or not self.store.set_current(name):
            return
        activity = self.store.current
        self.history.load(activity.history if activity is not None else None)
        logger.info("switched to activity %s", name)

    # Command execution

    def _busy(self) -> bool:
        if self.executor.running:
            self.flash(BUSY_NOTICE)
            return True
        return False

    def _start_run(self, prefix: str, display: str, launch: Callable[..., int | None], highlight: bool = True) -> None:
        self.renderer.start_round(f"{prefix} {display}")
        echo = self.renderer.format_echo(prefix, display) if highlight else f"{prefix} {display}"
        self.print_line(echo)
        self._partial.clear()
        self.renderer.start_spinner()
        run_id = launch(
            on_stdout=lambda text: self._on_child_output("stdout", text),
            on_stderr=lambda text: self._on_child_output("stderr", text),
            on_parent_exit=self.emergency_cleanup,
            on_exit=self._on_child_exit,
        )
        if run_id is None:
            self.renderer.stop_spinner()
            self.print_line("")
            self.renderer.end_round()

    def run_command(self, key: str, user_input: str = "") -> None:
        command = self.store.find_command(key)
        if command is None:
            self.flash(f"Unknown command: {key}")
            return
        if self._busy():
            return
        self.last_command_key = command.key
        if command.interactive:
            self.run_interactive(self.executor.expand(command.shell, user_input))
            return
        self._start_run(
            "$",
            self.executor.expand(command.shell, user_input),
            lambda **callbacks: self.executor.execute(command.key, user_input, **callbacks),
        )

    def run_shell(self, command_line: str) -> None:
        if self._busy():
            return
        self._start_run("!", command_line, lambda **callbacks: self.executor.execute_shell(command_line, **callbacks))

    def run_word(self, text: str) -> None:
        word = text.strip().lower()
        command = self.store.find_command_by_word(word)
        if command is None:
            self.flash(f"No command for word: {word}")
            return
        self.run_command(command.key)

    def submit_llm(self, text: str) -> None:
        agent, prompt = split_agent_prefix(text.strip())
        if agent is not None:
            self.agent = agent
        if not prompt:
            if agent is not None:
                self.flash(f"Agent set to: {agent}")
            return
        if not self.executor.llm_shell:
            self.print_block(f"@ {text}", [self.renderer.format_error("Error: llm_shell not configured")])
            return
        if self._busy():
            return
        chosen = self.agent or self.config.default_agent
        last_key = self.last_command_key
        self._start_run(
            "@",
            text,
            lambda **callbacks: self.executor.execute_llm(prompt, chosen, last_key, **callbacks),
            highlight=False,
        )

    def run_interactive(self, command_line: str) -> None:
        """Give the terminal to the child until it exits."""
        self.renderer.start_round(f"$ {command_line}")
        self.print_line(self.renderer.format_echo("$", command_line))
        self.renderer.end_round()
        self.renderer.reset_terminal()
        self._interactive = True
        try:
            if self.terminal is not None:
                with self.terminal.suspended():
                    code = self.executor.run_interactive(command_line)
            else:
                code = self.executor.run_interactive(command_line)
        finally:
            self._interactive = False
        # The child owned the screen; nothing on it maps to the round log.
        self.renderer.clear(self.status_view())
        if code != 0:
            self.print_block(f"$ {command_line}", [self.renderer.format_error(f"[exit {code}]")])

    def _on_child_output(self, stream: str, text: str) -> None:
        pending = self._partial.get(stream, "") + text
        *lines, rest = pending.split("\n")
        self._partial[stream] = rest
        for line in lines:
            self.print_line(sanitize_output(line))

    def _flush_partial(self) -> None:
        for stream in ("stdout", "stderr"):
            rest = self._partial.pop(stream, "")
            if rest:
                self.print_line(sanitize_output(rest))

    def _on_child_exit(self, code: int, error: str | None) -> None:
        self._flush_partial()
        self.renderer.stop_spinner()
        if error:
            self.print_line(self.renderer.format_error(f"Error: {error}"))
        elif code != 0:
            self.print_line(self.renderer.format_error(f"[exit {code}]"))
        self.print_line("")
        self.renderer.end_round()

    # Help, undo, screen

    def show_help(self) -> None:
        activity = self.store.current
        if activity is None:
            self.flash("No activity loaded")
            return
        lines = ["Commands:"]
        for key, command in activity.commands.items():
            line = f"  {key}  {self.executor.expand(command.shell)}"
            if command.description:
                line += f"  # {command.description}"
            lines.append(line)
        if activity.aliases:
            lines.append("Aliases:")
            for alias, target in activity.aliases.items():
                lines.append(f"  {alias} -> {target}")
        self.print_block("?", lines)

    def undo(self) -> None:
        if self._busy():
            return
        self.renderer.undo_last_round(self.status_view())

    def clear_screen(self) -> None:
        self.renderer.clear(self.status_view())
        activity = self.store.current
        self.history.load(activity.history if activity is not None else None)

    def reload_activities(self) -> None:
        result = self._loader(Path(self.config.activity_dir))
        lines = [self.renderer.format_error(f"Error: {error}") for error in result.errors]
        if not result.activities:
            self.print_block(":reload", lines + ["No activities found after reload"])
            return
        previous = self.store.current_name
        self.store.clear()
        for activity in result.activities:
            self.store.register(activity)
        if previous is not None:
            self.store.set_current(previous)
        activity = self.store.current
        self.history.load(activity.history if activity is not None else None)
        lines.append(f"Reloaded {len(result.activities)} activities (current: {self.store.current_name})")
        self.print_block(":reload", lines)

    # Voice and jog

    def start_voice(self) -> None:
        if self.voice is None or not self.voice.start():
            self.machine.enter(Mode.NORMAL)
            self.flash("Voice listener unavailable")

    def stop_voice(self) -> None:
        if self.voice is not None:
            self.voice.stop()

    def handle_event(self, event: object) -> None:
        if isinstance(event, (ChildOutput, ChildExited)):
            self.executor.deliver(event)
        elif isinstance(event, JogPulse):
            edit = self.machine.edit
            if self.machine.mode is Mode.INPUT and edit is not None:
                self.step_variable(edit.variable, 1 if event.direction is JogDirection.CW else -1)
        elif isinstance(event, VoiceTranscript):
            self._on_voice(event)
        elif isinstance(event, InterruptRequested):
            self.handle_interrupt()
            return
        elif isinstance(event, TerminalResized):
            logger.debug("terminal resized")
            self.renderer.resize(self.status_view())
            return
        self.render()

    def _on_voice(self, event: VoiceTranscript) -> None:
        if self.machine.mode is not Mode.VOICE:
            return
        self.flash(event.original)
        command = self.store.find_command_by_voice(event.normalized)
        if command is None:
            return
        self.stop_voice()
        self.machine.enter(Mode.NORMAL)
        self.run_command(command.key)

    # Lifecycle

    def stop(self) -> None:
        self.running = False

    def tick(self) -> None:
        if self.exit_presses and self._clock() >= self._exit_deadline:
            self.exit_presses = 0
        self.renderer.tick(self.status_view())

    def emergency_cleanup(self) -> None:
        """Restore the terminal before a forced exit."""
        self.renderer.emergency_cleanup()
        if self.terminal is not None:
            try:
                self.terminal.disable_raw_mode()
            except termios.error as exc:
                logger.debug("restoring tty failed: %s", exc)

    def _on_sigint(self, signum, frame) -> None:
        if not self._interactive:
            self.publish(InterruptRequested())

    def _on_sigwinch(self, signum, frame) -> None:
        self.publish(TerminalResized())

    def _drain_events(self) -> None:
        while True:
            try:
                event = self.events.get_nowait()
            except queue.Empty:
                return
            self.handle_event(event)

    def _feed(self, keys: list[KeyEvent]) -> None:
        for key in keys:
            if not self.running:
                return
            self.handle_key(key)

    def run(self) -> None:
        """Main loop: stdin and the event queue until ``stop``."""
        if self.stdin_fd is None:
            raise ValueError("run() needs stdin_fd")
        self._wake_r, self._wake_w = os.pipe()
        os.set_blocking(self._wake_w, False)
        previous = {
            signal.SIGINT: signal.signal(signal.SIGINT, self._on_sigint),
            signal.SIGWINCH: signal.signal(signal.SIGWINCH, self._on_sigwinch),
        }
        if self.jog is not None and self.config.jog_enabled:
            self.jog.start()
        try:
            self.renderer.init_terminal(self.status_view())
            while self.running:
                timeout_ms = ESC_SEQUENCE_TIMEOUT_MS if self.decoder.has_pending else TICK_MS
                ready = wait_readable([self.stdin_fd, self._wake_r], timeout_ms)
                if self._wake_r in ready:
                    os.read(self._wake_r, 4096)
                if self.stdin_fd in ready:
                    data = read_chunk(self.stdin_fd)
                    if not data:
                        logger.info("stdin closed")
                        self.stop()
                        break
                    self._feed(self.decoder.feed(data))
                elif self.decoder.has_pending:
                    self._feed(self.decoder.flush())
                self._drain_events()
                self.tick()
        finally:
            if self.jog is not None:
                self.jog.stop()
            self.stop_voice()
            self.renderer.reset_terminal()
            for signum, handler in previous.items():
                signal.signal(signum, handler)
            wake_r, wake_w = self._wake_r, self._wake_w
            self._wake_r = self._wake_w = None
            os.close(wake_r)
            os.close(wake_w)
