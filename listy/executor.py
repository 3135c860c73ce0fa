"""Shell command execution for activity commands, SHELL and LLM modes.

Commands run as ``sh -c`` in their own session (so the whole pipeline can
be signalled as a process group) with stdin closed. Reader threads publish
``ChildOutput`` and ``ChildExited`` events; the REPL loop hands them back to
``deliver`` so every callback runs on the main thread.
"""

from __future__ import annotations

import codecs
import os
import re
import subprocess
import threading
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from pathlib import Path

from .events import ChildExited, ChildOutput, Publish
from .interrupts import InterruptManager
from .logs import get_logger
from .store import ActivityStore, CommandDefinition
from .variables import substitute

logger = get_logger(__name__)

SHELL = "sh"
READ_SIZE = 4096
SPAWN_FAILED_CODE = 127
LAST_COMMAND_ENV = "LISTY_LAST_COMMAND"

_BUFFER_RE = re.compile(r"\$_BUFFER\b|\$\{_BUFFER\}")
_AGENT_RE = re.compile(r"\$_AGENT\b|\$\{_AGENT\}")
_AGENT_PREFIX_RE = re.compile(r"^@([\w-]+)(?:\s+|$)")

OutputCallback = Callable[[str], None]
ExitCallback = Callable[[int, "str | None"], None]


def expand_llm_template(template: str, buffer_path: Path | str, agent: str, prompt: str) -> str:
    """Substitute ``$_BUFFER``, ``$_AGENT`` and ``$*`` in the LLM shell template."""
    command = _BUFFER_RE.sub(lambda _m: str(buffer_path), template)
    command = _AGENT_RE.sub(lambda _m: agent, command)
    return command.replace("$*", prompt)


def split_agent_prefix(text: str) -> tuple[str | None, str]:
    """Split a leading ``@agent`` mention from an LLM prompt."""
    match = _AGENT_PREFIX_RE.match(text)
    if match is None:
        return None, text
    return match.group(1), text[match.end() :].strip()


@dataclass
class _Run:
    run_id: int
    command: str
    on_stdout: OutputCallback | None
    on_stderr: OutputCallback | None
    on_exit: ExitCallback | None
    process: subprocess.Popen | None = None
    threads: list[threading.Thread] = field(default_factory=list)


class CommandExecutor:
    def __init__(
        self,
        store: ActivityStore,
        publish: Publish,
        interrupts: InterruptManager,
        buffer_path: Path,
        llm_shell: str | None = None,
        base_env: Mapping[str, str] | None = None,
    ) -> None:
        self.store = store
        self._publish = publish
        self.interrupts = interrupts
        self.buffer_path = Path(buffer_path)
        self.llm_shell = llm_shell
        self._base_env = dict(base_env) if base_env is not None else None
        self._runs: dict[int, _Run] = {}
        self._next_run_id = 1

    @property
    def running(self) -> bool:
        return bool(self._runs)

    # Template expansion

    def expand(self, template: str, user_input: str = "") -> str:
        return substitute(template, self.store.formatted_values(), user_input, raw_values=self.store.values())

    def resolve(self, key: str) -> CommandDefinition | None:
        return self.store.find_command(key)

    def environment(self, extra: Mapping[str, str] | None = None) -> dict[str, str]:
        env = dict(self._base_env if self._base_env is not None else os.environ)
        activity = self.store.current
        if activity is not None:
            env.update(activity.env)
        if extra:
            env.update(extra)
        return env

    # Spawning

    def execute(
        self,
        key: str,
        user_input: str = "",
        on_stdout: OutputCallback | None = None,
        on_stderr: OutputCallback | None = None,
        on_parent_exit: Callable[[], None] | None = None,
        on_exit: ExitCallback | None = None,
    ) -> int | None:
        """Run the activity command ``key``; returns a run id or ``None`` if unknown."""
        command = self.resolve(key)
        if command is None:
            return None
        return self.spawn(
            self.expand(command.shell, user_input),
            self.environment(),
            on_stdout,
            on_stderr,
            on_parent_exit,
            on_exit,
        )

    def execute_shell(
        self,
        command_line: str,
        on_stdout: OutputCallback | None = None,
        on_stderr: OutputCallback | None = None,
        on_parent_exit: Callable[[], None] | None = None,
        on_exit: ExitCallback | None = None,
    ) -> int:
        return self.spawn(command_line, self.environment(), on_stdout, on_stderr, on_parent_exit, on_exit)

    def execute_llm(
        self,
        prompt: str,
        agent: str,
        last_command_key: str | None = None,
        on_stdout: OutputCallback | None = None,
        on_stderr: OutputCallback | None = None,
        on_parent_exit: Callable[[], None] | None = None,
        on_exit: ExitCallback | None = None,
    ) -> int | None:
        """Run the configured ``llm_shell``; ``None`` when it is not configured."""
        if not self.llm_shell:
            return None
        buffer_path = self.prepare_llm_buffer(prompt, last_command_key)
        command_line = expand_llm_template(self.llm_shell, buffer_path, agent, prompt)
        extra = {LAST_COMMAND_ENV: last_command_key} if last_command_key else None
        return self.spawn(command_line, self.environment(extra), on_stdout, on_stderr, on_parent_exit, on_exit)

    def llm_context(self, prompt: str, last_command_key: str | None) -> list[str]:
        """Activity context sections for an LLM prompt, in precedence order.

        ``llm_context`` first, then every matching skill in declared order
        (first match first), then the last command's ``llm_prepend``.
        """
        activity = self.store.current
        if activity is None:
            return []
        sections: list[str] = []
        if activity.llm_context:
            sections.append(self.expand(activity.llm_context))
        for skill in activity.skills:
            if skill.matches(prompt):
                sections.append(self.expand(skill.llm_prepend))
        if last_command_key:
            command = self.resolve(last_command_key)
            if command is not None and command.llm_prepend:
                sections.append(self.expand(command.llm_prepend))
        return sections

    def prepare_llm_buffer(self, prompt: str, last_command_key: str | None = None) -> Path:
        """Return the file handed to the LLM as ``$_BUFFER``.

        Without activity context this is the scrollback file itself;
        otherwise a sibling file with the context ahead of the scrollback.
        """
        sections = self.llm_context(prompt, last_command_key)
        if not sections:
            return self.buffer_path
        try:
            scrollback = self.buffer_path.read_text(encoding="utf-8")
        except OSError:
            scrollback = ""
        target = self.buffer_path.with_name("llm-" + self.buffer_path.name)
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_text("\n\n".join(sections) + "\n\n" + scrollback, encoding="utf-8")
        except OSError as exc:
            logger.warning("cannot write LLM buffer %s: %s", target, exc)
            return self.buffer_path
        return target

    def spawn(
        self,
        command_line: str,
        env: Mapping[str, str],
        on_stdout: OutputCallback | None = None,
        on_stderr: OutputCallback | None = None,
        on_parent_exit: Callable[[], None] | None = None,
        on_exit: ExitCallback | None = None,
    ) -> int:
        run_id = self._next_run_id
        self._next_run_id += 1
        run = _Run(run_id, command_line, on_stdout, on_stderr, on_exit)
        self._runs[run_id] = run
        try:
            process = subprocess.Popen(
                [SHELL, "-c", command_line],
                stdin=subprocess.DEVNULL,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                env=dict(env),
                start_new_session=True,
            )
        except OSError as exc:
            logger.warning("spawn failed for %r: %s", command_line, exc)
            self._publish(ChildExited(run_id, SPAWN_FAILED_CODE, error=str(exc)))
            return run_id

        logger.info("run %d started pid %d: %s", run_id, process.pid, command_line)
        run.process = process
        self.interrupts.register(process, on_parent_exit)
        for name, stream in (("stdout", process.stdout), ("stderr", process.stderr)):
            reader = threading.Thread(
                target=self._pump,
                args=(run_id, name, stream),
                name=f"listy-run-{run_id}-{name}",
                daemon=True,
            )
            run.threads.append(reader)
            reader.start()
        threading.Thread(target=self._wait, args=(run,), name=f"listy-run-{run_id}-wait", daemon=True).start()
        return run_id

    def _pump(self, run_id: int, name: str, stream) -> None:
        decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        fd = stream.fileno()
        try:
            while True:
                try:
                    data = os.read(fd, READ_SIZE)
                except InterruptedError:
                    continue
                except OSError:
                    break
                if not data:
                    break
                text = decoder.decode(data)
                if text:
                    self._publish(ChildOutput(run_id, name, text))
            tail = decoder.decode(b"", final=True)
            if tail:
                self._publish(ChildOutput(run_id, name, tail))
        finally:
            stream.close()

    def _wait(self, run: _Run) -> None:
        for reader in run.threads:
            reader.join()
        code = run.process.wait() if run.process is not None else SPAWN_FAILED_CODE
        if code < 0:
            # Killed by a signal: report it the way sh does.
            code = 128 - code
        logger.info("run %d exited with %d", run.run_id, code)
        self._publish(ChildExited(run.run_id, code))

    def deliver(self, event: object) -> bool:
        """Dispatch a child event to its callbacks. Main thread only."""
        if isinstance(event, ChildOutput):
            run = self._runs.get(event.run_id)
            if run is None:
                return False
            callback = run.on_stdout if event.stream == "stdout" else run.on_stderr
            if callback is not None:
                callback(event.text)
            return True
        if isinstance(event, ChildExited):
            run = self._runs.pop(event.run_id, None)
            if run is None:
                return False
            if run.process is not None:
                self.interrupts.unregister()
            if run.on_exit is not None:
                run.on_exit(event.code, event.error)
            return True
        return False

    def run_interactive(self, command_line: str, env: Mapping[str, str] | None = None) -> int:
        """Run with inherited stdio and wait; the caller restores cooked mode first."""
        logger.info("interactive run: %s", command_line)
        try:
            return subprocess.call([SHELL, "-c", command_line], env=dict(env or self.environment()))
        except OSError as exc:
            logger.warning("interactive spawn failed: %s", exc)
            return SPAWN_FAILED_CODE
