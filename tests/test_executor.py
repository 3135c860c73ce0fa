"""Tests for command expansion, LLM buffer preparation and child runs."""

from __future__ import annotations

import os
import queue
import tempfile
import unittest
from datetime import date
from pathlib import Path
from unittest import mock

from listy.activities import activity_from_mapping
from listy.events import ChildExited, ChildOutput
from listy.executor import (
    LAST_COMMAND_ENV,
    SPAWN_FAILED_CODE,
    CommandExecutor,
    expand_llm_template,
    split_agent_prefix,
)
from listy.interrupts import InterruptManager
from listy.store import ActivityStore


def robin_store() -> ActivityStore:
    activity = activity_from_mapping(
        {
            "name": "robin",
            "llm_context": "Trading $SYMBOL.",
            "variables": {
                "SYMBOL": {"type": "string", "default": "IWM"},
                "QTY": {"type": "int", "default": 5},
                "EXP": {"type": "date", "format": "M/d", "value": "2025-01-17"},
            },
            "commands": {
                "q": "robin shares quote $SYMBOL",
                "b": {"shell": "robin buy $SYMBOL $QTY $INPUT", "llm_prepend": "Bought ${QTY}."},
                "o": "robin options $EXP:date:yyyy-MM-dd",
            },
            "env": {"ROBIN_ENV": "paper"},
            "skills": [
                {"pattern": "chart", "llm_prepend": "Use charts."},
                {"pattern": "news", "llm_prepend": "Check news."},
            ],
        }
    )
    return ActivityStore([activity], today=date(2025, 1, 10))


class TemplateHelperTests(unittest.TestCase):
    def test_expand_llm_template(self) -> None:
        command = expand_llm_template("llm --agent $_AGENT -f ${_BUFFER} '$*'", "/tmp/buf", "quant", "why")
        self.assertEqual(command, "llm --agent quant -f /tmp/buf 'why'")

    def test_split_agent_prefix(self) -> None:
        self.assertEqual(split_agent_prefix("@quant what now"), ("quant", "what now"))
        self.assertEqual(split_agent_prefix("@quant"), ("quant", ""))
        self.assertEqual(split_agent_prefix("mail me@host"), (None, "mail me@host"))


class ExecutorExpansionTests(unittest.TestCase):
    def setUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        self.addCleanup(self._tmp.cleanup)
        self.buffer = Path(self._tmp.name) / "buffer.log"
        self.buffer.write_text("old output\n", encoding="utf-8")
        self.store = robin_store()
        self.events: list[object] = []
        self.executor = CommandExecutor(
            self.store,
            self.events.append,
            InterruptManager(exit_func=lambda code: None),
            self.buffer,
            base_env={"PATH": "/bin"},
        )

    def test_expand_uses_formatted_and_typed_values(self) -> None:
        self.store.set("SYMBOL", "TSLA")
        self.assertEqual(self.executor.expand("robin shares quote $SYMBOL"), "robin shares quote TSLA")
        self.assertEqual(self.executor.expand("x $EXP"), "x 1/17")
        self.assertEqual(self.executor.expand("robin options $EXP:date:yyyy-MM-dd"), "robin options 2025-01-17")
        self.assertEqual(self.executor.expand("buy $QTY $INPUT", "limit"), "buy 5 limit")

    def test_environment_layers_activity_env(self) -> None:
        env = self.executor.environment({LAST_COMMAND_ENV: "b"})
        self.assertEqual(env, {"PATH": "/bin", "ROBIN_ENV": "paper", LAST_COMMAND_ENV: "b"})

    def test_unknown_command_key_returns_none(self) -> None:
        self.assertIsNone(self.executor.execute("zz"))

    def test_llm_context_order(self) -> None:
        sections = self.executor.llm_context("news and chart please", "b")
        self.assertEqual(sections, ["Trading IWM.", "Use charts.", "Check news.", "Bought 5."])

    def test_prepare_llm_buffer_writes_context_file(self) -> None:
        target = self.executor.prepare_llm_buffer("chart", None)
        self.assertEqual(target.name, "llm-buffer.log")
        self.assertEqual(target.read_text(encoding="utf-8"), "Trading IWM.\n\nUse charts.\n\nold output\n")

    def test_prepare_llm_buffer_without_context_is_scrollback(self) -> None:
        store = ActivityStore([activity_from_mapping({"name": "bare"})])
        executor = CommandExecutor(store, self.events.append, InterruptManager(), self.buffer)
        self.assertEqual(executor.prepare_llm_buffer("chart"), self.buffer)

    def test_execute_llm_without_template(self) -> None:
        self.assertIsNone(self.executor.execute_llm("hi", "default"))

    def test_execute_llm_builds_command_line(self) -> None:
        self.executor.llm_shell = "ask --agent $_AGENT --file $_BUFFER -- $*"
        with mock.patch.object(self.executor, "spawn", return_value=9) as spawn:
            run_id = self.executor.execute_llm("hello", "quant", last_command_key="b")
        self.assertEqual(run_id, 9)
        command_line, env = spawn.call_args.args[:2]
        expected_buffer = self.buffer.with_name("llm-buffer.log")
        self.assertEqual(command_line, f"ask --agent quant --file {expected_buffer} -- hello")
        self.assertEqual(env[LAST_COMMAND_ENV], "b")


class ExecutorRunTests(unittest.TestCase):
    def setUp(self) -> None:
        self.events: queue.Queue = queue.Queue()
        self.interrupts = InterruptManager(exit_func=lambda code: None)
        self.executor = CommandExecutor(
            robin_store(),
            self.events.put,
            self.interrupts,
            Path(tempfile.gettempdir()) / "listy-test-buffer.log",
            base_env={"PATH": os.environ.get("PATH", "/usr/bin:/bin")},
        )

    def _drain_until_exit(self) -> None:
        while True:
            event = self.events.get(timeout=10)
            self.executor.deliver(event)
            if isinstance(event, ChildExited):
                return

    def test_streams_and_exit_code_are_delivered(self) -> None:
        stdout: list[str] = []
        stderr: list[str] = []
        exits: list[tuple[int, object]] = []
        self.executor.execute_shell(
            "echo hi; echo oops >&2; exit 3",
            on_stdout=stdout.append,
            on_stderr=stderr.append,
            on_exit=lambda code, error: exits.append((code, error)),
        )
        self.assertTrue(self.interrupts.has_child)
        self._drain_until_exit()
        self.assertEqual("".join(stdout), "hi\n")
        self.assertEqual("".join(stderr), "oops\n")
        self.assertEqual(exits, [(3, None)])
        self.assertFalse(self.executor.running)
        self.assertFalse(self.interrupts.has_child)

    def test_signal_exit_is_reported_like_sh(self) -> None:
        exits: list[int] = []
        self.executor.execute_shell("kill -TERM $$", on_exit=lambda code, error: exits.append(code))
        self._drain_until_exit()
        self.assertEqual(exits, [143])

    def test_spawn_failure_publishes_exit(self) -> None:
        exits: list[tuple[int, object]] = []
        with mock.patch("listy.executor.subprocess.Popen", side_effect=OSError("no sh")):
            self.executor.execute_shell("true", on_exit=lambda code, error: exits.append((code, error)))
        self._drain_until_exit()
        self.assertEqual(exits, [(SPAWN_FAILED_CODE, "no sh")])

    def test_deliver_ignores_unknown_runs(self) -> None:
        self.assertFalse(self.executor.deliver(ChildOutput(99, "stdout", "x")))
        self.assertFalse(self.executor.deliver(object()))


if __name__ == "__main__":
    unittest.main()
