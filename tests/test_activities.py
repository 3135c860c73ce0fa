"""Tests for activity YAML loading, validation, write-back and the store."""

from __future__ import annotations

import tempfile
import textwrap
import unittest
from datetime import date
from pathlib import Path

from listy.activities import activity_from_mapping, load_activities, persist_variable_values
from listy.errors import ActivityError, PersistError
from listy.store import Activity, ActivityStore
from listy.variables import VariableType

ROBIN_YAML = textwrap.dedent(
    """\
    # trading desk
    name: robin
    description: Options trading
    color: "#0a9396"
    status_format: "${QTY}x $SYMBOL"
    variables:
      SYMBOL:
        type: string
        hotkey: s
        default: IWM  # ticker
      QTY:
        type: int
        hotkey: q
        range: [1, 100]
        default: 10
      EXP:
        type: date
        format: M/d
        value: 2025-01-17
      TYPE:
        type: enum
        range: [call, put]
    commands:
      qt: robin shares quote $SYMBOL
      b:
        shell: robin buy $SYMBOL $QTY
        description: Buy shares
        word: buy
        voice: "buy (it|now)"
        llm_prepend: "Last action was a buy."
    aliases:
      bb: b
    env:
      ROBIN_ENV: paper
    history:
      shell: [ls, pwd]
    skills:
      - pattern: chart
        llm_prepend: Use the chart tool.
    """
)


class ActivityLoaderTests(unittest.TestCase):
    def setUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        self.addCleanup(self._tmp.cleanup)
        self.root = Path(self._tmp.name) / "activity"
        self.root.mkdir()
        self.path = self.root / "robin.yml"
        self.path.write_text(ROBIN_YAML, encoding="utf-8")

    def test_loads_full_activity(self) -> None:
        result = load_activities(self.root)
        self.assertEqual(result.errors, [])
        activity = result.activities[0]
        self.assertEqual(activity.name, "robin")
        self.assertEqual(activity.color, "#0a9396")
        self.assertEqual(activity.status_format, "${QTY}x $SYMBOL")
        self.assertEqual(list(activity.variables), ["SYMBOL", "QTY", "EXP", "TYPE"])
        self.assertIs(activity.variables["TYPE"].type, VariableType.ENUM)
        self.assertEqual(activity.variables["TYPE"].members, ("call", "put"))
        self.assertEqual(activity.commands["qt"].shell, "robin shares quote $SYMBOL")
        self.assertEqual(activity.commands["b"].word, "buy")
        self.assertEqual(activity.aliases, {"bb": "b"})
        self.assertEqual(activity.env, {"ROBIN_ENV": "paper"})
        self.assertEqual(activity.history, {"SHELL": ["ls", "pwd"]})
        self.assertEqual(activity.skills[0].llm_prepend, "Use the chart tool.")
        self.assertEqual(activity.path, self.path)

    def test_bad_files_are_reported_and_skipped(self) -> None:
        (self.root / "broken.yaml").write_text("name: [unclosed\n", encoding="utf-8")
        (self.root / "typo.yml").write_text("name: typo\nvariables:\n  X:\n    type: integer\n", encoding="utf-8")
        (self.root / "dupe.yml").write_text("name: robin\n", encoding="utf-8")
        (self.root / "notes.txt").write_text("name: ignored\n", encoding="utf-8")
        result = load_activities(self.root)
        self.assertEqual([activity.name for activity in result.activities], ["robin"])
        self.assertEqual(len(result.errors), 3)
        self.assertTrue(any("typo.yml" in error and "type must be one of" in error for error in result.errors))
        self.assertTrue(any("duplicate activity name" in error for error in result.errors))

    def test_missing_directory_is_created(self) -> None:
        target = Path(self._tmp.name) / "new" / "activity"
        result = load_activities(target)
        self.assertTrue(target.is_dir())
        self.assertEqual(result.activities, [])

    def test_validation_messages(self) -> None:
        with self.assertRaises(ActivityError) as ctx:
            activity_from_mapping({"name": "x", "variables": {"Q": {"type": "int", "step": -1, "hotkey": "ab"}}})
        message = str(ctx.exception)
        self.assertIn("step must be a positive number", message)
        self.assertIn("hotkey must be a single character", message)
        with self.assertRaises(ActivityError):
            activity_from_mapping({"variables": {}})
        with self.assertRaises(ActivityError):
            activity_from_mapping({"name": "x", "commands": {"a": {"description": "no shell"}}})

    def test_persist_updates_values_and_keeps_comments(self) -> None:
        activity = load_activities(self.root).activities[0]
        store = ActivityStore([activity])
        store.set("QTY", 15)
        store.set("EXP", date(2025, 1, 24))
        persist_variable_values(activity, store.values())

        text = self.path.read_text(encoding="utf-8")
        self.assertIn("# trading desk", text)
        self.assertIn("# ticker", text)
        self.assertIn("value: 15", text)
        reloaded = ActivityStore(load_activities(self.root).activities)
        self.assertEqual(reloaded.get("QTY"), 15)
        self.assertEqual(reloaded.get("EXP"), date(2025, 1, 24))
        self.assertEqual(reloaded.get("SYMBOL"), "IWM")

        store.set("QTY", None)
        persist_variable_values(activity, store.values())
        self.assertNotIn("value: 15", self.path.read_text(encoding="utf-8"))

    def test_persist_errors(self) -> None:
        with self.assertRaises(PersistError):
            persist_variable_values(Activity(name="mem"), {})
        activity = load_activities(self.root).activities[0]
        self.path.unlink()
        with self.assertRaises(PersistError):
            persist_variable_values(activity, {"QTY": 1})


class ActivityStoreTests(unittest.TestCase):
    def setUp(self) -> None:
        self.robin = activity_from_mapping(
            {
                "name": "robin",
                "variables": {
                    "SYMBOL": {"type": "string", "hotkey": "s", "default": "IWM"},
                    "QTY": {"type": "int", "hotkey": "q", "default": 10},
                },
                "commands": {
                    "qt": "robin shares quote $SYMBOL",
                    "q": "robin quote",
                    "b": {"shell": "robin buy", "word": "Buy", "voice": "buy (it|now)"},
                },
                "aliases": {"bb": "b"},
            }
        )
        self.store = ActivityStore([self.robin, Activity(name="alpha"), Activity(name="zulu")])

    def test_first_registered_is_current_and_names_sort(self) -> None:
        self.assertEqual(self.store.current_name, "robin")
        self.assertEqual(self.store.activity_names(), ["alpha", "robin", "zulu"])
        self.assertEqual(self.store.next_activity(), "zulu")
        self.assertEqual(self.store.prev_activity(), "alpha")
        self.store.set_current("zulu")
        self.assertEqual(self.store.next_activity(), "alpha")
        self.assertFalse(self.store.set_current("nope"))

    def test_values_are_per_activity(self) -> None:
        self.store.set("QTY", 3)
        self.store.set_current("alpha")
        self.assertIsNone(self.store.get("QTY"))
        self.assertFalse(self.store.set("QTY", 4))
        self.store.set_current("robin")
        self.assertEqual(self.store.get("QTY"), 3)

    def test_reset_snapshot_and_restore(self) -> None:
        snapshot = self.store.snapshot_values()
        self.store.set("QTY", 99)
        self.store.restore_values(snapshot)
        self.assertEqual(self.store.get("QTY"), 10)
        self.store.set("SYMBOL", "TSLA")
        self.assertTrue(self.store.reset("SYMBOL"))
        self.assertEqual(self.store.get("SYMBOL"), "IWM")
        self.assertEqual(self.store.formatted_display(), ["SYMBOL:IWM", "QTY:10"])

    def test_variable_traversal_wraps(self) -> None:
        self.assertEqual(self.store.first_variable().name, "SYMBOL")
        self.assertEqual(self.store.next_variable("QTY").name, "SYMBOL")
        self.assertEqual(self.store.prev_variable("SYMBOL").name, "QTY")
        self.assertEqual(self.store.find_by_hotkey("q").name, "QTY")
        self.assertIsNone(self.store.find_by_hotkey("x"))

    def test_command_lookup_aliases_and_prefix(self) -> None:
        self.assertEqual(self.store.find_command("bb").key, "b")
        command, rest = self.store.match_command_prefix("qt SPY")
        self.assertEqual((command.key, rest), ("qt", " SPY"))
        command, rest = self.store.match_command_prefix("qx")
        self.assertEqual((command.key, rest), ("q", "x"))
        self.assertIsNone(self.store.match_command_prefix("zz"))
        self.assertEqual(self.store.command_keys(), ["qt", "q", "b", "bb"])

    def test_word_and_voice_matching(self) -> None:
        self.assertEqual(self.store.find_command_by_word(" buy ").key, "b")
        self.assertIsNone(self.store.find_command_by_word("sell"))
        self.assertEqual(self.store.find_command_by_voice("please buy it").key, "b")
        self.assertIsNone(self.store.find_command_by_voice("sell it"))


if __name__ == "__main__":
    unittest.main()
