"""CLI argument, activity selection and startup behavior tests."""

from __future__ import annotations

import sys
import tempfile
import unittest
from pathlib import Path
from unittest import mock

from listy import cli
from listy.config import AppConfig
from listy.store import Activity, ActivityStore
from listy.variables import VariableDefinition, VariableType

ROBIN = "name: robin\nvariables:\n  SYMBOL:\n    type: string\n    default: IWM\n  QTY:\n    type: int\n    default: 10\n"


class CliArgumentTests(unittest.TestCase):
    def test_parser_defaults(self) -> None:
        args = cli.build_parser().parse_args([])
        self.assertIsNone(args.activity)
        self.assertFalse(args.no_color)
        self.assertFalse(args.no_jog)

    def test_resolve_config_applies_only_given_overrides(self) -> None:
        base = AppConfig(activity_dir=Path("/cfg/activity"), log_file="/cfg/log")
        args = cli.build_parser().parse_args(["robin", "--no-jog", "--activity-dir", "/tmp/acts"])
        config = cli.resolve_config(args, base)
        self.assertEqual(config.activity_dir, Path("/tmp/acts"))
        self.assertEqual(config.log_file, "/cfg/log")
        self.assertFalse(config.jog_enabled)
        self.assertFalse(config.no_color)


class CliStoreTests(unittest.TestCase):
    def setUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        self.addCleanup(self._tmp.cleanup)
        self.root = Path(self._tmp.name)
        self.config = AppConfig(activity_dir=self.root)

    def test_empty_directory_uses_default_activity(self) -> None:
        store = cli.build_store(self.config)
        self.assertEqual(store.current_name, "default")
        self.assertEqual(store.definitions(), {})

    def test_named_activity_is_selected(self) -> None:
        (self.root / "robin.yml").write_text(ROBIN, encoding="utf-8")
        (self.root / "alpha.yml").write_text("name: alpha\n", encoding="utf-8")
        self.assertEqual(cli.build_store(self.config, "robin").current_name, "robin")

    def test_unknown_activity_exits_with_available_names(self) -> None:
        (self.root / "robin.yml").write_text(ROBIN, encoding="utf-8")
        with self.assertRaises(SystemExit) as ctx:
            cli.build_store(self.config, "nope")
        self.assertEqual(str(ctx.exception), "Unknown activity: nope\nAvailable: robin")

    def test_loader_errors_are_warnings(self) -> None:
        (self.root / "bad.yml").write_text("- not a mapping\n", encoding="utf-8")
        with mock.patch("sys.stderr") as stderr:
            cli.build_store(self.config)
        written = "".join(call.args[0] for call in stderr.write.call_args_list)
        self.assertIn("Warning: bad.yml: top level must be a mapping", written)

    def test_initial_values(self) -> None:
        activity = Activity(
            name="robin",
            variables={
                "SYMBOL": VariableDefinition("SYMBOL", VariableType.STRING, default="IWM"),
                "QTY": VariableDefinition("QTY", VariableType.INT, default=10),
            },
        )
        store = ActivityStore([activity])
        cli.apply_initial_values(store, "TSLA", "5")
        self.assertEqual((store.get("SYMBOL"), store.get("QTY")), ("TSLA", 5))
        with self.assertRaises(SystemExit):
            cli.apply_initial_values(store, None, "five")


class CliMainTests(unittest.TestCase):
    def test_main_refuses_non_tty_stdin(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            config = AppConfig(activity_dir=Path(tmp))
            stdin = mock.Mock()
            stdin.fileno.return_value = 0
            stdout = mock.Mock()
            stdout.fileno.return_value = 1
            with mock.patch.object(sys, "argv", ["listy"]), mock.patch(
                "listy.cli.load_app_config", return_value=config
            ), mock.patch("listy.cli.setup_logging"), mock.patch.object(sys, "stdin", stdin), mock.patch.object(
                sys, "stdout", stdout
            ), mock.patch("listy.cli.os.isatty", return_value=False), mock.patch(
                "listy.cli.TerminalController"
            ) as controller:
                with self.assertRaises(SystemExit) as ctx:
                    cli.main()

        self.assertIn("interactive terminal", str(ctx.exception))
        controller.assert_not_called()


if __name__ == "__main__":
    unittest.main()
