from __future__ import annotations

import logging
import tempfile
import unittest
from pathlib import Path
from unittest import mock

from listy import logs


class LoggingSetupTests(unittest.TestCase):
    def setUp(self) -> None:
        root = logging.getLogger("listy")
        saved = (list(root.handlers), root.level, root.propagate)

        def restore() -> None:
            for handler in root.handlers:
                if handler not in saved[0]:
                    handler.close()
            root.handlers[:] = saved[0]
            root.setLevel(saved[1])
            root.propagate = saved[2]

        self.addCleanup(restore)
        patcher = mock.patch.multiple(logs, _configured=False, _log_file=None)
        patcher.start()
        self.addCleanup(patcher.stop)

    def test_without_path_logging_stays_off(self) -> None:
        logs.setup_logging(None)
        self.assertFalse(logs.is_logging_enabled())
        self.assertIsNone(logs.get_log_file())

    def test_records_go_to_file_with_millisecond_stamps(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            path = Path(tmp) / "nested" / "listy.log"
            logs.setup_logging(path)
            self.assertTrue(logs.is_logging_enabled())
            self.assertEqual(logs.get_log_file(), path)
            logs.get_logger("listy.repl").warning("hello %s", "there")
            for handler in logging.getLogger("listy").handlers:
                handler.flush()
            text = path.read_text(encoding="utf-8")

        self.assertIn("[INFO] listy: Logging initialized", text)
        self.assertRegex(text, r"\[\d{4}-\d\d-\d\d \d\d:\d\d:\d\d\.\d{3}\] \[WARNING\] listy\.repl: hello there")

    def test_second_setup_is_ignored(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            first = Path(tmp) / "a.log"
            logs.setup_logging(first)
            logs.setup_logging(Path(tmp) / "b.log")
            self.assertEqual(logs.get_log_file(), first)
            self.assertFalse((Path(tmp) / "b.log").exists())
            for handler in logging.getLogger("listy").handlers:
                handler.close()


if __name__ == "__main__":
    unittest.main()
