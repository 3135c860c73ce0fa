"""Command-line front door for listy.

Parses CLI options, loads config and activities, and wires the REPL
collaborators together before handing the terminal to ``Repl.run``.
"""

from __future__ import annotations

import argparse
import os
import sys
import termios
from pathlib import Path

from .activities import load_activities
from .config import AppConfig, load_app_config
from .interrupts import InterruptManager
from .jog import JogWheelSource
from .logs import get_logger, setup_logging
from .render import ScrollbackBuffer, TerminalRenderer, resolve_theme
from .repl import Repl
from .store import Activity, ActivityStore
from .terminal import TerminalController
from .variables import parse_value
from .voice import VoiceListener

logger = get_logger(__name__)

DEFAULT_ACTIVITY = Activity(name="default", description="Default activity")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="listy",
        description="Hotkey-driven terminal launcher for activity command templates.",
    )
    parser.add_argument("activity", nargs="?", default=None, help="Activity to start in.")
    parser.add_argument("--symbol", default=None, help="Initial SYMBOL value.")
    parser.add_argument("--qty", default=None, help="Initial QTY value.")
    parser.add_argument("--activity-dir", default=None, help="Directory of activity YAML files.")
    parser.add_argument("--no-color", action="store_true", help="Disable colored status bar and highlighting.")
    parser.add_argument("--log-file", default=None, help="Write debug logs to this file.")
    parser.add_argument("--no-jog", action="store_true", help="Do not open the MIDI jog wheel.")
    return parser


def resolve_config(args: argparse.Namespace, base: AppConfig | None = None) -> AppConfig:
    """Apply CLI overrides on top of ``config.json``."""
    config = base if base is not None else load_app_config()
    return config.with_overrides(
        activity_dir=Path(args.activity_dir).expanduser() if args.activity_dir else None,
        log_file=args.log_file,
        no_color=True if args.no_color else None,
        jog_enabled=False if args.no_jog else None,
    )


def build_store(config: AppConfig, activity: str | None = None) -> ActivityStore:
    """Load activities, pick the starting one and report loader errors on stderr."""
    result = load_activities(config.activity_dir)
    for error in result.errors:
        print(f"Warning: {error}", file=sys.stderr)
    activities = list(result.activities)
    if not activities:
        logger.info("no activities in %s; using an empty default", config.activity_dir)
        activities = [DEFAULT_ACTIVITY]
    store = ActivityStore(activities)
    if activity is not None and not store.set_current(activity):
        raise SystemExit(f"Unknown activity: {activity}\nAvailable: {', '.join(store.activity_names())}")
    return store


def apply_initial_values(store: ActivityStore, symbol: str | None, qty: str | None) -> None:
    for name, raw in (("SYMBOL", symbol), ("QTY", qty)):
        if raw is None:
            continue
        definition = store.get_definition(name)
        if definition is None:
            continue
        value = parse_value(raw, definition)
        if value is None:
            raise SystemExit(f"Invalid value for {name}: {raw}")
        store.set(name, value)


def main() -> None:
    """Parse CLI arguments and run the interactive session."""
    args = build_parser().parse_args()
    config = resolve_config(args)
    setup_logging(config.log_file)

    store = build_store(config, args.activity)
    apply_initial_values(store, args.symbol, args.qty)

    stdin_fd = sys.stdin.fileno()
    stdout_fd = sys.stdout.fileno()
    if not os.isatty(stdin_fd):
        raise SystemExit("listy needs an interactive terminal on stdin.")
    try:
        terminal = TerminalController(stdin_fd, stdout_fd)
    except termios.error as exc:
        raise SystemExit(f"Cannot switch the terminal to raw mode: {exc}") from exc

    renderer = TerminalRenderer(
        terminal.write,
        theme=resolve_theme(config.no_color),
        ms_per_char=config.flash_ms_per_char,
        min_flash_ms=config.flash_min_ms,
        highlight=None if config.no_color else config.pygments_style,
        scrollback=ScrollbackBuffer(config.buffer_path),
    )
    interrupts = InterruptManager()
    repl = Repl(store, renderer, config, interrupts=interrupts, terminal=terminal, stdin_fd=stdin_fd)
    jog_device = Path(config.jog_device) if config.jog_device else None
    repl.jog = JogWheelSource(repl.publish, device_path=jog_device)
    repl.voice = VoiceListener(repl.publish)

    logger.info("starting session in %s", store.current_name)
    with terminal.raw_mode():
        repl.run()


if __name__ == "__main__":
    main()
