#!/usr/bin/env python3
"""
filekeep_main.py — CLI entry point for filekeep.

Loads the configuration, registers a watch for every valid rule and runs
the dispatch loop until SIGINT/SIGTERM.  Every change to a watched file
is copied into that file's backup directory.

Usage
-----
    python -m filekeep config.yaml
"""

from __future__ import annotations

import argparse
import logging
import signal
import sys
import threading
from importlib.metadata import PackageNotFoundError, version

from filekeep.backup import BackupWriter
from filekeep.config import load_config
from filekeep.dispatcher import drain, run
from filekeep.exceptions import ConfigurationError, EventSourceClosed, WatcherInitError
from filekeep.monitor import register
from filekeep.rules import build_rule_table

# ---------------------------------------------------------------------------
# Logging configuration
# ---------------------------------------------------------------------------
logging.basicConfig(
    level=logging.DEBUG,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    stream=sys.stdout,
)
logger = logging.getLogger("filekeep")


def _package_version() -> str:
    try:
        return version("filekeep")
    except PackageNotFoundError:
        return "unknown"


def _install_signal_handlers(stop_event: threading.Event) -> None:
    def _on_signal(signum, frame) -> None:  # noqa: ANN001
        logger.info("Received %s, shutting down …", signal.Signals(signum).name)
        stop_event.set()

    signal.signal(signal.SIGINT, _on_signal)
    signal.signal(signal.SIGTERM, _on_signal)


# ---------------------------------------------------------------------------
# Argument parser
# ---------------------------------------------------------------------------

def build_parser() -> argparse.ArgumentParser:
    """Build the CLI argument parser."""
    parser = argparse.ArgumentParser(
        prog="filekeep",
        description="filekeep — Simple file backup tool.",
        epilog=(
            "Every file_path and backup_dir_path in the configuration must "
            "already exist when filekeep starts; create backup directories "
            "beforehand."
        ),
    )
    parser.add_argument(
        "config_file",
        help="The YAML configuration file (rules of file_path / backup_dir_path).",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {_package_version()}",
    )
    return parser


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------

def main(argv: list[str] | None = None) -> None:
    """Parse CLI args, start watching and dispatch until stopped."""
    args = build_parser().parse_args(argv)

    try:
        config = load_config(args.config_file)
        rule_table = build_rule_table(config.rules)
        watch, source = register(rule_table, debounce_seconds=config.debounce_seconds)
    except (ConfigurationError, WatcherInitError) as exc:
        logger.critical("%s", exc)
        sys.exit(1)

    stop_event = threading.Event()
    _install_signal_handlers(stop_event)

    logger.info("=== filekeep ===")
    logger.info("Config   : %s", args.config_file)
    logger.info("Rules    : %d (%d watched)", len(rule_table), len(watch.watched_files))
    logger.info("Debounce : %.1f s", config.debounce_seconds)

    writer = BackupWriter(rule_table)
    orderly = True
    try:
        run(source, writer, stop_event=stop_event)
    except EventSourceClosed as exc:
        logger.critical("Event source disconnected: %s", exc)
        orderly = False
    except KeyboardInterrupt:
        logger.info("Stopped by user.")
    finally:
        watch.stop(flush=orderly)

    if not orderly:
        sys.exit(1)
    # back up changes that were still inside the debounce window
    drain(source, writer)
    sys.exit(0)


if __name__ == "__main__":
    main()
