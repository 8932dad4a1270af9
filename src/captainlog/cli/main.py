# src/captainlog/cli/main.py

"""
CLI entrypoint.

Parses the command line, loads settings and logging, opens the store and
runs exactly one action:
- one-shot commands (version, import, export, tail, delete, web),
- the interactive entry flow when no action is given.
"""

from __future__ import annotations

import argparse
import logging
import sys
from collections.abc import Sequence

from .. import APP_NAME, __version__
from ..errors import CaptainLogError
from . import commands
from .bootstrap import load_and_configure, open_store
from .entry import run_entry

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog=APP_NAME, description="Keep a log of the time spent on tasks.")
    parser.add_argument("-c", "--config", metavar="FILE", help="configuration file")

    action = parser.add_mutually_exclusive_group()
    action.add_argument("-v", "--version", action="store_true", help="print the version and exit")
    action.add_argument("-i", "--import", dest="import_file", metavar="FILE", help="replace all tasks with a CSV file")
    action.add_argument("-e", "--export", dest="export_file", metavar="FILE", help="export all tasks to a CSV file")
    action.add_argument("-r", "--resume", metavar="TEXT", help="log a new slot of the latest task matching TEXT")
    action.add_argument("-t", "--tail", metavar="N", help="show the N latest tasks")
    action.add_argument("-d", "--delete", metavar="ID|DATETIME", help="delete a task by id or by 'YYYY-MM-DD HH:MM'")
    action.add_argument("-w", "--web", action="store_true", help="start the web server")
    return parser


def _dispatch(args: argparse.Namespace, settings, out) -> int:
    store = open_store(settings)
    try:
        if args.import_file is not None:
            return commands.cmd_import(store, args.import_file, out)
        if args.export_file is not None:
            return commands.cmd_export(store, args.export_file, out)
        if args.tail is not None:
            return commands.cmd_tail(store, args.tail, out)
        if args.delete is not None:
            return commands.cmd_delete(store, args.delete, out)
        if args.web:
            return commands.cmd_web(store, settings)

        task = run_entry(store, projects=settings.projects, resume=args.resume, out=out)
        return commands.EXIT_OK if task is not None else commands.EXIT_FAILURE
    finally:
        store.close()


def main(argv: Sequence[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    out = sys.stdout

    try:
        if args.version:
            # No configuration needed; git hash / build type come from it when available.
            try:
                settings = load_and_configure(args.config)
            except CaptainLogError as exc:
                logger.debug("No configuration for --version: %s", exc)
                settings = None
            return commands.cmd_version(out, settings)

        settings = load_and_configure(args.config)
        logger.debug("Starting %s %s", APP_NAME, __version__)
        return _dispatch(args, settings, out)

    except CaptainLogError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return commands.EXIT_FAILURE
    except (EOFError, KeyboardInterrupt):
        print(file=sys.stderr)
        logger.info("Aborted.")
        return commands.EXIT_FAILURE
    except Exception:
        logger.exception("Unexpected failure")
        return commands.EXIT_FAILURE


if __name__ == "__main__":
    raise SystemExit(main())
