# src/captainlog/cli/commands.py

"""
One-shot CLI commands.

Each command prints its result on stdout and returns the process exit code.
Failures are raised as CaptainLogError and reported by cli.main.
"""

from __future__ import annotations

import logging
import sqlite3
from importlib import metadata
from typing import TextIO

from .. import APP_NAME, __version__
from ..config import Settings
from ..errors import InvalidCountError
from ..tasks.task_csv import export_csv_file, import_csv_file
from ..tasks.task_models import Task
from ..tasks.task_store import TaskStore
from ..utils import normalize_date_time, trim

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_FAILURE = 1

_DATE_TIME_MARKERS = ("-", ":", ".")


def _dist_version(name: str) -> str:
    try:
        return metadata.version(name)
    except metadata.PackageNotFoundError:
        return "unknown"


def version_banner(settings: Settings | None = None) -> str:
    build_type = settings.build_type if settings is not None else "release"
    git_hash = settings.git_hash if settings is not None else "unknown"
    return (
        f"{APP_NAME} version {__version__} ({build_type}) [{git_hash}]\n"
        f"* SQLite version:   {sqlite3.sqlite_version}\n"
        f"* Flask version:    {_dist_version('flask')}"
    )


def cmd_version(out: TextIO, settings: Settings | None = None) -> int:
    print(version_banner(settings), file=out)
    return EXIT_OK


def cmd_import(store: TaskStore, path: str, out: TextIO) -> int:
    """Replace every stored task with the content of a legacy CSV file."""
    count = import_csv_file(store, path, replace=True)
    print(f"Imported {count} entries", file=out)
    return EXIT_OK


def cmd_export(store: TaskStore, path: str, out: TextIO) -> int:
    count = export_csv_file(store, path)
    print(f"Exported {count} entries", file=out)
    return EXIT_OK


def parse_count(raw: str) -> int:
    try:
        count = int(trim(raw))
    except ValueError as exc:
        raise InvalidCountError(f"Invalid count: {raw}") from exc
    if count <= 0:
        raise InvalidCountError(f"Invalid count: {raw}")
    return count


def cmd_tail(store: TaskStore, raw_count: str, out: TextIO) -> int:
    def show(task: Task) -> bool:
        print(task, file=out)
        return True

    store.visit_n_latest(parse_count(raw_count), show)
    return EXIT_OK


def find_task_to_delete(store: TaskStore, arg: str) -> Task | None:
    """
    Resolve a --delete argument.

    Anything that looks like a date-time ('2022-04-20 9:15', '2022.4.20 9.15')
    selects the task running at that instant; otherwise it is an id.
    """
    arg = trim(arg)
    if any(marker in arg for marker in _DATE_TIME_MARKERS):
        return store.find_at(normalize_date_time(arg))
    try:
        task_id = int(arg)
    except ValueError:
        return None
    return store.find_by_id(task_id)


def cmd_delete(store: TaskStore, arg: str, out: TextIO) -> int:
    task = find_task_to_delete(store, arg)
    if task is None:
        print(f"No task found matching '{arg}'", file=out)
        return EXIT_FAILURE

    store.delete_by_id(task.id)
    print(f"Deleted {task}", file=out)
    return EXIT_OK


def cmd_web(store: TaskStore, settings: Settings) -> int:
    from ..web.server import serve

    serve(store, settings)
    return EXIT_OK
