# src/captainlog/tasks/task_csv.py

"""
Legacy pipe-separated CSV import/export.

    task_date|task_start|task_stop|task_description|task_project|task_tags|task_comment
    2022-04-20|09:00|10:30|my description|my project|preview,complex|my comment

The legacy format carries a date plus HH:MM clock times, so imported
schedules always have :00 seconds. There is no quoting: a field holding the
separator or a line break cannot be exported.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from pathlib import Path
from typing import TextIO

from ..errors import CaptainLogError, CsvError, CsvHeaderError, CsvRowError, IOFailureError
from .task_models import Task, TaskSchedule
from .task_store import TaskStore

logger = logging.getLogger(__name__)

CSV_SEPARATOR = "|"

CSV_COLUMNS = (
    "task_date",
    "task_start",
    "task_stop",
    "task_description",
    "task_project",
    "task_tags",
    "task_comment",
)

CSV_HEADER = CSV_SEPARATOR.join(CSV_COLUMNS)


def _strip_eol(line: str) -> str:
    return line.rstrip("\r\n")


def check_header(line: str | None) -> None:
    if line is None:
        raise CsvHeaderError("Import failed: Unexpected end of input")

    columns = _strip_eol(line).split(CSV_SEPARATOR)
    for pos, expected in enumerate(CSV_COLUMNS):
        if pos >= len(columns):
            raise CsvHeaderError("Import failed: Unexpected end of line")
        if columns[pos] != expected:
            raise CsvHeaderError(
                f"Import failed: Expected column {expected} but found column {columns[pos]}"
            )
    if len(columns) > len(CSV_COLUMNS):
        raise CsvHeaderError(f"Import failed: Unexpected column {columns[len(CSV_COLUMNS)]}")


def parse_row(line: str) -> Task:
    """Build an unassigned task from one data line."""
    fields = line.split(CSV_SEPARATOR)[: len(CSV_COLUMNS)]
    fields += [""] * (len(CSV_COLUMNS) - len(fields))
    task_date, start_time, stop_time, description, project, tags, comment = fields

    schedule = TaskSchedule.from_day(task_date, start_time, stop_time)
    return Task(
        schedule=schedule,
        project=project,
        description=description,
        tags=tags,
        comment=comment,
    )


def import_csv(store: TaskStore, lines: Iterable[str], *, replace: bool = False) -> int:
    """
    Import legacy CSV lines into the store and return the number of rows.

    Runs in a single transaction: the first bad row rolls everything back and
    raises CsvRowError. With replace=True the existing tasks are deleted in
    the same transaction.
    """
    it = iter(lines)
    check_header(next(it, None))

    count = 0
    with store.transaction():
        if replace:
            store.delete_all()
        for line_number, raw in enumerate(it, start=2):
            line = _strip_eol(raw)
            if not line:
                continue
            try:
                store.insert(parse_row(line))
            except CaptainLogError as exc:
                raise CsvRowError(
                    f"Error for line: {line}\n\t{exc}",
                    line_number=line_number,
                    line=line,
                    imported_before_failure=count,
                ) from exc
            count += 1

    logger.info("Imported %d tasks", count)
    return count


def import_csv_file(store: TaskStore, path: str | Path, *, replace: bool = False) -> int:
    try:
        f = open(path, encoding="utf-8", newline="")
    except OSError as exc:
        raise IOFailureError(f"Failed to open the file {path}") from exc
    with f:
        return import_csv(store, f, replace=replace)


def format_row(task: Task) -> str:
    start = task.schedule.broken_down_start()
    end = task.schedule.broken_down_end()
    fields = (
        f"{start.year}-{start.month}-{start.day}",
        f"{start.hour}:{start.minute}",
        f"{end.hour}:{end.minute}",
        task.description,
        task.project,
        task.joined_tags,
        task.comment,
    )
    for value in fields:
        if CSV_SEPARATOR in value or "\n" in value or "\r" in value:
            raise CsvError(f"Task @{task.id} cannot be exported: field {value!r} contains a separator")
    return CSV_SEPARATOR.join(fields)


def export_csv(store: TaskStore, out: TextIO) -> int:
    """Write the header and every task; returns the number of tasks written."""
    out.write(CSV_HEADER + "\n")
    count = 0

    def write(task: Task) -> bool:
        nonlocal count
        out.write(format_row(task) + "\n")
        count += 1
        return True

    store.visit_all(write)
    out.flush()
    logger.info("Exported %d tasks", count)
    return count


def export_csv_file(store: TaskStore, path: str | Path) -> int:
    """
    Export into path through a sibling temporary file.

    The target is only replaced once every row was written; on failure it is
    left untouched and the temporary file is removed.
    """
    target = Path(path)
    tmp = target.with_name(f".{target.name}.tmp")
    try:
        f = open(tmp, "w", encoding="utf-8", newline="")
    except OSError as exc:
        raise IOFailureError(f"Failed to open the file {path}") from exc

    try:
        with f:
            count = export_csv(store, f)
        tmp.replace(target)
    except OSError as exc:
        tmp.unlink(missing_ok=True)
        raise IOFailureError(f"Failed to write the file {path}") from exc
    except BaseException:
        tmp.unlink(missing_ok=True)
        raise
    return count
