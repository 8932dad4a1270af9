# src/captainlog/cli/entry.py

"""
Interactive task entry.

Prompts for the date, start and stop times, project, description, tags and
comment, then inserts the task. With a resume text, the project, description
and tags are taken from the latest task whose description matches it.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from datetime import date, datetime
from typing import TextIO

from ..errors import UnknownFormatError
from ..tasks.task_models import DATE_FORMAT, TIME_FORMAT, Task, TaskSchedule
from ..tasks.task_store import TaskStore
from ..utils import normalize_date, normalize_time, trim

logger = logging.getLogger(__name__)

Prompt = Callable[[str], str]


def _ask(prompt: Prompt, label: str, default: str = "") -> str:
    shown = f"{label} [{default}]: " if default else f"{label}: "
    answer = trim(prompt(shown))
    return answer or default


def _ask_date(prompt: Prompt, out: TextIO, today: date) -> str:
    while True:
        raw = _ask(prompt, "Date", today.strftime(DATE_FORMAT))
        try:
            value = normalize_date(raw)
            datetime.strptime(value, DATE_FORMAT)
        except (UnknownFormatError, ValueError):
            print(f"Invalid date: {raw}", file=out)
            continue
        return value


def _ask_time(prompt: Prompt, out: TextIO, label: str, default: str = "") -> str:
    while True:
        raw = _ask(prompt, label, default)
        if not raw:
            print(f"{label} is required", file=out)
            continue
        try:
            value = normalize_time(raw)
            datetime.strptime(value, TIME_FORMAT)
        except (UnknownFormatError, ValueError):
            print(f"Invalid time: {raw}", file=out)
            continue
        return value


def _ask_required(prompt: Prompt, out: TextIO, label: str, default: str = "") -> str:
    while True:
        value = _ask(prompt, label, default)
        if value:
            return value
        print(f"{label} is required", file=out)


def _ask_project(prompt: Prompt, out: TextIO, projects: Sequence[str], default: str = "") -> str:
    """Pick a favourite project by number, or type any other name."""
    if not projects:
        return _ask_required(prompt, out, "Project", default)

    for n, name in enumerate(projects, start=1):
        print(f"  {n}) {name}", file=out)
    print(f"  {len(projects) + 1}) other", file=out)

    while True:
        answer = _ask(prompt, "Project", default)
        if not answer:
            print("Project is required", file=out)
            continue
        if not answer.isdigit():
            return answer
        choice = int(answer)
        if 1 <= choice <= len(projects):
            return projects[choice - 1]
        if choice == len(projects) + 1:
            return _ask_required(prompt, out, "Other project")
        print(f"Invalid choice: {answer}", file=out)


def _stop_time_of(task: Task | None) -> str:
    if task is None:
        return ""
    end = task.schedule.broken_down_end()
    return f"{end.hour}:{end.minute}"


def find_resumed(store: TaskStore, text: str) -> Task | None:
    """Latest task whose description contains text."""
    found: list[Task] = []

    def first(task: Task) -> bool:
        found.append(task)
        return False

    store.visit_from_description(text, first)
    return found[0] if found else None


def run_entry(
    store: TaskStore,
    *,
    projects: Sequence[str] = (),
    resume: str | None = None,
    prompt: Prompt = input,
    out: TextIO,
    today: date | None = None,
) -> Task | None:
    """
    Run the prompt sequence and insert the resulting task.

    Returns the stored task, or None when the user declined the resumed
    task. EOFError / KeyboardInterrupt from prompt propagate to the caller.
    """
    resumed: Task | None = None
    if resume is not None:
        resumed = find_resumed(store, resume)
        if resumed is None:
            print(f"No task found matching '{resume}'", file=out)
            return None
        print(f"Resume {resumed}", file=out)
        answer = trim(prompt("Continue? [Y/n] ")).lower()
        if answer not in ("", "y", "yes"):
            return None

    task_date = _ask_date(prompt, out, today or date.today())
    start_time = _ask_time(prompt, out, "Start", _stop_time_of(store.find_latest_for_day(task_date)))
    stop_time = _ask_time(prompt, out, "Stop")

    if resumed is not None:
        project = resumed.project
        description = resumed.description
        tags = _ask(prompt, "Tags", resumed.joined_tags)
    else:
        project = _ask_project(prompt, out, projects)
        description = _ask_required(prompt, out, "Description")
        tags = _ask(prompt, "Tags")
    comment = _ask(prompt, "Comment")

    task = Task(
        schedule=TaskSchedule.from_day(task_date, start_time, stop_time),
        project=project,
        description=description,
        tags=tags,
        comment=comment,
    )
    task = task.with_id(store.insert(task))
    logger.debug("Inserted task %s", task.id)
    print(task, file=out)
    return task
