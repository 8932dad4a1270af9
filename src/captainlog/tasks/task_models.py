# src/captainlog/tasks/task_models.py

from __future__ import annotations

import re
from collections.abc import Iterable
from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Any, NamedTuple

from ..errors import ChronologyError, InvalidDateTimeError, JsonShapeError
from ..utils import trim

DATE_TIME_FORMAT = "%Y-%m-%d %H:%M:%S"
DATE_FORMAT = "%Y-%m-%d"
TIME_FORMAT = "%H:%M"

PROPERTY_ID = "id"
PROPERTY_START = "start"
PROPERTY_STOP = "stop"
PROPERTY_PROJECT = "project"
PROPERTY_DESCRIPTION = "description"
PROPERTY_TAGS = "tags"
PROPERTY_COMMENT = "comment"

REQUIRED_PROPERTIES = (PROPERTY_START, PROPERTY_STOP, PROPERTY_PROJECT, PROPERTY_DESCRIPTION)

TAG_SEPARATOR = ","

_DATE_TIME_RE = re.compile(r"(\d+)-(\d+)-(\d+) (\d+):(\d+):(\d+)", re.ASCII)


class BrokenDownTime(NamedTuple):
    year: str
    month: str
    day: str
    hour: str
    minute: str


def _parse_date_time(value: str) -> datetime:
    try:
        return datetime.strptime(value, DATE_TIME_FORMAT)
    except (TypeError, ValueError) as exc:
        raise InvalidDateTimeError(f"Invalid date time value: {value}") from exc


def _broken_down(value: str) -> BrokenDownTime:
    m = _DATE_TIME_RE.fullmatch(value)
    if m is None:
        # Unreachable for schedules built through create().
        raise InvalidDateTimeError(f"Invalid date time value: {value}")
    return BrokenDownTime(*m.groups()[:5])


def tags_from_string(raw: str | None) -> frozenset[str]:
    """Split a comma-separated tag string; tags are trimmed, empty ones dropped."""
    if not raw:
        return frozenset()
    return frozenset(t for t in (trim(p) for p in raw.split(TAG_SEPARATOR)) if t)


def join_tags(tags: Iterable[str]) -> str:
    return TAG_SEPARATOR.join(sorted(tags))


@dataclass(frozen=True, slots=True)
class TaskSchedule:
    """
    Half-open [start, stop) interval as two 'YYYY-MM-DD HH:MM:SS' strings.

    Build it with create() / from_day(); the strings are kept exactly as given
    so that they round-trip through the database unchanged.
    """

    start: str
    stop: str

    @classmethod
    def create(cls, start: str, stop: str) -> TaskSchedule:
        start_dt = _parse_date_time(start)
        stop_dt = _parse_date_time(stop)
        if start_dt >= stop_dt:
            raise ChronologyError(f"Invalid chronology: {start} -> {stop}")
        return cls(start, stop)

    @classmethod
    def from_day(cls, task_date: str, start_time: str, stop_time: str) -> TaskSchedule:
        return cls.create(f"{task_date} {start_time}:00", f"{task_date} {stop_time}:00")

    def broken_down_start(self) -> BrokenDownTime:
        return _broken_down(self.start)

    def broken_down_end(self) -> BrokenDownTime:
        return _broken_down(self.stop)

    def duration_seconds(self) -> int:
        delta = _parse_date_time(self.stop) - _parse_date_time(self.start)
        return int(delta.total_seconds())

    def __str__(self) -> str:
        return f"{self.start} -> {self.stop}"


@dataclass(frozen=True, slots=True)
class Task:
    schedule: TaskSchedule
    project: str
    description: str
    tags: frozenset[str] = frozenset()
    comment: str = ""

    # 0 until the store assigned one; not part of equality.
    id: int = field(default=0, compare=False)

    def __post_init__(self) -> None:
        tags: Any = self.tags
        if isinstance(tags, str):
            tags = tags_from_string(tags)
        else:
            tags = frozenset(t for t in (trim(str(x)) for x in tags) if t)
        object.__setattr__(self, "tags", tags)
        if self.comment is None:
            object.__setattr__(self, "comment", "")

    @property
    def start(self) -> str:
        return self.schedule.start

    @property
    def stop(self) -> str:
        return self.schedule.stop

    @property
    def joined_tags(self) -> str:
        return join_tags(self.tags)

    def with_id(self, task_id: int) -> Task:
        return replace(self, id=int(task_id))

    def __str__(self) -> str:
        out = f"@{self.id} [{self.project}] {self.schedule} : {self.description}"
        if self.tags:
            out += f" ({self.joined_tags})"
        return out


# ---- JSON input ----


def _required_str(obj: dict[str, Any], key: str) -> str:
    if key not in obj:
        raise JsonShapeError(f"Missing property: {key}")
    value = obj[key]
    if not isinstance(value, str):
        raise JsonShapeError(f"Property {key} must be a string")
    if not value:
        raise JsonShapeError(f"Property {key} must not be empty")
    return value


def task_from_json(obj: Any, *, require_id: bool = False) -> Task:
    """
    Validate a JSON task and build the record.

    Raises JsonShapeError for missing/mistyped properties and the schedule
    errors when start/stop are not a valid interval.
    """
    if not isinstance(obj, dict):
        raise JsonShapeError("Task must be a JSON object")

    values = {key: _required_str(obj, key) for key in REQUIRED_PROPERTIES}

    raw_tags = obj.get(PROPERTY_TAGS)
    if raw_tags is None:
        raw_tags = []
    if not isinstance(raw_tags, list) or not all(isinstance(t, str) for t in raw_tags):
        raise JsonShapeError(f"Property {PROPERTY_TAGS} must be an array of strings")

    comment = obj.get(PROPERTY_COMMENT)
    if comment is None:
        comment = ""
    if not isinstance(comment, str):
        raise JsonShapeError(f"Property {PROPERTY_COMMENT} must be a string")

    task_id = 0
    if PROPERTY_ID in obj:
        raw_id = obj[PROPERTY_ID]
        if isinstance(raw_id, bool) or not isinstance(raw_id, int):
            raise JsonShapeError(f"Property {PROPERTY_ID} must be an integer")
        task_id = raw_id
    elif require_id:
        raise JsonShapeError(f"Missing property: {PROPERTY_ID}")

    schedule = TaskSchedule.create(values[PROPERTY_START], values[PROPERTY_STOP])
    return Task(
        schedule=schedule,
        project=values[PROPERTY_PROJECT],
        description=values[PROPERTY_DESCRIPTION],
        tags=frozenset(raw_tags),
        comment=comment,
        id=task_id,
    )
