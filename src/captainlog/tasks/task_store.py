# src/captainlog/tasks/task_store.py

from __future__ import annotations

import contextlib
import logging
import sqlite3
from collections.abc import Callable, Iterator
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any, TypeVar

from ..errors import (
    AlreadyOpenError,
    ExecError,
    InvalidCountError,
    OpenError,
    PrepareError,
    SchemaError,
    StoreNotReadyError,
)
from .task_models import (
    PROPERTY_COMMENT,
    PROPERTY_DESCRIPTION,
    PROPERTY_ID,
    PROPERTY_PROJECT,
    PROPERTY_START,
    PROPERTY_STOP,
    PROPERTY_TAGS,
    Task,
    TaskSchedule,
    tags_from_string,
    task_from_json,
)

logger = logging.getLogger(__name__)

R = TypeVar("R")
Visitor = Callable[[R], bool]
RowBuilder = Callable[[sqlite3.Row], R]

IN_MEMORY = ":memory:"

_SCHEMA = """
    CREATE TABLE tasks (
        task_id INTEGER PRIMARY KEY,
        task_start TEXT NOT NULL CHECK (task_start <> ''),
        task_stop TEXT NOT NULL CHECK (task_stop <> ''),
        task_project TEXT NOT NULL CHECK (task_project <> ''),
        task_description TEXT NOT NULL CHECK (task_description <> ''),
        task_tags TEXT,
        task_comment TEXT
    )
"""

_SELECT_TASKS = (
    "SELECT task_id, task_start, task_stop, task_project, task_description, task_tags, task_comment "
    "FROM tasks"
)


class QueryKey(Enum):
    INSERT = "insert"
    UPDATE = "update"
    DELETE_FROM_ID = "delete_from_id"
    DELETE_ALL = "delete_all"
    COUNT = "count"
    SELECT_ALL = "select_all"
    FIND_FROM_ID = "find_from_id"
    FIND_LATEST = "find_latest"
    FIND_LATEST_FOR_DAY = "find_latest_for_day"
    FIND_FOR_DAY = "find_for_day"
    FIND_FROM_DESCRIPTION = "find_from_description"
    FIND_AT = "find_at"


@dataclass(frozen=True, slots=True)
class Query:
    sql: str
    param_types: tuple[type, ...] = ()


_TEXT6 = (str, str, str, str, str, str)

# SQLite INTEGER is a signed 64-bit value.
SQLITE_INT_MIN = -(2**63)
SQLITE_INT_MAX = 2**63 - 1

CATALOG: dict[QueryKey, Query] = {
    QueryKey.INSERT: Query(
        "INSERT INTO tasks (task_start, task_stop, task_project, task_description, task_tags, task_comment) "
        "VALUES (?, ?, ?, ?, ?, ?)",
        _TEXT6,
    ),
    QueryKey.UPDATE: Query(
        "UPDATE tasks SET task_start = ?, task_stop = ?, task_project = ?, task_description = ?, "
        "task_tags = ?, task_comment = ? WHERE task_id = ?",
        (*_TEXT6, int),
    ),
    QueryKey.DELETE_FROM_ID: Query("DELETE FROM tasks WHERE task_id = ?", (int,)),
    QueryKey.DELETE_ALL: Query("DELETE FROM tasks"),
    QueryKey.COUNT: Query("SELECT COUNT(*) FROM tasks"),
    QueryKey.SELECT_ALL: Query(_SELECT_TASKS),
    QueryKey.FIND_FROM_ID: Query(f"{_SELECT_TASKS} WHERE task_id = ?", (int,)),
    QueryKey.FIND_LATEST: Query(f"{_SELECT_TASKS} ORDER BY DATETIME(task_stop) DESC LIMIT ?", (int,)),
    QueryKey.FIND_LATEST_FOR_DAY: Query(
        f"{_SELECT_TASKS} WHERE task_stop LIKE ? ORDER BY DATETIME(task_stop) DESC LIMIT 1", (str,)
    ),
    QueryKey.FIND_FOR_DAY: Query(
        f"{_SELECT_TASKS} WHERE task_stop LIKE ? ORDER BY DATETIME(task_stop) ASC", (str,)
    ),
    QueryKey.FIND_FROM_DESCRIPTION: Query(
        f"{_SELECT_TASKS} WHERE task_description LIKE ? ORDER BY DATETIME(task_stop) DESC", (str,)
    ),
    QueryKey.FIND_AT: Query(
        f"{_SELECT_TASKS} WHERE DATETIME(?) BETWEEN DATETIME(task_start) AND DATETIME(task_stop)",
        (str,),
    ),
}


@dataclass(frozen=True, slots=True)
class _ExecResult:
    lastrowid: int | None
    rowcount: int


class _PreparedStatement:
    """One catalog slot. Never used by two executions at the same time."""

    __slots__ = ("key", "query", "busy")

    def __init__(self, key: QueryKey, query: Query) -> None:
        self.key = key
        self.query = query
        self.busy = False

    def check_args(self, args: tuple[Any, ...]) -> None:
        types = self.query.param_types
        if len(args) != len(types):
            raise ExecError(
                f"Statement {self.key.value} expects {len(types)} parameters, got {len(args)}"
            )
        for pos, (value, expected) in enumerate(zip(args, types, strict=True), start=1):
            if isinstance(value, bool) or not isinstance(value, expected):
                raise ExecError(
                    f"Statement {self.key.value}: parameter {pos} must be {expected.__name__}, "
                    f"got {type(value).__name__}"
                )
            if expected is int and not SQLITE_INT_MIN <= value <= SQLITE_INT_MAX:
                raise ExecError(f"Statement {self.key.value}: parameter {pos} out of range: {value}")


def _row_to_task(row: sqlite3.Row) -> Task:
    return Task(
        schedule=TaskSchedule.create(row["task_start"], row["task_stop"]),
        project=row["task_project"],
        description=row["task_description"],
        tags=tags_from_string(row["task_tags"]),
        comment=row["task_comment"] or "",
        id=int(row["task_id"]),
    )


def _row_to_json(row: sqlite3.Row) -> dict[str, Any]:
    return {
        PROPERTY_ID: int(row["task_id"]),
        PROPERTY_START: row["task_start"],
        PROPERTY_STOP: row["task_stop"],
        PROPERTY_PROJECT: row["task_project"],
        PROPERTY_DESCRIPTION: row["task_description"],
        PROPERTY_TAGS: sorted(tags_from_string(row["task_tags"])),
        PROPERTY_COMMENT: row["task_comment"] or "",
    }


class TaskStore:
    """
    SQLite task store.

    Lifecycle: TaskStore(path) -> open() -> init() -> ... -> close().
    An empty path means an in-memory database.

    The store owns a single connection and a fixed catalog of statements.
    init() validates every catalog entry against the schema up front; each
    statement is compiled on its first execution and then reused from the
    connection's statement cache. Every execution goes through _statement(),
    which binds, runs and always resets the slot.

    Thread-safety:
    - none; the connection and the catalog belong to the creating thread
    """

    def __init__(self, db_path: str | Path | None = "") -> None:
        self._db_path = str(db_path) if db_path else ""
        self._exists = bool(self._db_path) and Path(self._db_path).exists()
        self._conn: sqlite3.Connection | None = None
        self._statements: dict[QueryKey, _PreparedStatement] = {}
        if self._db_path:
            logger.info("Database path: %s", self._db_path)
        else:
            logger.info("In memory database")

    def __enter__(self) -> TaskStore:
        self.open()
        try:
            self.init()
        except Exception:
            self.close()
            raise
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    @property
    def is_open(self) -> bool:
        return self._conn is not None

    @property
    def is_ready(self) -> bool:
        return self._conn is not None and len(self._statements) == len(CATALOG)

    # ---- lifecycle ----

    def open(self) -> None:
        if self._conn is not None:
            raise AlreadyOpenError("Database already opened")

        target = self._db_path or IN_MEMORY
        try:
            if self._db_path:
                Path(self._db_path).parent.mkdir(parents=True, exist_ok=True)
            # Autocommit; transaction() issues BEGIN/COMMIT explicitly.
            conn = sqlite3.connect(
                target,
                isolation_level=None,
                cached_statements=max(128, 2 * len(CATALOG)),
            )
        except (OSError, sqlite3.Error) as exc:
            raise OpenError(f"Cannot open database: {exc}") from exc

        conn.row_factory = sqlite3.Row
        self._conn = conn

    def init(self) -> None:
        conn = self._require_conn()

        if not self._exists:
            try:
                conn.execute(_SCHEMA)
            except sqlite3.Error as exc:
                raise SchemaError(f"Failed to initialize the database: {exc}") from exc
            self._exists = True
            logger.info("Created table tasks")

        for key, query in CATALOG.items():
            if key in self._statements:
                raise PrepareError(f"Query already prepared: {key.value}")
            try:
                # Validation only: EXPLAIN compiles a throwaway variant of the statement.
                conn.execute(f"EXPLAIN {query.sql}", (None,) * len(query.param_types)).close()
            except sqlite3.Error as exc:
                raise PrepareError(f"Failed to prepare statement {key.value}: {exc}") from exc
            self._statements[key] = _PreparedStatement(key, query)

        logger.info("TaskStore ready db=%s total=%s", self._db_path or IN_MEMORY, self.count())

    def close(self) -> None:
        if self._conn is None:
            return
        self._statements.clear()
        try:
            self._conn.close()
            logger.info("Database closed")
        except sqlite3.Error:
            logger.exception("Database partially closed")
        finally:
            self._conn = None

    # ---- low-level helpers ----

    def _require_conn(self) -> sqlite3.Connection:
        if self._conn is None:
            raise StoreNotReadyError("Database not opened")
        return self._conn

    @contextlib.contextmanager
    def _statement(self, key: QueryKey, *args: Any) -> Iterator[sqlite3.Cursor]:
        """
        Scoped use of one catalog statement.

        Binds args (checked against the declared parameter types), executes,
        and on exit closes the cursor so the slot can be reused.
        """
        conn = self._require_conn()
        stmt = self._statements.get(key)
        if stmt is None:
            raise StoreNotReadyError(f"Statement not prepared: {key.value}")
        stmt.check_args(args)
        if stmt.busy:
            raise ExecError(f"Statement already in use: {key.value}")

        stmt.busy = True
        cur: sqlite3.Cursor | None = None
        try:
            try:
                cur = conn.execute(stmt.query.sql, args)
            except sqlite3.Error as exc:
                logger.debug("Statement %s failed args=%r", key.value, args, exc_info=True)
                raise ExecError(f"Failed to execute the statement: {exc}") from exc
            yield cur
        finally:
            if cur is not None:
                cur.close()
            stmt.busy = False

    def _exec(self, key: QueryKey, *args: Any) -> _ExecResult:
        with self._statement(key, *args) as cur:
            return _ExecResult(lastrowid=cur.lastrowid, rowcount=cur.rowcount)

    def _maybe_find(self, key: QueryKey, args: tuple[Any, ...], builder: RowBuilder[R]) -> R | None:
        with self._statement(key, *args) as cur:
            try:
                row = cur.fetchone()
            except sqlite3.Error as exc:
                raise ExecError(f"Failed to read the result: {exc}") from exc
            return builder(row) if row is not None else None

    def _visit(
        self,
        key: QueryKey,
        args: tuple[Any, ...],
        visitor: Visitor[R],
        builder: RowBuilder[R],
    ) -> None:
        with self._statement(key, *args) as cur:
            try:
                for row in cur:
                    if not visitor(builder(row)):
                        break
            except sqlite3.Error as exc:
                raise ExecError(f"Failed to read the result: {exc}") from exc

    @contextlib.contextmanager
    def transaction(self) -> Iterator[None]:
        """All statements inside commit together or not at all."""
        conn = self._require_conn()
        if conn.in_transaction:
            raise ExecError("Transaction already in progress")
        try:
            conn.execute("BEGIN")
        except sqlite3.Error as exc:
            raise ExecError(f"Failed to begin transaction: {exc}") from exc
        try:
            yield
        except BaseException:
            conn.rollback()
            logger.debug("Transaction rolled back")
            raise
        try:
            conn.commit()
        except sqlite3.Error as exc:
            conn.rollback()
            raise ExecError(f"Failed to commit transaction: {exc}") from exc

    # ---- commands ----

    def insert(self, task: Task) -> int:
        """Insert a task (its id is ignored) and return the new id."""
        res = self._exec(
            QueryKey.INSERT,
            task.start,
            task.stop,
            task.project,
            task.description,
            task.joined_tags,
            task.comment,
        )
        rowid = res.lastrowid
        if rowid is None:
            raise ExecError("SQLite did not return lastrowid for tasks insert")
        logger.debug("Task added id=%s project=%s stop=%s", rowid, task.project, task.stop)
        return int(rowid)

    def insert_json(self, json_task: Any) -> int:
        return self.insert(task_from_json(json_task))

    def update_json(self, json_task: Any) -> None:
        task = task_from_json(json_task, require_id=True)
        res = self._exec(
            QueryKey.UPDATE,
            task.start,
            task.stop,
            task.project,
            task.description,
            task.joined_tags,
            task.comment,
            task.id,
        )
        if res.rowcount == 0:
            logger.debug("Task update matched no row id=%s", task.id)
        else:
            logger.debug("Task updated id=%s", task.id)

    def delete_by_id(self, task_id: int) -> None:
        self._exec(QueryKey.DELETE_FROM_ID, task_id)
        logger.debug("Task deleted id=%s", task_id)

    def delete_all(self) -> None:
        try:
            self._exec(QueryKey.DELETE_ALL)
        except ExecError as exc:
            raise ExecError(f"Failed to delete tasks: {exc}") from exc
        logger.info("All tasks deleted")

    # ---- queries ----

    def count(self) -> int:
        with self._statement(QueryKey.COUNT) as cur:
            (n,) = cur.fetchone()
            return int(n)

    def visit_all(self, visitor: Visitor[Task]) -> None:
        """Visit every task; the order is unspecified."""
        self._visit(QueryKey.SELECT_ALL, (), visitor, _row_to_task)

    def find_by_id(self, task_id: int) -> Task | None:
        return self._maybe_find(QueryKey.FIND_FROM_ID, (task_id,), _row_to_task)

    def find_by_id_json(self, task_id: int) -> dict[str, Any] | None:
        return self._maybe_find(QueryKey.FIND_FROM_ID, (task_id,), _row_to_json)

    def find_latest(self) -> Task | None:
        return self._maybe_find(QueryKey.FIND_LATEST, (1,), _row_to_task)

    def visit_n_latest(self, count: int, visitor: Visitor[Task]) -> None:
        """Visit up to count tasks, latest stop first."""
        if isinstance(count, bool) or not isinstance(count, int) or count <= 0:
            raise InvalidCountError(f"Invalid count: {count}")
        self._visit(QueryKey.FIND_LATEST, (count,), visitor, _row_to_task)

    def find_latest_for_day(self, y_m_d: str) -> Task | None:
        return self._maybe_find(QueryKey.FIND_LATEST_FOR_DAY, (f"{y_m_d}%",), _row_to_task)

    def visit_for_day(self, y_m_d: str, visitor: Visitor[Task]) -> None:
        """
        Visit the tasks that stop on the given day, earliest stop first.

        A task crossing midnight belongs to the day it stops on.
        """
        self._visit(QueryKey.FIND_FOR_DAY, (f"{y_m_d}%",), visitor, _row_to_task)

    def visit_for_day_json(self, y_m_d: str, visitor: Visitor[dict[str, Any]]) -> None:
        self._visit(QueryKey.FIND_FOR_DAY, (f"{y_m_d}%",), visitor, _row_to_json)

    def find_at(self, y_m_d_h_m: str) -> Task | None:
        """Task whose [start, stop] contains the given 'YYYY-MM-DD HH:MM[:SS]' instant."""
        return self._maybe_find(QueryKey.FIND_AT, (y_m_d_h_m,), _row_to_task)

    def visit_from_description(self, partial_description: str, visitor: Visitor[Task]) -> None:
        """Visit tasks whose description contains the text (ASCII case-insensitive), latest first."""
        self._visit(
            QueryKey.FIND_FROM_DESCRIPTION,
            (f"%{partial_description}%",),
            visitor,
            _row_to_task,
        )

    def tasks_for_day(self, y_m_d: str) -> list[dict[str, Any]]:
        out: list[dict[str, Any]] = []

        def collect(json_task: dict[str, Any]) -> bool:
            out.append(json_task)
            return True

        self.visit_for_day_json(y_m_d, collect)
        return out
