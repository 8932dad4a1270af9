# tests/test_task_store.py

from __future__ import annotations

from pathlib import Path

import pytest

from captainlog.errors import (
    AlreadyOpenError,
    ExecError,
    InvalidCountError,
    JsonShapeError,
    StoreNotReadyError,
)
from captainlog.tasks.task_models import Task, TaskSchedule
from captainlog.tasks.task_store import CATALOG, TaskStore


def _task(start: str, stop: str, description: str = "code cleanup", **kw) -> Task:
    return Task(
        schedule=TaskSchedule.create(start, stop),
        project=kw.pop("project", "MyProject"),
        description=description,
        tags=kw.pop("tags", "dev,refactoring"),
        comment=kw.pop("comment", "my comment"),
    )


def _collect(visit, *args) -> list:
    out: list = []

    def add(item) -> bool:
        out.append(item)
        return True

    visit(*args, add)
    return out


@pytest.fixture()
def filled(store: TaskStore) -> TaskStore:
    store.insert(_task("2022-04-20 09:00:00", "2022-04-20 10:30:00", "my description"))
    store.insert(_task("2022-04-20 11:00:00", "2022-04-20 11:30:00", "my other description"))
    store.insert(_task("2022-04-19 23:00:00", "2022-04-20 00:30:00", "night shift"))
    store.insert(_task("2022-04-21 08:00:00", "2022-04-21 08:45:00", "Review code"))
    return store


def test_insert_then_find_latest(store: TaskStore) -> None:
    task = _task("2022-04-15 15:00:00", "2022-04-15 15:02:30")

    task_id = store.insert(task)
    latest = store.find_latest()

    assert task_id == 1
    assert latest is not None
    assert latest.id == 1
    assert latest.tags == {"dev", "refactoring"}
    assert latest == task


def test_insert_then_find_by_id_round_trips(store: TaskStore) -> None:
    task = _task("2022-04-15 15:00:00", "2022-04-15 15:02:30", tags="", comment="")
    found = store.find_by_id(store.insert(task))
    assert found == task
    assert found is not None and found.comment == ""


def test_find_by_id_json(store: TaskStore) -> None:
    task_id = store.insert(_task("2022-04-15 15:00:00", "2022-04-15 15:02:30", tags="b,a"))

    assert store.find_by_id_json(task_id) == {
        "id": task_id,
        "start": "2022-04-15 15:00:00",
        "stop": "2022-04-15 15:02:30",
        "project": "MyProject",
        "description": "code cleanup",
        "tags": ["a", "b"],
        "comment": "my comment",
    }
    assert store.find_by_id_json(999) is None


def test_empty_store_queries(store: TaskStore) -> None:
    assert store.find_latest() is None
    assert store.find_by_id(1) is None
    assert store.find_latest_for_day("2022-04-20") is None
    assert store.count() == 0
    assert _collect(store.visit_all) == []


def test_delete_by_id(filled: TaskStore) -> None:
    filled.delete_by_id(2)
    assert filled.find_by_id(2) is None
    assert filled.count() == 3
    # Deleting a missing id is not an error.
    filled.delete_by_id(2)


def test_delete_all(filled: TaskStore) -> None:
    filled.delete_all()
    assert filled.count() == 0
    assert filled.find_latest() is None


def test_latest_for_day_uses_the_stop_day(filled: TaskStore) -> None:
    latest = filled.find_latest_for_day("2022-04-20")
    assert latest is not None
    assert latest.description == "my other description"

    day = _collect(filled.visit_for_day, "2022-04-20")
    assert [t.description for t in day] == ["night shift", "my description", "my other description"]
    assert _collect(filled.visit_for_day, "2022-04-19") == []


def test_visit_for_day_json_matches_tasks_for_day(filled: TaskStore) -> None:
    rows = _collect(filled.visit_for_day_json, "2022-04-20")
    assert rows == filled.tasks_for_day("2022-04-20")
    assert [r["stop"] for r in rows] == sorted(r["stop"] for r in rows)


def test_visit_n_latest_orders_by_stop_desc(filled: TaskStore) -> None:
    tasks = _collect(filled.visit_n_latest, 3)
    assert [t.description for t in tasks] == ["Review code", "my other description", "my description"]
    assert filled.find_latest() == tasks[0]
    assert len(_collect(filled.visit_n_latest, 100)) == 4


@pytest.mark.parametrize("count", [0, -1])
def test_visit_n_latest_rejects_non_positive_counts(store: TaskStore, count: int) -> None:
    with pytest.raises(InvalidCountError):
        store.visit_n_latest(count, lambda _t: True)


def test_visitor_can_stop_early(filled: TaskStore) -> None:
    seen: list[Task] = []

    def first_only(task: Task) -> bool:
        seen.append(task)
        return False

    filled.visit_all(first_only)
    assert len(seen) == 1


def test_find_at(filled: TaskStore) -> None:
    found = filled.find_at("2022-04-20 09:15")
    assert found is not None
    assert found.description == "my description"

    # Bounds are inclusive.
    boundary = filled.find_at("2022-04-20 10:30:00")
    assert boundary is not None and boundary.description == "my description"

    assert filled.find_at("2020-04-20 09:15") is None
    assert filled.find_at("2022-04-20 10:45") is None


def test_visit_from_description_is_case_insensitive_latest_first(filled: TaskStore) -> None:
    found = _collect(filled.visit_from_description, "DESCRIPTION")
    assert [t.description for t in found] == ["my other description", "my description"]
    assert [t.description for t in _collect(filled.visit_from_description, "review")] == ["Review code"]


def test_update_json(store: TaskStore) -> None:
    store.insert(_task("2022-04-20 09:00:00", "2022-04-20 10:30:00", "my description"))
    update = {
        "id": 1,
        "start": "2022-04-21 09:15:00",
        "stop": "2022-04-21 10:20:00",
        "project": "my other project",
        "description": "my real description",
        "tags": ["simple"],
        "comment": "changed comment",
    }

    store.update_json(update)

    assert store.find_by_id(1) == Task(
        schedule=TaskSchedule.create("2022-04-21 09:15:00", "2022-04-21 10:20:00"),
        project="my other project",
        description="my real description",
        tags="simple",
        comment="changed comment",
    )
    assert store.find_by_id_json(1) == update


def test_update_json_requires_an_id(store: TaskStore) -> None:
    with pytest.raises(JsonShapeError):
        store.update_json(
            {"start": "2022-04-21 09:15:00", "stop": "2022-04-21 10:20:00", "project": "p", "description": "d"}
        )


def test_insert_json_returns_new_id(store: TaskStore) -> None:
    task_id = store.insert_json(
        {
            "start": "2022-04-21 09:15:00",
            "stop": "2022-04-21 10:20:00",
            "project": "p",
            "description": "d",
            "tags": ["x", "y"],
        }
    )
    found = store.find_by_id(task_id)
    assert found is not None
    assert found.tags == {"x", "y"}


def test_transaction_rolls_back_on_error(store: TaskStore) -> None:
    with pytest.raises(RuntimeError):
        with store.transaction():
            store.insert(_task("2022-04-20 09:00:00", "2022-04-20 10:30:00"))
            raise RuntimeError("boom")
    assert store.count() == 0

    with store.transaction():
        store.insert(_task("2022-04-20 09:00:00", "2022-04-20 10:30:00"))
    assert store.count() == 1


def test_nested_transactions_are_rejected(store: TaskStore) -> None:
    with store.transaction():
        with pytest.raises(ExecError):
            with store.transaction():
                pass


def test_statement_parameters_are_type_checked(store: TaskStore) -> None:
    with pytest.raises(ExecError):
        store.find_by_id("1")  # type: ignore[arg-type]


def test_statement_cannot_be_reentered_while_visiting(filled: TaskStore) -> None:
    def nested(_task: Task) -> bool:
        filled.visit_all(lambda _t: True)
        return True

    with pytest.raises(ExecError, match="already in use"):
        filled.visit_all(nested)
    # The slot is released afterwards.
    assert len(_collect(filled.visit_all)) == 4


def test_lifecycle_errors() -> None:
    store = TaskStore()
    with pytest.raises(StoreNotReadyError):
        store.find_latest()

    store.open()
    try:
        assert store.is_open and not store.is_ready
        with pytest.raises(AlreadyOpenError):
            store.open()
        with pytest.raises(StoreNotReadyError):
            store.find_latest()
        store.init()
        assert store.is_ready
    finally:
        store.close()

    assert not store.is_open
    store.close()


def test_file_store_persists_between_sessions(tmp_path: Path) -> None:
    db = tmp_path / "nested" / "captainlog.db"

    with TaskStore(db) as first:
        first.insert(_task("2022-04-20 09:00:00", "2022-04-20 10:30:00"))

    with TaskStore(db) as second:
        assert second.count() == 1
        latest = second.find_latest()
        assert latest is not None and latest.id == 1


def test_catalog_is_fully_prepared(store: TaskStore) -> None:
    assert store.is_ready
    assert len(store._statements) == len(CATALOG)


@pytest.mark.parametrize("task_id", [2**63, -(2**63) - 1, 10**30])
def test_ids_outside_sqlite_integer_range_are_exec_errors(store: TaskStore, task_id: int) -> None:
    with pytest.raises(ExecError, match="out of range"):
        store.find_by_id(task_id)
    with pytest.raises(ExecError, match="out of range"):
        store.delete_by_id(task_id)


def test_update_json_with_huge_id_is_an_exec_error(store: TaskStore) -> None:
    with pytest.raises(ExecError):
        store.update_json(
            {
                "id": 10**30,
                "start": "2022-04-21 09:15:00",
                "stop": "2022-04-21 10:20:00",
                "project": "p",
                "description": "d",
            }
        )
    # The largest SQLite integer is still accepted.
    assert store.find_by_id(2**63 - 1) is None
