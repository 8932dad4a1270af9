# tests/test_web_server.py

from __future__ import annotations

import json
import threading
from dataclasses import replace

import pytest

from captainlog.config import Settings
from captainlog.errors import ConfigError
from captainlog.tasks.task_models import Task, TaskSchedule
from captainlog.tasks.task_store import TaskStore
from captainlog.web.server import JSON_CONTENT_TYPE, create_app, serve

TASK_JSON = {
    "start": "2022-04-20 09:00:00",
    "stop": "2022-04-20 10:30:00",
    "project": "my project",
    "description": "my description",
    "tags": ["preview", "complex"],
    "comment": "my comment",
}


def _insert(store: TaskStore, start: str, stop: str, description: str = "d") -> int:
    return store.insert(
        Task(schedule=TaskSchedule.create(start, stop), project="p", description=description)
    )


def test_root_redirects_to_today(client) -> None:
    r = client.get("/")
    assert r.status_code == 302
    assert "/day?year=" in r.headers["Location"]


def test_info(client) -> None:
    r = client.get("/api/info")
    assert r.status_code == 200
    assert r.headers["Content-Type"] == JSON_CONTENT_TYPE
    assert r.headers["Cache-Control"] == "no-store"
    body = r.get_json()
    assert body["name"] == "captainlog"
    assert body["build_type"] == "debug"
    assert body["git_hash"] == "abc1234"
    assert body["version"]


def test_post_then_get_task(client, store: TaskStore) -> None:
    r = client.post("/api/task", json=TASK_JSON)
    assert r.status_code == 200
    assert r.get_json() == {"success": "true"}

    r = client.get("/api/task/id/1")
    assert r.status_code == 200
    assert r.get_json() == {**TASK_JSON, "id": 1, "tags": ["complex", "preview"]}


def test_post_with_id_updates(client, store: TaskStore) -> None:
    task_id = _insert(store, "2022-04-20 09:00:00", "2022-04-20 10:00:00", "before")

    r = client.post("/api/task", json={**TASK_JSON, "id": task_id, "description": "after"})

    assert r.status_code == 200
    assert store.count() == 1
    found = store.find_by_id(task_id)
    assert found is not None and found.description == "after"


def test_post_without_content_type_is_parsed(client, store: TaskStore) -> None:
    r = client.post("/api/task", data=json.dumps(TASK_JSON))
    assert r.status_code == 200
    assert store.count() == 1


@pytest.mark.parametrize(
    "payload",
    [
        b"not json",
        b'{"start": "2022-04-20 09:00:00"}',
        b'{"start": "2022-04-20 11:00:00", "stop": "2022-04-20 10:00:00", "project": "p", "description": "d"}',
    ],
)
def test_post_invalid_task_is_a_500_with_error(client, store: TaskStore, payload: bytes) -> None:
    r = client.post("/api/task", data=payload, content_type="application/json")
    assert r.status_code == 500
    assert "error" in r.get_json()
    assert store.count() == 0


def test_get_missing_task_is_404(client) -> None:
    r = client.get("/api/task/id/42")
    assert r.status_code == 404
    assert r.get_json() == {"error": "Not found"}

    assert client.get("/api/task/id/abc").status_code == 404


def test_delete_task(client, store: TaskStore) -> None:
    task_id = _insert(store, "2022-04-20 09:00:00", "2022-04-20 10:00:00")

    r = client.delete(f"/api/task/id/{task_id}")

    assert r.status_code == 200
    assert r.get_json() == {"success": "true"}
    assert store.find_by_id(task_id) is None


def test_tasks_for_day_sorted_by_stop(client, store: TaskStore) -> None:
    _insert(store, "2022-04-20 11:00:00", "2022-04-20 11:30:00", "second")
    _insert(store, "2022-04-20 09:00:00", "2022-04-20 10:30:00", "first")
    _insert(store, "2022-04-21 09:00:00", "2022-04-21 10:30:00", "other day")

    r = client.get("/api/tasks/2022/04/20/")

    assert r.status_code == 200
    assert [t["description"] for t in r.get_json()] == ["first", "second"]
    assert client.get("/api/tasks/2022/04/22/").get_json() == []


@pytest.mark.parametrize("path", ["/api/tasks/22/04/20/", "/api/tasks/2022/4/20/", "/api/tasks/2022/04/xx/"])
def test_tasks_for_day_rejects_bad_dates(client, path: str) -> None:
    assert client.get(path).status_code == 404


def test_unknown_route_and_method_are_404(client) -> None:
    assert client.get("/nope").status_code == 404
    r = client.put("/api/task")
    assert r.status_code == 404
    assert r.get_json() == {"error": "Not found"}


@pytest.mark.parametrize(
    ("method", "path"),
    [
        ("GET", "/api/tasks/2022/04/20"),
        ("OPTIONS", "/api/task"),
        ("OPTIONS", "/api/info"),
        ("OPTIONS", "/api/task/id/1"),
    ],
)
def test_no_redirects_or_automatic_options(client, method: str, path: str) -> None:
    r = client.open(path, method=method)
    assert r.status_code == 404
    assert r.get_json() == {"error": "Not found"}


def test_huge_task_ids_are_500_json(client) -> None:
    huge = "99999999999999999999"
    for r in (client.get(f"/api/task/id/{huge}"), client.delete(f"/api/task/id/{huge}")):
        assert r.status_code == 500
        assert r.headers["Content-Type"] == JSON_CONTENT_TYPE
        assert "out of range" in r.get_json()["error"]

    r = client.post("/api/task", json={**TASK_JSON, "id": 10**30})
    assert r.status_code == 500
    assert "error" in r.get_json()


def test_day_page(client) -> None:
    r = client.get("/day?year=2022&month=04&day=20")
    assert r.status_code == 200
    assert r.headers["Content-Type"].startswith("text/html")
    assert r.headers["Cache-Control"] == "no-store"
    assert b"day" in r.data

    assert client.get("/day?year=2022&month=4&day=20").status_code == 404
    assert client.get("/day").status_code == 404


def test_about_page(client) -> None:
    r = client.get("/about")
    assert r.status_code == 200
    assert b"about" in r.data


@pytest.mark.parametrize(
    ("path", "content_type"),
    [
        ("/css/main.css", "text/css"),
        ("/js/day.js", "application/javascript"),
        ("/svg/logo.svg", "image/svg+xml"),
        ("/day/css/main.css", "text/css"),
        ("/some/deep/prefix/js/day.js", "application/javascript"),
    ],
)
def test_static_assets_are_cacheable(client, path: str, content_type: str) -> None:
    r = client.get(path)
    assert r.status_code == 200
    assert r.headers["Content-Type"].startswith(content_type)
    assert "immutable" in r.headers["Cache-Control"]


def test_static_asset_name_must_match_kind(client) -> None:
    assert client.get("/css/day.js").status_code == 404
    assert client.get("/css/..%2Fday.html").status_code == 404


def test_missing_static_asset_is_a_500(client) -> None:
    r = client.get("/css/missing.css")
    assert r.status_code == 500
    assert "error" in r.get_json()


def test_create_app_requires_web_root(store: TaskStore, settings: Settings) -> None:
    with pytest.raises(ConfigError):
        create_app(store, replace(settings, web_root=None))


def test_serve_requires_port(store: TaskStore, settings: Settings) -> None:
    with pytest.raises(ConfigError, match="Port not configured"):
        serve(store, replace(settings, web_port=None))


def test_serve_stops_on_event(store: TaskStore, settings: Settings) -> None:
    stop = threading.Event()
    stop.set()
    # Port 0 lets the OS pick a free port; the loop exits immediately.
    serve(store, replace(settings, web_port=0), stop_event=stop)
