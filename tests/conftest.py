# tests/conftest.py

from __future__ import annotations

from collections.abc import Iterator
from pathlib import Path

import pytest

from captainlog.config import Settings
from captainlog.tasks.task_csv import CSV_HEADER
from captainlog.tasks.task_store import TaskStore
from captainlog.web.server import create_app


@pytest.fixture()
def store() -> Iterator[TaskStore]:
    """
    Opened and initialized in-memory store.

    We keep real SQLite here: the SQL catalog is part of what we want to test.
    """
    with TaskStore() as s:
        yield s


@pytest.fixture()
def web_root(tmp_path: Path) -> Path:
    root = tmp_path / "web"
    (root / "css").mkdir(parents=True)
    (root / "js").mkdir()
    (root / "svg").mkdir()
    (root / "day.html").write_text("<html>day</html>", "utf-8")
    (root / "about.html").write_text("<html>about</html>", "utf-8")
    (root / "css" / "main.css").write_text("body {}", "utf-8")
    (root / "js" / "day.js").write_text("console.log('day');", "utf-8")
    (root / "svg" / "logo.svg").write_text("<svg/>", "utf-8")
    return root


@pytest.fixture()
def settings(tmp_path: Path, web_root: Path) -> Settings:
    """Real Settings built directly, without reading any file or env."""
    return Settings(
        app_name="captainlog",
        debug=True,
        git_hash="abc1234",
        database="",
        web_port=8080,
        web_root=web_root,
        projects=["alpha", "beta"],
        log_level="DEBUG",
        log_dir=None,
        config_path=tmp_path / "captainlog-dev.conf",
    )


@pytest.fixture()
def client(store: TaskStore, settings: Settings):
    app = create_app(store, settings)
    app.config["TESTING"] = True
    return app.test_client()


@pytest.fixture()
def csv_lines() -> list[str]:
    return [
        CSV_HEADER,
        "2022-04-20|09:00|10:30|my description|my project|preview,complex|my comment",
        "2022-04-20|11:00|11:30|my other description|my project|simple|",
    ]
