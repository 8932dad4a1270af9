# src/captainlog/web/server.py

"""
Web front-end: JSON API over the task store plus the static pages.

    GET    /                            -> 302 /day?year=YYYY&month=MM&day=DD (today)
    GET    /api/info                    -> {name, version, build_type, git_hash}
    GET    /api/task/id/<N>             -> task | 404
    DELETE /api/task/id/<N>             -> {"success": "true"}
    GET    /api/tasks/<YYYY>/<MM>/<DD>/ -> [task, ...] (ascending stop)
    POST   /api/task                    -> {"success": "true"} (update when the body has an id)
    GET    /day?year=..&month=..&day=.. -> day.html
    GET    /about                       -> about.html
    GET    .../css|js|svg/<name>        -> static asset, cacheable

The server is single-threaded: requests are handled one after the other
against a single TaskStore.
"""

from __future__ import annotations

import json
import logging
import re
import signal
import threading
from datetime import datetime
from pathlib import Path
from typing import Any

from flask import Flask, Response, abort, redirect, request
from werkzeug.exceptions import HTTPException, NotFound
from werkzeug.routing import RequestRedirect
from werkzeug.serving import make_server

from .. import APP_NAME, __version__
from ..config import Settings
from ..errors import CaptainLogError, ConfigError, IOFailureError
from ..tasks.task_store import TaskStore

logger = logging.getLogger(__name__)

BIND_ADDRESS = "0.0.0.0"

JSON_CONTENT_TYPE = "application/json; charset=utf-8"
HTML_CONTENT_TYPE = "text/html; charset=utf-8"
NO_STORE = "no-store"
CACHE_IMMUTABLE = "public, max-age=604800, immutable"

JSON_SUCCESS_RESPONSE = {"success": "true"}

_YEAR_RE = re.compile(r"\d{4}", re.ASCII)
_TWO_DIGITS_RE = re.compile(r"\d{2}", re.ASCII)

# (url segment, extension, content type)
STATIC_KINDS = (
    ("css", "css", "text/css; charset=utf-8"),
    ("js", "js", "application/javascript; charset=utf-8"),
    ("svg", "svg", "image/svg+xml"),
)


def _json_response(payload: Any, status: int = 200) -> Response:
    resp = Response(json.dumps(payload, ensure_ascii=False), status=status)
    resp.headers["Content-Type"] = JSON_CONTENT_TYPE
    resp.headers["Cache-Control"] = NO_STORE
    return resp


def _serve_resource(path: Path, content_type: str, *, cache: bool = False) -> Response:
    try:
        data = path.read_bytes()
    except OSError as exc:
        raise IOFailureError(f"Failed to open {path}") from exc

    resp = Response(data, status=200)
    resp.headers["Content-Type"] = content_type
    resp.headers["Cache-Control"] = CACHE_IMMUTABLE if cache else NO_STORE
    return resp


class _ApiFlask(Flask):
    """
    Flask with a closed route table: no automatic OPTIONS answers and no
    trailing-slash redirects. Both end up as the JSON 404.
    """

    def add_url_rule(self, rule, endpoint=None, view_func=None, provide_automatic_options=None, **options):
        if provide_automatic_options is None:
            provide_automatic_options = False
        super().add_url_rule(rule, endpoint, view_func, provide_automatic_options, **options)

    def raise_routing_exception(self, request):
        if isinstance(request.routing_exception, RequestRedirect):
            raise NotFound()
        super().raise_routing_exception(request)


def _is_date(year: str | None, month: str | None, day: str | None) -> bool:
    return (
        year is not None
        and month is not None
        and day is not None
        and _YEAR_RE.fullmatch(year) is not None
        and _TWO_DIGITS_RE.fullmatch(month) is not None
        and _TWO_DIGITS_RE.fullmatch(day) is not None
    )


def create_app(store: TaskStore, settings: Settings) -> Flask:
    if settings.web_root is None:
        raise ConfigError("Web root directory not configured ('web_root')")
    web_root = Path(settings.web_root)

    app = _ApiFlask(__name__)

    # ---- response conventions ----

    @app.errorhandler(CaptainLogError)
    def internal_error(exc: CaptainLogError):
        logger.warning("%s %s failed: %s", request.method, request.full_path, exc)
        return _json_response({"error": str(exc)}, status=500)

    @app.errorhandler(404)
    @app.errorhandler(405)
    def not_found(_exc: HTTPException):
        return _json_response({"error": "Not found"}, status=404)

    @app.after_request
    def access_log(resp: Response) -> Response:
        logger.info("%s %s -> %s", request.method, request.full_path.rstrip("?"), resp.status_code)
        return resp

    # ---- pages ----

    @app.route("/", methods=["GET"])
    def redirect_today():
        location = datetime.now().strftime("/day?year=%Y&month=%m&day=%d")
        return redirect(location, code=302)

    @app.route("/day", methods=["GET"])
    def day_page():
        if not _is_date(request.args.get("year"), request.args.get("month"), request.args.get("day")):
            abort(404)
        return _serve_resource(web_root / "day.html", HTML_CONTENT_TYPE)

    @app.route("/about", methods=["GET"])
    def about_page():
        return _serve_resource(web_root / "about.html", HTML_CONTENT_TYPE)

    # ---- API ----

    @app.route("/api/info", methods=["GET"])
    def info():
        return _json_response(
            {
                "name": APP_NAME,
                "version": __version__,
                "build_type": settings.build_type,
                "git_hash": settings.git_hash,
            }
        )

    @app.route("/api/task/id/<int:task_id>", methods=["GET"])
    def get_task(task_id: int):
        json_task = store.find_by_id_json(task_id)
        if json_task is None:
            abort(404)
        return _json_response(json_task)

    @app.route("/api/task/id/<int:task_id>", methods=["DELETE"])
    def delete_task(task_id: int):
        store.delete_by_id(task_id)
        return _json_response(JSON_SUCCESS_RESPONSE)

    @app.route("/api/tasks/<year>/<month>/<day>/", methods=["GET"])
    def get_tasks_for_day(year: str, month: str, day: str):
        if not _is_date(year, month, day):
            abort(404)
        return _json_response(store.tasks_for_day(f"{year}-{month}-{day}"))

    @app.route("/api/task", methods=["POST"])
    def create_or_update_task():
        json_task = request.get_json(force=True, silent=True)
        if isinstance(json_task, dict) and "id" in json_task:
            store.update_json(json_task)
        else:
            store.insert_json(json_task)
        return _json_response(JSON_SUCCESS_RESPONSE)

    # ---- static assets ----

    name_res = {
        kind: re.compile(rf"[A-Za-z0-9._-]+\.{ext}", re.ASCII) for kind, ext, _ in STATIC_KINDS
    }

    def static_asset(kind: str, content_type: str, name: str) -> Response:
        if name_res[kind].fullmatch(name) is None:
            abort(404)
        return _serve_resource(web_root / kind / name, content_type, cache=True)

    for kind, _ext, content_type in STATIC_KINDS:

        def view(name: str, prefix: str = "", _kind: str = kind, _ct: str = content_type):
            return static_asset(_kind, _ct, name)

        app.add_url_rule(f"/{kind}/<name>", f"{kind}_asset", view, methods=["GET"])
        app.add_url_rule(f"/<path:prefix>/{kind}/<name>", f"{kind}_asset_nested", view, methods=["GET"])

    return app


def serve(store: TaskStore, settings: Settings, *, stop_event: threading.Event | None = None) -> None:
    """
    Serve the app on 0.0.0.0:<web_port> until SIGINT/SIGTERM (or stop_event).

    One request at a time; the loop wakes up twice a second to check for
    shutdown. The caller owns the store and closes it afterwards.
    """
    if settings.web_port is None:
        raise ConfigError("Port not configured ('web_port')")

    app = create_app(store, settings)

    try:
        server = make_server(BIND_ADDRESS, settings.web_port, app, threaded=False)
    except OSError as exc:
        raise IOFailureError(f"Failed to bind to {BIND_ADDRESS}:{settings.web_port}: {exc}") from exc
    server.timeout = 0.5

    stop = stop_event or threading.Event()

    def _handle_signal(signum, _frame) -> None:
        logger.info("Got signal %s, terminating", signum)
        stop.set()

    previous: dict[int, Any] = {}
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            previous[sig] = signal.signal(sig, _handle_signal)
        except ValueError:
            # Not in the main thread: rely on stop_event.
            logger.debug("Cannot install handler for signal %s", sig)

    logger.info("Serving on http://%s:%s (web_root=%s)", BIND_ADDRESS, settings.web_port, settings.web_root)
    try:
        while not stop.is_set():
            server.handle_request()
    finally:
        server.server_close()
        for sig, handler in previous.items():
            signal.signal(sig, handler)
        logger.info("Web server stopped")
