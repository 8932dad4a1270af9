# src/captainlog/config.py

"""Settings loaded from the JSON configuration file, environment variables and .env.

Resolution order for the configuration file:
- explicit path (--config),
- CAPTAINLOG_CONFIG,
- $HOME/.config/captainlog.conf (captainlog-dev.conf when CAPTAINLOG_DEBUG is on).

Environment variables (CAPTAINLOG_*) override the values read from the file.
"""

from __future__ import annotations

import json
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from dotenv import load_dotenv

from . import APP_NAME
from .errors import ConfigError

ENV_PREFIX = "CAPTAINLOG"


def _k(suffix: str) -> str:
    """Build env var name with the project prefix."""
    return f"{ENV_PREFIX}_{suffix}"


def _env(name: str, default: str = "") -> str:
    v = os.getenv(name)
    return default if v is None else v


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "y", "on"}


def _env_int(name: str, default: int | None) -> int | None:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError as exc:
        raise ConfigError(f"Invalid configuration: {name} must be an integer, got {raw!r}") from exc


def _env_path(name: str, default: Path | None) -> Path | None:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return Path(raw).expanduser()


def default_config_path(debug: bool) -> Path:
    home = os.getenv("HOME")
    if not home or not Path(home).is_dir():
        raise ConfigError("$HOME not found")
    config_dir = Path(home) / ".config"
    if not config_dir.is_dir():
        raise ConfigError(f"{config_dir} not found")
    name = f"{APP_NAME}-dev.conf" if debug else f"{APP_NAME}.conf"
    return config_dir / name


def read_config_file(path: Path) -> dict[str, Any]:
    if not path.exists():
        raise ConfigError(f"{path} not found")
    try:
        data = json.loads(path.read_text("utf-8"))
    except OSError as exc:
        raise ConfigError(f"Cannot read configuration file {path}: {exc}") from exc
    except json.JSONDecodeError as exc:
        raise ConfigError(f"Invalid configuration file {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise ConfigError(f"Invalid configuration file {path}: expected a JSON object")
    return data


def _opt_str(data: dict[str, Any], key: str) -> str | None:
    value = data.get(key)
    if value is None:
        return None
    if not isinstance(value, str):
        raise ConfigError(f"Invalid configuration: '{key}' must be a string")
    return value


def _opt_port(data: dict[str, Any], key: str) -> int | None:
    value = data.get(key)
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, int):
        raise ConfigError(f"Invalid configuration: '{key}' must be an integer")
    return value


def _str_list(data: dict[str, Any], key: str) -> list[str]:
    value = data.get(key)
    if value is None:
        return []
    if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
        raise ConfigError(f"Invalid configuration: '{key}' must be a list of strings")
    return list(value)


@dataclass(frozen=True, slots=True)
class Settings:
    # ---- App / build ----
    app_name: str
    debug: bool
    git_hash: str

    # ---- Storage ("" = in-memory) ----
    database: str

    # ---- Web front-end ----
    web_port: int | None
    web_root: Path | None

    # ---- Interactive entry ----
    projects: list[str] = field(default_factory=list)

    # ---- Logging ----
    log_level: str = "INFO"
    log_dir: Path | None = None

    config_path: Path | None = None

    @property
    def build_type(self) -> str:
        return "debug" if self.debug else "release"

    @staticmethod
    def from_mapping(
        data: dict[str, Any],
        *,
        debug: bool = False,
        config_path: Path | None = None,
    ) -> Settings:
        """Build settings from a parsed configuration object plus env overrides."""
        database: str | None = None
        if debug:
            database = _opt_str(data, "database_dev") or None
        if database is None:
            database = _opt_str(data, "database")
        env_database = os.getenv(_k("DATABASE"))
        if env_database is not None:
            database = env_database
        if database is None:
            raise ConfigError("Invalid configuration: no 'database' entry found")

        web_port = _env_int(_k("WEB_PORT"), _opt_port(data, "web_port"))
        if web_port is not None and not 0 < web_port < 65536:
            raise ConfigError(f"Invalid configuration: 'web_port' out of range: {web_port}")

        raw_root = _opt_str(data, "web_root")
        web_root = _env_path(_k("WEB_ROOT"), Path(raw_root).expanduser() if raw_root else None)

        raw_log_dir = _opt_str(data, "log_dir")
        log_dir = _env_path(_k("LOG_DIR"), Path(raw_log_dir).expanduser() if raw_log_dir else None)

        return Settings(
            app_name=APP_NAME,
            debug=debug,
            git_hash=_env(_k("GIT_HASH"), "unknown"),
            database=str(Path(database).expanduser()) if database else "",
            web_port=web_port,
            web_root=web_root,
            projects=_str_list(data, "projects"),
            log_level=_env(_k("LOG_LEVEL"), _opt_str(data, "log_level") or "INFO").upper(),
            log_dir=log_dir,
            config_path=config_path,
        )


def load_settings(config_path: str | Path | None = None) -> Settings:
    """
    Locate, read and validate the configuration.

    Raises ConfigError with a descriptive message when the file is missing,
    is not a JSON object, or lacks the 'database' entry.
    """
    load_dotenv(override=False)

    debug = _env_bool(_k("DEBUG"), False)
    if config_path is not None:
        path = Path(config_path).expanduser()
    else:
        path = _env_path(_k("CONFIG"), None) or default_config_path(debug)

    data = read_config_file(path)
    return Settings.from_mapping(data, debug=debug, config_path=path)
