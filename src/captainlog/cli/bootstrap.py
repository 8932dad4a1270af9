# src/captainlog/cli/bootstrap.py

"""
CLI bootstrap helpers.

This module is the "composition root":
- loads settings once,
- configures logging from them,
- opens and initializes the TaskStore.
"""

from __future__ import annotations

import logging
from pathlib import Path

from ..config import Settings, load_settings
from ..logging_setup import setup_logging
from ..tasks.task_store import TaskStore

logger = logging.getLogger(__name__)


def load_and_configure(config_path: str | Path | None = None) -> Settings:
    """Read the configuration, then set up logging according to it."""
    settings = load_settings(config_path)

    console_level = getattr(logging, settings.log_level, logging.INFO)
    log_file = setup_logging(log_dir=settings.log_dir, console_level=console_level)

    # werkzeug logs every request at INFO; we keep our own access log.
    logging.getLogger("werkzeug").setLevel(logging.WARNING)

    logger.info("Configuration file: %s", settings.config_path)
    if log_file is not None:
        logger.debug("Logging to %s", log_file)
    return settings


def open_store(settings: Settings) -> TaskStore:
    """
    Create, open and initialize the store described by settings.

    The caller owns the returned store and must close() it.
    """
    store = TaskStore(settings.database)
    store.open()
    try:
        store.init()
    except Exception:
        store.close()
        raise
    return store
