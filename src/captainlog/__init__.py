"""captainlog: a single-user time-tracking log."""

APP_NAME = "captainlog"

__version__ = "0.4.0"
