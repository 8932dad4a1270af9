# src/captainlog/errors.py

"""
Exception hierarchy.

Every fallible operation raises a subclass of CaptainLogError; the message is
what the CLI prints and what the HTTP layer puts in {"error": ...}.
"""

from __future__ import annotations


class CaptainLogError(Exception):
    """Base class for all captainlog errors."""


class ConfigError(CaptainLogError):
    pass


# ---- storage lifecycle ----


class StoreError(CaptainLogError):
    pass


class OpenError(StoreError):
    pass


class AlreadyOpenError(StoreError):
    pass


class SchemaError(StoreError):
    pass


class PrepareError(StoreError):
    pass


class ExecError(StoreError):
    pass


class StoreNotReadyError(ExecError):
    pass


# ---- schedule validation ----


class ScheduleError(CaptainLogError):
    pass


class InvalidDateTimeError(ScheduleError):
    pass


class ChronologyError(ScheduleError):
    pass


# ---- input shapes ----


class UnknownFormatError(CaptainLogError):
    pass


class JsonShapeError(CaptainLogError):
    pass


class InvalidCountError(CaptainLogError):
    pass


class IOFailureError(CaptainLogError):
    pass


# ---- CSV ----


class CsvError(CaptainLogError):
    pass


class CsvHeaderError(CsvError):
    pass


class CsvRowError(CsvError):
    """
    A data row could not be imported.

    The import is rolled back; imported_before_failure tells how many rows
    had been inserted before the failing one.
    """

    def __init__(
        self,
        message: str,
        *,
        line_number: int,
        line: str,
        imported_before_failure: int,
    ) -> None:
        super().__init__(message)
        self.line_number = line_number
        self.line = line
        self.imported_before_failure = imported_before_failure
