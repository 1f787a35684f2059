"""Errors raised where route-recall meets files, settings and the store.

Matching, scoring and scheduling never raise on bad input. The errors here
come from import files, `settings.json`, `records.json` and record ids
typed on the command line, and the CLI prints each as a single line.
"""

from __future__ import annotations

from enum import Enum
from typing import Any

from route_recall.logging import get_logger

logger = get_logger(__name__)


class ErrorCategory(str, Enum):
    """What the user has to fix."""

    VALIDATION = "validation"  # A street, zone or import file
    CONFIGURATION = "configuration"  # settings.json
    RESOURCE = "resource"  # A record id
    STORAGE = "storage"  # records.json


class RouteRecallError(Exception):
    """Base exception for route-recall errors.

    Attributes:
        message: Human-readable error message
        context: Fields that locate the problem (path, record id, column)
    """

    category: ErrorCategory = ErrorCategory.VALIDATION

    def __init__(self, message: str, context: dict | None = None):
        super().__init__(message)
        self.message = message
        self.context = context or {}

    def __str__(self) -> str:
        if self.context:
            return f"{self.message} (context: {self.context})"
        return self.message


class ValidationError(RouteRecallError):
    """A street or zone the library will not accept, e.g. a blank name."""


class ImportFormatError(ValidationError):
    """A bulk import file could not be read as a table of streets."""


class ConfigurationError(RouteRecallError):
    """Settings that would break normalization or scheduling.

    Examples: homophone table that maps one variant to two characters,
    empty review interval table.
    """

    category = ErrorCategory.CONFIGURATION


class RecordNotFoundError(RouteRecallError):
    """An address record id is not in the store."""

    category = ErrorCategory.RESOURCE

    def __init__(self, record_id: str):
        super().__init__(f"Record not found: {record_id}", {"record_id": record_id})
        self.record_id = record_id


class StorageError(RouteRecallError):
    """The record store could not be read or written."""

    category = ErrorCategory.STORAGE


class ErrorContext:
    """Log an error raised inside the block, then let it propagate.

    Example:
        with ErrorContext("import", context={"path": "streets.xlsx"}):
            entries = read_entries(path)
    """

    def __init__(self, operation: str, context: dict | None = None):
        self.operation = operation
        self.context = context or {}
        self.error: Exception | None = None

    def __enter__(self) -> "ErrorContext":
        return self

    def __exit__(self, exc_type: type | None, exc_val: Exception | None, exc_tb: Any) -> bool:
        if exc_val is not None:
            self.error = exc_val
            logger.error(
                f"{self.operation} failed: {exc_val}",
                extra={"operation": self.operation, "error_type": type(exc_val).__name__, **self.context},
            )
        return False


def format_error_for_display(error: Exception) -> str:
    """One-line rendering of an error for the terminal."""
    if isinstance(error, RouteRecallError):
        text = f"[{error.category.value}] {error.message}"
        if error.context:
            text += " (" + ", ".join(f"{k}={v}" for k, v in error.context.items()) + ")"
        return text

    return f"[error] {type(error).__name__}: {error}"
