"""Structured logging for route-recall.

Every module logs through `get_logger(__name__)` under the `route_recall`
root logger. The console gets short text lines at the chosen verbosity;
an optional log file gets every record as one JSON object per line.
Fields passed through `extra=` or bound with `LogContext` travel with the
record and are printed after the message.
"""

from __future__ import annotations

import json
import logging
import sys
from dataclasses import dataclass
from datetime import datetime
from enum import IntEnum
from pathlib import Path
from typing import Any

ROOT_LOGGER_NAME = "route_recall"

# Attributes every LogRecord carries; anything else came in through `extra`.
_STANDARD_ATTRS = frozenset(vars(logging.LogRecord("", 0, "", 0, "", (), None))) | {
    "message",
    "asctime",
}


class LogLevel(IntEnum):
    """Log verbosity levels."""

    QUIET = 0  # Only errors
    NORMAL = 1  # Errors + warnings
    VERBOSE = 2  # Errors + warnings + info
    DEBUG = 3  # Everything


_LEVEL_MAP = {
    LogLevel.QUIET: logging.ERROR,
    LogLevel.NORMAL: logging.WARNING,
    LogLevel.VERBOSE: logging.INFO,
    LogLevel.DEBUG: logging.DEBUG,
}

# ANSI colours per level for the console
_LEVEL_COLORS = {
    logging.DEBUG: "\033[90m",
    logging.INFO: "\033[92m",
    logging.WARNING: "\033[93m",
    logging.ERROR: "\033[91m",
    logging.CRITICAL: "\033[91m",
}
_RESET = "\033[0m"


@dataclass
class LogConfig:
    """Configuration for logging.

    Attributes:
        level: Console verbosity
        log_file: Optional JSON-lines log file, written at DEBUG
        color: Colour console output when stderr is a terminal
    """

    level: LogLevel = LogLevel.NORMAL
    log_file: Path | None = None
    color: bool = True


def record_fields(record: logging.LogRecord) -> dict[str, Any]:
    """Fields attached to a log record through `extra` or `LogContext`."""
    return {key: value for key, value in vars(record).items() if key not in _STANDARD_ATTRS}


class StructuredFormatter(logging.Formatter):
    """Formats a record as a text line or a JSON object.

    Text: ``14:02:11 WARN  import_export | Skipped rows [skipped=2]``
    """

    def __init__(self, json_format: bool = False, color: bool = False):
        super().__init__()
        self.json_format = json_format
        self.color = color

    def format(self, record: logging.LogRecord) -> str:
        if self.json_format:
            return self._format_json(record)
        return self._format_text(record)

    def _format_json(self, record: logging.LogRecord) -> str:
        data: dict[str, Any] = {
            "time": datetime.fromtimestamp(record.created).isoformat(timespec="milliseconds"),
            "level": record.levelname.lower(),
            "logger": record.name,
            "message": record.getMessage(),
        }
        fields = record_fields(record)
        if fields:
            # Values json can't encode are written as their str()
            data["fields"] = json.loads(json.dumps(fields, ensure_ascii=False, default=str))
        if record.exc_info:
            data["exception"] = self.formatException(record.exc_info)
        return json.dumps(data, ensure_ascii=False)

    def _format_text(self, record: logging.LogRecord) -> str:
        level = record.levelname[:5].ljust(5)
        if self.color:
            level = f"{_LEVEL_COLORS.get(record.levelno, '')}{level}{_RESET}"

        source = record.name.rsplit(".", 1)[-1]
        line = f"{datetime.fromtimestamp(record.created):%H:%M:%S} {level} {source} | {record.getMessage()}"

        fields = record_fields(record)
        if fields:
            line += " [" + " ".join(f"{k}={v}" for k, v in fields.items()) + "]"
        if record.exc_info:
            line += "\n" + self.formatException(record.exc_info)
        return line


_config = LogConfig()
_initialized = False


def configure_logging(config: LogConfig | None = None) -> None:
    """Install handlers on the `route_recall` root logger.

    Replaces any handlers installed by an earlier call.
    """
    global _config, _initialized

    if config:
        _config = config

    console_level = _LEVEL_MAP[_config.level]
    root_logger = logging.getLogger(ROOT_LOGGER_NAME)
    for handler in list(root_logger.handlers):
        root_logger.removeHandler(handler)
        handler.close()

    console = logging.StreamHandler(sys.stderr)
    console.setLevel(console_level)
    console.setFormatter(StructuredFormatter(color=_config.color and sys.stderr.isatty()))
    root_logger.addHandler(console)
    root_logger.setLevel(console_level)

    if _config.log_file:
        _config.log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(_config.log_file, encoding="utf-8")
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(StructuredFormatter(json_format=True))
        root_logger.addHandler(file_handler)
        root_logger.setLevel(logging.DEBUG)

    _initialized = True


def get_logger(name: str) -> logging.Logger:
    """Get a module logger, configuring defaults on first use."""
    if not _initialized:
        configure_logging()
    return logging.getLogger(name)


class LogContext:
    """Attach fields to every record logged inside the block.

    Example:
        with LogContext(source="streets.xlsx"):
            logger.info("Reading rows")
    """

    def __init__(self, **fields: Any):
        self.fields = fields
        self._previous_factory = None

    def __enter__(self) -> "LogContext":
        previous = self._previous_factory = logging.getLogRecordFactory()
        fields = self.fields

        def factory(*args: Any, **kwargs: Any) -> logging.LogRecord:
            record = previous(*args, **kwargs)
            for key, value in fields.items():
                setattr(record, key, value)
            return record

        logging.setLogRecordFactory(factory)
        return self

    def __exit__(self, exc_type: type | None, exc_val: Exception | None, exc_tb: Any) -> None:
        if self._previous_factory:
            logging.setLogRecordFactory(self._previous_factory)


def log_operation_start(logger: logging.Logger, operation: str, **fields: Any) -> None:
    logger.info(f"Starting: {operation}", extra=fields)


def log_operation_complete(
    logger: logging.Logger,
    operation: str,
    duration: float | None = None,
    **fields: Any,
) -> None:
    """Log the end of an operation, with its duration in seconds if known."""
    if duration is not None:
        fields["duration_seconds"] = round(duration, 2)
    logger.info(f"Completed: {operation}", extra=fields)
