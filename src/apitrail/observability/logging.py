"""Structured logging for apitrail.

apitrail modules log through ``logging.getLogger(__name__)``; this module
only decides how the ``apitrail`` logger tree is rendered:

- JSON lines for machine consumption (CI log collectors)
- Human-readable colored output for local runs
- Context fields (project, subproject, session) attached to every record
  emitted inside a ``log_context`` block

Example:
    Basic usage::

        from apitrail.observability import configure_logging

        configure_logging(level="DEBUG", json_format=True)

    With context::

        from apitrail.observability import log_context

        with log_context(project="shop", subproject="checkout"):
            comparator.compare("shop", "checkout")
"""

from __future__ import annotations

import json
import logging
import os
import sys
import time
from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Any

ROOT_LOGGER_NAME = "apitrail"

_context_fields: ContextVar[dict[str, Any] | None] = ContextVar("apitrail_log_context", default=None)


class StructuredFormatter(logging.Formatter):
    """JSON formatter for structured logging.

    Attributes:
        include_timestamp: Whether to include timestamp in output.
        include_level: Whether to include log level in output.
        include_logger: Whether to include logger name in output.
        include_location: Whether to include file/line/function in output.
        timestamp_format: Format for timestamp ('iso', 'unix', or strftime format).
        extra_fields: Additional fields to include in every log record.
    """

    def __init__(
        self,
        include_timestamp: bool = True,
        include_level: bool = True,
        include_logger: bool = True,
        include_location: bool = False,
        timestamp_format: str = "iso",
        extra_fields: dict[str, Any] | None = None,
    ) -> None:
        super().__init__()
        self.include_timestamp = include_timestamp
        self.include_level = include_level
        self.include_logger = include_logger
        self.include_location = include_location
        self.timestamp_format = timestamp_format
        self.extra_fields = extra_fields or {}

    def format(self, record: logging.LogRecord) -> str:
        log_data: dict[str, Any] = {}

        if self.include_timestamp:
            if self.timestamp_format == "iso":
                log_data["timestamp"] = datetime.fromtimestamp(record.created, timezone.utc).isoformat()
            elif self.timestamp_format == "unix":
                log_data["timestamp"] = record.created
            else:
                log_data["timestamp"] = self.formatTime(record, self.timestamp_format)

        if self.include_level:
            log_data["level"] = record.levelname.lower()

        log_data["message"] = record.getMessage()

        if self.include_logger:
            log_data["logger"] = record.name

        if self.include_location:
            log_data["location"] = {
                "file": record.filename,
                "line": record.lineno,
                "function": record.funcName,
            }

        context = _context_fields.get()
        if context:
            log_data["context"] = dict(context)

        if record.exc_info and record.exc_info[0] is not None:
            log_data["exception"] = {
                "type": record.exc_info[0].__name__,
                "message": str(record.exc_info[1]) if record.exc_info[1] else None,
                "traceback": self.formatException(record.exc_info),
            }

        for key, value in self.extra_fields.items():
            if key not in log_data:
                log_data[key] = value

        return json.dumps(log_data, default=str, ensure_ascii=False)


class HumanReadableFormatter(logging.Formatter):
    """Colored single-line formatter for console output."""

    COLORS = {
        "DEBUG": "\033[36m",
        "INFO": "\033[32m",
        "WARNING": "\033[33m",
        "ERROR": "\033[31m",
        "CRITICAL": "\033[35m",
    }
    RESET = "\033[0m"

    def __init__(self, use_colors: bool = True) -> None:
        super().__init__()
        self.use_colors = use_colors and self._supports_color()

    @staticmethod
    def _supports_color() -> bool:
        if sys.platform == "win32":
            return os.environ.get("ANSICON") is not None or "WT_SESSION" in os.environ
        return hasattr(sys.stderr, "isatty") and sys.stderr.isatty()

    def format(self, record: logging.LogRecord) -> str:
        timestamp = time.strftime("%Y-%m-%d %H:%M:%S", time.localtime(record.created))

        if self.use_colors:
            color = self.COLORS.get(record.levelname, "")
            level = f"{color}{record.levelname:8}{self.RESET}"
        else:
            level = f"{record.levelname:8}"

        base = f"{timestamp} {level} [{record.name}] {record.getMessage()}"

        context = _context_fields.get()
        if context:
            base += f" | context={json.dumps(dict(context), default=str)}"

        if record.exc_info:
            base += f"\n{self.formatException(record.exc_info)}"

        return base


def configure_logging(
    level: int | str = logging.INFO,
    json_format: bool | None = None,
    include_location: bool = False,
    extra_fields: dict[str, Any] | None = None,
) -> logging.Logger:
    """Configure the ``apitrail`` logger tree.

    Args:
        level: Minimum log level (int or name such as 'DEBUG').
        json_format: Emit JSON lines. If None, uses the APITRAIL_JSON_LOGS env var.
        include_location: Include file/line/function in JSON output.
        extra_fields: Static fields to include in every JSON record.

    Returns:
        The configured ``apitrail`` logger.

    Example:
        >>> configure_logging(level="DEBUG", json_format=True)
    """
    if json_format is None:
        json_format = os.environ.get("APITRAIL_JSON_LOGS", "false").lower() == "true"

    if isinstance(level, str):
        level = getattr(logging, level.upper(), logging.INFO)

    root_logger = logging.getLogger(ROOT_LOGGER_NAME)
    root_logger.handlers.clear()
    root_logger.propagate = False

    handler = logging.StreamHandler(sys.stderr)
    handler.setLevel(level)

    formatter: logging.Formatter
    if json_format:
        formatter = StructuredFormatter(
            include_location=include_location,
            extra_fields=extra_fields,
        )
    else:
        formatter = HumanReadableFormatter()

    handler.setFormatter(formatter)
    root_logger.addHandler(handler)
    root_logger.setLevel(level)
    return root_logger


@contextmanager
def log_context(**kwargs: Any) -> Iterator[None]:
    """Attach fields to every log record emitted inside the block.

    Example:
        >>> with log_context(project="shop"):
        ...     logger.info("Comparing")  # Includes project
    """
    current = dict(_context_fields.get() or {})
    current.update(kwargs)
    token = _context_fields.set(current)
    try:
        yield
    finally:
        _context_fields.reset(token)


def get_context() -> dict[str, Any]:
    """Get a copy of the current logging context."""
    current = _context_fields.get()
    return dict(current) if current else {}
