"""Logging setup for apitrail."""

from apitrail.observability.logging import (
    ROOT_LOGGER_NAME,
    HumanReadableFormatter,
    StructuredFormatter,
    configure_logging,
    get_context,
    log_context,
)

__all__ = [
    "ROOT_LOGGER_NAME",
    "HumanReadableFormatter",
    "StructuredFormatter",
    "configure_logging",
    "get_context",
    "log_context",
]
