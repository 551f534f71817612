"""apitrail error hierarchy."""

from apitrail.errors.base import (
    ApiTrailError,
    ConfigValidationError,
    ErrorCode,
    ErrorContext,
    NarrativeError,
    NarrativeTimeoutError,
    RateLimitedError,
    ReporterError,
    StorageError,
    StorageUnavailableError,
    ValidationError,
)

__all__ = [
    # Base
    "ApiTrailError",
    "ErrorCode",
    "ErrorContext",
    # Storage
    "StorageError",
    "StorageUnavailableError",
    # Narrative
    "NarrativeError",
    "NarrativeTimeoutError",
    "RateLimitedError",
    # Validation
    "ValidationError",
    "ConfigValidationError",
    # Reporting
    "ReporterError",
]
