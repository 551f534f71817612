"""Custom exception hierarchy for apitrail.

apitrail errors carry:
- Structured error codes for programmatic handling
- Context naming the project/subproject/session involved
- Actionable suggestions for recovery

Most failures in apitrail are *not* raised to callers: storage and narrative
problems degrade to empty results or a placeholder text at their boundary.
The classes below are what those boundaries catch, and what is raised for
programming errors such as invalid arguments or bad configuration.

Example:
    try:
        config = load_config("apitrail.yaml")
    except ConfigValidationError as e:
        print(e.format_verbose())
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any


class ErrorCode(Enum):
    """Standardized error codes for apitrail.

    Error codes are organized by category:
    - E0xx: Storage errors
    - E1xx: Narrative generation errors
    - E2xx: Validation / configuration errors
    - E6xx: Reporter errors
    - E9xx: Unknown/internal errors
    """

    # Storage errors (E0xx)
    STORAGE_FAILED = "E001"
    STORAGE_UNAVAILABLE = "E002"

    # Narrative errors (E1xx)
    NARRATIVE_FAILED = "E101"
    NARRATIVE_TIMEOUT = "E102"
    RATE_LIMITED = "E103"

    # Validation errors (E2xx)
    VALIDATION_FAILED = "E201"
    INVALID_CONFIG = "E202"

    # Reporter errors (E6xx)
    REPORTER_ERROR = "E601"

    # Unknown/internal errors (E9xx)
    UNKNOWN = "E999"

    @property
    def category(self) -> str:
        """Get the error category name."""
        code_num = int(self.value[1:])
        if code_num < 100:
            return "storage"
        elif code_num < 200:
            return "narrative"
        elif code_num < 300:
            return "validation"
        elif 600 <= code_num < 700:
            return "reporter"
        else:
            return "unknown"


@dataclass
class ErrorContext:
    """Structured context for error logging and debugging.

    Attributes:
        project: Project the failing operation targeted.
        subproject: Subproject the failing operation targeted.
        session_id: Session involved, if any.
        extra: Additional context-specific information.
        timestamp: When the error occurred.
    """

    project: str | None = None
    subproject: str | None = None
    session_id: str | None = None
    extra: dict[str, Any] = field(default_factory=dict)
    timestamp: datetime = field(default_factory=datetime.now)

    def to_dict(self) -> dict[str, Any]:
        """Convert context to dictionary for serialization."""
        result = {
            "project": self.project,
            "subproject": self.subproject,
            "session_id": self.session_id,
            "extra": self.extra,
            "timestamp": self.timestamp.isoformat(),
        }
        return {k: v for k, v in result.items() if v is not None}

    def format_location(self) -> str:
        """Format the error location as a readable string."""
        parts = []
        if self.project:
            parts.append(f"project={self.project}")
        if self.subproject:
            parts.append(f"subproject={self.subproject}")
        if self.session_id:
            parts.append(f"session={self.session_id}")
        return " > ".join(parts) if parts else "unknown location"


class ApiTrailError(Exception):
    """Base exception for all apitrail errors.

    Attributes:
        error_code: Unique ErrorCode for this error type
        message: Human-readable error description
        context: ErrorContext with execution details
        suggestions: List of actionable steps to resolve the issue
        recoverable: Whether the error can be retried
        cause: The underlying exception (if any)
    """

    error_code: ErrorCode = ErrorCode.UNKNOWN
    default_message: str = "An unexpected error occurred"
    default_suggestions: list[str] = []

    def __init__(
        self,
        message: str | None = None,
        error_code: ErrorCode | None = None,
        context: ErrorContext | None = None,
        cause: Exception | None = None,
        recoverable: bool = True,
        suggestions: list[str] | None = None,
        **extra_context: Any,
    ) -> None:
        self.message = message or self.default_message
        self.error_code = error_code or self.error_code
        self.context = context or ErrorContext()
        self.cause = cause
        self.recoverable = recoverable
        self._suggestions = suggestions

        if extra_context:
            self.context.extra.update(extra_context)

        super().__init__(self.message)

    @property
    def suggestions(self) -> list[str]:
        """Get actionable suggestions for resolving this error."""
        if self._suggestions is not None:
            return self._suggestions
        return self.default_suggestions.copy()

    def __str__(self) -> str:
        parts = [f"[{self.error_code.value}] {self.message}"]

        location = self.context.format_location()
        if location != "unknown location":
            parts.append(f"at {location}")

        return " | ".join(parts)

    def format_verbose(self) -> str:
        """Format error with full details including suggestions."""
        lines = [
            f"Error [{self.error_code.value}]: {self.message}",
            "",
        ]

        location = self.context.format_location()
        if location != "unknown location":
            lines.append(f"Location: {location}")

        if self.cause is not None:
            lines.append(f"Caused by: {type(self.cause).__name__}: {self.cause}")

        if self.suggestions:
            lines.append("")
            lines.append("Suggestions:")
            for suggestion in self.suggestions:
                lines.append(f"  - {suggestion}")

        return "\n".join(lines)

    def to_dict(self) -> dict[str, Any]:
        """Convert error to dictionary for serialization."""
        return {
            "error_code": self.error_code.value,
            "error_type": self.__class__.__name__,
            "message": self.message,
            "recoverable": self.recoverable,
            "suggestions": self.suggestions,
            "context": self.context.to_dict(),
            "cause": str(self.cause) if self.cause else None,
        }


class StorageError(ApiTrailError):
    """A session store operation failed.

    Raised inside storage implementations and caught at their public
    boundary, where it is logged and turned into an empty result.
    """

    error_code = ErrorCode.STORAGE_FAILED
    default_message = "Session store operation failed"
    default_suggestions = [
        "Check that database_url points to a writable location",
        "Run 'apitrail history' to verify the store can be read",
    ]


class StorageUnavailableError(StorageError):
    """The session store could not be opened at all."""

    error_code = ErrorCode.STORAGE_UNAVAILABLE
    default_message = "Session store is unavailable"
    default_suggestions = [
        "Verify the database file exists and is not locked by another process",
        "Use sqlite://:memory: for throwaway runs",
    ]


class NarrativeError(ApiTrailError):
    """The narrative generator failed or returned unusable content."""

    error_code = ErrorCode.NARRATIVE_FAILED
    default_message = "Narrative generation failed"
    default_suggestions = [
        "Check that OPENROUTER_API_KEY is set",
        "Run with --no-ai to produce a report without a narrative",
    ]


class NarrativeTimeoutError(NarrativeError):
    """The narrative generator did not answer within the timeout."""

    error_code = ErrorCode.NARRATIVE_TIMEOUT
    default_message = "Narrative generation timed out"
    default_suggestions = [
        "Increase narrative_timeout in apitrail.yaml",
        "Check network connectivity to the narrative endpoint",
    ]


class RateLimitedError(NarrativeError):
    """The narrative endpoint rejected the request with HTTP 429."""

    error_code = ErrorCode.RATE_LIMITED
    default_message = "Narrative endpoint rate limit exceeded"
    default_suggestions = [
        "Wait before requesting another summary",
        "Use a different API key or model with a higher quota",
    ]

    def __init__(
        self,
        message: str | None = None,
        retry_after: float | None = None,
        **kwargs: Any,
    ) -> None:
        self.retry_after = retry_after
        if retry_after is not None:
            kwargs["retry_after"] = retry_after
        super().__init__(message, **kwargs)


class ValidationError(ApiTrailError):
    """An argument or value failed validation.

    Attributes:
        field: Name of the offending field or argument.
        value: The rejected value.
        expected: Description of what was expected.
    """

    error_code = ErrorCode.VALIDATION_FAILED
    default_message = "Validation failed"
    default_suggestions = [
        "Check the value passed for the named field",
    ]

    def __init__(
        self,
        message: str | None = None,
        field: str | None = None,
        value: Any = None,
        expected: str | None = None,
        **kwargs: Any,
    ) -> None:
        self.field = field
        self.value = value
        self.expected = expected
        extra: dict[str, Any] = {}
        if field is not None:
            extra["field"] = field
        if value is not None:
            extra["value"] = value
        if expected is not None:
            extra["expected"] = expected
        super().__init__(message, **kwargs, **extra)


class ConfigValidationError(ValidationError):
    """Configuration contains an invalid value."""

    error_code = ErrorCode.INVALID_CONFIG
    default_message = "Invalid configuration"
    default_suggestions = [
        "Check apitrail.yaml and APITRAIL_* environment variables",
        "Remove the offending key to fall back to its default",
    ]


class ReporterError(ApiTrailError):
    """A report could not be rendered or written."""

    error_code = ErrorCode.REPORTER_ERROR
    default_message = "Report generation failed"
    default_suggestions = [
        "Check that the report directory is writable",
    ]
