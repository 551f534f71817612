"""Abstract base reporter for rendering summary reports.

Reporters only format: every number they print comes from the
SummaryReport they are given.

Example:
    >>> class CustomReporter(BaseReporter):
    ...     @property
    ...     def file_extension(self) -> str:
    ...         return ".custom"
    ...
    ...     def generate(self, report: SummaryReport) -> str:
    ...         return report.paragraph
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from pathlib import Path
from typing import TYPE_CHECKING

from apitrail.errors import ReporterError

if TYPE_CHECKING:
    from apitrail.reporting.assembler import SummaryReport


class BaseReporter(ABC):
    """Abstract base class for all reporters.

    Attributes:
        output_path: Optional default path for saving reports.
    """

    def __init__(self, output_path: str | Path | None = None) -> None:
        self.output_path = Path(output_path) if output_path else None

    @abstractmethod
    def generate(self, report: SummaryReport) -> str:
        """Render ``report`` as text."""
        ...

    @property
    @abstractmethod
    def file_extension(self) -> str:
        """File extension including the dot, e.g. '.md'."""
        ...

    def save(self, report: SummaryReport, path: str | Path | None = None) -> Path:
        """Render and write the report, creating parent directories.

        Raises:
            ValueError: If no path was given here or in the constructor.
            ReporterError: If the file cannot be written.
        """
        output_path = Path(path) if path else self.output_path
        if not output_path:
            raise ValueError(
                "Output path required for saving report. "
                "Provide 'path' argument or set 'output_path' in constructor."
            )

        content = self.generate(report)

        try:
            output_path.parent.mkdir(parents=True, exist_ok=True)
            output_path.write_text(content, encoding="utf-8")
        except OSError as e:
            raise ReporterError(f"Cannot write report to {output_path}", cause=e) from e

        return output_path


def format_rate(rate: float) -> str:
    return f"{rate:.2f}%"


def format_keys(keys: list[str], empty: str = "None") -> str:
    return ", ".join(keys) if keys else empty
