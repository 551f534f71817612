"""Plain-text reporter for terminals and CI logs."""

from __future__ import annotations

from apitrail.comparison import ComparisonUnavailable
from apitrail.reporting.assembler import SummaryReport
from apitrail.reporting.base import BaseReporter, format_keys, format_rate


class TextReporter(BaseReporter):
    """Render a summary as fixed-width text."""

    @property
    def file_extension(self) -> str:
        return ".txt"

    def generate(self, report: SummaryReport) -> str:
        lines = [
            "=" * 60,
            f"API RUN SUMMARY: {report.project}",
            "=" * 60,
            f"Generated: {report.generated_at.strftime('%Y-%m-%d %H:%M:%S')}",
            f"Weighted success rate: {format_rate(report.comparison.weighted_average)}",
            "",
        ]

        for name, result in report.comparison.per_subproject.items():
            lines.append("-" * 40)
            lines.append(name)
            lines.append("-" * 40)
            if isinstance(result, ComparisonUnavailable):
                lines.append(f"  Insufficient data: {result.reason}")
                lines.append("")
                continue
            lines.append(
                f"  Success rate: {format_rate(result.previous.rate)} -> "
                f"{format_rate(result.current.rate)} ({result.trend.value})"
            )
            lines.append(f"  Endpoints: {result.previous.total} -> {result.current.total}")
            lines.append(f"  Added: {format_keys(result.added)}")
            lines.append(f"  Removed: {format_keys(result.removed)}")
            lines.append(f"  New failures: {format_keys(result.new_failures)}")
            lines.append(f"  Recurring failures: {format_keys(result.recurring_failures)}")
            lines.append(f"  Fixed: {format_keys(result.fixed)}")
            lines.append("")

        if report.paragraph:
            lines.append(report.paragraph)
            lines.append("")

        lines.append("AI ANALYSIS")
        lines.append("-" * 40)
        lines.append(report.narrative)
        lines.append("=" * 60)
        return "\n".join(lines) + "\n"
