"""Markdown reporter for run summaries."""

from __future__ import annotations

from apitrail.comparison import ComparisonUnavailable, DiffReport
from apitrail.narrative import SECTION_HEADERS, to_lines
from apitrail.reporting.assembler import SummaryReport
from apitrail.reporting.base import BaseReporter, format_keys, format_rate


class MarkdownReporter(BaseReporter):
    """Generate human-readable Markdown summaries."""

    @property
    def file_extension(self) -> str:
        return ".md"

    def generate(self, report: SummaryReport) -> str:
        sections = [
            self._generate_header(report),
            self._generate_overview(report),
            self._generate_subprojects(report),
            self._generate_narrative(report),
            self._generate_errors(report),
        ]
        return "\n\n".join(s for s in sections if s) + "\n"

    def _generate_header(self, report: SummaryReport) -> str:
        timestamp = report.generated_at.strftime("%Y-%m-%d %H:%M:%S")
        comparison = report.comparison
        return f"""# API Run Summary: {report.project}

**Generated:** {timestamp}
**Weighted success rate:** {format_rate(comparison.weighted_average)}
**Subprojects compared:** {len(comparison.compared)}/{len(comparison.per_subproject)}"""

    def _generate_overview(self, report: SummaryReport) -> str:
        if not report.paragraph:
            return ""
        return f"## Overview\n\n{report.paragraph}"

    def _generate_subprojects(self, report: SummaryReport) -> str:
        if not report.comparison.per_subproject:
            return ""

        lines = ["## Subprojects"]
        for name, result in report.comparison.per_subproject.items():
            lines.append("")
            if isinstance(result, ComparisonUnavailable):
                lines.append(f"### {name}")
                lines.append(f"_Insufficient data: {result.reason}_")
                continue
            lines.extend(self._diff_table(name, result))
        return "\n".join(lines)

    def _diff_table(self, name: str, diff: DiffReport) -> list[str]:
        return [
            f"### {name} ({diff.trend.value}, {diff.delta:+.2f})",
            "",
            "| Run | Success Rate | Endpoints | Failures |",
            "|-----|--------------|-----------|----------|",
            f"| Previous | {format_rate(diff.previous.rate)} | {diff.previous.total} | {diff.previous.fails} |",
            f"| Current | {format_rate(diff.current.rate)} | {diff.current.total} | {diff.current.fails} |",
            "",
            f"- **Added:** {format_keys(diff.added)}",
            f"- **Removed:** {format_keys(diff.removed)}",
            f"- **New failures:** {format_keys(diff.new_failures)}",
            f"- **Recurring failures:** {format_keys(diff.recurring_failures)}",
            f"- **Fixed:** {format_keys(diff.fixed)}",
        ]

    def _generate_narrative(self, report: SummaryReport) -> str:
        if not report.narrative_available:
            return f"## AI Analysis\n\n_{report.narrative}_"

        lines = ["## AI Analysis"]
        parsed = [(h, to_lines(report.sections.get(h))) for h in SECTION_HEADERS]
        if not any(body for _, body in parsed):
            lines.append("")
            lines.append(report.narrative)
            return "\n".join(lines)

        for header, body in parsed:
            lines.append("")
            lines.append(f"### {header}")
            if not body:
                lines.append("- No data")
            for line in body:
                lines.append(line if line.startswith("-") else f"- {line}")
        return "\n".join(lines)

    def _generate_errors(self, report: SummaryReport) -> str:
        if not report.run_log.error_records:
            return ""
        lines = ["## Errors Recorded", ""]
        lines.extend(f"- `{record}`" for record in report.run_log.error_records)
        return "\n".join(lines)
