"""HTML reporter producing a single self-contained page."""

from __future__ import annotations

import html
from pathlib import Path

from apitrail.comparison import ComparisonUnavailable, DiffReport
from apitrail.narrative import SECTION_HEADERS, to_lines
from apitrail.reporting.assembler import SummaryReport
from apitrail.reporting.base import BaseReporter, format_rate

_STYLE = """
body { font-family: -apple-system, Segoe UI, Roboto, sans-serif; margin: 2rem; color: #1f2933; }
h1 { margin-bottom: 0.2rem; }
.meta { color: #616e7c; margin-bottom: 1.5rem; }
.card { border: 1px solid #d9e2ec; border-radius: 8px; padding: 1rem 1.25rem; margin-bottom: 1rem; }
.improvement { color: #2f8132; }
.decline { color: #c62828; }
.no-change { color: #616e7c; }
.unavailable { color: #8d6e63; font-style: italic; }
table { border-collapse: collapse; margin: 0.5rem 0; }
th, td { border: 1px solid #d9e2ec; padding: 0.35rem 0.75rem; text-align: left; }
code { background: #f0f4f8; padding: 0 0.25rem; }
"""


class HTMLReporter(BaseReporter):
    """Render a summary as an HTML page."""

    def __init__(self, output_path: str | Path | None = None, title: str = "API Run Summary") -> None:
        super().__init__(output_path)
        self.title = title

    @property
    def file_extension(self) -> str:
        return ".html"

    def generate(self, report: SummaryReport) -> str:
        body = "\n".join(
            [
                self._render_header(report),
                self._render_overview(report),
                self._render_subprojects(report),
                self._render_narrative(report),
            ]
        )
        return f"""<!DOCTYPE html>
<html lang="en">
<head>
    <meta charset="utf-8">
    <title>{html.escape(self.title)}: {html.escape(report.project)}</title>
    <style>{_STYLE}</style>
</head>
<body>
{body}
</body>
</html>
"""

    def _render_header(self, report: SummaryReport) -> str:
        timestamp = report.generated_at.strftime("%Y-%m-%d %H:%M:%S")
        return f"""<h1>{html.escape(self.title)}: {html.escape(report.project)}</h1>
<div class="meta">Generated {timestamp} &middot; weighted success rate
<strong>{format_rate(report.comparison.weighted_average)}</strong></div>"""

    def _render_overview(self, report: SummaryReport) -> str:
        if not report.paragraph:
            return ""
        return f'<div class="card"><h2>Overview</h2><p>{html.escape(report.paragraph)}</p></div>'

    def _render_subprojects(self, report: SummaryReport) -> str:
        cards = []
        for name, result in report.comparison.per_subproject.items():
            if isinstance(result, ComparisonUnavailable):
                cards.append(
                    f'<div class="card"><h3>{html.escape(name)}</h3>'
                    f'<p class="unavailable">Insufficient data: {html.escape(result.reason)}</p></div>'
                )
            else:
                cards.append(self._render_diff(name, result))
        return "\n".join(cards)

    def _render_diff(self, name: str, diff: DiffReport) -> str:
        trend_class = diff.trend.value.replace(" ", "-")
        rows = [
            ("Added", diff.added),
            ("Removed", diff.removed),
            ("New failures", diff.new_failures),
            ("Recurring failures", diff.recurring_failures),
            ("Fixed", diff.fixed),
        ]
        items = "".join(
            f"<li><strong>{label}:</strong> {_code_list(keys)}</li>" for label, keys in rows
        )
        return f"""<div class="card">
<h3>{html.escape(name)} <span class="{trend_class}">{html.escape(diff.trend.value)} ({diff.delta:+.2f})</span></h3>
<table>
<tr><th>Run</th><th>Success rate</th><th>Endpoints</th><th>Failures</th></tr>
<tr><td>Previous</td><td>{format_rate(diff.previous.rate)}</td><td>{diff.previous.total}</td><td>{diff.previous.fails}</td></tr>
<tr><td>Current</td><td>{format_rate(diff.current.rate)}</td><td>{diff.current.total}</td><td>{diff.current.fails}</td></tr>
</table>
<ul>{items}</ul>
</div>"""

    def _render_narrative(self, report: SummaryReport) -> str:
        if not report.narrative_available:
            return (
                '<div class="card"><h2>AI Analysis</h2>'
                f'<p class="unavailable">{html.escape(report.narrative)}</p></div>'
            )

        blocks = []
        for header in SECTION_HEADERS:
            lines = to_lines(report.sections.get(header))
            if not lines:
                continue
            items = "".join(f"<li>{html.escape(line.lstrip('- '))}</li>" for line in lines)
            blocks.append(f"<h3>{html.escape(header)}</h3><ul>{items}</ul>")
        if not blocks:
            blocks.append(f"<pre>{html.escape(report.narrative)}</pre>")
        return '<div class="card"><h2>AI Analysis</h2>' + "".join(blocks) + "</div>"


def _code_list(keys: list[str]) -> str:
    if not keys:
        return "<em>None</em>"
    return ", ".join(f"<code>{html.escape(key)}</code>" for key in keys)
