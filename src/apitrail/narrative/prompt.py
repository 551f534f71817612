"""Prompt construction and narrative section parsing."""

from __future__ import annotations

import re
from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Any

from apitrail.runlog import RunLogSnapshot

SECTION_HEADERS = (
    "Overall Summary",
    "Key Issues",
    "Technical Root Cause Insights",
    "Suggestions",
    "Endpoints Tested",
    "Error Breakdown",
)

NO_ERRORS = "No critical errors encountered."
NO_PAST_INSIGHTS = "(No past insights found, starting fresh.)"

# Earlier narratives fed into the next prompt
PAST_SUMMARY_LIMIT = 3
PAST_SUMMARY_CHARS = 500

PROMPT_TEMPLATE = """You are an expert QA Automation Analyst and SDET.
Review the following API test logs and write a medium-length analysis report.
Keep it structured, concise and technically precise.

Use exactly these headers, each followed by a colon:

Overall Summary:
  Three or four lines on the number of unique APIs tested (count repeated
  calls once), the success rate and general behaviour.

Key Issues:
  Short bullets naming the main 4xx/5xx failures.

Technical Root Cause Insights:
  One line per issue with its likely cause.

Suggestions:
  Practical improvements for the API and for the test strategy.

Endpoints Tested:
  Unique endpoints with method and status code, one per line.

Error Breakdown:
  Only endpoints with non-2xx status codes or exceptions, with the likely reason.

Leave a blank line after each section.

Previous insights for this project (mention problems that keep recurring):
{insights}

Run statistics:
- Unique endpoints: {unique}
- Successful: {successes}
- Failed: {failures}

Errors:
{errors}

Logs:
{logs}
"""


def render_past_insights(past_summaries: Sequence[str] | None) -> str:
    """Render earlier narratives as a bullet list for the prompt.

    Each narrative is reduced to its Overall Summary section when it has one,
    and cut to ``PAST_SUMMARY_CHARS`` characters.
    """
    lines = []
    for summary in past_summaries or ():
        text = extract_section(summary, "Overall Summary") or summary.strip()
        text = " ".join(text.split())
        if not text:
            continue
        if len(text) > PAST_SUMMARY_CHARS:
            text = text[: PAST_SUMMARY_CHARS - 3].rstrip() + "..."
        lines.append(f"- {text}")
    return "\n".join(lines) if lines else NO_PAST_INSIGHTS


def build_prompt(snapshot: RunLogSnapshot, past_summaries: Sequence[str] | None = None) -> str:
    """Render the analyst prompt for a drained run log.

    Args:
        snapshot: The drained run log.
        past_summaries: Earlier narratives of the same project, newest first.
    """
    errors = "\n".join(snapshot.error_records) if snapshot.error_records else NO_ERRORS
    return PROMPT_TEMPLATE.format(
        insights=render_past_insights(past_summaries),
        unique=len(snapshot.endpoint_status),
        successes=snapshot.success_count,
        failures=snapshot.failure_count,
        errors=errors,
        logs=snapshot.to_text() or "(no log entries)",
    )


def extract_section(text: str, header: str) -> str:
    """Return the body of ``header:`` up to the next blank line.

    Matching is case-insensitive and accepts a full-width colon. Bullet
    markers ``*`` and ``•`` are stripped. Returns ``""`` when the header is
    missing.

    Example:
        >>> extract_section("Key Issues:\\n- GET /a 500\\n\\nSuggestions: retry", "Key Issues")
        '- GET /a 500'
    """
    if not text:
        return ""
    parts = re.split(re.escape(header) + r"\s*[:：]", text, maxsplit=1, flags=re.IGNORECASE)
    if len(parts) < 2:
        return ""
    body = re.split(r"\n\s*\n", parts[1], maxsplit=1)[0]
    return body.replace("*", "").replace("•", "").strip()


def to_lines(section: str) -> list[str]:
    """Split a section body into non-empty, stripped lines."""
    return [line.strip() for line in section.splitlines() if line.strip()]


@dataclass
class NarrativeSections:
    """A narrative split into its known sections."""

    text: str = ""
    sections: dict[str, str] = field(default_factory=dict)

    @classmethod
    def parse(cls, text: str) -> NarrativeSections:
        return cls(
            text=text,
            sections={header: extract_section(text, header) for header in SECTION_HEADERS},
        )

    def get(self, header: str) -> str:
        return self.sections.get(header, "")

    def to_dict(self) -> dict[str, Any]:
        return {"text": self.text, "sections": dict(self.sections)}
