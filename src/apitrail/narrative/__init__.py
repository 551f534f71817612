"""Narrative generation for run summaries."""

from apitrail.narrative.client import (
    SYSTEM_MESSAGE,
    NarrativeGenerator,
    OpenRouterNarrativeGenerator,
    StaticNarrativeGenerator,
)
from apitrail.narrative.prompt import (
    NO_PAST_INSIGHTS,
    PAST_SUMMARY_CHARS,
    PAST_SUMMARY_LIMIT,
    SECTION_HEADERS,
    NarrativeSections,
    build_prompt,
    extract_section,
    render_past_insights,
    to_lines,
)

__all__ = [
    # Generators
    "NarrativeGenerator",
    "OpenRouterNarrativeGenerator",
    "StaticNarrativeGenerator",
    "SYSTEM_MESSAGE",
    # Prompt
    "NO_PAST_INSIGHTS",
    "PAST_SUMMARY_CHARS",
    "PAST_SUMMARY_LIMIT",
    "SECTION_HEADERS",
    "NarrativeSections",
    "build_prompt",
    "extract_section",
    "render_past_insights",
    "to_lines",
]
