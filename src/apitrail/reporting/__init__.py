"""Summary assembly and rendering.

Quick Start:
    >>> from apitrail.reporting import SummaryAssembler, MarkdownReporter
    >>>
    >>> report = SummaryAssembler(comparator, narrative=generator, run_log=log).assemble("shop")
    >>> MarkdownReporter().save(report, "reports/shop.md")
"""

from apitrail.reporting.assembler import (
    NARRATIVE_PLACEHOLDER,
    SummaryAssembler,
    SummaryReport,
    paragraph_summary,
)
from apitrail.reporting.base import BaseReporter
from apitrail.reporting.html import HTMLReporter
from apitrail.reporting.json_report import JSONReporter
from apitrail.reporting.markdown import MarkdownReporter
from apitrail.reporting.text import TextReporter

REPORTERS: dict[str, type[BaseReporter]] = {
    "markdown": MarkdownReporter,
    "html": HTMLReporter,
    "text": TextReporter,
    "json": JSONReporter,
}

__all__ = [
    # Assembly
    "NARRATIVE_PLACEHOLDER",
    "SummaryAssembler",
    "SummaryReport",
    "paragraph_summary",
    # Reporters
    "REPORTERS",
    "BaseReporter",
    "HTMLReporter",
    "JSONReporter",
    "MarkdownReporter",
    "TextReporter",
]
