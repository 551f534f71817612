"""Combines comparison results and a narrative into one report object."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from apitrail.comparison import (
    ComparisonUnavailable,
    DiffReport,
    HistoryComparator,
    ProjectComparison,
    weighted_average,
)
from apitrail.narrative import (
    PAST_SUMMARY_LIMIT,
    NarrativeGenerator,
    NarrativeSections,
    build_prompt,
)
from apitrail.runlog import RunLog, RunLogSnapshot

logger = logging.getLogger(__name__)

NARRATIVE_PLACEHOLDER = "AI summary unavailable"

_ERROR_SHAPED = re.compile(r"^\s*(ai\s+)?error\s*[:\-]", re.IGNORECASE)


@dataclass
class SummaryReport:
    """Everything a reporter needs to render a run summary.

    Attributes:
        project: Project summarized.
        comparison: Per-subproject comparisons and the weighted rate.
        narrative: Generated prose, or NARRATIVE_PLACEHOLDER.
        narrative_available: False when the placeholder was used.
        sections: The narrative split into its known sections.
        paragraph: Plain-language summary of the comparison.
        run_log: What the run log held when it was drained.
        generated_at: When the report was assembled.
    """

    project: str
    comparison: ProjectComparison
    narrative: str = NARRATIVE_PLACEHOLDER
    narrative_available: bool = False
    sections: NarrativeSections = field(default_factory=NarrativeSections)
    paragraph: str = ""
    run_log: RunLogSnapshot = field(default_factory=RunLogSnapshot)
    generated_at: datetime = field(default_factory=datetime.now)

    def to_dict(self) -> dict[str, Any]:
        return {
            "project": self.project,
            "generated_at": self.generated_at.isoformat(),
            "comparison": self.comparison.to_dict(),
            "paragraph": self.paragraph,
            "narrative": self.narrative,
            "narrative_available": self.narrative_available,
            "sections": dict(self.sections.sections),
            "run_log": self.run_log.to_dict(),
        }


def paragraph_summary(comparison: ProjectComparison) -> str:
    """Describe a project comparison in one paragraph."""
    compared = comparison.compared
    if not comparison.per_subproject:
        return f"No recorded history found for project {comparison.project}."

    sentences = []
    if compared:
        sentences.append(
            f"Across {len(compared)} compared subproject(s) of {comparison.project}, "
            f"the weighted success rate of the latest runs is {comparison.weighted_average:.2f}%."
        )
    else:
        sentences.append(f"No subproject of {comparison.project} has two runs to compare yet.")

    for name, result in comparison.per_subproject.items():
        if isinstance(result, ComparisonUnavailable):
            sentences.append(f"{name}: {result.reason}.")
            continue
        sentences.append(_describe_diff(name, result))
    return " ".join(sentences)


def _describe_diff(name: str, diff: DiffReport) -> str:
    text = (
        f"{name} moved from {diff.previous.rate:.2f}% to {diff.current.rate:.2f}% "
        f"({diff.trend.value}); the latest run {diff.trend.performance}"
    )
    details = []
    if diff.new_failures:
        details.append(f"new failures: {', '.join(diff.new_failures)}")
    if diff.recurring_failures:
        details.append(f"still failing: {', '.join(diff.recurring_failures)}")
    if diff.fixed:
        details.append(f"fixed: {', '.join(diff.fixed)}")
    if details:
        text += " with " + "; ".join(details)
    return text + "."


class SummaryAssembler:
    """Builds a SummaryReport from a comparator, a run log and a narrative.

    The run log is drained exactly once per ``assemble`` call. Narrative
    failures never prevent the report: the placeholder is used instead.
    The last ``history_limit`` narratives saved for the project are passed to
    the prompt, and each new narrative is saved to the comparator's store.

    Example:
        >>> assembler = SummaryAssembler(comparator, narrative=generator, run_log=log)
        >>> report = assembler.assemble("shop")
        >>> MarkdownReporter().save(report, "reports/shop.md")
    """

    def __init__(
        self,
        comparator: HistoryComparator,
        narrative: NarrativeGenerator | None = None,
        run_log: RunLog | None = None,
        history_limit: int = PAST_SUMMARY_LIMIT,
    ) -> None:
        self.comparator = comparator
        self.narrative = narrative
        self.run_log = run_log
        self.history_limit = history_limit

    def assemble(self, project: str, subproject: str | None = None) -> SummaryReport:
        """Assemble the report for a project or a single subproject."""
        if subproject is None:
            comparison = self.comparator.compare_all(project)
        else:
            result = self.comparator.compare(project, subproject)
            comparison = ProjectComparison(project=project, per_subproject={subproject: result})
            comparison.weighted_average = weighted_average(
                (d.current.rate, d.current.total) for d in comparison.compared.values()
            )

        snapshot = self.run_log.drain_and_clear() if self.run_log is not None else RunLogSnapshot()
        narrative = self._generate(project, snapshot)
        available = narrative is not None
        if narrative is not None:
            self.comparator.store.save_report(project, subproject, narrative, snapshot.to_text())

        return SummaryReport(
            project=project,
            comparison=comparison,
            narrative=narrative if narrative is not None else NARRATIVE_PLACEHOLDER,
            narrative_available=available,
            sections=NarrativeSections.parse(narrative) if narrative is not None else NarrativeSections(),
            paragraph=paragraph_summary(comparison),
            run_log=snapshot,
        )

    def _past_summaries(self, project: str) -> list[str]:
        if self.history_limit <= 0:
            return []
        reports = self.comparator.store.recent_reports(project, limit=self.history_limit)
        return [report.narrative for report in reports]

    def _generate(self, project: str, snapshot: RunLogSnapshot) -> str | None:
        if self.narrative is None:
            logger.info("Narrative generation disabled")
            return None
        if snapshot.is_empty:
            logger.info("Run log is empty, skipping narrative generation")
            return None

        prompt = build_prompt(snapshot, self._past_summaries(project))
        try:
            text = self.narrative.generate_narrative(prompt)
        except Exception as e:
            logger.warning(f"Narrative generation failed: {e}")
            return None

        if not isinstance(text, str) or not text.strip():
            logger.warning("Narrative generator returned empty content")
            return None
        if _ERROR_SHAPED.match(text):
            logger.warning(f"Narrative generator returned an error: {text[:200]}")
            return None
        return text.strip()
