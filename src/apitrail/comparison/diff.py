"""Pure statistics for comparing two runs.

Nothing here touches storage, the network, or rendering: every function takes
endpoint outcome maps and returns plain values, so the diff engine can be
exercised without any collaborator.

An outcome map is ``{"METHOD path": status}``. Status 0 (unknown) and every
status outside 200-299 count as failures.

Example:
    >>> previous = {"GET /a": 200, "POST /b": 500}
    >>> current = {"GET /a": 200, "POST /b": 200, "GET /c": 404}
    >>> diff = compute_diff(previous, current)
    >>> diff.fixed, diff.new_failures
    (['POST /b'], ['GET /c'])
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from apitrail.models import CallRecord, is_success_status


class Trend(Enum):
    """Direction of the success rate between two runs."""

    IMPROVEMENT = "improvement"
    DECLINE = "decline"
    NO_CHANGE = "no change"

    @classmethod
    def from_delta(cls, delta: float) -> Trend:
        if delta > 0:
            return cls.IMPROVEMENT
        if delta < 0:
            return cls.DECLINE
        return cls.NO_CHANGE

    @property
    def performance(self) -> str:
        """Phrase describing how the current run performed."""
        return {
            Trend.IMPROVEMENT: "performed better",
            Trend.DECLINE: "performed worse",
            Trend.NO_CHANGE: "maintained stability",
        }[self]


def build_outcome_map(records: Iterable[CallRecord]) -> dict[str, int]:
    """Collapse records into ``{"METHOD path": status}``.

    Records are applied in the order given, so the last occurrence of a key
    wins. Pass records oldest first.
    """
    outcomes: dict[str, int] = {}
    for record in records:
        outcomes[record.key] = record.status
    return outcomes


def count_successes(outcomes: Mapping[str, int]) -> int:
    return sum(1 for status in outcomes.values() if is_success_status(status))


def count_failures(outcomes: Mapping[str, int]) -> int:
    return len(outcomes) - count_successes(outcomes)


def success_rate(outcomes: Mapping[str, int]) -> float:
    """Percentage of 2xx outcomes, 0.0 for an empty map."""
    if not outcomes:
        return 0.0
    return 100.0 * count_successes(outcomes) / len(outcomes)


def failed_keys(outcomes: Mapping[str, int]) -> set[str]:
    return {key for key, status in outcomes.items() if not is_success_status(status)}


def weighted_average(pairs: Iterable[tuple[float, int]]) -> float:
    """Average ``rate`` weighted by ``total`` over ``(rate, total)`` pairs.

    Returns 0.0 when the totals sum to zero.
    """
    weighted = 0.0
    total = 0
    for rate, count in pairs:
        weighted += rate * count
        total += count
    if total == 0:
        return 0.0
    return weighted / total


class SideSummary(BaseModel):
    """Headline numbers for one side of a comparison."""

    label: str = Field(..., description="Session id or window label")
    rate: float = Field(..., description="Success rate in percent")
    total: int = Field(..., description="Number of distinct endpoints")
    fails: int = Field(..., description="Distinct endpoints that did not return 2xx")
    time: datetime | None = Field(default=None, description="When this side ran")

    @classmethod
    def from_outcomes(
        cls, outcomes: Mapping[str, int], label: str, time: datetime | None = None
    ) -> SideSummary:
        return cls(
            label=label,
            rate=success_rate(outcomes),
            total=len(outcomes),
            fails=count_failures(outcomes),
            time=time,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "label": self.label,
            "rate": round(self.rate, 2),
            "total": self.total,
            "fails": self.fails,
            "time": self.time.isoformat() if self.time else None,
        }


class DiffReport(BaseModel):
    """Comparison between the previous and the current run of a subproject.

    Attributes:
        project: Project compared.
        subproject: Subproject compared.
        previous: Summary of the older side.
        current: Summary of the newer side.
        added: Endpoints only present in the current run.
        removed: Endpoints only present in the previous run.
        new_failures: Endpoints failing now that were not failing before.
        recurring_failures: Endpoints failing in both runs.
        fixed: Endpoints failing before that no longer fail.
        previous_outcomes: Outcome map of the previous run.
        current_outcomes: Outcome map of the current run.
    """

    model_config = ConfigDict(arbitrary_types_allowed=True)

    project: str = ""
    subproject: str = ""
    previous: SideSummary
    current: SideSummary
    added: list[str] = Field(default_factory=list)
    removed: list[str] = Field(default_factory=list)
    new_failures: list[str] = Field(default_factory=list)
    recurring_failures: list[str] = Field(default_factory=list)
    fixed: list[str] = Field(default_factory=list)
    previous_outcomes: dict[str, int] = Field(default_factory=dict)
    current_outcomes: dict[str, int] = Field(default_factory=dict)
    compared_at: datetime = Field(default_factory=datetime.now)

    @property
    def available(self) -> bool:
        return True

    @property
    def delta(self) -> float:
        return self.current.rate - self.previous.rate

    @property
    def trend(self) -> Trend:
        return Trend.from_delta(self.delta)

    @property
    def has_regressions(self) -> bool:
        return bool(self.new_failures)

    def summary(self) -> str:
        """One-line human readable summary."""
        parts = [
            f"{self.previous.rate:.2f}% -> {self.current.rate:.2f}%",
            f"({self.trend.value}, {self.delta:+.2f})",
        ]
        if self.added:
            parts.append(f"{len(self.added)} added")
        if self.removed:
            parts.append(f"{len(self.removed)} removed")
        if self.new_failures:
            parts.append(f"{len(self.new_failures)} new failures")
        if self.recurring_failures:
            parts.append(f"{len(self.recurring_failures)} recurring")
        if self.fixed:
            parts.append(f"{len(self.fixed)} fixed")
        return " ".join(parts)

    def to_dict(self) -> dict[str, Any]:
        return {
            "project": self.project,
            "subproject": self.subproject,
            "available": True,
            "previous": self.previous.to_dict(),
            "current": self.current.to_dict(),
            "delta": round(self.delta, 2),
            "trend": self.trend.value,
            "added": self.added,
            "removed": self.removed,
            "new_failures": self.new_failures,
            "recurring_failures": self.recurring_failures,
            "fixed": self.fixed,
            "compared_at": self.compared_at.isoformat(),
        }


def compute_diff(
    previous: Mapping[str, int],
    current: Mapping[str, int],
    previous_time: datetime | None = None,
    current_time: datetime | None = None,
    previous_label: str = "previous",
    current_label: str = "current",
    project: str = "",
    subproject: str = "",
) -> DiffReport:
    """Compare two outcome maps.

    Args:
        previous: Outcomes of the older run.
        current: Outcomes of the newer run.
        previous_time: When the older run happened.
        current_time: When the newer run happened.
        previous_label: Identifier shown for the older run.
        current_label: Identifier shown for the newer run.
        project: Project name carried into the report.
        subproject: Subproject name carried into the report.

    Returns:
        DiffReport with rates and the key set differences, each sorted.
    """
    prev_failed = failed_keys(previous)
    curr_failed = failed_keys(current)

    return DiffReport(
        project=project,
        subproject=subproject,
        previous=SideSummary.from_outcomes(previous, previous_label, previous_time),
        current=SideSummary.from_outcomes(current, current_label, current_time),
        added=sorted(set(current) - set(previous)),
        removed=sorted(set(previous) - set(current)),
        new_failures=sorted(curr_failed - prev_failed),
        recurring_failures=sorted(curr_failed & prev_failed),
        fixed=sorted(prev_failed - curr_failed),
        previous_outcomes=dict(previous),
        current_outcomes=dict(current),
    )
