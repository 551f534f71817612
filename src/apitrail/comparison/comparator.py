"""History comparison between the latest run and the one before it.

``HistoryComparator`` reads from a SessionStore and hands the two selected
runs to the pure functions in ``apitrail.comparison.diff``. Two grouping
strategies decide what "a run" is:

- SESSION: the two most recently created sessions.
- TIME_WINDOW: a flat list of recent call records split where calls are
  separated by at least ``time_window_ms`` of idle time. Suites that run
  back-to-back faster than the window are merged into one side.

Example:
    >>> comparator = HistoryComparator(store)
    >>> result = comparator.compare("shop", "checkout")
    >>> if result.available:
    ...     print(result.summary())
    ... else:
    ...     print(result.reason)
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum
from typing import Any, Union

from pydantic import BaseModel, Field

from apitrail.comparison.diff import DiffReport, build_outcome_map, compute_diff, weighted_average
from apitrail.config import DEFAULT_TIME_WINDOW_MS, TrailConfig
from apitrail.errors import ValidationError
from apitrail.models import CallRecord
from apitrail.observability import log_context
from apitrail.storage.protocol import SessionStore, check_scope

logger = logging.getLogger(__name__)


class ComparisonStrategy(Enum):
    """How the previous and current runs are told apart."""

    SESSION = "session"
    TIME_WINDOW = "time_window"


@dataclass
class ComparatorConfig:
    """Configuration for comparison behavior.

    Attributes:
        strategy: Grouping strategy.
        time_window_ms: Idle gap separating runs for TIME_WINDOW grouping.
            Two minutes by default; tune it to the real spacing of your runs.
        record_limit: How many recent records TIME_WINDOW grouping reads.
        session_limit: How many recent sessions SESSION grouping reads.
    """

    strategy: ComparisonStrategy = ComparisonStrategy.SESSION
    time_window_ms: int = DEFAULT_TIME_WINDOW_MS
    record_limit: int = 100
    session_limit: int = 2

    def __post_init__(self) -> None:
        if isinstance(self.strategy, str):
            self.strategy = ComparisonStrategy(self.strategy)
        if self.time_window_ms <= 0:
            raise ValidationError(
                "time_window_ms must be greater than zero",
                field="time_window_ms",
                value=self.time_window_ms,
                expected="> 0",
            )
        if self.session_limit < 2:
            raise ValidationError(
                "session_limit must be at least 2",
                field="session_limit",
                value=self.session_limit,
                expected=">= 2",
            )

    @property
    def time_window(self) -> timedelta:
        return timedelta(milliseconds=self.time_window_ms)

    @classmethod
    def from_settings(cls, settings: TrailConfig) -> ComparatorConfig:
        return cls(
            strategy=ComparisonStrategy(settings.strategy),
            time_window_ms=settings.time_window_ms,
            record_limit=settings.record_limit,
            session_limit=settings.session_limit,
        )


class ComparisonUnavailable(BaseModel):
    """A comparison that could not be made for lack of data. Not an error."""

    project: str
    subproject: str
    reason: str = Field(..., description="Human readable explanation")
    session_count: int = 0
    record_count: int = 0

    @property
    def available(self) -> bool:
        return False

    def summary(self) -> str:
        return f"Insufficient data: {self.reason}"

    def to_dict(self) -> dict[str, Any]:
        return {
            "project": self.project,
            "subproject": self.subproject,
            "available": False,
            "reason": self.reason,
            "session_count": self.session_count,
            "record_count": self.record_count,
        }


ComparisonOutcome = Union[DiffReport, ComparisonUnavailable]


@dataclass
class ProjectComparison:
    """Per-subproject comparisons of one project plus the weighted rate.

    Attributes:
        project: Project compared.
        per_subproject: Result for every subproject, available or not.
        weighted_average: Current-run success rate weighted by endpoint
            count over the subprojects that could be compared.
    """

    project: str
    per_subproject: dict[str, ComparisonOutcome] = field(default_factory=dict)
    weighted_average: float = 0.0

    @property
    def compared(self) -> dict[str, DiffReport]:
        return {k: v for k, v in self.per_subproject.items() if isinstance(v, DiffReport)}

    @property
    def unavailable(self) -> dict[str, ComparisonUnavailable]:
        return {
            k: v for k, v in self.per_subproject.items() if isinstance(v, ComparisonUnavailable)
        }

    def to_dict(self) -> dict[str, Any]:
        return {
            "project": self.project,
            "weighted_average": round(self.weighted_average, 2),
            "per_subproject": {k: v.to_dict() for k, v in self.per_subproject.items()},
        }


def partition_by_time_window(
    records: Sequence[CallRecord], gap: timedelta
) -> tuple[list[CallRecord], list[CallRecord]]:
    """Split records into the current run and everything before it.

    A record belongs to the current run when it happened less than ``gap``
    before the most recent record; otherwise it belongs to the previous one.

    Args:
        records: Records in any order.
        gap: Idle time separating two runs.

    Returns:
        ``(current, previous)``, each keeping the input order.
    """
    if not records:
        return [], []
    latest = max(record.timestamp for record in records)
    current: list[CallRecord] = []
    previous: list[CallRecord] = []
    for record in records:
        if latest - record.timestamp < gap:
            current.append(record)
        else:
            previous.append(record)
    return current, previous


def _oldest_first(records: Sequence[CallRecord]) -> list[CallRecord]:
    return sorted(records, key=lambda r: r.timestamp)


class HistoryComparator:
    """Compares the latest run of a subproject with the run before it.

    Never raises for missing data: an empty store, a single session, or a
    single time window yields a ComparisonUnavailable. Blank names raise
    ValidationError.

    Attributes:
        store: Source of recorded history.
        config: Strategy and limits.
    """

    def __init__(self, store: SessionStore, config: ComparatorConfig | None = None) -> None:
        self.store = store
        self.config = config or ComparatorConfig()

    def compare(self, project: str, subproject: str) -> ComparisonOutcome:
        """Compare the two most recent runs of ``project``/``subproject``."""
        check_scope(project, subproject)
        with log_context(project=project, subproject=subproject):
            if self.config.strategy is ComparisonStrategy.TIME_WINDOW:
                result = self._compare_time_window(project, subproject)
            else:
                result = self._compare_sessions(project, subproject)

            if isinstance(result, ComparisonUnavailable):
                logger.info(f"No comparison for {project}/{subproject}: {result.reason}")
            else:
                logger.debug(f"Compared {project}/{subproject}: {result.summary()}")
        return result

    def _compare_sessions(self, project: str, subproject: str) -> ComparisonOutcome:
        sessions = self.store.find_recent_sessions(
            project, subproject, limit=self.config.session_limit
        )
        if len(sessions) < 2:
            reason = (
                "No sessions found"
                if not sessions
                else "Only one session found, comparison unavailable"
            )
            return ComparisonUnavailable(
                project=project,
                subproject=subproject,
                reason=reason,
                session_count=len(sessions),
                record_count=sum(s.total for s in sessions),
            )

        latest, previous = sessions[0], sessions[1]
        if not latest.endpoints or not previous.endpoints:
            empty = latest if not latest.endpoints else previous
            return ComparisonUnavailable(
                project=project,
                subproject=subproject,
                reason=f"Session {empty.session_id} has no recorded calls",
                session_count=len(sessions),
                record_count=latest.total + previous.total,
            )

        return compute_diff(
            build_outcome_map(previous.endpoints),
            build_outcome_map(latest.endpoints),
            previous_time=previous.created_at,
            current_time=latest.created_at,
            previous_label=previous.session_id,
            current_label=latest.session_id,
            project=project,
            subproject=subproject,
        )

    def _compare_time_window(self, project: str, subproject: str) -> ComparisonOutcome:
        records = self.store.find_recent_call_records(
            project, subproject, limit=self.config.record_limit
        )
        if not records:
            return ComparisonUnavailable(
                project=project, subproject=subproject, reason="No call records found"
            )

        current, previous = partition_by_time_window(records, self.config.time_window)
        if not previous:
            return ComparisonUnavailable(
                project=project,
                subproject=subproject,
                reason=(
                    f"All {len(records)} records fall within one "
                    f"{self.config.time_window_ms} ms window"
                ),
                record_count=len(records),
            )

        current_time = max(r.timestamp for r in current)
        previous_time = max(r.timestamp for r in previous)
        return compute_diff(
            build_outcome_map(_oldest_first(previous)),
            build_outcome_map(_oldest_first(current)),
            previous_time=previous_time,
            current_time=current_time,
            previous_label=_window_label(previous),
            current_label=_window_label(current),
            project=project,
            subproject=subproject,
        )

    def compare_all(self, project: str) -> ProjectComparison:
        """Compare every subproject of ``project``.

        Subprojects without enough data are reported but left out of the
        weighted average, which is 0.0 when nothing could be compared.
        """
        check_scope(project)
        result = ProjectComparison(project=project)
        for subproject in self.store.list_subprojects(project):
            result.per_subproject[subproject] = self.compare(project, subproject)

        result.weighted_average = weighted_average(
            (diff.current.rate, diff.current.total) for diff in result.compared.values()
        )
        logger.info(
            f"Compared {len(result.compared)}/{len(result.per_subproject)} subprojects of "
            f"{project}, weighted success rate {result.weighted_average:.2f}%"
        )
        return result


def _window_label(records: Sequence[CallRecord]) -> str:
    start = min(r.timestamp for r in records)
    end = max(r.timestamp for r in records)
    return f"{_fmt(start)} - {_fmt(end)}"


def _fmt(value: datetime) -> str:
    return value.strftime("%Y-%m-%d %H:%M:%S")
