"""Run comparison for recorded API call history.

Quick Start:
    >>> from apitrail.comparison import HistoryComparator, ComparatorConfig
    >>>
    >>> comparator = HistoryComparator(store, ComparatorConfig(strategy="time_window"))
    >>> result = comparator.compare("shop", "checkout")
    >>> overview = comparator.compare_all("shop")
    >>> print(f"{overview.weighted_average:.2f}%")
"""

from apitrail.comparison.comparator import (
    ComparatorConfig,
    ComparisonOutcome,
    ComparisonStrategy,
    ComparisonUnavailable,
    HistoryComparator,
    ProjectComparison,
    partition_by_time_window,
)
from apitrail.comparison.diff import (
    DiffReport,
    SideSummary,
    Trend,
    build_outcome_map,
    compute_diff,
    count_failures,
    count_successes,
    failed_keys,
    success_rate,
    weighted_average,
)

__all__ = [
    # Comparator
    "HistoryComparator",
    "ComparatorConfig",
    "ComparisonStrategy",
    "ComparisonOutcome",
    "ComparisonUnavailable",
    "ProjectComparison",
    "partition_by_time_window",
    # Statistics
    "DiffReport",
    "SideSummary",
    "Trend",
    "build_outcome_map",
    "compute_diff",
    "count_failures",
    "count_successes",
    "failed_keys",
    "success_rate",
    "weighted_average",
]
