"""apitrail - Execution history comparator for API test runs.

Record every HTTP call a test run makes, keep the history per project and
subproject, and compare the latest run with the one before it.

Quick Start:
    from apitrail import (
        HistoryComparator,
        RunRecorder,
        SessionRepository,
        SummaryAssembler,
    )

    store = SessionRepository("sqlite:///apitrail_history.db")
    recorder = RunRecorder(store, project="shop", subproject="checkout")
    recorder.record_call("GET", "/cart", 200)

    comparator = HistoryComparator(store)
    report = SummaryAssembler(comparator, run_log=recorder.run_log).assemble("shop")
"""

from __future__ import annotations

from apitrail.comparison import (
    ComparatorConfig,
    ComparisonStrategy,
    ComparisonUnavailable,
    DiffReport,
    HistoryComparator,
    ProjectComparison,
    compute_diff,
    partition_by_time_window,
)
from apitrail.config import TrailConfig, load_config, resolve_project_name, resolve_subproject_name
from apitrail.errors import ApiTrailError
from apitrail.models import CallRecord, Project, Session, StoredReport, Subproject, normalize_status
from apitrail.narrative import NarrativeGenerator, OpenRouterNarrativeGenerator
from apitrail.recorder import RunRecorder
from apitrail.reporting import (
    NARRATIVE_PLACEHOLDER,
    HTMLReporter,
    JSONReporter,
    MarkdownReporter,
    SummaryAssembler,
    SummaryReport,
    TextReporter,
)
from apitrail.runlog import RunLog, RunLogSnapshot
from apitrail.storage import InMemorySessionStore, SessionRepository, SessionStore

__version__ = "0.1.0"

__all__ = [
    # Recording
    "CallRecord",
    "Project",
    "RunLog",
    "RunLogSnapshot",
    "RunRecorder",
    "Session",
    "StoredReport",
    "Subproject",
    "normalize_status",
    # Storage
    "InMemorySessionStore",
    "SessionRepository",
    "SessionStore",
    # Comparison
    "ComparatorConfig",
    "ComparisonStrategy",
    "ComparisonUnavailable",
    "DiffReport",
    "HistoryComparator",
    "ProjectComparison",
    "compute_diff",
    "partition_by_time_window",
    # Summary
    "NARRATIVE_PLACEHOLDER",
    "NarrativeGenerator",
    "OpenRouterNarrativeGenerator",
    "SummaryAssembler",
    "SummaryReport",
    "HTMLReporter",
    "JSONReporter",
    "MarkdownReporter",
    "TextReporter",
    # Config
    "TrailConfig",
    "load_config",
    "resolve_project_name",
    "resolve_subproject_name",
    # Errors
    "ApiTrailError",
]
