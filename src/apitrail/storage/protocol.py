"""SessionStore protocol - Interface for persisting recorded call history."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

from apitrail.errors import ValidationError

if TYPE_CHECKING:
    from apitrail.models import CallRecord, Project, Session, StoredReport


@runtime_checkable
class SessionStore(Protocol):
    """Protocol for stores holding Project → Subproject → Session history.

    Stores absorb their own connectivity and query failures: reads return
    empty results and writes return False, so a broken store never aborts a
    test run or a comparison.

    Built-in stores:
    - InMemorySessionStore: process-local, for tests and one-off runs
    - SessionRepository: SQLite persistence
    """

    def upsert_session(self, project: str, subproject: str, session: Session) -> bool:
        """Create the project, subproject and session if missing."""
        ...

    def append_endpoint_to_session(
        self, project: str, subproject: str, session_id: str, record: CallRecord
    ) -> bool:
        """Append a record to an existing session. False if it does not exist."""
        ...

    def append_call_record(
        self, project: str, subproject: str, session_id: str, record: CallRecord
    ) -> bool:
        """Append a record, creating project, subproject and session on first use."""
        ...

    def find_recent_sessions(self, project: str, subproject: str, limit: int) -> list[Session]:
        """Return up to ``limit`` sessions, newest ``created_at`` first."""
        ...

    def find_recent_call_records(
        self, project: str, subproject: str, limit: int
    ) -> list[CallRecord]:
        """Return up to ``limit`` records across sessions, newest timestamp first."""
        ...

    def list_subprojects(self, project: str) -> list[str]:
        ...

    def list_projects(self) -> list[str]:
        ...

    def latest_project(self) -> str | None:
        """Return the project with the most recently created session."""
        ...

    def get_project(self, project: str) -> Project | None:
        ...

    def save_report(
        self, project: str, subproject: str | None, narrative: str, records: str = ""
    ) -> bool:
        """Keep a generated narrative for later prompts."""
        ...

    def recent_reports(self, project: str, limit: int) -> list[StoredReport]:
        """Return up to ``limit`` saved reports of ``project``, newest first."""
        ...


def check_scope(project: str, subproject: str | None = None) -> None:
    """Reject blank project or subproject names."""
    if not project or not str(project).strip():
        raise ValidationError("project name must not be blank", field="project", value=project)
    if subproject is not None and not str(subproject).strip():
        raise ValidationError(
            "subproject name must not be blank", field="subproject", value=subproject
        )


def check_limit(limit: int) -> None:
    if not isinstance(limit, int) or isinstance(limit, bool) or limit <= 0:
        raise ValidationError(
            "limit must be a positive integer", field="limit", value=limit, expected="> 0"
        )


__all__ = ["SessionStore", "check_limit", "check_scope"]
