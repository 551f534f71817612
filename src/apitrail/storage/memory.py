"""Process-local session store."""

from __future__ import annotations

import copy
import logging
import threading

from apitrail.models import CallRecord, Project, Session, StoredReport
from apitrail.storage.protocol import check_limit, check_scope

logger = logging.getLogger(__name__)


class InMemorySessionStore:
    """SessionStore keeping the whole hierarchy in a dict.

    Every operation holds one re-entrant lock, so concurrent appends to the
    same session never lose records. Reads return deep copies. Session ids are
    unique across the whole store, as in SessionRepository.

    Example:
        >>> store = InMemorySessionStore()
        >>> store.append_call_record("shop", "checkout", "s-1", CallRecord("GET", "/cart", 200))
        True
        >>> len(store.find_recent_sessions("shop", "checkout", limit=2))
        1
    """

    def __init__(self) -> None:
        self._projects: dict[str, Project] = {}
        self._session_scopes: dict[str, tuple[str, str]] = {}
        self._reports: list[StoredReport] = []
        self._lock = threading.RLock()

    def _session(self, project: str, subproject: str, session_id: str) -> Session | None:
        proj = self._projects.get(project)
        if proj is None or subproject not in proj.subprojects:
            return None
        return proj.subprojects[subproject].get_session(session_id)

    def _owned_elsewhere(self, project: str, subproject: str, session_id: str) -> bool:
        scope = self._session_scopes.get(session_id)
        if scope is None or scope == (project, subproject):
            return False
        logger.warning(
            f"Session {session_id} belongs to {scope[0]}/{scope[1]}, "
            f"not {project}/{subproject}"
        )
        return True

    def upsert_session(self, project: str, subproject: str, session: Session) -> bool:
        check_scope(project, subproject)
        with self._lock:
            if self._owned_elsewhere(project, subproject, session.session_id):
                return False
            proj = self._projects.setdefault(project, Project(name=project))
            sub = proj.subproject(subproject)
            if sub.get_session(session.session_id) is None:
                sub.sessions.append(
                    Session(
                        session_id=session.session_id,
                        created_at=session.created_at,
                        endpoints=list(session.endpoints),
                    )
                )
                self._session_scopes[session.session_id] = (project, subproject)
                logger.debug(f"Created session {session.session_id} in {project}/{subproject}")
        return True

    def append_endpoint_to_session(
        self, project: str, subproject: str, session_id: str, record: CallRecord
    ) -> bool:
        check_scope(project, subproject)
        with self._lock:
            session = self._session(project, subproject, session_id)
            if session is None:
                logger.warning(f"Session {session_id} not found in {project}/{subproject}")
                return False
            session.endpoints.append(record)
        return True

    def append_call_record(
        self, project: str, subproject: str, session_id: str, record: CallRecord
    ) -> bool:
        check_scope(project, subproject)
        with self._lock:
            if self._session(project, subproject, session_id) is None:
                if not self.upsert_session(
                    project,
                    subproject,
                    Session(session_id=session_id, created_at=record.timestamp),
                ):
                    return False
            return self.append_endpoint_to_session(project, subproject, session_id, record)

    def find_recent_sessions(self, project: str, subproject: str, limit: int) -> list[Session]:
        check_scope(project, subproject)
        check_limit(limit)
        with self._lock:
            proj = self._projects.get(project)
            if proj is None or subproject not in proj.subprojects:
                return []
            return copy.deepcopy(proj.subprojects[subproject].recent_sessions(limit))

    def find_recent_call_records(
        self, project: str, subproject: str, limit: int
    ) -> list[CallRecord]:
        check_scope(project, subproject)
        check_limit(limit)
        with self._lock:
            proj = self._projects.get(project)
            if proj is None or subproject not in proj.subprojects:
                return []
            records = [
                record
                for session in proj.subprojects[subproject].sessions
                for record in session.endpoints
            ]
        records.sort(key=lambda r: r.timestamp, reverse=True)
        return records[:limit]

    def list_subprojects(self, project: str) -> list[str]:
        check_scope(project)
        with self._lock:
            proj = self._projects.get(project)
            return list(proj.subprojects) if proj else []

    def list_projects(self) -> list[str]:
        with self._lock:
            return list(self._projects)

    def latest_project(self) -> str | None:
        with self._lock:
            active = [
                (proj.last_activity, name)
                for name, proj in self._projects.items()
                if proj.last_activity is not None
            ]
        if not active:
            return None
        return max(active)[1]

    def get_project(self, project: str) -> Project | None:
        check_scope(project)
        with self._lock:
            proj = self._projects.get(project)
            return copy.deepcopy(proj) if proj else None

    def save_report(
        self, project: str, subproject: str | None, narrative: str, records: str = ""
    ) -> bool:
        check_scope(project)
        with self._lock:
            self._reports.append(
                StoredReport(
                    project=project, subproject=subproject, narrative=narrative, records=records
                )
            )
        logger.debug(f"Saved narrative report for {project}")
        return True

    def recent_reports(self, project: str, limit: int) -> list[StoredReport]:
        check_scope(project)
        check_limit(limit)
        with self._lock:
            matching = [
                (report.created_at, index, report)
                for index, report in enumerate(self._reports)
                if report.project == project
            ]
        matching.sort(key=lambda item: (item[0], item[1]), reverse=True)
        return [copy.deepcopy(report) for _, _, report in matching[:limit]]
