"""Run context that feeds recorded calls into a RunLog and a SessionStore."""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from datetime import datetime
from typing import Any

from apitrail.errors import ValidationError
from apitrail.models import CallRecord, Session, new_session_id, utcnow
from apitrail.runlog import RunLog
from apitrail.storage.protocol import SessionStore

logger = logging.getLogger(__name__)


class RunRecorder:
    """Records the calls of one test run.

    The session is created lazily: the first recorded call generates the
    session id and upserts the session, later calls append to it.

    Attributes:
        store: Where call records are persisted.
        project: Resolved project name.
        subproject: Resolved subproject name.
        run_log: Accumulator drained by the summary step.

    Example:
        >>> recorder = RunRecorder(store, "shop", "checkout")
        >>> recorder.record_call("GET", "/cart", 200, response='{"items": []}')
        >>> recorder.session_id is not None
        True
    """

    def __init__(
        self,
        store: SessionStore,
        project: str,
        subproject: str,
        run_log: RunLog | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        if not project or not project.strip():
            raise ValidationError("project name must not be blank", field="project", value=project)
        if not subproject or not subproject.strip():
            raise ValidationError(
                "subproject name must not be blank", field="subproject", value=subproject
            )
        self.store = store
        self.project = project
        self.subproject = subproject
        self.run_log = run_log if run_log is not None else RunLog()
        self._clock = clock or utcnow
        self._session_id: str | None = None
        self._lock = threading.Lock()

    @property
    def session_id(self) -> str | None:
        return self._session_id

    def _ensure_session(self, now: datetime) -> str:
        with self._lock:
            if self._session_id is None:
                session = Session(session_id=new_session_id(now), created_at=now)
                self.store.upsert_session(self.project, self.subproject, session)
                self._session_id = session.session_id
                logger.info(
                    f"Started session {session.session_id} for {self.project}/{self.subproject}"
                )
            return self._session_id

    def record_call(
        self,
        method: str,
        endpoint: str,
        status: Any,
        payload: str | None = None,
        response: str | None = None,
    ) -> CallRecord:
        """Record one completed HTTP call.

        Args:
            method: HTTP method.
            endpoint: Request path.
            status: Raw status; malformed values are stored as 0.
            payload: Request body, if any.
            response: Response body, if any.

        Returns:
            The stored CallRecord.
        """
        now = self._clock()
        session_id = self._ensure_session(now)
        record = CallRecord(
            method=method,
            endpoint=endpoint,
            status=status,
            payload=payload,
            response=response,
            timestamp=now,
        )
        self.run_log.record_endpoint(record.method, record.endpoint, record.status)
        self.store.append_call_record(self.project, self.subproject, session_id, record)
        return record

    def record_error(self, endpoint: str, message: str) -> None:
        self.run_log.record_error(endpoint, message)

    def info(self, message: str) -> None:
        self.run_log.info(message)

    def reset(self) -> None:
        """Forget the current session; the next call starts a new one."""
        with self._lock:
            self._session_id = None
