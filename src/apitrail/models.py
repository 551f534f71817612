"""Data model for recorded API call history.

History is organized as Project → Subproject → Session → CallRecord. The
``to_dict``/``from_dict`` pairs reproduce the persisted document shape field
for field, so stores written by other harness implementations stay readable::

    {
        "project": "shop",
        "subproject": "checkout",
        "sessions": [
            {
                "sessionId": "2025-01-01T10:00:00+00:00_4f0c...",
                "createdAt": "2025-01-01T10:00:00+00:00",
                "endpoints": [
                    {"method": "GET", "endpoint": "/cart", "payload": null,
                     "response": "{...}", "status": 200,
                     "timestamp": "2025-01-01T10:00:01+00:00"}
                ]
            }
        ]
    }
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

logger = logging.getLogger(__name__)

UNKNOWN_STATUS = 0
MIN_STATUS = 100
MAX_STATUS = 599


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def normalize_status(value: Any) -> int:
    """Convert a raw status into an HTTP status code or ``UNKNOWN_STATUS``.

    Numeric strings are accepted. Anything non-numeric, missing, or outside
    100-599 becomes 0, which every rate computation counts as a failure.

    Example:
        >>> normalize_status("404")
        404
        >>> normalize_status("oops")
        0
    """
    if value is None:
        return UNKNOWN_STATUS
    if isinstance(value, bool):
        logger.warning(f"Malformed status {value!r} treated as failure")
        return UNKNOWN_STATUS
    if isinstance(value, int):
        status = value
    elif isinstance(value, float) and value.is_integer():
        status = int(value)
    else:
        try:
            status = int(str(value).strip())
        except ValueError:
            logger.warning(f"Malformed status {value!r} treated as failure")
            return UNKNOWN_STATUS
    if status < MIN_STATUS or status > MAX_STATUS:
        return UNKNOWN_STATUS
    return status


def is_success_status(status: int) -> bool:
    return 200 <= status < 300


def endpoint_key(method: str, endpoint: str) -> str:
    """Build the ``"METHOD endpoint"`` key used to compare runs."""
    return f"{method.strip().upper()} {endpoint.strip()}"


def parse_timestamp(value: Any) -> datetime:
    """Parse an ISO-8601 string or datetime, assuming UTC when naive."""
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, (int, float)):
        parsed = datetime.fromtimestamp(value / 1000.0, timezone.utc)
    else:
        parsed = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def new_session_id(now: datetime | None = None) -> str:
    """Generate a unique session id of the form ``<instant>_<uuid4>``."""
    instant = (now or utcnow()).isoformat()
    return f"{instant}_{uuid.uuid4()}"


@dataclass(frozen=True)
class CallRecord:
    """One observed HTTP exchange.

    Attributes:
        method: HTTP method.
        endpoint: Request path or URL.
        payload: Request body, if any.
        response: Response body, if any.
        status: HTTP status, 0 when unknown.
        timestamp: When the call completed.
    """

    method: str
    endpoint: str
    status: int = UNKNOWN_STATUS
    payload: str | None = None
    response: str | None = None
    timestamp: datetime = field(default_factory=utcnow)

    def __post_init__(self) -> None:
        object.__setattr__(self, "method", self.method.strip().upper())
        object.__setattr__(self, "status", normalize_status(self.status))
        if self.timestamp.tzinfo is None:
            object.__setattr__(self, "timestamp", self.timestamp.replace(tzinfo=timezone.utc))

    @property
    def key(self) -> str:
        return endpoint_key(self.method, self.endpoint)

    @property
    def is_success(self) -> bool:
        return is_success_status(self.status)

    def to_dict(self) -> dict[str, Any]:
        return {
            "method": self.method,
            "endpoint": self.endpoint,
            "payload": self.payload,
            "response": self.response,
            "status": self.status,
            "timestamp": self.timestamp.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> CallRecord:
        return cls(
            method=data.get("method") or "",
            endpoint=data.get("endpoint") or "",
            payload=data.get("payload"),
            response=data.get("response"),
            status=normalize_status(data.get("status")),
            timestamp=parse_timestamp(data["timestamp"]) if data.get("timestamp") else utcnow(),
        )


@dataclass
class Session:
    """The call records produced by one test run.

    Attributes:
        session_id: Unique id generated once per run.
        created_at: When the first record of the run arrived.
        endpoints: Call records in arrival order.
    """

    session_id: str = field(default_factory=new_session_id)
    created_at: datetime = field(default_factory=utcnow)
    endpoints: list[CallRecord] = field(default_factory=list)

    @property
    def total(self) -> int:
        return len(self.endpoints)

    def to_dict(self) -> dict[str, Any]:
        return {
            "sessionId": self.session_id,
            "createdAt": self.created_at.isoformat(),
            "endpoints": [record.to_dict() for record in self.endpoints],
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Session:
        return cls(
            session_id=data["sessionId"],
            created_at=parse_timestamp(data["createdAt"]),
            endpoints=[CallRecord.from_dict(e) for e in data.get("endpoints") or []],
        )


@dataclass
class Subproject:
    """A named test-suite variant holding sessions in chronological order."""

    name: str
    sessions: list[Session] = field(default_factory=list)

    def get_session(self, session_id: str) -> Session | None:
        for session in self.sessions:
            if session.session_id == session_id:
                return session
        return None

    def recent_sessions(self, limit: int) -> list[Session]:
        ordered = sorted(self.sessions, key=lambda s: s.created_at, reverse=True)
        return ordered[:limit]

    def to_dict(self, project: str) -> dict[str, Any]:
        return {
            "project": project,
            "subproject": self.name,
            "sessions": [session.to_dict() for session in self.sessions],
        }


@dataclass
class Project:
    """A named codebase holding uniquely named subprojects."""

    name: str
    subprojects: dict[str, Subproject] = field(default_factory=dict)

    def subproject(self, name: str) -> Subproject:
        """Get a subproject, creating it on first use."""
        if name not in self.subprojects:
            self.subprojects[name] = Subproject(name=name)
        return self.subprojects[name]

    @property
    def last_activity(self) -> datetime | None:
        stamps = [
            session.created_at
            for sub in self.subprojects.values()
            for session in sub.sessions
        ]
        return max(stamps) if stamps else None

    def to_documents(self) -> list[dict[str, Any]]:
        """Render one persisted document per subproject."""
        return [sub.to_dict(self.name) for sub in self.subprojects.values()]

    @classmethod
    def from_documents(cls, name: str, documents: list[dict[str, Any]]) -> Project:
        project = cls(name=name)
        for doc in documents:
            sub = project.subproject(doc["subproject"])
            sub.sessions.extend(Session.from_dict(s) for s in doc.get("sessions") or [])
        return project


@dataclass
class StoredReport:
    """A narrative produced for a project, kept so later prompts can build on it.

    Attributes:
        project: Project the narrative describes.
        subproject: Subproject it was limited to, None for the whole project.
        narrative: The generated text.
        records: The run log lines the narrative was generated from.
        created_at: When the report was saved.
    """

    project: str
    narrative: str
    subproject: str | None = None
    records: str = ""
    created_at: datetime = field(default_factory=utcnow)

    def to_dict(self) -> dict[str, Any]:
        return {
            "projectName": self.project,
            "subproject": self.subproject,
            "aiSummary": self.narrative,
            "records": self.records,
            "timestamp": self.created_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> StoredReport:
        return cls(
            project=data["projectName"],
            subproject=data.get("subproject"),
            narrative=data.get("aiSummary") or "",
            records=data.get("records") or "",
            created_at=parse_timestamp(data["timestamp"]) if data.get("timestamp") else utcnow(),
        )
