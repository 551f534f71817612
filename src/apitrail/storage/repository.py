"""SQLite repository for recorded call history.

Example:
    >>> from apitrail.storage import SessionRepository
    >>> repo = SessionRepository("sqlite:///apitrail_history.db")
    >>> repo.initialize()
    >>>
    >>> repo.append_call_record("shop", "checkout", session_id, record)
    >>> sessions = repo.find_recent_sessions("shop", "checkout", limit=2)
"""

from __future__ import annotations

import logging
import sqlite3
import threading
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from apitrail.errors import ErrorContext, StorageError, StorageUnavailableError
from apitrail.models import CallRecord, Project, Session, StoredReport, parse_timestamp, utcnow
from apitrail.storage.models import SCHEMA_SQL
from apitrail.storage.protocol import check_limit, check_scope

logger = logging.getLogger(__name__)


def _ts(value: datetime) -> str:
    """Serialize timestamps in one fixed UTC format so text order is time order."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat(timespec="microseconds")


class SessionRepository:
    """SessionStore backed by SQLite.

    One connection is shared by all threads and every statement runs under a
    lock, so concurrent appends to the same session are serialized.

    Public methods never raise for storage problems: reads log a warning and
    return empty results, writes log a warning and return False.

    Attributes:
        connection_url: Database connection string.
    """

    def __init__(self, connection_url: str = "sqlite:///apitrail_history.db") -> None:
        """Initialize the repository.

        Args:
            connection_url: Database connection string. Supports:
                - sqlite:///path/to/database.db
                - sqlite://:memory: (in-memory, for testing)
        """
        self.connection_url = connection_url
        self._conn: sqlite3.Connection | None = None
        self._initialized = False
        self._lock = threading.RLock()

    def initialize(self) -> None:
        """Open the connection and create tables. Safe to call multiple times.

        Raises:
            StorageUnavailableError: If the database cannot be opened.
        """
        with self._lock:
            if self._initialized and self._conn:
                return

            db_path = self._parse_connection_url()
            try:
                if db_path != ":memory:":
                    Path(db_path).parent.mkdir(parents=True, exist_ok=True)
                self._conn = sqlite3.connect(db_path, check_same_thread=False)
                self._conn.row_factory = sqlite3.Row
                self._conn.execute("PRAGMA foreign_keys = ON")
                self._conn.executescript(SCHEMA_SQL)
                self._conn.commit()
            except (sqlite3.Error, OSError) as e:
                self._conn = None
                raise StorageUnavailableError(
                    f"Cannot open session store at {db_path}",
                    cause=e,
                    context=ErrorContext(extra={"connection_url": self.connection_url}),
                ) from e

            self._initialized = True
            logger.info(f"Initialized session repository: {db_path}")

    def close(self) -> None:
        with self._lock:
            if self._conn:
                self._conn.close()
                self._conn = None
                self._initialized = False

    def __enter__(self) -> SessionRepository:
        self.initialize()
        return self

    def __exit__(self, *args: Any) -> None:
        self.close()

    def _parse_connection_url(self) -> str:
        url = self.connection_url

        if url.startswith("sqlite:///"):
            return str(Path(url[10:]).expanduser().absolute())
        if url.startswith("sqlite://"):
            path = url[9:]
            if path == ":memory:":
                return path
            return str(Path(path).expanduser().absolute())
        return url

    def _connection(self) -> sqlite3.Connection:
        if not self._initialized or not self._conn:
            self.initialize()
        if not self._conn:
            raise StorageUnavailableError("Database not initialized")
        return self._conn

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def _upsert_scope(self, conn: sqlite3.Connection, project: str, subproject: str, now: str) -> None:
        conn.execute(
            "INSERT OR IGNORE INTO projects (name, created_at) VALUES (?, ?)",
            (project, now),
        )
        conn.execute(
            "INSERT OR IGNORE INTO subprojects (project, name, created_at) VALUES (?, ?, ?)",
            (project, subproject, now),
        )

    def _insert_session(
        self, conn: sqlite3.Connection, project: str, subproject: str, session: Session
    ) -> None:
        created = _ts(session.created_at)
        self._upsert_scope(conn, project, subproject, created)
        cursor = conn.execute(
            """
            INSERT OR IGNORE INTO sessions (session_id, project, subproject, created_at)
            VALUES (?, ?, ?, ?)
            """,
            (session.session_id, project, subproject, created),
        )
        if cursor.rowcount:
            for record in session.endpoints:
                self._insert_record(conn, session.session_id, record)

    def _insert_record(self, conn: sqlite3.Connection, session_id: str, record: CallRecord) -> None:
        conn.execute(
            """
            INSERT INTO call_records (
                session_id, method, endpoint, payload, response, status, timestamp
            ) VALUES (?, ?, ?, ?, ?, ?, ?)
            """,
            (
                session_id,
                record.method,
                record.endpoint,
                record.payload,
                record.response,
                record.status,
                _ts(record.timestamp),
            ),
        )

    def _session_exists(
        self, conn: sqlite3.Connection, project: str, subproject: str, session_id: str
    ) -> bool:
        row = conn.execute(
            "SELECT 1 FROM sessions WHERE session_id = ? AND project = ? AND subproject = ?",
            (session_id, project, subproject),
        ).fetchone()
        return row is not None

    def _owned_elsewhere(
        self, conn: sqlite3.Connection, project: str, subproject: str, session_id: str
    ) -> bool:
        row = conn.execute(
            "SELECT project, subproject FROM sessions WHERE session_id = ?",
            (session_id,),
        ).fetchone()
        if row is None or (row["project"], row["subproject"]) == (project, subproject):
            return False
        logger.warning(
            f"Session {session_id} belongs to {row['project']}/{row['subproject']}, "
            f"not {project}/{subproject}"
        )
        return True

    def upsert_session(self, project: str, subproject: str, session: Session) -> bool:
        check_scope(project, subproject)
        with self._lock:
            try:
                conn = self._connection()
                if self._owned_elsewhere(conn, project, subproject, session.session_id):
                    return False
                self._insert_session(conn, project, subproject, session)
                conn.commit()
            except (sqlite3.Error, StorageError) as e:
                self._rollback()
                logger.warning(f"Failed to upsert session {session.session_id}: {e}")
                return False
        logger.debug(f"Upserted session {session.session_id} in {project}/{subproject}")
        return True

    def append_endpoint_to_session(
        self, project: str, subproject: str, session_id: str, record: CallRecord
    ) -> bool:
        check_scope(project, subproject)
        with self._lock:
            try:
                conn = self._connection()
                if not self._session_exists(conn, project, subproject, session_id):
                    logger.warning(f"Session {session_id} not found in {project}/{subproject}")
                    return False
                self._insert_record(conn, session_id, record)
                conn.commit()
            except (sqlite3.Error, StorageError) as e:
                self._rollback()
                logger.warning(f"Failed to append call record to {session_id}: {e}")
                return False
        return True

    def append_call_record(
        self, project: str, subproject: str, session_id: str, record: CallRecord
    ) -> bool:
        check_scope(project, subproject)
        with self._lock:
            try:
                conn = self._connection()
                if self._owned_elsewhere(conn, project, subproject, session_id):
                    return False
                if not self._session_exists(conn, project, subproject, session_id):
                    self._insert_session(
                        conn,
                        project,
                        subproject,
                        Session(session_id=session_id, created_at=record.timestamp),
                    )
                self._insert_record(conn, session_id, record)
                conn.commit()
            except (sqlite3.Error, StorageError) as e:
                self._rollback()
                logger.warning(f"Failed to persist call record {record.key}: {e}")
                return False
        logger.debug(f"Saved call record {record.key} ({record.status}) to {session_id}")
        return True

    def _rollback(self) -> None:
        if self._conn:
            try:
                self._conn.rollback()
            except sqlite3.Error as e:
                logger.debug(f"Rollback failed: {e}")

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def find_recent_sessions(self, project: str, subproject: str, limit: int) -> list[Session]:
        check_scope(project, subproject)
        check_limit(limit)
        with self._lock:
            try:
                conn = self._connection()
                rows = conn.execute(
                    """
                    SELECT * FROM sessions
                    WHERE project = ? AND subproject = ?
                    ORDER BY created_at DESC, rowid DESC
                    LIMIT ?
                    """,
                    (project, subproject, limit),
                ).fetchall()
                return [self._row_to_session(conn, row) for row in rows]
            except (sqlite3.Error, StorageError) as e:
                logger.warning(f"Failed to load sessions for {project}/{subproject}: {e}")
                return []

    def find_recent_call_records(
        self, project: str, subproject: str, limit: int
    ) -> list[CallRecord]:
        check_scope(project, subproject)
        check_limit(limit)
        with self._lock:
            try:
                rows = self._connection().execute(
                    """
                    SELECT c.* FROM call_records c
                    JOIN sessions s ON s.session_id = c.session_id
                    WHERE s.project = ? AND s.subproject = ?
                    ORDER BY c.timestamp DESC, c.id DESC
                    LIMIT ?
                    """,
                    (project, subproject, limit),
                ).fetchall()
            except (sqlite3.Error, StorageError) as e:
                logger.warning(f"Failed to load call records for {project}/{subproject}: {e}")
                return []
        return [self._row_to_record(row) for row in rows]

    def list_subprojects(self, project: str) -> list[str]:
        check_scope(project)
        with self._lock:
            try:
                rows = self._connection().execute(
                    "SELECT name FROM subprojects WHERE project = ? ORDER BY created_at, name",
                    (project,),
                ).fetchall()
            except (sqlite3.Error, StorageError) as e:
                logger.warning(f"Failed to list subprojects of {project}: {e}")
                return []
        return [row["name"] for row in rows]

    def list_projects(self) -> list[str]:
        with self._lock:
            try:
                rows = self._connection().execute(
                    "SELECT name FROM projects ORDER BY created_at, name"
                ).fetchall()
            except (sqlite3.Error, StorageError) as e:
                logger.warning(f"Failed to list projects: {e}")
                return []
        return [row["name"] for row in rows]

    def latest_project(self) -> str | None:
        with self._lock:
            try:
                row = self._connection().execute(
                    "SELECT project FROM sessions ORDER BY created_at DESC, rowid DESC LIMIT 1"
                ).fetchone()
            except (sqlite3.Error, StorageError) as e:
                logger.warning(f"Failed to resolve latest project: {e}")
                return None
        return row["project"] if row else None

    def get_project(self, project: str) -> Project | None:
        check_scope(project)
        with self._lock:
            try:
                conn = self._connection()
                if conn.execute("SELECT 1 FROM projects WHERE name = ?", (project,)).fetchone() is None:
                    return None
                result = Project(name=project)
                for name in self.list_subprojects(project):
                    sub = result.subproject(name)
                    rows = conn.execute(
                        """
                        SELECT * FROM sessions WHERE project = ? AND subproject = ?
                        ORDER BY created_at, rowid
                        """,
                        (project, name),
                    ).fetchall()
                    sub.sessions.extend(self._row_to_session(conn, row) for row in rows)
                return result
            except (sqlite3.Error, StorageError) as e:
                logger.warning(f"Failed to load project {project}: {e}")
                return None

    # ------------------------------------------------------------------
    # Narrative reports
    # ------------------------------------------------------------------

    def save_report(
        self, project: str, subproject: str | None, narrative: str, records: str = ""
    ) -> bool:
        check_scope(project)
        with self._lock:
            try:
                conn = self._connection()
                conn.execute(
                    """
                    INSERT INTO reports (project, subproject, narrative, records, created_at)
                    VALUES (?, ?, ?, ?, ?)
                    """,
                    (project, subproject, narrative, records, _ts(utcnow())),
                )
                conn.commit()
            except (sqlite3.Error, StorageError) as e:
                self._rollback()
                logger.warning(f"Failed to save narrative report for {project}: {e}")
                return False
        logger.debug(f"Saved narrative report for {project}")
        return True

    def recent_reports(self, project: str, limit: int) -> list[StoredReport]:
        check_scope(project)
        check_limit(limit)
        with self._lock:
            try:
                rows = self._connection().execute(
                    """
                    SELECT * FROM reports WHERE project = ?
                    ORDER BY created_at DESC, id DESC
                    LIMIT ?
                    """,
                    (project, limit),
                ).fetchall()
            except (sqlite3.Error, StorageError) as e:
                logger.warning(f"Failed to load narrative reports for {project}: {e}")
                return []
        return [
            StoredReport(
                project=row["project"],
                subproject=row["subproject"],
                narrative=row["narrative"],
                records=row["records"],
                created_at=parse_timestamp(row["created_at"]),
            )
            for row in rows
        ]

    # ------------------------------------------------------------------
    # Import / export / housekeeping
    # ------------------------------------------------------------------

    def export_project(self, project: str) -> list[dict[str, Any]]:
        """Export a project as one document per subproject."""
        loaded = self.get_project(project)
        return loaded.to_documents() if loaded else []

    def import_documents(self, documents: list[dict[str, Any]]) -> int:
        """Import documents in the persisted shape.

        Sessions whose id already exists are skipped.

        Returns:
            Number of sessions imported.
        """
        imported = 0
        for doc in documents:
            project = Project.from_documents(doc["project"], [doc])
            for sub in project.subprojects.values():
                for session in sub.sessions:
                    with self._lock:
                        try:
                            conn = self._connection()
                            if self._session_exists(
                                conn, project.name, sub.name, session.session_id
                            ) or self._owned_elsewhere(
                                conn, project.name, sub.name, session.session_id
                            ):
                                continue
                            self._insert_session(conn, project.name, sub.name, session)
                            conn.commit()
                            imported += 1
                        except (sqlite3.Error, StorageError) as e:
                            self._rollback()
                            logger.warning(f"Failed to import session {session.session_id}: {e}")
        logger.info(f"Imported {imported} sessions")
        return imported

    def delete_sessions_before(self, cutoff: datetime) -> int:
        """Delete sessions created before ``cutoff``. Returns the count deleted."""
        with self._lock:
            try:
                conn = self._connection()
                cursor = conn.execute(
                    "DELETE FROM sessions WHERE created_at < ?",
                    (_ts(cutoff),),
                )
                conn.commit()
            except (sqlite3.Error, StorageError) as e:
                self._rollback()
                logger.warning(f"Failed to delete old sessions: {e}")
                return 0
        logger.info(f"Deleted {cursor.rowcount} sessions older than {cutoff.isoformat()}")
        return cursor.rowcount

    # ------------------------------------------------------------------
    # Row converters
    # ------------------------------------------------------------------

    def _row_to_session(self, conn: sqlite3.Connection, row: sqlite3.Row) -> Session:
        records = conn.execute(
            "SELECT * FROM call_records WHERE session_id = ? ORDER BY id",
            (row["session_id"],),
        ).fetchall()
        return Session(
            session_id=row["session_id"],
            created_at=parse_timestamp(row["created_at"]),
            endpoints=[self._row_to_record(r) for r in records],
        )

    def _row_to_record(self, row: sqlite3.Row) -> CallRecord:
        return CallRecord(
            method=row["method"],
            endpoint=row["endpoint"],
            payload=row["payload"],
            response=row["response"],
            status=row["status"],
            timestamp=parse_timestamp(row["timestamp"]),
        )
