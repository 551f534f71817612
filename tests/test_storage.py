"""Tests for session stores."""

from __future__ import annotations

import threading
from datetime import timedelta
from pathlib import Path

import pytest

from apitrail.errors import StorageUnavailableError, ValidationError
from apitrail.models import Session
from apitrail.storage import InMemorySessionStore, SessionRepository, SessionStore

from .conftest import BASE_TIME, add_session, make_record, make_session


class TestSessionStoreContract:
    """Behaviour shared by every SessionStore implementation."""

    def test_implements_protocol(self, store: SessionStore) -> None:
        """Test both stores satisfy the protocol."""
        assert isinstance(store, SessionStore)

    def test_append_creates_hierarchy(self, store: SessionStore) -> None:
        """Test the first record creates project, subproject and session."""
        assert store.append_call_record("shop", "api", "s-1", make_record("GET /a", 200))

        assert store.list_projects() == ["shop"]
        assert store.list_subprojects("shop") == ["api"]
        sessions = store.find_recent_sessions("shop", "api", limit=5)
        assert [s.session_id for s in sessions] == ["s-1"]
        assert sessions[0].created_at == BASE_TIME

    def test_append_extends_existing_session(self, store: SessionStore) -> None:
        """Test later records are appended in order to the same session."""
        store.append_call_record("shop", "api", "s-1", make_record("GET /a", 200, BASE_TIME))
        later = BASE_TIME + timedelta(seconds=5)
        store.append_call_record("shop", "api", "s-1", make_record("POST /b", 500, later))

        (session,) = store.find_recent_sessions("shop", "api", limit=5)

        assert [r.key for r in session.endpoints] == ["GET /a", "POST /b"]
        assert session.created_at == BASE_TIME

    def test_upsert_session_is_idempotent(self, store: SessionStore) -> None:
        """Test upserting an existing session does not duplicate it."""
        session = Session(session_id="s-1", created_at=BASE_TIME)

        store.upsert_session("shop", "api", session)
        store.upsert_session("shop", "api", session)

        assert len(store.find_recent_sessions("shop", "api", limit=5)) == 1

    def test_append_endpoint_requires_session(self, store: SessionStore) -> None:
        """Test appending to an unknown session is refused."""
        assert not store.append_endpoint_to_session(
            "shop", "api", "missing", make_record("GET /a", 200)
        )
        store.upsert_session("shop", "api", Session(session_id="s-1", created_at=BASE_TIME))

        assert store.append_endpoint_to_session("shop", "api", "s-1", make_record("GET /a", 200))
        assert store.find_recent_sessions("shop", "api", limit=1)[0].total == 1

    def test_recent_sessions_sorted_and_limited(self, store: SessionStore) -> None:
        """Test sessions come back newest first and respect the limit."""
        for hours, sid in [(0, "first"), (2, "third"), (1, "second")]:
            add_session(
                store, "shop", "api", make_session(sid, BASE_TIME + timedelta(hours=hours), {"GET /a": 200})
            )

        sessions = store.find_recent_sessions("shop", "api", limit=2)

        assert [s.session_id for s in sessions] == ["third", "second"]

    def test_append_rejects_session_of_other_scope(
        self, store: SessionStore, caplog: pytest.LogCaptureFixture
    ) -> None:
        """Test a session id owned by another subproject is not reused."""
        store.append_call_record("shop", "api", "s-1", make_record("GET /a", 200))

        assert not store.append_call_record("shop", "ui", "s-1", make_record("GET /b", 500))
        assert not store.append_call_record("blog", "api", "s-1", make_record("GET /c", 500))

        assert "belongs to shop/api" in caplog.text
        (session,) = store.find_recent_sessions("shop", "api", limit=5)
        assert [r.key for r in session.endpoints] == ["GET /a"]
        assert store.find_recent_sessions("shop", "ui", limit=5) == []
        assert store.list_projects() == ["shop"]

    def test_upsert_rejects_session_of_other_scope(self, store: SessionStore) -> None:
        """Test upserting a known session id under another scope is refused."""
        session = Session(session_id="s-1", created_at=BASE_TIME)
        assert store.upsert_session("shop", "api", session)

        assert not store.upsert_session("shop", "ui", session)

        assert store.list_subprojects("shop") == ["api"]

    def test_recent_call_records_flat_and_sorted(self, store: SessionStore) -> None:
        """Test records from all sessions come back newest first."""
        add_session(store, "shop", "api", make_session("s-1", BASE_TIME, {"GET /a": 200, "GET /b": 200}))
        add_session(
            store,
            "shop",
            "api",
            make_session("s-2", BASE_TIME + timedelta(minutes=10), {"GET /c": 500}),
        )

        records = store.find_recent_call_records("shop", "api", limit=2)

        assert [r.key for r in records] == ["GET /c", "GET /b"]

    def test_scopes_are_isolated(self, store: SessionStore) -> None:
        """Test records never leak between subprojects or projects."""
        store.append_call_record("shop", "api", "s-1", make_record("GET /a", 200))
        store.append_call_record("shop", "ui", "s-2", make_record("GET /b", 200))
        store.append_call_record("blog", "api", "s-3", make_record("GET /c", 200))

        assert [r.key for r in store.find_recent_call_records("shop", "api", limit=10)] == ["GET /a"]
        assert sorted(store.list_subprojects("shop")) == ["api", "ui"]

    def test_unknown_scope_is_empty(self, store: SessionStore) -> None:
        """Test querying unknown names returns empty results."""
        assert store.find_recent_sessions("nope", "none", limit=2) == []
        assert store.find_recent_call_records("nope", "none", limit=2) == []
        assert store.list_subprojects("nope") == []
        assert store.get_project("nope") is None
        assert store.latest_project() is None

    def test_latest_project(self, store: SessionStore) -> None:
        """Test the project with the newest session is reported."""
        add_session(store, "shop", "api", make_session("s-1", BASE_TIME, {"GET /a": 200}))
        add_session(
            store, "blog", "api", make_session("s-2", BASE_TIME + timedelta(days=1), {"GET /a": 200})
        )

        assert store.latest_project() == "blog"

    def test_get_project(self, store: SessionStore) -> None:
        """Test the full hierarchy can be loaded."""
        add_session(store, "shop", "api", make_session("s-1", BASE_TIME, {"GET /a": 200}))
        add_session(store, "shop", "ui", make_session("s-2", BASE_TIME, {"GET /b": 404}))

        project = store.get_project("shop")

        assert project is not None
        assert sorted(project.subprojects) == ["api", "ui"]
        assert project.subprojects["ui"].sessions[0].endpoints[0].status == 404

    @pytest.mark.parametrize("limit", [0, -1])
    def test_invalid_limit_raises(self, store: SessionStore, limit: int) -> None:
        """Test non-positive limits are programming errors."""
        with pytest.raises(ValidationError):
            store.find_recent_sessions("shop", "api", limit=limit)

    def test_blank_project_raises(self, store: SessionStore) -> None:
        """Test blank names are programming errors."""
        with pytest.raises(ValidationError):
            store.append_call_record(" ", "api", "s-1", make_record("GET /a", 200))

    def test_concurrent_appends_to_one_session(self, store: SessionStore) -> None:
        """Test no record is lost when threads append to the same session."""
        per_thread = 50

        def worker(n: int) -> None:
            for i in range(per_thread):
                store.append_call_record("shop", "api", "s-1", make_record(f"GET /t{n}/{i}", 200))

        threads = [threading.Thread(target=worker, args=(n,)) for n in range(6)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        (session,) = store.find_recent_sessions("shop", "api", limit=2)
        assert session.total == 6 * per_thread


class TestReportHistory:
    """Tests for saved narrative reports."""

    def test_recent_reports_newest_first(self, store: SessionStore) -> None:
        """Test reports come back newest first and respect the limit."""
        for text in ["first", "second", "third"]:
            assert store.save_report("shop", None, text)

        reports = store.recent_reports("shop", limit=2)

        assert [r.narrative for r in reports] == ["third", "second"]
        assert reports[0].subproject is None

    def test_reports_kept_per_project(self, store: SessionStore) -> None:
        """Test reports of other projects are not returned."""
        store.save_report("shop", "api", "shop text", "[10:00:00] ENDPOINT: GET /a | STATUS: 200")
        store.save_report("blog", None, "blog text")

        (report,) = store.recent_reports("shop", limit=5)

        assert report.project == "shop"
        assert report.subproject == "api"
        assert report.records == "[10:00:00] ENDPOINT: GET /a | STATUS: 200"
        assert store.recent_reports("ghost", limit=5) == []

    def test_invalid_arguments(self, store: SessionStore) -> None:
        """Test blank projects and non-positive limits are rejected."""
        with pytest.raises(ValidationError):
            store.save_report(" ", None, "text")
        with pytest.raises(ValidationError):
            store.recent_reports("shop", limit=0)


class TestInMemorySessionStore:
    """Tests specific to the in-memory store."""

    def test_reads_are_copies(self, memory_store: InMemorySessionStore) -> None:
        """Test mutating a returned session does not change the store."""
        memory_store.append_call_record("shop", "api", "s-1", make_record("GET /a", 200))

        memory_store.find_recent_sessions("shop", "api", limit=1)[0].endpoints.clear()

        assert memory_store.find_recent_sessions("shop", "api", limit=1)[0].total == 1


class TestSessionRepository:
    """Tests specific to the SQLite repository."""

    def test_persists_across_connections(self, tmp_path: Path) -> None:
        """Test history survives closing and reopening the database."""
        url = f"sqlite:///{tmp_path / 'history.db'}"
        with SessionRepository(url) as repo:
            add_session(repo, "shop", "api", make_session("s-1", BASE_TIME, {"GET /a": 200}))

        with SessionRepository(url) as repo:
            sessions = repo.find_recent_sessions("shop", "api", limit=2)

        assert [s.session_id for s in sessions] == ["s-1"]
        assert sessions[0].endpoints[0].timestamp == BASE_TIME

    def test_unopenable_database_raises_on_initialize(self, tmp_path: Path) -> None:
        """Test initialize reports an unusable location."""
        repo = SessionRepository(f"sqlite:///{tmp_path}")

        with pytest.raises(StorageUnavailableError):
            repo.initialize()

    def test_unopenable_database_degrades_to_empty(
        self, tmp_path: Path, caplog: pytest.LogCaptureFixture
    ) -> None:
        """Test queries and writes against a broken store never raise."""
        repo = SessionRepository(f"sqlite:///{tmp_path}")

        assert repo.find_recent_sessions("shop", "api", limit=2) == []
        assert repo.find_recent_call_records("shop", "api", limit=2) == []
        assert repo.list_subprojects("shop") == []
        assert repo.latest_project() is None
        assert repo.append_call_record("shop", "api", "s-1", make_record("GET /a", 200)) is False
        assert repo.save_report("shop", None, "text") is False
        assert repo.recent_reports("shop", limit=3) == []
        assert "Failed to" in caplog.text

    def test_export_and_import(self, sqlite_store: SessionRepository) -> None:
        """Test exported documents import into another repository unchanged."""
        add_session(sqlite_store, "shop", "api", make_session("s-1", BASE_TIME, {"GET /a": 200}))
        add_session(sqlite_store, "shop", "ui", make_session("s-2", BASE_TIME, {"GET /b": 500}))
        documents = sqlite_store.export_project("shop")

        with SessionRepository("sqlite://:memory:") as other:
            assert other.import_documents(documents) == 2
            assert other.import_documents(documents) == 0
            assert other.export_project("shop") == documents

    def test_delete_sessions_before(self, sqlite_store: SessionRepository) -> None:
        """Test old sessions and their records are removed."""
        add_session(sqlite_store, "shop", "api", make_session("old", BASE_TIME, {"GET /a": 200}))
        add_session(
            sqlite_store,
            "shop",
            "api",
            make_session("new", BASE_TIME + timedelta(days=10), {"GET /a": 200}),
        )

        deleted = sqlite_store.delete_sessions_before(BASE_TIME + timedelta(days=1))

        assert deleted == 1
        assert [s.session_id for s in sqlite_store.find_recent_sessions("shop", "api", limit=5)] == ["new"]
        assert len(sqlite_store.find_recent_call_records("shop", "api", limit=5)) == 1
