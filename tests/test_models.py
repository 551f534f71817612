"""Tests for the call history data model."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from apitrail.models import (
    UNKNOWN_STATUS,
    CallRecord,
    Project,
    Session,
    StoredReport,
    Subproject,
    endpoint_key,
    new_session_id,
    normalize_status,
    parse_timestamp,
)

from .conftest import BASE_TIME, make_session


class TestNormalizeStatus:
    """Tests for status normalisation."""

    @pytest.mark.parametrize(
        ("raw", "expected"),
        [
            (200, 200),
            ("404", 404),
            (" 503 ", 503),
            (201.0, 201),
            (0, UNKNOWN_STATUS),
            (99, UNKNOWN_STATUS),
            (600, UNKNOWN_STATUS),
            (-1, UNKNOWN_STATUS),
            (None, UNKNOWN_STATUS),
            ("OK", UNKNOWN_STATUS),
            (True, UNKNOWN_STATUS),
            (200.5, UNKNOWN_STATUS),
        ],
    )
    def test_normalize(self, raw: object, expected: int) -> None:
        """Test raw statuses map to codes in 100-599 or 0."""
        assert normalize_status(raw) == expected


class TestCallRecord:
    """Tests for CallRecord."""

    def test_key_uppercases_method(self) -> None:
        """Test the comparison key is 'METHOD endpoint'."""
        record = CallRecord(method="post", endpoint="/orders", status=201)

        assert record.method == "POST"
        assert record.key == "POST /orders"
        assert endpoint_key(" get ", " /a ") == "GET /a"

    def test_success_only_for_2xx(self) -> None:
        """Test only 200-299 counts as success."""
        assert CallRecord("GET", "/a", 200).is_success
        assert CallRecord("GET", "/a", 299).is_success
        assert not CallRecord("GET", "/a", 199).is_success
        assert not CallRecord("GET", "/a", 300).is_success
        assert not CallRecord("GET", "/a", 0).is_success

    def test_status_is_normalized(self) -> None:
        """Test malformed statuses are stored as 0."""
        assert CallRecord("GET", "/a", "broken").status == 0  # type: ignore[arg-type]

    def test_naive_timestamp_assumed_utc(self) -> None:
        """Test naive timestamps are interpreted as UTC."""
        record = CallRecord("GET", "/a", 200, timestamp=datetime(2025, 1, 1, 12, 0))

        assert record.timestamp.tzinfo == timezone.utc

    def test_is_immutable(self) -> None:
        """Test records cannot be changed after creation."""
        record = CallRecord("GET", "/a", 200)

        with pytest.raises(AttributeError):
            record.status = 500  # type: ignore[misc]

    def test_to_dict_shape(self) -> None:
        """Test the persisted field names."""
        record = CallRecord(
            "PUT", "/items/1", 204, payload='{"n": 1}', response="", timestamp=BASE_TIME
        )

        assert record.to_dict() == {
            "method": "PUT",
            "endpoint": "/items/1",
            "payload": '{"n": 1}',
            "response": "",
            "status": 204,
            "timestamp": "2025-01-01T10:00:00+00:00",
        }

    def test_from_dict_tolerates_bad_data(self) -> None:
        """Test missing or malformed fields degrade instead of raising."""
        record = CallRecord.from_dict(
            {"method": "get", "endpoint": "/a", "status": "n/a", "timestamp": "2025-01-01T10:00:00Z"}
        )

        assert record.status == 0
        assert record.timestamp == BASE_TIME


class TestSessionHierarchy:
    """Tests for Session, Subproject and Project."""

    def test_new_session_id_format(self) -> None:
        """Test session ids are '<instant>_<uuid>' and unique."""
        first = new_session_id(BASE_TIME)
        second = new_session_id(BASE_TIME)

        assert first.startswith("2025-01-01T10:00:00+00:00_")
        assert first != second

    def test_session_document_shape(self) -> None:
        """Test sessions serialize with camelCase keys."""
        session = make_session("s-1", BASE_TIME, {"GET /a": 200})

        data = session.to_dict()

        assert set(data) == {"sessionId", "createdAt", "endpoints"}
        assert data["sessionId"] == "s-1"
        assert data["endpoints"][0]["endpoint"] == "/a"
        assert Session.from_dict(data) == session

    def test_recent_sessions_newest_first(self) -> None:
        """Test recent_sessions sorts by created_at descending."""
        sub = Subproject(name="api")
        sub.sessions.append(make_session("old", BASE_TIME, {}))
        sub.sessions.append(make_session("new", BASE_TIME + timedelta(hours=2), {}))
        sub.sessions.append(make_session("mid", BASE_TIME + timedelta(hours=1), {}))

        assert [s.session_id for s in sub.recent_sessions(2)] == ["new", "mid"]

    def test_project_documents_round_trip(self) -> None:
        """Test a project renders one document per subproject and reads back."""
        project = Project(name="shop")
        project.subproject("api").sessions.append(make_session("s-1", BASE_TIME, {"GET /a": 200}))
        project.subproject("ui").sessions.append(make_session("s-2", BASE_TIME, {"GET /b": 500}))

        documents = project.to_documents()

        assert [d["subproject"] for d in documents] == ["api", "ui"]
        assert all(d["project"] == "shop" for d in documents)
        assert Project.from_documents("shop", documents) == project

    def test_last_activity(self) -> None:
        """Test last_activity is the newest session time."""
        project = Project(name="shop")
        assert project.last_activity is None

        project.subproject("api").sessions.append(make_session("s-1", BASE_TIME, {}))
        later = BASE_TIME + timedelta(days=1)
        project.subproject("ui").sessions.append(make_session("s-2", later, {}))

        assert project.last_activity == later

    def test_parse_timestamp_epoch_millis(self) -> None:
        """Test epoch milliseconds are accepted."""
        assert parse_timestamp(1735725600000) == BASE_TIME


class TestStoredReport:
    """Tests for StoredReport documents."""

    def test_document_shape(self) -> None:
        """Test the document keys and their round trip."""
        report = StoredReport(
            project="shop", narrative="Overall Summary:\nok", subproject="api", created_at=BASE_TIME
        )

        data = report.to_dict()

        assert data == {
            "projectName": "shop",
            "subproject": "api",
            "aiSummary": "Overall Summary:\nok",
            "records": "",
            "timestamp": BASE_TIME.isoformat(),
        }
        assert StoredReport.from_dict(data) == report
