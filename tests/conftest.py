"""Pytest fixtures for apitrail tests."""

from __future__ import annotations

import logging
from collections.abc import Iterator
from datetime import datetime, timedelta, timezone

import pytest

from apitrail.models import CallRecord, Session
from apitrail.observability import ROOT_LOGGER_NAME
from apitrail.runlog import RunLog
from apitrail.storage import InMemorySessionStore, SessionRepository

BASE_TIME = datetime(2025, 1, 1, 10, 0, 0, tzinfo=timezone.utc)

SCENARIO_PREVIOUS = {"GET /a": 200, "POST /b": 500}
SCENARIO_CURRENT = {"GET /a": 200, "POST /b": 200, "GET /c": 404}


def make_record(key: str, status: int | str, at: datetime | None = None) -> CallRecord:
    """Build a CallRecord from a ``"METHOD path"`` key."""
    method, endpoint = key.split(" ", 1)
    return CallRecord(method=method, endpoint=endpoint, status=status, timestamp=at or BASE_TIME)


def make_session(session_id: str, created_at: datetime, outcomes: dict[str, int]) -> Session:
    """Build a session whose records are one second apart."""
    return Session(
        session_id=session_id,
        created_at=created_at,
        endpoints=[
            make_record(key, status, created_at + timedelta(seconds=i))
            for i, (key, status) in enumerate(outcomes.items())
        ],
    )


def add_session(
    store: InMemorySessionStore | SessionRepository,
    project: str,
    subproject: str,
    session: Session,
) -> None:
    """Persist a session record by record, as a live run would."""
    for record in session.endpoints:
        store.append_call_record(project, subproject, session.session_id, record)


class FixedClock:
    """Callable clock that advances only when told to."""

    def __init__(self, start: datetime = BASE_TIME) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> None:
        self.now = self.now + timedelta(**kwargs)


@pytest.fixture(autouse=True)
def reset_apitrail_logger() -> Iterator[None]:
    """Undo CLI logging configuration so caplog keeps working."""
    yield
    root = logging.getLogger(ROOT_LOGGER_NAME)
    root.handlers.clear()
    root.propagate = True
    root.setLevel(logging.NOTSET)


@pytest.fixture
def clock() -> FixedClock:
    return FixedClock()


@pytest.fixture
def run_log(clock: FixedClock) -> RunLog:
    return RunLog(clock=clock)


@pytest.fixture
def memory_store() -> InMemorySessionStore:
    return InMemorySessionStore()


@pytest.fixture
def sqlite_store() -> Iterator[SessionRepository]:
    repo = SessionRepository("sqlite://:memory:")
    repo.initialize()
    yield repo
    repo.close()


@pytest.fixture(params=["memory", "sqlite"])
def store(request: pytest.FixtureRequest) -> Iterator[InMemorySessionStore | SessionRepository]:
    """Every SessionStore implementation."""
    if request.param == "memory":
        yield InMemorySessionStore()
        return
    repo = SessionRepository("sqlite://:memory:")
    repo.initialize()
    yield repo
    repo.close()


@pytest.fixture
def scenario_store(memory_store: InMemorySessionStore) -> InMemorySessionStore:
    """Store holding the two-session shop/api history used across tests."""
    add_session(memory_store, "shop", "api", make_session("prev", BASE_TIME, SCENARIO_PREVIOUS))
    add_session(
        memory_store,
        "shop",
        "api",
        make_session("curr", BASE_TIME + timedelta(hours=1), SCENARIO_CURRENT),
    )
    return memory_store
