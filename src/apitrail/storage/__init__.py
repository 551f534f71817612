"""Storage for recorded call history.

Quick Start:
    >>> from apitrail.storage import SessionRepository
    >>>
    >>> repo = SessionRepository("sqlite:///apitrail_history.db")
    >>> repo.initialize()
    >>> repo.append_call_record("shop", "checkout", session_id, record)
    >>> repo.find_recent_sessions("shop", "checkout", limit=2)

Features:
    - SessionStore protocol shared by every backend
    - In-memory store for tests and throwaway runs
    - SQLite persistence with upsert-on-first-record semantics
    - Narrative reports kept per project for later prompts
    - Failures degrade to empty results instead of raising
"""

from apitrail.storage.memory import InMemorySessionStore
from apitrail.storage.protocol import SessionStore, check_limit, check_scope
from apitrail.storage.repository import SessionRepository

__all__ = [
    # Protocol
    "SessionStore",
    "check_limit",
    "check_scope",
    # Backends
    "InMemorySessionStore",
    "SessionRepository",
]
