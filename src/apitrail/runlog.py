"""Thread-safe accumulator for the currently executing test run."""

from __future__ import annotations

import threading
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from apitrail.models import endpoint_key, is_success_status, normalize_status


@dataclass(frozen=True)
class RunLogSnapshot:
    """Everything a RunLog held at the moment it was drained.

    Attributes:
        records: Timestamped log lines in arrival order.
        error_records: Error lines in arrival order.
        endpoint_status: Last seen status per ``"METHOD endpoint"``.
    """

    records: tuple[str, ...] = ()
    error_records: tuple[str, ...] = ()
    endpoint_status: dict[str, int] = field(default_factory=dict)

    @property
    def is_empty(self) -> bool:
        return not (self.records or self.error_records or self.endpoint_status)

    @property
    def success_count(self) -> int:
        return sum(1 for status in self.endpoint_status.values() if is_success_status(status))

    @property
    def failure_count(self) -> int:
        return len(self.endpoint_status) - self.success_count

    def to_text(self) -> str:
        return "\n".join(self.records)

    def to_dict(self) -> dict[str, Any]:
        return {
            "records": list(self.records),
            "error_records": list(self.error_records),
            "endpoint_status": dict(self.endpoint_status),
        }


class RunLog:
    """Accumulates log lines and endpoint outcomes for one run.

    All operations hold a single lock, so concurrent test threads never see a
    partial append and ``drain_and_clear`` hands out each entry exactly once.

    Example:
        >>> log = RunLog()
        >>> log.record_endpoint("GET", "/users", 200)
        >>> snapshot = log.drain_and_clear()
        >>> snapshot.endpoint_status
        {'GET /users': 200}
        >>> log.drain_and_clear().is_empty
        True
    """

    def __init__(self, clock: Callable[[], datetime] | None = None) -> None:
        self._clock = clock or datetime.now
        self._lock = threading.Lock()
        self._records: list[str] = []
        self._error_records: list[str] = []
        self._endpoint_status: dict[str, int] = {}

    def _stamp(self, entry: str) -> str:
        return f"[{self._clock().strftime('%H:%M:%S')}] {entry}"

    def append(self, entry: str) -> None:
        """Append a timestamped free-text entry."""
        line = self._stamp(str(entry))
        with self._lock:
            self._records.append(line)

    def info(self, message: str) -> None:
        self.append(f"INFO: {message}")

    def record_endpoint(self, method: str, endpoint: str, status: Any) -> None:
        """Log an endpoint outcome and remember its latest status.

        Repeated calls to the same endpoint overwrite the stored status, so the
        map reflects the last outcome while the log keeps every call.
        """
        code = normalize_status(status)
        key = endpoint_key(method, endpoint)
        line = self._stamp(f"ENDPOINT: {key} | STATUS: {code}")
        with self._lock:
            self._records.append(line)
            self._endpoint_status[key] = code

    def record_error(self, endpoint: str, message: str) -> None:
        line = self._stamp(f"ERROR: {endpoint} | Message: {message}")
        with self._lock:
            self._records.append(line)
            self._error_records.append(line)

    def drain_and_clear(self) -> RunLogSnapshot:
        """Atomically take everything accumulated so far and reset.

        Returns:
            A snapshot of the drained state. A second call without new
            appends returns an empty snapshot.
        """
        with self._lock:
            snapshot = RunLogSnapshot(
                records=tuple(self._records),
                error_records=tuple(self._error_records),
                endpoint_status=dict(self._endpoint_status),
            )
            self._records = []
            self._error_records = []
            self._endpoint_status = {}
        return snapshot

    @property
    def is_empty(self) -> bool:
        with self._lock:
            return not (self._records or self._error_records or self._endpoint_status)

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)
