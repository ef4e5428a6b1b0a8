"""
In-memory document store.

``InMemoryBackend`` plays the authoritative server. Several
``InMemoryDocumentStore`` clients can share one backend, each with its own
local snapshot cache, which is how tests model two partners on two devices.
"""
from __future__ import annotations

import copy
import logging
import threading
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Optional

from src.app.domain.errors import WriteFailedError
from src.app.infra.db.base import (
    DEFAULT_MAX_BATCH_OPERATIONS,
    DEFAULT_MAX_CACHED_DOCUMENTS,
    DEFAULT_MAX_IN_VALUES,
    DocumentSnapshot,
    DocumentStore,
    FieldFilter,
    WriteOperation,
    apply_operation,
    collection_of,
)

logger = logging.getLogger(__name__)


def _now_utc() -> datetime:
    return datetime.now(timezone.utc)


class InMemoryBackend:
    def __init__(self, clock: Callable[[], datetime] = _now_utc):
        self._docs: dict[str, dict[str, Any]] = {}
        self._lock = threading.Lock()
        self._clock = clock
        self._last_commit: Optional[datetime] = None
        self._fail_reason: Optional[str] = None
        self.commit_count = 0

    def fail_next_commit(self, reason: str = "simulated failure") -> None:
        """Make the next commit raise WriteFailedError without applying anything."""
        self._fail_reason = reason

    def read(self, path: str) -> Optional[dict[str, Any]]:
        with self._lock:
            data = self._docs.get(path)
            return copy.deepcopy(data)

    def paths(self) -> list[str]:
        with self._lock:
            return sorted(self._docs)

    def scan(self, collection: str) -> list[tuple[str, dict[str, Any]]]:
        with self._lock:
            return [
                (path, copy.deepcopy(data))
                for path, data in self._docs.items()
                if collection_of(path) == collection
            ]

    def _next_commit_time(self) -> datetime:
        now = self._clock()
        # Commit times are strictly increasing so updatedAt ordering is total.
        if self._last_commit is not None and now <= self._last_commit:
            now = self._last_commit + timedelta(microseconds=1)
        self._last_commit = now
        return now

    def commit(self, operations: list[WriteOperation]) -> datetime:
        with self._lock:
            if self._fail_reason is not None:
                reason, self._fail_reason = self._fail_reason, None
                raise WriteFailedError("commit", reason)

            commit_time = self._next_commit_time()
            staged: dict[str, Optional[dict[str, Any]]] = {}
            for op in operations:
                current = staged[op.path] if op.path in staged else self._docs.get(op.path)
                try:
                    staged[op.path] = apply_operation(current, op, commit_time)
                except LookupError as exc:
                    raise WriteFailedError("commit", str(exc)) from exc

            for path, data in staged.items():
                if data is None:
                    self._docs.pop(path, None)
                else:
                    self._docs[path] = data
            self.commit_count += 1
            return commit_time


def _matches(data: dict[str, Any], flt: FieldFilter) -> bool:
    value = data.get(flt.field)
    if flt.op == "==":
        return value == flt.value
    if flt.op == "in":
        return value in flt.value
    raise ValueError(f"Unsupported filter operator: {flt.op}")


class InMemoryDocumentStore(DocumentStore):
    """
    Store client over an ``InMemoryBackend``.

    With ``record_queries=True`` every query is appended to ``query_log``.
    """

    def __init__(
        self,
        backend: Optional[InMemoryBackend] = None,
        *,
        max_batch_operations: int = DEFAULT_MAX_BATCH_OPERATIONS,
        max_in_values: int = DEFAULT_MAX_IN_VALUES,
        max_cached_documents: int = DEFAULT_MAX_CACHED_DOCUMENTS,
        record_queries: bool = False,
    ):
        super().__init__(
            max_batch_operations=max_batch_operations,
            max_in_values=max_in_values,
            max_cached_documents=max_cached_documents,
        )
        self.backend = backend or InMemoryBackend()
        self.record_queries = record_queries
        self.query_log: list[tuple[str, list[FieldFilter]]] = []

    def _fetch(self, path: str) -> Optional[dict[str, Any]]:
        return self.backend.read(path)

    def _run_query(
        self,
        collection: str,
        filters: list[FieldFilter],
        order_by: Optional[str],
        descending: bool,
    ) -> list[DocumentSnapshot]:
        if self.record_queries:
            self.query_log.append((collection, filters))
        rows = [
            (path, data)
            for path, data in self.backend.scan(collection)
            if all(_matches(data, flt) for flt in filters)
        ]
        if order_by:
            # Documents without the field sort last.
            present = [r for r in rows if r[1].get(order_by) is not None]
            missing = [r for r in rows if r[1].get(order_by) is None]
            present.sort(key=lambda r: r[1][order_by], reverse=descending)
            rows = present + missing
        else:
            rows.sort(key=lambda r: r[0])
        return [DocumentSnapshot(path, data) for path, data in rows]

    def _apply(self, operations: list[WriteOperation]) -> datetime:
        return self.backend.commit(operations)
