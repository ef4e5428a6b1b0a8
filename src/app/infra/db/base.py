# src/app/infra/db/base.py
"""
Abstract document store client.
This interface allows easy swapping between storage backends (Supabase, in-memory).

Documents live at slash separated paths such as ``users/{id}`` or
``recipes/{id}/versions/v1/comments/{cid}``. Multi-document writes go through
``WriteBatch`` and are applied all-or-nothing.
"""
from __future__ import annotations

import copy
import logging
import threading
from abc import ABC, abstractmethod
from collections import OrderedDict
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Literal, Optional
from uuid import uuid4

from src.app.domain.errors import BatchTooLargeError

logger = logging.getLogger(__name__)

DEFAULT_MAX_BATCH_OPERATIONS = 500
DEFAULT_MAX_IN_VALUES = 30
DEFAULT_MAX_CACHED_DOCUMENTS = 10_000

FilterOp = Literal["==", "in"]
WriteKind = Literal["set", "update", "delete"]


class _ServerTimestamp:
    def __repr__(self) -> str:
        return "SERVER_TIMESTAMP"


# Placeholder replaced by the commit time when a batch is applied.
SERVER_TIMESTAMP = _ServerTimestamp()


@dataclass(frozen=True)
class ArrayUnion:
    """Append values to an array field, skipping ones already present."""
    values: tuple[Any, ...]

    def __init__(self, *values: Any):
        object.__setattr__(self, "values", tuple(values))


def doc_path(*parts: str) -> str:
    path = "/".join(str(p).strip("/") for p in parts)
    if not path or len(path.split("/")) % 2 != 0:
        raise ValueError(f"Not a document path: {path!r}")
    return path


def collection_of(path: str) -> str:
    return path.rsplit("/", 1)[0]


def doc_id_of(path: str) -> str:
    return path.rsplit("/", 1)[-1]


@dataclass(frozen=True)
class FieldFilter:
    field: str
    op: FilterOp
    value: Any


@dataclass
class DocumentSnapshot:
    path: str
    data: Optional[dict[str, Any]] = None

    @property
    def id(self) -> str:
        return doc_id_of(self.path)

    @property
    def exists(self) -> bool:
        return self.data is not None

    def get(self, key: str, default: Any = None) -> Any:
        if self.data is None:
            return default
        return self.data.get(key, default)


@dataclass
class WriteOperation:
    kind: WriteKind
    path: str
    data: dict[str, Any] = field(default_factory=dict)
    merge: bool = False


def resolve_transforms(
    data: dict[str, Any], current: Optional[dict[str, Any]], commit_time: datetime
) -> dict[str, Any]:
    """Replace SERVER_TIMESTAMP and ArrayUnion values with concrete ones."""
    resolved: dict[str, Any] = {}
    for key, value in data.items():
        if value is SERVER_TIMESTAMP:
            resolved[key] = commit_time
        elif isinstance(value, ArrayUnion):
            existing = list((current or {}).get(key) or [])
            for item in value.values:
                if item not in existing:
                    existing.append(item)
            resolved[key] = existing
        else:
            resolved[key] = copy.deepcopy(value)
    return resolved


def apply_operation(
    current: Optional[dict[str, Any]], op: WriteOperation, commit_time: datetime
) -> Optional[dict[str, Any]]:
    """
    Compute the new content of one document. Returns None for a delete.

    Raises:
        LookupError: update of a document that does not exist.
    """
    if op.kind == "delete":
        return None
    if op.kind == "update":
        if current is None:
            raise LookupError(f"No document to update: {op.path}")
        merged = dict(current)
        merged.update(resolve_transforms(op.data, current, commit_time))
        return merged
    if op.merge and current is not None:
        merged = dict(current)
        merged.update(resolve_transforms(op.data, current, commit_time))
        return merged
    return resolve_transforms(op.data, current if op.merge else None, commit_time)


class WriteBatch:
    """Collects writes and commits them as one atomic unit."""

    def __init__(self, store: "DocumentStore", max_operations: int):
        self._store = store
        self._max_operations = max_operations
        self._operations: list[WriteOperation] = []
        self._committed = False

    @property
    def operations(self) -> list[WriteOperation]:
        return list(self._operations)

    def __len__(self) -> int:
        return len(self._operations)

    def set(self, path: str, data: dict[str, Any], *, merge: bool = False) -> "WriteBatch":
        self._operations.append(WriteOperation("set", doc_path(path), dict(data), merge))
        return self

    def update(self, path: str, data: dict[str, Any]) -> "WriteBatch":
        self._operations.append(WriteOperation("update", doc_path(path), dict(data)))
        return self

    def delete(self, path: str) -> "WriteBatch":
        self._operations.append(WriteOperation("delete", doc_path(path)))
        return self

    def commit(self) -> datetime:
        """
        Apply every queued write or none of them.

        Returns:
            The commit time used for SERVER_TIMESTAMP values.

        Raises:
            BatchTooLargeError: more operations than the store accepts.
            WriteFailedError: the store rejected the batch.
        """
        if self._committed:
            raise RuntimeError("Batch already committed")
        if len(self._operations) > self._max_operations:
            raise BatchTooLargeError(len(self._operations), self._max_operations)
        commit_time = self._store._commit(self._operations)
        self._committed = True
        return commit_time


class DocumentStore(ABC):
    """
    Abstract interface for document persistence.

    Implementations:
    - InMemoryDocumentStore: process-local backend for tests and local runs
    - SupabaseDocumentStore: Postgres ``documents`` table through Supabase

    Point reads are served from a local snapshot cache unless the caller asks
    for ``from_server=True``. Queries always go to the backend. The cache keeps
    at most ``max_cached_documents`` entries, evicting the least recently used.
    """

    def __init__(
        self,
        *,
        max_batch_operations: int = DEFAULT_MAX_BATCH_OPERATIONS,
        max_in_values: int = DEFAULT_MAX_IN_VALUES,
        max_cached_documents: int = DEFAULT_MAX_CACHED_DOCUMENTS,
    ):
        if max_cached_documents < 0:
            raise ValueError("max_cached_documents must not be negative")
        self.max_batch_operations = max_batch_operations
        self.max_in_values = max_in_values
        self.max_cached_documents = max_cached_documents
        self._cache: OrderedDict[str, Optional[dict[str, Any]]] = OrderedDict()
        self._cache_lock = threading.Lock()

    # ----- Backend hooks -----

    @abstractmethod
    def _fetch(self, path: str) -> Optional[dict[str, Any]]:
        """Read one document from the backend."""
        pass

    @abstractmethod
    def _run_query(
        self,
        collection: str,
        filters: list[FieldFilter],
        order_by: Optional[str],
        descending: bool,
    ) -> list[DocumentSnapshot]:
        """Run a filtered query against one collection path."""
        pass

    @abstractmethod
    def _apply(self, operations: list[WriteOperation]) -> datetime:
        """Apply the operations atomically and return the commit time."""
        pass

    # ----- Public API -----

    def new_id(self) -> str:
        return uuid4().hex

    def get(self, path: str, *, from_server: bool = False) -> DocumentSnapshot:
        path = doc_path(path)
        if not from_server:
            with self._cache_lock:
                if path in self._cache:
                    self._cache.move_to_end(path)
                    return DocumentSnapshot(path, copy.deepcopy(self._cache[path]))
        data = self._fetch(path)
        self._remember(path, data)
        return DocumentSnapshot(path, copy.deepcopy(data))

    def query(
        self,
        collection: str,
        *,
        where: Optional[list[FieldFilter]] = None,
        order_by: Optional[str] = None,
        descending: bool = False,
    ) -> list[DocumentSnapshot]:
        filters = list(where or [])
        for flt in filters:
            if flt.op == "in" and len(flt.value) > self.max_in_values:
                raise ValueError(
                    f"'in' filter on {flt.field} takes at most {self.max_in_values} values"
                )
        results = self._run_query(collection.strip("/"), filters, order_by, descending)
        for snap in results:
            self._remember(snap.path, snap.data)
        return results

    def list_documents(self, collection_path: str) -> list[DocumentSnapshot]:
        return self.query(collection_path)

    def batch(self) -> WriteBatch:
        return WriteBatch(self, self.max_batch_operations)

    def clear_cache(self) -> None:
        with self._cache_lock:
            self._cache.clear()

    def cached_paths(self) -> list[str]:
        """Paths held in the local cache, least recently used first."""
        with self._cache_lock:
            return list(self._cache)

    # ----- Internals -----

    def _remember(self, path: str, data: Optional[dict[str, Any]]) -> None:
        if self.max_cached_documents == 0:
            return
        with self._cache_lock:
            self._cache[path] = copy.deepcopy(data)
            self._cache.move_to_end(path)
            while len(self._cache) > self.max_cached_documents:
                self._cache.popitem(last=False)

    def _commit(self, operations: list[WriteOperation]) -> datetime:
        commit_time = self._apply(operations)
        with self._cache_lock:
            for op in operations:
                self._cache.pop(op.path, None)
        logger.debug("Committed batch: %d operations at %s", len(operations), commit_time)
        return commit_time
