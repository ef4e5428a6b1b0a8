from __future__ import annotations

import logging
import os
import re
from datetime import datetime, timezone
from typing import Any, Optional

import httpx
from postgrest.exceptions import APIError
from supabase import Client, create_client

from src.app.domain.errors import StoreConfigurationError, StoreUnavailableError, WriteFailedError
from src.app.infra.db.base import (
    DEFAULT_MAX_BATCH_OPERATIONS,
    DEFAULT_MAX_CACHED_DOCUMENTS,
    DEFAULT_MAX_IN_VALUES,
    SERVER_TIMESTAMP,
    ArrayUnion,
    DocumentSnapshot,
    DocumentStore,
    FieldFilter,
    WriteOperation,
    collection_of,
    doc_id_of,
)

logger = logging.getLogger(__name__)

DEFAULT_TABLE_NAME = "documents"
DEFAULT_COMMIT_RPC = "commit_document_batch"

# Fixed width so that timestamps sort correctly as text inside jsonb.
TIMESTAMP_FORMAT = "%Y-%m-%dT%H:%M:%S.%fZ"
_TIMESTAMP_RE = re.compile(r"^\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2}\.\d{6}Z$")

# Only these top-level fields are decoded back to datetime.
TIMESTAMP_FIELDS = frozenset({"createdAt", "updatedAt", "lastLoginAt", "timestamp"})


def _format_timestamp(value: datetime) -> str:
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).strftime(TIMESTAMP_FORMAT)


def _parse_timestamp(value: str) -> datetime:
    return datetime.strptime(value, TIMESTAMP_FORMAT).replace(tzinfo=timezone.utc)


def _encode_value(value: Any) -> Any:
    if value is SERVER_TIMESTAMP:
        return {"$serverTimestamp": True}
    if isinstance(value, ArrayUnion):
        return {"$arrayUnion": [_encode_value(v) for v in value.values]}
    if isinstance(value, datetime):
        return _format_timestamp(value)
    if isinstance(value, dict):
        return {k: _encode_value(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_encode_value(v) for v in value]
    return value


def _decode_data(data: Optional[dict[str, Any]]) -> Optional[dict[str, Any]]:
    if data is None:
        return None
    decoded: dict[str, Any] = {}
    for key, value in data.items():
        if key in TIMESTAMP_FIELDS and isinstance(value, str) and _TIMESTAMP_RE.match(value):
            decoded[key] = _parse_timestamp(value)
        else:
            decoded[key] = value
    return decoded


def _filter_value(value: Any) -> str:
    # ->> extracts text, so comparisons happen on the text form.
    if isinstance(value, datetime):
        return _format_timestamp(value)
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def _create_supabase_client() -> Client:
    url = os.getenv("SUPABASE_URL")
    key = os.getenv("SUPABASE_SERVICE_ROLE_KEY")
    if not url or not key:
        raise StoreConfigurationError(["SUPABASE_URL and SUPABASE_SERVICE_ROLE_KEY required"])
    return create_client(url, key)


class SupabaseDocumentStore(DocumentStore):
    """
    Documents stored as jsonb rows keyed by path.

    Reads and queries go through PostgREST. Batches are sent to a Postgres
    function that applies all operations inside one transaction and resolves
    server timestamps and array unions there.
    """

    def __init__(
        self,
        client: Client | None = None,
        *,
        table_name: str = DEFAULT_TABLE_NAME,
        commit_rpc: str = DEFAULT_COMMIT_RPC,
        max_batch_operations: int = DEFAULT_MAX_BATCH_OPERATIONS,
        max_in_values: int = DEFAULT_MAX_IN_VALUES,
        max_cached_documents: int = DEFAULT_MAX_CACHED_DOCUMENTS,
    ):
        super().__init__(
            max_batch_operations=max_batch_operations,
            max_in_values=max_in_values,
            max_cached_documents=max_cached_documents,
        )
        self._client = client or _create_supabase_client()
        self.table_name = table_name
        self.commit_rpc = commit_rpc
        logger.info("SupabaseDocumentStore initialized: table=%s", table_name)

    def _fetch(self, path: str) -> Optional[dict[str, Any]]:
        try:
            result = (
                self._client.table(self.table_name)
                .select("path,data")
                .eq("path", path)
                .limit(1)
                .execute()
            )
        except (APIError, httpx.HTTPError, ConnectionError, TimeoutError) as error:
            logger.error("Error reading document %s: %s", path, error)
            raise StoreUnavailableError(f"read {path}", str(error)) from error
        rows = result.data or []
        if not rows:
            return None
        return _decode_data(rows[0].get("data") or {})

    def _run_query(
        self,
        collection: str,
        filters: list[FieldFilter],
        order_by: Optional[str],
        descending: bool,
    ) -> list[DocumentSnapshot]:
        query = self._client.table(self.table_name).select("path,data").eq("collection", collection)
        for flt in filters:
            column = f"data->>{flt.field}"
            if flt.op == "==":
                query = query.eq(column, _filter_value(flt.value))
            elif flt.op == "in":
                query = query.in_(column, [_filter_value(v) for v in flt.value])
            else:
                raise ValueError(f"Unsupported filter operator: {flt.op}")
        if order_by:
            query = query.order(f"data->>{order_by}", desc=descending)
        else:
            query = query.order("path")

        try:
            result = query.execute()
        except (APIError, httpx.HTTPError, ConnectionError, TimeoutError) as error:
            logger.error("Error querying %s: %s", collection, error)
            raise StoreUnavailableError(f"query {collection}", str(error)) from error
        return [
            DocumentSnapshot(str(row["path"]), _decode_data(row.get("data") or {}))
            for row in result.data or []
        ]

    def _serialize_operation(self, op: WriteOperation) -> dict[str, Any]:
        return {
            "kind": op.kind,
            "path": op.path,
            "collection": collection_of(op.path),
            "doc_id": doc_id_of(op.path),
            "merge": op.merge,
            "data": _encode_value(op.data) if op.kind != "delete" else None,
        }

    def _apply(self, operations: list[WriteOperation]) -> datetime:
        if not operations:
            return datetime.now(timezone.utc)
        payload = {"operations": [self._serialize_operation(op) for op in operations]}
        try:
            result = self._client.rpc(self.commit_rpc, payload).execute()
        except APIError as error:
            logger.error("Batch rejected (%d operations): %s", len(operations), error)
            raise WriteFailedError("commit", str(error)) from error
        except (httpx.HTTPError, ConnectionError, TimeoutError) as error:
            # Outcome unknown: callers must re-read before retrying.
            logger.error("Network error committing batch: %s", error)
            raise WriteFailedError("commit", f"outcome unknown: {error}") from error

        committed_at = result.data
        if isinstance(committed_at, str) and _TIMESTAMP_RE.match(committed_at):
            return _parse_timestamp(committed_at)
        return datetime.now(timezone.utc)
