"""Document store backends: Supabase tables, or process memory when unconfigured."""

from __future__ import annotations

import copy
import logging
import threading
import uuid
from typing import Any, Iterable, Mapping, Protocol

import httpx
from postgrest.exceptions import APIError
from supabase import Client

from ..config import settings
from ..db.supabase import get_supabase_client
from ..errors import DuplicateKeyError, StorageError

Document = dict[str, Any]
Filters = Mapping[str, Any]

# Unique constraints the memory backend enforces; the Supabase tables declare the same ones.
UNIQUE_KEYS: dict[str, tuple[tuple[str, ...], ...]] = {
    "customer_accounts": (("account_code",),),
    "shipments": (("awb_no",),),
    "manifests": (("manifest_no",),),
    "clubbing": (("club_no",),),
    "runs": (("run_no",),),
    "invoices": (("invoice_number",), ("serial",)),
    "ledger_entries": (("entry_key",), ("account_code", "sequence")),
    "receipts": (("receipt_no",),),
}

POSTGRES_UNIQUE_VIOLATION = "23505"


class DocumentStore(Protocol):
    """Minimal collection API the repositories are written against.

    Filters are equality matches; a list/tuple/set value means "one of".
    ``update`` is conditional: only documents matching every filter change, and
    the changed documents are returned, so callers can detect a lost race.
    """

    def find(
        self,
        collection: str,
        filters: Filters | None = None,
        *,
        order_by: str | None = None,
        descending: bool = False,
        limit: int | None = None,
    ) -> list[Document]: ...

    def find_one(self, collection: str, filters: Filters) -> Document | None: ...

    def insert(self, collection: str, document: Document) -> Document: ...

    def update(self, collection: str, filters: Filters, changes: Document) -> list[Document]: ...

    def delete(self, collection: str, filters: Filters) -> int: ...


def _matches(document: Document, filters: Filters | None) -> bool:
    for key, expected in (filters or {}).items():
        actual = document.get(key)
        if isinstance(expected, (list, tuple, set)):
            if actual not in expected:
                return False
        elif actual != expected:
            return False
    return True


class MemoryStore:
    """Thread-safe in-process store used for local runs and tests."""

    def __init__(self, unique_keys: Mapping[str, Iterable[tuple[str, ...]]] | None = None) -> None:
        self._collections: dict[str, list[Document]] = {}
        self._unique_keys = {name: tuple(keys) for name, keys in (unique_keys or UNIQUE_KEYS).items()}
        self._lock = threading.RLock()

    def _rows(self, collection: str) -> list[Document]:
        return self._collections.setdefault(collection, [])

    def _check_unique(
        self, collection: str, candidates: list[Document], replaced: list[Document] | None = None
    ) -> None:
        """Reject candidates that collide with each other or with rows they do not replace."""
        replaced_ids = {id(row) for row in replaced or ()}
        others = [row for row in self._rows(collection) if id(row) not in replaced_ids]
        for key_fields in self._unique_keys.get(collection, ()):
            taken = {tuple(row.get(name) for name in key_fields) for row in others}
            for candidate in candidates:
                if any(candidate.get(name) is None for name in key_fields):
                    continue
                key = tuple(candidate.get(name) for name in key_fields)
                if key in taken:
                    raise DuplicateKeyError(
                        f"Duplicate {'/'.join(key_fields)} {key!r} in {collection}"
                    )
                taken.add(key)

    def find(
        self,
        collection: str,
        filters: Filters | None = None,
        *,
        order_by: str | None = None,
        descending: bool = False,
        limit: int | None = None,
    ) -> list[Document]:
        with self._lock:
            rows = [copy.deepcopy(row) for row in self._rows(collection) if _matches(row, filters)]
        if order_by:
            rows.sort(key=lambda row: (row.get(order_by) is None, row.get(order_by)), reverse=descending)
        if limit is not None:
            rows = rows[:limit]
        return rows

    def find_one(self, collection: str, filters: Filters) -> Document | None:
        rows = self.find(collection, filters, limit=1)
        return rows[0] if rows else None

    def insert(self, collection: str, document: Document) -> Document:
        record = copy.deepcopy(dict(document))
        record.setdefault("id", uuid.uuid4().hex)
        with self._lock:
            self._check_unique(collection, [record])
            self._rows(collection).append(record)
        return copy.deepcopy(record)

    def update(self, collection: str, filters: Filters, changes: Document) -> list[Document]:
        with self._lock:
            matched = [row for row in self._rows(collection) if _matches(row, filters)]
            self._check_unique(
                collection, [{**row, **copy.deepcopy(dict(changes))} for row in matched], replaced=matched
            )
            for row in matched:
                row.update(copy.deepcopy(dict(changes)))
            return [copy.deepcopy(row) for row in matched]

    def delete(self, collection: str, filters: Filters) -> int:
        with self._lock:
            rows = self._rows(collection)
            keep = [row for row in rows if not _matches(row, filters)]
            removed = len(rows) - len(keep)
            self._collections[collection] = keep
        return removed


class SupabaseStore:
    """Document store backed by Supabase (PostgREST) tables."""

    def __init__(self, client: Client) -> None:
        self.client = client

    @staticmethod
    def _apply_filters(query: Any, filters: Filters | None) -> Any:
        for key, value in (filters or {}).items():
            if isinstance(value, (list, tuple, set)):
                query = query.in_(key, list(value))
            elif value is None:
                query = query.is_(key, "null")
            else:
                query = query.eq(key, value)
        return query

    @staticmethod
    def _execute(query: Any, action: str, collection: str) -> list[Document]:
        try:
            response = query.execute()
        except APIError as exc:
            if getattr(exc, "code", None) == POSTGRES_UNIQUE_VIOLATION:
                raise DuplicateKeyError(f"Duplicate key in {collection}: {exc.message}") from exc
            raise StorageError(f"Failed to {action} {collection}: {exc.message}") from exc
        except httpx.HTTPError as exc:
            raise StorageError(f"Failed to {action} {collection}: {exc}") from exc
        return list(response.data or [])

    def find(
        self,
        collection: str,
        filters: Filters | None = None,
        *,
        order_by: str | None = None,
        descending: bool = False,
        limit: int | None = None,
    ) -> list[Document]:
        query = self._apply_filters(self.client.table(collection).select("*"), filters)
        if order_by:
            query = query.order(order_by, desc=descending)
        if limit is not None:
            query = query.limit(limit)
        return self._execute(query, "read", collection)

    def find_one(self, collection: str, filters: Filters) -> Document | None:
        rows = self.find(collection, filters, limit=1)
        return rows[0] if rows else None

    def insert(self, collection: str, document: Document) -> Document:
        rows = self._execute(self.client.table(collection).insert(dict(document)), "insert into", collection)
        if not rows:
            raise StorageError(f"Insert into {collection} returned no row")
        return rows[0]

    def update(self, collection: str, filters: Filters, changes: Document) -> list[Document]:
        query = self._apply_filters(self.client.table(collection).update(dict(changes)), filters)
        return self._execute(query, "update", collection)

    def delete(self, collection: str, filters: Filters) -> int:
        query = self._apply_filters(self.client.table(collection).delete(), filters)
        return len(self._execute(query, "delete from", collection))


def create_store(backend: str | None = None) -> DocumentStore:
    """Pick the configured backend, falling back to memory when Supabase is absent."""
    backend = backend or settings.storage_backend
    if backend in ("auto", "supabase"):
        client = get_supabase_client()
        if client is not None:
            return SupabaseStore(client)
        if backend == "supabase":
            raise StorageError("Supabase backend selected but CB_SUPABASE_URL/CB_SUPABASE_KEY are not set")
        logging.info("Supabase not configured - using in-memory document store")
    return MemoryStore()
