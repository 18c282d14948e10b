"""In-Memory Document Store.

Implements the DocumentStore interface in process memory with the commit
semantics of Firestore's batched writes: at most 500 writes per batch, an
approximate transaction byte ceiling, all-or-nothing application and
status-coded failures. This is the default backend for local development and
the backend the test-suite runs against.
"""

from __future__ import annotations

import asyncio
import copy
import json
import uuid
from dataclasses import dataclass
from datetime import datetime
from datetime import timedelta
from datetime import timezone
from typing import Any

from ..exceptions import DocumentStoreError
from ..models import Precondition
from .base import INVALID_ARGUMENT
from .base import TRANSACTION_TOO_BIG_MESSAGE
from .base import DocumentStore
from .base import WriteBatch

NOT_FOUND = 5
ALREADY_EXISTS = 6
FAILED_PRECONDITION = 9

DEFAULT_MAX_TRANSACTION_BYTES = 10 * 1024 * 1024  # 10MB
DEFAULT_MAX_WRITES_PER_BATCH = 500

# Fixed per-write overhead added to the serialized payload size
WRITE_OVERHEAD_BYTES = 32

_MISSING = object()

_COMPARATORS = {
    "==": lambda field, value: field == value,
    "!=": lambda field, value: field != value,
    "<": lambda field, value: field < value,
    "<=": lambda field, value: field <= value,
    ">": lambda field, value: field > value,
    ">=": lambda field, value: field >= value,
    "in": lambda field, value: field in value,
    "not-in": lambda field, value: field not in value,
    "array-contains": lambda field, value: isinstance(field, list) and value in field,
}


def _get_field(data: dict[str, Any], field_path: str) -> Any:
    current: Any = data
    for part in field_path.split("."):
        if not isinstance(current, dict) or part not in current:
            return _MISSING
        current = current[part]
    return current


def _order_key(value: Any) -> tuple:
    """Sort key following Firestore's cross-type ordering.

    null < booleans < numbers < timestamps < strings < bytes < references
    < arrays < maps; values of the same type compare naturally.
    """
    if value is None:
        return (0,)
    if isinstance(value, bool):
        return (1, value)
    if isinstance(value, (int, float)):
        return (2, value)
    if isinstance(value, datetime):
        return (3, value.timestamp())
    if isinstance(value, str):
        return (4, value)
    if isinstance(value, bytes):
        return (5, value)
    if isinstance(value, MemoryDocumentReference):
        return (6, value.path)
    if isinstance(value, (list, tuple)):
        return (8, tuple(_order_key(item) for item in value))
    if isinstance(value, dict):
        return (9, tuple((key, _order_key(value[key])) for key in sorted(value)))
    return (10, repr(value))


def _set_field(data: dict[str, Any], field_path: str, value: Any) -> None:
    parts = field_path.split(".")
    current = data
    for part in parts[:-1]:
        if not isinstance(current.get(part), dict):
            current[part] = {}
        current = current[part]
    current[parts[-1]] = copy.deepcopy(value)


@dataclass
class _StoredDocument:
    data: dict[str, Any]
    create_time: datetime
    update_time: datetime


@dataclass
class _StagedWrite:
    kind: str
    reference: MemoryDocumentReference
    data: dict[str, Any] | None = None
    precondition: Precondition | None = None

    def estimated_size(self) -> int:
        size = len(self.reference.path.encode("utf-8")) + WRITE_OVERHEAD_BYTES
        if self.data is not None:
            size += len(json.dumps(self.data, default=str, sort_keys=True).encode("utf-8"))
        return size


class MemoryDocumentSnapshot:
    """Snapshot of a document at read time."""

    def __init__(self, reference: MemoryDocumentReference, stored: _StoredDocument | None):
        self.reference = reference
        self._data = copy.deepcopy(stored.data) if stored else None
        self.create_time = stored.create_time if stored else None
        self.update_time = stored.update_time if stored else None

    @property
    def id(self) -> str:
        return self.reference.id

    @property
    def exists(self) -> bool:
        return self._data is not None

    def to_dict(self) -> dict[str, Any] | None:
        return copy.deepcopy(self._data)

    def get(self, field_path: str) -> Any:
        if self._data is None:
            raise KeyError(field_path)
        value = _get_field(self._data, field_path)
        if value is _MISSING:
            raise KeyError(field_path)
        return copy.deepcopy(value)

    def __repr__(self) -> str:
        return f"MemoryDocumentSnapshot(path={self.reference.path!r}, exists={self.exists})"


class MemoryDocumentReference:
    """Address of one document in a MemoryDocumentStore."""

    def __init__(self, store: MemoryDocumentStore, path: str):
        self._store = store
        self.path = path

    @property
    def id(self) -> str:
        return self.path.rsplit("/", 1)[-1]

    @property
    def parent(self) -> MemoryCollectionReference:
        return MemoryCollectionReference(self._store, self.path.rsplit("/", 1)[0])

    def collection(self, collection_id: str) -> MemoryCollectionReference:
        return MemoryCollectionReference(self._store, f"{self.path}/{collection_id}")

    async def get(self) -> MemoryDocumentSnapshot:
        return MemoryDocumentSnapshot(self, self._store._documents.get(self.path))

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, MemoryDocumentReference):
            return NotImplemented
        return self._store is other._store and self.path == other.path

    def __hash__(self) -> int:
        return hash((id(self._store), self.path))

    def __repr__(self) -> str:
        return f"MemoryDocumentReference({self.path!r})"


class MemoryQuery:
    """Filtered, ordered and limited view over one collection.

    Queries are immutable: ``where``, ``order_by`` and ``limit`` return new
    queries. ``get()`` re-evaluates against the store's current contents.
    """

    def __init__(
        self,
        store: MemoryDocumentStore,
        collection_path: str,
        filters: tuple[tuple[str, str, Any], ...] = (),
        order: tuple[str, str] | None = None,
        limit_count: int | None = None,
    ):
        self._store = store
        self._collection_path = collection_path
        self._filters = filters
        self._order = order
        self._limit = limit_count

    def _copy(self, **overrides) -> MemoryQuery:
        params = {
            "filters": self._filters,
            "order": self._order,
            "limit_count": self._limit,
        }
        params.update(overrides)
        return MemoryQuery(self._store, self._collection_path, **params)

    def where(self, field_path: str, op_string: str, value: Any) -> MemoryQuery:
        if op_string not in _COMPARATORS:
            raise ValueError(f"Unsupported operator: {op_string}")
        return self._copy(filters=self._filters + ((field_path, op_string, value),))

    def order_by(self, field_path: str, direction: str = "ASCENDING") -> MemoryQuery:
        if direction not in ("ASCENDING", "DESCENDING"):
            raise ValueError(f"Unsupported direction: {direction}")
        return self._copy(order=(field_path, direction))

    def limit(self, count: int) -> MemoryQuery:
        if count < 0:
            raise ValueError("Limit must be non-negative")
        return self._copy(limit_count=count)

    def _matches(self, data: dict[str, Any]) -> bool:
        for field_path, op_string, value in self._filters:
            field = _get_field(data, field_path)
            if field is _MISSING:
                return False
            try:
                if not _COMPARATORS[op_string](field, value):
                    return False
            except TypeError:
                return False
        return True

    async def get(self) -> list[MemoryDocumentSnapshot]:
        # Yield once so callers observe the same suspension point as a real client
        await asyncio.sleep(0)
        prefix = f"{self._collection_path}/"
        matches = [
            (path, stored)
            for path, stored in self._store._documents.items()
            if path.startswith(prefix) and "/" not in path[len(prefix) :] and self._matches(stored.data)
        ]

        if self._order is not None:
            field_path, direction = self._order
            matches = [m for m in matches if _get_field(m[1].data, field_path) is not _MISSING]
            matches.sort(key=lambda m: m[0])
            matches.sort(
                key=lambda m: _order_key(_get_field(m[1].data, field_path)),
                reverse=direction == "DESCENDING",
            )
        else:
            matches.sort(key=lambda m: m[0])

        if self._limit is not None:
            matches = matches[: self._limit]

        return [MemoryDocumentSnapshot(MemoryDocumentReference(self._store, path), stored) for path, stored in matches]


class MemoryCollectionReference(MemoryQuery):
    """A collection; also usable directly as an unfiltered query."""

    def __init__(self, store: MemoryDocumentStore, path: str):
        super().__init__(store, path.strip("/"))
        self.path = path.strip("/")

    @property
    def id(self) -> str:
        return self.path.rsplit("/", 1)[-1]

    def document(self, document_id: str | None = None) -> MemoryDocumentReference:
        document_id = document_id or uuid.uuid4().hex[:20]
        return MemoryDocumentReference(self._store, f"{self.path}/{document_id}")

    async def add(self, data: dict[str, Any]) -> MemoryDocumentReference:
        """Create a document with a generated id (outside any batch)."""
        reference = self.document()
        batch = self._store.batch()
        batch.create(reference, data)
        await batch.commit()
        return reference

    def __repr__(self) -> str:
        return f"MemoryCollectionReference({self.path!r})"


class MemoryWriteBatch(WriteBatch):
    """Write batch staged in memory and applied atomically on commit."""

    def __init__(self, store: MemoryDocumentStore):
        self._store = store
        self._writes: list[_StagedWrite] = []
        self._committed = False

    def _stage(self, write: _StagedWrite) -> None:
        if self._committed:
            raise ValueError("Cannot add writes to a batch that has already been committed")
        self._writes.append(write)

    def create(self, reference: Any, data: dict[str, Any]) -> None:
        self._stage(_StagedWrite("create", reference, copy.deepcopy(data)))

    def set(self, reference: Any, data: dict[str, Any]) -> None:
        self._stage(_StagedWrite("set", reference, copy.deepcopy(data)))

    def update(self, reference: Any, data: dict[str, Any], precondition: Precondition | None = None) -> None:
        self._stage(_StagedWrite("update", reference, copy.deepcopy(data), precondition))

    def delete(self, reference: Any, precondition: Precondition | None = None) -> None:
        self._stage(_StagedWrite("delete", reference, None, precondition))

    async def commit(self) -> datetime:
        if self._committed:
            raise ValueError("Batch has already been committed")
        commit_time = await self._store._commit(self._writes)
        self._committed = True
        return commit_time

    def __len__(self) -> int:
        return len(self._writes)


class MemoryDocumentStore(DocumentStore):
    """Document store kept in a dict keyed by document path.

    Args:
        max_transaction_bytes: Approximate payload ceiling per commit; larger
            commits fail with Firestore's "Transaction too big" signature.
        max_writes_per_batch: Hard limit on writes per commit.
    """

    def __init__(
        self,
        max_transaction_bytes: int = DEFAULT_MAX_TRANSACTION_BYTES,
        max_writes_per_batch: int = DEFAULT_MAX_WRITES_PER_BATCH,
    ):
        self.max_transaction_bytes = max_transaction_bytes
        self.max_writes_per_batch = max_writes_per_batch
        self._documents: dict[str, _StoredDocument] = {}
        self._last_commit_time: datetime | None = None
        # Number of writes in each successful commit, in commit order
        self.commit_log: list[int] = []

    @property
    def backend_type(self) -> str:
        return "memory"

    def collection(self, path: str) -> MemoryCollectionReference:
        return MemoryCollectionReference(self, path)

    def document(self, path: str) -> MemoryDocumentReference:
        return MemoryDocumentReference(self, path.strip("/"))

    def batch(self) -> MemoryWriteBatch:
        return MemoryWriteBatch(self)

    def __len__(self) -> int:
        return len(self._documents)

    def _next_commit_time(self) -> datetime:
        now = datetime.now(tz=timezone.utc)
        if self._last_commit_time is not None and now <= self._last_commit_time:
            now = self._last_commit_time + timedelta(microseconds=1)
        self._last_commit_time = now
        return now

    def _check_precondition(
        self, write: _StagedWrite, stored: _StoredDocument | None
    ) -> None:
        precondition = write.precondition
        if precondition is None or precondition.is_empty:
            return
        path = write.reference.path
        if precondition.exists is True and stored is None:
            raise DocumentStoreError(NOT_FOUND, f"No document to {write.kind}: {path}")
        if precondition.exists is False and stored is not None:
            raise DocumentStoreError(ALREADY_EXISTS, f"Document already exists: {path}")
        if precondition.last_update_time is not None:
            if stored is None or stored.update_time != precondition.last_update_time:
                raise DocumentStoreError(
                    FAILED_PRECONDITION,
                    f"The requested document has been modified since the given update time: {path}",
                )

    def _apply(self, staged: dict[str, _StoredDocument], write: _StagedWrite, commit_time: datetime) -> None:
        if not isinstance(write.reference, MemoryDocumentReference) or write.reference._store is not self:
            raise DocumentStoreError(INVALID_ARGUMENT, f"Invalid document reference: {write.reference!r}")

        path = write.reference.path
        stored = staged.get(path)

        if write.kind == "create":
            if stored is not None:
                raise DocumentStoreError(ALREADY_EXISTS, f"Document already exists: {path}")
            staged[path] = _StoredDocument(copy.deepcopy(write.data), commit_time, commit_time)
        elif write.kind == "set":
            create_time = stored.create_time if stored else commit_time
            staged[path] = _StoredDocument(copy.deepcopy(write.data), create_time, commit_time)
        elif write.kind == "update":
            if stored is None:
                raise DocumentStoreError(NOT_FOUND, f"No document to update: {path}")
            self._check_precondition(write, stored)
            data = copy.deepcopy(stored.data)
            for field_path, value in write.data.items():
                _set_field(data, field_path, value)
            staged[path] = _StoredDocument(data, stored.create_time, commit_time)
        elif write.kind == "delete":
            self._check_precondition(write, stored)
            staged.pop(path, None)
        else:
            raise DocumentStoreError(INVALID_ARGUMENT, f"Unknown write kind: {write.kind}")

    async def _commit(self, writes: list[_StagedWrite]) -> datetime:
        await asyncio.sleep(0)

        if len(writes) > self.max_writes_per_batch:
            raise DocumentStoreError(
                INVALID_ARGUMENT, f"maximum {self.max_writes_per_batch} writes allowed per request"
            )

        total_bytes = sum(write.estimated_size() for write in writes)
        if total_bytes > self.max_transaction_bytes:
            raise DocumentStoreError(INVALID_ARGUMENT, TRANSACTION_TOO_BIG_MESSAGE)

        commit_time = self._next_commit_time()
        staged = dict(self._documents)
        for write in writes:
            self._apply(staged, write, commit_time)

        self._documents = staged
        self.commit_log.append(len(writes))
        return commit_time
