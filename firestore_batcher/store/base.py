"""Abstract Base Classes for Document Stores.

Defines the interface the batcher consumes: an atomic write batch, a way to
obtain one, and a classifier for the store's "transaction too large" failure.
Queries are duck-typed: anything with ``limit(n)`` returning an object whose
``get()`` coroutine yields snapshots exposing ``.reference`` will do, which
covers Firestore's ``AsyncQuery``/``AsyncCollectionReference``.
"""

from __future__ import annotations

from abc import ABC
from abc import abstractmethod
from collections.abc import Sequence
from typing import Any
from typing import Protocol

from ..models import Precondition

# gRPC status code INVALID_ARGUMENT, used by Firestore for oversized commits
INVALID_ARGUMENT = 3
TRANSACTION_TOO_BIG_MESSAGE = "Transaction too big. Decrease transaction size."


class DocumentSnapshot(Protocol):
    """What the bulk driver needs from a query result."""

    @property
    def reference(self) -> Any: ...


class Query(Protocol):
    """What the bulk driver needs from a query."""

    def limit(self, count: int) -> Query: ...

    async def get(self) -> Sequence[DocumentSnapshot]: ...


class WriteBatch(ABC):
    """A set of writes committed atomically.

    Writes are staged in call order; nothing reaches the store until
    ``commit()`` is awaited, and then either all of them apply or none do.
    """

    @abstractmethod
    def create(self, reference: Any, data: dict[str, Any]) -> None:
        """Stage creation of a document that must not exist yet."""
        pass

    @abstractmethod
    def set(self, reference: Any, data: dict[str, Any]) -> None:
        """Stage an overwrite of a document."""
        pass

    @abstractmethod
    def update(self, reference: Any, data: dict[str, Any], precondition: Precondition | None = None) -> None:
        """Stage a field merge into an existing document."""
        pass

    @abstractmethod
    def delete(self, reference: Any, precondition: Precondition | None = None) -> None:
        """Stage deletion of a document."""
        pass

    @abstractmethod
    async def commit(self) -> Any:
        """Apply all staged writes atomically.

        Raises:
            Exception: Whatever the store raises; the batch is not applied.
        """
        pass

    @abstractmethod
    def __len__(self) -> int:
        """Number of staged writes."""
        pass


class DocumentStore(ABC):
    """Abstract base class for document stores the batcher can write to."""

    @property
    @abstractmethod
    def backend_type(self) -> str:
        """Return the backend type identifier (e.g., 'memory', 'firestore')."""
        pass

    @abstractmethod
    def batch(self) -> WriteBatch:
        """Return a new, empty atomic write batch."""
        pass

    @abstractmethod
    def collection(self, path: str) -> Any:
        """Return a collection reference, usable as a query."""
        pass

    def is_transaction_too_large(self, error: BaseException) -> bool:
        """Whether ``error`` is the store's retryable oversize-commit failure.

        The default matches Firestore's signature: status code 3 together with
        the fixed "Transaction too big" detail message. Backends whose client
        raises a richer exception type override this.
        """
        return is_transaction_too_large_error(error)


def _status_code(error: BaseException) -> int | None:
    code = getattr(error, "code", None)
    if callable(code):
        # grpc.RpcError exposes code() returning a StatusCode enum
        try:
            code = code()
        except Exception:
            return None
    value = getattr(code, "value", code)
    if isinstance(value, tuple):
        value = value[0]
    return value if isinstance(value, int) else None


def is_transaction_too_large_error(error: BaseException) -> bool:
    """Match an error against the status code 3 "Transaction too big" signature."""
    grpc_code = getattr(error, "grpc_status_code", None)
    code = _status_code(error)
    if grpc_code is not None:
        grpc_value = getattr(grpc_code, "value", grpc_code)
        if isinstance(grpc_value, tuple):
            grpc_value = grpc_value[0]
        code = grpc_value
    if code != INVALID_ARGUMENT:
        return False

    for attr in ("store_details", "details", "message"):
        detail = getattr(error, attr, None)
        if callable(detail):
            try:
                detail = detail()
            except Exception:
                continue
        if isinstance(detail, str) and TRANSACTION_TOO_BIG_MESSAGE in detail:
            return True
    return TRANSACTION_TOO_BIG_MESSAGE in str(error)
