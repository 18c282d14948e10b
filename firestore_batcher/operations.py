"""Write operations queued by the batcher.

Each operation targets exactly one document and is immutable once built.
The factory functions below are the intended way to construct them; they
perform no validation beyond pydantic's type checks, so a malformed payload
only surfaces when the store rejects the batch.
"""

from __future__ import annotations

from enum import Enum
from typing import TYPE_CHECKING
from typing import Any
from typing import Literal
from typing import Union

from pydantic import BaseModel
from pydantic import ConfigDict

from .models import Precondition

if TYPE_CHECKING:
    from .store.base import WriteBatch


class OperationName(str, Enum):
    """Kinds of write an operation can perform."""

    CREATE = "create"
    DELETE = "delete"
    SET = "set"
    UPDATE = "update"


class _BaseOperation(BaseModel):
    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    document_ref: Any

    @property
    def document_path(self) -> str:
        """Best-effort path of the target document, for logs and errors."""
        return getattr(self.document_ref, "path", None) or repr(self.document_ref)


class CreateOperation(_BaseOperation):
    """Create a document; the commit fails if it already exists."""

    name: Literal[OperationName.CREATE] = OperationName.CREATE
    data: dict[str, Any]


class DeleteOperation(_BaseOperation):
    """Delete a document, optionally guarded by a precondition."""

    name: Literal[OperationName.DELETE] = OperationName.DELETE
    precondition: Precondition | None = None


class SetOperation(_BaseOperation):
    """Overwrite a document with ``data``."""

    name: Literal[OperationName.SET] = OperationName.SET
    data: dict[str, Any]


class UpdateOperation(_BaseOperation):
    """Merge the named fields (dotted paths allowed) into an existing document."""

    name: Literal[OperationName.UPDATE] = OperationName.UPDATE
    data: dict[str, Any]
    precondition: Precondition | None = None


Operation = Union[CreateOperation, DeleteOperation, SetOperation, UpdateOperation]


def create_operation(document_ref: Any, data: dict[str, Any]) -> CreateOperation:
    return CreateOperation(document_ref=document_ref, data=data)


def delete_operation(document_ref: Any, precondition: Precondition | None = None) -> DeleteOperation:
    return DeleteOperation(document_ref=document_ref, precondition=precondition)


def set_operation(document_ref: Any, data: dict[str, Any]) -> SetOperation:
    return SetOperation(document_ref=document_ref, data=data)


def update_operation(
    document_ref: Any,
    data: dict[str, Any],
    precondition: Precondition | None = None,
) -> UpdateOperation:
    return UpdateOperation(document_ref=document_ref, data=data, precondition=precondition)


def add_operation_to_batch(batch: WriteBatch, operation: Operation) -> None:
    """Stage one operation on a store write batch."""
    ref = operation.document_ref
    if operation.name == OperationName.CREATE:
        batch.create(ref, operation.data)
    elif operation.name == OperationName.DELETE:
        batch.delete(ref, operation.precondition)
    elif operation.name == OperationName.SET:
        batch.set(ref, operation.data)
    elif operation.name == OperationName.UPDATE:
        if operation.precondition is not None:
            batch.update(ref, operation.data, operation.precondition)
        else:
            batch.update(ref, operation.data)
    else:
        raise TypeError(f"Unsupported operation: {operation!r}")
