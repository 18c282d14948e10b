"""Exception hierarchy for the Firestore batcher.

Errors raised by the document store itself (permission denied, network
failures, malformed references...) are never wrapped: they propagate to the
caller of ``commit()``/``all()`` unchanged. The classes below cover the
conditions the batcher detects on its own, plus the error type used by the
in-memory store to mimic Firestore's status-coded failures.
"""

from __future__ import annotations

from typing import Any


class BatcherError(Exception):
    """Base exception for all batcher errors."""

    def __init__(
        self,
        message: str,
        error_code: str = "UNKNOWN_ERROR",
        details: dict[str, Any] | None = None,
        user_message: str | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.error_code = error_code
        self.details = details or {}
        self.user_message = user_message or message

    def to_dict(self) -> dict[str, Any]:
        """Convert the exception to a dictionary for structured logging."""
        return {
            "error_type": self.__class__.__name__,
            "error_code": self.error_code,
            "message": self.message,
            "user_message": self.user_message,
            "details": self.details,
        }


class BatcherConfigurationError(BatcherError):
    """Raised when the batcher, its controller or its store is misconfigured."""

    def __init__(self, setting: str, reason: str, value: Any = None, **kwargs):
        details = kwargs.pop("details", {})
        details["setting"] = setting
        if value is not None:
            details["invalid_value"] = value
        super().__init__(
            message=f"Invalid configuration for '{setting}': {reason}",
            error_code="CONFIGURATION_ERROR",
            details=details,
            **kwargs,
        )


class BatchSizeCollapsedError(BatcherError):
    """Raised when oversize failures shrink the batch size to zero.

    At that point a single operation's data alone exceeds the store's
    transaction-size ceiling, so retrying can never succeed.
    """

    def __init__(self, operations_queued: int | None = None, document_path: str | None = None, **kwargs):
        details = kwargs.pop("details", {})
        if operations_queued is not None:
            details["operations_queued"] = operations_queued
        if document_path is not None:
            details["document_path"] = document_path
        super().__init__(
            message="Batch size collapsed to 0: a single operation exceeds the transaction size limit",
            error_code="BATCH_SIZE_COLLAPSED",
            details=details,
            user_message="An operation is too large to be committed",
            **kwargs,
        )


class BulkDriverRoundLimitError(BatcherError):
    """Raised when ``Batcher.all`` reaches ``max_rounds`` with matches left."""

    def __init__(self, max_rounds: int, operations_processed: int, **kwargs):
        details = kwargs.pop("details", {})
        details["max_rounds"] = max_rounds
        details["operations_processed"] = operations_processed
        super().__init__(
            message=f"Query still had matching documents after {max_rounds} rounds",
            error_code="ROUND_LIMIT_EXCEEDED",
            details=details,
            **kwargs,
        )


class DocumentStoreError(BatcherError):
    """Status-coded store failure, shaped like Firestore's RPC errors.

    ``code`` is the numeric gRPC status code (3 invalid argument, 5 not found,
    6 already exists, 9 failed precondition) and ``store_details`` the
    human-readable detail string the store reported.
    """

    def __init__(self, code: int, store_details: str, **kwargs):
        details = kwargs.pop("details", {})
        details["code"] = code
        details["store_details"] = store_details
        super().__init__(
            message=f"{code} {store_details}",
            error_code="STORE_ERROR",
            details=details,
            **kwargs,
        )
        self.code = code
        self.store_details = store_details
