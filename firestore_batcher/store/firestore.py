"""Google Cloud Firestore Store.

Implements the DocumentStore interface on top of the async Firestore client.
Used when running against a real Firestore database or the emulator.
"""

from __future__ import annotations

import os
from typing import Any

from ..models import Precondition
from .base import TRANSACTION_TOO_BIG_MESSAGE
from .base import DocumentStore
from .base import WriteBatch
from .base import is_transaction_too_large_error


class FirestoreWriteBatch(WriteBatch):
    """Adapts ``AsyncWriteBatch`` to the batcher's WriteBatch interface.

    Preconditions are translated into Firestore write options.
    """

    def __init__(self, client: Any, batch: Any):
        self._client = client
        self._batch = batch
        self._count = 0

    def _write_option(self, precondition: Precondition | None) -> Any:
        if precondition is None or precondition.is_empty:
            return None
        return self._client.write_option(**precondition.as_write_option_kwargs())

    def create(self, reference: Any, data: dict[str, Any]) -> None:
        self._batch.create(reference, data)
        self._count += 1

    def set(self, reference: Any, data: dict[str, Any]) -> None:
        self._batch.set(reference, data)
        self._count += 1

    def update(self, reference: Any, data: dict[str, Any], precondition: Precondition | None = None) -> None:
        option = self._write_option(precondition)
        if option is None:
            self._batch.update(reference, data)
        else:
            self._batch.update(reference, data, option=option)
        self._count += 1

    def delete(self, reference: Any, precondition: Precondition | None = None) -> None:
        option = self._write_option(precondition)
        if option is None:
            self._batch.delete(reference)
        else:
            self._batch.delete(reference, option=option)
        self._count += 1

    async def commit(self) -> Any:
        return await self._batch.commit()

    def __len__(self) -> int:
        return self._count


class FirestoreDocumentStore(DocumentStore):
    """Document store backed by ``google.cloud.firestore.AsyncClient``.

    Args:
        project: GCP project id. Defaults to FIRESTORE_PROJECT or the
            client's own detection (GOOGLE_CLOUD_PROJECT, ADC).
        database: Firestore database id. Defaults to FIRESTORE_DATABASE or
            the "(default)" database.
        client: An existing AsyncClient to reuse instead of creating one.
        emulator_host: Emulator host:port, exported as FIRESTORE_EMULATOR_HOST
            unless that is already set.
    """

    def __init__(
        self,
        project: str | None = None,
        database: str | None = None,
        client: Any = None,
        emulator_host: str | None = None,
    ):
        self._project = project or os.environ.get("FIRESTORE_PROJECT") or None
        self._database = database or os.environ.get("FIRESTORE_DATABASE") or None

        if emulator_host:
            # The client library reads the emulator address from the environment
            os.environ.setdefault("FIRESTORE_EMULATOR_HOST", emulator_host)

        if client is not None:
            self._client = client
            return

        # Lazy import to avoid loading the gRPC stack when using the memory store
        try:
            from google.cloud import firestore

            kwargs = {}
            if self._project:
                kwargs["project"] = self._project
            if self._database:
                kwargs["database"] = self._database
            self._client = firestore.AsyncClient(**kwargs)
        except ImportError as e:
            raise ImportError(
                "google-cloud-firestore package required for the Firestore store. "
                "Install with: pip install google-cloud-firestore"
            ) from e

    @property
    def backend_type(self) -> str:
        return "firestore"

    @property
    def client(self) -> Any:
        return self._client

    def collection(self, path: str) -> Any:
        return self._client.collection(path)

    def document(self, path: str) -> Any:
        return self._client.document(path)

    def batch(self) -> FirestoreWriteBatch:
        return FirestoreWriteBatch(self._client, self._client.batch())

    def is_transaction_too_large(self, error: BaseException) -> bool:
        from google.api_core import exceptions as core_exceptions

        if isinstance(error, core_exceptions.InvalidArgument):
            return TRANSACTION_TOO_BIG_MESSAGE in (error.message or "")
        return is_transaction_too_large_error(error)
