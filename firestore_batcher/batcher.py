"""Adaptive batch writer for Firestore-style document stores.

The batcher queues write operations and commits them in atomic batches whose
size adapts to the store's transaction-size ceiling:

1. ``add()`` appends an operation to the queue (no I/O).
2. ``commit()`` takes the first ``batch_size`` queued operations, commits them
   as one atomic batch and drops them from the queue on success. An oversized
   transaction halves the batch size and the same operations are retried; a
   successful commit grows the size by half again, up to 500.
3. ``all()`` repeatedly runs a query limited to the current batch size, turns
   every match into an operation, commits, and re-runs the query until it
   returns nothing.

Operations are committed in insertion order, each exactly once, unless a
non-retryable store error is raised; the failing chunk and everything after
it then stay queued.
"""

from __future__ import annotations

import asyncio
import itertools
from collections import deque
from collections.abc import Callable
from typing import Any

from .config import Settings
from .config import get_settings
from .controller import BatchSizeController
from .exceptions import BatchSizeCollapsedError
from .exceptions import BulkDriverRoundLimitError
from .logger_config import batcher_logger
from .logger_config import configure_logging
from .logger_config import log_batcher_call
from .metrics_config import ensure_metrics_initialized
from .metrics_config import record_commit_attempt
from .metrics_config import record_commit_error
from .metrics_config import record_commit_success
from .metrics_config import record_oversize_retry
from .models import BatcherOptions
from .models import BatcherStats
from .operations import Operation
from .operations import add_operation_to_batch
from .store.base import DocumentStore
from .store.base import Query
from .store.factory import StoreType
from .store.factory import create_document_store
from .store.factory import get_store
from .store.factory import parse_store_type

OperationBuilder = Callable[[Any], Operation]


class Batcher:
    """Queue of write operations committed in adaptively sized atomic batches.

    Args:
        store: Document store providing write batches and the oversize
            error classification.
        options: Optional callbacks.
        controller: Batch size controller; a default one (500, x1.5, /2)
            is created when omitted.
    """

    def __init__(
        self,
        store: DocumentStore,
        options: BatcherOptions | None = None,
        controller: BatchSizeController | None = None,
    ):
        self._store = store
        self._options = options or BatcherOptions()
        self._controller = controller or BatchSizeController()
        self._queue: deque[Operation] = deque()
        self._operations_processed = 0
        # Serializes commit()/all(): one commit or query in flight at a time
        self._lock = asyncio.Lock()

    @property
    def store(self) -> DocumentStore:
        return self._store

    @property
    def controller(self) -> BatchSizeController:
        return self._controller

    def stats(self) -> BatcherStats:
        """Snapshot of batch size, committed total and queue length."""
        return BatcherStats(
            batch_size=self._controller.current_size,
            operations_processed=self._operations_processed,
            operations_queued=len(self._queue),
        )

    def add(self, operation: Operation) -> None:
        """Queue an operation for the next commit."""
        self._queue.append(operation)

    @log_batcher_call
    async def commit(self) -> None:
        """Commit every queued operation.

        Raises:
            BatchSizeCollapsedError: If a single operation is too large to
                commit.
            Exception: Any non-oversize store error, unchanged. Operations
                not yet committed remain queued.
        """
        async with self._lock:
            await self._drain_queue()

    @log_batcher_call
    async def all(
        self,
        query: Query,
        operation_builder: OperationBuilder,
        max_rounds: int | None = None,
    ) -> None:
        """Apply ``operation_builder`` to every document matched by ``query``.

        The query is re-run after every commit rather than paginated, so the
        builder is expected to produce writes that remove documents from the
        match set (deleting them, or updating the filtered field). Otherwise
        the same documents are fetched again on every round and the call only
        ends when ``max_rounds`` is reached.

        Args:
            query: Query or collection reference supporting ``limit``/``get``.
            operation_builder: Maps a document reference to an operation.
            max_rounds: Optional bound on the number of query rounds.

        Raises:
            BulkDriverRoundLimitError: If ``max_rounds`` rounds ran and the
                query still returns documents.
        """
        async with self._lock:
            rounds = 0
            while True:
                self._ensure_usable_batch_size()
                documents = list(await query.limit(self._controller.current_size).get())
                if not documents:
                    batcher_logger.debug(f"Bulk query exhausted after {rounds} round(s)")
                    return

                if max_rounds is not None and rounds >= max_rounds:
                    raise BulkDriverRoundLimitError(max_rounds, self._operations_processed)

                for document in documents:
                    self.add(operation_builder(document.reference))
                batcher_logger.debug(f"Bulk round {rounds + 1}: queued {len(documents)} operation(s)")

                await self._drain_queue()
                rounds += 1

    def _ensure_usable_batch_size(self) -> None:
        if self._controller.current_size < 1:
            head = self._queue[0].document_path if self._queue else None
            raise BatchSizeCollapsedError(len(self._queue), head)

    async def _drain_queue(self) -> None:
        while self._queue:
            self._ensure_usable_batch_size()

            # The chunk stays queued until the store confirms the commit
            chunk = list(itertools.islice(self._queue, self._controller.current_size))
            batch = self._store.batch()
            for operation in chunk:
                add_operation_to_batch(batch, operation)

            record_commit_attempt(len(chunk))
            batcher_logger.debug(f"Committing {len(chunk)} operation(s), {len(self._queue)} queued")

            try:
                await batch.commit()
            except Exception as error:
                if not self._store.is_transaction_too_large(error):
                    record_commit_error(error)
                    raise

                try:
                    new_size = self._controller.on_oversize_failure()
                except BatchSizeCollapsedError as collapsed:
                    collapsed.details["operations_queued"] = len(self._queue)
                    collapsed.details["document_path"] = chunk[0].document_path
                    raise collapsed from error

                record_oversize_retry(new_size)
                batcher_logger.warning(
                    f"Transaction too large for {len(chunk)} operation(s), retrying with batch size {new_size}"
                )
                continue

            for _ in range(len(chunk)):
                self._queue.popleft()
            self._operations_processed += len(chunk)
            record_commit_success(len(chunk))

            if self._options.on_batch_committed is not None:
                self._options.on_batch_committed(self.stats())

            self._controller.on_commit_success(len(chunk))


def create_batcher(
    store: DocumentStore | None = None,
    options: BatcherOptions | None = None,
    settings: Settings | None = None,
) -> Batcher:
    """Build a batcher from settings.

    Logging and metrics are configured from ``settings``. Explicit settings
    get a store of their own; without them the global settings and the
    global store are used. A given ``store`` always wins.
    """
    use_global_store = settings is None
    settings = settings or get_settings()
    configure_logging(settings)
    if settings.enable_metrics:
        ensure_metrics_initialized()

    if store is None:
        store_type = parse_store_type(settings.store_backend)
        if store_type is None and (settings.firestore_emulator_host or settings.firestore_project):
            store_type = StoreType.FIRESTORE
        if use_global_store:
            store = get_store(store_type=store_type, **settings.store_kwargs)
        else:
            store = create_document_store(store_type, **settings.store_kwargs)

    controller = BatchSizeController(
        max_size=settings.max_batch_size,
        growth_factor=settings.growth_factor,
        shrink_divisor=settings.shrink_divisor,
    )
    return Batcher(store, options=options, controller=controller)
