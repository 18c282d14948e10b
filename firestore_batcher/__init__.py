"""Adaptive batched writes for Firestore.

Queues create/set/update/delete operations and commits them in atomic
batches that shrink when the store rejects a transaction as too large and
grow back after successful commits.

Key Components:
- Batcher: operation queue, commit driver and bulk query driver
- BatchSizeController: the shrink/grow rules for the batch size
- Operation factories: create_operation, delete_operation, set_operation,
  update_operation
- Document stores: Firestore and in-memory implementations
"""

from .batcher import Batcher
from .batcher import create_batcher
from .controller import MAX_BATCH_SIZE
from .controller import BatchSizeController
from .exceptions import BatcherConfigurationError
from .exceptions import BatcherError
from .exceptions import BatchSizeCollapsedError
from .exceptions import BulkDriverRoundLimitError
from .exceptions import DocumentStoreError
from .models import BatcherOptions
from .models import BatcherStats
from .models import Precondition
from .operations import CreateOperation
from .operations import DeleteOperation
from .operations import Operation
from .operations import OperationName
from .operations import SetOperation
from .operations import UpdateOperation
from .operations import create_operation
from .operations import delete_operation
from .operations import set_operation
from .operations import update_operation

__all__ = [
    # Core Components
    "Batcher",
    "BatchSizeController",
    "MAX_BATCH_SIZE",
    "create_batcher",
    # Models
    "BatcherOptions",
    "BatcherStats",
    "Precondition",
    "Operation",
    "OperationName",
    "CreateOperation",
    "DeleteOperation",
    "SetOperation",
    "UpdateOperation",
    # Factories
    "create_operation",
    "delete_operation",
    "set_operation",
    "update_operation",
    # Errors
    "BatcherError",
    "BatcherConfigurationError",
    "BatchSizeCollapsedError",
    "BulkDriverRoundLimitError",
    "DocumentStoreError",
]

__version__ = "1.0.0"
