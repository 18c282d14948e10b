"""Document Store Abstraction Layer for the Firestore batcher.

Provides the write-batch interface the batcher commits through, with a
Firestore implementation and an in-memory implementation sharing Firestore's
batch limits and failure signatures.

The store is automatically selected based on environment detection:
- Memory: Default for development and testing
- Firestore: When FIRESTORE_EMULATOR_HOST or FIRESTORE_PROJECT is set

Usage:
    from firestore_batcher.store import get_store

    store = get_store()
    batch = store.batch()
    batch.set(store.collection("users").document("ada"), {"name": "Ada"})
    await batch.commit()
"""

from .base import TRANSACTION_TOO_BIG_MESSAGE
from .base import DocumentStore
from .base import WriteBatch
from .base import is_transaction_too_large_error
from .factory import StoreType
from .factory import create_document_store
from .factory import get_store
from .factory import reset_store
from .memory import MemoryDocumentStore

__all__ = [
    "DocumentStore",
    "WriteBatch",
    "MemoryDocumentStore",
    "StoreType",
    "TRANSACTION_TOO_BIG_MESSAGE",
    "create_document_store",
    "get_store",
    "is_transaction_too_large_error",
    "reset_store",
]
