"""Document Store Factory.

Auto-selects the appropriate document store based on environment:
- Firestore: When FIRESTORE_EMULATOR_HOST or FIRESTORE_PROJECT is set
- Memory: Default for development and testing
"""

from __future__ import annotations

import os
from enum import Enum
from typing import TYPE_CHECKING

from ..exceptions import BatcherConfigurationError

if TYPE_CHECKING:
    from .base import DocumentStore


class StoreType(Enum):
    """Available document store types."""

    MEMORY = "memory"
    FIRESTORE = "firestore"


def detect_environment() -> StoreType:
    """Auto-detect the appropriate document store.

    Simple detection logic:
    1. STORE_BACKEND env var (explicit override: "firestore" or "memory")
    2. FIRESTORE_EMULATOR_HOST or FIRESTORE_PROJECT env var set -> Firestore
    3. Default -> Memory

    Returns:
        StoreType enum indicating which store to use
    """
    explicit = os.environ.get("STORE_BACKEND", "").lower()
    if explicit == "firestore":
        return StoreType.FIRESTORE
    elif explicit == "memory":
        return StoreType.MEMORY

    if os.environ.get("FIRESTORE_EMULATOR_HOST") or os.environ.get("FIRESTORE_PROJECT"):
        return StoreType.FIRESTORE

    return StoreType.MEMORY


def parse_store_type(value: str) -> StoreType | None:
    """Map a settings value ("auto", "memory", "firestore") to a StoreType."""
    value = (value or "auto").lower()
    if value == "auto":
        return None
    try:
        return StoreType(value)
    except ValueError as e:
        raise BatcherConfigurationError("store_backend", "expected 'auto', 'memory' or 'firestore'", value) from e


def create_document_store(
    store_type: StoreType | None = None,
    **kwargs,
) -> DocumentStore:
    """Create a document store instance.

    Args:
        store_type: Explicit store type, or None to auto-detect
        **kwargs: Store-specific configuration

    Returns:
        Configured DocumentStore instance
    """
    if store_type is None:
        store_type = detect_environment()

    if store_type == StoreType.FIRESTORE:
        from .firestore import FirestoreDocumentStore

        return FirestoreDocumentStore(
            project=kwargs.get("project"),
            database=kwargs.get("database"),
            client=kwargs.get("client"),
            emulator_host=kwargs.get("emulator_host"),
        )
    else:
        from .memory import DEFAULT_MAX_TRANSACTION_BYTES
        from .memory import MemoryDocumentStore

        return MemoryDocumentStore(
            max_transaction_bytes=kwargs.get("max_transaction_bytes") or DEFAULT_MAX_TRANSACTION_BYTES,
        )


# Singleton instance for the application
_store_instance: DocumentStore | None = None


def get_store(**kwargs) -> DocumentStore:
    """Get the global document store instance.

    Creates the instance on first call using auto-detection.
    Subsequent calls return the same instance.

    Args:
        **kwargs: Store-specific configuration (only used on first call)

    Returns:
        The global DocumentStore instance
    """
    global _store_instance

    if _store_instance is None:
        _store_instance = create_document_store(**kwargs)

    return _store_instance


def reset_store() -> None:
    """Reset the global store instance (for testing)."""
    global _store_instance
    _store_instance = None


def get_store_info() -> dict:
    """Get information about the current store configuration.

    Returns:
        Dict with store info for debugging/monitoring
    """
    store = get_store()
    detected_type = detect_environment()

    return {
        "backend_type": store.backend_type,
        "detected_type": detected_type.value,
        "firestore_project": os.environ.get("FIRESTORE_PROJECT"),
        "firestore_emulator_host": os.environ.get("FIRESTORE_EMULATOR_HOST"),
        "store_backend_env": os.environ.get("STORE_BACKEND", "auto"),
    }
