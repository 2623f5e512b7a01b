"""
Storage Services Package

Provides the abstract key-value interface, its SQLite and in-memory
implementations, and the keyed persistence store the ledger saves through.
"""

from flowdesk.services.storage.interface import (
    DeserializationError,
    KeyValueStore,
    PersistenceIOError,
    StorageError,
)
from flowdesk.services.storage.keyed import (
    KeyedPersistenceStore,
    build_storage_key,
    decode_blob,
)
from flowdesk.services.storage.memory import InMemoryKeyValueStore
from flowdesk.services.storage.sqlite_store import SQLiteKeyValueStore

__all__ = [
    # Interfaces
    "KeyValueStore",
    # Exceptions
    "DeserializationError",
    "PersistenceIOError",
    "StorageError",
    # Keyed persistence
    "KeyedPersistenceStore",
    "build_storage_key",
    "decode_blob",
    # Backends
    "InMemoryKeyValueStore",
    "SQLiteKeyValueStore",
]
