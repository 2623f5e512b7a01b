"""Services package."""

from flowdesk.services.storage import (
    DeserializationError,
    InMemoryKeyValueStore,
    KeyedPersistenceStore,
    KeyValueStore,
    PersistenceIOError,
    SQLiteKeyValueStore,
    StorageError,
    build_storage_key,
)

__all__ = [
    "DeserializationError",
    "InMemoryKeyValueStore",
    "KeyedPersistenceStore",
    "KeyValueStore",
    "PersistenceIOError",
    "SQLiteKeyValueStore",
    "StorageError",
    "build_storage_key",
]
