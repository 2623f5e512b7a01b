"""
Abstract Storage Interface

DESIGN DECISION: The ledger only needs a durable string key-value store.
Defining it as an abstract interface allows us to:
1. Swap SQLite for another local store later
2. Use in-memory storage for testing
3. Keep the keyed persistence contract independent of the backend

Backends are allowed to raise; KeyedPersistenceStore is the layer that turns
every failure into a sentinel.
"""

from abc import ABC, abstractmethod
from typing import Optional


class KeyValueStore(ABC):
    """
    Abstract interface for a local string key-value store.

    Any backend (SQLite, in-memory, ...) must implement these methods.
    """

    @abstractmethod
    async def get(self, key: str) -> Optional[str]:
        """
        Read the value stored under a key.

        Args:
            key: Storage key

        Returns:
            The stored string, or None if the key is absent

        Raises:
            PersistenceIOError: If the read fails
        """
        pass

    @abstractmethod
    async def set(self, key: str, value: str) -> None:
        """
        Write (or overwrite) the value under a key.

        Raises:
            PersistenceIOError: If the write fails
        """
        pass

    @abstractmethod
    async def remove(self, key: str) -> None:
        """
        Delete a key. Removing an absent key is not an error.

        Raises:
            PersistenceIOError: If the delete fails
        """
        pass


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class PersistenceIOError(StorageError):
    """The underlying store failed to read, write or delete."""
    pass


class DeserializationError(StorageError):
    """A stored value is not a valid ledger blob."""
    pass
