"""
Shared fixtures for the ledger tests.

Async tests run under pytest-asyncio (@pytest.mark.asyncio); no storage here
touches the disk unless a test asks for tmp_path.
"""

import asyncio
import json
from datetime import datetime, timezone
from typing import Optional

import pytest
import pytest_asyncio

from flowdesk.ledger import LedgerStore
from flowdesk.services.storage import (
    InMemoryKeyValueStore,
    KeyedPersistenceStore,
    PersistenceIOError,
)


NAMESPACE = "wallet-app-storage"
FIXED_NOW = datetime(2024, 3, 15, 12, 0, tzinfo=timezone.utc)
ANA = "ana@example.com"


class RecordingKeyValueStore(InMemoryKeyValueStore):
    """
    In-memory store that records every write in order.

    Setting `gate` to an asyncio.Event holds writes until the event is set.
    """

    def __init__(self, initial: Optional[dict[str, str]] = None):
        super().__init__(initial)
        self.writes: list[tuple[str, Optional[str]]] = []
        self.gate: Optional[asyncio.Event] = None

    async def set(self, key: str, value: str) -> None:
        if self.gate is not None:
            await self.gate.wait()
        self.writes.append((key, value))
        await super().set(key, value)

    async def remove(self, key: str) -> None:
        if self.gate is not None:
            await self.gate.wait()
        self.writes.append((key, None))
        await super().remove(key)

    def blob(self, key: str) -> Optional[dict]:
        raw = self._data.get(key)
        return json.loads(raw) if raw is not None else None

    def writes_to(self, key: str) -> list[Optional[dict]]:
        return [
            json.loads(value) if value is not None else None
            for written_key, value in self.writes
            if written_key == key
        ]


class FailingKeyValueStore(InMemoryKeyValueStore):
    """Store whose every operation fails like a broken disk."""

    async def get(self, key: str) -> Optional[str]:
        raise PersistenceIOError(f"disk unavailable reading {key}")

    async def set(self, key: str, value: str) -> None:
        raise PersistenceIOError(f"disk unavailable writing {key}")

    async def remove(self, key: str) -> None:
        raise PersistenceIOError(f"disk unavailable deleting {key}")


def ledger_blob(clients=None, expenses=None, **fields) -> str:
    """Serialized ledger as the app stores it."""
    payload = {
        "version": 5,
        "clients": clients or [],
        "expenses": expenses or [],
        "clientTerm": "Cliente",
    }
    payload.update(fields)
    return json.dumps(payload)


@pytest.fixture
def clock():
    return lambda: FIXED_NOW


@pytest.fixture
def backend():
    return RecordingKeyValueStore()


@pytest.fixture
def failing_backend():
    return FailingKeyValueStore()


@pytest.fixture
def persistence(backend):
    return KeyedPersistenceStore(backend, namespace=NAMESPACE)


@pytest.fixture
def ledger(persistence, clock):
    """Anonymous, empty ledger store (not hydrated)."""
    return LedgerStore(persistence, clock=clock)


@pytest_asyncio.fixture
async def ana_ledger(persistence, clock):
    """Ledger store opened for ana@example.com; queued writes land before teardown."""
    store = await LedgerStore.open(persistence, ANA, clock=clock)
    yield store
    await store.flush()


@pytest.fixture
def make_backend():
    """Factory for a recording backend preloaded with raw values."""
    return RecordingKeyValueStore


@pytest.fixture
def make_blob():
    return ledger_blob
