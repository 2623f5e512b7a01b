"""
Persist-on-write scheduling.

Every ledger mutation hands a full snapshot to PersistScheduler, which keeps
for each identity:
- one pending slot (the newest snapshot not yet written), and
- at most one writer task.

A burst of mutations therefore coalesces into as few writes as possible, and
a straggling older write can never land after a newer one for the same
identity. The identity travels with the payload, so a write that is in
flight while the user switches identity still lands on its original key.
"""

import asyncio
from typing import Any, Callable, Optional

import structlog
from pydantic import ValidationError as SchemaError

from flowdesk.models.ledger import LedgerSnapshot
from flowdesk.services.storage import DeserializationError, KeyedPersistenceStore


Payload = Optional[dict[str, Any]]


def snapshot_from_payload(payload: dict[str, Any]) -> LedgerSnapshot:
    """
    Validate a stored blob into a LedgerSnapshot.

    Raises:
        DeserializationError: If the blob does not describe a ledger
    """
    try:
        return LedgerSnapshot.model_validate(payload)
    except SchemaError as e:
        raise DeserializationError(
            f"Stored ledger failed validation ({e.error_count()} errors)"
        ) from e


def dropped_entities(payload: dict[str, Any], snapshot: LedgerSnapshot) -> int:
    """How many stored clients and expenses did not survive validation."""
    def stored(key: str) -> int:
        entries = payload.get(key)
        if not isinstance(entries, list):
            return 0
        return sum(1 for entry in entries if isinstance(entry, dict))

    return (
        stored("clients") - len(snapshot.clients)
        + stored("expenses") - len(snapshot.expenses)
    )


class PersistScheduler:
    """Per-identity, single-slot, in-order write queue for ledger snapshots."""

    def __init__(
        self,
        persistence: KeyedPersistenceStore,
        on_failure: Optional[Callable[[str], None]] = None,
    ):
        self._persistence = persistence
        self._on_failure = on_failure
        self._pending: dict[str, Payload] = {}
        self._workers: dict[str, asyncio.Task] = {}
        self._logger = structlog.get_logger(__name__)

    def is_idle(self) -> bool:
        """True when no write is queued or running for any identity."""
        return not self._pending and not self._workers

    def schedule(self, identity: str, payload: Payload) -> None:
        """
        Queue a write of ``payload`` under ``identity``.

        A None payload deletes the identity's stored ledger. Without a
        running event loop the write waits for `flush()`.
        """
        self._pending[identity] = payload
        if identity in self._workers:
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            self._logger.debug("persist_deferred_no_loop", identity=identity)
            return
        self._workers[identity] = loop.create_task(self._drain(identity))

    async def _drain(self, identity: str) -> None:
        try:
            while identity in self._pending:
                payload = self._pending.pop(identity)
                try:
                    saved = await self._persistence.save(payload, identity)
                except asyncio.CancelledError:
                    # Keep the write unless something newer replaced it meanwhile
                    self._pending.setdefault(identity, payload)
                    raise
                if not saved and self._on_failure is not None:
                    self._on_failure(identity)
        finally:
            self._workers.pop(identity, None)

    async def flush(self) -> None:
        """Wait until every queued write has been attempted."""
        loop = asyncio.get_running_loop()
        while self._pending or self._workers:
            for identity in list(self._pending):
                if identity not in self._workers:
                    self._workers[identity] = loop.create_task(self._drain(identity))
            await asyncio.gather(*self._workers.values(), return_exceptions=True)
