"""
Application Root for Flowdesk Ledger

Wires settings, logging, storage and the ledger store together.

DESIGN DECISION: There is no module-level ledger. The application root calls
`create_ledger_store()` once and passes the resulting store to whatever needs
it (screens, jobs, tests). Two stores built from two backends never share
state.
"""

from typing import Optional

import structlog

from flowdesk.audit import AuditLogger, configure_logging
from flowdesk.config import Settings, StorageSettings, get_settings
from flowdesk.ledger import LedgerStore
from flowdesk.services.storage import (
    InMemoryKeyValueStore,
    KeyedPersistenceStore,
    KeyValueStore,
    SQLiteKeyValueStore,
)


def create_backend(storage: StorageSettings) -> KeyValueStore:
    """Key-value backend named by the storage settings."""
    if storage.backend == "memory":
        return InMemoryKeyValueStore()
    return SQLiteKeyValueStore(storage.sqlite_file)


async def create_ledger_store(
    settings: Optional[Settings] = None,
    identity: Optional[str] = None,
    backend: Optional[KeyValueStore] = None,
) -> LedgerStore:
    """
    Factory function to create a hydrated ledger store.

    Args:
        settings: Settings to build from (cached settings if omitted)
        identity: Email to open the ledger for; falls back to the last
                  identity used, then to the anonymous ledger
        backend: Key-value backend overriding the configured one

    Returns:
        A LedgerStore loaded from storage
    """
    settings = settings or get_settings()
    app_settings = settings.app
    storage_settings = settings.storage

    configure_logging("DEBUG" if app_settings.debug_mode else app_settings.log_level)
    logger = structlog.get_logger(__name__)

    persistence = KeyedPersistenceStore(
        backend or create_backend(storage_settings),
        namespace=storage_settings.namespace,
        last_identity_key=storage_settings.last_identity_key,
    )
    store = await LedgerStore.open(
        persistence,
        identity=identity,
        audit_logger=AuditLogger(history_size=app_settings.audit_history_size),
        default_client_term=app_settings.default_client_term,
    )
    logger.info(
        "ledger_store_ready",
        environment=app_settings.app_environment,
        backend="custom" if backend is not None else storage_settings.backend,
        identity=store.identity,
    )
    return store
