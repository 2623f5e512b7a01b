"""
Keyed Persistence Store

Maps a user identity (email) to the serialized ledger of that identity, and
remembers the last identity that was used.

DESIGN DECISION: Every operation here is fail-soft. A broken disk, a full
quota or a corrupt value must never crash the in-memory session: failures
are logged and reported as None / False, and the user keeps working with
unsaved state.

Key layout:
    "<namespace>"                   anonymous ledger (no identity yet)
    "<namespace>:<email>"           ledger of one identity
    "<namespace>@meta:last-identity" last identity used
    "<namespace>@backup:<email>"    last ledger that could not be fully read
"""

import json
from typing import Any, Optional, Union

import structlog

from flowdesk.config import DEFAULT_NAMESPACE
from flowdesk.services.storage.interface import (
    DeserializationError,
    KeyValueStore,
)


def build_storage_key(identity: Optional[str], namespace: str = DEFAULT_NAMESPACE) -> str:
    """
    Storage key of an identity's ledger.

    >>> build_storage_key("")
    'wallet-app-storage'
    >>> build_storage_key("a@b.com")
    'wallet-app-storage:a@b.com'
    """
    identity = (identity or "").strip()
    return f"{namespace}:{identity}" if identity else namespace


def decode_blob(raw: str) -> dict[str, Any]:
    """
    Parse a stored ledger blob.

    Raises:
        DeserializationError: If the value is not a JSON object
    """
    try:
        decoded = json.loads(raw)
    except (TypeError, ValueError) as e:
        raise DeserializationError(f"Stored ledger is not valid JSON: {e}") from e
    if not isinstance(decoded, dict):
        raise DeserializationError(
            f"Stored ledger must be an object, got {type(decoded).__name__}"
        )
    return decoded


class KeyedPersistenceStore:
    """
    Per-identity ledger persistence on top of a KeyValueStore.

    The store only guarantees correct key derivation per call; moving an
    anonymous ledger to an identity slot is up to the caller.
    """

    def __init__(
        self,
        backend: KeyValueStore,
        namespace: str = DEFAULT_NAMESPACE,
        last_identity_key: Optional[str] = None,
    ):
        self._backend = backend
        self.namespace = namespace
        self.last_identity_key = last_identity_key or f"{namespace}@meta:last-identity"
        self._logger = structlog.get_logger(__name__)

    def key_for(self, identity: Optional[str]) -> str:
        return build_storage_key(identity, self.namespace)

    async def load(self, identity: Optional[str]) -> Optional[dict[str, Any]]:
        """
        Load the ledger blob of an identity.

        Returns None when the key is missing, unreadable or corrupt.
        """
        key = self.key_for(identity)
        try:
            raw = await self._backend.get(key)
        except Exception as e:
            self._logger.warning("ledger_load_failed", key=key, error=str(e))
            return None

        if not raw:
            return None

        try:
            return decode_blob(raw)
        except DeserializationError as e:
            self._logger.warning("ledger_blob_corrupt", key=key, error=str(e))
            await self.backup(raw, identity)
            return None

    async def save(self, payload: Optional[dict[str, Any]], identity: Optional[str]) -> bool:
        """
        Write the ledger blob of an identity.

        An empty or missing payload deletes the key: "no payload" means
        "forget this identity's data", not "store an empty ledger".
        """
        key = self.key_for(identity)
        serialized = None
        if payload:
            try:
                serialized = json.dumps(payload, ensure_ascii=False, separators=(",", ":"))
            except (TypeError, ValueError) as e:
                self._logger.warning("ledger_serialize_failed", key=key, error=str(e))
                return False

        try:
            if serialized is None:
                await self._backend.remove(key)
                self._logger.info("ledger_forgotten", key=key)
            else:
                await self._backend.set(key, serialized)
            return True
        except Exception as e:
            self._logger.warning("ledger_save_failed", key=key, error=str(e))
            return False

    def backup_key_for(self, identity: Optional[str]) -> str:
        return f"{self.namespace}@backup:{(identity or '').strip()}"

    async def backup(self, raw: Union[str, dict[str, Any]], identity: Optional[str]) -> bool:
        """
        Copy a ledger that could not be fully read aside, before the next
        save replaces it.
        """
        key = self.backup_key_for(identity)
        try:
            if not isinstance(raw, str):
                raw = json.dumps(raw, ensure_ascii=False, separators=(",", ":"))
            await self._backend.set(key, raw)
        except Exception as e:
            self._logger.warning("ledger_backup_failed", key=key, error=str(e))
            return False
        self._logger.warning("ledger_backed_up", key=key)
        return True

    async def load_last_identity(self) -> Optional[str]:
        try:
            identity = await self._backend.get(self.last_identity_key)
        except Exception as e:
            self._logger.warning("last_identity_load_failed", error=str(e))
            return None
        return identity or None

    async def save_last_identity(self, identity: Optional[str]) -> bool:
        """Remember the identity; an empty identity clears the slot."""
        identity = (identity or "").strip()
        try:
            if not identity:
                await self._backend.remove(self.last_identity_key)
            else:
                await self._backend.set(self.last_identity_key, identity)
            return True
        except Exception as e:
            self._logger.warning("last_identity_save_failed", error=str(e))
            return False
