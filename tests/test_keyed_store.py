"""
Tests for keyed persistence and the key-value backends.

Every failure of the backend must turn into None / False, never an exception.
"""

import pytest

from flowdesk.services.storage import (
    DeserializationError,
    InMemoryKeyValueStore,
    KeyedPersistenceStore,
    PersistenceIOError,
    SQLiteKeyValueStore,
    build_storage_key,
    decode_blob,
)


class TestStorageKeys:
    """Tests for identity -> key derivation."""

    def test_anonymous_key_is_bare_namespace(self):
        """Test that an empty identity maps to the namespace itself."""
        assert build_storage_key("") == "wallet-app-storage"
        assert build_storage_key(None) == "wallet-app-storage"
        assert build_storage_key("   ") == "wallet-app-storage"

    def test_identity_key_is_stripped(self):
        """Test that surrounding whitespace does not change the key."""
        assert build_storage_key("  ana@example.com ") == "wallet-app-storage:ana@example.com"

    def test_distinct_identities_never_collide(self):
        """Test that different emails get different keys."""
        keys = {build_storage_key(e) for e in ("", "a@x.com", "b@x.com", "A@x.com")}
        assert len(keys) == 4

    def test_custom_namespace(self):
        """Test key derivation under another namespace."""
        assert build_storage_key("a@x.com", namespace="test") == "test:a@x.com"

    def test_last_identity_key_outside_ledger_keys(self):
        """Test that no identity can produce the last-identity slot key."""
        store = KeyedPersistenceStore(InMemoryKeyValueStore())
        assert store.last_identity_key == "wallet-app-storage@meta:last-identity"
        assert not store.last_identity_key.startswith(store.key_for("x")[:-1])
        assert store.key_for("@meta:last-identity") != store.last_identity_key


class TestDecodeBlob:
    """Tests for stored blob parsing."""

    def test_decodes_object(self):
        """Test that a JSON object decodes to a dict."""
        assert decode_blob('{"clients": []}') == {"clients": []}

    def test_rejects_invalid_json(self):
        """Test that garbage raises DeserializationError."""
        with pytest.raises(DeserializationError):
            decode_blob("{not json")

    def test_rejects_non_object(self):
        """Test that a JSON array is not a ledger."""
        with pytest.raises(DeserializationError):
            decode_blob("[1, 2, 3]")


class TestKeyedPersistenceStore:
    """Tests for per-identity load/save."""

    @pytest.mark.asyncio
    async def test_save_then_load(self, persistence):
        """Test that a saved payload loads back unchanged."""
        payload = {"version": 5, "clients": [{"id": "c1", "name": "Ana"}]}

        assert await persistence.save(payload, "ana@example.com") is True
        assert await persistence.load("ana@example.com") == payload

    @pytest.mark.asyncio
    async def test_load_missing_returns_none(self, persistence):
        """Test that an identity with nothing stored loads as None."""
        assert await persistence.load("nobody@example.com") is None

    @pytest.mark.asyncio
    async def test_identities_are_isolated(self, persistence):
        """Test that one identity's save is invisible to another."""
        await persistence.save({"userName": "Ana"}, "ana@example.com")
        await persistence.save({"userName": "Anon"}, "")

        assert await persistence.load("ana@example.com") == {"userName": "Ana"}
        assert await persistence.load("bia@example.com") is None
        assert await persistence.load("") == {"userName": "Anon"}

    @pytest.mark.asyncio
    async def test_save_none_deletes(self, persistence, backend):
        """Test that saving no payload forgets the identity's ledger."""
        await persistence.save({"clients": []}, "ana@example.com")
        assert await persistence.save(None, "ana@example.com") is True

        assert await persistence.load("ana@example.com") is None
        assert "wallet-app-storage:ana@example.com" not in backend.keys()

    @pytest.mark.asyncio
    async def test_save_empty_dict_deletes(self, persistence, backend):
        """Test that an empty payload is treated as absent."""
        await persistence.save({"clients": []}, "")
        await persistence.save({}, "")
        assert backend.keys() == []

    @pytest.mark.asyncio
    async def test_unserializable_payload_returns_false(self, persistence):
        """Test that a payload json cannot encode is reported, not raised."""
        assert await persistence.save({"when": object()}, "") is False

    @pytest.mark.asyncio
    async def test_corrupt_blob_loads_as_none(self):
        """Test that invalid JSON in storage is treated as absent."""
        backend = InMemoryKeyValueStore({
            "wallet-app-storage:ana@example.com": "{broken",
            "wallet-app-storage": "[]",
        })
        persistence = KeyedPersistenceStore(backend)

        assert await persistence.load("ana@example.com") is None
        assert await persistence.load("") is None

    @pytest.mark.asyncio
    async def test_corrupt_blob_is_backed_up(self):
        """Test that a corrupt value is copied aside before anything overwrites it."""
        backend = InMemoryKeyValueStore({"wallet-app-storage:ana@example.com": "{broken"})
        persistence = KeyedPersistenceStore(backend)

        await persistence.load("ana@example.com")
        await persistence.save({"clients": []}, "ana@example.com")

        assert await backend.get("wallet-app-storage@backup:ana@example.com") == "{broken"
        assert await persistence.load("ana@example.com") == {"clients": []}

    @pytest.mark.asyncio
    async def test_backup_serializes_dicts(self, persistence, backend):
        """Test that a decoded ledger is stored in the backup slot as JSON."""
        assert await persistence.backup({"clients": [{"id": "c1"}]}, " ana@example.com ") is True

        assert backend.blob("wallet-app-storage@backup:ana@example.com") == {
            "clients": [{"id": "c1"}]
        }
        assert await persistence.load("ana@example.com") is None

    def test_backup_key_outside_ledger_keys(self, persistence):
        """Test that no identity can produce a backup slot key."""
        assert persistence.backup_key_for("") == "wallet-app-storage@backup:"
        assert not persistence.backup_key_for("a@x.com").startswith("wallet-app-storage:")
        assert persistence.key_for("@backup:a@x.com") != persistence.backup_key_for("a@x.com")

    @pytest.mark.asyncio
    async def test_failing_backend_never_raises(self, failing_backend):
        """Test that backend errors surface as None / False."""
        persistence = KeyedPersistenceStore(failing_backend)

        assert await persistence.load("ana@example.com") is None
        assert await persistence.save({"clients": []}, "ana@example.com") is False
        assert await persistence.save(None, "ana@example.com") is False
        assert await persistence.backup("{broken", "ana@example.com") is False
        assert await persistence.load_last_identity() is None
        assert await persistence.save_last_identity("ana@example.com") is False

    @pytest.mark.asyncio
    async def test_last_identity_round_trip(self, persistence):
        """Test remembering and forgetting the last identity."""
        assert await persistence.load_last_identity() is None

        await persistence.save_last_identity(" ana@example.com ")
        assert await persistence.load_last_identity() == "ana@example.com"

        await persistence.save_last_identity("")
        assert await persistence.load_last_identity() is None

    @pytest.mark.asyncio
    async def test_last_identity_does_not_touch_ledgers(self, persistence):
        """Test that the last-identity slot and ledger slots are independent."""
        await persistence.save({"userName": "Anon"}, "")
        await persistence.save_last_identity("ana@example.com")
        await persistence.save_last_identity("")

        assert await persistence.load("") == {"userName": "Anon"}


class TestSQLiteKeyValueStore:
    """Tests for the SQLite backend (real file under tmp_path)."""

    @pytest.mark.asyncio
    async def test_set_get_remove(self, tmp_path):
        """Test basic operations and that removing an absent key is fine."""
        store = SQLiteKeyValueStore(tmp_path / "data" / "flowdesk.db")
        try:
            await store.set("k", "v1")
            await store.set("k", "v2")
            assert await store.get("k") == "v2"

            await store.remove("k")
            await store.remove("never-set")
            assert await store.get("k") is None
        finally:
            store.close()

    @pytest.mark.asyncio
    async def test_values_survive_reopen(self, tmp_path):
        """Test that data is durable across connections."""
        path = tmp_path / "flowdesk.db"
        first = SQLiteKeyValueStore(path)
        await KeyedPersistenceStore(first).save({"userName": "Ana"}, "ana@example.com")
        first.close()

        second = SQLiteKeyValueStore(path)
        try:
            loaded = await KeyedPersistenceStore(second).load("ana@example.com")
        finally:
            second.close()
        assert loaded == {"userName": "Ana"}

    @pytest.mark.asyncio
    async def test_unusable_path_raises_persistence_error(self, tmp_path):
        """Test that a path under a regular file fails as PersistenceIOError."""
        blocker = tmp_path / "not-a-dir"
        blocker.write_text("x")
        store = SQLiteKeyValueStore(blocker / "flowdesk.db")

        with pytest.raises(PersistenceIOError):
            await store.get("k")

    @pytest.mark.asyncio
    async def test_unusable_path_is_fail_soft_through_keyed_store(self, tmp_path):
        """Test that the keyed store absorbs the backend error."""
        blocker = tmp_path / "not-a-dir"
        blocker.write_text("x")
        persistence = KeyedPersistenceStore(SQLiteKeyValueStore(blocker / "flowdesk.db"))

        assert await persistence.save({"clients": []}, "") is False
        assert await persistence.load("") is None
