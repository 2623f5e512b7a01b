"""Tests for settings and the application root factory."""

import pytest

from flowdesk.config import AppSettings, Settings, StorageSettings, get_settings, validate_all_settings
from flowdesk.orchestrator import create_backend, create_ledger_store
from flowdesk.services.storage import InMemoryKeyValueStore, SQLiteKeyValueStore


@pytest.fixture(autouse=True)
def clean_settings_cache():
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


class TestSettings:
    """Tests for pydantic-settings configuration."""

    def test_storage_defaults(self, monkeypatch):
        """Test default namespace, backend and last-identity slot."""
        monkeypatch.delenv("FLOWDESK_STORAGE_NAMESPACE", raising=False)
        monkeypatch.delenv("FLOWDESK_STORAGE_BACKEND", raising=False)
        monkeypatch.delenv("FLOWDESK_STORAGE_LAST_IDENTITY_KEY", raising=False)
        storage = StorageSettings()

        assert storage.backend == "sqlite"
        assert storage.namespace == "wallet-app-storage"
        assert storage.last_identity_key == "wallet-app-storage@meta:last-identity"

    def test_last_identity_key_follows_namespace(self, monkeypatch):
        """Test that the slot key is derived from a custom namespace."""
        monkeypatch.setenv("FLOWDESK_STORAGE_NAMESPACE", "studio")
        monkeypatch.delenv("FLOWDESK_STORAGE_LAST_IDENTITY_KEY", raising=False)
        assert StorageSettings().last_identity_key == "studio@meta:last-identity"

    def test_namespace_rejects_colon(self, monkeypatch):
        """Test that a namespace cannot contain the identity separator."""
        monkeypatch.setenv("FLOWDESK_STORAGE_NAMESPACE", "bad:ns")
        with pytest.raises(ValueError):
            StorageSettings()

    def test_log_level_normalized(self, monkeypatch):
        """Test that log levels are upper-cased and checked."""
        monkeypatch.setenv("LOG_LEVEL", "debug")
        assert AppSettings().log_level == "DEBUG"

        monkeypatch.setenv("LOG_LEVEL", "loud")
        with pytest.raises(ValueError):
            AppSettings()

    def test_validate_all_settings(self, monkeypatch):
        """Test the startup check reports each section."""
        monkeypatch.setenv("FLOWDESK_STORAGE_NAMESPACE", "bad:ns")
        monkeypatch.delenv("LOG_LEVEL", raising=False)
        results = validate_all_settings()

        assert results["storage"] is False
        assert "storage_error" in results
        assert results["app"] is True


class TestCreateLedgerStore:
    """Tests for the application root factory."""

    def test_backend_selection(self, tmp_path):
        """Test that settings pick the key-value backend."""
        memory = StorageSettings(backend="memory")
        sqlite = StorageSettings(backend="sqlite", sqlite_path=str(tmp_path / "f.db"))

        assert isinstance(create_backend(memory), InMemoryKeyValueStore)
        assert isinstance(create_backend(sqlite), SQLiteKeyValueStore)

    @pytest.mark.asyncio
    async def test_creates_hydrated_store(self, monkeypatch):
        """Test that the factory opens the last identity's ledger."""
        monkeypatch.setenv("FLOWDESK_STORAGE_BACKEND", "memory")
        monkeypatch.delenv("FLOWDESK_STORAGE_NAMESPACE", raising=False)
        monkeypatch.delenv("FLOWDESK_STORAGE_LAST_IDENTITY_KEY", raising=False)
        backend = InMemoryKeyValueStore({
            "wallet-app-storage@meta:last-identity": "ana@example.com",
            "wallet-app-storage:ana@example.com": '{"clients": [{"id": "c1", "name": "Ana"}]}',
        })

        store = await create_ledger_store(Settings(), backend=backend)

        assert store.identity == "ana@example.com"
        assert [c.name for c in store.clients] == ["Ana"]

    @pytest.mark.asyncio
    async def test_sqlite_round_trip(self, monkeypatch, tmp_path):
        """Test that a ledger written through one store is read by the next."""
        monkeypatch.setenv("FLOWDESK_STORAGE_BACKEND", "sqlite")
        monkeypatch.setenv("FLOWDESK_STORAGE_SQLITE_PATH", str(tmp_path / "flowdesk.db"))
        monkeypatch.delenv("FLOWDESK_STORAGE_NAMESPACE", raising=False)
        monkeypatch.delenv("FLOWDESK_STORAGE_LAST_IDENTITY_KEY", raising=False)

        writer = await create_ledger_store(identity="ana@example.com")
        writer.add_client({"name": "Ana", "value": 100})
        await writer.flush()

        store = await create_ledger_store()

        assert store.identity == "ana@example.com"
        assert [c.value_formatted for c in store.clients] == ["R$ 100,00"]
