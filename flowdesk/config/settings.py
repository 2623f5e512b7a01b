"""
Configuration Management for Flowdesk Ledger

Uses pydantic-settings for type-safe configuration from environment variables.

DESIGN DECISION: All configuration is centralized here.
Storage location, namespace and logging level are all validated at startup.
"""

from functools import lru_cache
from pathlib import Path
from typing import Literal, Optional

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


DEFAULT_NAMESPACE = "wallet-app-storage"


class StorageSettings(BaseSettings):
    """Local key-value storage configuration."""

    model_config = SettingsConfigDict(
        env_prefix="FLOWDESK_STORAGE_",
        extra="ignore"
    )

    backend: Literal["sqlite", "memory"] = Field(
        default="sqlite",
        description="Key-value backend holding the ledger blobs"
    )
    sqlite_path: str = Field(
        default="data/flowdesk.db",
        description="Path to the SQLite database file"
    )
    namespace: str = Field(
        default=DEFAULT_NAMESPACE,
        min_length=1,
        description="Prefix of every ledger storage key"
    )
    last_identity_key: Optional[str] = Field(
        default=None,
        description="Key of the last-used identity slot (derived from namespace if unset)"
    )

    @field_validator('namespace')
    @classmethod
    def validate_namespace(cls, v: str) -> str:
        """A colon in the namespace would make identity keys ambiguous."""
        v = v.strip()
        if ":" in v:
            raise ValueError(f"Storage namespace must not contain ':': {v}")
        return v

    @model_validator(mode='after')
    def default_last_identity_key(self) -> 'StorageSettings':
        if not self.last_identity_key:
            self.last_identity_key = f"{self.namespace}@meta:last-identity"
        return self

    @property
    def sqlite_file(self) -> Path:
        return Path(self.sqlite_path)


class AppSettings(BaseSettings):
    """
    Main application settings.

    Loads configuration from environment variables and .env file.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    # Environment
    app_environment: str = Field(
        default="development",
        description="Application environment"
    )
    debug_mode: bool = Field(
        default=False,
        description="Enable debug mode"
    )
    log_level: str = Field(
        default="INFO",
        description="Minimum level for structured logs"
    )

    # Ledger defaults
    default_client_term: str = Field(
        default="Cliente",
        min_length=1,
        description="Word the UI uses for a client when none is stored"
    )
    audit_history_size: int = Field(
        default=200,
        ge=0,
        le=10000,
        description="How many ledger events are kept in memory"
    )

    @field_validator('log_level')
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        allowed = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        if v.upper() not in allowed:
            raise ValueError(f"Unsupported log level: {v}. Allowed: {allowed}")
        return v.upper()


class Settings(BaseSettings):
    """
    Root settings container.

    Aggregates all sub-settings for easy access.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    # Note: These are loaded lazily to allow partial configuration

    @property
    def storage(self) -> StorageSettings:
        return StorageSettings()

    @property
    def app(self) -> AppSettings:
        return AppSettings()


@lru_cache()
def get_settings() -> Settings:
    """
    Get application settings (cached).

    Uses LRU cache to ensure settings are only loaded once.
    Call get_settings.cache_clear() to reload if needed.
    """
    return Settings()


def validate_all_settings() -> dict[str, bool]:
    """
    Validate all settings are properly configured.

    Returns a dict of {setting_name: is_valid}.
    Useful for startup checks.
    """
    results = {}

    settings = get_settings()

    try:
        _ = settings.storage
        results["storage"] = True
    except Exception as e:
        results["storage"] = False
        results["storage_error"] = str(e)

    try:
        _ = settings.app
        results["app"] = True
    except Exception as e:
        results["app"] = False
        results["app_error"] = str(e)

    return results
