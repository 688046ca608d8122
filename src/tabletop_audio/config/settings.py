"""Application Settings and Configuration

Pydantic-based settings management using environment variables.
Settings are loaded from environment variables with support for .env files,
type validation, and sensible defaults. All settings are frozen and immutable
after initialization.
"""

from __future__ import annotations

from functools import lru_cache
from typing import Literal

from pydantic import AliasChoices, BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from ..domain.shared.constants import OrderingDefaults
from ..domain.shared.messages import ErrorMessages


class DatabaseSettings(BaseModel):
    """Database configuration."""

    model_config = SettingsConfigDict(frozen=True, populate_by_name=True)

    url: str = Field(
        default="sqlite:///data/audio.db",
        validation_alias=AliasChoices("url", "database_url", "db_url"),
    )
    busy_timeout_ms: int = Field(
        default=5000,
        ge=1000,
        le=30000,
        validation_alias=AliasChoices("busy_timeout_ms", "busy_timeout"),
    )
    connection_timeout_s: int = Field(
        default=10,
        ge=1,
        le=60,
        validation_alias=AliasChoices("connection_timeout_s", "connection_timeout"),
    )

    @field_validator("url")
    @classmethod
    def validate_url(cls, v: str) -> str:
        """Validate database URL format."""
        if not v.startswith("sqlite://"):
            raise ValueError(ErrorMessages.INVALID_DATABASE_URL)
        return v


class OrderingSettings(BaseModel):
    """Position space and structural rule configuration."""

    model_config = SettingsConfigDict(frozen=True)

    gap: float = Field(default=OrderingDefaults.GAP, gt=0.0)
    min_position: float = OrderingDefaults.MIN_POSITION
    max_nesting_depth: int = Field(default=OrderingDefaults.MAX_NESTING_DEPTH, ge=1, le=32)
    enforce_audio_types: bool = True


class ConcurrencySettings(BaseModel):
    """Aggregate lock configuration."""

    model_config = SettingsConfigDict(frozen=True)

    lock_timeout_s: float = Field(default=2.0, gt=0.0, le=60.0)
    lock_retries: int = Field(default=3, ge=1, le=20)


class SyncSettings(BaseModel):
    """Broadcast channel and client sync configuration."""

    model_config = SettingsConfigDict(frozen=True, populate_by_name=True)

    subscriber_queue_size: int = Field(
        default=256,
        ge=1,
        le=65536,
        validation_alias=AliasChoices("subscriber_queue_size", "queue_size"),
    )
    overflow_policy: Literal["drop_oldest", "disconnect"] = "drop_oldest"
    volume_debounce_ms: int = Field(default=200, ge=0, le=10_000)
    default_session_id: str = Field(default="default", min_length=1, max_length=128)


class Settings(BaseSettings):
    """Application settings container.

    Automatically loads configuration from environment variables.

    Environment variable naming:
    - ENVIRONMENT, DEBUG, LOG_LEVEL (top-level)
    - DATABASE__URL, DATABASE__BUSY_TIMEOUT_MS (nested with ``__``)
    - ORDERING__GAP, ORDERING__MAX_NESTING_DEPTH, ...
    - CONCURRENCY__LOCK_TIMEOUT_S, CONCURRENCY__LOCK_RETRIES
    - SYNC__SUBSCRIBER_QUEUE_SIZE, SYNC__OVERFLOW_POLICY, ...
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
        case_sensitive=False,
        extra="ignore",
    )

    environment: Literal["development", "production", "test"] = "development"
    debug: bool = False
    log_level: str = "INFO"

    database: DatabaseSettings = Field(default_factory=DatabaseSettings)
    ordering: OrderingSettings = Field(default_factory=OrderingSettings)
    concurrency: ConcurrencySettings = Field(default_factory=ConcurrencySettings)
    sync: SyncSettings = Field(default_factory=SyncSettings)

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level."""
        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        v_upper = v.upper()
        if v_upper not in valid_levels:
            raise ValueError(ErrorMessages.INVALID_LOG_LEVEL.format(level=v, valid_levels=valid_levels))
        return v_upper


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Get cached application settings.

    Settings are automatically loaded from:
    1. .env file (if present)
    2. Environment variables
    3. Default values
    """
    return Settings()


def clear_settings_cache() -> None:
    """Clear the settings cache (useful for testing)."""
    get_settings.cache_clear()
