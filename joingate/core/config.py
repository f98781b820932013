"""Application configuration using Pydantic Settings."""

import logging
from functools import lru_cache
from typing import Literal

from pydantic import Field, HttpUrl, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from ..domain.validation import ReasonLimits

logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    app_name: str = "joingate"
    app_version: str = "1.0.0"
    environment: Literal["development", "production", "test"] = "production"
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"

    # Telegram
    bot_token: str
    target_chat_id: int
    admin_review_chat_id: int
    join_link: HttpUrl | None = None

    # Webhook
    public_base_url: HttpUrl | None = None
    webhook_path: str = "/api/bot"
    webhook_secret_token: str | None = None

    # Reason collection
    min_reason_words: int = Field(default=10, gt=0)
    max_reason_chars: int = Field(default=1000, gt=0)
    reason_ttl_seconds: int = Field(default=604800, gt=0)  # 7 days

    # Presentation
    timezone: str = "Europe/Berlin"
    locale: Literal["de", "en"] = "de"

    # Storage
    storage_type: Literal["memory", "sql"] | None = None
    database_url: str | None = None
    database_echo: bool = False  # Log SQL queries
    database_require_ssl: bool = False  # Managed Postgres behind pgbouncer

    @field_validator("target_chat_id", "admin_review_chat_id")
    @classmethod
    def validate_group_chat_id(cls, v: int) -> int:
        if v >= 0:
            raise ValueError("must be a negative number (group chat id)")
        return v

    @field_validator("webhook_path")
    @classmethod
    def validate_webhook_path(cls, v: str) -> str:
        if not v.startswith("/"):
            raise ValueError("must start with '/'")
        return v

    @field_validator("storage_type", "database_url", "webhook_secret_token", "join_link", "public_base_url", mode="before")
    @classmethod
    def empty_string_as_none(cls, v):
        return None if v == "" else v

    @property
    def reason_limits(self) -> ReasonLimits:
        return ReasonLimits(
            min_reason_words=self.min_reason_words,
            max_reason_chars=self.max_reason_chars,
        )

    @property
    def webhook_url(self) -> str | None:
        if not self.public_base_url:
            return None
        return f"{str(self.public_base_url).rstrip('/')}{self.webhook_path}"

    @property
    def resolved_storage_type(self) -> Literal["memory", "sql"]:
        """Explicit STORAGE_TYPE first, then auto-detect (SQL if a database is configured)."""
        if self.storage_type == "memory":
            return "memory"
        if self.storage_type == "sql" and not self.database_url:
            logger.warning("STORAGE_TYPE=sql but no DATABASE_URL configured. Falling back to memory.")
            return "memory"
        return "sql" if self.database_url else "memory"

    @property
    def database_url_async(self) -> str | None:
        """Get async database URL (asyncpg for PostgreSQL)."""
        if not self.database_url:
            return None
        url = self.database_url
        if url.startswith("postgres://"):
            url = url.replace("postgres://", "postgresql://", 1)
        return url.replace("postgresql://", "postgresql+asyncpg://", 1)


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
