"""
Configuration and settings for the NexByte site backend.
"""

from __future__ import annotations

from functools import lru_cache
from typing import Literal, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Environment-backed settings for the FastAPI service."""

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )

    api_prefix: str = Field(default="/api")
    log_level: str = Field(default="INFO")

    # Document store. mongodb:// URLs select MongoDB, anything else is
    # handed to SQLAlchemy, unset falls back to the in-memory store.
    database_url: Optional[str] = Field(default=None)
    database_name: str = Field(default="nexbyteind_db_user")
    mongo_transactions: bool = Field(default=False)
    mongo_timeout_ms: int = Field(default=5000)

    # Development toggles
    use_in_memory_backends: bool = Field(default=False)

    # HTTP surface
    cors_origins: list[str] = Field(default_factory=lambda: ["*"])
    static_dir: str = Field(default="public")

    # Outgoing email (SMTP)
    smtp_host: Optional[str] = Field(default=None)
    smtp_port: int = Field(default=465)
    smtp_username: Optional[str] = Field(default=None)
    smtp_password: Optional[str] = Field(default=None)
    smtp_use_ssl: bool = Field(default=True)
    email_from: Optional[str] = Field(default=None)
    email_brand: str = Field(default="NexByte")

    # "background" sends after the response in-process, "queue" hands the
    # outbox id to the worker.
    email_dispatch: Literal["background", "queue"] = Field(default="background")
    redis_url: Optional[str] = Field(default=None)
    redis_queue_key: str = Field(default="nexbyte:email-outbox")


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return cached settings instance."""
    return Settings()
