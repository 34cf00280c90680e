"""Runtime settings loaded from ``HOMECLOUD_*`` environment variables."""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path

from pydantic import Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_SECRET_KEY = "homecloud-development-secret-change-me"


class Settings(BaseSettings):
    """Deployment configuration for a single homecloud instance."""

    database_url: str = "sqlite+aiosqlite:///homecloud.db"
    storage_dir: Path = Path("storage")
    secret_key: SecretStr = SecretStr(DEFAULT_SECRET_KEY)
    token_ttl_seconds: int = Field(default=7 * 24 * 3600, gt=0)
    bcrypt_rounds: int = Field(default=12, ge=4, le=31)
    max_upload_bytes: int = Field(default=100 * 1024 * 1024, gt=0)
    blob_timeout_seconds: float = Field(default=30.0, gt=0)
    recent_limit: int = Field(default=20, gt=0)
    min_password_length: int = Field(default=6, ge=1)
    echo_sql: bool = False

    model_config = SettingsConfigDict(
        env_prefix="HOMECLOUD_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    @property
    def uses_default_secret(self) -> bool:
        return self.secret_key.get_secret_value() == DEFAULT_SECRET_KEY


@lru_cache
def get_settings() -> Settings:
    return Settings()
