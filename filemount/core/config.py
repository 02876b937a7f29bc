from __future__ import annotations

from functools import lru_cache
from pathlib import Path

from pydantic import Field, computed_field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    environment: str = Field(default="development", validation_alias="ENVIRONMENT")

    upload_root: str = Field(default="public", validation_alias="FILEMOUNT_ROOT")
    store_dir: str = Field(default="uploads", validation_alias="FILEMOUNT_STORE_DIR")
    cache_dir: str = Field(default="uploads/tmp", validation_alias="FILEMOUNT_CACHE_DIR")
    base_url: str = Field(default="", validation_alias="FILEMOUNT_BASE_URL")
    default_locale: str = Field(default="en", validation_alias="FILEMOUNT_LOCALE")
    remove_previous_files: bool = Field(
        default=True,
        validation_alias="FILEMOUNT_REMOVE_PREVIOUS_FILES",
    )

    storage_retry_attempts: int = Field(
        default=3,
        ge=1,
        validation_alias="FILEMOUNT_STORAGE_RETRY_ATTEMPTS",
    )
    storage_retry_backoff_seconds: float = Field(
        default=0.05,
        ge=0,
        validation_alias="FILEMOUNT_STORAGE_RETRY_BACKOFF",
    )

    database_url: str = Field(
        default="sqlite+aiosqlite:///:memory:",
        validation_alias="DATABASE_URL",
    )

    @computed_field
    @property
    def root_path(self) -> str:
        root = Path(self.upload_root)
        if not root.is_absolute():
            root = Path.cwd() / root
        return str(root)


@lru_cache
def get_settings() -> Settings:
    return Settings()
