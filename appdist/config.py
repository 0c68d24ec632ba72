"""
Configuration and settings for the distribution backend.
"""

from __future__ import annotations

from functools import lru_cache
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

MAX_UPLOAD_BYTES = 500 * 1024 * 1024


class Settings(BaseSettings):
    """Environment-backed settings for the FastAPI service."""

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )

    api_prefix: str = Field(default="/api")
    environment: str = Field(default="production")
    log_level: str = Field(default="INFO")
    # Comma-separated, e.g. "https://admin.example.com,https://ci.example.com"
    cors_origins: str = Field(default="*")

    # Document store: any SQLAlchemy URL (Postgres expected)
    database_url: Optional[str] = Field(default=None)

    # S3-compatible storage
    s3_endpoint: Optional[str] = Field(default=None)
    s3_region: Optional[str] = Field(default=None)
    s3_bucket: Optional[str] = Field(default=None)
    aws_access_key_id: Optional[str] = Field(default=None)
    aws_secret_access_key: Optional[str] = Field(default=None)
    s3_public_base_url: Optional[str] = Field(default=None)
    storage_timeout_seconds: float = Field(default=120.0, gt=0)

    # Local disk storage, served at /files
    local_upload_dir: Optional[str] = Field(default=None)
    public_base_url: str = Field(default="http://localhost:8000")

    max_upload_bytes: int = Field(default=MAX_UPLOAD_BYTES, gt=0)

    # Development toggles
    use_in_memory_backends: bool = Field(default=False)

    @property
    def cors_origin_list(self) -> list[str]:
        return [o.strip() for o in self.cors_origins.split(",") if o.strip()]

    @property
    def is_development(self) -> bool:
        return self.environment.lower() == "development"


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return cached settings instance."""
    return Settings()
