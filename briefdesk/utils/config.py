"""
Configuration Management

Uses Pydantic Settings for environment-based configuration.
Loads from .env file automatically.
"""

from dataclasses import dataclass
from typing import Optional
from functools import lru_cache
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment."""

    # Networked key-value service (REST, native TTL + sorted sets)
    KV_REST_API_URL: Optional[str] = None
    KV_REST_API_TOKEN: Optional[str] = None

    # Standard Redis (KV_URL wins over REDIS_URL)
    KV_URL: Optional[str] = None
    REDIS_URL: Optional[str] = None

    # Hosting environment
    VERCEL: Optional[str] = None
    ENVIRONMENT: str = "development"
    LOG_LEVEL: str = "INFO"

    # Local file storage root
    DATA_DIR: str = "data"

    # Claude API (Required for report jobs)
    ANTHROPIC_API_KEY: Optional[str] = None
    CLAUDE_MODEL: str = "claude-sonnet-4-20250514"

    # Retention and timeouts
    JOB_TTL_SECONDS: int = 3600
    BRIEF_RETENTION_DAYS: int = 90
    SOURCE_FETCH_TIMEOUT: float = 15.0
    STORAGE_TIMEOUT: float = 10.0

    # Capability check for destructive endpoints
    ADMIN_TOKEN: Optional[str] = None

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "ignore"  # Ignore extra fields in .env file
        case_sensitive = False  # Allow both UPPERCASE and lowercase

    @property
    def is_managed_environment(self) -> bool:
        """True on a hosted deployment (no writable local disk)."""
        return bool(self.VERCEL) or self.ENVIRONMENT.lower() == "production"


@dataclass(frozen=True)
class StorageConfig:
    """
    Inputs to storage backend selection.

    Kept separate from Settings so selection can be exercised with plain
    values instead of process environment.
    """
    rest_url: Optional[str] = None
    rest_token: Optional[str] = None
    redis_url: Optional[str] = None
    managed_environment: bool = False
    data_dir: str = "data"
    timeout: float = 10.0

    @classmethod
    def from_settings(cls, settings: Settings) -> "StorageConfig":
        return cls(
            rest_url=settings.KV_REST_API_URL,
            rest_token=settings.KV_REST_API_TOKEN,
            redis_url=settings.KV_URL or settings.REDIS_URL,
            managed_environment=settings.is_managed_environment,
            data_dir=settings.DATA_DIR,
            timeout=settings.STORAGE_TIMEOUT,
        )


@lru_cache
def get_settings() -> Settings:
    """Get or create cached settings instance."""
    return Settings()
