# sessionshare/config.py
"""
Centralized application configuration using pydantic-settings.

All settings are read from environment variables or .env file.
Components take a Settings instance explicitly; get_settings() is the
process-wide default used by the server entrypoints.
"""

import os
from functools import lru_cache
from typing import List, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


PROJECT_ROOT: str = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    Priority: environment variables > .env file > defaults
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",  # Ignore unknown env vars
    )

    # --- Database ---
    DB_URL: str = Field(
        default="postgresql://localhost:5432/sessionshare",
        description="Database connection URL (PostgreSQL or SQLite)"
    )
    DB_POOL_SIZE: int = Field(default=5, description="Connection pool size")
    DB_MAX_OVERFLOW: int = Field(default=15, description="Extra connections above pool size")

    # --- Redis (background compaction worker) ---
    REDIS_URL: str = Field(
        default="redis://localhost:6379/0",
        description="Redis connection URL"
    )

    # --- Server ---
    HOST: str = Field(default="127.0.0.1", description="Server bind host")
    PORT: int = Field(default=3006, description="Server bind port")
    PUBLIC_BASE_URL: Optional[str] = Field(
        default=None,
        description="Base URL for share links; derived from request headers when unset"
    )
    CORS_ORIGINS: List[str] = Field(default=["*"], description="Allowed CORS origins")
    RATE_LIMIT_API: int = Field(default=120, description="API requests per minute per client")
    RATE_LIMIT_GENERAL: int = Field(default=300, description="Other requests per minute per client")

    # --- Shares ---
    SECRET_BYTES: int = Field(default=32, description="Entropy of generated share secrets")
    COMPACTION_BATCH_SIZE: int = Field(default=100, description="Shares compacted per worker run")
    COMPACTION_CRON_MINUTES: List[int] = Field(
        default=[0, 10, 20, 30, 40, 50],
        description="Minutes of the hour at which the worker compacts stale shares"
    )

    # --- Debug / Logging ---
    DEBUG: bool = Field(default=False, description="Enable debug mode")
    LOG_LEVEL: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR)"
    )
    LOGS_PATH: str = Field(default=os.path.join(PROJECT_ROOT, "logs"))
    OTEL_ENABLED: bool = Field(default=False, description="Enable OpenTelemetry tracing")
    SERVICE_NAME: str = Field(default="session-share")

    @field_validator("LOG_LEVEL")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        allowed = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        v_upper = v.upper()
        if v_upper not in allowed:
            raise ValueError(f"LOG_LEVEL must be one of {allowed}")
        return v_upper

    @field_validator("SECRET_BYTES")
    @classmethod
    def validate_secret_bytes(cls, v: int) -> int:
        if v < 16:
            raise ValueError("SECRET_BYTES must be at least 16")
        return v


@lru_cache
def get_settings() -> Settings:
    """Return cached Settings instance (singleton pattern)."""
    return Settings()
