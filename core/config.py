"""
Application configuration using Pydantic settings.

Usage:
    from core.config import get_settings
    settings = get_settings()

For protocol constants, import from packages.shared.constants:
    from packages.shared.constants import MIN_INTERVAL_MS, FAILURE_THRESHOLD
"""

from functools import lru_cache
from typing import List, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from packages.shared.constants import FAILURE_THRESHOLD, MIN_INTERVAL_MS


class Settings(BaseSettings):
    """
    Unified application settings loaded from environment variables and .env file.

    Required for production:
        - REDIS_HOST / REDIS_PASSWORD (event bus)
    """
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # App settings
    app_name: str = "GitHub Notification Bridge"
    debug: bool = Field(default=False)
    log_level: str = Field(default="INFO", validation_alias="LOG_LEVEL")

    # GitHub REST API
    github_api_url: str = Field(default="https://api.github.com", validation_alias="GITHUB_API_URL")
    github_user_agent: str = Field(default="matrix-github v0.0.1", validation_alias="GITHUB_USER_AGENT")
    github_request_timeout: int = Field(default=30, validation_alias="GITHUB_REQUEST_TIMEOUT")
    github_max_concurrent: int = Field(default=5, validation_alias="GITHUB_MAX_CONCURRENT")

    # Redis
    redis_host: str = Field(default="localhost", validation_alias="REDIS_HOST")
    redis_port: int = Field(default=6379, validation_alias="REDIS_PORT")
    redis_db: int = Field(default=0, validation_alias="REDIS_DB")
    redis_password: Optional[str] = Field(default=None, validation_alias="REDIS_PASSWORD")

    @property
    def redis_url(self) -> str:
        """Construct Redis URL from components."""
        auth = f":{self.redis_password}@" if self.redis_password else ""
        return f"redis://{auth}{self.redis_host}:{self.redis_port}/{self.redis_db}"

    # Event bus
    queue_stream_key: str = Field(default="bridge:events", validation_alias="QUEUE_STREAM_KEY")
    queue_max_len: int = Field(default=100000, validation_alias="QUEUE_MAX_LEN")

    # Notification polling
    poll_interval_seconds: float = Field(default=15.0, ge=0, validation_alias="POLL_INTERVAL_SECONDS")
    min_poll_interval_ms: int = Field(default=MIN_INTERVAL_MS, ge=0, validation_alias="MIN_POLL_INTERVAL_MS")
    failure_threshold: int = Field(default=FAILURE_THRESHOLD, ge=0, validation_alias="FAILURE_THRESHOLD")
    reset_failures_on_success: bool = Field(default=False, validation_alias="RESET_FAILURES_ON_SUCCESS")

    @field_validator("github_api_url")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        """Paths are joined with a leading slash, so drop any trailing one."""
        return v.rstrip("/")

    @field_validator("log_level")
    @classmethod
    def normalize_log_level(cls, v: str) -> str:
        level = v.upper()
        if level not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            raise ValueError(f"Unknown LOG_LEVEL '{v}'")
        return level

    def validate_production_config(self) -> tuple[List[str], List[str]]:
        """
        Validate configuration for production deployment.

        Returns:
            Tuple of (errors, warnings) - errors are fatal, warnings are advisory
        """
        errors = []
        warnings = []

        if self.debug:
            warnings.append("DEBUG is enabled")
        if not self.redis_password and self.redis_host not in ("localhost", "127.0.0.1"):
            warnings.append("REDIS_PASSWORD not set for a remote Redis host")
        if self.min_poll_interval_ms < MIN_INTERVAL_MS:
            warnings.append(
                f"MIN_POLL_INTERVAL_MS={self.min_poll_interval_ms} is below the "
                f"GitHub-friendly minimum of {MIN_INTERVAL_MS}ms"
            )
        if self.failure_threshold == 0:
            errors.append("FAILURE_THRESHOLD=0 disables every stream on its first failure")

        return errors, warnings


@lru_cache
def get_settings() -> Settings:
    """Get cached application settings."""
    return Settings()


__all__ = ["Settings", "get_settings"]
