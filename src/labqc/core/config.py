"""Centralized library settings using pydantic-settings.

All environment variable reads are consolidated here. Import `get_settings`
from this module rather than reading os.environ directly.
"""

from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Library settings loaded from environment variables.

    All env vars are prefixed with LABQC_ (case-insensitive).
    """

    model_config = SettingsConfigDict(
        env_prefix="LABQC_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Limit establishment
    min_points: int = Field(20, ge=1)
    max_z_for_limits: float = Field(2.0, gt=0)

    # CUSUM defaults for new rule configurations
    cusum_k: float = Field(0.5, ge=0)
    cusum_h: float = Field(4.0, gt=0)

    # Logging
    log_format: str = "console"
    log_level: str = "INFO"


@lru_cache
def get_settings() -> Settings:
    """Return the cached settings singleton."""
    return Settings()
