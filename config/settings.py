"""
Application configuration using Pydantic Settings.
Loads from environment variables with .env file support.
"""

from functools import lru_cache
from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

MAX_PAGES_CEILING = 10


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # OpenAI (one key per worker slot, JSON array in the environment)
    openai_api_keys: list[str] = Field(
        default_factory=list,
        description='Recognition credentials, e.g. ["key1","key2"]',
    )
    openai_model: str = Field(
        default="gpt-4.1-mini", description="Model used for recognition"
    )
    openai_base_url: Optional[str] = Field(
        default=None, description="Custom API base URL"
    )

    # Chunking
    max_pages_per_chunk: int = Field(
        default=5, description="Pages per chunk (clamped to 10)"
    )

    # Rate limiting
    requests_before_break: int = Field(
        default=10, ge=0, description="Requests before a global pause (0 disables)"
    )
    break_duration_ms: int = Field(
        default=60000, ge=0, description="Length of the global pause"
    )
    failover_cooldown_ms: Optional[int] = Field(
        default=None,
        ge=0,
        description="Pause before retrying with the next key (defaults to break_duration_ms)",
    )

    # Directories
    temp_dir: str = Field(default="./temp_chunks", description="Scratch directory")
    output_dir: str = Field(default="./results", description="Output directory")
    keep_scratch: bool = Field(
        default=False, description="Keep per-chunk records after a run"
    )

    # Logging
    log_level: str = Field(default="INFO", description="Logging level")

    @field_validator("max_pages_per_chunk")
    @classmethod
    def clamp_pages_per_chunk(cls, value: int) -> int:
        if value < 1:
            raise ValueError("max_pages_per_chunk must be at least 1")
        return min(value, MAX_PAGES_CEILING)

    @property
    def cooldown_ms(self) -> int:
        """Failover cooldown, falling back to the global pause length."""
        if self.failover_cooldown_ms is None:
            return self.break_duration_ms
        return self.failover_cooldown_ms


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached settings instance.
    Uses lru_cache to ensure settings are only loaded once.
    """
    return Settings()
