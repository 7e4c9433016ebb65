"""
FireSim Configuration

Pydantic settings for the generation service. Values come from the
environment (prefixed ``FIRESIM_``) or a local ``.env`` file.
"""

from functools import lru_cache
from pathlib import Path
from typing import List, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings."""

    model_config = SettingsConfigDict(
        env_prefix="FIRESIM_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Server
    host: str = Field(default="0.0.0.0")
    port: int = Field(default=8000)
    debug: bool = Field(default=False)
    cors_origins: List[str] = Field(
        default=["http://localhost:5173", "http://127.0.0.1:5173"]
    )
    rate_limit: str = Field(default="10/minute")

    # Logging
    log_level: str = Field(default="INFO")
    log_file: Optional[Path] = Field(default=None)

    # Image model
    gemini_api_key: str = Field(default="")
    image_model: str = Field(default="gemini-3-pro-image-preview")
    image_api_base_url: str = Field(
        default="https://generativelanguage.googleapis.com/v1beta"
    )
    image_output_dir: Path = Field(default=Path("output/images"))

    # Orchestration
    max_concurrent_images: int = Field(default=3, ge=1, le=10)
    max_retries: int = Field(default=2, ge=0)
    retry_base_delay: float = Field(default=2.0, ge=0.0)
    image_timeout_seconds: float = Field(default=180.0, gt=0)
    job_timeout_seconds: float = Field(default=1800.0, gt=0)

    # Persistence
    job_store_dir: Optional[Path] = Field(default=None)
    finished_job_ttl: float = Field(default=600.0, gt=0)
    finished_job_cache_size: int = Field(default=512, ge=1)

    # Prompt cache
    prompt_cache_ttl: float = Field(default=3600.0, gt=0)
    prompt_cache_size: int = Field(default=256, ge=1)

    @field_validator("log_level")
    @classmethod
    def _normalise_log_level(cls, value: str) -> str:
        value = value.upper()
        if value not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            raise ValueError(f"Unknown log level: {value}")
        return value


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
