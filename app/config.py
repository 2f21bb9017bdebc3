"""
Settings for the Research Compass backend.

Values come from the environment or a .env file. The OpenAI key is optional at
startup; AI calls fail with a configuration error until it is set.
"""

from functools import lru_cache
from typing import Literal, Union
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Runtime settings, grouped by the subsystem that reads them."""

    # Application
    app_name: str = Field(
        default="Research Compass",
        description="Name of the application"
    )
    app_version: str = Field(
        default="0.1.0",
        description="Application version"
    )
    environment: Literal["development", "production", "test"] = Field(
        default="development",
        description="Runtime environment"
    )
    debug: bool = Field(
        default=False,
        description="Enable debug mode"
    )
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO",
        description="Logging level"
    )

    # API Settings
    api_v1_prefix: str = Field(
        default="/api/v1",
        description="API version 1 URL prefix"
    )
    cors_origins: Union[str, list[str]] = Field(
        default="http://localhost:5173,http://localhost:3000",
        description="Allowed CORS origins (Vite dev server by default)"
    )

    # Redis Settings
    redis_url: str = Field(
        default="redis://localhost:6379/0",
        description="Redis URL for analysis session storage"
    )
    session_ttl_seconds: int = Field(
        default=3600,
        ge=60,
        le=86400,
        description="Session TTL in seconds (1 hour default, min 1 min, max 24 hours)"
    )

    # OpenAI Settings
    openai_api_key: str | None = Field(
        default=None,
        description="OpenAI API key. Requests fail with a configuration error when missing"
    )
    openai_model: str = Field(
        default="gpt-4o-mini",
        description="OpenAI model used for analysis, trend and translation calls"
    )
    openai_max_tokens: int = Field(
        default=8000,
        ge=100,
        le=16000,
        description="Max output tokens for OpenAI completions"
    )
    openai_timeout_seconds: float = Field(
        default=120.0,
        ge=5.0,
        le=600.0,
        description="Transport timeout for a single OpenAI call"
    )

    # Analysis pipeline
    analysis_max_retries: int = Field(
        default=3,
        ge=0,
        le=3,
        description="Retries for analysis and trend calls on transient failures"
    )
    translation_max_retries: int = Field(
        default=1,
        ge=0,
        le=3,
        description="Retries for translation calls"
    )
    retry_initial_delay_ms: int = Field(
        default=1000,
        ge=0,
        le=30000,
        description="First backoff wait in milliseconds; doubles on every retry"
    )
    payload_max_chars: int = Field(
        default=300_000,
        ge=1000,
        description="Hard ceiling for the shaped paper payload"
    )
    title_only_threshold: int = Field(
        default=100,
        ge=1,
        description="Above this many papers only id, year and title are sent"
    )
    trend_max_chars: int = Field(
        default=25_000,
        ge=20_000,
        le=25_000,
        description="Hotspot corpus is cut at this many characters"
    )
    translation_target_language: str = Field(
        default="Simplified Chinese",
        description="Target language for hover translations"
    )

    # PubMed E-utilities
    pubmed_email: str | None = Field(
        default=None,
        description="Contact email sent to NCBI with every request"
    )
    pubmed_api_key: str | None = Field(
        default=None,
        description="NCBI API key (optional, raises rate limit from 3 to 10 req/s)"
    )
    pubmed_tool: str = Field(
        default="research-compass",
        description="Tool name reported to NCBI"
    )
    pubmed_batch_size: int = Field(
        default=200,
        ge=1,
        le=500,
        description="Max PMIDs per efetch request"
    )
    pubmed_batch_pause_seconds: float = Field(
        default=0.3,
        ge=0.0,
        le=5.0,
        description="Pause between efetch batches"
    )

    # Uploads
    max_file_size_mb: int = Field(
        default=10,
        ge=1,
        le=50,
        description="Maximum file upload size in MB"
    )
    allowed_file_types: list[str] = Field(
        default=["json", "csv"],
        description="Allowed file types for paper upload"
    )

    model_config = SettingsConfigDict(
        env_file=(".env", "../.env"),
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    @field_validator("cors_origins", mode="before")
    @classmethod
    def parse_cors_origins(cls, v):
        """Parse CORS origins from comma-separated string or list."""
        if isinstance(v, str):
            return [origin.strip() for origin in v.split(",") if origin.strip()]
        return v

    @field_validator("allowed_file_types", mode="before")
    @classmethod
    def parse_allowed_file_types(cls, v):
        """Parse allowed file types from comma-separated string or list."""
        if isinstance(v, str):
            return [ft.strip().lower() for ft in v.split(",")]
        return v


@lru_cache()
def get_settings() -> Settings:
    """Return the process-wide Settings, built on first use."""
    return Settings()
