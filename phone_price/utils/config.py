"""Configuration management for the phone price service."""

from __future__ import annotations

import logging
from pathlib import Path

from dotenv import load_dotenv
from pydantic import Field, ValidationError, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class ConfigError(Exception):
    """Raised when configuration is invalid or missing."""


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    Configuration follows the precedence: environment variables -> .env file -> defaults.
    Credentials (service account key, OpenAI key) must come from the
    environment or the .env file.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Google Sheets
    spreadsheet_id: str = Field(
        ...,
        description="Google Sheets ID of the phone price table",
    )
    google_credentials_file: Path | None = Field(
        default=None,
        description="Path to a service account key file",
    )
    google_credentials_json: str | None = Field(
        default=None,
        description="Inline service account key (JSON string); wins over the key file",
    )
    sheet_range: str = Field(
        default="A1:N100",
        description="Cell range read from every worksheet",
    )
    sheet_fetch_timeout_seconds: float = Field(
        default=60.0,
        gt=0,
        le=540,
        description="Upper bound for fetching all worksheets of one request",
    )
    sheet_fetch_workers: int = Field(
        default=4,
        ge=1,
        le=32,
        description="Worksheets fetched in parallel",
    )
    record_cache_ttl_seconds: float = Field(
        default=0.0,
        ge=0,
        description="Reuse extracted records for this many seconds (0 disables the cache)",
    )

    # OpenAI (natural-language fallback)
    openai_api_key: str | None = Field(
        default=None,
        description="OpenAI API key; the fallback resolver is disabled without it",
    )
    llm_model: str = Field(
        default="gpt-4o-mini",
        description="OpenAI chat model used to understand informal questions",
    )
    llm_temperature: float = Field(
        default=0.1,
        ge=0.0,
        le=2.0,
        description="Temperature for LLM responses",
    )
    llm_timeout_seconds: float = Field(
        default=30.0,
        gt=0,
        le=300,
        description="Timeout for one fallback call",
    )
    query_parser_cache_size: int = Field(
        default=1000,
        ge=10,
        le=10000,
        description="Maximum number of fallback replies to cache (LRU)",
    )

    # Matching policy
    min_capacity: int = Field(
        default=64,
        ge=1,
        description="Numbers below this are never read as a storage capacity",
    )
    max_capacity: int = Field(
        default=2048,
        ge=1,
        description="Numbers above this are never read as a storage capacity",
    )
    model_list_limit: int = Field(
        default=10,
        ge=1,
        le=50,
        description="Model names shown when a question names no capacity",
    )
    brand_result_cap: int | None = Field(
        default=None,
        ge=1,
        description="Trim brand-only model lists longer than this by priority keywords (None keeps all)",
    )

    # API Configuration
    api_host: str = Field(
        default="0.0.0.0",
        description="FastAPI host binding",
    )
    api_port: int = Field(
        default=8000,
        ge=1024,
        le=65535,
        description="FastAPI port",
    )
    cors_origins: list[str] = Field(
        default_factory=lambda: ["*"],
        description="Origins allowed by the CORS middleware",
    )
    log_level: str = Field(
        default="INFO",
        description="Application log level",
    )
    expose_error_details: bool = Field(
        default=False,
        description="Include exception text in 500 responses (development only)",
    )

    @field_validator("log_level")
    @classmethod
    def _known_log_level(cls, value: str) -> str:
        level = value.strip().upper()
        if not isinstance(logging.getLevelName(level), int):
            raise ValueError(f"unknown log level {value!r}")
        return level

    @model_validator(mode="after")
    def _capacity_range(self) -> Settings:
        if self.min_capacity > self.max_capacity:
            raise ValueError(
                f"min_capacity ({self.min_capacity}) exceeds max_capacity ({self.max_capacity})"
            )
        return self


_settings: Settings | None = None


def load_settings(env_file: str | Path | None = None, reload: bool = False) -> Settings:
    """Load settings once and keep them for the rest of the process.

    An explicit ``env_file`` overrides variables already in the environment;
    the default ``.env`` lookup does not.

    Raises:
        ConfigError: If a value is missing or fails validation.
    """
    global _settings

    if _settings is None or reload:
        load_dotenv(dotenv_path=env_file, override=env_file is not None)
        try:
            _settings = Settings()
        except ValidationError as e:
            raise ConfigError(f"Invalid configuration: {e}") from e

    return _settings


def get_settings() -> Settings:
    """Return the settings loaded by ``load_settings``."""
    if _settings is None:
        raise ConfigError("Settings not loaded; call load_settings() first")
    return _settings
