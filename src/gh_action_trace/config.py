"""Application configuration management using Pydantic Settings.

This module defines the `Settings` class, which loads configuration from
environment variables and a `.env` file: GitHub API access, run selection,
concurrency bounds, OTLP exporter behavior and logging.

Only the CLI reads settings. The conversion engine receives explicit values
(token, counts, bounds) at construction and never looks anything up globally.
"""
from __future__ import annotations

from functools import lru_cache
from typing import Any, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings
from pydantic_settings import SettingsConfigDict as _SettingsConfigDict


class Settings(BaseSettings):
    """Defines all application configuration parameters."""

    model_config = _SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # GitHub
    GITHUB_ACCESS_TOKEN: Optional[str] = Field(
        default=None,
        description="Token for the GitHub API. Without one requests are unauthenticated "
        "and heavily rate limited.",
    )
    GITHUB_API_URL: str = Field(
        default="https://api.github.com", description="Base URL of the GitHub REST API"
    )
    GITHUB_TIMEOUT: float = Field(default=30.0, description="Timeout (seconds) per API request")
    GITHUB_REQUESTS_PER_SECOND: float = Field(
        default=8.0, gt=0, description="Client-side request rate limit shared by all workflows"
    )
    GITHUB_MAX_ATTEMPTS: int = Field(
        default=5, ge=1, description="Attempts per API request before giving up"
    )

    # Run selection & concurrency
    RUNS_PER_WORKFLOW: int = Field(
        default=30, ge=1, description="Number of runs to retrieve per workflow"
    )
    MAX_CONCURRENT_WORKFLOWS: int = Field(
        default=8, ge=1, description="Maximum number of workflows processed at the same time"
    )
    # Use Any type to prevent Pydantic Settings JSON decoding; validator converts to list[str]
    FILTER_WORKFLOWS: Any = Field(
        default_factory=list,
        description=(
            "Optional comma-separated list of workflow ids or names to restrict "
            "processing to. Empty list (default) means every workflow."
        ),
    )

    # OTLP
    OTEL_EXPORTER_OTLP_ENDPOINT: str = Field(
        default="http://localhost:4318/v1/traces",
        description="OTLP/HTTP traces endpoint (Jaeger, Tempo, collector, ...)",
    )
    OTEL_EXPORTER_OTLP_TIMEOUT: int = Field(
        default=30, description="Timeout (seconds) for OTLP HTTP export requests"
    )
    OTEL_SERVICE_NAME: Optional[str] = Field(
        default=None, description="service.name resource attribute (default: owner/repo)"
    )
    OTEL_MAX_QUEUE_SIZE: int = Field(
        default=10000, description="BatchSpanProcessor max queue size for spans"
    )
    OTEL_MAX_EXPORT_BATCH_SIZE: int = Field(
        default=512, description="Maximum number of spans per export batch"
    )
    OTEL_SCHEDULED_DELAY_MILLIS: int = Field(
        default=200, description="BatchSpanProcessor scheduled delay in milliseconds before a flush"
    )

    # Logging & runtime behavior
    LOG_LEVEL: str = Field(default="INFO", description="Logging level")
    DRY_RUN: bool = Field(
        default=False,
        description="If true, build spans but do not export them (logging only)",
    )

    @field_validator("FILTER_WORKFLOWS", mode="before")
    @classmethod
    def parse_comma_separated(cls, v: str | list[str] | None) -> list[str]:
        """Parse comma-separated string into list of stripped strings.

        Supports both direct list input (from code/tests) and comma-separated
        string input (from environment variables). Empty strings result in
        empty list.
        """
        if isinstance(v, list):
            return [str(s).strip() for s in v if str(s).strip()]
        if isinstance(v, str):
            return [s.strip() for s in v.split(",") if s.strip()]
        return []

    @field_validator("GITHUB_ACCESS_TOKEN", "OTEL_SERVICE_NAME", mode="before")
    @classmethod
    def blank_to_none(cls, v: Any) -> Optional[str]:
        """Treat blank values (``GITHUB_ACCESS_TOKEN=``) as unset."""
        if v is None:
            return None
        if isinstance(v, str):
            return v.strip() or None
        return v


@lru_cache(maxsize=1)
def get_settings() -> Settings:  # pragma: no cover - trivial
    """Return a cached, singleton instance of the application settings."""
    return Settings()
