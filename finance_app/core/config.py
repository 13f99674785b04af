"""
Application configuration models and helpers.

Centralizes settings management so both the FastAPI app and the insight
pipeline workers can share a consistent configuration surface.
"""

from functools import lru_cache
from pathlib import Path
from typing import Optional

import os

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


def _load_env_file(path: str = ".env") -> None:
    """Best-effort load key=value pairs from a .env file without extra deps."""
    env_path = Path(path)
    if not env_path.exists():
        return
    for raw_line in env_path.read_text().splitlines():
        line = raw_line.strip()
        if not line or line.startswith("#"):
            continue
        key, sep, value = line.partition("=")
        if not sep:
            continue
        key = key.strip()
        if not key or key in os.environ:
            continue
        cleaned = value.strip().strip('"').strip("'")
        os.environ[key] = cleaned


_load_env_file()


class GeminiSettings(BaseSettings):
    """Configuration for Gemini model access."""

    model_config = SettingsConfigDict(populate_by_name=True)

    api_key: str = Field(..., validation_alias="GEMINI_API_KEY")
    model_name: str = Field("gemini-2.0-flash", validation_alias="GEMINI_MODEL_NAME")
    max_output_tokens: int = Field(4000, validation_alias="GEMINI_MAX_OUTPUT_TOKENS")
    temperature: float = Field(0.3, validation_alias="GEMINI_TEMPERATURE")


class InsightSettings(BaseSettings):
    """Tuning knobs for insight caching, retention, and enrichment."""

    model_config = SettingsConfigDict(populate_by_name=True)

    staleness_hours: int = Field(
        24,
        validation_alias="INSIGHTS_STALENESS_HOURS",
        description="Age after which a cached analysis is considered stale.",
    )
    max_analyses_per_type: int = Field(
        5,
        validation_alias="INSIGHTS_MAX_PER_TYPE",
        description="Number of historical analyses kept per user and insight type.",
    )
    single_flight: bool = Field(
        True,
        validation_alias="INSIGHTS_SINGLE_FLIGHT",
        description=(
            "Share one in-flight generation between concurrent requests for the "
            "same user and insight type within a process."
        ),
    )
    max_search_stocks: int = Field(5, validation_alias="INSIGHTS_MAX_SEARCH_STOCKS")
    max_search_funds: int = Field(3, validation_alias="INSIGHTS_MAX_SEARCH_FUNDS")

    @field_validator("staleness_hours", "max_analyses_per_type")
    @classmethod
    def _positive(cls, value: int) -> int:
        if value < 1:
            raise ValueError("must be at least 1")
        return value


class AppSettings(BaseSettings):
    """Root settings object for the FastAPI application."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        populate_by_name=True,
        extra="ignore",
    )

    environment: str = Field("development", validation_alias="APP_ENV")
    log_level: str = Field("INFO", validation_alias="APP_LOG_LEVEL")
    database_path: str = Field(
        "data/finance.db",
        validation_alias="FINANCE_DB_PATH",
        description="SQLite file backing documents, analyses, and the job queue.",
    )
    gemini: GeminiSettings = Field(default_factory=GeminiSettings)
    insights: InsightSettings = Field(default_factory=InsightSettings)
    serpapi_api_key: Optional[str] = Field(
        None,
        validation_alias="SERPAPI_API_KEY",
        description="Optional SerpAPI key used for market context enrichment.",
    )


@lru_cache()
def get_settings() -> AppSettings:
    """Return a cached settings object."""
    return AppSettings()  # type: ignore[call-arg]


__all__ = [
    "AppSettings",
    "GeminiSettings",
    "InsightSettings",
    "get_settings",
]
