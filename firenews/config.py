"""Application configuration loaded from config.yaml and environment variables."""

from __future__ import annotations

import tempfile
from enum import StrEnum
from functools import lru_cache
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings

PROJECT_ROOT = Path(__file__).resolve().parent.parent
CONFIG_YAML_PATH = PROJECT_ROOT / "config.yaml"


# --- YAML sub-models ---


class FeedConfig(BaseModel):
    """RSS feed entry.

    ``strict`` feeds are already scoped to the topic by their query and skip
    keyword filtering.
    """

    name: str
    url: str
    strict: bool = False


class TopicConfig(BaseModel):
    """Topic keywords used to filter general-purpose feeds."""

    label: str = "Altadena & Eaton Fire"
    keywords: list[str] = Field(
        default_factory=lambda: [
            "altadena",
            "eaton fire",
            "eaton canyon fire",
            "pasadena fire",
            "altadena rebuild",
            "altadena recovery",
            "san gabriel valley fire",
            "la county fire",
        ]
    )


class AggregatorConfig(BaseModel):
    """Source fan-out and merge parameters."""

    max_records: int = 25
    fetch_timeout_seconds: float = 10.0
    user_agent: str = (
        "Mozilla/5.0 (compatible; AltadenaDigest/1.0; "
        "+https://github.com/johntmayo/firenews)"
    )


class ResearchConfig(BaseModel):
    """Perplexity research source settings."""

    api_url: str = "https://api.perplexity.ai/chat/completions"
    model: str = "sonar-pro"
    recency_filter: str = "day"
    timeout_seconds: float = 30.0
    prompt: str = (
        "Find all news articles from the past 24 hours about: Altadena California "
        "fire recovery, Eaton Fire damage or insurance claims, Altadena rebuild "
        "permits or debris removal, LA County fire recovery resources, air quality "
        "in Pasadena or Altadena after the Eaton Fire. For each item give: the "
        "headline, then a dash, then the publication name and a one-sentence "
        "summary. Number each item."
    )


class FreshnessConfig(BaseModel):
    """Civil time zone that defines "today" for the digest."""

    timezone: str = "America/Los_Angeles"


class ScheduleConfig(BaseModel):
    """Scheduler timing settings."""

    daily_refresh_hour: int = 6
    daily_refresh_minute: int = 0


class StoreBackend(StrEnum):
    """Digest store implementations."""

    SUPABASE = "supabase"
    LOCAL = "local"


class StoreConfig(BaseModel):
    """Digest store settings."""

    backend: StoreBackend = StoreBackend.LOCAL
    artifact_name: str = "altadena-digest"
    table: str = "digest_cache"
    lock_table: str = "digest_refresh_locks"
    local_path: str = str(Path(tempfile.gettempdir()) / "firenews-digest.json")
    reservation_ttl_seconds: int = 300


class GeminiConfig(BaseModel):
    """Gemini model configuration."""

    model: str = "gemini-2.5-flash"
    max_attempts: int = 1
    max_output_tokens: int = 3000


# --- Main settings ---


class Settings(BaseSettings):
    """Application settings combining .env secrets and config.yaml values."""

    # App config
    env: str = Field(default="dev")
    log_format: str = Field(default="text")
    enable_internal_scheduler: bool = Field(default=True)
    cors_origins: str = Field(default="http://localhost:3000")

    # Secrets from .env
    gemini_api_key: str = Field(default="")
    perplexity_api_key: str = Field(default="")
    supabase_url: str = Field(default="")
    supabase_service_role_key: str = Field(default="")
    refresh_secret: str = Field(default="")

    # YAML-sourced config
    feeds: list[FeedConfig] = Field(default_factory=list)
    topic: TopicConfig = Field(default_factory=TopicConfig)
    aggregator: AggregatorConfig = Field(default_factory=AggregatorConfig)
    research: ResearchConfig = Field(default_factory=ResearchConfig)
    freshness: FreshnessConfig = Field(default_factory=FreshnessConfig)
    schedule: ScheduleConfig = Field(default_factory=ScheduleConfig)
    store: StoreConfig = Field(default_factory=StoreConfig)
    gemini: GeminiConfig = Field(default_factory=GeminiConfig)

    model_config = {
        "env_file": str(PROJECT_ROOT / ".env"),
        "env_file_encoding": "utf-8",
        "extra": "ignore",
    }

    def __init__(self, **kwargs: Any) -> None:
        yaml_data = _load_yaml_config()
        merged = {**yaml_data, **kwargs}
        super().__init__(**merged)

    @property
    def cors_origin_list(self) -> list[str]:
        """Split the comma-separated CORS origins."""
        return [o.strip() for o in self.cors_origins.split(",") if o.strip()]


def _load_yaml_config() -> dict[str, Any]:
    """Read and parse config.yaml, returning an empty dict on failure."""
    if not CONFIG_YAML_PATH.exists():
        return {}
    with CONFIG_YAML_PATH.open(encoding="utf-8") as f:
        data = yaml.safe_load(f)
    return data if isinstance(data, dict) else {}


@lru_cache
def get_settings() -> Settings:
    """Return cached application settings singleton."""
    return Settings()
