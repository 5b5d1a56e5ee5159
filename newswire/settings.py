"""Configuration models for the ingestion service."""

from __future__ import annotations

import json
from functools import lru_cache
from typing import Any, Dict, List, Optional, Set

from pydantic import (
    BaseModel,
    Field,
    NonNegativeFloat,
    PositiveInt,
    ValidationError,
    field_validator,
)
from pydantic_settings import BaseSettings, SettingsConfigDict


class IngestionSchedule(BaseModel):
    """Represents a daily ingestion job for one source (or ``all``)."""

    source: str = Field(..., description="Source identifier, or 'all' for every configured source.")
    cron_hour: int = Field(2, ge=0, le=23, description="UTC hour of the daily run.")
    cron_minute: int = Field(0, ge=0, le=59, description="Minute of the daily run.")
    enabled: bool = Field(True, description="Whether the schedule is active.")

    @field_validator("source")
    @classmethod
    def _normalize_source(cls, value: str) -> str:
        source = value.strip().lower()
        if not source:
            raise ValueError("source must not be blank")
        return source


class SelectorSourceConfig(BaseModel):
    """CSS-selector driven source definition for ``HtmlSelectorAdapter``."""

    source: str = Field(..., description="Unique source identifier (e.g. joby_aviation).")
    company_name: str
    publication: str
    listing_urls: Dict[str, str] = Field(
        ...,
        description="Category name to listing page URL, enumerated in insertion order.",
    )
    item_selector: str
    link_selector: str = "a"
    title_selector: Optional[str] = None
    date_selector: Optional[str] = None
    content_selector: str = "article"
    content_title_selector: str = "h1"
    author_selector: Optional[str] = None
    published_selector: Optional[str] = "time"
    tag_selector: Optional[str] = None
    image_selector: Optional[str] = None
    drop_selectors: List[str] = Field(default_factory=list)
    max_candidates: Optional[PositiveInt] = None
    credibility_score: float = Field(0.9, ge=0.0, le=1.0)
    industry_focus: List[str] = Field(default_factory=list)
    language: str = "en"
    default_news_type: str = "news"

    @field_validator("source")
    @classmethod
    def _normalize_source(cls, value: str) -> str:
        source = value.strip().lower()
        if not source:
            raise ValueError("source must not be blank")
        return source

    @field_validator("listing_urls")
    @classmethod
    def _require_listing(cls, value: Dict[str, str]) -> Dict[str, str]:
        if not value:
            raise ValueError("listing_urls must contain at least one category")
        for category, url in value.items():
            if not url.startswith(("http://", "https://")):
                raise ValueError(f"listing url for {category} must be absolute: {url}")
        return value


def _parse_json_list(value: Any, env_name: str) -> List[Any]:
    if value in (None, "", []):
        return []
    if isinstance(value, str):
        try:
            parsed = json.loads(value)
        except json.JSONDecodeError as exc:
            raise ValueError(f"{env_name} must be a JSON array") from exc
        if not isinstance(parsed, list):
            raise ValueError(f"{env_name} must be a JSON array")
        return parsed
    if isinstance(value, list):
        return value
    raise ValueError(f"{env_name} must be a list")


class Settings(BaseSettings):
    """Environment settings for the ingestion pipeline."""

    model_config = SettingsConfigDict(
        case_sensitive=False,
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        frozen=True,
        populate_by_name=True,
    )

    redis_url: str = Field(
        "redis://localhost:6379/0",
        alias="INGESTION_REDIS_URL",
        description="Celery broker/backend Redis DSN.",
    )
    database_url: str = Field(..., alias="DATABASE_URL", description="SQLAlchemy DSN of the document store.")
    duplicate_threshold: PositiveInt = Field(
        5,
        alias="DUPLICATE_THRESHOLD",
        description="Consecutive duplicates before a source stops early.",
    )
    reset_tracker_per_category: bool = Field(
        False,
        alias="RESET_TRACKER_PER_CATEGORY",
        description="Use an independent duplicate tracker per category segment.",
    )
    stop_run_on_early_stop: bool = Field(
        False,
        alias="STOP_RUN_ON_EARLY_STOP",
        description="Abandon the remaining sources once one source stops early.",
    )
    item_delay_seconds: NonNegativeFloat = Field(2.0, alias="ITEM_DELAY_SECONDS", description="Delay between items.")
    source_delay_seconds: NonNegativeFloat = Field(
        5.0,
        alias="SOURCE_DELAY_SECONDS",
        description="Delay between sources.",
    )
    run_timeout_seconds: Optional[PositiveInt] = Field(
        None,
        alias="RUN_TIMEOUT_SECONDS",
        description="Run-level deadline; partial report is returned on expiry.",
    )
    http_timeout_seconds: PositiveInt = Field(30, alias="HTTP_TIMEOUT_SECONDS", description="Adapter HTTP timeout.")
    http_max_attempts: PositiveInt = Field(3, alias="HTTP_MAX_ATTEMPTS", description="Adapter HTTP attempts.")
    http_user_agent: str = Field(
        "Mozilla/5.0 (compatible; newswire/0.1)",
        alias="HTTP_USER_AGENT",
        description="User-Agent header for adapter requests.",
    )
    log_level: str = Field("INFO", alias="LOG_LEVEL", description="Root log level.")
    log_json: bool = Field(False, alias="LOG_JSON", description="Emit logs as JSON lines.")
    sources: List[SelectorSourceConfig] = Field(
        default_factory=list,
        alias="INGESTION_SOURCES",
        description="JSON array of selector source definitions.",
    )
    schedules: List[IngestionSchedule] = Field(
        default_factory=list,
        alias="INGESTION_SCHEDULES",
        description="JSON array of daily ingestion schedules.",
    )
    celery_worker_concurrency: PositiveInt = Field(
        1,
        alias="CELERY_WORKER_CONCURRENCY",
        description="Celery worker concurrency.",
    )
    celery_task_soft_time_limit: PositiveInt = Field(
        3600,
        alias="CELERY_TASK_SOFT_TIME_LIMIT",
        description="Celery soft time limit (seconds).",
    )

    @field_validator("sources", mode="before")
    @classmethod
    def _parse_sources(cls, value: Any) -> List[Any]:
        return _parse_json_list(value, "INGESTION_SOURCES")

    @field_validator("schedules", mode="before")
    @classmethod
    def _parse_schedules(cls, value: Any) -> List[Any]:
        return _parse_json_list(value, "INGESTION_SCHEDULES")

    @field_validator("sources")
    @classmethod
    def _validate_unique_sources(cls, value: List[SelectorSourceConfig]) -> List[SelectorSourceConfig]:
        seen: Set[str] = set()
        for item in value:
            if item.source in seen:
                raise ValueError(f"duplicate source definition: {item.source}")
            seen.add(item.source)
        return value

    @field_validator("schedules")
    @classmethod
    def _validate_unique_schedule(cls, value: List[IngestionSchedule]) -> List[IngestionSchedule]:
        seen: Set[str] = set()
        for schedule in value:
            if schedule.source in seen:
                raise ValueError(f"duplicate schedule entry: {schedule.source}")
            seen.add(schedule.source)
        return value

    @field_validator("database_url")
    @classmethod
    def _validate_database_url(cls, value: str) -> str:
        if "://" not in value:
            raise ValueError("DATABASE_URL must be a valid DSN")
        return value


@lru_cache()
def get_settings() -> Settings:
    """Return the Settings instance built from the environment."""
    try:
        return Settings()
    except ValidationError as exc:
        raise RuntimeError(f"environment validation failed: {exc}") from exc


def reset_settings_cache() -> None:
    """Clear the Settings LRU cache (for tests)."""
    get_settings.cache_clear()  # type: ignore[attr-defined]
