"""Settings for the embedding client (Voyage AI)."""

from __future__ import annotations

from functools import lru_cache
from typing import Optional

from pydantic import Field, NonNegativeFloat, PositiveFloat, PositiveInt, SecretStr, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class EmbeddingSettings(BaseSettings):
    """Environment-driven configuration for embedding generation."""

    model_config = SettingsConfigDict(
        case_sensitive=False,
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        frozen=True,
        populate_by_name=True,
    )

    api_key: Optional[SecretStr] = Field(None, alias="VOYAGEAI_API_KEY", description="Voyage AI API key")
    model: str = Field("voyage-3", alias="VOYAGEAI_EMBEDDING_MODEL", description="Embedding model name")
    endpoint: str = Field(
        "https://api.voyageai.com/v1/embeddings",
        alias="VOYAGEAI_ENDPOINT",
        description="Embeddings REST endpoint",
    )
    request_timeout_seconds: PositiveFloat = Field(
        30.0,
        alias="EMBEDDING_REQUEST_TIMEOUT_SECONDS",
        description="HTTP request timeout in seconds",
    )
    pacing_seconds: NonNegativeFloat = Field(
        20.0,
        alias="EMBEDDING_PACING_SECONDS",
        description="Fixed delay before every attempt (provider RPM budget)",
    )
    backoff_seconds: NonNegativeFloat = Field(
        20.0,
        alias="EMBEDDING_BACKOFF_SECONDS",
        description="Backoff seed when no retry-after hint is given",
    )
    backoff_max_seconds: NonNegativeFloat = Field(
        60.0,
        alias="EMBEDDING_BACKOFF_MAX_SECONDS",
        description="Backoff ceiling",
    )
    max_retries: PositiveInt = Field(3, alias="EMBEDDING_MAX_RETRIES", description="Attempts before giving up on throttling")
    max_input_chars: PositiveInt = Field(
        32_000,
        alias="EMBEDDING_MAX_INPUT_CHARS",
        description="Input is truncated to this many characters",
    )

    @field_validator("model")
    @classmethod
    def _non_empty_model(cls, v: str) -> str:
        s = v.strip()
        if not s:
            raise ValueError("VOYAGEAI_EMBEDDING_MODEL must not be blank")
        return s


@lru_cache()
def get_embedding_settings() -> EmbeddingSettings:
    try:
        return EmbeddingSettings()
    except ValidationError as exc:
        raise RuntimeError(f"embedding settings validation failed: {exc}") from exc


def reset_embedding_settings_cache() -> None:
    get_embedding_settings.cache_clear()  # type: ignore[attr-defined]
