"""Embedding module - Voyage AI client and settings."""

from newswire.embedding.client import (
    EmbeddingClient,
    EmbeddingError,
    EmbeddingProvider,
    RateLimitError,
    RateLimitExceeded,
    VoyageProvider,
)
from newswire.embedding.settings import EmbeddingSettings, get_embedding_settings, reset_embedding_settings_cache

__all__ = [
    "EmbeddingClient",
    "EmbeddingError",
    "EmbeddingProvider",
    "RateLimitError",
    "RateLimitExceeded",
    "VoyageProvider",
    "EmbeddingSettings",
    "get_embedding_settings",
    "reset_embedding_settings_cache",
]
