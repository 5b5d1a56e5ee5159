"""Voyage AI embeddings wrapper with pacing, throttling retries and backoff.

The provider is injectable so tests can verify retry behaviour without network
access or real sleeping.
"""

from __future__ import annotations

import time
from typing import Any, Callable, List, Optional

import httpx
from celery.exceptions import SoftTimeLimitExceeded

from newswire.embedding.settings import EmbeddingSettings, get_embedding_settings
from newswire.utils.logging import get_logger
from newswire.utils.retry import RetryExhausted, RetryPolicy

EmbeddingProvider = Callable[[List[str], str], List[List[float]]]

logger = get_logger(__name__)


class EmbeddingError(Exception):
    """Embedding generation failed."""


class RateLimitError(EmbeddingError):
    """Provider signalled throttling; carries an optional retry-after hint in seconds."""

    def __init__(self, message: str, retry_after: Optional[float] = None) -> None:
        super().__init__(message)
        self.retry_after = retry_after


class RateLimitExceeded(EmbeddingError):
    """Throttling persisted through every allowed attempt."""

    def __init__(self, attempts: int, last_error: BaseException) -> None:
        super().__init__(f"rate limit exceeded after {attempts} attempts: {last_error}")
        self.attempts = attempts


def _parse_retry_after(value: Any) -> Optional[float]:
    if value is None:
        return None
    try:
        seconds = float(value)
    except (TypeError, ValueError):
        return None
    return seconds if seconds >= 0 else None


class VoyageProvider:
    """REST provider for the Voyage AI embeddings endpoint (no SDK)."""

    def __init__(
        self,
        api_key: str,
        *,
        endpoint: str = "https://api.voyageai.com/v1/embeddings",
        timeout: float = 30.0,
        client: Optional[httpx.Client] = None,
    ) -> None:
        if not api_key.strip():
            raise EmbeddingError("VOYAGEAI_API_KEY is not configured")
        self._api_key = api_key
        self._endpoint = endpoint
        self._client = client or httpx.Client(timeout=timeout)

    def __call__(self, texts: List[str], model: str) -> List[List[float]]:
        headers = {"Authorization": f"Bearer {self._api_key}"}
        payload = {"input": texts, "model": model}
        try:
            resp = self._client.post(self._endpoint, headers=headers, json=payload)
        except httpx.HTTPError as exc:
            raise EmbeddingError(f"embedding request failed: {exc}") from exc

        if resp.status_code == 429:
            hint = _parse_retry_after(resp.headers.get("Retry-After"))
            if hint is None:
                try:
                    body = resp.json()
                except ValueError:
                    body = None
                if isinstance(body, dict):
                    hint = _parse_retry_after(body.get("retry_after"))
            raise RateLimitError("embedding provider throttled the request (429)", retry_after=hint)
        if resp.status_code >= 400:
            raise EmbeddingError(f"embedding request failed: {resp.status_code} {resp.text[:200]}")

        data = resp.json()
        return [item["embedding"] for item in data.get("data", [])]


class EmbeddingClient:
    """Turns text into a vector, one paced request at a time."""

    def __init__(
        self,
        settings: EmbeddingSettings,
        provider: EmbeddingProvider,
        *,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.settings = settings
        self._provider = provider
        self._sleep = sleep

    @classmethod
    def from_settings(
        cls,
        settings: Optional[EmbeddingSettings] = None,
        provider: Optional[EmbeddingProvider] = None,
        *,
        sleep: Callable[[float], None] = time.sleep,
    ) -> "EmbeddingClient":
        settings = settings or get_embedding_settings()
        if provider is None:
            if settings.api_key is None or not settings.api_key.get_secret_value().strip():
                raise RuntimeError("VOYAGEAI_API_KEY is not configured")
            provider = VoyageProvider(
                settings.api_key.get_secret_value(),
                endpoint=settings.endpoint,
                timeout=float(settings.request_timeout_seconds),
            )
        return cls(settings, provider, sleep=sleep)

    @property
    def model(self) -> str:
        return self.settings.model

    def policy(self, max_retries: Optional[int] = None) -> RetryPolicy:
        return RetryPolicy(
            max_attempts=int(max_retries if max_retries is not None else self.settings.max_retries),
            base_delay=float(self.settings.backoff_seconds),
            max_delay=float(self.settings.backoff_max_seconds),
            retryable=RateLimitError,
            retry_after=lambda exc: getattr(exc, "retry_after", None),
        )

    def embed(self, text: str, max_retries: Optional[int] = None) -> List[float]:
        """Return the embedding of ``text``.

        Raises ``RateLimitExceeded`` after ``max_retries`` throttled attempts and
        ``EmbeddingError`` immediately for any non-throttling failure.
        """
        payload = text.strip()[: int(self.settings.max_input_chars)]
        if not payload:
            raise EmbeddingError("no text to embed")

        def _attempt() -> List[float]:
            vectors = self._provider([payload], self.settings.model)
            if not vectors:
                raise EmbeddingError("provider returned no embedding")
            return list(vectors[0])

        def _on_retry(attempt: int, delay: float, exc: BaseException) -> None:
            logger.warning(
                "embed.rate_limited",
                extra={"attempt": attempt, "max_attempts": policy.max_attempts, "delay": delay},
            )

        policy = self.policy(max_retries)
        try:
            return policy.run(
                _attempt,
                sleep=self._sleep,
                pacing=float(self.settings.pacing_seconds),
                on_retry=_on_retry,
            )
        except RetryExhausted as exc:
            raise RateLimitExceeded(exc.attempts, exc.last_error) from exc.last_error
        except (EmbeddingError, SoftTimeLimitExceeded):
            raise
        except Exception as exc:
            raise EmbeddingError(f"embedding failed: {exc}") from exc

    def embed_or_empty(self, text: str, max_retries: Optional[int] = None) -> List[float]:
        """Best-effort variant of ``embed``: returns ``[]`` instead of raising."""
        try:
            return self.embed(text, max_retries)
        except EmbeddingError as exc:
            logger.warning("embed.degraded", extra={"error": str(exc), "error_type": type(exc).__name__})
            return []
