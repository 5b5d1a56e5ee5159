from __future__ import annotations

from typing import List

import pytest
from celery.exceptions import SoftTimeLimitExceeded

from newswire.embedding.client import (
    EmbeddingClient,
    EmbeddingError,
    RateLimitError,
    RateLimitExceeded,
)
from newswire.embedding.settings import EmbeddingSettings, reset_embedding_settings_cache


def _settings(**overrides) -> EmbeddingSettings:
    values = dict(
        api_key="test-key",
        model="voyage-3",
        pacing_seconds=20.0,
        backoff_seconds=20.0,
        backoff_max_seconds=60.0,
        max_retries=3,
    )
    values.update(overrides)
    return EmbeddingSettings(**values)


class ScriptedProvider:
    """Replays a list of outcomes: exceptions are raised, vectors returned."""

    def __init__(self, outcomes: list) -> None:
        self.outcomes = list(outcomes)
        self.calls: List[List[str]] = []

    def __call__(self, texts: List[str], model: str) -> List[List[float]]:
        self.calls.append(texts)
        outcome = self.outcomes.pop(0)
        if isinstance(outcome, Exception):
            raise outcome
        return outcome


def test_embed_returns_vector_after_pacing_delay():
    sleeps: List[float] = []
    provider = ScriptedProvider([[[0.1, 0.2, 0.3]]])
    client = EmbeddingClient(_settings(), provider, sleep=sleeps.append)

    vector = client.embed("  eVTOL flight test  ")

    assert vector == [0.1, 0.2, 0.3]
    assert provider.calls == [["eVTOL flight test"]]
    assert sleeps == [20.0]


def test_embed_retries_throttling_with_backoff_then_succeeds():
    sleeps: List[float] = []
    provider = ScriptedProvider([RateLimitError("429"), RateLimitError("429"), [[1.0]]])
    client = EmbeddingClient(_settings(), provider, sleep=sleeps.append)

    assert client.embed("text") == [1.0]
    # pacing, backoff(1), pacing, backoff(2), pacing
    assert sleeps == [20.0, 20.0, 20.0, 40.0, 20.0]


def test_embed_honours_retry_after_hint():
    sleeps: List[float] = []
    provider = ScriptedProvider([RateLimitError("429", retry_after=3), [[1.0]]])
    client = EmbeddingClient(_settings(pacing_seconds=0.0), provider, sleep=sleeps.append)

    client.embed("text")

    assert sleeps == [3.0]


def test_embed_raises_rate_limit_exceeded_after_max_retries():
    sleeps: List[float] = []
    provider = ScriptedProvider([RateLimitError("429")] * 5)
    client = EmbeddingClient(_settings(pacing_seconds=0.0), provider, sleep=sleeps.append)

    with pytest.raises(RateLimitExceeded) as exc:
        client.embed("text", max_retries=2)

    assert exc.value.attempts == 2
    assert len(provider.calls) == 2
    assert sleeps == [20.0]


def test_backoff_is_capped_at_ceiling():
    sleeps: List[float] = []
    provider = ScriptedProvider([RateLimitError("429")] * 5)
    client = EmbeddingClient(_settings(pacing_seconds=0.0, max_retries=5), provider, sleep=sleeps.append)

    with pytest.raises(RateLimitExceeded):
        client.embed("text")

    assert sleeps == [20.0, 40.0, 60.0, 60.0]


def test_non_throttling_failure_is_not_retried():
    provider = ScriptedProvider([EmbeddingError("500 upstream"), [[1.0]]])
    client = EmbeddingClient(_settings(pacing_seconds=0.0), provider, sleep=lambda s: None)

    with pytest.raises(EmbeddingError):
        client.embed("text")

    assert len(provider.calls) == 1


def test_unexpected_provider_error_is_wrapped():
    provider = ScriptedProvider([KeyError("data")])
    client = EmbeddingClient(_settings(pacing_seconds=0.0), provider, sleep=lambda s: None)

    with pytest.raises(EmbeddingError):
        client.embed("text")


def test_blank_text_is_rejected_without_calling_provider():
    provider = ScriptedProvider([])
    client = EmbeddingClient(_settings(), provider, sleep=lambda s: None)

    with pytest.raises(EmbeddingError):
        client.embed("   ")

    assert provider.calls == []


def test_input_is_truncated():
    provider = ScriptedProvider([[[1.0]]])
    client = EmbeddingClient(_settings(pacing_seconds=0.0, max_input_chars=5), provider, sleep=lambda s: None)

    client.embed("abcdefghij")

    assert provider.calls == [["abcde"]]


def test_zero_retries_is_rejected_not_defaulted():
    provider = ScriptedProvider([[[1.0]]])
    client = EmbeddingClient(_settings(pacing_seconds=0.0), provider, sleep=lambda s: None)

    with pytest.raises(ValueError):
        client.policy(0)
    with pytest.raises(ValueError):
        client.embed("text", max_retries=0)
    assert provider.calls == []


def test_worker_time_limit_is_not_wrapped_or_degraded():
    provider = ScriptedProvider([SoftTimeLimitExceeded(), SoftTimeLimitExceeded()])
    client = EmbeddingClient(_settings(pacing_seconds=0.0), provider, sleep=lambda s: None)

    with pytest.raises(SoftTimeLimitExceeded):
        client.embed("text")
    with pytest.raises(SoftTimeLimitExceeded):
        client.embed_or_empty("text")
    assert len(provider.calls) == 2


def test_embed_or_empty_degrades_to_empty_vector():
    provider = ScriptedProvider([RateLimitError("429")] * 3)
    client = EmbeddingClient(_settings(pacing_seconds=0.0, backoff_seconds=0.0), provider, sleep=lambda s: None)

    assert client.embed_or_empty("text") == []


def test_from_settings_requires_api_key(monkeypatch):
    monkeypatch.delenv("VOYAGEAI_API_KEY", raising=False)
    reset_embedding_settings_cache()

    with pytest.raises(RuntimeError):
        EmbeddingClient.from_settings(EmbeddingSettings(api_key=None))

    client = EmbeddingClient.from_settings(EmbeddingSettings(api_key=None), provider=ScriptedProvider([]))
    assert client.model == "voyage-3"
