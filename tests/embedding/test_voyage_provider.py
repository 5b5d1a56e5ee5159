from __future__ import annotations

import json

import httpx
import pytest

from newswire.embedding.client import EmbeddingError, RateLimitError, VoyageProvider

ENDPOINT = "https://api.voyageai.com/v1/embeddings"


def _provider(handler) -> VoyageProvider:
    client = httpx.Client(transport=httpx.MockTransport(handler))
    return VoyageProvider("secret", endpoint=ENDPOINT, client=client)


def test_posts_input_and_returns_vectors():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["auth"] = request.headers["Authorization"]
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json={"data": [{"embedding": [0.5, 0.25]}], "model": "voyage-3"})

    vectors = _provider(handler)(["hello"], "voyage-3")

    assert vectors == [[0.5, 0.25]]
    assert seen["auth"] == "Bearer secret"
    assert seen["body"] == {"input": ["hello"], "model": "voyage-3"}


def test_429_uses_retry_after_header():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(429, headers={"Retry-After": "12"}, json={"detail": "slow down"})

    with pytest.raises(RateLimitError) as exc:
        _provider(handler)(["hello"], "voyage-3")

    assert exc.value.retry_after == 12.0


def test_429_falls_back_to_body_hint():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(429, json={"retry_after": 4})

    with pytest.raises(RateLimitError) as exc:
        _provider(handler)(["hello"], "voyage-3")

    assert exc.value.retry_after == 4.0


def test_429_with_non_object_body_has_no_hint():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(429, json=[{"detail": "slow down"}])

    with pytest.raises(RateLimitError) as exc:
        _provider(handler)(["hello"], "voyage-3")

    assert exc.value.retry_after is None


def test_429_without_hint():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(429, text="too many requests")

    with pytest.raises(RateLimitError) as exc:
        _provider(handler)(["hello"], "voyage-3")

    assert exc.value.retry_after is None


def test_server_error_is_not_rate_limit():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(500, text="boom")

    with pytest.raises(EmbeddingError) as exc:
        _provider(handler)(["hello"], "voyage-3")

    assert not isinstance(exc.value, RateLimitError)


def test_transport_error_becomes_embedding_error():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("refused", request=request)

    with pytest.raises(EmbeddingError):
        _provider(handler)(["hello"], "voyage-3")


def test_blank_api_key_rejected():
    with pytest.raises(EmbeddingError):
        VoyageProvider("  ")
