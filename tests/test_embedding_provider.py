"""Tests for the OpenAI and HTTP embedding providers."""

from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import httpx
import openai
import pytest

from hybrid_retrieval.encoders.embedding_provider import HTTPEmbeddingProvider, OpenAIEmbeddingProvider
from hybrid_retrieval.encoders.factory import create_embedding_provider
from hybrid_retrieval.errors import EmbeddingError


def openai_client(embedding=None, error=None):
    client = MagicMock()
    if error is not None:
        client.embeddings.create = AsyncMock(side_effect=error)
    else:
        response = SimpleNamespace(data=[SimpleNamespace(embedding=embedding)])
        client.embeddings.create = AsyncMock(return_value=response)
    client.close = AsyncMock()
    return client


def http_client(handler):
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


@pytest.mark.asyncio
async def test_openai_embed(metrics):
    """Test the OpenAI provider returns the first embedding for the raw text."""
    client = openai_client(embedding=[0.1, 0.2, 0.3])
    provider = OpenAIEmbeddingProvider(client=client, metrics=metrics)

    assert await provider.embed("winter jacket") == [0.1, 0.2, 0.3]
    client.embeddings.create.assert_awaited_once_with(model="text-embedding-3-large", input="winter jacket")
    assert metrics.registry.get_sample_value(
        "hr_embedding_requests_total", {"backend": "openai", "status": "ok"}
    ) == 1.0


@pytest.mark.asyncio
async def test_openai_embed_error(metrics):
    """Test OpenAI failures are wrapped and counted."""
    error = openai.APIConnectionError(request=httpx.Request("POST", "https://api.openai.com/v1/embeddings"))
    provider = OpenAIEmbeddingProvider(client=openai_client(error=error), metrics=metrics)

    with pytest.raises(EmbeddingError):
        await provider.embed("winter jacket")
    assert metrics.registry.get_sample_value(
        "hr_embedding_requests_total", {"backend": "openai", "status": "error"}
    ) == 1.0


@pytest.mark.asyncio
async def test_http_embed(metrics):
    """Test the HTTP provider posts one item and reads the first vector."""
    seen = {}

    def handler(request):
        seen["url"] = str(request.url)
        seen["body"] = request.content
        return httpx.Response(200, json={"vectors": [[1, 2.5]]})

    provider = HTTPEmbeddingProvider("http://embed:9006/", model="mini", client=http_client(handler), metrics=metrics)

    assert await provider.embed("boots") == [1.0, 2.5]
    assert seen["url"] == "http://embed:9006/api/v1/embed"
    assert b'"text":"boots"' in seen["body"].replace(b" ", b"")
    await provider.close()


@pytest.mark.asyncio
@pytest.mark.parametrize("response", [
    httpx.Response(503, json={"detail": "unavailable"}),
    httpx.Response(200, json={"vectors": []}),
    httpx.Response(200, text="<html>gateway</html>"),
    httpx.Response(200, json=[[0.1, 0.2]]),
    httpx.Response(200, json={"vectors": [["a", "b"]]}),
])
async def test_http_embed_errors(response, metrics):
    """Test HTTP errors, empty and malformed responses raise EmbeddingError."""
    provider = HTTPEmbeddingProvider(
        "http://embed:9006", client=http_client(lambda request: response), metrics=metrics
    )

    with pytest.raises(EmbeddingError):
        await provider.embed("boots")


def test_factory_selects_backend(config):
    """Test the factory honours the configured backend."""
    http_config = config.model_copy(update={"embedding_backend": "http"})
    provider = create_embedding_provider(http_config)

    assert isinstance(provider, HTTPEmbeddingProvider)
    assert provider.service_url == "http://localhost:9006"

    with pytest.raises(ValueError):
        create_embedding_provider(config.model_copy(update={"embedding_backend": "grpc"}))
