"""Dense embedding providers.

Two backends are supported:

- ``OpenAIEmbeddingProvider``: OpenAI embeddings API (``text-embedding-3-large``,
  3072 dimensions) through ``openai.AsyncOpenAI``.
- ``HTTPEmbeddingProvider``: an internal embedding service exposing
  ``POST /api/v1/embed``.

Providers never retry; any failure surfaces as ``EmbeddingError`` and the
caller owns the retry policy.
"""

import time
from abc import ABC, abstractmethod
from typing import List, Optional

import httpx
import structlog
from openai import AsyncOpenAI, OpenAIError

from ..common.metrics import RetrievalMetrics, get_metrics_collector
from ..errors import EmbeddingError

logger = structlog.get_logger("encoders.embedding_provider")

DEFAULT_OPENAI_MODEL = "text-embedding-3-large"


class EmbeddingProvider(ABC):
    """Abstract embedding provider."""

    backend: str = "unknown"

    @abstractmethod
    async def embed(self, text: str, model: Optional[str] = None) -> List[float]:
        """Embed ``text`` into a fixed-length dense vector.

        Raises
        - ``EmbeddingError`` when the provider is unreachable or rejects input
        """
        pass

    async def close(self) -> None:
        """Release network resources held by the provider."""
        return None


class OpenAIEmbeddingProvider(EmbeddingProvider):
    """Embeddings from the OpenAI API."""

    backend = "openai"

    def __init__(
        self,
        model: str = DEFAULT_OPENAI_MODEL,
        api_key: Optional[str] = None,
        client: Optional[AsyncOpenAI] = None,
        metrics: Optional[RetrievalMetrics] = None,
    ):
        self.model = model
        self.client = client or AsyncOpenAI(api_key=api_key)
        self.metrics = metrics or get_metrics_collector()

    async def embed(self, text: str, model: Optional[str] = None) -> List[float]:
        model_name = model or self.model
        start_time = time.time()
        try:
            response = await self.client.embeddings.create(model=model_name, input=text)
            embedding = list(response.data[0].embedding)
        except (OpenAIError, IndexError) as e:
            self.metrics.record_embedding(self.backend, "error", time.time() - start_time)
            logger.error("OpenAI embedding request failed", model=model_name, error=str(e))
            raise EmbeddingError(f"OpenAI embedding failed: {e}") from e

        self.metrics.record_embedding(self.backend, "ok", time.time() - start_time)
        return embedding

    async def close(self) -> None:
        await self.client.close()


class HTTPEmbeddingProvider(EmbeddingProvider):
    """Embeddings from an HTTP embedding service.

    Request body: ``{"items": [{"text": ...}], "model": ...}``; the response
    carries ``{"vectors": [[...]]}``.
    """

    backend = "http"

    def __init__(
        self,
        service_url: str,
        model: str = "default",
        timeout: float = 30.0,
        client: Optional[httpx.AsyncClient] = None,
        metrics: Optional[RetrievalMetrics] = None,
    ):
        self.service_url = service_url.rstrip("/")
        self.model = model
        self.http_client = client or httpx.AsyncClient(timeout=timeout)
        self.metrics = metrics or get_metrics_collector()

    async def embed(self, text: str, model: Optional[str] = None) -> List[float]:
        model_name = model or self.model
        start_time = time.time()
        try:
            response = await self.http_client.post(
                f"{self.service_url}/api/v1/embed",
                json={
                    "items": [{"text": text}],
                    "model": model_name
                }
            )
            response.raise_for_status()
            vectors = response.json().get("vectors") or []
            if not vectors:
                raise EmbeddingError("Embedding service returned no vectors")
            embedding = [float(v) for v in vectors[0]]
        except httpx.HTTPError as e:
            self.metrics.record_embedding(self.backend, "error", time.time() - start_time)
            logger.error(
                "Embedding service call failed",
                url=self.service_url,
                model=model_name,
                error=str(e)
            )
            raise EmbeddingError(f"Embedding service call failed: {e}") from e
        except EmbeddingError:
            self.metrics.record_embedding(self.backend, "error", time.time() - start_time)
            logger.error("Embedding service returned an empty response", url=self.service_url)
            raise
        except (ValueError, TypeError, AttributeError, LookupError) as e:
            self.metrics.record_embedding(self.backend, "error", time.time() - start_time)
            logger.error("Embedding service returned a malformed response", url=self.service_url, error=str(e))
            raise EmbeddingError(f"Malformed embedding response: {e}") from e

        self.metrics.record_embedding(self.backend, "ok", time.time() - start_time)
        return embedding

    async def close(self) -> None:
        await self.http_client.aclose()
