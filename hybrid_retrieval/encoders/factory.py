"""Embedding provider factory.

Keeps callers independent of the concrete embedding backend.
"""

from enum import Enum

import structlog

from ..common.config import RetrievalConfig
from .embedding_provider import EmbeddingProvider, HTTPEmbeddingProvider, OpenAIEmbeddingProvider

logger = structlog.get_logger("encoders.factory")


class EmbeddingBackend(Enum):
    """Supported embedding backends."""
    OPENAI = "openai"
    HTTP = "http"


def create_embedding_provider(config: RetrievalConfig) -> EmbeddingProvider:
    """Create the embedding provider selected by ``config.embedding_backend``."""
    try:
        backend = EmbeddingBackend(config.embedding_backend)
    except ValueError:
        raise ValueError(f"Unsupported embedding backend: {config.embedding_backend}")

    logger.info("Creating embedding provider", backend=backend.value, model=config.embedding_model)

    if backend == EmbeddingBackend.OPENAI:
        return OpenAIEmbeddingProvider(
            model=config.embedding_model,
            api_key=config.openai_api_key,
        )

    return HTTPEmbeddingProvider(
        service_url=config.embedding_service_url,
        model=config.embedding_model,
        timeout=config.embedding_timeout,
    )
