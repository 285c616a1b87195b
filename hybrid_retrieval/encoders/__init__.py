"""Dense embedding providers.

- ``embedding_provider``: ``EmbeddingProvider`` interface plus OpenAI and
  HTTP-service implementations.
- ``factory``: build the configured provider from ``RetrievalConfig``.
"""

from .embedding_provider import EmbeddingProvider, HTTPEmbeddingProvider, OpenAIEmbeddingProvider
from .factory import create_embedding_provider

__all__ = [
    "EmbeddingProvider",
    "HTTPEmbeddingProvider",
    "OpenAIEmbeddingProvider",
    "create_embedding_provider",
]
