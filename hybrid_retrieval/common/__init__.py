"""Common utilities shared across the retrieval engine.

Includes:
- ``config``: Pydantic-based configuration from ``HR_*`` environment variables.
- ``logging``: structured logging setup with structlog.
- ``metrics``: Prometheus metrics for search, sparse generation and embeddings.

Import pattern:
- from hybrid_retrieval.common.config import RetrievalConfig
- from hybrid_retrieval.common.logging import configure_logging
"""
