"""Configuration management for the retrieval engine.

This module centralizes environment-driven configuration for the hybrid
retrieval core: hybrid weighting, the sparse feature space, the OpenSearch
cluster used both as the vector index and as the lexical-statistics service,
and the embedding backend. It builds on ``pydantic_settings.BaseSettings`` so
configuration can be provided via environment variables, ``.env`` files, or
defaults.

Highlights
- Strongly-typed settings with sensible defaults
- Every variable is prefixed with ``HR_`` (e.g. ``HR_ALPHA``)
- Small helpers to derive client parameters from settings

Usage
- Build once in the caller's entrypoint: ``config = RetrievalConfig()``
- Or use the cached accessor: ``config = get_config()``
"""

from functools import lru_cache
from typing import List, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


DEFAULT_FEATURE_SPACE = 2_000_003
DEFAULT_ALPHA = 0.5
GENERIC_BROWSE_ALPHA = 0.6


class RetrievalConfig(BaseSettings):
    """Settings for the hybrid retrieval core.

    Parameters are read from the process environment using the ``HR_``
    prefix. Defaults keep local development convenient while still being
    explicit.

    Notes
    - ``alpha`` is the lexical weight; ``1 - alpha`` goes to the dense side.
    - ``feature_space`` must match the value used when the index was built.
    """

    model_config = SettingsConfigDict(
        env_prefix="HR_",
        env_file=".env",
        case_sensitive=False,
        extra="ignore",
    )

    # Environment
    env: str = Field(default="local")

    # Hybrid weighting
    alpha: float = Field(default=DEFAULT_ALPHA, ge=0.0, le=1.0)
    generic_browse_alpha: float = Field(default=GENERIC_BROWSE_ALPHA, ge=0.0, le=1.0)
    feature_space: int = Field(default=DEFAULT_FEATURE_SPACE, ge=2)

    # Search fan-out
    standard_top_k: int = Field(default=10, ge=1)
    fallback_top_k: int = Field(default=7, ge=1)
    qa_top_k: int = Field(default=20, ge=1)
    min_sparse_terms: int = Field(default=3, ge=0)

    # OpenSearch (vector index + lexical statistics)
    opensearch_hosts: str = Field(default="http://localhost:9200")
    opensearch_username: Optional[str] = Field(default=None)
    opensearch_password: Optional[str] = Field(default=None)
    opensearch_verify_certs: bool = Field(default=False)
    opensearch_ssl_assert_hostname: bool = Field(default=False)
    opensearch_ssl_show_warn: bool = Field(default=False)
    hybrid_index: str = Field(default="hybrid-content")
    vector_backend: str = Field(default="opensearch")
    vector_dimension: int = Field(default=3072, ge=1)

    # Embeddings
    embedding_backend: str = Field(default="openai")
    embedding_model: str = Field(default="text-embedding-3-large")
    embedding_service_url: str = Field(default="http://localhost:9006")
    embedding_timeout: float = Field(default=30.0, gt=0)
    openai_api_key: Optional[str] = Field(default=None)

    # Logging
    log_level: str = Field(default="INFO")
    log_format: str = Field(default="json")

    @field_validator("log_level")
    @classmethod
    def _upper_log_level(cls, value: str) -> str:
        return value.upper()

    @property
    def opensearch_host_list(self) -> List[str]:
        """Comma-separated ``opensearch_hosts`` as a list of URLs."""
        return [host.strip() for host in self.opensearch_hosts.split(",") if host.strip()]


@lru_cache(maxsize=1)
def get_config() -> RetrievalConfig:
    """Return a process-wide ``RetrievalConfig`` read from the environment."""
    return RetrievalConfig()
