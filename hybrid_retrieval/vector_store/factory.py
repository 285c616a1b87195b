"""Factories for the index-side collaborators.

Centralizes creation of the hybrid index and the lexical analyzer so callers
don't depend on backend details. Both currently talk to OpenSearch and share
its connection settings.
"""

from enum import Enum
from typing import Any, Dict

import structlog

from ..common.config import RetrievalConfig
from ..lexical.opensearch import OpenSearchLexicalAnalyzer
from .base import HybridIndex
from .opensearch import OpenSearchHybridIndex

logger = structlog.get_logger("vector_store.factory")


class VectorStoreType(Enum):
    """Supported hybrid index backends."""
    OPENSEARCH = "opensearch"


def opensearch_connection(config: RetrievalConfig) -> Dict[str, Any]:
    """Connection keyword arguments shared by OpenSearch-backed components."""
    hosts = config.opensearch_host_list
    if not hosts:
        raise ValueError("OpenSearch requires at least one host in HR_OPENSEARCH_HOSTS")
    return {
        "hosts": hosts,
        "username": config.opensearch_username,
        "password": config.opensearch_password,
        "verify_certs": config.opensearch_verify_certs,
        "ssl_assert_hostname": config.opensearch_ssl_assert_hostname,
        "ssl_show_warn": config.opensearch_ssl_show_warn,
    }


def create_hybrid_index(config: RetrievalConfig) -> HybridIndex:
    """Create the hybrid index selected by ``config.vector_backend``."""
    try:
        store_type = VectorStoreType(config.vector_backend)
    except ValueError:
        raise ValueError(f"Unsupported vector backend: {config.vector_backend}")

    logger.info("Creating hybrid index", backend=store_type.value, index_name=config.hybrid_index)

    return OpenSearchHybridIndex(
        index_name=config.hybrid_index,
        vector_dimension=config.vector_dimension,
        **opensearch_connection(config)
    )


def create_lexical_analyzer(config: RetrievalConfig) -> OpenSearchLexicalAnalyzer:
    """Create the lexical-statistics provider."""
    return OpenSearchLexicalAnalyzer(**opensearch_connection(config))
