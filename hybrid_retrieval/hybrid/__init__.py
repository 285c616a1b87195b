"""Hybrid query construction and namespaced search.

- ``query_vectors``: alpha-scaled dense + sparse query vectors
- ``namespaces``: namespace naming per website and interaction type
- ``search_manager``: ``SearchExecutor`` fan-out, dedup and reranking
"""

from .namespaces import FALLBACK_INTERACTION_TYPES, namespace_for, qa_namespace, website_namespace
from .query_vectors import (
    build_enhanced_query,
    build_hybrid_query_vectors,
    choose_alpha,
    fuse,
    is_generic_browse,
)
from .search_manager import RetrievalResult, SearchExecutor, perform_search

__all__ = [
    "FALLBACK_INTERACTION_TYPES",
    "namespace_for",
    "qa_namespace",
    "website_namespace",
    "build_enhanced_query",
    "build_hybrid_query_vectors",
    "choose_alpha",
    "fuse",
    "is_generic_browse",
    "RetrievalResult",
    "SearchExecutor",
    "perform_search",
]
