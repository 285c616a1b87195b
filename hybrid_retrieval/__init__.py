"""Hybrid lexical-semantic retrieval and reranking.

Subpackages:
- ``hybrid_retrieval.sparse``: tokenization, feature hashing and sparse vectors.
- ``hybrid_retrieval.encoders``: dense embedding providers.
- ``hybrid_retrieval.hybrid``: hybrid query vectors and namespaced search.
- ``hybrid_retrieval.ranking``: classification-aware reranking.
- ``hybrid_retrieval.lexical`` / ``hybrid_retrieval.vector_store``: OpenSearch
  adapters for term statistics and the hybrid index.
- ``hybrid_retrieval.common``: configuration, logging and metrics.

Usage:
- Build providers with the factories, then call ``SearchExecutor`` or the
  functional ``build_hybrid_query_vectors`` / ``perform_search`` / ``rerank``.
"""

from .hybrid import SearchExecutor, build_hybrid_query_vectors, perform_search
from .ranking import rerank
from .sparse import generate_stable_sparse, sparse_from_statistics
from .types import (
    Candidate,
    CandidateMetadata,
    Classification,
    HybridVector,
    InteractionType,
    RerankedCandidate,
    SparseVector,
    SubCategory,
)

__all__ = [
    "SearchExecutor",
    "build_hybrid_query_vectors",
    "perform_search",
    "rerank",
    "generate_stable_sparse",
    "sparse_from_statistics",
    "Candidate",
    "CandidateMetadata",
    "Classification",
    "HybridVector",
    "InteractionType",
    "RerankedCandidate",
    "SparseVector",
    "SubCategory",
]
