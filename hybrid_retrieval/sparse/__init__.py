"""Sparse (lexical) vector construction.

- ``tokenizer``: query tokenization and storefront synonym expansion
- ``hashing``: FNV-1a feature hashing into a fixed feature space
- ``vectors``: query-side and stable document-side hashed builders
- ``statistics``: BM25 document vectors from lexical term statistics
"""

from .hashing import fnv1a32, hash_token_to_index
from .statistics import TermStatisticsSparseEncoder, sparse_from_statistics
from .tokenizer import expand_query, tokenize_query, tokenize_text
from .vectors import (
    augment_with_classification,
    build_query_sparse,
    generate_stable_sparse,
    hashed_vector,
    limit_sparse_vector_size,
    should_fallback_to_collections,
)

__all__ = [
    "fnv1a32",
    "hash_token_to_index",
    "expand_query",
    "tokenize_query",
    "tokenize_text",
    "build_query_sparse",
    "generate_stable_sparse",
    "hashed_vector",
    "augment_with_classification",
    "limit_sparse_vector_size",
    "should_fallback_to_collections",
    "TermStatisticsSparseEncoder",
    "sparse_from_statistics",
]
