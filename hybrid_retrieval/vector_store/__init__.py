"""Hybrid index adapters and utilities.

Primary components:
- ``base``: abstract ``HybridIndex`` interface, ``IndexRecord`` and filters.
- ``opensearch``: OpenSearch k-NN + ``rank_features`` implementation.
- ``factory``: helpers to construct the index and lexical analyzer from
  ``RetrievalConfig``.
"""

from .base import HybridIndex, IndexRecord, MetadataFilter, type_filter
from .opensearch import OpenSearchHybridIndex

__all__ = ["HybridIndex", "IndexRecord", "MetadataFilter", "type_filter", "OpenSearchHybridIndex"]
