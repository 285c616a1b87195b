"""Lexical-statistics providers.

- ``base``: ``LexicalAnalyzer`` interface and scoped temporary indices.
- ``opensearch``: OpenSearch ``_termvectors`` implementation.
"""

from .base import LexicalAnalyzer, TermStatistics
from .opensearch import OpenSearchLexicalAnalyzer

__all__ = ["LexicalAnalyzer", "TermStatistics", "OpenSearchLexicalAnalyzer"]
