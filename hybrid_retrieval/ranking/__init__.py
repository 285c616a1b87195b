"""Classification-aware reranking for content and Q&A candidates."""

from .reranker import (
    ClassificationReranker,
    QAReranker,
    classification_match_points,
    create_reranker,
    dedupe_by,
    raw_ranking,
    rerank,
    rerank_qa,
)

__all__ = [
    "ClassificationReranker",
    "QAReranker",
    "classification_match_points",
    "create_reranker",
    "dedupe_by",
    "raw_ranking",
    "rerank",
    "rerank_qa",
]
