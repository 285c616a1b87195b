"""Document-side sparse vectors from lexical term statistics.

Content is analyzed by a throwaway index in the lexical service (stemming,
stopwords, 3-4 character n-grams), and each returned term is scored with a
BM25 formula in which the document is its own corpus:

    idf   = ln(1 + (N - df + 0.5) / (df + 0.5))           N = 1
    score = idf * tf * (k1 + 1) / (tf + k1 * (1 - b + b * dl / avgdl))

With ``N = 1`` and ``avgdl = dl`` the idf is constant across terms, so the
score ranks terms by saturated frequency within the document. Scores are
max-normalized to ``[0, 1]``.

Failures never propagate: indexing pipelines receive ``fallback_vector()``.
"""

import math
from typing import Any, Dict, List, Optional, Tuple

import structlog

from ..common.metrics import RetrievalMetrics, get_metrics_collector
from ..lexical.base import LexicalAnalyzer, TermStatistics
from ..types import SparseVector
from .vectors import DEFAULT_FEATURE_SPACE, hashed_vector

logger = structlog.get_logger("sparse.statistics")

BM25_K1 = 1.2
BM25_B = 0.75
MAX_TERMS = 32000
FALLBACK_TERM_COUNT = 10
LABEL_REPEAT = 3
CONTENT_FIELD = "content"

INDEX_MODE_RANK = "rank"
INDEX_MODE_HASH = "hash"

TERM_FILTER: Dict[str, Any] = {
    "max_num_terms": MAX_TERMS,
    "min_term_freq": 1,
    "min_doc_freq": 1,
    "max_doc_freq": 1_000_000,
    "min_word_length": 2,
}

ANALYSIS_INDEX_BODY: Dict[str, Any] = {
    "settings": {
        "analysis": {
            "analyzer": {
                "custom_analyzer": {
                    "type": "custom",
                    "tokenizer": "standard",
                    "filter": [
                        "lowercase",
                        "stop",
                        "porter_stem",
                        "unique",
                        "word_delimiter_graph",
                        "ngram_filter",
                    ],
                },
            },
            "filter": {
                "ngram_filter": {"type": "ngram", "min_gram": 3, "max_gram": 4},
            },
        },
        "index": {
            "similarity": {
                "bm25": {
                    "type": "BM25",
                    "b": BM25_B,
                    "k1": BM25_K1,
                    "discount_overlaps": True,
                },
            },
        },
    },
    "mappings": {
        "properties": {
            CONTENT_FIELD: {
                "type": "text",
                "analyzer": "custom_analyzer",
                "similarity": "bm25",
                "term_vector": "with_positions_offsets_payloads",
                "store": True,
            },
        },
    },
}


def fallback_vector() -> SparseVector:
    """Default single-term vector returned when analysis fails."""
    return SparseVector(indices=[0], values=[1.0])


def weighted_text(text: str, type_label: str, category: str, subcategory: str) -> str:
    """Append each classification label three times to bias term statistics."""
    parts = [text or ""]
    for label in (type_label, category, subcategory):
        parts.extend([label or ""] * LABEL_REPEAT)
    return " ".join(parts)


def bm25_score(
    term_freq: int,
    doc_freq: int,
    doc_length: float,
    avg_doc_length: float,
    total_docs: int = 1,
    k1: float = BM25_K1,
    b: float = BM25_B,
) -> float:
    """BM25 weight of a single term."""
    idf = math.log(1 + (total_docs - doc_freq + 0.5) / (doc_freq + 0.5))
    length_ratio = doc_length / avg_doc_length if avg_doc_length else 1.0
    numerator = term_freq * (k1 + 1)
    denominator = term_freq + k1 * (1 - b + b * length_ratio)
    if denominator == 0:
        return 0.0
    return idf * (numerator / denominator)


def score_terms(terms: Dict[str, TermStatistics]) -> List[Tuple[str, float]]:
    """Positive BM25 scores, highest first, truncated to ``MAX_TERMS``.

    Ties keep the order the lexical service reported the terms in.
    """
    doc_length = sum(stats.term_freq for stats in terms.values())
    avg_doc_length = doc_length

    scored = [
        (term, bm25_score(stats.term_freq, stats.doc_freq or 1, doc_length, avg_doc_length))
        for term, stats in terms.items()
    ]
    positive = [(term, score) for term, score in scored if score > 0]
    positive.sort(key=lambda item: item[1], reverse=True)
    return positive[:MAX_TERMS]


def build_sparse_from_terms(
    terms: Dict[str, TermStatistics],
    index_mode: str = INDEX_MODE_RANK,
    feature_space: int = DEFAULT_FEATURE_SPACE,
) -> Tuple[SparseVector, bool]:
    """Turn term statistics into a normalized sparse vector.

    Returns the vector and whether the no-terms fallback was used.

    ``index_mode`` selects the key each weight is stored under:
    ``rank`` uses the term's position in the score ordering (the layout of
    vectors already in the index), ``hash`` uses ``hash_token_to_index`` of
    the term text, which is comparable with query-side vectors.
    """
    ranked = score_terms(terms)

    if not ranked:
        fallback_terms = list(terms)[:FALLBACK_TERM_COUNT]
        if index_mode == INDEX_MODE_HASH:
            return hashed_vector({term: 1.0 for term in fallback_terms}, feature_space), True
        return SparseVector(
            indices=list(range(len(fallback_terms))),
            values=[1.0] * len(fallback_terms),
        ), True

    max_score = max(score for _, score in ranked)
    if max_score > 0:
        ranked = [(term, score / max_score) for term, score in ranked]

    if index_mode == INDEX_MODE_HASH:
        return hashed_vector(dict(ranked), feature_space), False
    return SparseVector(
        indices=list(range(len(ranked))),
        values=[score for _, score in ranked],
    ), False


class TermStatisticsSparseEncoder:
    """Builds document-side sparse vectors through a ``LexicalAnalyzer``.

    Parameters
    - analyzer: lexical-statistics provider (OpenSearch in production)
    - index_mode: ``rank`` (default) or ``hash``; see ``build_sparse_from_terms``
    - feature_space: hash space when ``index_mode == "hash"``
    - create_attempts: attempts for creating the temporary index
    - retry_delay: base delay in seconds between creation attempts
    - metrics: collector for fallback counts
    """

    def __init__(
        self,
        analyzer: LexicalAnalyzer,
        index_mode: str = INDEX_MODE_RANK,
        feature_space: int = DEFAULT_FEATURE_SPACE,
        create_attempts: int = 3,
        retry_delay: float = 1.0,
        metrics: Optional[RetrievalMetrics] = None,
    ):
        if index_mode not in (INDEX_MODE_RANK, INDEX_MODE_HASH):
            raise ValueError(f"Unknown index mode: {index_mode}")
        self.analyzer = analyzer
        self.index_mode = index_mode
        self.feature_space = feature_space
        self.create_attempts = create_attempts
        self.retry_delay = retry_delay
        self.metrics = metrics or get_metrics_collector()

    async def encode(
        self,
        text: str,
        type_label: str = "",
        category: str = "",
        subcategory: str = "",
    ) -> SparseVector:
        """Sparse vector for ``text`` biased toward its classification labels."""
        content = weighted_text(text, type_label, category, subcategory)
        document = {CONTENT_FIELD: content}

        try:
            async with self.analyzer.temporary_index(
                ANALYSIS_INDEX_BODY,
                create_attempts=self.create_attempts,
                retry_delay=self.retry_delay,
            ) as index_name:
                await self.analyzer.index_document(index_name, document)
                terms = await self.analyzer.term_vectors(
                    index_name, document, CONTENT_FIELD, TERM_FILTER
                )
        except Exception as e:
            logger.error(
                "Error generating sparse vector from term statistics",
                text_preview=content[:100],
                error=str(e)
            )
            self.metrics.record_lexical_fallback("error")
            return fallback_vector()

        vector, used_fallback = build_sparse_from_terms(
            terms, index_mode=self.index_mode, feature_space=self.feature_space
        )
        if used_fallback:
            self.metrics.record_lexical_fallback("no_terms")
            if vector.is_empty:
                vector = fallback_vector()

        logger.debug(
            "Sparse vector generated from term statistics",
            term_count=len(terms),
            vector_size=len(vector),
            fallback=used_fallback
        )
        return vector


async def sparse_from_statistics(
    analyzer: LexicalAnalyzer,
    text: str,
    type_label: str = "",
    category: str = "",
    subcategory: str = "",
    index_mode: str = INDEX_MODE_RANK,
    **encoder_options: Any,
) -> SparseVector:
    """Functional form of ``TermStatisticsSparseEncoder.encode``.

    ``encoder_options`` are forwarded to the encoder (``create_attempts``,
    ``retry_delay``, ``feature_space``, ``metrics``).
    """
    encoder = TermStatisticsSparseEncoder(analyzer, index_mode=index_mode, **encoder_options)
    return await encoder.encode(text, type_label, category, subcategory)
