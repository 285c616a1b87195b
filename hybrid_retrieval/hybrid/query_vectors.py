"""Query-time hybrid vector construction.

The dense half embeds the raw question; the sparse half is built from the
synonym-expanded, tokenized question. Both are computed concurrently and then
rebalanced with ``alpha`` because the index adds the two similarities.
"""

import asyncio
import re
import time
from typing import List, Optional, Sequence, Tuple

import structlog

from ..common.config import DEFAULT_ALPHA, GENERIC_BROWSE_ALPHA
from ..common.logging import log_performance
from ..encoders.embedding_provider import EmbeddingProvider
from ..sparse.tokenizer import expand_query, tokenize_query
from ..sparse.vectors import DEFAULT_FEATURE_SPACE, build_query_sparse
from ..types import HybridVector, SparseVector

logger = structlog.get_logger("hybrid.query_vectors")

_GENERIC_BROWSE = re.compile(r"what.*(stuff|have|sell|carry|offer)", re.IGNORECASE)


def fuse(dense: Sequence[float], sparse: SparseVector, alpha: float, token_count: int = 0) -> HybridVector:
    """Scale dense by ``1 - alpha`` and sparse by ``alpha``.

    ``alpha=0`` is pure dense search, ``alpha=1`` pure sparse search.
    """
    if not 0.0 <= alpha <= 1.0:
        raise ValueError(f"alpha must be within [0, 1], got {alpha}")
    return HybridVector(
        dense=[value * (1.0 - alpha) for value in dense],
        sparse=sparse.scale(alpha),
        token_count=token_count,
    )


def query_sparse(query: str, feature_space: int = DEFAULT_FEATURE_SPACE) -> Tuple[SparseVector, int]:
    """Expanded-query sparse vector and the number of tokens scored."""
    tokens = tokenize_query(expand_query(query))
    return build_query_sparse(tokens, feature_space), len(tokens)


async def build_hybrid_query_vectors(
    query: str,
    embedder: EmbeddingProvider,
    alpha: float = DEFAULT_ALPHA,
    feature_space: int = DEFAULT_FEATURE_SPACE,
) -> HybridVector:
    """Build the alpha-scaled dense and sparse vectors for ``query``.

    Raises
    - ``EmbeddingError`` when the embedding provider fails
    - ``ValueError`` for ``alpha`` outside ``[0, 1]`` or ``feature_space < 2``
    """
    if not 0.0 <= alpha <= 1.0:
        raise ValueError(f"alpha must be within [0, 1], got {alpha}")

    start_time = time.time()
    dense, (sparse, token_count) = await asyncio.gather(
        embedder.embed(query),
        asyncio.to_thread(query_sparse, query, feature_space),
    )

    hybrid = fuse(dense, sparse, alpha, token_count=token_count)
    if hybrid.sparse.is_empty:
        logger.debug("Query produced no sparse terms", query=query[:50])

    log_performance(
        "build_hybrid_query_vectors",
        (time.time() - start_time) * 1000,
        dense_dims=len(hybrid.dense),
        sparse_terms=len(hybrid.sparse),
        alpha=alpha,
    )
    return hybrid


def is_generic_browse(query: str) -> bool:
    """Questions like "what stuff do you have?" that browse the whole catalog."""
    return bool(_GENERIC_BROWSE.search(query or ""))


def choose_alpha(query: str, default: float = DEFAULT_ALPHA, generic_browse: float = GENERIC_BROWSE_ALPHA) -> float:
    """Lean lexical for generic browse questions."""
    return generic_browse if is_generic_browse(query) else default


def build_enhanced_query(
    query: str,
    previous_question: Optional[str] = None,
    previous_answer: Optional[str] = None,
) -> str:
    """Append the previous turn so follow-up questions keep their subject."""
    if previous_question is None and previous_answer is None:
        return query
    parts: List[str] = [query, previous_question or "", previous_answer or ""]
    return " ".join(parts)
