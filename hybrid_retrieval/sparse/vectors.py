"""Hashed sparse vector builders.

Two deterministic, service-free builders live here:

- ``build_query_sparse``: query side, ``sqrt(tf)`` weights. Short queries
  make log weighting too flat and raw counts too steep.
- ``generate_stable_sparse``: document side, ``1 + ln(tf)`` weights with a
  small stopword list, for pipelines that cannot reach the lexical service.

Both hash token text with ``hash_token_to_index`` and return indices in
strictly ascending order.
"""

import math
from collections import Counter, defaultdict
from typing import Dict, Iterable, Mapping, Optional

from ..types import Classification, SparseVector
from .hashing import hash_token_to_index
from .tokenizer import STOPWORDS, tokenize_text

DEFAULT_FEATURE_SPACE = 2_000_003


def hashed_vector(term_weights: Mapping[str, float], feature_space: int) -> SparseVector:
    """Hash each term's weight into ``feature_space``; colliding terms add up."""
    index_to_weight: Dict[int, float] = defaultdict(float)
    for term, weight in term_weights.items():
        index_to_weight[hash_token_to_index(term, feature_space)] += weight

    ordered = sorted(index_to_weight.items())
    return SparseVector(
        indices=[index for index, _ in ordered],
        values=[value for _, value in ordered],
    )


def build_query_sparse(
    tokens: Iterable[str],
    feature_space: int = DEFAULT_FEATURE_SPACE,
) -> SparseVector:
    """Build the query-side sparse vector from already-tokenized text."""
    if feature_space < 2:
        raise ValueError(f"feature_space must be at least 2, got {feature_space}")
    weights = {term: math.sqrt(tf) for term, tf in Counter(tokens).items()}
    return hashed_vector(weights, feature_space)


def generate_stable_sparse(
    text: str,
    feature_space: int = DEFAULT_FEATURE_SPACE,
) -> SparseVector:
    """Document-side sparse vector computed locally from ``text``."""
    if feature_space < 2:
        raise ValueError(f"feature_space must be at least 2, got {feature_space}")
    term_frequency = Counter(t for t in tokenize_text(text or "") if t not in STOPWORDS)
    weights = {term: 1.0 + math.log(tf) for term, tf in term_frequency.items()}
    return hashed_vector(weights, feature_space)


def augment_with_classification(text: str, classification: Optional[Classification]) -> str:
    """Bias ``text`` toward its classification labels.

    Type and category are appended twice, the sub-category once.
    """
    if classification is None:
        return text
    sub_category = classification.sub_category.label()
    return (
        f"{text} {classification.type} {classification.type} "
        f"{classification.category} {classification.category} {sub_category}"
    )


def limit_sparse_vector_size(vector: SparseVector, max_size: int = 1000) -> SparseVector:
    """Keep the ``max_size`` highest-weighted entries.

    The survivors are re-sorted by index so the ascending-index property of
    the input is preserved.
    """
    if len(vector) <= max_size:
        return vector
    top = sorted(vector, key=lambda item: item[1], reverse=True)[:max_size]
    top.sort(key=lambda item: item[0])
    return SparseVector(
        indices=[index for index, _ in top],
        values=[value for _, value in top],
    )


def should_fallback_to_collections(sparse: SparseVector, min_terms: int = 3) -> bool:
    """True when a query has too few lexical terms to search meaningfully.

    The orchestrator answers such ultra-generic questions with the catalog
    page instead of a search.
    """
    return len(sparse) < min_terms
