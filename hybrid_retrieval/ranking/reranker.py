"""Classification-aware reranking of hybrid search candidates.

The underlying similarity scores sit in a narrow numeric range, so the
boosts here are large and multiplicative: a correctly typed
collection or an exact product-name match must beat content that is merely
similar.
"""

from typing import Callable, Hashable, Iterable, List, Optional, TypeVar

import structlog

from ..types import Candidate, Classification, RerankedCandidate

logger = structlog.get_logger("ranking.reranker")

T = TypeVar("T")

COLLECTION_TYPE = "collection"
PRODUCT_TYPE = "product"
MAX_CLASSIFICATION_POINTS = 3


def dedupe_by(items: Iterable[T], key: Callable[[T], Hashable]) -> List[T]:
    """Drop items whose key was already seen, keeping the first occurrence."""
    seen = set()
    unique: List[T] = []
    for item in items:
        item_key = key(item)
        if item_key in seen:
            continue
        seen.add(item_key)
        unique.append(item)
    return unique


def classification_match_points(candidate: Candidate, classification: Classification) -> int:
    """Points out of three: type, then category, then sub-category.

    Category and sub-category only count once the type matches.
    """
    metadata = candidate.metadata
    if not metadata.type or metadata.type != classification.type:
        return 0

    points = 1
    if classification.category and metadata.category == classification.category:
        points += 1
    if classification.sub_category.matches(metadata.sub_category):
        points += 1
    return points


def format_match(points: int) -> str:
    return f"{points}/{MAX_CLASSIFICATION_POINTS}"


def raw_ranking(candidates: Iterable[Candidate]) -> List[RerankedCandidate]:
    """Annotate candidates without reranking (no classification available)."""
    return [
        RerankedCandidate(
            candidate=candidate,
            rerank_score=candidate.score or 0.0,
            classification_match=format_match(0),
        )
        for candidate in candidates
    ]


class ClassificationReranker:
    """Rescore candidates against a query classification.

    Multipliers, applied in order:
    - type: ``collection_boost`` when query and candidate are both
      collections, else ``type_boost`` when the candidate type matches
    - classification: ``1 + (points / 3) * 2``
    - product name: ``exact_title_boost`` on equality with the query,
      ``partial_title_boost`` on containment either way
    """

    def __init__(
        self,
        collection_boost: float = 30.0,
        type_boost: float = 3.0,
        exact_title_boost: float = 100.0,
        partial_title_boost: float = 10.0,
    ):
        self.collection_boost = collection_boost
        self.type_boost = type_boost
        self.exact_title_boost = exact_title_boost
        self.partial_title_boost = partial_title_boost

    def type_multiplier(self, candidate: Candidate, classification: Classification) -> float:
        candidate_type = candidate.metadata.type
        if classification.type == COLLECTION_TYPE and candidate_type == COLLECTION_TYPE:
            return self.collection_boost
        if candidate_type and candidate_type == classification.type:
            return self.type_boost
        return 1.0

    def title_multiplier(self, candidate: Candidate, query: str) -> float:
        if candidate.metadata.type != PRODUCT_TYPE:
            return 1.0

        title = (candidate.metadata.title or "").lower().strip()
        normalized_query = (query or "").lower().strip()
        if not title or not normalized_query:
            return 1.0

        if title == normalized_query:
            return self.exact_title_boost
        if normalized_query in title or title in normalized_query:
            return self.partial_title_boost
        return 1.0

    def score(self, candidate: Candidate, classification: Classification, query: str) -> RerankedCandidate:
        points = classification_match_points(candidate, classification)

        rerank_score = candidate.score or 0.0
        rerank_score *= self.type_multiplier(candidate, classification)
        rerank_score *= 1 + (points / MAX_CLASSIFICATION_POINTS) * 2
        rerank_score *= self.title_multiplier(candidate, query)

        return RerankedCandidate(
            candidate=candidate,
            rerank_score=rerank_score,
            classification_match=format_match(points),
        )

    def rerank(
        self,
        candidates: Iterable[Candidate],
        classification: Classification,
        query: str,
        dedupe: bool = True,
    ) -> List[RerankedCandidate]:
        """Score and sort ``candidates``; ties keep their input order."""
        pool = list(candidates)
        if dedupe:
            pool = dedupe_by(pool, lambda c: c.natural_key)

        scored = [self.score(candidate, classification, query) for candidate in pool]
        ranked = sorted(scored, key=lambda r: r.rerank_score, reverse=True)

        logger.debug(
            "Candidates reranked",
            input_count=len(pool),
            classification_type=classification.type,
            top_score=ranked[0].rerank_score if ranked else None,
        )
        return ranked


# Question words carry no signal when matching a query against Q&A text.
QA_QUERY_STOPWORDS = frozenset({
    "what", "how", "where", "when", "why", "do", "does", "is", "are",
    "the", "a", "an", "it", "this", "that",
})
PURCHASE_TERMS = ("buy", "purchase", "checkout", "order", "get it", "add to cart")
QA_SCORE_CEILING = 1000.0


def term_match_ratio(query: str, text: str) -> float:
    """Share of non-question query words that occur in ``text``."""
    terms = [t for t in query.lower().split(" ") if t and t not in QA_QUERY_STOPWORDS]
    if not terms:
        return 0.0
    text = text.lower()
    return sum(1 for term in terms if term in text) / len(terms)


def is_purchase_intent(classification: Classification, query: str) -> bool:
    return (
        classification.type == PRODUCT_TYPE
        and classification.category == "statement"
        and classification.sub_category.value == "intent_signal"
        and "buy" in query.lower()
    )


class QAReranker:
    """Rescore Q&A candidates.

    Q&A entries are scored on classification agreement and on how many query
    words the question/answer text contains. Purchase-intent queries favor
    entries about buying and entries linking to a product. Scores are capped
    at ``score_ceiling``.
    """

    def __init__(
        self,
        purchase_boost: float = 3.0,
        product_link_boost: float = 2.0,
        score_ceiling: float = QA_SCORE_CEILING,
    ):
        self.purchase_boost = purchase_boost
        self.product_link_boost = product_link_boost
        self.score_ceiling = score_ceiling

    def score(self, candidate: Candidate, classification: Classification, query: str) -> RerankedCandidate:
        metadata = candidate.metadata
        points = classification_match_points(candidate, classification)
        qa_text = f"{metadata.question or ''} {metadata.answer or ''}".lower()

        rerank_score = candidate.score or 0.0
        rerank_score *= 1 + (points / MAX_CLASSIFICATION_POINTS) * 2
        rerank_score *= 1 + term_match_ratio(query, qa_text) * 2

        if is_purchase_intent(classification, query):
            if any(term in qa_text for term in PURCHASE_TERMS):
                rerank_score *= self.purchase_boost
            if metadata.extra.get("url") or metadata.extra.get("productUrl"):
                rerank_score *= self.product_link_boost

        return RerankedCandidate(
            candidate=candidate,
            rerank_score=min(rerank_score, self.score_ceiling),
            classification_match=format_match(points),
        )

    def rerank(
        self,
        candidates: Iterable[Candidate],
        classification: Classification,
        query: str,
        dedupe: bool = True,
    ) -> List[RerankedCandidate]:
        pool = list(candidates)
        if dedupe:
            pool = dedupe_by(pool, lambda c: c.question_key)
        scored = [self.score(candidate, classification, query) for candidate in pool]
        return sorted(scored, key=lambda r: r.rerank_score, reverse=True)


_default_reranker = ClassificationReranker()
_default_qa_reranker = QAReranker()


def rerank(
    candidates: Iterable[Candidate],
    classification: Optional[Classification],
    query: str,
    dedupe: bool = True,
) -> List[RerankedCandidate]:
    """Rerank with the default boosts; without a classification, keep raw order."""
    if classification is None:
        return raw_ranking(candidates)
    return _default_reranker.rerank(candidates, classification, query, dedupe=dedupe)


def rerank_qa(
    candidates: Iterable[Candidate],
    classification: Optional[Classification],
    query: str,
    dedupe: bool = True,
) -> List[RerankedCandidate]:
    """Q&A counterpart of ``rerank``."""
    if classification is None:
        return raw_ranking(candidates)
    return _default_qa_reranker.rerank(candidates, classification, query, dedupe=dedupe)


def create_reranker(**params) -> ClassificationReranker:
    """Factory for a reranker with custom boosts."""
    return ClassificationReranker(**params)
