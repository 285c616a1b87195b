"""Namespace search executor for hybrid queries.

Routes a hybrid query to the namespaces of a website, runs the namespace
queries concurrently, merges and deduplicates their matches and hands the
pool to the classification-aware reranker.

Routing
- Standard mode: one namespace derived from the classification's
  interaction type (``discounts`` when absent), ``standard_top_k`` matches.
- Fallback mode (unclassified interaction or ``use_all_namespaces``): the
  ``sales``, ``support`` and ``discounts`` namespaces, ``fallback_top_k``
  matches each, restricted to collections and products. A failing
  namespace is logged and skipped.
- Collection queries also issue an auxiliary ``"collection " + query``
  search whose matches are merged ahead of the main ones.
"""

import asyncio
import dataclasses
import time
from dataclasses import dataclass, field
from typing import Awaitable, List, Optional, Sequence

import structlog

from ..common.config import RetrievalConfig, get_config
from ..common.logging import log_performance
from ..common.metrics import RetrievalMetrics, get_metrics_collector
from ..encoders.embedding_provider import EmbeddingProvider
from ..errors import RetrievalError
from ..ranking.reranker import (
    COLLECTION_TYPE,
    PRODUCT_TYPE,
    ClassificationReranker,
    QAReranker,
    dedupe_by,
    raw_ranking,
)
from ..sparse.vectors import should_fallback_to_collections
from ..types import (
    Candidate,
    Classification,
    InteractionType,
    RerankedCandidate,
    SparseVector,
    WILDCARD_SUB_CATEGORY,
)
from ..vector_store.base import HybridIndex, MetadataFilter, type_filter
from .namespaces import (
    DEFAULT_INTERACTION_TYPE,
    FALLBACK_INTERACTION_TYPES,
    is_unspecified,
    namespace_for,
    qa_namespace,
)
from .query_vectors import build_enhanced_query, build_hybrid_query_vectors, choose_alpha

logger = structlog.get_logger("hybrid.search_manager")

COLLECTION_QUERY_PREFIX = "collection "
# Stamped onto Q&A labels the classification leaves empty.
DEFAULT_QA_LABEL = WILDCARD_SUB_CATEGORY


@dataclass
class NamespaceQuery:
    """One planned index query."""
    namespace: str
    dense: Sequence[float]
    sparse: SparseVector
    top_k: int
    metadata_filter: Optional[MetadataFilter] = None
    kind: str = "main"
    interaction: str = ""


@dataclass
class RetrievalResult:
    """Main and Q&A rankings for one question."""
    main: List[RerankedCandidate] = field(default_factory=list)
    qa: List[RerankedCandidate] = field(default_factory=list)
    redirect_to_collections: bool = False


class SearchExecutor:
    """Runs hybrid searches against a namespaced index.

    Responsibilities
    - Derive namespaces and fan out queries concurrently
    - Isolate per-namespace failures during fan-out
    - Deduplicate, then rerank against the query classification
    """

    def __init__(
        self,
        index: HybridIndex,
        embedder: Optional[EmbeddingProvider] = None,
        config: Optional[RetrievalConfig] = None,
        metrics: Optional[RetrievalMetrics] = None,
        reranker: Optional[ClassificationReranker] = None,
        qa_reranker: Optional[QAReranker] = None,
    ):
        """Construct a search executor.

        Parameters
        - index: hybrid index to query
        - embedder: embedding provider; required for the auxiliary collection
          query, which is skipped without one
        - config: tunables (top-k values, alphas, feature space)
        """
        self.index = index
        self.embedder = embedder
        self.config = config or get_config()
        self.metrics = metrics or get_metrics_collector()
        self.reranker = reranker or ClassificationReranker()
        self.qa_reranker = qa_reranker or QAReranker()

    @staticmethod
    def use_fallback(classification: Optional[Classification], use_all_namespaces: bool) -> bool:
        if use_all_namespaces:
            return True
        return classification is not None and is_unspecified(classification.interaction_type)

    @staticmethod
    def interaction_type(classification: Optional[Classification]) -> InteractionType:
        if classification is None or classification.interaction_type is None:
            return DEFAULT_INTERACTION_TYPE
        return classification.interaction_type

    async def _collection_vectors(self, query: str):
        """Vectors for the auxiliary collection query, or None when unavailable."""
        if self.embedder is None:
            logger.debug("No embedder configured, skipping collection query")
            return None
        try:
            return await build_hybrid_query_vectors(
                COLLECTION_QUERY_PREFIX + query,
                self.embedder,
                alpha=self.config.generic_browse_alpha,
                feature_space=self.config.feature_space,
            )
        except RetrievalError as e:
            logger.warning("Collection query vectors failed, continuing without", error=str(e))
            self.metrics.record_namespace_failure("collection")
            return None

    async def _run_queries(self, queries: List[NamespaceQuery], isolate: bool) -> List[Candidate]:
        """Run ``queries`` concurrently and concatenate matches in plan order.

        With ``isolate`` every failure is skipped; otherwise only auxiliary
        failures are, and a failing main query propagates.
        """
        results = await asyncio.gather(
            *(self._query(q) for q in queries),
            return_exceptions=True,
        )

        merged: List[Candidate] = []
        for planned, result in zip(queries, results):
            if isinstance(result, BaseException):
                if not isinstance(result, Exception):
                    raise result
                if not isolate and planned.kind != "collection":
                    raise result
                logger.warning(
                    "Namespace query failed, skipping",
                    namespace=planned.namespace,
                    kind=planned.kind,
                    error=str(result),
                )
                self.metrics.record_namespace_failure(planned.interaction or planned.kind)
                continue
            merged.extend(result)
        return merged

    def _query(self, planned: NamespaceQuery) -> Awaitable[List[Candidate]]:
        return self.index.query(
            planned.namespace,
            planned.dense,
            planned.sparse,
            top_k=planned.top_k,
            metadata_filter=planned.metadata_filter,
        )

    async def perform_search(
        self,
        website_id: str,
        query: str,
        dense: Sequence[float],
        sparse: SparseVector,
        classification: Optional[Classification],
        use_all_namespaces: bool = False,
    ) -> List[RerankedCandidate]:
        """Search a website's content namespaces and rerank the matches.

        Raises
        - ``VectorIndexError`` when the single standard-mode query fails
        """
        start_time = time.time()
        fallback = self.use_fallback(classification, use_all_namespaces)
        collection_filter = type_filter(COLLECTION_TYPE, PRODUCT_TYPE)

        if fallback:
            interactions = list(FALLBACK_INTERACTION_TYPES)
            top_k, metadata_filter = self.config.fallback_top_k, collection_filter
        else:
            interactions = [self.interaction_type(classification)]
            top_k, metadata_filter = self.config.standard_top_k, None

        main_queries = [
            NamespaceQuery(
                namespace_for(website_id, t), dense, sparse, top_k,
                metadata_filter, interaction=t.value,
            )
            for t in interactions
        ]

        namespaces = [q.namespace for q in main_queries]

        aux_queries: List[NamespaceQuery] = []
        if classification is not None and classification.type == COLLECTION_TYPE:
            aux = await self._collection_vectors(query)
            if aux is not None:
                aux_queries = [
                    NamespaceQuery(
                        namespace_for(website_id, t), aux.dense, aux.sparse,
                        self.config.fallback_top_k, collection_filter,
                        kind="collection", interaction=t.value,
                    )
                    for t in interactions
                ]

        pool = await self._run_queries(aux_queries + main_queries, isolate=fallback)
        if fallback:
            pool = dedupe_by(pool, lambda c: c.id)
        else:
            pool = dedupe_by(pool, lambda c: c.natural_key)

        if classification is None:
            ranked = raw_ranking(pool)
        else:
            ranked = self.reranker.rerank(pool, classification, query)

        mode = "fallback" if fallback else "standard"
        duration = time.time() - start_time
        self.metrics.record_search(mode, duration, len(ranked))
        log_performance(
            "perform_search",
            duration * 1000,
            mode=mode,
            namespaces=namespaces,
            results_count=len(ranked),
        )
        return ranked

    def _force_classification(
        self,
        candidate: Candidate,
        classification: Optional[Classification],
    ) -> Candidate:
        """Stamp the query's classification onto a Q&A candidate.

        Labels missing from the classification, or all three without one,
        become ``discounts``.
        """
        labels = {
            "type": DEFAULT_QA_LABEL,
            "category": DEFAULT_QA_LABEL,
            "sub_category": DEFAULT_QA_LABEL,
        }
        if classification is not None:
            labels = {
                "type": classification.type or DEFAULT_QA_LABEL,
                "category": classification.category or DEFAULT_QA_LABEL,
                "sub_category": classification.sub_category.label(),
            }
        metadata = dataclasses.replace(candidate.metadata, **labels)
        return dataclasses.replace(candidate, metadata=metadata)

    async def perform_qa_search(
        self,
        website_id: str,
        query: str,
        dense: Sequence[float],
        sparse: SparseVector,
        classification: Optional[Classification],
        use_all_namespaces: bool = False,
    ) -> List[RerankedCandidate]:
        """Search a website's Q&A namespaces and rerank the entries."""
        start_time = time.time()
        fallback = self.use_fallback(classification, use_all_namespaces)

        if fallback:
            interactions = list(FALLBACK_INTERACTION_TYPES)
            top_k = self.config.fallback_top_k
        else:
            interactions = [self.interaction_type(classification)]
            top_k = self.config.qa_top_k

        queries = [
            NamespaceQuery(
                qa_namespace(website_id, t), dense, sparse, top_k,
                kind="qa", interaction=t.value,
            )
            for t in interactions
        ]

        pool = await self._run_queries(queries, isolate=fallback)
        pool = dedupe_by(pool, lambda c: c.question_key)
        pool = [self._force_classification(c, classification) for c in pool]

        if classification is None:
            ranked = raw_ranking(pool)
        else:
            ranked = self.qa_reranker.rerank(pool, classification, query)

        duration = time.time() - start_time
        self.metrics.record_search("qa", duration, len(ranked))
        log_performance(
            "perform_qa_search",
            duration * 1000,
            namespaces=[q.namespace for q in queries],
            results_count=len(ranked),
        )
        return ranked

    async def safe_search(
        self,
        website_id: str,
        query: str,
        dense: Sequence[float],
        sparse: SparseVector,
        classification: Optional[Classification],
        use_all_namespaces: bool = False,
    ) -> List[RerankedCandidate]:
        """``perform_search`` that reports retrieval failures as no results."""
        try:
            return await self.perform_search(
                website_id, query, dense, sparse, classification, use_all_namespaces
            )
        except RetrievalError as e:
            logger.error("Search failed, returning no results", website_id=website_id, error=str(e))
            return []

    async def retrieve(
        self,
        website_id: str,
        query: str,
        classification: Optional[Classification],
        use_all_namespaces: bool = False,
        previous_question: Optional[str] = None,
        previous_answer: Optional[str] = None,
    ) -> RetrievalResult:
        """Build vectors for ``query`` and run the main and Q&A searches.

        Q&A search uses the question enriched with the previous turn. Questions
        with too few lexical terms are flagged for a collections redirect
        instead of being searched.

        Raises
        - ``EmbeddingError`` when either query cannot be embedded
        """
        if self.embedder is None:
            raise ValueError("retrieve requires an embedding provider")

        alpha = choose_alpha(query, self.config.alpha, self.config.generic_browse_alpha)
        enhanced_query = build_enhanced_query(query, previous_question, previous_answer)

        if enhanced_query == query:
            base = await build_hybrid_query_vectors(query, self.embedder, alpha, self.config.feature_space)
            enhanced = base
        else:
            base, enhanced = await asyncio.gather(
                build_hybrid_query_vectors(query, self.embedder, alpha, self.config.feature_space),
                build_hybrid_query_vectors(enhanced_query, self.embedder, alpha, self.config.feature_space),
            )

        if should_fallback_to_collections(base.sparse, self.config.min_sparse_terms):
            logger.info("Query too generic, redirecting to collections", sparse_terms=len(base.sparse))
            return RetrievalResult(redirect_to_collections=True)

        main, qa = await asyncio.gather(
            self.perform_search(
                website_id, query, base.dense, base.sparse, classification, use_all_namespaces
            ),
            self.perform_qa_search(
                website_id, query, enhanced.dense, enhanced.sparse, classification, use_all_namespaces
            ),
        )
        return RetrievalResult(main=main, qa=qa)


async def perform_search(
    index: HybridIndex,
    website_id: str,
    query: str,
    dense: Sequence[float],
    sparse: SparseVector,
    classification: Optional[Classification],
    use_all_namespaces: bool = False,
    embedder: Optional[EmbeddingProvider] = None,
    config: Optional[RetrievalConfig] = None,
) -> List[RerankedCandidate]:
    """Functional form of ``SearchExecutor.perform_search``."""
    executor = SearchExecutor(index, embedder=embedder, config=config)
    return await executor.perform_search(
        website_id, query, dense, sparse, classification, use_all_namespaces
    )
