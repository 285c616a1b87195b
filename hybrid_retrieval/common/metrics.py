"""Metrics collection for the retrieval engine.

Provides a thin convenience wrapper around ``prometheus_client`` so the
search executor, the sparse generators and the embedding providers record
their signals consistently.

Design notes
- Metrics and labels are predeclared to avoid cardinality explosions
  (namespaces are labelled by interaction type, never by website id)
- A single registry is kept per collector (can be injected for testing)
"""

from typing import Optional

from prometheus_client import CollectorRegistry, Counter, Histogram, generate_latest
import structlog

logger = structlog.get_logger("metrics")


class RetrievalMetrics:
    """Centralized metrics for hybrid retrieval.

    Parameters
    - service_name: Logical name of the embedding process
    - registry: Optional custom ``CollectorRegistry`` (e.g. for testing)
    """

    def __init__(self, service_name: str, registry: Optional[CollectorRegistry] = None):
        self.service_name = service_name
        self.registry = registry or CollectorRegistry()

        self.search_requests = Counter(
            'hr_search_requests_total',
            'Total hybrid search requests',
            ['mode'],
            registry=self.registry
        )

        self.search_duration = Histogram(
            'hr_search_duration_seconds',
            'Hybrid search duration including reranking',
            ['mode'],
            registry=self.registry
        )

        self.namespace_failures = Counter(
            'hr_namespace_query_failures_total',
            'Namespace queries that raised and were skipped',
            ['interaction_type'],
            registry=self.registry
        )

        self.candidates_returned = Histogram(
            'hr_candidates_returned',
            'Candidates returned after deduplication',
            ['mode'],
            buckets=(0, 1, 3, 5, 10, 15, 21, 30, 50),
            registry=self.registry
        )

        self.lexical_fallbacks = Counter(
            'hr_lexical_fallbacks_total',
            'Document-side sparse vectors that fell back to a default',
            ['reason'],
            registry=self.registry
        )

        self.embedding_requests = Counter(
            'hr_embedding_requests_total',
            'Total embedding requests',
            ['backend', 'status'],
            registry=self.registry
        )

        self.embedding_duration = Histogram(
            'hr_embedding_duration_seconds',
            'Embedding request duration',
            ['backend'],
            registry=self.registry
        )

    def record_search(self, mode: str, duration: float, result_count: int) -> None:
        """Record a completed search (duration in seconds)."""
        self.search_requests.labels(mode=mode).inc()
        self.search_duration.labels(mode=mode).observe(duration)
        self.candidates_returned.labels(mode=mode).observe(result_count)

    def record_namespace_failure(self, interaction_type: str) -> None:
        """Record a namespace query that failed and was skipped."""
        self.namespace_failures.labels(interaction_type=interaction_type).inc()

    def record_lexical_fallback(self, reason: str) -> None:
        """Record a document-side sparse fallback (``error`` or ``no_terms``)."""
        self.lexical_fallbacks.labels(reason=reason).inc()

    def record_embedding(self, backend: str, status: str, duration: float) -> None:
        """Record one embedding call."""
        self.embedding_requests.labels(backend=backend, status=status).inc()
        self.embedding_duration.labels(backend=backend).observe(duration)

    def get_metrics(self) -> str:
        """Get metrics in Prometheus exposition format for scraping."""
        return generate_latest(self.registry).decode('utf-8')


# Global metrics collector instance
_metrics_collector: Optional[RetrievalMetrics] = None


def get_metrics_collector(service_name: str = "hybrid-retrieval") -> RetrievalMetrics:
    """Get or create the process-wide metrics collector.

    Returns a singleton so repeated construction of executors and encoders
    does not register duplicate collectors.
    """
    global _metrics_collector
    if _metrics_collector is None:
        _metrics_collector = RetrievalMetrics(service_name)
    return _metrics_collector
