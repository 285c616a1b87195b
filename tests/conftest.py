"""Shared fixtures and in-memory fakes for the external providers."""

from typing import Any, Dict, List, Optional, Sequence, Set

import pytest
from prometheus_client import CollectorRegistry

from hybrid_retrieval.common.config import RetrievalConfig
from hybrid_retrieval.common.metrics import RetrievalMetrics
from hybrid_retrieval.encoders.embedding_provider import EmbeddingProvider
from hybrid_retrieval.errors import EmbeddingError, LexicalAnalysisError, VectorIndexQueryError
from hybrid_retrieval.lexical.base import LexicalAnalyzer, TermStatistics
from hybrid_retrieval.sparse.hashing import fnv1a32
from hybrid_retrieval.types import Candidate, CandidateMetadata, SparseVector
from hybrid_retrieval.vector_store.base import HybridIndex, IndexRecord, MetadataFilter


class FakeEmbeddingProvider(EmbeddingProvider):
    """Deterministic embeddings derived from the text hash."""

    backend = "fake"

    def __init__(self, dimension: int = 8, failing_texts: Optional[Set[str]] = None):
        self.dimension = dimension
        self.failing_texts = failing_texts or set()
        self.calls: List[str] = []

    async def embed(self, text: str, model: Optional[str] = None) -> List[float]:
        self.calls.append(text)
        if text in self.failing_texts:
            raise EmbeddingError(f"cannot embed {text!r}")
        seed = fnv1a32(text)
        return [((seed >> (i % 24)) % 97 + 1) / 100.0 for i in range(self.dimension)]


class FakeHybridIndex(HybridIndex):
    """Namespaced in-memory index returning stored candidates in order."""

    def __init__(
        self,
        namespaces: Optional[Dict[str, List[Candidate]]] = None,
        failing_namespaces: Optional[Set[str]] = None,
    ):
        self.namespaces = namespaces or {}
        self.failing_namespaces = failing_namespaces or set()
        self.queries: List[Dict[str, Any]] = []

    async def query(
        self,
        namespace: str,
        dense: Sequence[float],
        sparse: SparseVector,
        top_k: int = 10,
        metadata_filter: Optional[MetadataFilter] = None,
    ) -> List[Candidate]:
        self.queries.append({
            "namespace": namespace,
            "dense": list(dense),
            "top_k": top_k,
            "metadata_filter": metadata_filter,
        })
        if namespace in self.failing_namespaces:
            raise VectorIndexQueryError(f"namespace {namespace} unavailable")

        matches = self.namespaces.get(namespace, [])
        if metadata_filter and "type" in metadata_filter:
            allowed = metadata_filter["type"]["$in"]
            matches = [c for c in matches if c.metadata.type in allowed]
        return list(matches[:top_k])

    async def upsert(self, namespace: str, records: List[IndexRecord]) -> int:
        stored = self.namespaces.setdefault(namespace, [])
        for record in records:
            stored.append(Candidate(record.id, 1.0, CandidateMetadata.from_dict(record.metadata)))
        return len(records)

    async def delete_namespace(self, namespace: str) -> int:
        return len(self.namespaces.pop(namespace, []))

    async def health_check(self) -> bool:
        return True


class FakeLexicalAnalyzer(LexicalAnalyzer):
    """Records the temporary index lifecycle and returns canned term statistics."""

    def __init__(
        self,
        terms: Optional[Dict[str, TermStatistics]] = None,
        fail_on: Optional[str] = None,
        create_failures: int = 0,
    ):
        self.terms = terms or {}
        self.fail_on = fail_on
        self.create_failures = create_failures
        self.create_attempts: List[str] = []
        self.created: List[str] = []
        self.deleted: List[str] = []
        self.documents: List[Dict[str, Any]] = []
        self.bodies: List[Dict[str, Any]] = []

    async def create_index(self, name: str, body: Dict[str, Any]) -> None:
        self.create_attempts.append(name)
        self.bodies.append(body)
        if self.fail_on == "create" or len(self.create_attempts) <= self.create_failures:
            raise LexicalAnalysisError("create failed")
        self.created.append(name)

    async def index_document(self, name: str, document: Dict[str, Any]) -> None:
        if self.fail_on == "index":
            raise LexicalAnalysisError("index failed")
        self.documents.append(document)

    async def term_vectors(
        self,
        name: str,
        document: Dict[str, Any],
        field: str,
        term_filter: Dict[str, Any],
    ) -> Dict[str, TermStatistics]:
        if self.fail_on == "term_vectors":
            raise LexicalAnalysisError("term vectors failed")
        return dict(self.terms)

    async def delete_index(self, name: str) -> None:
        self.deleted.append(name)


def make_candidate(
    id: str,
    score: Optional[float] = 0.5,
    type: Optional[str] = None,
    title: Optional[str] = None,
    **metadata: Any,
) -> Candidate:
    fields = dict(metadata)
    if type is not None:
        fields["type"] = type
    if title is not None:
        fields["title"] = title
    return Candidate(id=id, score=score, metadata=CandidateMetadata.from_dict(fields))


@pytest.fixture
def metrics():
    """Metrics collector on a private registry."""
    return RetrievalMetrics("test-service", registry=CollectorRegistry())


@pytest.fixture
def config():
    """Configuration with defaults only, ignoring the environment file."""
    return RetrievalConfig(_env_file=None)


@pytest.fixture
def embedder():
    return FakeEmbeddingProvider()
