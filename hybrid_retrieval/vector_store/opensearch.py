"""OpenSearch hybrid index implementation.

Every document carries its namespace as a keyword, its dense vector in a
``knn_vector`` field and its sparse vector in a ``rank_features`` field keyed
by feature index. A query is a ``bool`` whose filter pins the namespace and
whose ``should`` clauses add the k-NN score to one linear ``rank_feature``
score per sparse entry, so the two modalities sum.
"""

import asyncio
import time
from typing import Any, Dict, List, Optional, Sequence

import structlog
from opensearchpy import OpenSearch, exceptions
from opensearchpy.helpers import bulk

from ..types import Candidate, CandidateMetadata, SparseVector
from .base import (
    HybridIndex,
    IndexRecord,
    MetadataFilter,
    VectorIndexConnectionError,
    VectorIndexQueryError,
)

logger = structlog.get_logger("vector_store.opensearch")

SPARSE_FIELD = "sparse"
DENSE_FIELD = "vector"
META_FIELD = "meta"


def translate_filter(metadata_filter: Optional[MetadataFilter]) -> List[Dict[str, Any]]:
    """Translate ``{"field": {"$in": [...]}}`` filters into OpenSearch clauses."""
    clauses: List[Dict[str, Any]] = []
    for name, condition in (metadata_filter or {}).items():
        field_name = f"{META_FIELD}.{name}"
        if isinstance(condition, dict):
            if "$in" in condition:
                clauses.append({"terms": {field_name: list(condition["$in"])}})
            elif "$eq" in condition:
                clauses.append({"term": {field_name: condition["$eq"]}})
            else:
                raise ValueError(f"Unsupported filter operator for {name}: {sorted(condition)}")
        else:
            clauses.append({"term": {field_name: condition}})
    return clauses


def sparse_clauses(sparse: SparseVector) -> List[Dict[str, Any]]:
    """One linear ``rank_feature`` clause per positive sparse entry."""
    return [
        {
            "rank_feature": {
                "field": f"{SPARSE_FIELD}.{index}",
                "linear": {},
                "boost": value,
            }
        }
        for index, value in sparse
        if value > 0
    ]


class OpenSearchHybridIndex(HybridIndex):
    """OpenSearch-based hybrid index."""

    def __init__(
        self,
        hosts: List[str],
        index_name: str = "hybrid-content",
        vector_dimension: int = 3072,
        username: Optional[str] = None,
        password: Optional[str] = None,
        verify_certs: bool = False,
        ssl_assert_hostname: bool = False,
        ssl_show_warn: bool = False,
        client: Optional[OpenSearch] = None,
    ):
        """Initialize the OpenSearch hybrid index.

        Args:
            hosts: List of OpenSearch host URLs
            index_name: Name of the index holding every namespace
            vector_dimension: Dimension of the dense vectors
            username: OpenSearch username
            password: OpenSearch password
            verify_certs: Whether to verify SSL certificates
            ssl_assert_hostname: Whether to assert hostname
            ssl_show_warn: Whether to show SSL warnings
            client: Pre-built client (tests, shared connection pools)
        """
        self.hosts = hosts
        self.index_name = index_name
        self.vector_dimension = vector_dimension

        self.client = client or OpenSearch(
            hosts=hosts,
            http_auth=(username, password) if username and password else None,
            verify_certs=verify_certs,
            ssl_assert_hostname=ssl_assert_hostname,
            ssl_show_warn=ssl_show_warn,
            use_ssl=True if hosts[0].startswith('https') else False,
        )

        self._initialized = False

    def index_body(self) -> Dict[str, Any]:
        """Settings and mappings for the hybrid index."""
        return {
            "mappings": {
                "properties": {
                    "namespace": {"type": "keyword"},
                    "doc_id": {"type": "keyword"},
                    DENSE_FIELD: {
                        "type": "knn_vector",
                        "dimension": self.vector_dimension,
                        "method": {
                            "name": "hnsw",
                            "space_type": "innerproduct",
                            "engine": "faiss",
                            "parameters": {
                                "ef_construction": 128,
                                "m": 24
                            }
                        }
                    },
                    SPARSE_FIELD: {"type": "rank_features"},
                    META_FIELD: {
                        "type": "object",
                        "properties": {
                            "type": {"type": "keyword"},
                            "category": {"type": "keyword"},
                            "handle": {"type": "keyword"},
                        }
                    },
                    "updated_at": {"type": "date"}
                }
            },
            "settings": {
                "index": {
                    "knn": True,
                    "knn.algo_param.ef_search": 100,
                    "number_of_shards": 1,
                    "number_of_replicas": 0
                }
            }
        }

    async def initialize(self) -> None:
        """Create the index if it doesn't exist."""
        try:
            exists = await asyncio.to_thread(self.client.indices.exists, index=self.index_name)
            if not exists:
                await asyncio.to_thread(
                    self.client.indices.create,
                    index=self.index_name,
                    body=self.index_body()
                )
                logger.info("OpenSearch hybrid index created", index_name=self.index_name)

            self._initialized = True

        except exceptions.ConnectionError as e:
            logger.error("Failed to reach OpenSearch", index_name=self.index_name, error=str(e))
            raise VectorIndexConnectionError(str(e)) from e
        except exceptions.OpenSearchException as e:
            logger.error("Failed to initialize OpenSearch hybrid index", error=str(e))
            raise VectorIndexQueryError(str(e)) from e

    def build_query(
        self,
        namespace: str,
        dense: Sequence[float],
        sparse: SparseVector,
        top_k: int,
        metadata_filter: Optional[MetadataFilter] = None,
    ) -> Dict[str, Any]:
        """Request body for one namespaced hybrid query.

        The namespace and metadata filters are applied inside the knn clause
        too, so the ``k`` nearest neighbours come from the namespace itself.
        """
        filters = [{"term": {"namespace": namespace}}] + translate_filter(metadata_filter)
        should: List[Dict[str, Any]] = []
        if any(dense):
            should.append({
                "knn": {
                    DENSE_FIELD: {
                        "vector": [float(v) for v in dense],
                        "k": top_k,
                        "filter": {"bool": {"filter": filters}}
                    }
                }
            })
        should.extend(sparse_clauses(sparse))

        return {
            "size": top_k,
            "query": {
                "bool": {
                    "filter": filters,
                    "should": should,
                    "minimum_should_match": 1
                }
            }
        }

    async def query(
        self,
        namespace: str,
        dense: Sequence[float],
        sparse: SparseVector,
        top_k: int = 10,
        metadata_filter: Optional[MetadataFilter] = None,
    ) -> List[Candidate]:
        if not self._initialized:
            await self.initialize()

        body = self.build_query(namespace, dense, sparse, top_k, metadata_filter)
        if not body["query"]["bool"]["should"]:
            return []

        try:
            response = await asyncio.to_thread(
                self.client.search,
                index=self.index_name,
                body=body
            )
        except exceptions.ConnectionError as e:
            raise VectorIndexConnectionError(str(e)) from e
        except exceptions.OpenSearchException as e:
            raise VectorIndexQueryError(f"Query failed in namespace {namespace}: {e}") from e

        candidates = []
        for hit in response['hits']['hits']:
            source = hit['_source']
            candidates.append(Candidate(
                id=source.get('doc_id') or hit['_id'],
                score=float(hit['_score']) if hit.get('_score') is not None else None,
                metadata=CandidateMetadata.from_dict(source.get(META_FIELD))
            ))

        logger.debug(
            "OpenSearch hybrid query completed",
            namespace=namespace,
            results_count=len(candidates)
        )
        return candidates

    async def upsert(self, namespace: str, records: List[IndexRecord]) -> int:
        if not records:
            return 0
        if not self._initialized:
            await self.initialize()

        now = int(time.time() * 1000)
        actions = []
        for record in records:
            actions.append({
                "_index": self.index_name,
                "_id": f"{namespace}:{record.id}",
                "_source": {
                    "namespace": namespace,
                    "doc_id": record.id,
                    DENSE_FIELD: [float(v) for v in record.dense],
                    SPARSE_FIELD: {str(i): v for i, v in record.sparse if v > 0},
                    META_FIELD: record.metadata,
                    "updated_at": now
                }
            })

        try:
            success_count, failed_items = await asyncio.to_thread(
                bulk, self.client, actions, raise_on_error=False
            )
        except exceptions.OpenSearchException as e:
            logger.error("Bulk upsert failed", namespace=namespace, count=len(records), error=str(e))
            raise VectorIndexQueryError(str(e)) from e

        if failed_items:
            logger.warning(
                "Some records failed to upsert",
                namespace=namespace,
                failed_count=len(failed_items),
                total_count=len(records)
            )

        logger.info("Records upserted", namespace=namespace, count=success_count)
        return success_count

    async def delete_namespace(self, namespace: str) -> int:
        if not self._initialized:
            await self.initialize()
        try:
            response = await asyncio.to_thread(
                self.client.delete_by_query,
                index=self.index_name,
                body={"query": {"term": {"namespace": namespace}}}
            )
        except exceptions.OpenSearchException as e:
            logger.error("Failed to delete namespace", namespace=namespace, error=str(e))
            raise VectorIndexQueryError(str(e)) from e

        deleted = int(response.get("deleted", 0))
        logger.info("Namespace deleted", namespace=namespace, deleted=deleted)
        return deleted

    async def health_check(self) -> bool:
        try:
            return bool(await asyncio.to_thread(self.client.ping))
        except Exception as e:
            logger.error("OpenSearch health check failed", error=str(e))
            return False

    async def close(self) -> None:
        """Close the OpenSearch client connection."""
        try:
            self.client.close()
            logger.info("OpenSearch client connection closed")
        except Exception as e:
            logger.error("Failed to close OpenSearch client", error=str(e))
