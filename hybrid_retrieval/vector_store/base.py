"""Base hybrid index interface.

Defines the contract the search executor depends on, independent of the
backing implementation. An index is split into namespaces; a query only
ever sees documents of the namespace it names.

All methods are asynchronous to support concurrent namespace fan-out.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence

from ..errors import (  # noqa: F401  re-exported for backends
    VectorIndexConnectionError,
    VectorIndexError,
    VectorIndexQueryError,
)
from ..types import Candidate, SparseVector

# ``{"type": {"$in": ["collection", "product"]}}`` style filters.
MetadataFilter = Dict[str, Any]


def type_filter(*types: str) -> MetadataFilter:
    """Filter matching documents whose metadata ``type`` is one of ``types``."""
    return {"type": {"$in": list(types)}}


@dataclass
class IndexRecord:
    """A document to upsert: id, both vector halves and raw metadata."""
    id: str
    dense: Sequence[float]
    sparse: SparseVector
    metadata: Dict[str, Any] = field(default_factory=dict)


class HybridIndex(ABC):
    """Abstract namespaced dense + sparse index.

    Implementations must combine the dense and sparse similarities
    additively, so that alpha-scaling the query halves rebalances them.
    """

    @abstractmethod
    async def query(
        self,
        namespace: str,
        dense: Sequence[float],
        sparse: SparseVector,
        top_k: int = 10,
        metadata_filter: Optional[MetadataFilter] = None,
    ) -> List[Candidate]:
        """Top-``top_k`` matches in ``namespace``, best first.

        Raises
        - ``VectorIndexError`` subclasses on backend failures
        """
        pass

    @abstractmethod
    async def upsert(self, namespace: str, records: List[IndexRecord]) -> int:
        """Insert or replace ``records``; returns the number stored."""
        pass

    @abstractmethod
    async def delete_namespace(self, namespace: str) -> int:
        """Remove every document in ``namespace``; returns the number deleted."""
        pass

    @abstractmethod
    async def health_check(self) -> bool:
        """Check if the index backend is reachable."""
        pass
