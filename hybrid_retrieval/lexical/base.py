"""Lexical-statistics service interface.

The document-side sparse generator needs four primitives from a text search
engine: create a throwaway index with a custom analyzer, index one document,
read its term vectors with term/document frequencies, and delete the index.
"""

import asyncio
import secrets
import time
import uuid
from abc import ABC, abstractmethod
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Any, AsyncIterator, Dict

import structlog

logger = structlog.get_logger("lexical.base")


@dataclass
class TermStatistics:
    """Per-term statistics returned by a term-vectors request."""
    term_freq: int = 0
    doc_freq: int = 1


def temporary_index_name(prefix: str = "temp-analysis") -> str:
    """Collision-resistant name for a throwaway analysis index."""
    return f"{prefix}-{int(time.time() * 1000)}-{secrets.token_hex(6)}-{uuid.uuid4()}"


class LexicalAnalyzer(ABC):
    """Abstract lexical-statistics provider.

    Implementations only translate these calls to their backend; the
    scoring lives in ``hybrid_retrieval.sparse.statistics``.
    """

    @abstractmethod
    async def create_index(self, name: str, body: Dict[str, Any]) -> None:
        """Create index ``name`` with settings/mappings ``body``."""
        pass

    @abstractmethod
    async def index_document(self, name: str, document: Dict[str, Any]) -> None:
        """Index one document and make it visible to term-vector reads."""
        pass

    @abstractmethod
    async def term_vectors(
        self,
        name: str,
        document: Dict[str, Any],
        field: str,
        term_filter: Dict[str, Any],
    ) -> Dict[str, TermStatistics]:
        """Return ``term -> TermStatistics`` for ``field`` of ``document``.

        The mapping preserves the order in which the backend reported terms.
        """
        pass

    @abstractmethod
    async def delete_index(self, name: str) -> None:
        """Delete index ``name``."""
        pass

    async def _create_with_retry(
        self,
        name: str,
        body: Dict[str, Any],
        attempts: int,
        retry_delay: float,
    ) -> None:
        for attempt in range(1, attempts + 1):
            try:
                await self.create_index(name, body)
                return
            except Exception as e:
                if attempt == attempts:
                    logger.error(
                        "Failed to create temporary index",
                        index_name=name,
                        attempts=attempt,
                        error=str(e)
                    )
                    raise
                logger.warning(
                    "Temporary index creation failed, retrying",
                    index_name=name,
                    attempt=attempt,
                    max_attempts=attempts,
                    error=str(e)
                )
                await asyncio.sleep(retry_delay * attempt)

    @asynccontextmanager
    async def temporary_index(
        self,
        body: Dict[str, Any],
        create_attempts: int = 1,
        retry_delay: float = 1.0,
    ) -> AsyncIterator[str]:
        """Create a throwaway index and delete it on every exit path.

        Yields the generated index name. Creation is attempted up to
        ``create_attempts`` times with linear backoff. Deletion is attempted
        even when creation failed, since a create call can fail after the
        index was materialized. A failed delete is logged and does not mask
        the exception (if any) raised inside the block.
        """
        name = temporary_index_name()
        try:
            await self._create_with_retry(name, body, create_attempts, retry_delay)
            yield name
        finally:
            try:
                await self.delete_index(name)
            except Exception as e:
                logger.error("Failed to delete temporary index", index_name=name, error=str(e))
