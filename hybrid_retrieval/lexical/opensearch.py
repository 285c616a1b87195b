"""OpenSearch lexical-statistics provider."""

import asyncio
from typing import Any, Dict, List, Optional

import structlog
from opensearchpy import OpenSearch, exceptions

from ..errors import LexicalAnalysisError
from .base import LexicalAnalyzer, TermStatistics

logger = structlog.get_logger("lexical.opensearch")


class OpenSearchLexicalAnalyzer(LexicalAnalyzer):
    """Lexical analyzer backed by OpenSearch ``_termvectors``.

    The synchronous ``opensearch-py`` client is driven from worker threads so
    callers on the event loop are not blocked.
    """

    def __init__(
        self,
        hosts: List[str],
        username: Optional[str] = None,
        password: Optional[str] = None,
        verify_certs: bool = False,
        ssl_assert_hostname: bool = False,
        ssl_show_warn: bool = False,
        client: Optional[OpenSearch] = None,
    ):
        """Initialize the analyzer.

        Args:
            hosts: List of OpenSearch host URLs
            username: OpenSearch username
            password: OpenSearch password
            verify_certs: Whether to verify SSL certificates
            ssl_assert_hostname: Whether to assert hostname
            ssl_show_warn: Whether to show SSL warnings
            client: Pre-built client (tests, shared connection pools)
        """
        self.hosts = hosts
        self.client = client or OpenSearch(
            hosts=hosts,
            http_auth=(username, password) if username and password else None,
            verify_certs=verify_certs,
            ssl_assert_hostname=ssl_assert_hostname,
            ssl_show_warn=ssl_show_warn,
            use_ssl=True if hosts[0].startswith('https') else False,
        )

    async def create_index(self, name: str, body: Dict[str, Any]) -> None:
        try:
            await asyncio.to_thread(self.client.indices.create, index=name, body=body)
            logger.debug("Temporary analysis index created", index_name=name)
        except exceptions.OpenSearchException as e:
            raise LexicalAnalysisError(f"Failed to create index {name}: {e}") from e

    async def index_document(self, name: str, document: Dict[str, Any]) -> None:
        try:
            await asyncio.to_thread(
                self.client.index,
                index=name,
                body=document,
                refresh=True,
            )
        except exceptions.OpenSearchException as e:
            raise LexicalAnalysisError(f"Failed to index document into {name}: {e}") from e

    async def term_vectors(
        self,
        name: str,
        document: Dict[str, Any],
        field: str,
        term_filter: Dict[str, Any],
    ) -> Dict[str, TermStatistics]:
        body = {
            "doc": document,
            "fields": [field],
            "term_statistics": True,
            "field_statistics": True,
            "positions": True,
            "offsets": True,
            "filter": term_filter,
        }
        try:
            response = await asyncio.to_thread(self.client.termvectors, index=name, body=body)
        except exceptions.OpenSearchException as e:
            raise LexicalAnalysisError(f"Term vectors request failed for {name}: {e}") from e

        terms = (response.get("term_vectors") or {}).get(field, {}).get("terms") or {}
        return {
            term: TermStatistics(
                term_freq=int(stats.get("term_freq") or 0),
                doc_freq=int(stats.get("doc_freq") or 1),
            )
            for term, stats in terms.items()
        }

    async def delete_index(self, name: str) -> None:
        try:
            await asyncio.to_thread(self.client.indices.delete, index=name)
            logger.debug("Temporary analysis index deleted", index_name=name)
        except exceptions.NotFoundError:
            logger.debug("Temporary analysis index already absent", index_name=name)

    def close(self) -> None:
        """Close the OpenSearch client connection."""
        try:
            self.client.close()
            logger.info("OpenSearch lexical client closed")
        except Exception as e:
            logger.error("Failed to close OpenSearch lexical client", error=str(e))
