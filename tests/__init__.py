"""Tests for the hybrid retrieval engine.

External services (embedding provider, lexical service, vector index) are
replaced by in-memory fakes from ``conftest.py``; OpenSearch, httpx and
OpenAI adapters are exercised against mocked clients.
"""
