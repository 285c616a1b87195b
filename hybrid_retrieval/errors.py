"""Exception hierarchy for the retrieval engine.

Only ``EmbeddingError`` is expected to reach callers of the query path;
lexical and per-namespace failures are recovered locally and logged.
"""


class RetrievalError(Exception):
    """Base exception for retrieval operations."""
    pass


class EmbeddingError(RetrievalError):
    """Embedding provider unreachable or rejected the input."""
    pass


class LexicalAnalysisError(RetrievalError):
    """Lexical-statistics service failed (index lifecycle or term vectors)."""
    pass


class VectorIndexError(RetrievalError):
    """Base exception for vector index operations."""
    pass


class VectorIndexConnectionError(VectorIndexError):
    """Connection error to the vector index."""
    pass


class VectorIndexQueryError(VectorIndexError):
    """Query error in the vector index."""
    pass
