"""
SemanticIndex - local-first semantic document search.

This package embeds text with a locally loaded model, persists the vectors
in DuckDB with owner/type/region/category lookups, and ranks stored
documents against a query by cosine similarity, with no server round-trip.

Example usage:
    >>> from semantic_index import (
    ...     DuckDBVectorStore, EmbeddingProvider, SemanticIndexOrchestrator,
    ... )
    >>> orchestrator = SemanticIndexOrchestrator(
    ...     DuckDBVectorStore("vectors.duckdb"), EmbeddingProvider(), owner_id="u1"
    ... )
    >>> await orchestrator.initialize()
    >>> outcome = await orchestrator.search_similar("organic matter content")
"""

from .embeddings import EmbeddingConfig, EmbeddingProvider
from .errors import (
    DimensionMismatchError,
    EmbeddingError,
    ImportFormatError,
    IndexingCancelledError,
    IndexingError,
    InitializationError,
    InvalidVectorError,
    SemanticIndexError,
    StorageError,
    StorageUnavailableError,
    UnauthenticatedError,
)
from .models import (
    DEFAULT_DOCUMENT_TYPES,
    DocumentEmbedding,
    DocumentInput,
    DocumentInputMetadata,
    DocumentMetadata,
    SearchOptions,
    SearchOutcome,
    SearchResult,
    StorageStats,
)
from .orchestrator import IndexState, SemanticIndexOrchestrator
from .search import cosine_similarity, rank_by_similarity
from .storage import DuckDBVectorStore, VectorStore
from .text import normalize_text

__all__ = [
    # Orchestration
    "SemanticIndexOrchestrator",
    "IndexState",
    # Embeddings
    "EmbeddingConfig",
    "EmbeddingProvider",
    "normalize_text",
    # Storage
    "VectorStore",
    "DuckDBVectorStore",
    # Ranking
    "cosine_similarity",
    "rank_by_similarity",
    # Models
    "DEFAULT_DOCUMENT_TYPES",
    "DocumentEmbedding",
    "DocumentInput",
    "DocumentInputMetadata",
    "DocumentMetadata",
    "SearchOptions",
    "SearchOutcome",
    "SearchResult",
    "StorageStats",
    # Errors
    "SemanticIndexError",
    "InitializationError",
    "EmbeddingError",
    "DimensionMismatchError",
    "InvalidVectorError",
    "StorageError",
    "StorageUnavailableError",
    "ImportFormatError",
    "UnauthenticatedError",
    "IndexingError",
    "IndexingCancelledError",
]
