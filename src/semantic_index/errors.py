"""
Error taxonomy for the semantic index.
"""

from __future__ import annotations


class SemanticIndexError(Exception):
    """Base class for every error raised by the semantic index."""


class InitializationError(SemanticIndexError):
    """Raised when the embedding backend or the store could not be loaded."""


class EmbeddingError(SemanticIndexError):
    """Raised when a single text could not be turned into a vector."""


class DimensionMismatchError(SemanticIndexError, ValueError):
    """Raised when two vectors of unequal length are compared."""

    def __init__(self, left: int, right: int) -> None:
        super().__init__(
            f"Vectors must have the same dimension (got {left} and {right})."
        )
        self.left = left
        self.right = right


class InvalidVectorError(SemanticIndexError, ValueError):
    """Raised when a vector holds NaN or infinite components."""


class StorageError(SemanticIndexError):
    """Raised when a store read or write fails."""


class StorageUnavailableError(StorageError):
    """Raised when the persistent medium could not be opened."""


class ImportFormatError(SemanticIndexError, ValueError):
    """Raised when an export blob does not have the expected shape."""


class UnauthenticatedError(SemanticIndexError):
    """Raised when indexing or search is attempted without an owner identity."""


class IndexingError(SemanticIndexError):
    """Raised when a batch could not be indexed. Nothing from the batch is written."""


class IndexingCancelledError(IndexingError):
    """Raised when an indexing call was cancelled between documents."""
