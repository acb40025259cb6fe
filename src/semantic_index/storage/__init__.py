"""Storage backends for the semantic index."""

from .base import VectorStore
from .duckdb import DuckDBVectorStore

__all__ = [
    "VectorStore",
    "DuckDBVectorStore",
]
