"""
Storage interface for embedded-document persistence.
"""

from __future__ import annotations

from typing import Protocol, Sequence

from ..models import DocumentEmbedding, StorageStats


class VectorStore(Protocol):
    """Protocol for the persistence operations used by indexing and search."""

    async def initialize(self) -> None:
        """Open the medium and create tables/indexes. Safe to call repeatedly."""

    async def put(self, doc: DocumentEmbedding) -> None:
        """Insert or replace one document."""

    async def put_many(self, docs: Sequence[DocumentEmbedding]) -> int:
        """Insert or replace documents in one transaction. Return count written."""

    async def get(self, doc_id: str) -> DocumentEmbedding | None:
        """Return a document by id."""

    async def get_all(self) -> list[DocumentEmbedding]:
        """Return every stored document."""

    async def get_by_owner(self, owner_id: str) -> list[DocumentEmbedding]:
        """Return documents of one owner via the owner index."""

    async def get_by_type(
        self, doc_type: str, owner_id: str | None = None
    ) -> list[DocumentEmbedding]:
        """Return documents of one type, optionally restricted to an owner."""

    async def count(self) -> int:
        """Return the number of stored documents."""

    async def delete(self, doc_id: str) -> None:
        """Remove a document. Succeeds when the id is absent."""

    async def delete_by_owner(self, owner_id: str) -> int:
        """Remove every document of an owner. Return count removed."""

    async def clear(self) -> None:
        """Remove every document."""

    async def stats(self) -> StorageStats:
        """Return document count, size estimate, and freshness."""

    async def export_json(self) -> str:
        """Serialize the whole store."""

    async def import_json(self, blob: str) -> int:
        """Upsert every document of an exported blob. Return count written."""

    def close(self) -> None:
        """Release the medium."""
