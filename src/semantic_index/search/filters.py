"""
Candidate resolution helpers for similarity search.
"""

from __future__ import annotations

from ..models import DocumentEmbedding, SearchOptions
from ..storage import VectorStore


async def resolve_candidates(
    store: VectorStore,
    *,
    owner_id: str,
    options: SearchOptions,
) -> list[DocumentEmbedding]:
    """
    Return the owner's documents that pass the type, region, and category filters.

    Types are resolved through the type index (one lookup per requested
    type); without types the owner index is used. Region and category are
    applied afterwards as in-memory predicates.
    """
    if options.document_types:
        documents: list[DocumentEmbedding] = []
        for doc_type in dict.fromkeys(options.document_types):
            documents.extend(await store.get_by_type(doc_type, owner_id))
    else:
        documents = await store.get_by_owner(owner_id)

    return apply_metadata_filters(
        documents,
        region_code=options.region_code,
        category_tag=options.category_tag,
    )


def apply_metadata_filters(
    documents: list[DocumentEmbedding],
    *,
    region_code: str | None = None,
    category_tag: str | None = None,
) -> list[DocumentEmbedding]:
    """Keep documents whose region and category match the given values."""
    if region_code:
        documents = [doc for doc in documents if doc.metadata.region_code == region_code]
    if category_tag:
        documents = [
            doc for doc in documents if doc.metadata.category_tag == category_tag
        ]
    return documents
