"""
Vector-based semantic search engine.

Embeds a query, resolves the owner's filtered candidate set from the store,
and ranks it by cosine similarity.
"""

from __future__ import annotations

import logging

from ..embeddings import EmbeddingProvider
from ..models import SearchOptions, SearchResult
from ..storage import VectorStore
from .filters import resolve_candidates
from .ranker import rank_by_similarity

logger = logging.getLogger(__name__)


class SemanticSearchEngine:
    """Embed a query and rank stored document embeddings against it."""

    def __init__(
        self,
        store: VectorStore,
        embedding_provider: EmbeddingProvider,
    ) -> None:
        self.store = store
        self.embedding_provider = embedding_provider

    async def search(
        self,
        *,
        owner_id: str,
        query: str,
        options: SearchOptions | None = None,
    ) -> list[SearchResult]:
        """Return ranked results for *query* within *owner_id*'s documents."""
        options = options or SearchOptions()
        query_embedding = await self.embedding_provider.generate_embedding(query)
        candidates = await resolve_candidates(
            self.store, owner_id=owner_id, options=options
        )
        results = rank_by_similarity(
            query_embedding,
            candidates,
            limit=options.limit,
            threshold=options.threshold,
        )
        logger.info(
            "Found %d similar documents among %d candidates for query %r",
            len(results),
            len(candidates),
            query,
        )
        return results
