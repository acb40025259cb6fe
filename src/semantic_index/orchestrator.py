"""
Indexing and search coordination.

The orchestrator owns the lifecycle of one embedding provider and one
vector store on behalf of a single owner: it initializes both, embeds and
stores document batches with progress reporting, and runs filtered
similarity searches. State changes are published to subscribers so a host
can drive progress displays.
"""

from __future__ import annotations

import asyncio
import logging
import math
from dataclasses import dataclass, replace
from typing import Any, Callable, Sequence

from .embeddings import EmbeddingProvider
from .errors import (
    IndexingCancelledError,
    IndexingError,
    InitializationError,
    SemanticIndexError,
    StorageError,
    UnauthenticatedError,
)
from .models import DocumentEmbedding, DocumentInput, SearchOptions, SearchOutcome, StorageStats
from .search import SemanticSearchEngine
from .storage import VectorStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class IndexState:
    """Snapshot of the orchestrator's observable state."""

    is_initialized: bool = False
    is_indexing: bool = False
    is_searching: bool = False
    indexing_progress: int = 0
    total_documents: int = 0
    last_error: str | None = None


StateListener = Callable[[IndexState], None]


class SemanticIndexOrchestrator:
    """Coordinate embedding, storage, and ranking for one owner."""

    def __init__(
        self,
        store: VectorStore,
        embedding_provider: EmbeddingProvider,
        *,
        owner_id: str | None = None,
    ) -> None:
        self.store = store
        self.embedding_provider = embedding_provider
        self._engine = SemanticSearchEngine(store, embedding_provider)
        self._owner_id = owner_id
        self._state = IndexState()
        self._listeners: list[StateListener] = []
        # Indexing and searching never overlap on one instance.
        self._busy = asyncio.Lock()
        self._cancel_requested = False
        self._auto_init_attempted = False

    @property
    def state(self) -> IndexState:
        return self._state

    @property
    def owner_id(self) -> str | None:
        return self._owner_id

    @property
    def is_ready(self) -> bool:
        return self._state.is_initialized and self.embedding_provider.is_available()

    def subscribe(self, listener: StateListener) -> Callable[[], None]:
        """Call *listener* with every new state; return a function that unsubscribes."""
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    async def initialize(self) -> None:
        """
        Load the embedding model and open the store concurrently.

        Failures are recorded in ``last_error`` and re-raised; calling
        initialize() again retries.
        """
        self._update(last_error=None)
        logger.info("Initializing semantic search")
        try:
            await asyncio.gather(
                self.embedding_provider.initialize(),
                self.store.initialize(),
            )
            total = await self.store.count()
        except Exception as exc:
            logger.error("Failed to initialize semantic search: %s", exc)
            self._update(is_initialized=False, last_error=str(exc) or "Initialization failed")
            if isinstance(exc, SemanticIndexError):
                raise
            raise InitializationError(f"Initialization failed: {exc}") from exc

        self._update(is_initialized=True, total_documents=total)
        logger.info("Semantic search initialized with %d documents", total)

    async def set_owner(self, owner_id: str | None) -> None:
        """
        Switch the owner context.

        The first time an owner becomes available on an uninitialized,
        error-free orchestrator, initialization runs automatically. A failed
        automatic attempt is recorded and not retried.
        """
        self._owner_id = owner_id
        if (
            owner_id
            and not self._auto_init_attempted
            and not self._state.is_initialized
            and self._state.last_error is None
        ):
            self._auto_init_attempted = True
            try:
                await self.initialize()
            except SemanticIndexError:
                logger.warning("Automatic initialization failed; call initialize() to retry")

    async def index_documents(self, documents: Sequence[DocumentInput]) -> int:
        """
        Embed *documents* in order and store them in one batch.

        Every document is stamped with the current owner. If any document
        fails, nothing is written and IndexingError is raised.
        """
        owner_id = self._require_owner("index documents")
        async with self._busy:
            self._cancel_requested = False
            self._update(is_indexing=True, indexing_progress=0, last_error=None)
            total = len(documents)
            embeddings: list[DocumentEmbedding] = []
            try:
                for position, doc in enumerate(documents):
                    if self._cancel_requested:
                        raise IndexingCancelledError(
                            f"Indexing cancelled after {position} of {total} documents."
                        )
                    self._update(indexing_progress=_percent(position, total))
                    logger.info("Indexing document %d/%d: %s", position + 1, total, doc.id)
                    embeddings.append(
                        await self.embedding_provider.generate_document_embedding(
                            doc.id,
                            doc.text,
                            doc.metadata.for_owner(owner_id),
                        )
                    )
                await self.store.put_many(embeddings)
                total_documents = await self.store.count()
            except (IndexingError, StorageError) as exc:
                self._fail_indexing(exc)
                raise
            except SemanticIndexError as exc:
                self._fail_indexing(exc)
                raise IndexingError(f"Failed to index documents: {exc}") from exc
            else:
                self._update(
                    is_indexing=False,
                    indexing_progress=100,
                    total_documents=total_documents,
                )
            finally:
                # Task cancellation bypasses the handlers above.
                if self._state.is_indexing:
                    self._update(is_indexing=False)

            logger.info("Successfully indexed %d documents", len(embeddings))
            return len(embeddings)

    def cancel_indexing(self) -> None:
        """Ask a running index_documents() call to stop before its next document."""
        if self._state.is_indexing:
            self._cancel_requested = True

    async def search_similar(
        self,
        query: str,
        options: SearchOptions | None = None,
    ) -> SearchOutcome:
        """
        Search the current owner's documents.

        Search failures do not raise: the outcome carries no results and the
        error message, which is also recorded in ``last_error``.
        """
        owner_id = self._require_owner("search")
        async with self._busy:
            self._update(is_searching=True, last_error=None)
            try:
                results = await self._engine.search(
                    owner_id=owner_id, query=query, options=options
                )
            except Exception as exc:
                logger.warning("Search failed: %s", exc, exc_info=True)
                message = str(exc) or "Search failed"
                self._update(last_error=message)
                return SearchOutcome(error=message)
            finally:
                self._update(is_searching=False)

            return SearchOutcome(results=results)

    async def clear_owner_index(self) -> int:
        """Delete every document of the current owner; a no-op without an owner."""
        if not self._owner_id:
            return 0
        try:
            deleted = await self.store.delete_by_owner(self._owner_id)
            total = await self.store.count()
        except StorageError as exc:
            logger.error("Failed to clear index: %s", exc)
            self._update(last_error=str(exc))
            raise
        self._update(total_documents=total)
        return deleted

    async def refresh_document_count(self) -> int:
        """Re-read the store's document count, which other writers may have changed."""
        total = await self.store.count()
        self._update(total_documents=total)
        return total

    async def get_storage_info(self) -> StorageStats | None:
        """Return store statistics, or None when they cannot be read."""
        try:
            return await self.store.stats()
        except StorageError as exc:
            logger.error("Failed to get storage info: %s", exc)
            return None

    async def export_index(self) -> str:
        return await self.store.export_json()

    async def import_index(self, blob: str) -> int:
        imported = await self.store.import_json(blob)
        self._update(total_documents=await self.store.count())
        return imported

    def close(self) -> None:
        """Release the embedding model and the store."""
        self.embedding_provider.close()
        self.store.close()
        self._update(is_initialized=False)

    def _require_owner(self, action: str) -> str:
        if not self._owner_id:
            raise UnauthenticatedError(f"An owner identity is required to {action}.")
        return self._owner_id

    def _fail_indexing(self, exc: Exception) -> None:
        logger.error("Failed to index documents: %s", exc)
        self._update(is_indexing=False, last_error=str(exc) or "Indexing failed")

    def _update(self, **changes: Any) -> None:
        self._state = replace(self._state, **changes)
        for listener in list(self._listeners):
            listener(self._state)


def _percent(done: int, total: int) -> int:
    # Half rounds up.
    return int(math.floor(done / total * 100 + 0.5)) if total else 0
