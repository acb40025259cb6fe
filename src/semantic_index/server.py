"""
FastAPI server for the semantic index.

Exposes indexing, search, status polling, and snapshot endpoints. The
caller's identity comes from the ``X-Owner-Id`` header; each owner gets an
orchestrator, and all of them share one store and one embedding model.
"""

import asyncio
from dataclasses import asdict
from typing import Annotated

from fastapi import FastAPI, Header, Request
from fastapi.responses import JSONResponse, Response
from pydantic import BaseModel

from .embeddings import EmbeddingProvider
from .errors import ImportFormatError, IndexingError, StorageError
from .index_config import resolve_db_path
from .models import DocumentInput, SearchOptions
from .orchestrator import SemanticIndexOrchestrator
from .storage import DuckDBVectorStore

app = FastAPI(title="SemanticIndex", description="Local-first semantic document search")

_store: DuckDBVectorStore | None = None
_embedding_provider: EmbeddingProvider | None = None
_orchestrators: dict[str, SemanticIndexOrchestrator] = {}
_orchestrators_lock = asyncio.Lock()


class IndexRequest(BaseModel):
    """Request model for document indexing."""

    documents: list[DocumentInput]


class SearchRequest(BaseModel):
    """Request model for similarity search."""

    query: str
    options: SearchOptions = SearchOptions()


def build_embedding_provider() -> EmbeddingProvider:
    return EmbeddingProvider()


def build_store() -> DuckDBVectorStore:
    return DuckDBVectorStore(resolve_db_path())


async def get_orchestrator(owner_id: str) -> SemanticIndexOrchestrator:
    """Return the owner's orchestrator, creating and auto-initializing it once."""
    global _store, _embedding_provider
    async with _orchestrators_lock:
        orchestrator = _orchestrators.get(owner_id)
        if orchestrator is None:
            if _store is None:
                _store = build_store()
            if _embedding_provider is None:
                _embedding_provider = build_embedding_provider()
            orchestrator = SemanticIndexOrchestrator(_store, _embedding_provider)
            _orchestrators[owner_id] = orchestrator
            await orchestrator.set_owner(owner_id)
    return orchestrator


def reset_services() -> None:
    """Close the shared store and model and forget every orchestrator."""
    global _store, _embedding_provider
    if _embedding_provider is not None:
        _embedding_provider.close()
    if _store is not None:
        _store.close()
    _store = None
    _embedding_provider = None
    _orchestrators.clear()


def _unauthenticated() -> JSONResponse:
    return JSONResponse({"error": "Missing X-Owner-Id header"}, status_code=401)


@app.get("/api/status")
async def get_status(x_owner_id: Annotated[str | None, Header()] = None):
    """Return the state facets of the caller's orchestrator."""
    if not x_owner_id:
        return _unauthenticated()
    orchestrator = await get_orchestrator(x_owner_id)
    if orchestrator.state.is_initialized:
        # The store is shared, so other owners' writes change the total.
        try:
            await orchestrator.refresh_document_count()
        except StorageError as exc:
            return JSONResponse({"error": str(exc)}, status_code=503)
    return {**asdict(orchestrator.state), "is_ready": orchestrator.is_ready}


@app.post("/api/index")
async def index_documents(
    request: IndexRequest,
    x_owner_id: Annotated[str | None, Header()] = None,
):
    """Embed and store a batch of documents for the caller."""
    if not x_owner_id:
        return _unauthenticated()
    try:
        orchestrator = await get_orchestrator(x_owner_id)
        indexed = await orchestrator.index_documents(request.documents)
        return {
            "indexed": indexed,
            "total_documents": orchestrator.state.total_documents,
        }
    except IndexingError as exc:
        return JSONResponse({"error": str(exc)}, status_code=422)
    except StorageError as exc:
        return JSONResponse({"error": str(exc)}, status_code=503)


@app.post("/api/search")
async def search_documents(
    request: SearchRequest,
    x_owner_id: Annotated[str | None, Header()] = None,
):
    """Rank the caller's documents against a query."""
    if not x_owner_id:
        return _unauthenticated()
    orchestrator = await get_orchestrator(x_owner_id)
    outcome = await orchestrator.search_similar(request.query, request.options)
    return {
        "query": request.query,
        "ok": outcome.ok,
        "error": outcome.error,
        "results": [result.model_dump(mode="json") for result in outcome.results],
    }


@app.get("/api/stats")
async def get_stats(x_owner_id: Annotated[str | None, Header()] = None):
    """Return whole-store statistics."""
    if not x_owner_id:
        return _unauthenticated()
    orchestrator = await get_orchestrator(x_owner_id)
    stats = await orchestrator.get_storage_info()
    if stats is None:
        return JSONResponse({"error": "Storage statistics unavailable"}, status_code=503)
    return stats.model_dump(mode="json")


@app.delete("/api/index")
async def clear_index(x_owner_id: Annotated[str | None, Header()] = None):
    """Delete every document owned by the caller."""
    if not x_owner_id:
        return _unauthenticated()
    try:
        orchestrator = await get_orchestrator(x_owner_id)
        deleted = await orchestrator.clear_owner_index()
        return {"deleted": deleted, "total_documents": orchestrator.state.total_documents}
    except StorageError as exc:
        return JSONResponse({"error": str(exc)}, status_code=503)


@app.get("/api/export")
async def export_index(x_owner_id: Annotated[str | None, Header()] = None):
    """Return a JSON snapshot of the whole store."""
    if not x_owner_id:
        return _unauthenticated()
    try:
        orchestrator = await get_orchestrator(x_owner_id)
        blob = await orchestrator.export_index()
        return Response(content=blob, media_type="application/json")
    except StorageError as exc:
        return JSONResponse({"error": str(exc)}, status_code=503)


@app.post("/api/import")
async def import_index(
    request: Request,
    x_owner_id: Annotated[str | None, Header()] = None,
):
    """Upsert every document of a JSON snapshot sent as the request body."""
    if not x_owner_id:
        return _unauthenticated()
    try:
        blob = (await request.body()).decode("utf-8")
        orchestrator = await get_orchestrator(x_owner_id)
        imported = await orchestrator.import_index(blob)
        return {"imported": imported, "total_documents": orchestrator.state.total_documents}
    except (ImportFormatError, UnicodeDecodeError) as exc:
        return JSONResponse({"error": str(exc)}, status_code=400)
    except StorageError as exc:
        return JSONResponse({"error": str(exc)}, status_code=503)


def run_server(host: str = "127.0.0.1", port: int = 8000):
    """Run the FastAPI server."""
    import uvicorn

    uvicorn.run(app, host=host, port=port)


if __name__ == "__main__":
    run_server()
