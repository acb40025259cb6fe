import asyncio
import json
import logging
from pathlib import Path
from typing import Annotated, NoReturn, Optional

from pydantic import TypeAdapter, ValidationError
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.progress import BarColumn, Progress, TaskProgressColumn, TextColumn
from rich.table import Table
from typer import Exit, Option, Typer

from .embeddings import EmbeddingConfig, EmbeddingProvider
from .errors import SemanticIndexError
from .index_config import resolve_db_path
from .models import DocumentInput, SearchOptions
from .orchestrator import IndexState, SemanticIndexOrchestrator
from .storage import DuckDBVectorStore

app = Typer(help="Local-first semantic document index.")
console = Console()

_DOCUMENTS_ADAPTER = TypeAdapter(list[DocumentInput])


def build_embedding_provider(
    model: Optional[str] = None, device: Optional[str] = None
) -> EmbeddingProvider:
    config = EmbeddingConfig()
    if model or device:
        config = EmbeddingConfig(
            model=model or config.model,
            preferred_device=device or config.preferred_device,
        )
    return EmbeddingProvider(config)


def build_orchestrator(
    db_path: Optional[str],
    owner_id: Optional[str] = None,
    *,
    model: Optional[str] = None,
    device: Optional[str] = None,
) -> SemanticIndexOrchestrator:
    store = DuckDBVectorStore(resolve_db_path(db_path))
    return SemanticIndexOrchestrator(
        store,
        build_embedding_provider(model, device),
        owner_id=owner_id,
    )


def _fail(message: str) -> NoReturn:
    console.print(f"[bold red]{message}[/]")
    raise Exit(code=1)


@app.callback()
def configure(
    verbose: Annotated[
        bool, Option("--verbose", "-v", help="Show debug logging.")
    ] = False,
) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=console, show_path=False)],
        force=True,
    )


async def run_index(orchestrator: SemanticIndexOrchestrator, documents: list[DocumentInput]) -> int:
    with Progress(
        TextColumn("[bold cyan]Indexing"),
        BarColumn(),
        TaskProgressColumn(),
        console=console,
    ) as progress:
        task = progress.add_task("index", total=100)

        def _on_state(state: IndexState) -> None:
            progress.update(task, completed=state.indexing_progress)

        unsubscribe = orchestrator.subscribe(_on_state)
        try:
            await orchestrator.initialize()
            return await orchestrator.index_documents(documents)
        finally:
            unsubscribe()
            orchestrator.close()


@app.command()
def index(
    input_path: Annotated[
        Path, Option("--input", "-i", help="JSON file holding an array of documents.")
    ],
    owner: Annotated[str, Option("--owner", "-o", help="Owner identity to index under.")],
    db_path: Annotated[Optional[str], Option("--db-path", help="DuckDB file.")] = None,
    model: Annotated[Optional[str], Option("--model", help="Embedding model id.")] = None,
    device: Annotated[Optional[str], Option("--device", help="auto, cuda, mps or cpu.")] = None,
) -> None:
    """Embed and store documents from a JSON file."""
    try:
        documents = _DOCUMENTS_ADAPTER.validate_json(input_path.read_bytes())
    except (OSError, ValidationError) as exc:
        _fail(f"Could not read documents from {input_path}: {exc}")

    orchestrator = build_orchestrator(db_path, owner, model=model, device=device)
    try:
        indexed = asyncio.run(run_index(orchestrator, documents))
    except SemanticIndexError as exc:
        _fail(f"Indexing failed: {exc}")
    console.print(
        Panel(
            f"Indexed {indexed} documents for owner `{owner}`.\n"
            f"Store now holds {orchestrator.state.total_documents} documents.",
            title="Documents Indexed",
            title_align="left",
            border_style="bold green",
        )
    )


async def run_search(
    orchestrator: SemanticIndexOrchestrator, query: str, options: SearchOptions
):
    try:
        await orchestrator.initialize()
        return await orchestrator.search_similar(query, options)
    finally:
        orchestrator.close()


@app.command()
def search(
    query: Annotated[str, Option("--query", "-q", help="Text to search for.")],
    owner: Annotated[str, Option("--owner", "-o", help="Owner whose documents are searched.")],
    doc_types: Annotated[
        Optional[list[str]], Option("--type", "-t", help="Restrict to a document type; repeatable.")
    ] = None,
    region: Annotated[Optional[str], Option("--region", help="Region code filter.")] = None,
    category: Annotated[Optional[str], Option("--category", help="Category tag filter.")] = None,
    limit: Annotated[int, Option("--limit", "-n", min=1)] = 10,
    threshold: Annotated[float, Option("--threshold", min=-1.0, max=1.0)] = 0.5,
    db_path: Annotated[Optional[str], Option("--db-path", help="DuckDB file.")] = None,
    model: Annotated[Optional[str], Option("--model", help="Embedding model id.")] = None,
    device: Annotated[Optional[str], Option("--device", help="auto, cuda, mps or cpu.")] = None,
) -> None:
    """Rank stored documents by similarity to a query."""
    options = SearchOptions(
        limit=limit,
        threshold=threshold,
        document_types=doc_types or None,
        region_code=region,
        category_tag=category,
    )
    orchestrator = build_orchestrator(db_path, owner, model=model, device=device)
    try:
        outcome = asyncio.run(run_search(orchestrator, query, options))
    except SemanticIndexError as exc:
        _fail(f"Search failed: {exc}")
    if not outcome.ok:
        _fail(f"Search failed: {outcome.error}")
    if not outcome.results:
        console.print("[yellow]No matching documents.[/]")
        return

    table = Table(title=f"Results for {query!r}")
    table.add_column("Similarity", justify="right")
    table.add_column("Id")
    table.add_column("Type")
    table.add_column("Title")
    table.add_column("Text", overflow="fold")
    for result in outcome.results:
        doc = result.document
        table.add_row(
            f"{result.similarity * 100:.1f}%",
            doc.id,
            doc.metadata.type,
            doc.metadata.title or "",
            doc.text[:120],
        )
    console.print(table)


@app.command()
def stats(
    db_path: Annotated[Optional[str], Option("--db-path", help="DuckDB file.")] = None,
) -> None:
    """Show document count, size estimate, and last update."""
    store = DuckDBVectorStore(resolve_db_path(db_path))

    async def _stats():
        try:
            return await store.stats()
        finally:
            store.close()

    try:
        info = asyncio.run(_stats())
    except SemanticIndexError as exc:
        _fail(f"Could not read storage stats: {exc}")
    table = Table(title="Vector Store", show_header=False)
    table.add_row("Documents", str(info.total_documents))
    table.add_row("Estimated size", f"{info.total_size_estimate / 1024:.1f} KB")
    table.add_row("Last updated", info.last_updated.isoformat())
    table.add_row("Schema versions", ", ".join(info.schema_versions))
    console.print(table)


@app.command("export")
def export_command(
    output: Annotated[Path, Option("--output", help="File to write the snapshot to.")],
    db_path: Annotated[Optional[str], Option("--db-path", help="DuckDB file.")] = None,
) -> None:
    """Write a JSON snapshot of the whole store."""
    store = DuckDBVectorStore(resolve_db_path(db_path))

    async def _export() -> str:
        try:
            return await store.export_json()
        finally:
            store.close()

    try:
        blob = asyncio.run(_export())
    except SemanticIndexError as exc:
        _fail(f"Export failed: {exc}")
    output.write_text(blob, encoding="utf-8")
    count = len(json.loads(blob)["embeddings"])
    console.print(f"[bold green]Exported {count} embeddings to {output}[/]")


@app.command("import")
def import_command(
    input_path: Annotated[Path, Option("--input", "-i", help="Snapshot file to import.")],
    db_path: Annotated[Optional[str], Option("--db-path", help="DuckDB file.")] = None,
) -> None:
    """Upsert every document of a JSON snapshot."""
    try:
        blob = input_path.read_text(encoding="utf-8")
    except OSError as exc:
        _fail(f"Could not read {input_path}: {exc}")
    store = DuckDBVectorStore(resolve_db_path(db_path))

    async def _import() -> int:
        try:
            return await store.import_json(blob)
        finally:
            store.close()

    try:
        imported = asyncio.run(_import())
    except SemanticIndexError as exc:
        _fail(f"Import failed: {exc}")
    console.print(f"[bold green]Imported {imported} embeddings[/]")


@app.command()
def clear(
    owner: Annotated[str, Option("--owner", "-o", help="Owner whose documents are removed.")],
    db_path: Annotated[Optional[str], Option("--db-path", help="DuckDB file.")] = None,
) -> None:
    """Delete every document of one owner."""
    store = DuckDBVectorStore(resolve_db_path(db_path))

    async def _clear() -> int:
        try:
            return await store.delete_by_owner(owner)
        finally:
            store.close()

    try:
        deleted = asyncio.run(_clear())
    except SemanticIndexError as exc:
        _fail(f"Clear failed: {exc}")
    console.print(f"[bold green]Removed {deleted} documents for owner `{owner}`[/]")


@app.command()
def serve(
    host: Annotated[str, Option("--host")] = "127.0.0.1",
    port: Annotated[int, Option("--port")] = 8000,
) -> None:
    """Run the HTTP API."""
    from .server import run_server

    run_server(host=host, port=port)
