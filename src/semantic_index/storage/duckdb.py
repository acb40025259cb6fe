"""
DuckDB storage backend for embedded documents.
"""

from __future__ import annotations

import asyncio
import json
import logging
import threading
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Sequence, TypeVar

import duckdb
from pydantic import ValidationError

from ..errors import ImportFormatError, StorageError, StorageUnavailableError
from ..models import (
    EXPORT_FORMAT_VERSION,
    DocumentEmbedding,
    DocumentMetadata,
    ExportBlob,
    StorageStats,
)

logger = logging.getLogger(__name__)

SCHEMA_VERSION = "v1.0"
DELETE_ATTEMPTS = 3

_COLUMNS = (
    "id, text, embedding, doc_type, owner_id, region_code, category_tag, "
    "created_at, title"
)

T = TypeVar("T")


class DuckDBVectorStore:
    """DuckDB-backed persistence for documents with embeddings."""

    def __init__(self, db_path: str) -> None:
        self.db_path = (
            db_path
            if db_path == ":memory:"
            else str(Path(db_path).expanduser().resolve())
        )
        self._conn: duckdb.DuckDBPyConnection | None = None
        # One writer at a time; every statement runs under this lock.
        self._lock = threading.Lock()

    @property
    def is_open(self) -> bool:
        return self._conn is not None

    async def initialize(self) -> None:
        await asyncio.to_thread(self._locked, self._open)

    def close(self) -> None:
        """Close the underlying DuckDB connection."""
        with self._lock:
            if self._conn is not None:
                self._conn.close()
                self._conn = None

    async def put(self, doc: DocumentEmbedding) -> None:
        await self.put_many([doc])

    async def put_many(self, docs: Sequence[DocumentEmbedding]) -> int:
        return await asyncio.to_thread(self._locked, self._put_many, list(docs))

    async def get(self, doc_id: str) -> DocumentEmbedding | None:
        rows = await self._fetch(f"SELECT {_COLUMNS} FROM embeddings WHERE id = ?", [doc_id])
        return rows[0] if rows else None

    async def get_all(self) -> list[DocumentEmbedding]:
        return await self._fetch(f"SELECT {_COLUMNS} FROM embeddings ORDER BY id")

    async def get_by_owner(self, owner_id: str) -> list[DocumentEmbedding]:
        return await self._fetch(
            f"SELECT {_COLUMNS} FROM embeddings WHERE owner_id = ? ORDER BY id",
            [owner_id],
        )

    async def get_by_type(
        self, doc_type: str, owner_id: str | None = None
    ) -> list[DocumentEmbedding]:
        docs = await self._fetch(
            f"SELECT {_COLUMNS} FROM embeddings WHERE doc_type = ? ORDER BY id",
            [doc_type],
        )
        if owner_id is not None:
            docs = [doc for doc in docs if doc.metadata.owner_id == owner_id]
        return docs

    async def count(self) -> int:
        def _count() -> int:
            try:
                row = self._open().execute("SELECT COUNT(*) FROM embeddings").fetchone()
            except duckdb.Error as exc:
                raise StorageError(f"Vector store read failed: {exc}") from exc
            return int(row[0]) if row else 0

        return await asyncio.to_thread(self._locked, _count)

    async def delete(self, doc_id: str) -> None:
        await asyncio.to_thread(self._locked, self._delete, doc_id)
        logger.debug("Deleted embedding %s", doc_id)

    async def delete_by_owner(self, owner_id: str) -> int:
        """
        Delete every document of *owner_id* one id at a time.

        Each delete is atomic and retried up to DELETE_ATTEMPTS times. The
        bulk operation as a whole is not: a failure part-way leaves the ids
        deleted so far removed.
        """
        docs = await self.get_by_owner(owner_id)
        deleted = 0
        for doc in docs:
            for attempt in range(1, DELETE_ATTEMPTS + 1):
                try:
                    await self.delete(doc.id)
                    break
                except StorageError:
                    if attempt == DELETE_ATTEMPTS:
                        raise
                    logger.warning(
                        "Delete of %s failed (attempt %d/%d), retrying",
                        doc.id,
                        attempt,
                        DELETE_ATTEMPTS,
                    )
            deleted += 1
        logger.info("Deleted %d embeddings for owner %s", deleted, owner_id)
        return deleted

    async def clear(self) -> None:
        await asyncio.to_thread(self._locked, self._run_write, "DELETE FROM embeddings", [])
        logger.info("All embeddings cleared")

    async def stats(self) -> StorageStats:
        docs = await self.get_all()
        versions = await asyncio.to_thread(self._locked, self._schema_versions)
        total_size = sum(len(doc.text) + len(doc.embedding) * 8 for doc in docs)
        last_updated = (
            max(doc.metadata.created_at for doc in docs)
            if docs
            else datetime.now(timezone.utc)
        )
        return StorageStats(
            total_documents=len(docs),
            total_size_estimate=total_size,
            last_updated=last_updated,
            schema_versions=versions,
        )

    async def export_json(self) -> str:
        blob = ExportBlob(embeddings=await self.get_all())
        return blob.model_dump_json(indent=2)

    async def import_json(self, blob: str) -> int:
        try:
            data = json.loads(blob)
        except json.JSONDecodeError as exc:
            raise ImportFormatError(f"Import data is not valid JSON: {exc}") from exc
        if not isinstance(data, dict) or not isinstance(data.get("embeddings"), list):
            raise ImportFormatError(
                "Invalid import data format: expected an object with an 'embeddings' array."
            )
        version = data.get("version", EXPORT_FORMAT_VERSION)
        if version != EXPORT_FORMAT_VERSION:
            raise ImportFormatError(f"Unsupported export version: {version!r}")
        try:
            docs = [DocumentEmbedding.model_validate(item) for item in data["embeddings"]]
        except ValidationError as exc:
            raise ImportFormatError(f"Invalid embedding in import data: {exc}") from exc

        written = await self.put_many(docs)
        logger.info("Imported %d embeddings", written)
        return written

    def _locked(self, fn: Callable[..., T], *args: Any) -> T:
        with self._lock:
            return fn(*args)

    def _open(self) -> duckdb.DuckDBPyConnection:
        if self._conn is not None:
            return self._conn
        try:
            if self.db_path != ":memory:":
                Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)
            conn = duckdb.connect(self.db_path)
        except (duckdb.Error, OSError) as exc:
            raise StorageUnavailableError(
                f"Failed to open vector store at {self.db_path}: {exc}"
            ) from exc
        try:
            self._create_schema(conn)
        except duckdb.Error as exc:
            conn.close()
            raise StorageUnavailableError(
                f"Failed to prepare vector store schema at {self.db_path}: {exc}"
            ) from exc
        self._conn = conn
        logger.info("Vector storage initialized at %s", self.db_path)
        return conn

    @staticmethod
    def _create_schema(conn: duckdb.DuckDBPyConnection) -> None:
        # No PRIMARY KEY: DuckDB rejects re-inserting a deleted key inside one
        # transaction, so id uniqueness is kept by delete-then-insert under
        # the write lock.
        conn.execute(
            """
            CREATE TABLE IF NOT EXISTS embeddings (
                id VARCHAR NOT NULL,
                text VARCHAR NOT NULL,
                embedding DOUBLE[] NOT NULL,
                doc_type VARCHAR NOT NULL,
                owner_id VARCHAR NOT NULL,
                region_code VARCHAR,
                category_tag VARCHAR,
                created_at VARCHAR NOT NULL,
                title VARCHAR
            );
            """
        )
        for name, column in (
            ("idx_embeddings_id", "id"),
            ("idx_embeddings_owner", "owner_id"),
            ("idx_embeddings_type", "doc_type"),
            ("idx_embeddings_region", "region_code"),
            ("idx_embeddings_category", "category_tag"),
        ):
            conn.execute(f"CREATE INDEX IF NOT EXISTS {name} ON embeddings({column})")
        conn.execute(
            """
            CREATE TABLE IF NOT EXISTS store_metadata (
                key VARCHAR PRIMARY KEY,
                value VARCHAR NOT NULL
            );
            """
        )
        conn.execute(
            """
            INSERT INTO store_metadata (key, value)
            VALUES ('schema_version', ?)
            ON CONFLICT (key) DO NOTHING
            """,
            [SCHEMA_VERSION],
        )

    def _put_many(self, docs: list[DocumentEmbedding]) -> int:
        if not docs:
            return 0
        # Later duplicates of an id win, as they would with separate puts.
        latest = {doc.id: doc for doc in docs}
        conn = self._open()
        conn.begin()
        try:
            for doc in latest.values():
                self._write_row(conn, doc)
            conn.commit()
        except Exception as exc:
            conn.rollback()
            raise StorageError(f"Failed to store {len(latest)} embeddings: {exc}") from exc
        logger.info("Stored %d embeddings", len(latest))
        return len(latest)

    def _write_row(self, conn: duckdb.DuckDBPyConnection, doc: DocumentEmbedding) -> None:
        meta = doc.metadata
        conn.execute("DELETE FROM embeddings WHERE id = ?", [doc.id])
        conn.execute(
            f"""
            INSERT INTO embeddings ({_COLUMNS})
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            [
                doc.id,
                doc.text,
                [float(value) for value in doc.embedding],
                meta.type,
                meta.owner_id,
                meta.region_code,
                meta.category_tag,
                meta.created_at.isoformat(),
                meta.title,
            ],
        )

    def _delete(self, doc_id: str) -> None:
        self._run_write("DELETE FROM embeddings WHERE id = ?", [doc_id])

    def _run_write(self, sql: str, params: list[Any]) -> None:
        conn = self._open()
        conn.begin()
        try:
            conn.execute(sql, params)
            conn.commit()
        except duckdb.Error as exc:
            conn.rollback()
            raise StorageError(f"Vector store write failed: {exc}") from exc

    def _schema_versions(self) -> list[str]:
        rows = self._open().execute(
            "SELECT value FROM store_metadata WHERE key = 'schema_version'"
        ).fetchall()
        return [str(row[0]) for row in rows]

    async def _fetch(self, sql: str, params: list[Any] | None = None) -> list[DocumentEmbedding]:
        def _query() -> list[DocumentEmbedding]:
            try:
                rows = self._open().execute(sql, params or []).fetchall()
            except duckdb.Error as exc:
                raise StorageError(f"Vector store read failed: {exc}") from exc
            return [self._row_to_document(row) for row in rows]

        return await asyncio.to_thread(self._locked, _query)

    @staticmethod
    def _row_to_document(row: tuple[Any, ...]) -> DocumentEmbedding:
        return DocumentEmbedding(
            id=str(row[0]),
            text=str(row[1]),
            embedding=[float(value) for value in row[2]],
            metadata=DocumentMetadata(
                type=str(row[3]),
                owner_id=str(row[4]),
                region_code=row[5],
                category_tag=row[6],
                created_at=datetime.fromisoformat(str(row[7])),
                title=row[8],
            ),
        )
