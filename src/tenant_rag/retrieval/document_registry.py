"""SQLite-backed registry of document rows.

Chroma only stores chunk vectors; the document rows (title, source,
chunk_count) live here so that title lookups can be filtered by tenant
independently of the vector search.
"""

from __future__ import annotations

import sqlite3
import threading
from datetime import datetime
from pathlib import Path

from tenant_rag.errors import DocumentNotFound, StoreError
from tenant_rag.retrieval.models import Document


class SQLiteDocumentRegistry:
    """Document table with a ``(tenant_id, created_at)`` index.

    Parameters
    ----------
    db_path:
        Path to the SQLite file, or ``":memory:"``.
    """

    def __init__(self, db_path: str | Path = "data/documents.db") -> None:
        self.db_path = str(db_path)
        if self.db_path != ":memory:":
            Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)
        self._lock = threading.Lock()
        self._conn = sqlite3.connect(self.db_path, check_same_thread=False)
        self._conn.row_factory = sqlite3.Row
        self._init_schema()

    def _init_schema(self) -> None:
        with self._lock, self._conn:
            self._conn.execute("""
                CREATE TABLE IF NOT EXISTS documents (
                    id TEXT PRIMARY KEY,
                    tenant_id TEXT NOT NULL,
                    title TEXT NOT NULL,
                    source TEXT NOT NULL DEFAULT '',
                    chunk_count INTEGER NOT NULL DEFAULT 0,
                    embedding_model TEXT NOT NULL,
                    created_at TEXT NOT NULL
                )
            """)
            self._conn.execute("""
                CREATE INDEX IF NOT EXISTS idx_documents_tenant_created
                ON documents(tenant_id, created_at DESC)
            """)

    @staticmethod
    def _to_document(row: sqlite3.Row) -> Document:
        return Document(
            id=row["id"],
            tenant_id=row["tenant_id"],
            title=row["title"],
            source=row["source"],
            chunk_count=row["chunk_count"],
            embedding_model=row["embedding_model"],
            created_at=datetime.fromisoformat(row["created_at"]),
        )

    def add(self, doc: Document) -> None:
        try:
            with self._lock, self._conn:
                self._conn.execute(
                    """
                    INSERT INTO documents
                    (id, tenant_id, title, source, chunk_count, embedding_model, created_at)
                    VALUES (?, ?, ?, ?, ?, ?, ?)
                    """,
                    (
                        doc.id,
                        doc.tenant_id,
                        doc.title,
                        doc.source,
                        doc.chunk_count,
                        doc.embedding_model,
                        doc.created_at.isoformat(),
                    ),
                )
        except sqlite3.Error as exc:
            raise StoreError(f"Failed to create document record: {exc}") from exc

    def get(self, document_id: str) -> Document | None:
        with self._lock:
            row = self._conn.execute(
                "SELECT * FROM documents WHERE id = ?", (document_id,)
            ).fetchone()
        return self._to_document(row) if row else None

    def get_many(self, tenant_id: str, document_ids: list[str]) -> dict[str, Document]:
        if not document_ids:
            return {}
        placeholders = ",".join("?" for _ in document_ids)
        with self._lock:
            rows = self._conn.execute(
                f"SELECT * FROM documents WHERE tenant_id = ? AND id IN ({placeholders})",
                (tenant_id, *document_ids),
            ).fetchall()
        return {row["id"]: self._to_document(row) for row in rows}

    def list_for_tenant(self, tenant_id: str) -> list[Document]:
        with self._lock:
            rows = self._conn.execute(
                "SELECT * FROM documents WHERE tenant_id = ? ORDER BY created_at DESC",
                (tenant_id,),
            ).fetchall()
        return [self._to_document(row) for row in rows]

    def set_chunk_count(self, document_id: str, chunk_count: int) -> None:
        with self._lock, self._conn:
            cur = self._conn.execute(
                "UPDATE documents SET chunk_count = ? WHERE id = ?",
                (chunk_count, document_id),
            )
        if cur.rowcount == 0:
            raise DocumentNotFound(document_id)

    def remove(self, document_id: str) -> None:
        with self._lock, self._conn:
            self._conn.execute("DELETE FROM documents WHERE id = ?", (document_id,))

    def close(self) -> None:
        self._conn.close()
