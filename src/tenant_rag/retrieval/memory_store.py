"""In-process vector store, used for tests and single-node deployments."""

from __future__ import annotations

import threading

import numpy as np

from tenant_rag.errors import DocumentNotFound, StoreError
from tenant_rag.retrieval.base import VectorStoreBase
from tenant_rag.retrieval.models import Chunk, ChunkMatch, Document, EmbeddingModelInfo


def cosine_similarity(a: np.ndarray, b: np.ndarray) -> float:
    """``dot(a, b) / (|a| * |b|)``; zero when either vector is all zeros."""
    denom = float(np.linalg.norm(a) * np.linalg.norm(b))
    if denom == 0.0:
        return 0.0
    return float(np.dot(a, b) / denom)


class InMemoryVectorStore(VectorStoreBase):
    """Dict-backed store with brute-force cosine search.

    A lock guards the dictionaries; it is never held across any call
    into another component.
    """

    def __init__(self, embedding_model: EmbeddingModelInfo) -> None:
        super().__init__(embedding_model)
        self._lock = threading.Lock()
        self._documents: dict[str, Document] = {}
        self._chunks: dict[str, Chunk] = {}

    # -- documents -------------------------------------------------------------

    def create_document(self, tenant_id: str, title: str, source: str = "") -> Document:
        doc = Document(
            tenant_id=tenant_id,
            title=title,
            source=source,
            embedding_model=self.embedding_model.key,
        )
        with self._lock:
            self._documents[doc.id] = doc
        return doc.model_copy()

    def get_documents(self, tenant_id: str, document_ids: list[str]) -> dict[str, Document]:
        with self._lock:
            return {
                doc_id: self._documents[doc_id].model_copy()
                for doc_id in document_ids
                if doc_id in self._documents and self._documents[doc_id].tenant_id == tenant_id
            }

    def list_documents(self, tenant_id: str) -> list[Document]:
        with self._lock:
            docs = [d.model_copy() for d in self._documents.values() if d.tenant_id == tenant_id]
        return sorted(docs, key=lambda d: d.created_at, reverse=True)

    def set_chunk_count(self, document_id: str, chunk_count: int) -> None:
        with self._lock:
            doc = self._documents.get(document_id)
            if doc is None:
                raise DocumentNotFound(document_id)
            self._documents[document_id] = doc.model_copy(update={"chunk_count": chunk_count})

    def delete(self, document_id: str, *, tenant_id: str | None = None) -> None:
        with self._lock:
            doc = self._documents.get(document_id)
            if doc is None or (tenant_id is not None and doc.tenant_id != tenant_id):
                raise DocumentNotFound(document_id, tenant_id)
            del self._documents[document_id]
            for chunk_id in [cid for cid, c in self._chunks.items() if c.document_id == document_id]:
                del self._chunks[chunk_id]

    # -- chunks ----------------------------------------------------------------

    def insert(
        self,
        tenant_id: str,
        document_id: str,
        chunk_index: int,
        content: str,
        embedding: list[float],
    ) -> str:
        self._check_dimension(embedding)
        with self._lock:
            doc = self._documents.get(document_id)
            if doc is None:
                raise StoreError(f"Cannot insert chunk: document {document_id!r} does not exist")
            if doc.tenant_id != tenant_id:
                raise StoreError(
                    f"Cannot insert chunk: document {document_id!r} does not belong to tenant {tenant_id!r}"
                )
            if any(
                c.document_id == document_id and c.chunk_index == chunk_index
                for c in self._chunks.values()
            ):
                raise StoreError(f"Chunk {chunk_index} of document {document_id!r} already exists")

            chunk = Chunk(
                document_id=document_id,
                tenant_id=tenant_id,
                chunk_index=chunk_index,
                content=content,
                embedding=list(embedding),
                embedding_model=self.embedding_model.key,
            )
            self._chunks[chunk.id] = chunk
        return chunk.id

    def query(
        self,
        tenant_id: str,
        query_embedding: list[float],
        k: int = 5,
        similarity_threshold: float = 0.0,
    ) -> list[ChunkMatch]:
        self._check_dimension(query_embedding)
        with self._lock:
            candidates = [
                c for c in self._chunks.values()
                if c.tenant_id == tenant_id and c.embedding_model == self.embedding_model.key
            ]

        query_vec = np.asarray(query_embedding, dtype=np.float32)
        matches = [
            ChunkMatch(
                chunk_id=c.id,
                document_id=c.document_id,
                tenant_id=c.tenant_id,
                chunk_index=c.chunk_index,
                content=c.content,
                similarity=cosine_similarity(query_vec, np.asarray(c.embedding, dtype=np.float32)),
                embedding_model=c.embedding_model,
            )
            for c in candidates
        ]
        ranked = self._rank(matches, k, similarity_threshold)
        self._assert_tenant(tenant_id, ranked)
        return ranked

    def health_check(self) -> bool:
        return True

    def chunks_for(self, document_id: str) -> list[Chunk]:
        """Return the stored chunks of *document_id* in index order."""
        with self._lock:
            chunks = [c for c in self._chunks.values() if c.document_id == document_id]
        return sorted(chunks, key=lambda c: c.chunk_index)
