"""Chroma implementation of the vector-store abstraction."""

from __future__ import annotations

import logging
from typing import Any

import chromadb

from tenant_rag.config import settings
from tenant_rag.errors import DocumentNotFound, EmbeddingModelMismatch, StoreError
from tenant_rag.retrieval.base import VectorStoreBase
from tenant_rag.retrieval.document_registry import SQLiteDocumentRegistry
from tenant_rag.retrieval.models import ChunkMatch, Document, EmbeddingModelInfo, MetadataFilter

logger = logging.getLogger(__name__)

_OP_MAP = {"eq": "$eq"}
_OVERFETCH = 2


def _build_chroma_where(filters: list[MetadataFilter]) -> dict[str, Any] | None:
    """Convert a list of :class:`MetadataFilter` to Chroma ``where`` syntax."""
    if not filters:
        return None

    clauses: list[dict[str, Any]] = []
    for f in filters:
        chroma_op = _OP_MAP.get(f.operator)
        if chroma_op is None:
            raise ValueError(f"Unsupported filter operator: {f.operator!r}")
        clauses.append({f.field: {chroma_op: f.value}})

    if len(clauses) == 1:
        return clauses[0]
    return {"$and": clauses}


def make_chroma_client(
    mode: str = settings.chroma_mode,
    *,
    host: str = settings.chroma_host,
    port: int = settings.chroma_port,
    path: str = settings.chroma_path,
) -> Any:
    """Return a Chroma client for ``http``, ``persistent`` or ``ephemeral`` mode."""
    if mode == "http":
        return chromadb.HttpClient(host=host, port=port)
    if mode == "persistent":
        return chromadb.PersistentClient(path=path)
    if mode == "ephemeral":
        return chromadb.EphemeralClient()
    raise ValueError(f"Unsupported chroma_mode={mode!r}. Choose from: http, persistent, ephemeral.")


class ChromaVectorStore(VectorStoreBase):
    """Chroma-backed chunk store with a SQLite document registry.

    Parameters
    ----------
    embedding_model:
        Pinned model identity. Recorded in the collection metadata; opening
        a collection created with another model raises
        :class:`~tenant_rag.errors.EmbeddingModelMismatch`.
    collection_name:
        Name of the Chroma collection holding chunk vectors.
    client:
        A Chroma client. Defaults to :func:`make_chroma_client`.
    registry:
        Document registry. Defaults to a SQLite file at
        ``settings.document_db_path``.
    """

    def __init__(
        self,
        embedding_model: EmbeddingModelInfo,
        collection_name: str = settings.chroma_collection,
        *,
        client: Any = None,
        registry: SQLiteDocumentRegistry | None = None,
    ) -> None:
        super().__init__(embedding_model)
        self.collection_name = collection_name
        self._client = client if client is not None else make_chroma_client()
        self._registry = registry or SQLiteDocumentRegistry(settings.document_db_path)
        self._collection = self._open_collection()
        self._check_collection_pin()

    def _open_collection(self) -> Any:
        try:
            return self._client.get_collection(name=self.collection_name)
        except Exception:
            logger.info("Creating Chroma collection %s", self.collection_name)
        try:
            return self._client.get_or_create_collection(
                name=self.collection_name,
                metadata={
                    "hnsw:space": "cosine",
                    "embedding_model": self.embedding_model.key,
                    "embedding_dim": self.embedding_model.dimension,
                },
            )
        except Exception as exc:
            raise StoreError(f"Cannot open Chroma collection {self.collection_name!r}: {exc}") from exc

    def _check_collection_pin(self) -> None:
        meta = self._collection.metadata or {}
        recorded = meta.get("embedding_model")
        if recorded is not None and recorded != self.embedding_model.key:
            raise EmbeddingModelMismatch(
                f"Collection {self.collection_name!r} holds vectors from {recorded!r}, "
                f"but the store is pinned to {self.embedding_model.key!r}"
            )

    # -- documents -------------------------------------------------------------

    def create_document(self, tenant_id: str, title: str, source: str = "") -> Document:
        doc = Document(
            tenant_id=tenant_id,
            title=title,
            source=source,
            embedding_model=self.embedding_model.key,
        )
        self._registry.add(doc)
        return doc

    def get_documents(self, tenant_id: str, document_ids: list[str]) -> dict[str, Document]:
        return self._registry.get_many(tenant_id, document_ids)

    def list_documents(self, tenant_id: str) -> list[Document]:
        return self._registry.list_for_tenant(tenant_id)

    def set_chunk_count(self, document_id: str, chunk_count: int) -> None:
        self._registry.set_chunk_count(document_id, chunk_count)

    def delete(self, document_id: str, *, tenant_id: str | None = None) -> None:
        doc = self._registry.get(document_id)
        if doc is None or (tenant_id is not None and doc.tenant_id != tenant_id):
            raise DocumentNotFound(document_id, tenant_id)
        try:
            self._collection.delete(
                where=_build_chroma_where([MetadataFilter.equals("document_id", document_id)])
            )
        except Exception as exc:
            raise StoreError(f"Failed to delete chunks of {document_id!r}: {exc}") from exc
        self._registry.remove(document_id)
        logger.info("Deleted document %s of tenant %s", document_id, doc.tenant_id)

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
        doc = self._registry.get(document_id)
        if doc is None:
            raise StoreError(f"Cannot insert chunk: document {document_id!r} does not exist")
        if doc.tenant_id != tenant_id:
            raise StoreError(
                f"Cannot insert chunk: document {document_id!r} does not belong to tenant {tenant_id!r}"
            )

        chunk_id = f"{document_id}_{chunk_index}"
        try:
            if self._collection.get(ids=[chunk_id])["ids"]:
                raise StoreError(f"Chunk {chunk_index} of document {document_id!r} already exists")
            self._collection.add(
                ids=[chunk_id],
                embeddings=[embedding],
                documents=[content],
                metadatas=[
                    {
                        "tenant_id": tenant_id,
                        "document_id": document_id,
                        "chunk_index": chunk_index,
                        "embedding_model": self.embedding_model.key,
                    }
                ],
            )
        except StoreError:
            raise
        except Exception as exc:
            raise StoreError(f"Failed to insert chunk {chunk_id!r}: {exc}") from exc
        return chunk_id

    def query(
        self,
        tenant_id: str,
        query_embedding: list[float],
        k: int = 5,
        similarity_threshold: float = 0.0,
    ) -> list[ChunkMatch]:
        self._check_dimension(query_embedding)
        where = _build_chroma_where(
            [
                MetadataFilter.equals("tenant_id", tenant_id),
                MetadataFilter.equals("embedding_model", self.embedding_model.key),
            ]
        )
        try:
            total = self._collection.count()
            if total == 0:
                return []
            # Ties at the k-th boundary are resolved by _rank, not by HNSW order.
            results = self._collection.query(
                query_embeddings=[query_embedding],
                n_results=min(total, k * _OVERFETCH + 1),
                where=where,
                include=["documents", "metadatas", "distances"],
            )
        except Exception as exc:
            raise StoreError(f"Chroma query failed: {exc}") from exc

        ids = (results.get("ids") or [[]])[0]
        docs = (results.get("documents") or [[]])[0]
        metas = (results.get("metadatas") or [[]])[0]
        distances = (results.get("distances") or [[]])[0]

        matches: list[ChunkMatch] = []
        for chunk_id, content, meta, dist in zip(ids, docs, metas, distances):
            meta = meta or {}
            matches.append(
                ChunkMatch(
                    chunk_id=chunk_id,
                    document_id=meta.get("document_id", ""),
                    tenant_id=meta.get("tenant_id", ""),
                    chunk_index=int(meta.get("chunk_index", 0)),
                    content=content or "",
                    # cosine space: distance = 1 - similarity
                    similarity=1.0 - float(dist),
                    embedding_model=meta.get("embedding_model", ""),
                )
            )

        self._assert_tenant(tenant_id, matches)
        return self._rank(matches, k, similarity_threshold)

    def health_check(self) -> bool:
        try:
            self._client.heartbeat()
            return True
        except Exception:
            logger.warning("Chroma health-check failed", exc_info=True)
            return False
