"""Service facade wiring store, embedder, pipeline and retriever together."""

from __future__ import annotations

import logging

from tenant_rag.config import Settings, settings
from tenant_rag.ingestion.embedder import EmbeddingClient, get_embedding_client
from tenant_rag.ingestion.models import IngestionReport
from tenant_rag.ingestion.pipeline import IngestionPipeline
from tenant_rag.retrieval.base import VectorStoreBase
from tenant_rag.retrieval.models import Document, RetrievalResult
from tenant_rag.retrieval.retriever import TenantRetriever

logger = logging.getLogger(__name__)


class RagService:
    """Single entry point used by the serving layer.

    Holds no per-request state; all persistent state is in *store*.
    """

    def __init__(
        self,
        store: VectorStoreBase,
        embedder: EmbeddingClient,
        *,
        pipeline: IngestionPipeline | None = None,
        retriever: TenantRetriever | None = None,
    ) -> None:
        self.store = store
        self.embedder = embedder
        self.pipeline = pipeline or IngestionPipeline(store, embedder)
        self.retriever = retriever or TenantRetriever(store, embedder)

    def ingest(self, tenant_id: str, text: str, title: str, source: str = "") -> IngestionReport:
        return self.pipeline.ingest(tenant_id, text, title=title, source=source)

    def retrieve(self, tenant_id: str, query: str) -> RetrievalResult:
        return self.retriever.retrieve(tenant_id, query)

    def retrieve_or_empty(self, tenant_id: str, query: str) -> tuple[RetrievalResult, bool]:
        return self.retriever.retrieve_or_empty(tenant_id, query)

    def list_documents(self, tenant_id: str) -> list[Document]:
        return self.store.list_documents(tenant_id)

    def delete_document(self, tenant_id: str, document_id: str) -> None:
        self.store.delete(document_id, tenant_id=tenant_id)

    def health_check(self) -> bool:
        return self.store.health_check()


def build_store(cfg: Settings, embedder: EmbeddingClient) -> VectorStoreBase:
    """Create the configured vector-store backend, pinned to *embedder*'s model."""
    if cfg.vector_backend == "memory":
        from tenant_rag.retrieval.memory_store import InMemoryVectorStore

        return InMemoryVectorStore(embedder.model)

    if cfg.vector_backend == "chroma":
        from tenant_rag.retrieval.chroma_store import ChromaVectorStore, make_chroma_client
        from tenant_rag.retrieval.document_registry import SQLiteDocumentRegistry

        return ChromaVectorStore(
            embedder.model,
            cfg.chroma_collection,
            client=make_chroma_client(
                cfg.chroma_mode,
                host=cfg.chroma_host,
                port=cfg.chroma_port,
                path=cfg.chroma_path,
            ),
            registry=SQLiteDocumentRegistry(cfg.document_db_path),
        )

    raise ValueError(f"Unsupported vector_backend={cfg.vector_backend!r}. Choose from: chroma, memory.")


def build_service(cfg: Settings = settings) -> RagService:
    """Wire a :class:`RagService` from configuration."""
    embedder = get_embedding_client(cfg)
    store = build_store(cfg, embedder)
    logger.info(
        "RAG service ready (backend=%s, model=%s)", cfg.vector_backend, embedder.model.key,
    )
    pipeline = IngestionPipeline(
        store,
        embedder,
        concurrency=cfg.ingest_concurrency,
        embedding_timeout=cfg.embedding_timeout,
    )
    retriever = TenantRetriever(
        store,
        embedder,
        match_count=cfg.match_count,
        match_threshold=cfg.match_threshold,
        citation_threshold=cfg.citation_threshold,
        preamble=cfg.context_preamble,
    )
    return RagService(store, embedder, pipeline=pipeline, retriever=retriever)
