"""
Retrieval — tenant-scoped vector search, citations, and context assembly.

This module wraps the vector store behind a clean interface so that
ingestion and retrieval never need to know which DB is backing them.

Public surface
--------------
- :class:`TenantRetriever` — main entry point for retrieval with citations.
- :class:`VectorStoreBase` — abstract backend (subclass for pgvector, etc.).
- :class:`InMemoryVectorStore` — in-process backend.
- :class:`ChromaVectorStore` — default Chroma backend.
- :class:`Citation`, :class:`RetrievalResult`, :class:`Document`,
  :class:`EmbeddingModelInfo` — data models.
"""

from tenant_rag.retrieval.base import VectorStoreBase
from tenant_rag.retrieval.memory_store import InMemoryVectorStore
from tenant_rag.retrieval.models import (
    Chunk,
    ChunkMatch,
    Citation,
    Document,
    EmbeddingModelInfo,
    MetadataFilter,
    RetrievalResult,
)
from tenant_rag.retrieval.retriever import TenantRetriever, build_system_prompt, format_context

__all__ = [
    "Chunk",
    "ChunkMatch",
    "ChromaVectorStore",
    "Citation",
    "Document",
    "EmbeddingModelInfo",
    "InMemoryVectorStore",
    "MetadataFilter",
    "RetrievalResult",
    "TenantRetriever",
    "VectorStoreBase",
    "build_system_prompt",
    "format_context",
]


def __getattr__(name: str):  # noqa: ANN001
    """Lazy-import ChromaVectorStore to avoid pulling in chromadb at import time."""
    if name == "ChromaVectorStore":
        from tenant_rag.retrieval.chroma_store import ChromaVectorStore

        return ChromaVectorStore
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
