"""Abstract base class for tenant-scoped vector-store backends.

Adding a new backend (pgvector, Qdrant, …) only requires subclassing
:class:`VectorStoreBase` and implementing the abstract methods.  The
ingestion pipeline and retriever are backend-agnostic.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod

from tenant_rag.errors import EmbeddingModelMismatch, TenantIsolationViolation
from tenant_rag.retrieval.models import ChunkMatch, Document, EmbeddingModelInfo

logger = logging.getLogger(__name__)


class VectorStoreBase(ABC):
    """Backend-agnostic chunk store with tenant-scoped similarity search.

    Parameters
    ----------
    embedding_model:
        The model every stored vector must come from. Fixed for the
        lifetime of the index.
    """

    def __init__(self, embedding_model: EmbeddingModelInfo) -> None:
        self.embedding_model = embedding_model

    # -- documents -------------------------------------------------------------

    @abstractmethod
    def create_document(self, tenant_id: str, title: str, source: str = "") -> Document:
        """Create and persist a new document row with ``chunk_count=0``."""
        ...

    @abstractmethod
    def get_documents(self, tenant_id: str, document_ids: list[str]) -> dict[str, Document]:
        """Return ``{id: Document}`` for the ids owned by *tenant_id*.

        Ids belonging to other tenants (or to nobody) are simply absent.
        """
        ...

    @abstractmethod
    def list_documents(self, tenant_id: str) -> list[Document]:
        """Return every document of *tenant_id*, newest first."""
        ...

    @abstractmethod
    def set_chunk_count(self, document_id: str, chunk_count: int) -> None:
        """Record how many chunks of *document_id* were stored."""
        ...

    @abstractmethod
    def delete(self, document_id: str, *, tenant_id: str | None = None) -> None:
        """Delete *document_id* and all of its chunks.

        When *tenant_id* is given the document must belong to it,
        otherwise :class:`~tenant_rag.errors.DocumentNotFound` is raised.
        """
        ...

    def get_document(self, tenant_id: str, document_id: str) -> Document | None:
        return self.get_documents(tenant_id, [document_id]).get(document_id)

    # -- chunks ----------------------------------------------------------------

    @abstractmethod
    def insert(
        self,
        tenant_id: str,
        document_id: str,
        chunk_index: int,
        content: str,
        embedding: list[float],
    ) -> str:
        """Store one chunk and return its id.

        Raises :class:`~tenant_rag.errors.StoreError` on constraint
        violation or connectivity failure.
        """
        ...

    @abstractmethod
    def query(
        self,
        tenant_id: str,
        query_embedding: list[float],
        k: int = 5,
        similarity_threshold: float = 0.0,
    ) -> list[ChunkMatch]:
        """Return up to *k* chunks of *tenant_id* with cosine similarity
        ``>= similarity_threshold``, most similar first.

        Rows of any other tenant are never returned, however close their
        embeddings are.
        """
        ...

    @abstractmethod
    def health_check(self) -> bool:
        """Return ``True`` when the backend is reachable and ready."""
        ...

    # -- shared checks ---------------------------------------------------------

    def _check_dimension(self, embedding: list[float]) -> None:
        if len(embedding) != self.embedding_model.dimension:
            raise EmbeddingModelMismatch(
                f"Index is pinned to {self.embedding_model.key!r} "
                f"(dim={self.embedding_model.dimension}); got a {len(embedding)}-dim vector"
            )

    @staticmethod
    def _rank(matches: list[ChunkMatch], k: int, similarity_threshold: float) -> list[ChunkMatch]:
        kept = [m for m in matches if m.similarity >= similarity_threshold]
        kept.sort(key=ChunkMatch.sort_key)
        return kept[:k]

    @staticmethod
    def _assert_tenant(tenant_id: str, matches: list[ChunkMatch]) -> None:
        for match in matches:
            if match.tenant_id != tenant_id:
                logger.critical(
                    "Tenant isolation violation: query for %s returned chunk %s of tenant %s",
                    tenant_id, match.chunk_id, match.tenant_id,
                )
                raise TenantIsolationViolation(tenant_id, match.tenant_id, f"chunk {match.chunk_id}")
