"""Tenant-scoped retriever — query embedding, search, citations, context.

This module is the **primary public interface** for retrieval.  The
generation layer consumes :attr:`RetrievalResult.context` as a prompt
prefix and :attr:`RetrievalResult.sources` for citation display.

Usage::

    from tenant_rag.retrieval.retriever import TenantRetriever

    retriever = TenantRetriever(store, embedder)
    result = retriever.retrieve("acme", "What is the refund policy?")
    for source in result.sources:
        print(source.short_ref(), source.similarity)
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from tenant_rag.config import settings
from tenant_rag.errors import (
    EmbeddingModelMismatch,
    EmbeddingServiceError,
    RetrievalError,
    TenantIsolationViolation,
)
from tenant_rag.retrieval.models import ChunkMatch, Citation, Document, RetrievalResult

if TYPE_CHECKING:
    from tenant_rag.ingestion.embedder import EmbeddingClient
    from tenant_rag.retrieval.base import VectorStoreBase

logger = logging.getLogger(__name__)

SECTION_SEPARATOR = "\n\n---\n\n"


def format_context(matches: list[ChunkMatch], preamble: str = "") -> str:
    """Render *matches* as one labelled section per chunk, in order."""
    if not matches:
        return ""
    block = SECTION_SEPARATOR.join(
        f"[Reference {i}]\n{match.content}" for i, match in enumerate(matches, start=1)
    )
    return f"{preamble}\n\n{block}" if preamble else block


def build_system_prompt(base_prompt: str, context: str) -> str:
    """Append a non-empty retrieval *context* to the generator's system prompt."""
    if not context:
        return base_prompt
    return f"{base_prompt}{SECTION_SEPARATOR}{context}"


class TenantRetriever:
    """Retrieve grounding context for one tenant's query.

    Parameters
    ----------
    store:
        Vector store to search. Must be pinned to the same embedding model
        as *embedder*.
    embedder:
        Client used to embed the query.
    match_count:
        Maximum chunks placed into the context.
    match_threshold:
        Minimum similarity for a chunk to enter the context (recall).
    citation_threshold:
        Minimum similarity for a chunk to be shown as a named source
        (precision). Must be ``>= match_threshold``.
    preamble:
        Instruction text placed ahead of the reference sections.
    """

    def __init__(
        self,
        store: VectorStoreBase,
        embedder: EmbeddingClient,
        *,
        match_count: int = settings.match_count,
        match_threshold: float = settings.match_threshold,
        citation_threshold: float = settings.citation_threshold,
        preamble: str = settings.context_preamble,
    ) -> None:
        if citation_threshold < match_threshold:
            raise ValueError(
                f"citation_threshold ({citation_threshold}) must be >= match_threshold ({match_threshold})"
            )
        self._store = store
        self._embedder = embedder
        self.match_count = match_count
        self.match_threshold = match_threshold
        self.citation_threshold = citation_threshold
        self.preamble = preamble

    # -- public API -----------------------------------------------------------

    def retrieve(self, tenant_id: str, query: str) -> RetrievalResult:
        """Return context and citations for *query* within *tenant_id*.

        An empty result (no chunk clears ``match_threshold``) means "no
        knowledge available" and is not an error. Matches whose document
        was deleted after the search are dropped.

        Raises
        ------
        RetrievalError
            The query could not be embedded.
        EmbeddingModelMismatch
            The embedder and the store are pinned to different models.
        TenantIsolationViolation
            A match or its document belongs to another tenant.
        """
        self._check_model_pin()
        try:
            query_embedding = self._embedder.embed_query(query)
        except EmbeddingServiceError as exc:
            raise RetrievalError(f"Could not embed query for tenant {tenant_id!r}: {exc}") from exc

        matches = self._store.query(
            tenant_id,
            query_embedding,
            k=self.match_count,
            similarity_threshold=self.match_threshold,
        )
        if not matches:
            logger.info("No chunks above %.2f for tenant %s", self.match_threshold, tenant_id)
            return RetrievalResult.empty()

        self._verify_matches(tenant_id, matches)
        titles = self._lookup_documents(tenant_id, matches)
        matches = self._drop_deleted(tenant_id, matches, titles)
        if not matches:
            return RetrievalResult.empty()

        sources = [
            Citation(
                document_id=m.document_id,
                document_title=titles[m.document_id].title,
                chunk_index=m.chunk_index,
                similarity=m.similarity,
            )
            for m in matches
            if m.similarity >= self.citation_threshold
        ]
        logger.info(
            "Retrieved %d chunks (%d cited) for tenant %s",
            len(matches), len(sources), tenant_id,
        )
        return RetrievalResult(
            context=format_context(matches, self.preamble),
            sources=sources,
            matches=matches,
        )

    def retrieve_or_empty(self, tenant_id: str, query: str) -> tuple[RetrievalResult, bool]:
        """Like :meth:`retrieve` but degrades to an empty result when the
        query cannot be embedded.

        Returns ``(result, degraded)`` so callers can generate without
        context and still report the failure.
        """
        try:
            return self.retrieve(tenant_id, query), False
        except RetrievalError:
            logger.warning("Retrieval failed for tenant %s; continuing without context", tenant_id, exc_info=True)
            return RetrievalResult.empty(), True

    # -- internals ------------------------------------------------------------

    def _check_model_pin(self) -> None:
        if self._embedder.model.key != self._store.embedding_model.key:
            raise EmbeddingModelMismatch(
                f"Query model {self._embedder.model.key!r} differs from index model "
                f"{self._store.embedding_model.key!r}"
            )

    def _verify_matches(self, tenant_id: str, matches: list[ChunkMatch]) -> None:
        for m in matches:
            if m.tenant_id != tenant_id:
                logger.critical(
                    "Tenant isolation violation: tenant %s received chunk %s of tenant %s",
                    tenant_id, m.chunk_id, m.tenant_id,
                )
                raise TenantIsolationViolation(tenant_id, m.tenant_id, f"chunk {m.chunk_id}")
            if m.embedding_model and m.embedding_model != self._embedder.model.key:
                raise EmbeddingModelMismatch(
                    f"Chunk {m.chunk_id} was embedded with {m.embedding_model!r}, "
                    f"query with {self._embedder.model.key!r}"
                )

    def _lookup_documents(self, tenant_id: str, matches: list[ChunkMatch]) -> dict[str, Document]:
        # Second tenant filter, independent of the vector search.
        wanted = sorted({m.document_id for m in matches})
        documents = self._store.get_documents(tenant_id, wanted)
        for doc_id, doc in documents.items():
            if doc.tenant_id != tenant_id:
                logger.critical(
                    "Tenant isolation violation: document %s of tenant %s returned to tenant %s",
                    doc_id, doc.tenant_id, tenant_id,
                )
                raise TenantIsolationViolation(tenant_id, doc.tenant_id, f"document {doc_id}")
        return documents

    @staticmethod
    def _drop_deleted(
        tenant_id: str, matches: list[ChunkMatch], documents: dict[str, Document]
    ) -> list[ChunkMatch]:
        # A document deleted between search and lookup is absent, not foreign.
        kept = [m for m in matches if m.document_id in documents]
        if len(kept) < len(matches):
            logger.warning(
                "Dropped %d matches of tenant %s whose documents were deleted during retrieval",
                len(matches) - len(kept), tenant_id,
            )
        return kept
