"""Ingestion pipeline — chunk, embed and store one document.

Per-chunk failures are isolated: a chunk that cannot be embedded or
stored is recorded in the :class:`IngestionReport` and skipped, and the
remaining chunks are still processed.  Stored chunks are never rolled
back, so a cancelled ingestion leaves valid partial data behind.
"""

from __future__ import annotations

import logging
from concurrent.futures import Future, ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError
from typing import TYPE_CHECKING, Callable

from tenant_rag.config import settings
from tenant_rag.errors import ChunkingError, EmbeddingServiceError, RagError
from tenant_rag.ingestion.chunker import chunk_text
from tenant_rag.ingestion.loader import DocumentSource, extract_text
from tenant_rag.ingestion.models import ChunkOutcome, IngestionReport

if TYPE_CHECKING:
    from tenant_rag.ingestion.embedder import EmbeddingClient
    from tenant_rag.retrieval.base import VectorStoreBase

logger = logging.getLogger(__name__)

Chunker = Callable[[str], list[str]]


def default_chunker(text: str) -> list[str]:
    """Chunk with the configured word targets and quality filter."""
    return chunk_text(
        text,
        target_words=settings.chunk_target_words,
        overlap_words=settings.chunk_overlap_words,
        min_chars=settings.chunk_min_chars,
        max_list_ratio=settings.chunk_max_list_ratio,
    )


class IngestionPipeline:
    """Orchestrates chunker → embedding client → vector store.

    Parameters
    ----------
    store:
        Destination vector store.
    embedder:
        Embedding client; must be pinned to the store's model.
    chunker:
        ``text -> list[str]``. Defaults to :func:`default_chunker`.
    concurrency:
        Number of embedding calls in flight for one document. ``1``
        embeds sequentially. Inserts always happen in chunk order.
    embedding_timeout:
        Seconds to wait for each embedding when running concurrently.
    """

    def __init__(
        self,
        store: VectorStoreBase,
        embedder: EmbeddingClient,
        *,
        chunker: Chunker = default_chunker,
        concurrency: int = settings.ingest_concurrency,
        embedding_timeout: float = settings.embedding_timeout,
    ) -> None:
        if embedder.model.key != store.embedding_model.key:
            raise ValueError(
                f"Embedder model {embedder.model.key!r} does not match store model "
                f"{store.embedding_model.key!r}"
            )
        self._store = store
        self._embedder = embedder
        self._chunker = chunker
        self.concurrency = max(1, concurrency)
        self.embedding_timeout = embedding_timeout

    # -- public API -----------------------------------------------------------

    def ingest(self, tenant_id: str, text: str, title: str, source: str = "") -> IngestionReport:
        """Create a document for *tenant_id* and store its chunks.

        Returns an :class:`IngestionReport`; ``report.succeeded`` is
        ``False`` when no chunk could be stored (the document row is kept).

        Raises
        ------
        ValueError
            *text* is empty.
        StoreError
            The document row itself could not be created.
        """
        if not text or not text.strip():
            raise ValueError("Cannot ingest a document with no text")

        doc = self._store.create_document(tenant_id, title, source)
        logger.info("Created document %s (%r) for tenant %s", doc.id, title, tenant_id)

        try:
            chunks = self._chunker(text)
        except Exception as exc:
            raise ChunkingError(f"Chunking failed for document {doc.id}: {exc}") from exc

        report = IngestionReport(
            document_id=doc.id,
            tenant_id=tenant_id,
            title=title,
            source=source,
            chunks_produced=len(chunks),
        )
        if not chunks:
            logger.warning("Document %s of tenant %s produced no usable chunks", doc.id, tenant_id)
            return report

        if self.concurrency == 1:
            report.outcomes = self._process_sequential(tenant_id, doc.id, chunks)
        else:
            report.outcomes = self._process_concurrent(tenant_id, doc.id, chunks)

        self._store.set_chunk_count(doc.id, report.chunks_stored)

        if not report.succeeded:
            logger.error(
                "Ingestion of document %s for tenant %s stored 0 of %d chunks",
                doc.id, tenant_id, len(chunks),
            )
        elif report.partial:
            logger.warning(
                "Ingestion of document %s for tenant %s stored %d of %d chunks",
                doc.id, tenant_id, report.chunks_stored, len(chunks),
            )
        else:
            logger.info("Stored %d chunks for document %s", report.chunks_stored, doc.id)
        return report

    def ingest_source(self, tenant_id: str, source: DocumentSource) -> IngestionReport:
        """Extract text from an uploaded file, then :meth:`ingest` it."""
        text = extract_text(source)
        if not text:
            raise ValueError(f"Could not extract text from {source.label}")
        return self.ingest(tenant_id, text, title=source.title, source=source.label)

    # -- internals ------------------------------------------------------------

    def _process_sequential(self, tenant_id: str, document_id: str, chunks: list[str]) -> list[ChunkOutcome]:
        outcomes: list[ChunkOutcome] = []
        for idx, content in enumerate(chunks):
            try:
                embedding = self._embedder.embed(content)
            except EmbeddingServiceError as exc:
                outcomes.append(self._failed(tenant_id, document_id, idx, exc))
                continue
            outcomes.append(self._store_chunk(tenant_id, document_id, idx, content, embedding))
        return outcomes

    def _process_concurrent(self, tenant_id: str, document_id: str, chunks: list[str]) -> list[ChunkOutcome]:
        outcomes: list[ChunkOutcome] = []
        pool = ThreadPoolExecutor(max_workers=self.concurrency, thread_name_prefix="embed")
        timed_out = False
        try:
            futures: list[Future[list[float]]] = [pool.submit(self._embedder.embed, c) for c in chunks]
            for idx, (content, future) in enumerate(zip(chunks, futures)):
                try:
                    embedding = future.result(timeout=self.embedding_timeout)
                except FutureTimeoutError:
                    timed_out = True
                    future.cancel()
                    exc = EmbeddingServiceError(f"Embedding timed out after {self.embedding_timeout}s")
                    outcomes.append(self._failed(tenant_id, document_id, idx, exc))
                    continue
                except EmbeddingServiceError as exc:
                    outcomes.append(self._failed(tenant_id, document_id, idx, exc))
                    continue
                outcomes.append(self._store_chunk(tenant_id, document_id, idx, content, embedding))
        finally:
            # A stalled provider call keeps running in its worker; do not wait for it.
            pool.shutdown(wait=not timed_out, cancel_futures=timed_out)
        return outcomes

    def _store_chunk(
        self,
        tenant_id: str,
        document_id: str,
        idx: int,
        content: str,
        embedding: list[float],
    ) -> ChunkOutcome:
        try:
            chunk_id = self._store.insert(tenant_id, document_id, idx, content, embedding)
        except RagError as exc:
            return self._failed(tenant_id, document_id, idx, exc)
        return ChunkOutcome(chunk_index=idx, stored=True, chunk_id=chunk_id)

    @staticmethod
    def _failed(tenant_id: str, document_id: str, idx: int, exc: Exception) -> ChunkOutcome:
        logger.warning(
            "Skipping chunk %d of document %s (tenant %s): %s",
            idx, document_id, tenant_id, exc,
        )
        return ChunkOutcome(chunk_index=idx, stored=False, error=f"{type(exc).__name__}: {exc}")
