"""Unit tests for the ingestion pipeline."""

from __future__ import annotations

import time

import pytest

from tenant_rag.errors import ChunkingError, StoreError
from tenant_rag.ingestion.embedder import EmbeddingClient
from tenant_rag.ingestion.loader import DocumentSource
from tenant_rag.ingestion.pipeline import IngestionPipeline
from tenant_rag.retrieval.memory_store import InMemoryVectorStore
from tenant_rag.retrieval.models import EmbeddingModelInfo
from tenant_rag.retrieval.retriever import TenantRetriever

FIVE_CHUNKS = [
    "Refund requests are accepted for thirty days after delivery of any order.",
    "Shipping is free for orders above fifty euros within the European Union.",
    "BROKEN warranty terms cover manufacturing defects for two full years.",
    "Invoices are emailed once the payment has been captured by the bank.",
    "Holiday opening hours are published on the support page every December.",
]


def _fixed_chunker(chunks: list[str]):
    return lambda text: list(chunks)


class FlakyStore(InMemoryVectorStore):
    """Rejects inserts for the given chunk indices."""

    def __init__(self, embedding_model: EmbeddingModelInfo, fail_on: set[int]) -> None:
        super().__init__(embedding_model)
        self.fail_on = fail_on

    def insert(self, tenant_id, document_id, chunk_index, content, embedding):
        if chunk_index in self.fail_on:
            raise StoreError("index unavailable")
        return super().insert(tenant_id, document_id, chunk_index, content, embedding)


class SlowEmbeddings:
    """Wraps another ``Embeddings`` and stalls on texts containing *marker*."""

    def __init__(self, inner, marker: str, delay: float) -> None:
        self.inner = inner
        self.marker = marker
        self.delay = delay

    def embed_documents(self, texts: list[str]) -> list[list[float]]:
        if any(self.marker in t for t in texts):
            time.sleep(self.delay)
        return self.inner.embed_documents(texts)

    def embed_query(self, text: str) -> list[float]:
        return self.inner.embed_query(text)


# ── Happy path ──────────────────────────────────────────────────────────


class TestIngest:
    def test_all_chunks_stored(self, store, embedder) -> None:
        pipeline = IngestionPipeline(store, embedder, chunker=_fixed_chunker(FIVE_CHUNKS))
        report = pipeline.ingest("acme", "ignored by the fixed chunker", "Handbook", "handbook.md")

        assert report.succeeded and not report.partial
        assert report.chunks_produced == 5
        assert report.chunks_stored == 5
        doc = store.get_document("acme", report.document_id)
        assert doc.chunk_count == 5
        assert doc.source == "handbook.md"
        assert [c.chunk_index for c in store.chunks_for(doc.id)] == [0, 1, 2, 3, 4]

    def test_default_chunker_end_to_end(self, store, embedder) -> None:
        paragraph = " ".join(["refund policy details for customers"] * 80)
        text = "\n\n".join([paragraph] * 3)
        report = IngestionPipeline(store, embedder).ingest("acme", text, "Refunds")

        assert report.chunks_produced >= 2
        assert report.chunks_stored == report.chunks_produced

        result = TenantRetriever(store, embedder).retrieve("acme", "refund policy")
        assert result.sources
        assert {s.document_id for s in result.sources} == {report.document_id}

    def test_empty_text_rejected(self, store, embedder) -> None:
        with pytest.raises(ValueError):
            IngestionPipeline(store, embedder).ingest("acme", "   ", "Empty")
        assert store.list_documents("acme") == []

    def test_no_usable_chunks(self, store, embedder) -> None:
        report = IngestionPipeline(store, embedder).ingest("acme", "Too short.", "Tiny")
        assert report.chunks_produced == 0
        assert not report.succeeded
        assert store.get_document("acme", report.document_id).chunk_count == 0

    def test_chunker_failure_wrapped(self, store, embedder) -> None:
        def broken(text: str) -> list[str]:
            raise RuntimeError("tokenizer crashed")

        with pytest.raises(ChunkingError, match="tokenizer crashed"):
            IngestionPipeline(store, embedder, chunker=broken).ingest("acme", "some text", "Doc")

    def test_model_mismatch_rejected(self, store, embedder, model_info) -> None:
        other = EmbeddingModelInfo(name=model_info.name, version="2", dimension=model_info.dimension)
        with pytest.raises(ValueError, match="does not match"):
            IngestionPipeline(store, EmbeddingClient(embedder._embeddings, other))


# ── Partial failures ────────────────────────────────────────────────────


class TestPartialFailure:
    @pytest.mark.parametrize("concurrency", [1, 3])
    def test_failed_embedding_skips_one_chunk(self, store, make_failing_embedder, concurrency) -> None:
        embedder = make_failing_embedder("BROKEN")
        pipeline = IngestionPipeline(
            store, embedder, chunker=_fixed_chunker(FIVE_CHUNKS), concurrency=concurrency
        )
        report = pipeline.ingest("acme", "ignored", "Handbook")

        assert report.succeeded and report.partial
        assert report.chunks_stored == 4
        assert [o.chunk_index for o in report.failed_chunks] == [2]
        assert report.failed_chunks[0].error.startswith("EmbeddingServiceError")

        stored = [c.chunk_index for c in store.chunks_for(report.document_id)]
        assert sorted(stored) == [0, 1, 3, 4]
        assert store.get_document("acme", report.document_id).chunk_count == 4

    def test_surviving_chunks_are_retrievable(self, store, make_failing_embedder) -> None:
        embedder = make_failing_embedder("BROKEN")
        IngestionPipeline(store, embedder, chunker=_fixed_chunker(FIVE_CHUNKS)).ingest("acme", "x", "Handbook")

        retriever = TenantRetriever(store, embedder)
        assert "thirty days" in retriever.retrieve("acme", "refund").context
        assert "Invoices" in retriever.retrieve("acme", "invoice payment").context
        assert retriever.retrieve("acme", "warranty").is_empty

    def test_all_embeddings_fail(self, store, make_failing_embedder) -> None:
        pipeline = IngestionPipeline(store, make_failing_embedder(), chunker=_fixed_chunker(FIVE_CHUNKS))
        report = pipeline.ingest("acme", "ignored", "Handbook")

        assert not report.succeeded
        assert report.chunks_stored == 0
        assert len(report.failed_chunks) == 5
        doc = store.get_document("acme", report.document_id)
        assert doc is not None and doc.chunk_count == 0

    def test_store_failure_isolated(self, model_info, embedder) -> None:
        store = FlakyStore(model_info, fail_on={1})
        report = IngestionPipeline(store, embedder, chunker=_fixed_chunker(FIVE_CHUNKS)).ingest(
            "acme", "ignored", "Handbook"
        )
        assert report.chunks_stored == 4
        assert report.failed_chunks[0].chunk_index == 1
        assert report.failed_chunks[0].error == "StoreError: index unavailable"

    def test_slow_embedding_times_out(self, store, embedder, model_info) -> None:
        slow = EmbeddingClient(SlowEmbeddings(embedder._embeddings, "BROKEN", delay=2.0), model_info)
        pipeline = IngestionPipeline(
            store,
            slow,
            chunker=_fixed_chunker(FIVE_CHUNKS),
            concurrency=3,
            embedding_timeout=0.05,
        )
        started = time.monotonic()
        report = pipeline.ingest("acme", "ignored", "Handbook")
        elapsed = time.monotonic() - started

        assert [o.chunk_index for o in report.failed_chunks] == [2]
        assert "timed out" in report.failed_chunks[0].error
        assert report.chunks_stored == 4
        assert elapsed < 1.0, f"ingest waited {elapsed:.2f}s for a stalled embedding"


# ── File sources ────────────────────────────────────────────────────────


def test_ingest_source_uses_file_name(tmp_path, store, embedder) -> None:
    path = tmp_path / "returns.txt"
    path.write_text(" ".join(["Our refund policy covers every order."] * 40), encoding="utf-8")

    report = IngestionPipeline(store, embedder).ingest_source("acme", DocumentSource.from_path(path))

    doc = store.get_document("acme", report.document_id)
    assert doc.title == "returns"
    assert doc.source == "returns.txt"
    assert report.chunks_stored == 1
