"""Shared pytest configuration and fixtures."""

from __future__ import annotations

import re

import pytest
from langchain_core.embeddings import Embeddings

from tenant_rag.ingestion.embedder import EmbeddingClient
from tenant_rag.retrieval.memory_store import InMemoryVectorStore
from tenant_rag.retrieval.models import EmbeddingModelInfo

# Each vocabulary word is one axis; everything else falls on the last axis.
VOCAB = (
    "refund",
    "policy",
    "shipping",
    "warranty",
    "invoice",
    "payment",
    "holiday",
    "vacation",
    "cluster",
    "deploy",
)
DIM = len(VOCAB) + 1

_TOKEN = re.compile(r"[a-z]+")


class KeywordEmbeddings(Embeddings):
    """Bag-of-words over :data:`VOCAB`, so cosine scores are predictable."""

    def __init__(self) -> None:
        self.calls: list[str] = []

    def _vector(self, text: str) -> list[float]:
        self.calls.append(text)
        vec = [0.0] * DIM
        for token in _TOKEN.findall(text.lower()):
            if token in VOCAB:
                vec[VOCAB.index(token)] += 1.0
        if not any(vec):
            vec[-1] = 1.0
        return vec

    def embed_documents(self, texts: list[str]) -> list[list[float]]:
        return [self._vector(t) for t in texts]

    def embed_query(self, text: str) -> list[float]:
        return self._vector(text)


class FailingEmbeddings(KeywordEmbeddings):
    """Raises for any text containing *marker* (or every text when empty)."""

    def __init__(self, marker: str = "") -> None:
        super().__init__()
        self.marker = marker

    def _vector(self, text: str) -> list[float]:
        if not self.marker or self.marker in text:
            raise ConnectionError("embedding service unreachable")
        return super()._vector(text)


@pytest.fixture()
def model_info() -> EmbeddingModelInfo:
    return EmbeddingModelInfo(name="keyword-test", version="1", dimension=DIM)


@pytest.fixture()
def embedder(model_info: EmbeddingModelInfo) -> EmbeddingClient:
    return EmbeddingClient(KeywordEmbeddings(), model_info)


@pytest.fixture()
def make_failing_embedder(model_info: EmbeddingModelInfo):
    def _make(marker: str = "") -> EmbeddingClient:
        return EmbeddingClient(FailingEmbeddings(marker), model_info)

    return _make


@pytest.fixture()
def store(model_info: EmbeddingModelInfo) -> InMemoryVectorStore:
    return InMemoryVectorStore(model_info)


@pytest.fixture()
def vector():
    """Build a :data:`DIM`-length vector from ``{word: weight}``."""

    def _vector(**weights: float) -> list[float]:
        vec = [0.0] * DIM
        for word, weight in weights.items():
            vec[VOCAB.index(word)] = weight
        return vec

    return _vector
