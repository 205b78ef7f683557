"""Domain models for documents, chunks, retrieval results and citations."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def new_id() -> str:
    return uuid4().hex


class EmbeddingModelInfo(BaseModel):
    """Identity of the model that produced a vector.

    Stored alongside every chunk so that vectors produced by different
    models (or different versions of the same model) are never compared.
    """

    model_config = ConfigDict(frozen=True)

    name: str
    version: str = "1"
    dimension: int = Field(gt=0)

    @property
    def key(self) -> str:
        """Stable identifier persisted with each vector, e.g. ``"text-embedding-3-small@1"``."""
        return f"{self.name}@{self.version}"


class MetadataFilter(BaseModel):
    """Equality filter on one metadata key, pushed down to the vector store.

    Every store query is constrained by ``tenant_id`` and
    ``embedding_model``; deletes by ``document_id``.
    """

    field: str
    operator: str = "eq"
    value: Any = None

    @classmethod
    def equals(cls, field: str, value: Any) -> MetadataFilter:
        return cls(field=field, operator="eq", value=value)


class Document(BaseModel):
    """A tenant-owned uploaded document.

    ``chunk_count`` is the number of chunks *successfully* embedded and
    stored, which can be lower than what the chunker produced.
    """

    id: str = Field(default_factory=new_id)
    tenant_id: str
    title: str
    source: str = ""
    chunk_count: int = 0
    embedding_model: str = ""
    created_at: datetime = Field(default_factory=_utcnow)


class Chunk(BaseModel):
    """One stored, embedded slice of a document. Immutable once written."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=new_id)
    document_id: str
    tenant_id: str
    chunk_index: int = Field(ge=0)
    content: str
    embedding: list[float]
    embedding_model: str
    created_at: datetime = Field(default_factory=_utcnow)


class ChunkMatch(BaseModel):
    """A chunk returned by a nearest-neighbour query."""

    chunk_id: str
    document_id: str
    tenant_id: str
    chunk_index: int
    content: str
    similarity: float
    embedding_model: str = ""

    def sort_key(self) -> tuple[float, str, int]:
        """Similarity descending, then document and chunk position."""
        return (-self.similarity, self.document_id, self.chunk_index)


class Citation(BaseModel):
    """A retrieved chunk shown to the user as a named source.

    Computed per retrieval call and never persisted.
    """

    document_id: str
    document_title: str
    chunk_index: int
    similarity: float

    def short_ref(self) -> str:
        """Return a compact ``[title§chunk]`` reference string."""
        return f"[{self.document_title}§{self.chunk_index}]"


class RetrievalResult(BaseModel):
    """Context block for the generator plus the citations to display."""

    context: str = ""
    sources: list[Citation] = Field(default_factory=list)
    matches: list[ChunkMatch] = Field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not self.matches

    @classmethod
    def empty(cls) -> RetrievalResult:
        return cls()
