"""Outcome records produced by the ingestion pipeline."""

from __future__ import annotations

from pydantic import BaseModel, Field


class ChunkOutcome(BaseModel):
    """Result of embedding and storing one chunk.

    Attributes
    ----------
    chunk_index:
        Position of the chunk in chunker output.
    stored:
        ``True`` when the chunk was embedded and inserted.
    chunk_id:
        Store id of the chunk, when stored.
    error:
        ``"<ExceptionType>: <message>"`` when the chunk was skipped.
    """

    chunk_index: int
    stored: bool
    chunk_id: str | None = None
    error: str | None = None


class IngestionReport(BaseModel):
    """What happened to one uploaded document."""

    document_id: str
    tenant_id: str
    title: str
    source: str = ""
    chunks_produced: int = 0
    outcomes: list[ChunkOutcome] = Field(default_factory=list)

    @property
    def chunks_stored(self) -> int:
        return sum(1 for o in self.outcomes if o.stored)

    @property
    def failed_chunks(self) -> list[ChunkOutcome]:
        return [o for o in self.outcomes if not o.stored]

    @property
    def succeeded(self) -> bool:
        """``False`` when no chunk was stored. The document row is kept either way."""
        return self.chunks_stored > 0

    @property
    def partial(self) -> bool:
        return self.succeeded and self.chunks_stored < self.chunks_produced
