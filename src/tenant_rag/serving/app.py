"""FastAPI application exposing tenant-scoped ingestion and retrieval."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI, HTTPException, Request
from pydantic import BaseModel, Field

from tenant_rag.config import settings
from tenant_rag.errors import DocumentNotFound, StoreError
from tenant_rag.logging_config import setup_logging
from tenant_rag.retrieval.models import Citation
from tenant_rag.service import RagService, build_service

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    setup_logging(settings.log_level)
    if getattr(app.state, "rag_service", None) is None:
        app.state.rag_service = build_service()
    yield


app = FastAPI(
    title="Tenant RAG API",
    version="0.1.0",
    description="Per-tenant document ingestion and retrieval for grounded generation.",
    lifespan=lifespan,
)


def get_service(request: Request) -> RagService:
    """Return the :class:`RagService` built once at startup."""
    return request.app.state.rag_service


# ── Request / Response schemas ────────────────────────────────────────
class IngestRequest(BaseModel):
    """Already-extracted document text."""

    text: str
    title: str = Field(..., min_length=1)
    source: str = ""


class IngestResponse(BaseModel):
    id: str
    title: str
    source: str
    chunk_count: int
    chunks_produced: int


class DocumentSummary(BaseModel):
    id: str
    title: str
    source: str
    chunk_count: int
    created_at: str


class RetrieveRequest(BaseModel):
    query: str = Field(..., min_length=1)


class RetrieveResponse(BaseModel):
    context: str
    sources: list[Citation] = []
    degraded: bool = False


# ── Routes ────────────────────────────────────────────────────────────
@app.get("/health")
async def health() -> dict[str, str]:
    """Liveness probe."""
    return {"status": "ok"}


@app.post("/tenants/{tenant_id}/documents", response_model=IngestResponse)
def ingest_document(
    tenant_id: str, request: IngestRequest, service: RagService = Depends(get_service)
) -> IngestResponse:
    """Chunk, embed and store a document for *tenant_id*."""
    if not request.text.strip():
        raise HTTPException(status_code=400, detail="Could not extract text from file")
    try:
        report = service.ingest(tenant_id, request.text, request.title, request.source)
    except StoreError as exc:
        logger.error("Failed to create document for tenant %s: %s", tenant_id, exc)
        raise HTTPException(status_code=500, detail="Failed to create document record") from exc

    if not report.succeeded:
        raise HTTPException(
            status_code=422,
            detail={
                "error": "No chunks could be stored",
                "document_id": report.document_id,
                "chunks_produced": report.chunks_produced,
            },
        )
    return IngestResponse(
        id=report.document_id,
        title=report.title,
        source=report.source,
        chunk_count=report.chunks_stored,
        chunks_produced=report.chunks_produced,
    )


@app.get("/tenants/{tenant_id}/documents", response_model=list[DocumentSummary])
def list_documents(tenant_id: str, service: RagService = Depends(get_service)) -> list[DocumentSummary]:
    """List the tenant's documents, newest first."""
    return [
        DocumentSummary(
            id=d.id,
            title=d.title,
            source=d.source,
            chunk_count=d.chunk_count,
            created_at=d.created_at.isoformat(),
        )
        for d in service.list_documents(tenant_id)
    ]


@app.delete("/tenants/{tenant_id}/documents/{document_id}")
def delete_document(
    tenant_id: str, document_id: str, service: RagService = Depends(get_service)
) -> dict[str, bool]:
    """Delete a document and all of its chunks."""
    try:
        service.delete_document(tenant_id, document_id)
    except DocumentNotFound as exc:
        raise HTTPException(status_code=404, detail="Document not found") from exc
    except StoreError as exc:
        logger.error("Failed to delete document %s: %s", document_id, exc)
        raise HTTPException(status_code=500, detail="Failed to delete document") from exc
    return {"success": True}


@app.post("/tenants/{tenant_id}/retrieve", response_model=RetrieveResponse)
def retrieve(
    tenant_id: str, request: RetrieveRequest, service: RagService = Depends(get_service)
) -> RetrieveResponse:
    """Return grounding context and citations for a query.

    If the query cannot be embedded the response carries an empty context
    and ``degraded: true`` so the caller can answer without retrieval.
    """
    result, degraded = service.retrieve_or_empty(tenant_id, request.query)
    return RetrieveResponse(context=result.context, sources=result.sources, degraded=degraded)
