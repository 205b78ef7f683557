"""Exception hierarchy shared by ingestion and retrieval."""

from __future__ import annotations


class RagError(Exception):
    """Base class for every error raised by :mod:`tenant_rag`."""


class ChunkingError(RagError):
    """The chunker could not process its input."""


class EmbeddingServiceError(RagError):
    """The embedding provider failed (network, quota, timeout, bad output)."""


class StoreError(RagError):
    """The vector index rejected an operation or could not be reached."""


class EmbeddingModelMismatch(StoreError):
    """A vector's model identity or dimension disagrees with the index pin."""


class DocumentNotFound(StoreError):
    """No document with the given id exists for the tenant."""

    def __init__(self, document_id: str, tenant_id: str | None = None) -> None:
        self.document_id = document_id
        self.tenant_id = tenant_id
        scope = f" for tenant {tenant_id!r}" if tenant_id else ""
        super().__init__(f"Document {document_id!r} not found{scope}")


class TenantIsolationViolation(RagError):
    """A row belonging to another tenant surfaced in a tenant-scoped read.

    This never happens in correct operation. It is raised, not filtered,
    so the bug is visible to operators.
    """

    def __init__(self, expected_tenant: str, found_tenant: str | None, detail: str = "") -> None:
        self.expected_tenant = expected_tenant
        self.found_tenant = found_tenant
        msg = f"Expected tenant {expected_tenant!r}, found {found_tenant!r}"
        if detail:
            msg = f"{msg}: {detail}"
        super().__init__(msg)


class RetrievalError(RagError):
    """Retrieval could not run, typically because the query embedding failed."""


class UnsupportedSourceFormat(RagError):
    """No text extraction adapter exists for the given file type."""
