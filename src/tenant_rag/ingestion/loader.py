"""Per-format text extraction adapters upstream of the chunker.

The chunker only ever sees normalised plain text. Each supported file
type gets one adapter; adding a format means adding a
:class:`SourceFormat` member and an entry in ``_ADAPTERS``.
"""

from __future__ import annotations

from enum import Enum
from pathlib import Path
from typing import Callable

from langchain_community.document_loaders import PyPDFLoader, TextLoader
from pydantic import BaseModel

from tenant_rag.errors import UnsupportedSourceFormat


class SourceFormat(str, Enum):
    PDF = "pdf"
    TEXT = "text"
    MARKDOWN = "markdown"


_SUFFIXES: dict[str, SourceFormat] = {
    ".pdf": SourceFormat.PDF,
    ".txt": SourceFormat.TEXT,
    ".md": SourceFormat.MARKDOWN,
    ".markdown": SourceFormat.MARKDOWN,
}


class DocumentSource(BaseModel):
    """An uploaded file awaiting text extraction."""

    path: Path
    format: SourceFormat
    title: str

    @property
    def label(self) -> str:
        """Source label stored on the document (the original file name)."""
        return self.path.name

    @classmethod
    def from_path(cls, path: str | Path, title: str | None = None) -> DocumentSource:
        """Infer format from the file suffix and title from the file stem."""
        path = Path(path)
        fmt = _SUFFIXES.get(path.suffix.lower())
        if fmt is None:
            raise UnsupportedSourceFormat(
                f"Unsupported file type {path.suffix or '(none)'!r} for {path.name}. "
                "Please upload .pdf, .txt, or .md"
            )
        return cls(path=path, format=fmt, title=title or path.stem)


def _extract_pdf(path: Path) -> str:
    pages = PyPDFLoader(str(path)).load()
    return "\n\n".join(page.page_content for page in pages)


def _extract_plain(path: Path) -> str:
    docs = TextLoader(str(path), encoding="utf-8").load()
    return "\n\n".join(doc.page_content for doc in docs)


_ADAPTERS: dict[SourceFormat, Callable[[Path], str]] = {
    SourceFormat.PDF: _extract_pdf,
    SourceFormat.TEXT: _extract_plain,
    SourceFormat.MARKDOWN: _extract_plain,
}


def extract_text(source: DocumentSource) -> str:
    """Return the normalised plain text of *source*."""
    raw = _ADAPTERS[source.format](source.path)
    return raw.replace("\r\n", "\n").replace("\r", "\n").strip()
