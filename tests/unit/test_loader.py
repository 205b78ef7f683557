"""Unit tests for source-format detection and text extraction."""

from __future__ import annotations

import pytest

from tenant_rag.errors import UnsupportedSourceFormat
from tenant_rag.ingestion.loader import DocumentSource, SourceFormat, extract_text


@pytest.mark.parametrize(
    ("name", "expected"),
    [
        ("manual.pdf", SourceFormat.PDF),
        ("MANUAL.PDF", SourceFormat.PDF),
        ("notes.txt", SourceFormat.TEXT),
        ("README.md", SourceFormat.MARKDOWN),
        ("guide.markdown", SourceFormat.MARKDOWN),
    ],
)
def test_format_inferred_from_suffix(name: str, expected: SourceFormat) -> None:
    assert DocumentSource.from_path(name).format is expected


def test_title_defaults_to_stem() -> None:
    source = DocumentSource.from_path("/uploads/refund-policy.md")
    assert source.title == "refund-policy"
    assert source.label == "refund-policy.md"


def test_explicit_title_wins() -> None:
    assert DocumentSource.from_path("a.txt", title="Returns").title == "Returns"


@pytest.mark.parametrize("name", ["sheet.xlsx", "archive", "slides.pptx"])
def test_unsupported_format(name: str) -> None:
    with pytest.raises(UnsupportedSourceFormat, match="Please upload"):
        DocumentSource.from_path(name)


def test_extract_plain_text_normalises_newlines(tmp_path) -> None:
    path = tmp_path / "notes.txt"
    path.write_bytes(b"First paragraph.\r\n\r\nSecond paragraph.\r\n")
    assert extract_text(DocumentSource.from_path(path)) == "First paragraph.\n\nSecond paragraph."


def test_extract_markdown(tmp_path) -> None:
    path = tmp_path / "guide.md"
    path.write_text("# Guide\n\nShip within **two** days.\n", encoding="utf-8")
    assert extract_text(DocumentSource.from_path(path)) == "# Guide\n\nShip within **two** days."
