"""Paragraph-aware text chunking with word-count targets and overlap."""

from __future__ import annotations

import re
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from langchain_core.documents import Document

TARGET_WORDS = 500
OVERLAP_WORDS = 50
MIN_CHUNK_CHARS = 100
MAX_LIST_RATIO = 0.7

_PARAGRAPH_BREAK = re.compile(r"\n\n+")
_WHITESPACE = re.compile(r"\s+")
_BULLET_LINE = re.compile(r"^\s*[-•*►]\s")
_NUMBERED_LINE = re.compile(r"^\s*\d+[.)]\s")


def _word_count(text: str) -> int:
    return len(_WHITESPACE.split(text))


def split_paragraphs(text: str) -> list[str]:
    """Normalise line endings and split *text* on blank lines."""
    normalised = text.replace("\r\n", "\n").replace("\r", "\n")
    paragraphs = (p.strip() for p in _PARAGRAPH_BREAK.split(normalised))
    return [p for p in paragraphs if p]


def is_low_quality_chunk(
    chunk: str,
    *,
    min_chars: int = MIN_CHUNK_CHARS,
    max_list_ratio: float = MAX_LIST_RATIO,
) -> bool:
    """Return ``True`` for chunks not worth embedding.

    A chunk is rejected when it is shorter than *min_chars*, or when more
    than *max_list_ratio* of its non-blank lines look like bullet or
    numbered list items (tables of contents, navigation menus).
    """
    if len(chunk) < min_chars:
        return True

    lines = [line for line in chunk.split("\n") if line.strip()]
    if not lines:
        return True

    list_lines = sum(1 for line in lines if _BULLET_LINE.match(line) or _NUMBERED_LINE.match(line))
    return list_lines / len(lines) > max_list_ratio


def chunk_text(
    text: str,
    *,
    target_words: int = TARGET_WORDS,
    overlap_words: int = OVERLAP_WORDS,
    min_chars: int = MIN_CHUNK_CHARS,
    max_list_ratio: float = MAX_LIST_RATIO,
) -> list[str]:
    """Split *text* into ordered, overlapping chunks of roughly *target_words*.

    Paragraphs are accumulated greedily until the next one would push the
    running chunk past *target_words*. The closed chunk's last paragraph
    (or its trailing *overlap_words* words, if the paragraph is longer
    than twice the overlap) seeds the next chunk.

    A single paragraph longer than *target_words* is never split and
    becomes its own oversized chunk.

    Parameters
    ----------
    text:
        Already-extracted plain text.
    target_words:
        Soft upper bound on words per chunk.
    overlap_words:
        Words carried from the end of one chunk into the next.
    min_chars / max_list_ratio:
        Quality filter thresholds, see :func:`is_low_quality_chunk`.

    Returns
    -------
    list[str]
        Chunks in document order. Empty when nothing survives filtering.
    """
    paragraphs = split_paragraphs(text)
    if not paragraphs:
        return []

    chunks: list[str] = []
    current: list[str] = []
    current_words = 0

    for paragraph in paragraphs:
        paragraph_words = _word_count(paragraph)

        if current_words + paragraph_words > target_words and current_words > 0:
            chunks.append("\n\n".join(current))

            last = current[-1]
            last_words = _word_count(last)
            if last_words <= overlap_words * 2:
                current = [last]
                current_words = last_words
            else:
                tail = _WHITESPACE.split(last)[-overlap_words:] if overlap_words else []
                current = [" ".join(tail)] if tail else []
                current_words = len(tail)

        current.append(paragraph)
        current_words += paragraph_words

    if current:
        chunks.append("\n\n".join(current))

    return [
        c for c in chunks
        if not is_low_quality_chunk(c, min_chars=min_chars, max_list_ratio=max_list_ratio)
    ]


def chunk_documents(documents: list[Document], **kwargs: int | float) -> list[Document]:
    """Chunk LangChain *documents*, keeping their metadata.

    Each output document carries the source metadata plus ``chunk_index``
    (position within its parent). Keyword arguments are forwarded to
    :func:`chunk_text`.
    """
    from langchain_core.documents import Document

    out: list[Document] = []
    for doc in documents:
        for idx, content in enumerate(chunk_text(doc.page_content, **kwargs)):
            out.append(Document(page_content=content, metadata={**doc.metadata, "chunk_index": idx}))
    return out
