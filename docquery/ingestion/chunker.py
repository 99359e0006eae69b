"""Boundary-aware character chunker with overlapping windows."""

import re

from docquery.models.chunk import DocumentChunk, TextChunk
from docquery.models.document import Document

SENTENCE_ENDINGS = ".!?"
WHITESPACE_RUN = re.compile(r"\s+")

DEFAULT_CHUNK_SIZE = 1000
DEFAULT_CHUNK_OVERLAP = 200
DEFAULT_MAX_CHUNKS = 1000


def normalize_text(text: str) -> str:
    """Collapse whitespace runs to single spaces and trim."""
    return WHITESPACE_RUN.sub(" ", text).strip()


def _find_sentence_break(text: str, start: int, end: int) -> int | None:
    """Return the offset just past the last sentence terminator in [start, end)."""
    for i in range(end - 1, start - 1, -1):
        if text[i] in SENTENCE_ENDINGS:
            return i + 1
    return None


def _find_word_break(text: str, start: int, end: int) -> int | None:
    """Return the offset of the last whitespace strictly between start and end."""
    for i in range(end - 1, start, -1):
        if text[i].isspace():
            return i
    return None


def _find_cut(text: str, start: int, chunk_size: int) -> int:
    """Pick the end offset of the window starting at ``start``.

    Prefers a sentence boundary in the second half of the window, then the
    last word boundary, then a hard cut at ``chunk_size``.
    """
    end = start + chunk_size
    if end >= len(text):
        return len(text)

    sentence_end = _find_sentence_break(text, start, end)
    if sentence_end is not None and sentence_end >= start + chunk_size * 0.5:
        return sentence_end

    word_end = _find_word_break(text, start, end)
    if word_end is not None:
        return word_end

    return end


def split_text(
    text: str,
    chunk_size: int = DEFAULT_CHUNK_SIZE,
    chunk_overlap: int = DEFAULT_CHUNK_OVERLAP,
    max_chunks: int = DEFAULT_MAX_CHUNKS,
    metadata: dict | None = None,
) -> list[TextChunk]:
    """Split text into bounded, overlapping, boundary-respecting chunks.

    Each window starts ``chunk_overlap`` characters before the previous cut
    (never at or before the previous start), so consecutive spans advance
    strictly forward and leave no gap. At most ``max_chunks`` chunks are
    produced. Every chunk's metadata is the caller's metadata plus
    ``chunkIndex``, ``startPosition``, ``endPosition`` and ``totalChunks``;
    positions are offsets into the normalized text.
    """
    if chunk_size <= 0:
        raise ValueError("chunk_size must be > 0")
    if chunk_overlap < 0:
        raise ValueError("chunk_overlap must be >= 0")
    if max_chunks < 1:
        raise ValueError("max_chunks must be >= 1")

    base_metadata = dict(metadata or {})
    if not text:
        return []

    cleaned = normalize_text(text)
    if not cleaned:
        return []

    length = len(cleaned)
    if length <= chunk_size:
        return [
            TextChunk(
                chunk_index=0,
                text=cleaned,
                metadata={
                    **base_metadata,
                    "chunkIndex": 0,
                    "startPosition": 0,
                    "endPosition": length,
                    "totalChunks": 1,
                },
            )
        ]

    chunks: list[TextChunk] = []
    start = 0

    while start < length and len(chunks) < max_chunks:
        end = _find_cut(cleaned, start, chunk_size)

        chunk_text = cleaned[start:end].strip()
        if chunk_text:
            index = len(chunks)
            chunks.append(
                TextChunk(
                    chunk_index=index,
                    text=chunk_text,
                    metadata={
                        **base_metadata,
                        "chunkIndex": index,
                        "startPosition": start,
                        "endPosition": end,
                    },
                )
            )

        if end >= length:
            break

        next_start = end - chunk_overlap
        if next_start <= start:
            next_start = end
        start = next_start

    # Only known once the loop is done
    for chunk in chunks:
        chunk.metadata["totalChunks"] = len(chunks)

    return chunks


def chunk_document(
    document: Document,
    chunk_size: int = DEFAULT_CHUNK_SIZE,
    chunk_overlap: int = DEFAULT_CHUNK_OVERLAP,
    max_chunks: int = DEFAULT_MAX_CHUNKS,
    metadata: dict | None = None,
) -> list[DocumentChunk]:
    """Split a document's content into chunks owned by that document.

    Chunks inherit the extraction metadata plus the document's title and
    file type.
    """
    base_metadata = {
        **(metadata or {}),
        "title": document.title,
        "fileType": document.document_type.value,
    }
    pieces = split_text(
        document.content,
        chunk_size=chunk_size,
        chunk_overlap=chunk_overlap,
        max_chunks=max_chunks,
        metadata=base_metadata,
    )
    return [
        DocumentChunk(
            document_id=document.id,
            chunk_index=piece.chunk_index,
            text=piece.text,
            metadata=piece.metadata,
        )
        for piece in pieces
    ]
