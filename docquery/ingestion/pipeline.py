"""Document ingestion pipeline.

Wires together: extractor → chunker → embedding → record store → vector index.

Ordering keeps the index and the record store consistent: vectors are
indexed only after their chunk records exist, and removed from the index
before their chunk records are deleted.
"""

from __future__ import annotations

import logging
import threading
from collections import defaultdict
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING

from docquery.errors import DimensionMismatchError, DocumentNotFoundError, EmbeddingError
from docquery.ingestion.chunker import (
    DEFAULT_CHUNK_OVERLAP,
    DEFAULT_CHUNK_SIZE,
    DEFAULT_MAX_CHUNKS,
    chunk_document,
)
from docquery.ingestion.extractor import extract_file
from docquery.models.chunk import DocumentChunk
from docquery.models.document import Document
from docquery.models.enums import DocumentType

if TYPE_CHECKING:
    from docquery.embedding.provider import EmbeddingProvider
    from docquery.store.datastore import DataStore
    from docquery.vectorstore.faiss_index import VectorIndex
    from docquery.vectorstore.snapshot import IndexSnapshot

logger = logging.getLogger(__name__)


@dataclass
class IngestionResult:
    """Summary of one ingest or update."""

    document: Document
    chunks_created: int = 0
    vectors_indexed: int = 0
    skipped_ids: list[str] = field(default_factory=list)


class DocumentIngestor:
    """Adds, re-processes and deletes documents in the store and the index."""

    def __init__(
        self,
        store: DataStore,
        index: VectorIndex,
        embedding_provider: EmbeddingProvider | None = None,
        snapshot: IndexSnapshot | None = None,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
        chunk_overlap: int = DEFAULT_CHUNK_OVERLAP,
        max_chunks: int = DEFAULT_MAX_CHUNKS,
    ):
        self._store = store
        self._index = index
        self._embedding_provider = embedding_provider
        self._snapshot = snapshot
        self._chunk_size = chunk_size
        self._chunk_overlap = chunk_overlap
        self._max_chunks = max_chunks
        self._document_locks: dict[str, threading.Lock] = defaultdict(threading.Lock)
        self._locks_guard = threading.Lock()

    def _document_lock(self, document_id: str) -> threading.Lock:
        with self._locks_guard:
            return self._document_locks[document_id]

    def _persist(self) -> None:
        if self._snapshot is not None:
            self._snapshot.save(self._index)

    def _chunk_and_embed(self, document: Document, metadata: dict | None) -> list[DocumentChunk]:
        chunks = chunk_document(
            document,
            chunk_size=self._chunk_size,
            chunk_overlap=self._chunk_overlap,
            max_chunks=self._max_chunks,
            metadata=metadata,
        )
        if not chunks:
            logger.warning("No chunks produced for %s", document.title)
            return []

        if self._embedding_provider is None:
            raise EmbeddingError("no embedding provider configured")
        embeddings = self._embedding_provider.embed([c.text for c in chunks])
        for chunk, embedding in zip(chunks, embeddings):
            # No record is written until every width matches the index
            if len(embedding) != self._index.dimension:
                raise DimensionMismatchError(self._index.dimension, len(embedding))
            chunk.embedding = embedding
        return chunks

    def _index_chunks(self, document: Document, chunks: list[DocumentChunk]) -> IngestionResult:
        self._store.create_chunks_bulk(chunks)

        with self._index.lock:
            result = self._index.insert_batch((c.external_id, c.embedding) for c in chunks)
            self._persist()

        logger.info(
            "Indexed %s: %d chunks, %d vectors", document.title, len(chunks), len(result.inserted)
        )
        return IngestionResult(
            document=document,
            chunks_created=len(chunks),
            vectors_indexed=len(result.inserted),
            skipped_ids=result.skipped,
        )

    def _unindex(self, document_id: str) -> list[DocumentChunk]:
        existing = self._store.get_chunks_by_document(document_id)
        with self._index.lock:
            removed = self._index.remove_batch(c.external_id for c in existing)
            self._persist()
        logger.info("Removed %d vectors for document %s", removed, document_id)
        return existing

    def ingest_text(
        self,
        title: str,
        text: str,
        document_type: DocumentType | str = DocumentType.TXT,
        tags: list[str] | None = None,
        metadata: dict | None = None,
    ) -> IngestionResult:
        """Store a document, chunk and embed its text, and index the chunks.

        Embedding failures propagate before anything is written.
        """
        document = Document(
            title=title,
            document_type=document_type,
            content=text,
            tags=list(tags or []),
        )
        with self._document_lock(document.id):
            chunks = self._chunk_and_embed(document, metadata)
            self._store.create_document(document)
            if not chunks:
                return IngestionResult(document=document)
            return self._index_chunks(document, chunks)

    def ingest_file(
        self,
        path: str | Path,
        title: str | None = None,
        tags: list[str] | None = None,
    ) -> IngestionResult:
        """Extract a file's text and ingest it; the title defaults to the file stem."""
        path = Path(path)
        file_type, extracted = extract_file(path)
        logger.info("Processing document upload: %s (%s)", path.name, file_type.value)
        return self.ingest_text(
            title=title or path.stem,
            text=extracted.text,
            document_type=file_type,
            tags=tags,
            metadata=extracted.metadata,
        )

    def update_document(
        self,
        document_id: str,
        title: str | None = None,
        text: str | None = None,
        tags: list[str] | None = None,
        metadata: dict | None = None,
    ) -> IngestionResult:
        """Re-process a document with new content and/or descriptive fields.

        Raises:
            DocumentNotFoundError: If the document does not exist.
        """
        with self._document_lock(document_id):
            document = self._store.get_document(document_id)
            if document is None:
                raise DocumentNotFoundError(document_id)

            # Embed the new content first so a failure leaves the old version indexed
            pending = Document(
                id=document.id,
                title=title or document.title,
                document_type=document.document_type,
                content=document.content if text is None else text,
                tags=document.tags if tags is None else list(tags),
            )
            chunks = self._chunk_and_embed(pending, metadata)

            self._unindex(document_id)
            self._store.delete_chunks_by_document(document_id)
            document = self._store.update_document(
                document_id,
                title=pending.title,
                content=pending.content,
                tags=pending.tags,
            )
            if not chunks:
                return IngestionResult(document=document)
            return self._index_chunks(document, chunks)

    def update_file(
        self,
        document_id: str,
        path: str | Path | None = None,
        title: str | None = None,
        tags: list[str] | None = None,
    ) -> IngestionResult:
        """Re-process a document, optionally replacing its content with a file's text.

        The document keeps its original type; only the text and extraction
        metadata come from the new file.
        """
        text = None
        metadata = None
        if path is not None:
            path = Path(path)
            _, extracted = extract_file(path)
            logger.info("Replacing content of %s with %s", document_id, path.name)
            text = extracted.text
            metadata = extracted.metadata
        return self.update_document(document_id, title=title, text=text, tags=tags, metadata=metadata)

    def delete_document(self, document_id: str) -> int | None:
        """Delete a document, its chunks and its vectors.

        Returns the number of chunks deleted, or None if the document does
        not exist.
        """
        with self._document_lock(document_id):
            if self._store.get_document(document_id) is None:
                return None
            chunks = self._unindex(document_id)
            self._store.delete_document(document_id)
            logger.info("Document %s and %d chunks deleted", document_id, len(chunks))
        with self._locks_guard:
            self._document_locks.pop(document_id, None)
        return len(chunks)

    def rebuild_index(self) -> int:
        """Rebuild the index from every embedding held by the record store."""
        with self._index.lock:
            restored = self._index.rebuild_from(self._store.iter_embeddings())
            self._persist()
        return restored
