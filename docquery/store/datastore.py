"""Document and chunk record store.

Keeps documents and chunks in memory and, when paths are given, mirrors
them to two JSON files that are replaced atomically on every change. This
store is authoritative; the vector index is a rebuildable cache of the
embeddings held here.
"""

import json
import logging
import threading
from collections.abc import Iterator
from pathlib import Path

from docquery.errors import DocumentNotFoundError
from docquery.models.chunk import DocumentChunk, parse_external_id
from docquery.models.document import Document
from docquery.store.atomic import write_atomic

logger = logging.getLogger(__name__)


class DataStore:
    """JSON-backed store for documents and their chunks.

    Pass no paths for a purely in-memory store.
    """

    def __init__(
        self,
        documents_path: str | Path | None = None,
        chunks_path: str | Path | None = None,
    ):
        self._documents_path = Path(documents_path) if documents_path else None
        self._chunks_path = Path(chunks_path) if chunks_path else None
        self._documents: dict[str, Document] = {}
        self._chunks: dict[str, DocumentChunk] = {}
        self._lock = threading.RLock()
        self._load()

    def _load(self) -> None:
        for item in _read_records(self._documents_path):
            doc = Document.from_dict(item)
            self._documents[doc.id] = doc
        for item in _read_records(self._chunks_path):
            chunk = DocumentChunk.from_dict(item)
            self._chunks[chunk.id] = chunk
        if self._documents_path or self._chunks_path:
            logger.info("Loaded %d documents and %d chunks", len(self._documents), len(self._chunks))

    def _save_documents(self) -> None:
        if self._documents_path is None:
            return
        records = [doc.to_dict() for doc in self._documents.values()]
        write_atomic(self._documents_path, json.dumps(records, indent=2))

    def _save_chunks(self) -> None:
        if self._chunks_path is None:
            return
        records = [chunk.to_dict() for chunk in self._chunks.values()]
        write_atomic(self._chunks_path, json.dumps(records))

    # Documents

    def create_document(self, document: Document) -> Document:
        with self._lock:
            self._documents[document.id] = document
            self._save_documents()
        return document

    def get_document(self, document_id: str) -> Document | None:
        return self._documents.get(document_id)

    def list_documents(self) -> list[Document]:
        with self._lock:
            return list(self._documents.values())

    def update_document(
        self,
        document_id: str,
        title: str | None = None,
        content: str | None = None,
        tags: list[str] | None = None,
    ) -> Document:
        with self._lock:
            document = self._documents.get(document_id)
            if document is None:
                raise DocumentNotFoundError(document_id)
            document.update(title=title, content=content, tags=tags)
            self._save_documents()
            return document

    def delete_document(self, document_id: str) -> bool:
        """Delete a document and its chunks; returns False if it did not exist."""
        with self._lock:
            if self._documents.pop(document_id, None) is None:
                return False
            self._chunks = {
                chunk_id: chunk
                for chunk_id, chunk in self._chunks.items()
                if chunk.document_id != document_id
            }
            self._save_documents()
            self._save_chunks()
            return True

    # Chunks

    def create_chunks_bulk(self, chunks: list[DocumentChunk]) -> list[DocumentChunk]:
        with self._lock:
            for chunk in chunks:
                self._chunks[chunk.id] = chunk
            self._save_chunks()
        return chunks

    def get_chunks_by_document(self, document_id: str) -> list[DocumentChunk]:
        with self._lock:
            chunks = [c for c in self._chunks.values() if c.document_id == document_id]
        return sorted(chunks, key=lambda c: c.chunk_index)

    def count_chunks(self, document_id: str) -> int:
        return len(self.get_chunks_by_document(document_id))

    def delete_chunks_by_document(self, document_id: str) -> list[DocumentChunk]:
        with self._lock:
            deleted = [c for c in self._chunks.values() if c.document_id == document_id]
            for chunk in deleted:
                del self._chunks[chunk.id]
            self._save_chunks()
        return deleted

    def list_chunks(self) -> list[DocumentChunk]:
        with self._lock:
            return list(self._chunks.values())

    def get_chunk_by_external_id(self, external_id: str) -> DocumentChunk | None:
        """Look up a chunk by its index identifier; None if absent or malformed."""
        try:
            document_id, chunk_index = parse_external_id(external_id)
        except ValueError:
            logger.debug("Ignoring malformed external id %r", external_id)
            return None
        with self._lock:
            for chunk in self._chunks.values():
                if chunk.document_id == document_id and chunk.chunk_index == chunk_index:
                    return chunk
        return None

    def iter_embeddings(self) -> Iterator[tuple[str, list[float]]]:
        """Yield (external_id, embedding) for every chunk that has an embedding."""
        for chunk in self.list_chunks():
            if chunk.embedding:
                yield chunk.external_id, chunk.embedding


def _read_records(path: Path | None) -> list[dict]:
    if path is None or not path.exists():
        return []
    with open(path, encoding="utf-8") as f:
        return json.load(f)
