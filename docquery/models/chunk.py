"""Chunk data models and the external identifier format."""

import uuid
from dataclasses import dataclass, field

EXTERNAL_ID_SEPARATOR = ":"


def build_external_id(document_id: str, chunk_index: int) -> str:
    """Return the index identifier for a document's chunk: ``<document_id>:<chunk_index>``."""
    return f"{document_id}{EXTERNAL_ID_SEPARATOR}{chunk_index}"


def parse_external_id(external_id: str) -> tuple[str, int]:
    """Split an index identifier back into (document_id, chunk_index).

    Splits on the last separator so document ids containing ':' survive.

    Raises:
        ValueError: If the identifier is not in ``<document_id>:<int>`` form.
    """
    document_id, sep, index_part = external_id.rpartition(EXTERNAL_ID_SEPARATOR)
    if not sep or not document_id or not index_part.isdigit():
        raise ValueError(f"malformed external id: {external_id!r}")
    return document_id, int(index_part)


@dataclass
class TextChunk:
    """A span of normalized document text produced by the chunker."""

    chunk_index: int
    text: str
    metadata: dict = field(default_factory=dict)


@dataclass
class DocumentChunk:
    """A segment of a document sized for embedding and retrieval."""

    document_id: str
    chunk_index: int
    text: str
    embedding: list[float] = field(default_factory=list)
    metadata: dict = field(default_factory=dict)
    id: str = field(default_factory=lambda: str(uuid.uuid4()))

    def __post_init__(self):
        if not self.text:
            raise ValueError("text must not be empty")
        if self.chunk_index < 0:
            raise ValueError("chunk_index must be >= 0")

    @property
    def external_id(self) -> str:
        return build_external_id(self.document_id, self.chunk_index)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "document_id": self.document_id,
            "chunk_index": self.chunk_index,
            "text": self.text,
            "embedding": list(self.embedding),
            "metadata": dict(self.metadata),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "DocumentChunk":
        return cls(
            id=data["id"],
            document_id=data["document_id"],
            chunk_index=int(data["chunk_index"]),
            text=data["text"],
            embedding=list(data.get("embedding") or []),
            metadata=dict(data.get("metadata") or {}),
        )
