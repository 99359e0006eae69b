"""Document data model."""

import uuid
from dataclasses import dataclass, field
from datetime import datetime

from docquery.models.enums import DocumentType


@dataclass
class DocumentDescriptor:
    """The descriptive fields of a document attached to query results."""

    id: str
    title: str
    document_type: DocumentType
    tags: list[str] = field(default_factory=list)


@dataclass
class Document:
    """An uploaded document and its extracted text."""

    title: str
    document_type: DocumentType
    content: str
    tags: list[str] = field(default_factory=list)
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    created_at: datetime = field(default_factory=datetime.now)
    updated_at: datetime = field(default_factory=datetime.now)

    def __post_init__(self):
        if not isinstance(self.document_type, DocumentType):
            self.document_type = DocumentType(self.document_type)
        if not self.title:
            raise ValueError("title must not be empty")

    def update(
        self,
        title: str | None = None,
        content: str | None = None,
        tags: list[str] | None = None,
    ) -> None:
        if title is not None:
            self.title = title
        if content is not None:
            self.content = content
        if tags is not None:
            self.tags = tags
        self.updated_at = datetime.now()

    def describe(self) -> DocumentDescriptor:
        return DocumentDescriptor(
            id=self.id,
            title=self.title,
            document_type=self.document_type,
            tags=list(self.tags),
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "title": self.title,
            "document_type": self.document_type.value,
            "content": self.content,
            "tags": list(self.tags),
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Document":
        return cls(
            id=data["id"],
            title=data["title"],
            document_type=DocumentType(data["document_type"]),
            content=data.get("content", ""),
            tags=list(data.get("tags", [])),
            created_at=datetime.fromisoformat(data["created_at"]),
            updated_at=datetime.fromisoformat(data["updated_at"]),
        )
