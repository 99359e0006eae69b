"""Search and answer data models."""

from dataclasses import dataclass, field

from docquery.models.chunk import DocumentChunk
from docquery.models.document import DocumentDescriptor
from docquery.models.enums import Confidence


@dataclass(frozen=True)
class SearchHit:
    """One index search result."""

    external_id: str
    score: float


@dataclass
class RetrievedChunk:
    """A search hit resolved to its chunk record and owning document."""

    chunk: DocumentChunk
    score: float
    document: DocumentDescriptor | None = None

    @property
    def title(self) -> str:
        if self.document is not None:
            return self.document.title
        return self.chunk.metadata.get("title", "")


@dataclass
class QueryAnswer:
    """The response to a question."""

    question: str
    answer: str
    chunks: list[RetrievedChunk] = field(default_factory=list)
    generated: bool = False
    confidence: Confidence = Confidence.INSUFFICIENT

    def __post_init__(self):
        if not isinstance(self.confidence, Confidence):
            self.confidence = Confidence(self.confidence)
        if not self.answer:
            raise ValueError("answer must not be empty")
