"""Question answering over the vector index.

Embeds the question, searches the index, resolves hits to chunk records,
and answers with the generation backend or, when it is missing or fails,
an excerpt of the best chunk.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from docquery.errors import GenerationError
from docquery.models.enums import Confidence
from docquery.models.query import QueryAnswer, RetrievedChunk, SearchHit

if TYPE_CHECKING:
    from docquery.embedding.provider import EmbeddingProvider
    from docquery.llm.generator import AnswerGenerator
    from docquery.store.datastore import DataStore
    from docquery.vectorstore.faiss_index import VectorIndex

logger = logging.getLogger(__name__)

MIN_K = 1
MAX_K = 20
DEFAULT_K = 5
GENERATION_CONTEXT_CHUNKS = 5
DEFAULT_EXCERPT_CHARS = 500

NO_RESULTS_ANSWER = (
    "I couldn't find any relevant information to answer your question. "
    "Please try rephrasing or ask about topics covered in the uploaded documents."
)

# Calibrated for all-MiniLM-L6-v2 cosine similarity
CONFIDENCE_THRESHOLDS = {
    "high": 0.55,
    "medium": 0.40,
    "low": 0.25,
}


def evaluate_confidence_level(avg_score: float) -> Confidence:
    """Map average relevance score to confidence level.

    high ≥ 0.55, medium ≥ 0.40, low ≥ 0.25, insufficient < 0.25.
    """
    if avg_score >= CONFIDENCE_THRESHOLDS["high"]:
        return Confidence.HIGH
    elif avg_score >= CONFIDENCE_THRESHOLDS["medium"]:
        return Confidence.MEDIUM
    elif avg_score >= CONFIDENCE_THRESHOLDS["low"]:
        return Confidence.LOW
    else:
        return Confidence.INSUFFICIENT


def clamp_k(k: int) -> int:
    return max(MIN_K, min(int(k), MAX_K))


def extractive_answer(chunks: list[RetrievedChunk], max_chars: int = DEFAULT_EXCERPT_CHARS) -> str:
    """Return the best chunk's text, truncated to ``max_chars`` with '...'."""
    if not chunks:
        return NO_RESULTS_ANSWER
    text = chunks[0].chunk.text.strip()
    if len(text) > max_chars:
        return text[:max_chars] + "..."
    return text


class QueryOrchestrator:
    """Turns a question into a ranked set of chunks and an answer.

    Holds no per-query state; one instance serves any number of callers.
    """

    def __init__(
        self,
        index: VectorIndex,
        embedding_provider: EmbeddingProvider,
        store: DataStore,
        generator: AnswerGenerator | None = None,
        excerpt_chars: int = DEFAULT_EXCERPT_CHARS,
        temperature: float | None = 0.7,
        max_tokens: int | None = 1000,
    ):
        self._index = index
        self._embedding_provider = embedding_provider
        self._store = store
        self._generator = generator
        self._excerpt_chars = excerpt_chars
        self._temperature = temperature
        self._max_tokens = max_tokens

    @property
    def generation_enabled(self) -> bool:
        return self._generator is not None

    def answer(self, question: str, k: int = DEFAULT_K) -> QueryAnswer:
        """Answer a question from the indexed documents.

        Raises:
            ValueError: If the question is empty or not a string.
            EmbeddingError: If the question cannot be embedded.
        """
        if not isinstance(question, str) or not question.strip():
            raise ValueError("question must be a non-empty string")
        search_k = clamp_k(k)
        logger.info("Query received: %r (k=%d)", question, search_k)

        query_embedding = self._embedding_provider.embed_text(question)
        hits = self._index.search(query_embedding, search_k)

        chunks = self.resolve(hits)
        if not chunks:
            return QueryAnswer(question=question, answer=NO_RESULTS_ANSWER)

        answer_text = None
        generated = False
        if self._generator is not None:
            try:
                answer_text = self._generator.generate(
                    question,
                    chunks[:GENERATION_CONTEXT_CHUNKS],
                    temperature=self._temperature,
                    max_tokens=self._max_tokens,
                )
                generated = True
            except GenerationError as e:
                logger.error("Generation failed, falling back to extractive answer: %s", e)

        if answer_text is None:
            answer_text = extractive_answer(chunks, self._excerpt_chars)

        avg_score = sum(c.score for c in chunks) / len(chunks)
        return QueryAnswer(
            question=question,
            answer=answer_text,
            chunks=chunks,
            generated=generated,
            confidence=evaluate_confidence_level(avg_score),
        )

    def resolve(self, hits: list[SearchHit]) -> list[RetrievedChunk]:
        """Resolve hits to chunk records, dropping any that no longer exist."""
        resolved = []
        for hit in hits:
            chunk = self._store.get_chunk_by_external_id(hit.external_id)
            if chunk is None:
                logger.debug("Dropping unresolved hit %s", hit.external_id)
                continue
            document = self._store.get_document(chunk.document_id)
            resolved.append(RetrievedChunk(
                chunk=chunk,
                score=hit.score,
                document=document.describe() if document else None,
            ))
        return resolved
