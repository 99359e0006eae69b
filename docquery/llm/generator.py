"""Grounded answer generation over retrieved chunks."""

import logging

from langchain_core.language_models.chat_models import BaseChatModel
from langchain_core.messages import HumanMessage, SystemMessage

from docquery.errors import GenerationError
from docquery.models.query import RetrievedChunk

logger = logging.getLogger(__name__)

MAX_CONTEXT_CHUNKS = 5
CONTEXT_SEPARATOR = "\n\n---\n\n"

SYSTEM_PROMPT = (
    "You are a helpful assistant that answers questions using the provided context.\n\n"
    "Instructions:\n"
    "- Answer directly, without introductions like \"Based on the provided context\"\n"
    "- Use only the information in the context to answer\n"
    "- If the context does not contain the answer, say you don't have that information; "
    "do not make up answers\n"
    "- Keep answers concise, focused and well-structured\n"
    "- Use headings, lists and emphasis where they help"
)


def prepare_context(chunks: list[RetrievedChunk], limit: int = MAX_CONTEXT_CHUNKS) -> str:
    """Format the top chunks with their source title and relevance score."""
    if not chunks:
        return "No relevant information found."

    blocks = []
    for chunk in chunks[:limit]:
        title = f"[{chunk.title}]" if chunk.title else "[Unknown Document]"
        blocks.append(f"{title} (Relevance: {chunk.score:.3f}):\n{chunk.chunk.text}")
    return CONTEXT_SEPARATOR.join(blocks)


def _message_text(content) -> str:
    # Some chat models return a list of content blocks instead of a string
    if isinstance(content, str):
        return content
    parts = []
    for block in content:
        if isinstance(block, str):
            parts.append(block)
        elif isinstance(block, dict) and block.get("type") == "text":
            parts.append(block.get("text", ""))
    return "".join(parts)


class AnswerGenerator:
    """Composes answers from a question and retrieved chunks with a chat model."""

    def __init__(self, llm: BaseChatModel):
        self._llm = llm

    def generate(
        self,
        question: str,
        context_chunks: list[RetrievedChunk],
        temperature: float | None = None,
        max_tokens: int | None = None,
    ) -> str:
        """Generate an answer grounded in ``context_chunks``.

        Raises:
            GenerationError: If the model call fails or returns no text.
        """
        messages = [
            SystemMessage(content=SYSTEM_PROMPT),
            HumanMessage(content=(
                f"Context:\n{prepare_context(context_chunks)}\n\n"
                f"Question: {question}\n\n"
                "Answer:"
            )),
        ]

        options = {}
        if temperature is not None:
            options["temperature"] = temperature
        if max_tokens is not None:
            options["max_tokens"] = max_tokens
        llm = self._llm.bind(**options) if options else self._llm

        try:
            response = llm.invoke(messages)
        except Exception as e:
            raise GenerationError(f"Answer generation failed: {e}") from e

        text = _message_text(response.content).strip()
        if not text:
            raise GenerationError("Model returned an empty answer")
        return text
