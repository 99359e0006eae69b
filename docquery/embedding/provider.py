"""Abstract embedding provider interface."""

from abc import ABC, abstractmethod

from docquery.errors import EmbeddingError


class EmbeddingProvider(ABC):
    """Interface for text embedding generation.

    Implementations must return unit-length vectors: the vector index ranks
    by raw inner product and relies on this to rank by cosine similarity.
    """

    @abstractmethod
    def embed(self, texts: list[str]) -> list[list[float]]:
        """Generate embeddings for a batch of text strings.

        Args:
            texts: List of text strings to embed.

        Returns:
            One vector per input text, each of length ``dimension``.

        Raises:
            EmbeddingError: If texts is empty or the model fails.
        """
        ...

    def embed_text(self, text: str) -> list[float]:
        """Generate the embedding for a single text (e.g. a query)."""
        if not text or not text.strip():
            raise EmbeddingError("text must not be empty")
        return self.embed([text])[0]

    @property
    @abstractmethod
    def dimension(self) -> int:
        """Return the embedding dimension (e.g., 384)."""
        ...
