"""Sentence Transformer embedding provider implementation."""

import logging
import os

from sentence_transformers import SentenceTransformer

from docquery.embedding.provider import EmbeddingProvider
from docquery.errors import EmbeddingError

logger = logging.getLogger(__name__)

DEFAULT_EMBEDDING_MODEL = "all-MiniLM-L6-v2"


class SentenceTransformerEmbeddingProvider(EmbeddingProvider):
    """Embedding provider wrapping sentence-transformers models.

    Default model: all-MiniLM-L6-v2 (384 dimensions, ~80MB). Output vectors
    are L2-normalized.
    """

    def __init__(self, model_name: str = DEFAULT_EMBEDDING_MODEL):
        old_verbosity = os.environ.get("TRANSFORMERS_VERBOSITY")
        os.environ["TRANSFORMERS_VERBOSITY"] = "error"
        try:
            try:
                self._model = SentenceTransformer(model_name, local_files_only=True)
            except OSError:
                logger.info("Model %s not cached locally, downloading", model_name)
                self._model = SentenceTransformer(model_name)
        except Exception as e:
            raise EmbeddingError(f"Failed to load embedding model {model_name}: {e}") from e
        finally:
            if old_verbosity is None:
                os.environ.pop("TRANSFORMERS_VERBOSITY", None)
            else:
                os.environ["TRANSFORMERS_VERBOSITY"] = old_verbosity
        self._model_name = model_name
        self._dimension = self._model.get_sentence_embedding_dimension()

    @property
    def model_name(self) -> str:
        return self._model_name

    def embed(self, texts: list[str]) -> list[list[float]]:
        if not texts:
            raise EmbeddingError("texts must not be empty")
        try:
            embeddings = self._model.encode(
                texts,
                show_progress_bar=False,
                normalize_embeddings=True,
            )
        except Exception as e:
            raise EmbeddingError(f"Failed to generate embeddings: {e}") from e

        vectors = embeddings.tolist()
        for vector in vectors:
            if len(vector) != self._dimension:
                raise EmbeddingError(
                    f"Expected embedding of dimension {self._dimension}, got {len(vector)}"
                )
        return vectors

    @property
    def dimension(self) -> int:
        return self._dimension
