"""Construction of the store, index and services used by CLI commands."""

import logging
from dataclasses import dataclass

from config.settings import Settings
from docquery.embedding.provider import EmbeddingProvider
from docquery.ingestion.pipeline import DocumentIngestor
from docquery.store.datastore import DataStore
from docquery.vectorstore.faiss_index import VectorIndex
from docquery.vectorstore.snapshot import IndexSnapshot

logger = logging.getLogger(__name__)


@dataclass
class Components:
    settings: Settings
    store: DataStore
    index: VectorIndex
    snapshot: IndexSnapshot


def load_components(settings: Settings) -> Components:
    """Open the record store and restore the index, recovering it from the store if needed."""
    store = DataStore(settings.documents_path, settings.chunks_path)
    snapshot = IndexSnapshot(settings.index_path)
    index = snapshot.load_or_recover(
        settings.docquery_vector_dimension,
        recovery_source=store.iter_embeddings,
    )
    logger.info("Index ready with %d vectors", index.count)
    return Components(settings=settings, store=store, index=index, snapshot=snapshot)


def load_embedding_provider(settings: Settings) -> EmbeddingProvider:
    from docquery.embedding.sentence_transformer import SentenceTransformerEmbeddingProvider

    provider = SentenceTransformerEmbeddingProvider(settings.docquery_embedding_model)
    if provider.dimension != settings.docquery_vector_dimension:
        raise ValueError(
            f"Embedding model {settings.docquery_embedding_model} produces {provider.dimension}-dim "
            f"vectors but DOCQUERY_VECTOR_DIMENSION is {settings.docquery_vector_dimension}"
        )
    return provider


def build_ingestor(components: Components, embedding_provider: EmbeddingProvider) -> DocumentIngestor:
    settings = components.settings
    return DocumentIngestor(
        store=components.store,
        index=components.index,
        embedding_provider=embedding_provider,
        snapshot=components.snapshot,
        chunk_size=settings.docquery_chunk_size,
        chunk_overlap=settings.docquery_chunk_overlap,
        max_chunks=settings.docquery_max_chunks,
    )
