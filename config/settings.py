"""Application configuration management."""

from pathlib import Path

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """DocQuery application settings loaded from environment variables."""

    # Provider keys
    anthropic_api_key: str = ""
    google_api_key: str = ""

    # Embedding
    docquery_embedding_model: str = "all-MiniLM-L6-v2"
    docquery_vector_dimension: int = 384

    # LLM ("none" disables generation; answers fall back to excerpts)
    docquery_llm_provider: str = "anthropic"
    docquery_llm_model: str = "claude-sonnet-4-5-20250929"
    docquery_llm_temperature: float = 0.7
    docquery_llm_max_tokens: int = 1000

    # Storage
    docquery_data_path: str = "./data"

    # Ingestion (characters, not tokens)
    docquery_chunk_size: int = 1000
    docquery_chunk_overlap: int = 200
    docquery_max_chunks: int = 1000

    # Querying
    docquery_answer_excerpt_chars: int = 500

    @property
    def data_path(self) -> Path:
        return Path(self.docquery_data_path)

    @property
    def index_path(self) -> Path:
        return self.data_path / "index.json"

    @property
    def documents_path(self) -> Path:
        return self.data_path / "documents.json"

    @property
    def chunks_path(self) -> Path:
        return self.data_path / "chunks.json"

    @property
    def generation_configured(self) -> bool:
        provider = self.docquery_llm_provider.lower()
        if provider == "anthropic":
            return bool(self.anthropic_api_key)
        if provider == "google":
            return bool(self.google_api_key)
        return False

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}


def get_settings() -> Settings:
    """Get application settings."""
    return Settings()
