"""Shared configuration loaded from environment / .env file."""

from __future__ import annotations

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application-wide settings, populated from env vars or .env file."""

    # Embedding
    embedding_provider: str = Field(default="openai", description="'openai' or 'huggingface'")
    embedding_model: str = Field(default="text-embedding-3-small", description="Embedding model identifier")
    embedding_model_version: str = Field(
        default="1",
        description=(
            "Version tag recorded with every stored vector. Bump it whenever "
            "the provider changes the model behind the same name."
        ),
    )
    embedding_dimension: int = Field(default=1536, gt=0)
    embedding_timeout: float = Field(default=30.0, gt=0, description="Seconds per embedding call")
    embedding_max_retries: int = Field(default=2, ge=0)
    openai_api_key: str = Field(default="", description="OpenAI API key")
    embedding_base_url: str = Field(
        default="",
        description="Base URL for an OpenAI-compatible embedding API. Leave empty for OpenAI cloud.",
    )

    # Chunking
    chunk_target_words: int = Field(default=500, gt=0)
    chunk_overlap_words: int = Field(default=50, ge=0)
    chunk_min_chars: int = Field(default=100, ge=0)
    chunk_max_list_ratio: float = Field(default=0.7, ge=0.0, le=1.0)

    # Retrieval
    match_count: int = Field(default=5, gt=0)
    match_threshold: float = Field(default=0.3, ge=-1.0, le=1.0)
    citation_threshold: float = Field(default=0.4, ge=-1.0, le=1.0)
    context_preamble: str = (
        "The following reference material from the knowledge base is relevant "
        "to the question. Use it to inform your response, but do not simply "
        "copy it."
    )

    # Ingestion
    ingest_concurrency: int = Field(default=1, ge=1, description="Parallel embedding calls per document")

    # Vector store
    vector_backend: str = Field(default="chroma", description="'chroma' or 'memory'")
    chroma_mode: str = Field(default="http", description="'http', 'persistent' or 'ephemeral'")
    chroma_host: str = "localhost"
    chroma_port: int = 8000
    chroma_path: str = "data/chroma"
    chroma_collection: str = "tenant_chunks"
    document_db_path: str = "data/documents.db"

    # Logging
    log_level: str = "INFO"

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}

    @model_validator(mode="after")
    def _check_consistency(self) -> Settings:
        if self.citation_threshold < self.match_threshold:
            raise ValueError(
                f"citation_threshold ({self.citation_threshold}) must be >= "
                f"match_threshold ({self.match_threshold})"
            )
        if self.chunk_overlap_words >= self.chunk_target_words:
            raise ValueError(
                f"chunk_overlap_words ({self.chunk_overlap_words}) must be < "
                f"chunk_target_words ({self.chunk_target_words})"
            )
        return self


# Singleton — import `settings` wherever needed.
settings = Settings()
