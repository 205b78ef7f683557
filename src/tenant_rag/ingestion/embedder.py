"""Embedding client pinned to a single model identity."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from tenant_rag.config import Settings, settings
from tenant_rag.errors import EmbeddingServiceError
from tenant_rag.retrieval.models import EmbeddingModelInfo

if TYPE_CHECKING:
    from langchain_core.embeddings import Embeddings

logger = logging.getLogger(__name__)


class EmbeddingClient:
    """Turn text into fixed-dimension vectors with one pinned model.

    Parameters
    ----------
    embeddings:
        Any LangChain ``Embeddings`` implementation.
    model:
        Identity of the model behind *embeddings*. Every returned vector
        is checked against ``model.dimension``.
    """

    def __init__(self, embeddings: Embeddings, model: EmbeddingModelInfo) -> None:
        self._embeddings = embeddings
        self.model = model

    def embed(self, text: str) -> list[float]:
        """Embed a chunk for storage."""
        return self._call(text, query=False)

    def embed_query(self, text: str) -> list[float]:
        """Embed a user query for retrieval."""
        return self._call(text, query=True)

    def _call(self, text: str, *, query: bool) -> list[float]:
        if not text or not text.strip():
            raise EmbeddingServiceError("Cannot embed empty text")
        try:
            if query:
                vector = self._embeddings.embed_query(text)
            else:
                vector = self._embeddings.embed_documents([text])[0]
        except Exception as exc:
            raise EmbeddingServiceError(
                f"Embedding failed for model {self.model.key!r}: {exc}"
            ) from exc

        if len(vector) != self.model.dimension:
            raise EmbeddingServiceError(
                f"Model {self.model.key!r} returned a {len(vector)}-dim vector, "
                f"expected {self.model.dimension}"
            )
        return [float(v) for v in vector]


def model_info_from_settings(cfg: Settings = settings) -> EmbeddingModelInfo:
    return EmbeddingModelInfo(
        name=cfg.embedding_model,
        version=cfg.embedding_model_version,
        dimension=cfg.embedding_dimension,
    )


def get_embedding_function(cfg: Settings = settings) -> Embeddings:
    """Return the configured LangChain embedding function.

    ``openai`` talks to the OpenAI embeddings API (or any compatible
    endpoint set via ``embedding_base_url``); ``huggingface`` runs a
    sentence-transformer locally.
    """
    if cfg.embedding_provider == "openai":
        from langchain_openai import OpenAIEmbeddings

        kwargs: dict = {
            "model": cfg.embedding_model,
            "request_timeout": cfg.embedding_timeout,
            "max_retries": cfg.embedding_max_retries,
        }
        if cfg.openai_api_key:
            kwargs["api_key"] = cfg.openai_api_key
        if cfg.embedding_base_url:
            logger.info("Using embedding endpoint: %s", cfg.embedding_base_url)
            kwargs["base_url"] = cfg.embedding_base_url
        return OpenAIEmbeddings(**kwargs)

    if cfg.embedding_provider == "huggingface":
        from langchain_huggingface import HuggingFaceEmbeddings

        return HuggingFaceEmbeddings(
            model_name=cfg.embedding_model,
            encode_kwargs={"normalize_embeddings": True},
        )

    raise ValueError(
        f"Unsupported embedding_provider={cfg.embedding_provider!r}. "
        "Choose from: openai, huggingface."
    )


def get_embedding_client(cfg: Settings = settings) -> EmbeddingClient:
    """Build an :class:`EmbeddingClient` from configuration."""
    return EmbeddingClient(get_embedding_function(cfg), model_info_from_settings(cfg))
