"""Embedding providers."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Iterable, Protocol, Sequence

import numpy as np
import openai
from sentence_transformers import SentenceTransformer

from knowbase.errors import EmbeddingError

if TYPE_CHECKING:
    from knowbase.config import AppConfig

DEFAULT_OPENAI_MODEL = "text-embedding-3-large"
DEFAULT_LOCAL_MODEL = "sentence-transformers/all-mpnet-base-v2"
DEFAULT_MODELS = {
    "openai": DEFAULT_OPENAI_MODEL,
    "local": DEFAULT_LOCAL_MODEL,
}

logger = logging.getLogger(__name__)


class EmbeddingClient(Protocol):
    """Batch text-to-vector interface used by the indexer and the searcher.

    ``embed`` returns one row per input, in input order.
    """

    model_name: str

    def embed(self, texts: Sequence[str]) -> np.ndarray: ...

    def embed_query(self, text: str) -> np.ndarray: ...


class OpenAIEmbeddingClient:
    """Embeddings from the OpenAI API, one request per ``embed`` call."""

    def __init__(
        self,
        model_name: str = DEFAULT_OPENAI_MODEL,
        *,
        api_key: str | None = None,
        client: openai.OpenAI | None = None,
    ) -> None:
        self.model_name = model_name
        self._client = client or openai.OpenAI(api_key=api_key)

    def embed(self, texts: Sequence[str] | Iterable[str]) -> np.ndarray:
        inputs = list(texts)
        if not inputs:
            return np.zeros((0, 0), dtype="float32")
        try:
            response = self._client.embeddings.create(model=self.model_name, input=inputs)
        except openai.OpenAIError as exc:
            raise EmbeddingError(f"Embedding request to {self.model_name} failed: {exc}") from exc

        data = sorted(response.data, key=lambda item: item.index)
        if len(data) != len(inputs):
            raise EmbeddingError(
                f"Embedding provider returned {len(data)} vectors for {len(inputs)} inputs"
            )
        return np.asarray([item.embedding for item in data], dtype="float32")

    def embed_query(self, text: str) -> np.ndarray:
        return self.embed([text])[0]


@dataclass(slots=True)
class EmbeddingConfig:
    model_name: str = DEFAULT_LOCAL_MODEL
    batch_size: int = 16
    normalize: bool = True
    device: str | None = None


class EmbeddingModel:
    """Thin wrapper around `SentenceTransformer` for query and document embeddings."""

    def __init__(self, config: EmbeddingConfig | None = None) -> None:
        self.config = config or EmbeddingConfig()
        self._model = SentenceTransformer(self.config.model_name, device=self.config.device)
        self.dimension = int(self._model.get_sentence_embedding_dimension())
        logger.info(
            "Loaded %s (dimension %d, device %s)",
            self.config.model_name,
            self.dimension,
            self.config.device or "auto",
        )

    @property
    def model_name(self) -> str:
        return self.config.model_name

    def embed(self, texts: Sequence[str] | Iterable[str]) -> np.ndarray:
        """Return float32 embeddings for input texts."""
        sentences = list(texts)
        embeddings = self._model.encode(
            sentences,
            batch_size=self.config.batch_size,
            show_progress_bar=False,
            convert_to_numpy=True,
            normalize_embeddings=self.config.normalize,
        )
        return embeddings.astype("float32", copy=False)

    def embed_query(self, text: str) -> np.ndarray:
        """Convenience wrapper for single-query embedding."""
        return self.embed([text])[0]


def create_embedder(config: AppConfig) -> EmbeddingClient:
    """Instantiate the provider named by ``config.embedding_provider``."""
    if config.embedding_provider == "openai":
        return OpenAIEmbeddingClient(config.model_name, api_key=config.openai_api_key)
    if config.embedding_provider == "local":
        return EmbeddingModel(EmbeddingConfig(model_name=config.model_name))
    raise ValueError(f"Unknown embedding provider: {config.embedding_provider}")
