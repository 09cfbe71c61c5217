"""Embedding client: batched text → vector conversion."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from tenant_rag.config import Settings, settings
from tenant_rag.errors import EmbeddingFailure, InvalidInput, is_rate_limited

if TYPE_CHECKING:
    from langchain_core.embeddings import Embeddings

logger = logging.getLogger(__name__)


def build_embeddings(config: Settings = settings) -> Embeddings:
    """Return the configured LangChain embedding model.

    The OpenAI client is created with ``max_retries=0``: rate-limit retries
    are owned by :func:`tenant_rag.backoff.retry_with_backoff`.
    """
    if config.embedding_provider == "openai":
        from langchain_openai import OpenAIEmbeddings

        return OpenAIEmbeddings(
            model=config.embedding_model,
            dimensions=config.embedding_dimensions,
            api_key=config.openai_api_key,
            max_retries=0,
        )
    if config.embedding_provider == "huggingface":
        from langchain_huggingface import HuggingFaceEmbeddings

        return HuggingFaceEmbeddings(model_name=config.embedding_model)
    raise ValueError(f"Unsupported embedding_provider={config.embedding_provider!r}")


class EmbeddingClient:
    """Turns batches of text into fixed-dimension vectors.

    Parameters
    ----------
    embeddings:
        Any LangChain ``Embeddings`` implementation.
    """

    def __init__(self, embeddings: Embeddings) -> None:
        self._embeddings = embeddings

    async def embed(self, texts: list[str]) -> list[list[float]]:
        """Embed the non-blank entries of *texts* in one request.

        Blank strings are dropped before the call, so the result has one
        vector per non-blank input, in input order.  Rate-limit errors are
        re-raised untouched for the caller's backoff helper; anything else
        becomes :class:`EmbeddingFailure`.

        Raises
        ------
        InvalidInput
            If no non-blank text remains.
        """
        valid = [t for t in texts if t and t.strip()]
        if not valid:
            raise InvalidInput("No non-blank text provided for embedding")

        try:
            vectors = await self._embeddings.aembed_documents(valid)
        except Exception as exc:
            if is_rate_limited(exc):
                raise
            raise EmbeddingFailure(f"Failed to generate embeddings: {exc}") from exc

        logger.debug("Embedded %d texts", len(vectors))
        return vectors

    async def embed_query(self, text: str) -> list[float]:
        """Embed a single query string."""
        [vector] = await self.embed([text])
        return vector
