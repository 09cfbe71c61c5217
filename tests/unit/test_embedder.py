"""Unit tests for the embedding client."""

from __future__ import annotations

import pytest
from conftest import KeywordEmbeddings, RateLimitError

from tenant_rag.config import Settings
from tenant_rag.errors import EmbeddingFailure, InvalidInput
from tenant_rag.ingestion.embedder import EmbeddingClient, build_embeddings


class TestEmbeddingClient:
    async def test_blank_only_input_is_rejected(
        self, embedder: EmbeddingClient, fake_embeddings: KeywordEmbeddings
    ) -> None:
        with pytest.raises(InvalidInput):
            await embedder.embed([""])
        with pytest.raises(InvalidInput):
            await embedder.embed(["  ", "\n"])
        assert fake_embeddings.calls == []

    async def test_blank_entries_are_filtered_before_one_call(
        self, embedder: EmbeddingClient, fake_embeddings: KeywordEmbeddings
    ) -> None:
        vectors = await embedder.embed(["refund policy", "   ", "shipping times"])
        assert fake_embeddings.calls == [["refund policy", "shipping times"]]
        assert len(vectors) == 2
        assert vectors[0][0] == 1.0
        assert vectors[1][1] == 1.0

    async def test_vectors_have_fixed_dimension(self, embedder: EmbeddingClient) -> None:
        vectors = await embedder.embed(["a", "b", "c"])
        assert {len(v) for v in vectors} == {5}

    async def test_service_errors_become_embedding_failure(
        self, embedder: EmbeddingClient, fake_embeddings: KeywordEmbeddings
    ) -> None:
        fake_embeddings.errors.append(ConnectionError("connection reset"))
        with pytest.raises(EmbeddingFailure, match="connection reset"):
            await embedder.embed(["refund"])

    async def test_rate_limit_errors_pass_through(
        self, embedder: EmbeddingClient, fake_embeddings: KeywordEmbeddings
    ) -> None:
        fake_embeddings.errors.append(RateLimitError("429"))
        with pytest.raises(RateLimitError):
            await embedder.embed(["refund"])

    async def test_embed_query_returns_single_vector(
        self, embedder: EmbeddingClient, fake_embeddings: KeywordEmbeddings
    ) -> None:
        vector = await embedder.embed_query("warranty")
        assert vector == [0.0, 0.0, 1.0, 0.0, 0.01]
        assert fake_embeddings.calls == [["warranty"]]


class TestBuildEmbeddings:
    def test_openai_provider(self) -> None:
        pytest.importorskip("langchain_openai")
        from langchain_openai import OpenAIEmbeddings

        config = Settings(openai_api_key="sk-test", embedding_provider="openai")
        embeddings = build_embeddings(config)
        assert isinstance(embeddings, OpenAIEmbeddings)
        assert embeddings.model == "text-embedding-3-small"
        assert embeddings.dimensions == 1536
        assert embeddings.max_retries == 0

    def test_unknown_provider_raises(self) -> None:
        with pytest.raises(ValueError, match="Unsupported embedding_provider"):
            build_embeddings(Settings(embedding_provider="word2vec"))
