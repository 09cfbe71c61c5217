"""Shared pytest configuration, fakes and fixtures."""

from __future__ import annotations

import bisect
import math
from typing import Any

import pytest
from langchain_core.embeddings import Embeddings

from tenant_rag.backoff import RetryPolicy
from tenant_rag.ingestion.embedder import EmbeddingClient
from tenant_rag.models import ListPage, ProcessingStatus, VectorRecord
from tenant_rag.retrieval.base import VectorStoreBase


def pytest_configure(config: pytest.Config) -> None:
    """Register custom markers."""
    config.addinivalue_line("markers", "integration: marks tests requiring external services")


# ── Fakes ───────────────────────────────────────────────────────────────


class RateLimitError(Exception):
    """Stand-in for an SDK's HTTP 429 error."""

    status_code = 429


class RecordingSleep:
    """Async sleep replacement that records requested delays."""

    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)


def _cosine(a: list[float], b: list[float]) -> float:
    dot = sum(x * y for x, y in zip(a, b))
    norm = math.sqrt(sum(x * x for x in a)) * math.sqrt(sum(y * y for y in b))
    return dot / norm if norm else 0.0


class InMemoryVectorStore(VectorStoreBase):
    """Namespace-scoped in-memory store that records every primitive call.

    ``failures`` maps a primitive name (``"upsert"``, ``"query"``, ``"list"``,
    ``"delete"``, ``"delete_all"``, ``"count"``) to a list of exceptions
    raised, one per call, before calls start succeeding; a ``None`` entry
    lets that call through.
    """

    def __init__(self, **kwargs: Any) -> None:
        kwargs.setdefault("retry_policy", RetryPolicy(sleep=RecordingSleep()))
        super().__init__(**kwargs)
        self.namespaces: dict[str, dict[str, VectorRecord]] = {}
        self.canned_matches: dict[str, list[dict[str, Any]]] = {}
        self.failures: dict[str, list[Exception | None]] = {}
        self.upsert_calls: list[tuple[str, list[str]]] = []
        self.query_calls: list[tuple[str, int]] = []
        self.list_calls: list[tuple[str, str, str | None]] = []
        self.delete_calls: list[tuple[str, list[str]]] = []

    def ids(self, namespace: str) -> set[str]:
        return set(self.namespaces.get(namespace, {}))

    def _maybe_fail(self, op: str) -> None:
        pending = self.failures.get(op)
        if pending:
            exc = pending.pop(0)
            if exc is not None:
                raise exc

    async def _upsert_batch(self, namespace: str, records: list[VectorRecord]) -> None:
        self._maybe_fail("upsert")
        self.upsert_calls.append((namespace, [r.id for r in records]))
        bucket = self.namespaces.setdefault(namespace, {})
        for record in records:
            bucket[record.id] = record

    async def _query(self, namespace: str, vector: list[float], top_k: int) -> list[dict[str, Any]]:
        self._maybe_fail("query")
        self.query_calls.append((namespace, top_k))
        if namespace in self.canned_matches:
            return self.canned_matches[namespace][:top_k]
        scored = [
            {"id": r.id, "score": _cosine(vector, r.values), "metadata": r.metadata}
            for r in self.namespaces.get(namespace, {}).values()
        ]
        scored.sort(key=lambda m: m["score"], reverse=True)
        return scored[:top_k]

    async def _list_page(
        self, namespace: str, prefix: str, page_size: int, page_token: str | None
    ) -> ListPage:
        self._maybe_fail("list")
        self.list_calls.append((namespace, prefix, page_token))
        matching = sorted(i for i in self.namespaces.get(namespace, {}) if i.startswith(prefix))
        start = bisect.bisect_right(matching, page_token) if page_token else 0
        page = matching[start : start + page_size]
        more = start + page_size < len(matching)
        return ListPage(ids=page, next_page_token=page[-1] if page and more else None)

    async def _delete_ids(self, namespace: str, ids: list[str]) -> None:
        self._maybe_fail("delete")
        self.delete_calls.append((namespace, list(ids)))
        bucket = self.namespaces.get(namespace, {})
        for record_id in ids:
            bucket.pop(record_id, None)

    async def _delete_all(self, namespace: str) -> None:
        self._maybe_fail("delete_all")
        self.namespaces.pop(namespace, None)

    async def _vector_count(self, namespace: str) -> int:
        self._maybe_fail("count")
        return len(self.namespaces.get(namespace, {}))


class KeywordEmbeddings(Embeddings):
    """Deterministic embeddings: one dimension per vocabulary word, plus a bias.

    ``errors`` are raised, one per call, before calls start succeeding.
    """

    def __init__(self, vocabulary: list[str] | None = None) -> None:
        self.vocabulary = vocabulary or ["refund", "shipping", "warranty", "password"]
        self.calls: list[list[str]] = []
        self.errors: list[Exception] = []

    def _vector(self, text: str) -> list[float]:
        lowered = text.lower()
        return [float(lowered.count(w)) for w in self.vocabulary] + [0.01]

    def embed_documents(self, texts: list[str]) -> list[list[float]]:
        self.calls.append(list(texts))
        if self.errors:
            raise self.errors.pop(0)
        return [self._vector(t) for t in texts]

    def embed_query(self, text: str) -> list[float]:
        return self.embed_documents([text])[0]

    async def aembed_documents(self, texts: list[str]) -> list[list[float]]:
        return self.embed_documents(texts)


class RecordingStatus:
    """Status persistence fake that keeps every transition in order."""

    def __init__(self) -> None:
        self.transitions: list[tuple[str, ProcessingStatus, dict[str, Any]]] = []
        self.errors: list[Exception] = []

    async def set_status(
        self,
        knowledge_item_id: str,
        status: ProcessingStatus,
        *,
        chunk_count: int | None = None,
        error_message: str | None = None,
    ) -> None:
        if self.errors:
            raise self.errors.pop(0)
        extra = {}
        if chunk_count is not None:
            extra["chunk_count"] = chunk_count
        if error_message is not None:
            extra["error_message"] = error_message
        self.transitions.append((knowledge_item_id, status, extra))

    def statuses(self) -> list[ProcessingStatus]:
        return [s for _, s, _ in self.transitions]


def make_records(item_id: str, count: int, dim: int = 3) -> list[VectorRecord]:
    """Build *count* records for *item_id* with trivial embeddings."""
    return [
        VectorRecord.from_chunk(item_id, i, f"chunk {i} of {item_id}", [1.0] + [0.0] * (dim - 1), "doc.txt")
        for i in range(count)
    ]


# ── Fixtures ────────────────────────────────────────────────────────────


@pytest.fixture()
def sleep() -> RecordingSleep:
    return RecordingSleep()


@pytest.fixture()
def retry_policy(sleep: RecordingSleep) -> RetryPolicy:
    return RetryPolicy(max_attempts=5, base_delay=1.0, sleep=sleep)


@pytest.fixture()
def store(retry_policy: RetryPolicy) -> InMemoryVectorStore:
    return InMemoryVectorStore(retry_policy=retry_policy)


@pytest.fixture()
def fake_embeddings() -> KeywordEmbeddings:
    return KeywordEmbeddings()


@pytest.fixture()
def embedder(fake_embeddings: KeywordEmbeddings) -> EmbeddingClient:
    return EmbeddingClient(fake_embeddings)


@pytest.fixture()
def status() -> RecordingStatus:
    return RecordingStatus()
