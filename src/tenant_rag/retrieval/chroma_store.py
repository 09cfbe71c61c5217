"""Chroma implementation of the vector-store abstraction."""

from __future__ import annotations

import asyncio
import bisect
import logging
from typing import Any

import chromadb
from chromadb.errors import NotFoundError

from tenant_rag.backoff import RetryPolicy
from tenant_rag.config import settings
from tenant_rag.models import ListPage, VectorRecord
from tenant_rag.retrieval.base import DEFAULT_UPSERT_BATCH_SIZE, VectorStoreBase

logger = logging.getLogger(__name__)


def _item_filter(prefix: str) -> dict[str, str] | None:
    """Metadata filter equivalent to *prefix* when it is a knowledge-item prefix."""
    item_id, sep, rest = prefix.partition(":")
    if sep and item_id and not rest:
        return {"knowledge_base_id": item_id}
    return None


class ChromaVectorStore(VectorStoreBase):
    """Chroma-backed vector store with one collection per namespace.

    Only writes create a collection; reads and deletes against a namespace
    without one behave as if it were empty.

    Chroma has no id-prefix listing, so :meth:`_list_page` fetches the
    matching ids (narrowed by ``knowledge_base_id`` metadata for item
    prefixes), sorts them and pages with the last returned id as the token.
    The token stays valid while earlier pages are being deleted.

    Parameters
    ----------
    collection_prefix:
        Prepended to the namespace to form the collection name.
    host:
        Chroma server hostname.
    port:
        Chroma server port.
    client:
        Pre-built Chroma client (e.g. ``chromadb.EphemeralClient()`` in tests).
    """

    def __init__(
        self,
        collection_prefix: str = settings.chroma_collection_prefix,
        *,
        host: str = settings.chroma_host,
        port: int = settings.chroma_port,
        client: Any = None,
        retry_policy: RetryPolicy | None = None,
        upsert_batch_size: int = DEFAULT_UPSERT_BATCH_SIZE,
    ) -> None:
        super().__init__(retry_policy=retry_policy, upsert_batch_size=upsert_batch_size)
        self.collection_prefix = collection_prefix
        self._client = client if client is not None else chromadb.HttpClient(host=host, port=port)

    def collection_name(self, namespace: str) -> str:
        return f"{self.collection_prefix}{namespace}"

    def _writable_collection(self, namespace: str):  # noqa: ANN202
        return self._client.get_or_create_collection(
            self.collection_name(namespace),
            metadata={"hnsw:space": "cosine"},
            embedding_function=None,
        )

    def _existing_collection(self, namespace: str):  # noqa: ANN202
        """Return the namespace's collection, or ``None`` if it was never written."""
        try:
            return self._client.get_collection(self.collection_name(namespace), embedding_function=None)
        except (NotFoundError, ValueError):
            return None

    # -- VectorStoreBase overrides --------------------------------------------

    async def _upsert_batch(self, namespace: str, records: list[VectorRecord]) -> None:
        def _run() -> None:
            self._writable_collection(namespace).upsert(
                ids=[r.id for r in records],
                embeddings=[r.values for r in records],
                documents=[r.metadata.get("content", "") for r in records],
                metadatas=[r.metadata for r in records],
            )

        await asyncio.to_thread(_run)

    async def _query(
        self, namespace: str, vector: list[float], top_k: int
    ) -> list[dict[str, Any]]:
        def _run() -> dict[str, Any]:
            collection = self._existing_collection(namespace)
            if collection is None:
                return {}
            count = collection.count()
            if count == 0:
                return {}
            return collection.query(
                query_embeddings=[vector],
                n_results=min(top_k, count),
                include=["metadatas", "distances"],
            )

        results = await asyncio.to_thread(_run)
        ids = (results.get("ids") or [[]])[0]
        metas = (results.get("metadatas") or [[]])[0]
        distances = (results.get("distances") or [[]])[0]

        hits: list[dict[str, Any]] = []
        for doc_id, meta, dist in zip(ids, metas, distances):
            # Cosine space: distance = 1 - cosine similarity.
            hits.append({"id": doc_id, "score": 1.0 - dist, "metadata": meta or {}})
        return hits

    async def _list_page(
        self, namespace: str, prefix: str, page_size: int, page_token: str | None
    ) -> ListPage:
        def _run() -> list[str]:
            collection = self._existing_collection(namespace)
            if collection is None:
                return []
            where = _item_filter(prefix)
            if where is None:
                return collection.get(include=[])["ids"]
            return collection.get(where=where, include=[])["ids"]

        matching = sorted(i for i in await asyncio.to_thread(_run) if i.startswith(prefix))
        start = bisect.bisect_right(matching, page_token) if page_token else 0
        page = matching[start : start + page_size]
        has_more = start + page_size < len(matching)
        return ListPage(ids=page, next_page_token=page[-1] if page and has_more else None)

    async def _delete_ids(self, namespace: str, ids: list[str]) -> None:
        def _run() -> None:
            collection = self._existing_collection(namespace)
            if collection is not None:
                collection.delete(ids=ids)

        await asyncio.to_thread(_run)

    async def _delete_all(self, namespace: str) -> None:
        try:
            await asyncio.to_thread(self._client.delete_collection, self.collection_name(namespace))
        except (NotFoundError, ValueError):
            logger.info("Namespace %s has no collection; nothing to delete", namespace)

    async def _vector_count(self, namespace: str) -> int:
        def _run() -> int:
            collection = self._existing_collection(namespace)
            return 0 if collection is None else collection.count()

        return await asyncio.to_thread(_run)
