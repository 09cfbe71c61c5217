"""Pinecone implementation of the vector-store abstraction.

Namespaces map one-to-one onto Pinecone namespaces inside a single index.
The SDK is synchronous, so every call runs in a worker thread.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any

from pinecone import Pinecone

from tenant_rag.backoff import RetryPolicy
from tenant_rag.config import settings
from tenant_rag.models import ListPage, VectorRecord
from tenant_rag.retrieval.base import DEFAULT_UPSERT_BATCH_SIZE, VectorStoreBase

logger = logging.getLogger(__name__)


def _field(obj: Any, name: str, default: Any = None) -> Any:
    """Read *name* from an SDK response object or plain dict."""
    if isinstance(obj, dict):
        return obj.get(name, default)
    return getattr(obj, name, default)


class PineconeVectorStore(VectorStoreBase):
    """Pinecone-backed vector store.

    Parameters
    ----------
    index_name:
        Name of the Pinecone index holding every namespace.
    api_key:
        Pinecone API key; ignored when *index* is given.
    index:
        Pre-built index handle (mainly for tests).
    """

    def __init__(
        self,
        index_name: str = settings.pinecone_index,
        *,
        api_key: str = settings.pinecone_api_key,
        index: Any = None,
        retry_policy: RetryPolicy | None = None,
        upsert_batch_size: int = DEFAULT_UPSERT_BATCH_SIZE,
    ) -> None:
        super().__init__(retry_policy=retry_policy, upsert_batch_size=upsert_batch_size)
        self.index_name = index_name
        if index is None:
            index = Pinecone(api_key=api_key).Index(index_name)
        self._index = index

    # -- VectorStoreBase overrides --------------------------------------------

    async def _upsert_batch(self, namespace: str, records: list[VectorRecord]) -> None:
        vectors = [
            {"id": r.id, "values": r.values, "metadata": r.metadata} for r in records
        ]
        await asyncio.to_thread(self._index.upsert, vectors=vectors, namespace=namespace)

    async def _query(
        self, namespace: str, vector: list[float], top_k: int
    ) -> list[dict[str, Any]]:
        response = await asyncio.to_thread(
            self._index.query,
            vector=vector,
            top_k=top_k,
            include_metadata=True,
            namespace=namespace,
        )
        matches = _field(response, "matches") or []
        logger.debug(
            "Pinecone query in %s returned %d matches, scores=%s",
            namespace,
            len(matches),
            [_field(m, "score") for m in matches],
        )
        return [
            {
                "id": _field(m, "id"),
                "score": _field(m, "score"),
                "metadata": _field(m, "metadata") or {},
            }
            for m in matches
        ]

    async def _list_page(
        self, namespace: str, prefix: str, page_size: int, page_token: str | None
    ) -> ListPage:
        kwargs: dict[str, Any] = {"prefix": prefix, "limit": page_size, "namespace": namespace}
        if page_token:
            kwargs["pagination_token"] = page_token
        response = await asyncio.to_thread(self._index.list_paginated, **kwargs)

        ids = [_field(v, "id") for v in _field(response, "vectors") or []]
        pagination = _field(response, "pagination")
        next_token = _field(pagination, "next") if pagination else None
        return ListPage(ids=[i for i in ids if i], next_page_token=next_token or None)

    async def _delete_ids(self, namespace: str, ids: list[str]) -> None:
        await asyncio.to_thread(self._index.delete, ids=ids, namespace=namespace)

    async def _delete_all(self, namespace: str) -> None:
        await asyncio.to_thread(self._index.delete, delete_all=True, namespace=namespace)

    async def _vector_count(self, namespace: str) -> int:
        stats = await asyncio.to_thread(self._index.describe_index_stats)
        namespaces = _field(stats, "namespaces") or {}
        summary = namespaces.get(namespace)
        if summary is None:
            return 0
        return int(_field(summary, "vector_count", 0) or 0)
