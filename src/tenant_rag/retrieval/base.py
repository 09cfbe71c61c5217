"""Abstract base class for vector-store backends.

Every operation is scoped to exactly one *namespace* (the owning agent id),
which is the tenant-isolation boundary.  Batching, rate-limit backoff,
error wrapping and the prefix-delete loop live here; adding a backend
(Pinecone, Chroma, …) only requires implementing the small async
primitives marked abstract below.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Any

from tenant_rag.backoff import RetryPolicy, retry_with_backoff
from tenant_rag.errors import EmptyDeleteSet, KnowledgeError, VectorStoreFailure
from tenant_rag.models import ListPage, NamespaceStats, QueryResult, VectorRecord

logger = logging.getLogger(__name__)

DEFAULT_UPSERT_BATCH_SIZE = 200
DEFAULT_LIST_PAGE_SIZE = 100


class VectorStoreBase(ABC):
    """Backend-agnostic, namespace-scoped vector-store interface.

    Parameters
    ----------
    retry_policy:
        Backoff applied to upserts and deletes.
    upsert_batch_size:
        Maximum number of records per upsert request.
    """

    def __init__(
        self,
        *,
        retry_policy: RetryPolicy | None = None,
        upsert_batch_size: int = DEFAULT_UPSERT_BATCH_SIZE,
    ) -> None:
        self.retry_policy = retry_policy or RetryPolicy()
        self.upsert_batch_size = upsert_batch_size

    # -- required overrides ---------------------------------------------------

    @abstractmethod
    async def _upsert_batch(self, namespace: str, records: list[VectorRecord]) -> None:
        """Write one batch of records, overwriting existing ids."""
        ...

    @abstractmethod
    async def _query(
        self, namespace: str, vector: list[float], top_k: int
    ) -> list[dict[str, Any]]:
        """Return raw matches, best first.

        Each match dict **must** contain ``"id"``, ``"score"`` (higher = more
        similar) and ``"metadata"``.
        """
        ...

    @abstractmethod
    async def _list_page(
        self, namespace: str, prefix: str, page_size: int, page_token: str | None
    ) -> ListPage:
        """Return one page of ids starting with *prefix*."""
        ...

    @abstractmethod
    async def _delete_ids(self, namespace: str, ids: list[str]) -> None:
        ...

    @abstractmethod
    async def _delete_all(self, namespace: str) -> None:
        ...

    @abstractmethod
    async def _vector_count(self, namespace: str) -> int:
        ...

    # -- public API -----------------------------------------------------------

    async def upsert(self, namespace: str, records: list[VectorRecord]) -> int:
        """Write *records* in sequential batches; return the number of batches.

        Batches are independent: if batch *k* fails, batches before it stay
        written.  Record ids are deterministic, so retrying the whole call
        overwrites rather than duplicates.
        """
        size = self.upsert_batch_size
        total = (len(records) + size - 1) // size
        logger.info(
            "Storing %d records in %d batches of %d in namespace %s",
            len(records),
            total,
            size,
            namespace,
        )
        for number, start in enumerate(range(0, len(records), size), 1):
            batch = records[start : start + size]
            await self._guarded(
                lambda batch=batch: self._upsert_batch(namespace, batch),
                label=f"upsert batch {number}/{total}",
            )
            logger.info("Batch %d/%d completed", number, total)
        return total

    async def query(self, namespace: str, vector: list[float], top_k: int) -> list[QueryResult]:
        """Return up to *top_k* nearest records, best first, unfiltered."""
        try:
            matches = await self._query(namespace, vector, top_k)
        except KnowledgeError:
            raise
        except Exception as exc:
            raise VectorStoreFailure(f"Query failed in namespace {namespace}: {exc}") from exc

        results: list[QueryResult] = []
        for match in matches:
            meta = match.get("metadata") or {}
            results.append(
                QueryResult(
                    text=meta.get("content") or "",
                    score=match.get("score") or 0.0,
                    source=meta.get("source") or "unknown",
                )
            )
        return results

    async def list_by_prefix(
        self,
        namespace: str,
        prefix: str,
        page_size: int = DEFAULT_LIST_PAGE_SIZE,
        page_token: str | None = None,
    ) -> ListPage:
        """List ids starting with *prefix*; a ``None`` next token marks the last page."""
        try:
            return await self._list_page(namespace, prefix, page_size, page_token)
        except KnowledgeError:
            raise
        except Exception as exc:
            raise VectorStoreFailure(
                f"Listing prefix {prefix!r} failed in namespace {namespace}: {exc}"
            ) from exc

    async def delete_by_ids(self, namespace: str, ids: list[str]) -> None:
        """Delete *ids*.

        Raises
        ------
        EmptyDeleteSet
            If *ids* is empty.  Callers treat this as "nothing to delete".
        """
        if not ids:
            raise EmptyDeleteSet("No ids provided for delete request")
        await self._guarded(
            lambda: self._delete_ids(namespace, ids),
            label=f"delete of {len(ids)} ids",
        )

    async def delete_by_prefix(
        self,
        namespace: str,
        prefix: str,
        page_size: int = DEFAULT_LIST_PAGE_SIZE,
    ) -> int:
        """Delete every record whose id starts with *prefix*; return the count."""
        deleted = 0
        page_token: str | None = None
        while True:
            page = await self.list_by_prefix(namespace, prefix, page_size, page_token)
            if not page.ids:
                break
            logger.info("Deleting %d records with prefix %s", len(page.ids), prefix)
            try:
                await self.delete_by_ids(namespace, page.ids)
            except EmptyDeleteSet:
                logger.warning("Skipping deletion for prefix %s: no ids", prefix)
                break
            deleted += len(page.ids)
            if not page.next_page_token:
                break
            page_token = page.next_page_token

        logger.info("Deleted %d records with prefix %s from namespace %s", deleted, prefix, namespace)
        return deleted

    async def delete_namespace(self, namespace: str) -> None:
        """Irreversibly remove every record in *namespace*."""
        await self._guarded(lambda: self._delete_all(namespace), label=f"delete namespace {namespace}")
        logger.info("Deleted entire namespace %s", namespace)

    async def namespace_stats(self, namespace: str) -> NamespaceStats:
        """Best-effort record count; any failure reports zero."""
        try:
            return NamespaceStats(vector_count=await self._vector_count(namespace))
        except Exception:
            logger.warning("Could not read stats for namespace %s", namespace, exc_info=True)
            return NamespaceStats(vector_count=0)

    # -- internals ------------------------------------------------------------

    async def _guarded(self, operation, *, label: str) -> None:  # noqa: ANN001
        """Run *operation* under backoff, wrapping foreign errors."""
        try:
            await retry_with_backoff(operation, self.retry_policy, label=label)
        except KnowledgeError:
            raise
        except Exception as exc:
            raise VectorStoreFailure(f"{label} failed: {exc}") from exc
