"""Knowledge retriever: relevance-filtered search and context assembly.

This module is the read path used while answering a chat message: embed
the query, search the agent's namespace, keep results above the relevance
threshold, and render them into a bounded context string.

Usage::

    retriever = KnowledgeRetriever(store, embedder)
    context = await retriever.retrieve_context("How do refunds work?", agent_id)
    if not context:
        ...  # answer from general instructions only
"""

from __future__ import annotations

import logging

from tenant_rag.errors import InvalidInput
from tenant_rag.ingestion.embedder import EmbeddingClient
from tenant_rag.models import QueryResult
from tenant_rag.retrieval.base import VectorStoreBase

logger = logging.getLogger(__name__)

CONTEXT_SEPARATOR = "\n\n"
TRUNCATION_MARKER = "..."


def build_context(results: list[QueryResult], max_chars: int = 3000) -> str:
    """Join result texts with blank lines, truncated to *max_chars*.

    An empty result list yields ``""``, meaning "no grounding available".
    """
    if not results:
        return ""
    context = CONTEXT_SEPARATOR.join(r.text for r in results)
    if len(context) > max_chars:
        return context[:max_chars] + TRUNCATION_MARKER
    return context


class KnowledgeRetriever:
    """Retrieves grounding context from one agent's namespace.

    Parameters
    ----------
    store:
        A concrete vector-store backend.
    embedder:
        Client used to embed the query.
    top_k:
        Default number of nearest neighbours requested from the store.
    relevance_threshold:
        Exclusive minimum score; a result scoring exactly at it is dropped.
    max_context_chars:
        Character budget for :meth:`retrieve_context`.
    """

    def __init__(
        self,
        store: VectorStoreBase,
        embedder: EmbeddingClient,
        *,
        top_k: int = 3,
        relevance_threshold: float = 0.3,
        max_context_chars: int = 3000,
    ) -> None:
        self._store = store
        self._embedder = embedder
        self.top_k = top_k
        self.relevance_threshold = relevance_threshold
        self.max_context_chars = max_context_chars

    # -- public API -----------------------------------------------------------

    async def retrieve(
        self,
        query: str,
        agent_id: str,
        *,
        top_k: int | None = None,
        relevance_threshold: float | None = None,
    ) -> list[QueryResult]:
        """Return relevant results for *query* in store order.

        Embedding and store failures degrade to an empty list.

        Raises
        ------
        InvalidInput
            If *query* is blank.
        """
        if not query or not query.strip():
            raise InvalidInput("Query must not be blank")
        top_k = top_k or self.top_k
        threshold = self.relevance_threshold if relevance_threshold is None else relevance_threshold

        try:
            vector = await self._embedder.embed_query(query)
            matches = await self._store.query(agent_id, vector, top_k)
        except Exception:
            logger.exception("Knowledge query failed for agent %s", agent_id)
            return []

        results = [m for m in matches if m.score > threshold]
        logger.info(
            "Agent %s: %d of %d matches scored above %.2f",
            agent_id,
            len(results),
            len(matches),
            threshold,
        )
        return results

    async def retrieve_context(self, query: str, agent_id: str) -> str:
        """Return the context string for *query*, or ``""`` when nothing relevant exists."""
        try:
            results = await self.retrieve(query, agent_id)
        except InvalidInput:
            logger.info("Blank query for agent %s; no context", agent_id)
            return ""
        if not results:
            logger.info("No relevant knowledge found for agent %s", agent_id)
        return build_context(results, self.max_context_chars)
