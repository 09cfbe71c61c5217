"""Knowledge service: the entry point request handlers and jobs call.

Client handles (embedding model, vector index) are built once with
:meth:`KnowledgeService.from_settings` and passed down explicitly.
"""

from __future__ import annotations

import logging

from tenant_rag.backoff import RetryPolicy
from tenant_rag.config import Settings, settings
from tenant_rag.errors import EmptyDeleteSet
from tenant_rag.ingestion.embedder import EmbeddingClient, build_embeddings
from tenant_rag.ingestion.pipeline import KnowledgeIngestor
from tenant_rag.models import NamespaceStats, record_prefix
from tenant_rag.repository import StatusRecorder
from tenant_rag.retrieval.base import VectorStoreBase
from tenant_rag.retrieval.retriever import KnowledgeRetriever

logger = logging.getLogger(__name__)


def build_vector_store(config: Settings = settings) -> VectorStoreBase:
    """Instantiate the configured vector-store backend."""
    policy = RetryPolicy(max_attempts=config.retry_max_attempts, base_delay=config.retry_base_delay)
    if config.vector_backend == "pinecone":
        from tenant_rag.retrieval.pinecone_store import PineconeVectorStore

        return PineconeVectorStore(
            config.pinecone_index,
            api_key=config.pinecone_api_key,
            retry_policy=policy,
            upsert_batch_size=config.upsert_batch_size,
        )
    if config.vector_backend == "chroma":
        from tenant_rag.retrieval.chroma_store import ChromaVectorStore

        return ChromaVectorStore(
            config.chroma_collection_prefix,
            host=config.chroma_host,
            port=config.chroma_port,
            retry_policy=policy,
            upsert_batch_size=config.upsert_batch_size,
        )
    raise ValueError(f"Unsupported vector_backend={config.vector_backend!r}")


class KnowledgeService:
    """Ingestion, retrieval and deletion of an agent's knowledge.

    Parameters
    ----------
    store:
        Vector-store backend shared by the write and read paths.
    ingestor:
        Runs ingestion for uploaded files.
    retriever:
        Builds grounding context for live queries.
    list_page_size:
        Page size used when deleting a knowledge item's vectors.
    """

    def __init__(
        self,
        store: VectorStoreBase,
        ingestor: KnowledgeIngestor,
        retriever: KnowledgeRetriever,
        *,
        list_page_size: int = 100,
    ) -> None:
        self.store = store
        self.ingestor = ingestor
        self.retriever = retriever
        self.list_page_size = list_page_size

    @classmethod
    def from_settings(
        cls,
        status: StatusRecorder,
        config: Settings = settings,
        *,
        store: VectorStoreBase | None = None,
        embedder: EmbeddingClient | None = None,
    ) -> KnowledgeService:
        """Wire every component from *config*; *store* and *embedder* may be injected."""
        store = store or build_vector_store(config)
        embedder = embedder or EmbeddingClient(build_embeddings(config))
        ingestor = KnowledgeIngestor(
            store,
            embedder,
            status,
            retry_policy=RetryPolicy(
                max_attempts=config.retry_max_attempts, base_delay=config.retry_base_delay
            ),
            max_chunk_size=config.max_chunk_size,
            min_chunk_size=config.min_chunk_size,
        )
        retriever = KnowledgeRetriever(
            store,
            embedder,
            top_k=config.retrieval_top_k,
            relevance_threshold=config.relevance_threshold,
            max_context_chars=config.context_max_chars,
        )
        return cls(store, ingestor, retriever, list_page_size=config.list_page_size)

    # -- operations -----------------------------------------------------------

    async def ingest(
        self,
        knowledge_item_id: str,
        file_path: str,
        mime_type: str,
        agent_id: str,
        file_name: str,
    ) -> None:
        """Run ingestion for one uploaded file; never raises."""
        await self.ingestor.ingest(knowledge_item_id, file_path, mime_type, agent_id, file_name)

    async def retrieve_context(self, query: str, agent_id: str) -> str:
        """Context string for a response-generation prompt; ``""`` when nothing is relevant."""
        return await self.retriever.retrieve_context(query, agent_id)

    async def delete_knowledge_item_vectors(self, knowledge_item_id: str, agent_id: str) -> bool:
        """Remove every vector of a knowledge item.

        Best effort: failures are logged and reported as ``False`` so that
        deleting the item record can still go ahead.
        """
        try:
            await self.store.delete_by_prefix(
                agent_id, record_prefix(knowledge_item_id), self.list_page_size
            )
        except EmptyDeleteSet:
            pass
        except Exception:
            logger.exception(
                "Vector deletion failed for knowledge item %s in namespace %s",
                knowledge_item_id,
                agent_id,
            )
            return False
        return True

    async def delete_agent_namespace(self, agent_id: str) -> None:
        """Drop every vector belonging to *agent_id* (agent teardown)."""
        await self.store.delete_namespace(agent_id)

    async def namespace_stats(self, agent_id: str) -> NamespaceStats:
        return await self.store.namespace_stats(agent_id)
