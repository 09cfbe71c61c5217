"""
Retrieval: namespaced vector storage, relevance filtering and context assembly.

The vector store sits behind :class:`VectorStoreBase` so that ingestion and
retrieval never need to know which database backs a namespace.

Public surface
--------------
- :class:`KnowledgeRetriever`: query → relevance-filtered results / context.
- :func:`build_context`: render results into a bounded context string.
- :class:`VectorStoreBase`: abstract backend.
- :class:`PineconeVectorStore`, :class:`ChromaVectorStore`: concrete backends.
"""

from tenant_rag.retrieval.base import VectorStoreBase
from tenant_rag.retrieval.retriever import KnowledgeRetriever, build_context

__all__ = [
    "ChromaVectorStore",
    "KnowledgeRetriever",
    "PineconeVectorStore",
    "VectorStoreBase",
    "build_context",
]


def __getattr__(name: str):  # noqa: ANN001
    """Lazy-import backends so only the configured SDK is loaded."""
    if name == "ChromaVectorStore":
        from tenant_rag.retrieval.chroma_store import ChromaVectorStore

        return ChromaVectorStore
    if name == "PineconeVectorStore":
        from tenant_rag.retrieval.pinecone_store import PineconeVectorStore

        return PineconeVectorStore
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
