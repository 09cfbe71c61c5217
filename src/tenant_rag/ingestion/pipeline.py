"""Ingestion orchestrator: one document from upload to stored vectors.

Each run walks a knowledge item through::

    PENDING → PROCESSING → COMPLETED | FAILED

extracting text, chunking it, embedding every chunk in one batch and
upserting the vectors into the owning agent's namespace.  Failures never
escape :meth:`KnowledgeIngestor.ingest`; they are recorded as ``FAILED``
with a message.  The transient source file is removed on every exit path.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from pathlib import Path

from tenant_rag.backoff import RetryPolicy, retry_with_backoff
from tenant_rag.errors import EmbeddingFailure, EmptyDocument, NoChunksProduced
from tenant_rag.ingestion.chunker import chunk_text
from tenant_rag.ingestion.embedder import EmbeddingClient
from tenant_rag.ingestion.loader import extract_text
from tenant_rag.models import ProcessingStatus, VectorRecord
from tenant_rag.repository import StatusRecorder
from tenant_rag.retrieval.base import VectorStoreBase

logger = logging.getLogger(__name__)

Extractor = Callable[[str, str], str]


class KnowledgeIngestor:
    """Drives ingestion runs for knowledge items.

    Parameters
    ----------
    store:
        Destination vector store.
    embedder:
        Embedding client for chunk texts.
    status:
        Where lifecycle transitions are persisted.
    extractor:
        ``(path, mime_type) -> text``; defaults to :func:`extract_text`.
    retry_policy:
        Backoff applied to the embedding call.
    max_chunk_size, min_chunk_size:
        Chunking bounds passed to :func:`chunk_text`.
    """

    def __init__(
        self,
        store: VectorStoreBase,
        embedder: EmbeddingClient,
        status: StatusRecorder,
        *,
        extractor: Extractor = extract_text,
        retry_policy: RetryPolicy | None = None,
        max_chunk_size: int = 1500,
        min_chunk_size: int = 500,
    ) -> None:
        self._store = store
        self._embedder = embedder
        self._status = status
        self._extractor = extractor
        self._retry_policy = retry_policy or RetryPolicy()
        self.max_chunk_size = max_chunk_size
        self.min_chunk_size = min_chunk_size
        self._in_flight: set[str] = set()

    def is_running(self, knowledge_item_id: str) -> bool:
        return knowledge_item_id in self._in_flight

    async def ingest(
        self,
        knowledge_item_id: str,
        file_path: str,
        mime_type: str,
        agent_id: str,
        file_name: str,
    ) -> None:
        """Process one uploaded file; the outcome is observed via status persistence.

        A second call for an id that is already being processed is skipped.
        """
        if knowledge_item_id in self._in_flight:
            logger.warning("Ingestion already running for %s; skipping duplicate run", knowledge_item_id)
            return
        self._in_flight.add(knowledge_item_id)
        try:
            await self._run(knowledge_item_id, file_path, mime_type, agent_id, file_name)
        finally:
            self._in_flight.discard(knowledge_item_id)

    async def process_document(
        self,
        knowledge_item_id: str,
        file_path: str,
        mime_type: str,
        agent_id: str,
        file_name: str,
    ) -> list[str]:
        """Extract, chunk, embed and store one document; return the stored chunks.

        Raises on the first failing step.
        """
        text = await asyncio.to_thread(self._extractor, file_path, mime_type)
        if not text or not text.strip():
            raise EmptyDocument("No text content found in the document")

        chunks = chunk_text(text, self.max_chunk_size, self.min_chunk_size)
        if not chunks:
            raise NoChunksProduced("No valid chunks generated from the document")
        logger.info(
            "Generated %d chunks for %s: %s",
            len(chunks),
            knowledge_item_id,
            [len(c) for c in chunks],
        )

        embeddings = await retry_with_backoff(
            lambda: self._embedder.embed(chunks),
            self._retry_policy,
            label=f"embedding of {knowledge_item_id}",
        )
        if len(embeddings) != len(chunks):
            raise EmbeddingFailure(
                f"Expected {len(chunks)} embeddings, got {len(embeddings)}"
            )

        records = [
            VectorRecord.from_chunk(knowledge_item_id, ordinal, chunk, vector, file_name)
            for ordinal, (chunk, vector) in enumerate(zip(chunks, embeddings))
        ]
        await self._store.upsert(agent_id, records)
        return chunks

    # -- internals ------------------------------------------------------------

    async def _run(
        self,
        knowledge_item_id: str,
        file_path: str,
        mime_type: str,
        agent_id: str,
        file_name: str,
    ) -> None:
        try:
            await self._status.set_status(knowledge_item_id, ProcessingStatus.PROCESSING)
            chunks = await self.process_document(
                knowledge_item_id, file_path, mime_type, agent_id, file_name
            )
            await self._status.set_status(
                knowledge_item_id, ProcessingStatus.COMPLETED, chunk_count=len(chunks)
            )
            logger.info("Ingested %s: %d chunks into namespace %s", knowledge_item_id, len(chunks), agent_id)
        except Exception as exc:
            logger.exception("Error processing document %s", knowledge_item_id)
            await self._mark_failed(knowledge_item_id, str(exc) or type(exc).__name__)
        finally:
            await self._cleanup(file_path)

    async def _mark_failed(self, knowledge_item_id: str, message: str) -> None:
        try:
            await self._status.set_status(
                knowledge_item_id, ProcessingStatus.FAILED, error_message=message
            )
        except Exception:
            logger.exception("Could not record failure for %s", knowledge_item_id)

    async def _cleanup(self, file_path: str) -> None:
        try:
            await asyncio.to_thread(Path(file_path).unlink, missing_ok=True)
        except OSError:
            logger.exception("Error cleaning up file %s", file_path)
