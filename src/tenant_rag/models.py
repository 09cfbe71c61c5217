"""Domain models shared by ingestion, retrieval and serving."""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any
from uuid import uuid4

from pydantic import BaseModel, Field


class ProcessingStatus(str, Enum):
    """Lifecycle of a knowledge item: PENDING → PROCESSING → COMPLETED | FAILED."""

    PENDING = "PENDING"
    PROCESSING = "PROCESSING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"


class KnowledgeItem(BaseModel):
    """One uploaded document attached to an agent.

    Attributes
    ----------
    id:
        Identifier; also the prefix of every vector record id derived from it.
    agent_id:
        Owning agent, which is also the vector-store namespace.
    file_name:
        Original name supplied by the uploader; recorded as ``source``.
    stored_name:
        Name of the transient blob under the upload directory.
    mime_type:
        Declared MIME type used to pick an extractor.
    file_size:
        Size in bytes.
    processing_status:
        Current lifecycle state.
    chunk_count:
        Number of stored chunks, set only on success.
    error_message:
        Failure reason, set only on failure.
    """

    id: str = Field(default_factory=lambda: uuid4().hex)
    agent_id: str
    file_name: str
    stored_name: str = ""
    mime_type: str
    file_size: int = 0
    processing_status: ProcessingStatus = ProcessingStatus.PENDING
    chunk_count: int | None = None
    error_message: str | None = None
    uploaded_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


def record_id(knowledge_item_id: str, ordinal: int) -> str:
    """Deterministic vector id for chunk *ordinal* of a knowledge item."""
    return f"{knowledge_item_id}:{ordinal}"


def record_prefix(knowledge_item_id: str) -> str:
    """Id prefix shared by every vector record of a knowledge item."""
    return f"{knowledge_item_id}:"


class VectorRecord(BaseModel):
    """An embedding plus metadata, stored under a deterministic id."""

    id: str
    values: list[float]
    metadata: dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def from_chunk(
        cls,
        knowledge_item_id: str,
        ordinal: int,
        content: str,
        embedding: list[float],
        source: str,
    ) -> VectorRecord:
        return cls(
            id=record_id(knowledge_item_id, ordinal),
            values=embedding,
            metadata={
                "knowledge_base_id": knowledge_item_id,
                "content": content,
                "source": source,
                "chunk_index": ordinal,
            },
        )


class QueryResult(BaseModel):
    """A retrieved chunk with its similarity score."""

    text: str
    score: float
    source: str = "unknown"


class ListPage(BaseModel):
    """One page of a prefix listing; ``next_page_token`` is ``None`` on the last page."""

    ids: list[str] = Field(default_factory=list)
    next_page_token: str | None = None


class NamespaceStats(BaseModel):
    vector_count: int = 0


class AgentProfile(BaseModel):
    """Persona fields used to build the system prompt."""

    name: str
    tone: str = "friendly and professional"
    instructions: str = ""
