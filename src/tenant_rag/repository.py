"""Knowledge-item records and processing-status persistence."""

from __future__ import annotations

import logging
from typing import Protocol

from tenant_rag.models import KnowledgeItem, ProcessingStatus

logger = logging.getLogger(__name__)


class StatusRecorder(Protocol):
    """Persists the processing status of a knowledge item."""

    async def set_status(
        self,
        knowledge_item_id: str,
        status: ProcessingStatus,
        *,
        chunk_count: int | None = None,
        error_message: str | None = None,
    ) -> None: ...


class KnowledgeRepository:
    """In-process store of :class:`KnowledgeItem` records.

    Suitable for a single-process deployment or tests; a database-backed
    repository only needs the same methods.
    """

    def __init__(self) -> None:
        self._items: dict[str, KnowledgeItem] = {}

    async def add(self, item: KnowledgeItem) -> KnowledgeItem:
        self._items[item.id] = item
        return item

    async def get(self, knowledge_item_id: str) -> KnowledgeItem | None:
        return self._items.get(knowledge_item_id)

    async def list_for_agent(self, agent_id: str) -> list[KnowledgeItem]:
        """Items owned by *agent_id*, newest upload first."""
        items = [i for i in self._items.values() if i.agent_id == agent_id]
        return sorted(items, key=lambda i: i.uploaded_at, reverse=True)

    async def delete(self, knowledge_item_id: str) -> bool:
        return self._items.pop(knowledge_item_id, None) is not None

    async def delete_for_agent(self, agent_id: str) -> int:
        doomed = [k for k, v in self._items.items() if v.agent_id == agent_id]
        for key in doomed:
            del self._items[key]
        return len(doomed)

    async def set_status(
        self,
        knowledge_item_id: str,
        status: ProcessingStatus,
        *,
        chunk_count: int | None = None,
        error_message: str | None = None,
    ) -> None:
        item = self._items.get(knowledge_item_id)
        if item is None:
            # The record may have been deleted while ingestion was running.
            logger.warning("Status %s for unknown knowledge item %s", status.value, knowledge_item_id)
            return
        update: dict = {"processing_status": status}
        if chunk_count is not None:
            update["chunk_count"] = chunk_count
        if error_message is not None:
            update["error_message"] = error_message
        self._items[knowledge_item_id] = item.model_copy(update=update)
