"""FastAPI application exposing knowledge upload, status, deletion and context."""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from uuid import uuid4

from fastapi import BackgroundTasks, FastAPI, File, HTTPException, Request, UploadFile
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from tenant_rag.config import Settings, configure_logging, settings
from tenant_rag.errors import VectorStoreFailure
from tenant_rag.ingestion.loader import SUPPORTED_MIME_TYPES
from tenant_rag.models import KnowledgeItem, NamespaceStats, QueryResult
from tenant_rag.repository import KnowledgeRepository
from tenant_rag.retrieval.retriever import build_context
from tenant_rag.service import KnowledgeService

logger = logging.getLogger(__name__)


# ── Request / Response schemas ────────────────────────────────────────
class ContextRequest(BaseModel):
    """Live user query to ground."""

    query: str


class ContextResponse(BaseModel):
    """Assembled context plus the results it was built from."""

    context: str
    results: list[QueryResult] = []


class DeleteResponse(BaseModel):
    message: str
    vectors_deleted: bool = True


def _store_upload(path: Path, data: bytes) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(data)


def create_app(
    service: KnowledgeService | None = None,
    repository: KnowledgeRepository | None = None,
    config: Settings = settings,
) -> FastAPI:
    """Build the API around one service instance.

    Run with ``uvicorn tenant_rag.serving.app:create_app --factory``.
    """
    configure_logging(config.log_level)
    repository = repository or KnowledgeRepository()
    service = service or KnowledgeService.from_settings(repository, config)
    upload_dir = Path(config.upload_dir)

    app = FastAPI(
        title="Tenant RAG API",
        version="0.1.0",
        description="Per-agent knowledge ingestion and retrieval.",
    )
    app.state.service = service
    app.state.repository = repository

    @app.exception_handler(VectorStoreFailure)
    async def _store_failure(request: Request, exc: VectorStoreFailure) -> JSONResponse:
        logger.error("Vector store failure on %s: %s", request.url.path, exc)
        return JSONResponse(status_code=502, content={"detail": "Vector store unavailable"})

    async def _owned_item(agent_id: str, item_id: str) -> KnowledgeItem:
        item = await repository.get(item_id)
        if item is None or item.agent_id != agent_id:
            raise HTTPException(status_code=404, detail="Knowledge base item not found")
        return item

    # ── Routes ────────────────────────────────────────────────────────
    @app.get("/health")
    async def health() -> dict[str, str]:
        """Liveness probe."""
        return {"status": "ok"}

    @app.post("/agents/{agent_id}/knowledge", response_model=KnowledgeItem)
    async def upload(
        agent_id: str,
        background_tasks: BackgroundTasks,
        file: UploadFile = File(...),
    ) -> KnowledgeItem:
        """Store the file, create a PENDING item and schedule ingestion."""
        mime_type = (file.content_type or "").split(";")[0].strip()
        if mime_type not in SUPPORTED_MIME_TYPES:
            raise HTTPException(status_code=400, detail="Only PDF, TXT, and MD files are supported")

        if file.size is not None and file.size > config.max_upload_bytes:
            raise HTTPException(status_code=413, detail="File size exceeds the upload limit")
        data = await file.read()
        if len(data) > config.max_upload_bytes:
            raise HTTPException(status_code=413, detail="File size exceeds the upload limit")

        original_name = file.filename or "upload"
        stored_name = f"{uuid4().hex}{Path(original_name).suffix}"
        file_path = upload_dir / stored_name
        await asyncio.to_thread(_store_upload, file_path, data)

        item = await repository.add(
            KnowledgeItem(
                agent_id=agent_id,
                file_name=original_name,
                stored_name=stored_name,
                mime_type=mime_type,
                file_size=len(data),
            )
        )
        logger.info("Accepted %s (%d bytes) for agent %s as %s", original_name, len(data), agent_id, item.id)
        background_tasks.add_task(
            service.ingest, item.id, str(file_path), mime_type, agent_id, original_name
        )
        return item

    @app.get("/agents/{agent_id}/knowledge", response_model=list[KnowledgeItem])
    async def list_items(agent_id: str) -> list[KnowledgeItem]:
        return await repository.list_for_agent(agent_id)

    @app.get("/agents/{agent_id}/knowledge/stats", response_model=NamespaceStats)
    async def stats(agent_id: str) -> NamespaceStats:
        return await service.namespace_stats(agent_id)

    @app.get("/agents/{agent_id}/knowledge/{item_id}", response_model=KnowledgeItem)
    async def get_item(agent_id: str, item_id: str) -> KnowledgeItem:
        return await _owned_item(agent_id, item_id)

    @app.delete("/agents/{agent_id}/knowledge/{item_id}", response_model=DeleteResponse)
    async def delete_item(agent_id: str, item_id: str) -> DeleteResponse:
        """Remove the item's vectors (best effort), then the item itself."""
        await _owned_item(agent_id, item_id)
        vectors_deleted = await service.delete_knowledge_item_vectors(item_id, agent_id)
        await repository.delete(item_id)
        return DeleteResponse(
            message="Knowledge base item deleted successfully",
            vectors_deleted=vectors_deleted,
        )

    @app.delete("/agents/{agent_id}/knowledge", response_model=DeleteResponse)
    async def purge(agent_id: str) -> DeleteResponse:
        """Drop the agent's whole namespace and every item record."""
        await service.delete_agent_namespace(agent_id)
        removed = await repository.delete_for_agent(agent_id)
        return DeleteResponse(message=f"Deleted {removed} knowledge base items")

    @app.post("/agents/{agent_id}/context", response_model=ContextResponse)
    async def context(agent_id: str, request: ContextRequest) -> ContextResponse:
        """Retrieve grounding context for a live query."""
        if not request.query.strip():
            return ContextResponse(context="")
        results = await service.retriever.retrieve(request.query, agent_id)
        return ContextResponse(
            context=build_context(results, service.retriever.max_context_chars),
            results=results,
        )

    return app
