"""Shared configuration loaded from environment / ``.env``."""

from __future__ import annotations

import logging

from pydantic import Field
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application-wide settings, populated from env vars or .env file."""

    # Embedding
    openai_api_key: str = Field(default="", description="OpenAI API key used for embeddings")
    embedding_provider: str = Field(
        default="openai",
        description="Embedding backend: 'openai' (hosted) or 'huggingface' (local sentence-transformers)",
    )
    embedding_model: str = "text-embedding-3-small"
    embedding_dimensions: int = 1536

    # Vector store
    vector_backend: str = Field(default="pinecone", description="'pinecone' or 'chroma'")
    pinecone_api_key: str = ""
    pinecone_index: str = "supportgenius-knowledge"
    chroma_host: str = "localhost"
    chroma_port: int = 8000
    chroma_collection_prefix: str = "agent-"
    upsert_batch_size: int = 200
    list_page_size: int = 100

    # Rate-limit backoff
    retry_max_attempts: int = 5
    retry_base_delay: float = Field(default=1.0, description="Seconds; doubled on every retry")

    # Segmentation
    max_chunk_size: int = 1500
    min_chunk_size: int = 500

    # Retrieval
    retrieval_top_k: int = 3
    relevance_threshold: float = 0.3
    context_max_chars: int = 3000

    # Uploads
    upload_dir: str = "uploads"
    max_upload_bytes: int = 10 * 1024 * 1024

    log_level: str = "INFO"

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}


# Singleton, import `settings` wherever needed.
settings = Settings()


def configure_logging(level: str | None = None) -> None:
    """Apply a basic root logging configuration."""
    logging.basicConfig(
        level=(level or settings.log_level).upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
