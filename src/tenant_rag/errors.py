"""Error taxonomy for the knowledge pipeline.

Every failure raised by this package derives from :class:`KnowledgeError`
so that orchestrators can draw a single error boundary around a run.
"""

from __future__ import annotations


class KnowledgeError(Exception):
    """Base class for all knowledge-pipeline failures."""


class InvalidInput(KnowledgeError, ValueError):
    """Blank or empty text where content is required."""


class UnsupportedType(KnowledgeError, ValueError):
    """The declared MIME type cannot be extracted."""


class EmptyDocument(KnowledgeError):
    """Extraction produced only whitespace."""


class NoChunksProduced(KnowledgeError):
    """Segmentation produced nothing worth embedding."""


class EmbeddingFailure(KnowledgeError):
    """The embedding service failed for a reason other than rate limiting."""


class RateLimited(KnowledgeError):
    """Rate limiting persisted through every backoff attempt."""


class EmptyDeleteSet(KnowledgeError):
    """A bulk delete was requested with no ids."""


class VectorStoreFailure(KnowledgeError):
    """The vector store rejected or failed an operation."""


def is_rate_limited(exc: BaseException) -> bool:
    """Return ``True`` when *exc* signals rate limiting.

    Works across SDKs: the OpenAI client exposes ``status_code``, the
    Pinecone client exposes ``status``, and some services only say so in
    the message.
    """
    for attr in ("status_code", "status"):
        if getattr(exc, attr, None) == 429:
            return True
    if isinstance(exc, KnowledgeError):
        return False
    message = str(exc).lower()
    return "rate limit" in message or "too many requests" in message
