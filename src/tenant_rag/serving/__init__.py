"""
Serving: FastAPI application for knowledge upload and retrieval.

Uploads are accepted synchronously and ingested in a background task; the
outcome is observed by polling the item's processing status.
"""
