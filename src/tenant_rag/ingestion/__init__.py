"""
Ingestion: text extraction, chunking, embedding and storage of uploads.

This module turns one uploaded document into tenant-scoped vector records
and tracks the run through the knowledge item's processing status.
"""
