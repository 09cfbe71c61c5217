"""Text extraction: thin wrappers around LangChain document loaders."""

from __future__ import annotations

from pathlib import Path

from langchain_community.document_loaders import PyPDFLoader, TextLoader

from tenant_rag.errors import UnsupportedType

PDF = "application/pdf"
PLAIN_TEXT = "text/plain"
MARKDOWN = "text/markdown"

SUPPORTED_MIME_TYPES = frozenset({PDF, PLAIN_TEXT, MARKDOWN})


def load_pdf(path: str | Path) -> str:
    """Extract the text of every page, pages separated by blank lines."""
    pages = PyPDFLoader(str(path)).load()
    return "\n\n".join(page.page_content for page in pages)


def load_text(path: str | Path) -> str:
    """Read a UTF-8 plain-text or Markdown file."""
    docs = TextLoader(str(path), encoding="utf-8").load()
    return "".join(doc.page_content for doc in docs)


def extract_text(path: str | Path, mime_type: str) -> str:
    """Extract raw text from the file at *path* according to *mime_type*.

    Raises
    ------
    UnsupportedType
        For anything other than PDF, plain text or Markdown.
    """
    if mime_type == PDF:
        return load_pdf(path)
    if mime_type in (PLAIN_TEXT, MARKDOWN):
        return load_text(path)
    raise UnsupportedType(f"Unsupported file type: {mime_type}")
