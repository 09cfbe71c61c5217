"""Paragraph-aligned text chunking."""

from __future__ import annotations

PARAGRAPH_BREAK = "\n\n"

# Chunks at or below this many characters are treated as noise.
MIN_MEANINGFUL_CHARS = 50


def split_paragraph_chunks(
    text: str,
    max_chunk_size: int = 1500,
    min_chunk_size: int = 500,
) -> list[str]:
    """Split *text* into chunks spanning one or more paragraphs.

    Each cut is proposed ``max_chunk_size`` characters ahead and then moved
    forward to the next paragraph break, never backward.  Slices shorter
    than ``min_chunk_size`` are carried over and joined to the following
    slices until the combined text is long enough.  A short remainder is
    merged into the previous chunk, or returned alone when it is the only
    one (possibly as an empty string).

    Parameters
    ----------
    text:
        Raw extracted document text.
    max_chunk_size:
        Distance in characters from a chunk start to its proposed end.
    min_chunk_size:
        Minimum length for a chunk to be emitted on its own.

    Returns
    -------
    list[str]
        Trimmed chunks in document order.  No noise filtering is applied.
    """
    chunks: list[str] = []
    carry = ""

    start = 0
    while start < len(text):
        end = start + max_chunk_size
        if end >= len(text):
            end = len(text)
        else:
            boundary = text.find(PARAGRAPH_BREAK, end)
            if boundary != -1:
                end = boundary

        piece = text[start:end].strip()
        start = end
        if not piece:
            continue

        combined = f"{carry}{PARAGRAPH_BREAK}{piece}" if carry else piece
        if len(combined) >= min_chunk_size:
            chunks.append(combined)
            carry = ""
        else:
            carry = combined

    if len(carry) >= min_chunk_size:
        chunks.append(carry)
    elif chunks:
        if carry:
            chunks[-1] = f"{chunks[-1]}{PARAGRAPH_BREAK}{carry}"
    else:
        chunks.append(carry)

    return chunks


def chunk_text(
    text: str,
    max_chunk_size: int = 1500,
    min_chunk_size: int = 500,
) -> list[str]:
    """Split *text* for embedding and drop chunks too small to be meaningful.

    Blank input yields an empty list.
    """
    if not text or not text.strip():
        return []
    chunks = split_paragraph_chunks(text, max_chunk_size, min_chunk_size)
    return [c for c in chunks if len(c.strip()) > MIN_MEANINGFUL_CHARS]
