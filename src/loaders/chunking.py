from __future__ import annotations

"""Overlapping chunking utilities (char and token based)."""

from bisect import bisect_left
from itertools import accumulate
from typing import Any, Sequence

from src.rag.errors import ChunkingConfigError
from src.rag.types import Chunk, Document

CHUNK_UNITS = {"chars", "tokens"}


def validate_chunking(chunk_size: int, overlap: int) -> None:
    """Reject chunk settings that cannot advance the cursor."""
    if chunk_size <= 0:
        raise ChunkingConfigError(f"chunk_size must be positive, got {chunk_size}")
    if overlap < 0:
        raise ChunkingConfigError(f"overlap must not be negative, got {overlap}")
    if overlap >= chunk_size:
        raise ChunkingConfigError(
            f"overlap ({overlap}) must be smaller than chunk_size ({chunk_size})"
        )


def _windows(length: int, chunk_size: int, overlap: int) -> list[tuple[int, int]]:
    """Return (start, end) bounds for a greedy forward split."""
    step = chunk_size - overlap
    bounds: list[tuple[int, int]] = []
    start = 0
    while start < length:
        end = min(length, start + chunk_size)
        bounds.append((start, end))
        if end >= length:
            break
        start += step
    return bounds


def split_text(text: str, chunk_size: int, overlap: int) -> list[str]:
    """Split text into overlapping character-based chunks.

    Consecutive chunks share exactly ``overlap`` characters, so dropping that
    prefix from every chunk after the first and concatenating gives back the
    original text.
    """
    validate_chunking(chunk_size, overlap)
    return [text[start:end] for start, end in _windows(len(text), chunk_size, overlap)]


def split_tokens(tokens: Sequence[int], chunk_size: int, overlap: int) -> list[list[int]]:
    """Split a token sequence into overlapping windows."""
    validate_chunking(chunk_size, overlap)
    return [list(tokens[start:end]) for start, end in _windows(len(tokens), chunk_size, overlap)]


def token_char_spans(
    text: str, chunk_size: int, overlap: int, encoding: Any
) -> list[tuple[int, int]]:
    """Return character spans of token windows over ``text``.

    Window edges that land inside a multi-token character move forward to
    the next character boundary, so every span slices whole characters.
    Each span starts at or before the end of the previous one.
    """
    validate_chunking(chunk_size, overlap)
    tokens = encoding.encode_ordinary(text)
    token_offsets = list(
        accumulate((len(encoding.decode_single_token_bytes(token)) for token in tokens), initial=0)
    )
    char_offsets = list(accumulate((len(ch.encode("utf-8")) for ch in text), initial=0))
    spans: list[tuple[int, int]] = []
    for start, end in _windows(len(tokens), chunk_size, overlap):
        lo = bisect_left(char_offsets, token_offsets[start])
        hi = bisect_left(char_offsets, token_offsets[end])
        if hi > lo:
            spans.append((lo, hi))
    return spans


def split_text_tokens(
    text: str,
    chunk_size: int,
    overlap: int,
    encoding_name: str = "cl100k_base",
    encoding: Any = None,
) -> list[str]:
    """Split text into overlapping token-based chunks of whole characters."""
    validate_chunking(chunk_size, overlap)
    if not text:
        return []
    if encoding is None:
        import tiktoken

        try:
            encoding = tiktoken.get_encoding(encoding_name)
        except ValueError as exc:
            raise ChunkingConfigError(f"Unknown tokenizer encoding: {encoding_name}") from exc
    return [text[lo:hi] for lo, hi in token_char_spans(text, chunk_size, overlap, encoding)]


def chunk_document(
    document: Document,
    chunk_size: int,
    overlap: int,
    unit: str = "chars",
    encoding_name: str = "cl100k_base",
) -> list[Chunk]:
    """Chunk a document, copying its metadata onto every chunk."""
    if unit == "tokens":
        pieces = split_text_tokens(document.text, chunk_size, overlap, encoding_name)
    elif unit == "chars":
        pieces = split_text(document.text, chunk_size, overlap)
    else:
        raise ChunkingConfigError(f"Unsupported chunk unit: {unit}")

    total = len(pieces)
    chunks: list[Chunk] = []
    for idx, piece in enumerate(pieces, start=1):
        metadata = dict(document.metadata)
        metadata.update({"chunk_index": idx, "chunk_count": total})
        chunks.append(Chunk(text=piece, metadata=metadata))
    return chunks
