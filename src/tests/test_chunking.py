from __future__ import annotations

"""Chunking behavior tests."""

import pytest

from src.loaders.chunking import (
    chunk_document,
    split_text,
    split_text_tokens,
    split_tokens,
    token_char_spans,
)
from src.rag.errors import ChunkingConfigError
from src.rag.types import Document

SAMPLE = (
    "Retrieval systems split long documents into windows.\n\n"
    "  Each window overlaps the previous one so sentences that cross a boundary "
    "still appear whole in at least one chunk.\tWhitespace is preserved."
)


def _reassemble(chunks: list[str], overlap: int) -> str:
    if not chunks:
        return ""
    return chunks[0] + "".join(chunk[overlap:] for chunk in chunks[1:])


@pytest.mark.parametrize(
    ("chunk_size", "overlap"),
    [(1, 0), (7, 3), (20, 0), (20, 19), (50, 10), (1000, 200)],
)
def test_split_text_reassembles_source(chunk_size: int, overlap: int) -> None:
    chunks = split_text(SAMPLE, chunk_size, overlap)

    assert _reassemble(chunks, overlap) == SAMPLE
    assert all(len(chunk) <= chunk_size for chunk in chunks)
    assert all(len(chunk) == chunk_size for chunk in chunks[:-1])


def test_split_text_consecutive_chunks_share_overlap() -> None:
    chunks = split_text("abcdefghij", chunk_size=4, overlap=2)

    assert chunks == ["abcd", "cdef", "efgh", "ghij"]


def test_split_text_final_chunk_may_be_shorter() -> None:
    chunks = split_text("abcdefghijk", chunk_size=5, overlap=1)

    assert chunks == ["abcde", "efghi", "ijk"]


def test_split_text_is_deterministic() -> None:
    assert split_text(SAMPLE, 30, 5) == split_text(SAMPLE, 30, 5)


def test_split_text_empty_input() -> None:
    assert split_text("", 10, 2) == []


@pytest.mark.parametrize(("chunk_size", "overlap"), [(10, 10), (10, 11), (0, 0), (10, -1)])
def test_split_text_rejects_stalling_configuration(chunk_size: int, overlap: int) -> None:
    with pytest.raises(ChunkingConfigError):
        split_text("some text", chunk_size, overlap)


def test_split_tokens_uses_same_window_policy() -> None:
    windows = split_tokens(list(range(10)), chunk_size=4, overlap=1)

    assert windows == [[0, 1, 2, 3], [3, 4, 5, 6], [6, 7, 8, 9]]


def test_chunk_document_copies_metadata() -> None:
    """Ensure chunking splits and annotates metadata."""
    content = "word " * 300
    document = Document(text=content, metadata={"source": "policy.txt", "page": 2})

    chunks = chunk_document(document, chunk_size=200, overlap=20)

    assert len(chunks) > 1
    assert chunks[0].metadata["chunk_index"] == 1
    assert chunks[-1].metadata["chunk_index"] == len(chunks)
    assert all(chunk.metadata["chunk_count"] == len(chunks) for chunk in chunks)
    assert all(chunk.metadata["page"] == 2 for chunk in chunks)
    assert document.metadata == {"source": "policy.txt", "page": 2}


def test_chunk_document_rejects_unknown_unit() -> None:
    with pytest.raises(ChunkingConfigError):
        chunk_document(Document(text="abc"), chunk_size=10, overlap=0, unit="lines")


class ByteEncoding:
    """Tokenizer stand-in with one token per UTF-8 byte."""

    def encode_ordinary(self, text: str) -> list[int]:
        return list(text.encode("utf-8"))

    def decode_single_token_bytes(self, token: int) -> bytes:
        return bytes([token])


MULTIBYTE = "ab😀cd漢字e" * 3 + "😀" * 4


def _join_spans(text: str, spans: list[tuple[int, int]]) -> str:
    joined = ""
    covered = 0
    for lo, hi in spans:
        assert lo <= covered
        joined += text[max(lo, covered) : hi]
        covered = max(covered, hi)
    return joined


@pytest.mark.parametrize(("chunk_size", "overlap"), [(1, 0), (5, 1), (5, 0), (7, 3), (64, 8)])
def test_token_spans_cover_multibyte_text(chunk_size: int, overlap: int) -> None:
    spans = token_char_spans(MULTIBYTE, chunk_size, overlap, ByteEncoding())

    assert spans[0][0] == 0
    assert spans[-1][1] == len(MULTIBYTE)
    assert _join_spans(MULTIBYTE, spans) == MULTIBYTE


def test_split_text_tokens_never_cuts_characters() -> None:
    chunks = split_text_tokens(MULTIBYTE, 5, 1, encoding=ByteEncoding())

    assert chunks
    assert all("\ufffd" not in chunk for chunk in chunks)
    assert all(chunk in MULTIBYTE for chunk in chunks)


def test_chunk_document_token_unit(monkeypatch: pytest.MonkeyPatch) -> None:
    tiktoken = pytest.importorskip("tiktoken")
    monkeypatch.setattr(tiktoken, "get_encoding", lambda name: ByteEncoding())
    document = Document(text="😀" * 6, metadata={"source": "emoji.txt"})

    chunks = chunk_document(document, chunk_size=8, overlap=2, unit="tokens")

    assert [chunk.text for chunk in chunks] == ["😀😀", "😀😀", "😀😀", "😀"]
    assert all(chunk.metadata["source"] == "emoji.txt" for chunk in chunks)
