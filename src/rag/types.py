from __future__ import annotations

"""Core data types for documents, chunks and retrieval."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class SourceKind(str, Enum):
    """Input source tag used to select an extractor."""
    TEXT = "text"
    FILE = "file"
    URL = "url"


@dataclass(frozen=True)
class Document:
    """Extracted text with metadata."""
    text: str
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class Chunk:
    """Document fragment sized for embedding."""
    text: str
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class EmbeddedChunk:
    """Chunk paired with its embedding vector."""
    chunk: Chunk
    vector: list[float]

    @property
    def dimension(self) -> int:
        return len(self.vector)


@dataclass(frozen=True)
class SearchResult:
    """Search result with similarity score."""
    chunk: Chunk
    score: float


@dataclass(frozen=True)
class Source:
    content: str
    metadata: dict[str, Any]


@dataclass(frozen=True)
class QueryResult:
    """Generated answer with the chunks used as context."""
    answer: str
    sources: list[Source]


@dataclass(frozen=True)
class IngestionResult:
    namespace: str
    document_count: int
    chunk_count: int
