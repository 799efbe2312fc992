from __future__ import annotations

"""Namespace store protocol shared by vector database backends."""

from typing import Any, Protocol, Sequence

from src.rag.errors import DimensionMismatchError
from src.rag.types import EmbeddedChunk, SearchResult


class NamespaceStore(Protocol):
    """Named vector collections with upsert and nearest-neighbour search."""

    def upsert(self, namespace: str, embedded_chunks: Sequence[EmbeddedChunk]) -> int:
        """Store embedded chunks, creating the collection when absent."""
        raise NotImplementedError

    def collection_exists(self, namespace: str) -> bool:
        raise NotImplementedError

    def nearest_neighbors(
        self, namespace: str, query_vector: list[float], k: int
    ) -> list[SearchResult]:
        """Return the k most similar chunks, highest score first."""
        raise NotImplementedError

    def count(self, namespace: str) -> int:
        raise NotImplementedError

    def health(self) -> dict[str, Any]:
        raise NotImplementedError


def batch_dimension(namespace: str, embedded_chunks: Sequence[EmbeddedChunk]) -> int:
    """Return the shared vector dimension of a batch."""
    expected = embedded_chunks[0].dimension
    for item in embedded_chunks[1:]:
        if item.dimension != expected:
            raise DimensionMismatchError(namespace, expected, item.dimension)
    return expected
