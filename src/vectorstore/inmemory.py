from __future__ import annotations

"""In-memory namespace store for local testing and small datasets."""

import math
import threading
from dataclasses import dataclass, field
from typing import Any, Sequence

from src.rag.errors import DimensionMismatchError, NamespaceNotFoundError
from src.rag.types import Chunk, EmbeddedChunk, SearchResult
from src.vectorstore.base import batch_dimension


@dataclass
class _Collection:
    dimension: int
    chunks: list[Chunk] = field(default_factory=list)
    vectors: list[list[float]] = field(default_factory=list)


@dataclass
class InMemoryNamespaceStore:
    """Namespace-keyed collections with cosine similarity search."""
    collections: dict[str, _Collection] = field(default_factory=dict)
    _lock: threading.Lock = field(default_factory=threading.Lock, init=False, repr=False)

    def upsert(self, namespace: str, embedded_chunks: Sequence[EmbeddedChunk]) -> int:
        """Append embedded chunks to the namespace collection."""
        if not embedded_chunks:
            return 0
        dimension = batch_dimension(namespace, embedded_chunks)
        with self._lock:
            collection = self.collections.get(namespace)
            if collection is None:
                collection = _Collection(dimension=dimension)
                self.collections[namespace] = collection
            elif collection.dimension != dimension:
                raise DimensionMismatchError(namespace, collection.dimension, dimension)
            for item in embedded_chunks:
                collection.chunks.append(item.chunk)
                collection.vectors.append(list(item.vector))
        return len(embedded_chunks)

    def collection_exists(self, namespace: str) -> bool:
        return namespace in self.collections

    def nearest_neighbors(
        self, namespace: str, query_vector: list[float], k: int
    ) -> list[SearchResult]:
        """Rank the namespace's chunks by cosine similarity to the query."""
        collection = self.collections.get(namespace)
        if collection is None:
            raise NamespaceNotFoundError(namespace)
        if len(query_vector) != collection.dimension:
            raise DimensionMismatchError(namespace, collection.dimension, len(query_vector))
        if k <= 0:
            return []
        with self._lock:
            pairs = list(zip(collection.chunks, collection.vectors))
        scored = [
            SearchResult(chunk=chunk, score=self._cosine_similarity(query_vector, vector))
            for chunk, vector in pairs
        ]
        scored.sort(key=lambda item: item.score, reverse=True)
        return scored[:k]

    def count(self, namespace: str) -> int:
        collection = self.collections.get(namespace)
        return len(collection.chunks) if collection else 0

    def _cosine_similarity(self, a: list[float], b: list[float]) -> float:
        """Compute cosine similarity between two vectors."""
        dot = sum(x * y for x, y in zip(a, b))
        norm_a = math.sqrt(sum(x * x for x in a))
        norm_b = math.sqrt(sum(y * y for y in b))
        if norm_a == 0.0 or norm_b == 0.0:
            return 0.0
        return dot / (norm_a * norm_b)

    def health(self) -> dict[str, Any]:
        """Return health information for the store."""
        return {
            "backend": "memory",
            "ok": True,
            "detail": f"{len(self.collections)} namespaces",
        }
