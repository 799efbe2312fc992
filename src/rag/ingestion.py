from __future__ import annotations

"""Extract, chunk, embed and store content into a namespace."""

import logging
from dataclasses import dataclass
from typing import Any, Protocol

from src.loaders.chunking import chunk_document, validate_chunking
from src.rag.embeddings import EmbeddingProvider
from src.rag.errors import ValidationError
from src.rag.types import Chunk, Document, EmbeddedChunk, IngestionResult, SourceKind
from src.rag.upstream import call_upstream
from src.vectorstore.base import NamespaceStore

logger = logging.getLogger(__name__)


class Extractor(Protocol):
    async def extract(self, source: Any) -> list[Document]:
        raise NotImplementedError


@dataclass
class IngestionPipeline:
    extractors: dict[SourceKind, Extractor]
    embedder: EmbeddingProvider
    store: NamespaceStore
    chunk_size: int = 1000
    chunk_overlap: int = 200
    chunk_unit: str = "chars"
    encoding_name: str = "cl100k_base"
    upstream_timeout: float | None = None

    def __post_init__(self) -> None:
        validate_chunking(self.chunk_size, self.chunk_overlap)

    async def ingest(self, source: Any, source_kind: SourceKind, namespace: str) -> IngestionResult:
        """Populate a namespace from one source.

        Everything up to the final upsert happens in memory, so a failure
        before that point leaves the namespace untouched.
        """
        if not namespace or not namespace.strip():
            raise ValidationError("Namespace is required")
        try:
            kind = SourceKind(source_kind)
        except ValueError as exc:
            raise ValidationError(f"Unsupported source kind: {source_kind}") from exc
        extractor = self.extractors.get(kind)
        if extractor is None:
            raise ValidationError(f"No extractor configured for {kind.value}")

        documents = await extractor.extract(source)
        chunks = self.split(documents)
        logger.info(
            "ingest_chunked",
            extra={
                "namespace": namespace,
                "source_kind": kind.value,
                "documents": len(documents),
                "chunks": len(chunks),
            },
        )
        vectors = await call_upstream(
            "embedding",
            self.embedder.embed_documents,
            [chunk.text for chunk in chunks],
            timeout=self.upstream_timeout,
        )
        embedded = [EmbeddedChunk(chunk=chunk, vector=vector) for chunk, vector in zip(chunks, vectors)]
        stored = await call_upstream(
            "vector upsert", self.store.upsert, namespace, embedded, timeout=self.upstream_timeout
        )
        logger.info("ingest_completed", extra={"namespace": namespace, "stored": stored})
        return IngestionResult(
            namespace=namespace,
            document_count=len(documents),
            chunk_count=len(chunks),
        )

    def split(self, documents: list[Document]) -> list[Chunk]:
        chunks: list[Chunk] = []
        for document in documents:
            chunks.extend(
                chunk_document(
                    document,
                    chunk_size=self.chunk_size,
                    overlap=self.chunk_overlap,
                    unit=self.chunk_unit,
                    encoding_name=self.encoding_name,
                )
            )
        return chunks
