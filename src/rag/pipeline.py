from __future__ import annotations

import logging
from dataclasses import dataclass

from src.rag.answerer import AnswerGenerator
from src.rag.embeddings import EmbeddingProvider
from src.rag.errors import NamespaceNotFoundError, ValidationError
from src.rag.types import QueryResult, SearchResult, Source
from src.rag.upstream import call_upstream
from src.vectorstore.base import NamespaceStore

logger = logging.getLogger(__name__)


@dataclass
class QueryPipeline:
    embedder: EmbeddingProvider
    store: NamespaceStore
    answerer: AnswerGenerator
    max_chunks: int = 4
    upstream_timeout: float | None = None

    async def retrieve(self, question: str, namespace: str, k: int | None = None) -> list[SearchResult]:
        exists = await call_upstream(
            "collection lookup", self.store.collection_exists, namespace, timeout=self.upstream_timeout
        )
        if not exists:
            raise NamespaceNotFoundError(namespace)
        vector = await call_upstream(
            "embedding", self.embedder.embed, question, timeout=self.upstream_timeout
        )
        results = await call_upstream(
            "vector search",
            self.store.nearest_neighbors,
            namespace,
            vector,
            k or self.max_chunks,
            timeout=self.upstream_timeout,
        )
        logger.info(
            "retrieval_complete",
            extra={
                "namespace": namespace,
                "results": len(results),
                "query_length": len(question),
            },
        )
        return results

    async def query(self, question: str, namespace: str, k: int | None = None) -> QueryResult:
        if not question or not question.strip():
            raise ValidationError("Question is required")
        results = await self.retrieve(question, namespace, k)
        answer = await self.answerer.generate(question, results)
        return QueryResult(
            answer=answer,
            sources=[
                Source(content=result.chunk.text, metadata=dict(result.chunk.metadata))
                for result in results
            ],
        )
