from __future__ import annotations

"""Process-wide collaborators, built once and injected into routes.

Initialization order: embedder, namespace store, answer generator,
extractors, then the ingestion and query pipelines that share them.
"""

from functools import lru_cache

from src.app.settings import settings
from src.loaders.file import FileExtractor
from src.loaders.text import TextExtractor
from src.loaders.url import UrlExtractor
from src.rag.answerer import AnswerGenerator, ExtractiveAnswerer
from src.rag.embeddings import (
    EmbeddingConfigError,
    EmbeddingConfigReport,
    EmbeddingProvider,
    GeminiEmbedder,
    HashEmbedder,
    OpenAIEmbedder,
    build_embedding_config_report,
)
from src.rag.errors import ConfigurationError
from src.rag.ingestion import IngestionPipeline
from src.rag.llm import build_llm_answerer
from src.rag.pipeline import QueryPipeline
from src.rag.types import SourceKind
from src.vectorstore.base import NamespaceStore
from src.vectorstore.inmemory import InMemoryNamespaceStore
from src.vectorstore.milvus import MilvusConfig, MilvusNamespaceStore


@lru_cache
def get_embedder() -> EmbeddingProvider:
    return build_embedder()


@lru_cache
def get_store() -> NamespaceStore:
    return build_store()


@lru_cache
def get_answerer() -> AnswerGenerator:
    return build_answerer()


@lru_cache
def get_url_extractor() -> UrlExtractor:
    return UrlExtractor(timeout=settings.url_timeout)


@lru_cache
def get_ingestion_pipeline() -> IngestionPipeline:
    return IngestionPipeline(
        extractors={
            SourceKind.TEXT: TextExtractor(),
            SourceKind.FILE: FileExtractor(),
            SourceKind.URL: get_url_extractor(),
        },
        embedder=get_embedder(),
        store=get_store(),
        chunk_size=settings.chunk_size,
        chunk_overlap=settings.chunk_overlap,
        chunk_unit=settings.chunk_unit,
        encoding_name=settings.tokenizer_encoding,
        upstream_timeout=settings.upstream_timeout,
    )


@lru_cache
def get_query_pipeline() -> QueryPipeline:
    return QueryPipeline(
        embedder=get_embedder(),
        store=get_store(),
        answerer=get_answerer(),
        max_chunks=settings.max_chunks,
        upstream_timeout=settings.upstream_timeout,
    )


def reset_pipeline_cache() -> None:
    """Drop every cached collaborator so the next request rebuilds them."""
    for factory in (
        get_query_pipeline,
        get_ingestion_pipeline,
        get_url_extractor,
        get_answerer,
        get_store,
        get_embedder,
    ):
        factory.cache_clear()


def get_embedding_config_report() -> EmbeddingConfigReport:
    provider = settings.embedding_provider
    model = None
    if provider.lower().strip() == "openai":
        model = settings.openai_embedding_model
    elif provider.lower().strip() in {"gemini", "google"}:
        model = settings.gemini_embedding_model
    return build_embedding_config_report(provider, model, settings.embedding_dimension)


def build_embedder() -> EmbeddingProvider:
    provider = settings.embedding_provider.lower().strip()
    if provider == "hash":
        return HashEmbedder(dimension=settings.embedding_dimension)
    if provider == "openai":
        return OpenAIEmbedder(
            api_key=settings.openai_api_key or "",
            model=settings.openai_embedding_model or "",
            dimension=settings.embedding_dimension,
        )
    if provider in {"gemini", "google"}:
        return GeminiEmbedder(
            api_key=settings.gemini_api_key or "",
            model=settings.gemini_embedding_model or "",
            dimension=settings.embedding_dimension,
        )
    raise EmbeddingConfigError(f"Unsupported embedding provider: {provider}")


def build_store() -> NamespaceStore:
    backend = settings.vectorstore_backend.lower().strip()
    if backend == "milvus":
        config = MilvusConfig(
            uri=settings.milvus_uri,
            token=settings.milvus_token,
            collection_prefix=settings.milvus_collection_prefix,
            consistency=settings.milvus_consistency,
            index_type=settings.milvus_index_type,
            metric_type=settings.milvus_metric_type,
            nlist=settings.milvus_nlist,
            nprobe=settings.milvus_nprobe,
        )
        return MilvusNamespaceStore(config=config)
    if backend != "memory":
        raise ConfigurationError(f"Unsupported vector store backend: {backend}")
    return InMemoryNamespaceStore()


def build_answerer() -> AnswerGenerator:
    mode = settings.answerer_mode.lower().strip()
    if mode == "extractive":
        return ExtractiveAnswerer()
    if mode != "llm":
        raise ConfigurationError(f"Unsupported answerer mode: {mode}")
    return build_llm_answerer(
        settings.llm_provider,
        api_key_openai=settings.openai_api_key,
        api_key_gemini=settings.gemini_api_key,
        openai_base_url=settings.openai_base_url,
        openai_model=settings.openai_chat_model,
        gemini_model=settings.gemini_chat_model,
        ollama_base_url=settings.ollama_base_url,
        ollama_model=settings.ollama_model,
        temperature=settings.llm_temperature,
        max_tokens=settings.llm_max_tokens,
        timeout=settings.llm_timeout,
        context_max_chars=settings.llm_context_max_chars,
    )
