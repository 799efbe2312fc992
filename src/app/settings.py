from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

try:
    from dotenv import load_dotenv
except ImportError:  # pragma: no cover - optional in minimal setups
    load_dotenv = None

if load_dotenv is not None:
    load_dotenv()


def _bool_env(name: str, default: str) -> bool:
    return os.getenv(name, default).strip().lower() in {"1", "true", "yes"}


@dataclass(frozen=True)
class Settings:
    environment: str = os.getenv("RAG_ENV", "production")
    log_level: str = os.getenv("RAG_LOG_LEVEL", "INFO")
    chunk_size: int = int(os.getenv("RAG_CHUNK_SIZE", "1000"))
    chunk_overlap: int = int(os.getenv("RAG_CHUNK_OVERLAP", "200"))
    chunk_unit: str = os.getenv("RAG_CHUNK_UNIT", "chars")
    tokenizer_encoding: str = os.getenv("RAG_TOKENIZER_ENCODING", "cl100k_base")
    max_chunks: int = int(os.getenv("RAG_MAX_CHUNKS", "4"))
    vectorstore_backend: str = os.getenv("RAG_VECTORSTORE", "memory")
    embedding_provider: str = os.getenv("EMBEDDING_PROVIDER", "hash")
    embedding_dimension: int = int(os.getenv("EMBEDDING_DIMENSION", "256"))
    openai_api_key: str | None = os.getenv("OPENAI_API_KEY")
    openai_embedding_model: str | None = os.getenv("OPENAI_EMBEDDING_MODEL")
    openai_base_url: str = os.getenv("OPENAI_BASE_URL", "https://api.openai.com/v1")
    openai_chat_model: str | None = os.getenv("OPENAI_CHAT_MODEL", "gpt-3.5-turbo")
    gemini_api_key: str | None = os.getenv("GEMINI_API_KEY")
    gemini_embedding_model: str | None = os.getenv("GEMINI_EMBEDDING_MODEL")
    gemini_chat_model: str | None = os.getenv("GEMINI_CHAT_MODEL")
    milvus_uri: str = os.getenv("MILVUS_URI", "http://localhost:19530")
    milvus_token: str | None = os.getenv("MILVUS_TOKEN")
    milvus_collection_prefix: str = os.getenv("MILVUS_COLLECTION_PREFIX", "")
    milvus_consistency: str = os.getenv("MILVUS_CONSISTENCY", "Strong")
    milvus_index_type: str = os.getenv("MILVUS_INDEX_TYPE", "IVF_FLAT")
    milvus_metric_type: str = os.getenv("MILVUS_METRIC_TYPE", "COSINE")
    milvus_nlist: int = int(os.getenv("MILVUS_NLIST", "1024"))
    milvus_nprobe: int = int(os.getenv("MILVUS_NPROBE", "10"))
    answerer_mode: str = os.getenv("RAG_ANSWERER", "extractive")
    llm_provider: str = os.getenv("RAG_LLM_PROVIDER", "openai")
    llm_temperature: float = float(os.getenv("RAG_LLM_TEMPERATURE", "0.7"))
    llm_max_tokens: int = int(os.getenv("RAG_LLM_MAX_TOKENS", "512"))
    llm_timeout: float = float(os.getenv("RAG_LLM_TIMEOUT", "30"))
    llm_context_max_chars: int = int(os.getenv("RAG_LLM_CONTEXT_MAX_CHARS", "12000"))
    ollama_base_url: str = os.getenv("OLLAMA_BASE_URL", "http://localhost:11434")
    ollama_model: str = os.getenv("OLLAMA_MODEL", "llama3.1")
    url_timeout: float = float(os.getenv("RAG_URL_TIMEOUT", "30"))
    upstream_timeout: float = float(os.getenv("RAG_UPSTREAM_TIMEOUT", "0"))
    upload_dir: Path = Path(os.getenv("RAG_UPLOAD_DIR", "uploads"))
    file_max_bytes: int = int(os.getenv("RAG_FILE_MAX_BYTES", "52428800"))
    cors_origins_raw: str = os.getenv(
        "RAG_CORS_ORIGINS", "http://localhost:3000,http://127.0.0.1:3000"
    )
    metrics_enabled: bool = _bool_env("RAG_METRICS_ENABLED", "true")

    @property
    def is_production(self) -> bool:
        return self.environment.strip().lower() == "production"

    @property
    def cors_origins(self) -> list[str]:
        return [value.strip() for value in self.cors_origins_raw.split(",") if value.strip()]


settings = Settings()
