from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field


class ProcessTextRequest(BaseModel):
    text: str | None = None
    namespace: str | None = None


class ProcessUrlRequest(BaseModel):
    url: str | None = None
    namespace: str | None = None


class QueryRequest(BaseModel):
    question: str | None = None
    namespace: str | None = None


class IngestResponse(BaseModel):
    success: bool
    message: str
    namespace: str
    documents: int
    chunks: int


class SourceChunk(BaseModel):
    content: str
    metadata: dict[str, Any] = Field(default_factory=dict)


class QueryResponse(BaseModel):
    answer: str
    sources: list[SourceChunk]


class HealthResponse(BaseModel):
    status: str
    message: str


class StoreHealthResponse(BaseModel):
    backend: str
    ok: bool
    detail: str | None = None


class EmbeddingHealthResponse(BaseModel):
    provider: str
    model: str | None
    configured_dimension: int
    expected_dimension: int | None = None
    ok: bool
    status: str
    detail: str | None = None
    action: str | None = None


class ErrorResponse(BaseModel):
    error: str
    details: str | None = None
