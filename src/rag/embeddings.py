from __future__ import annotations

"""Embedding backends used for both chunk storage and question lookup."""

import hashlib
import math
import re
from dataclasses import dataclass, field
from typing import Any, Protocol

from src.rag.errors import ConfigurationError, UpstreamError

_WORD_RE = re.compile(r"[a-z0-9]+")

KNOWN_OPENAI_DIMENSIONS = {
    "text-embedding-3-small": 1536,
    "text-embedding-3-large": 3072,
    "text-embedding-ada-002": 1536,
}


class EmbeddingError(UpstreamError):
    """Raised when a backend fails or returns a malformed vector."""
    pass


class EmbeddingConfigError(ConfigurationError):
    pass


class EmbeddingProvider(Protocol):
    """Turns text into fixed-length float vectors."""
    dimension: int

    def embed(self, text: str) -> list[float]:
        raise NotImplementedError

    def embed_documents(self, texts: list[str]) -> list[list[float]]:
        """Embed a batch; output order matches input order."""
        raise NotImplementedError


def validate_vector(vector: list[float], dimension: int) -> list[float]:
    """Return the vector as floats after checking length and finiteness."""
    if len(vector) != dimension:
        raise EmbeddingError(f"Expected a {dimension}-dimensional embedding, got {len(vector)}")
    if any(isinstance(value, bool) or not isinstance(value, (int, float)) for value in vector):
        raise EmbeddingError("Embedding has non-numeric components")
    floats = [float(value) for value in vector]
    if not all(math.isfinite(value) for value in floats):
        raise EmbeddingError("Embedding has NaN or infinite components")
    return floats


@dataclass
class HashEmbedder:
    """Offline bag-of-words embedder: each word hashes into one bucket.

    Identical text always yields the identical unit vector, which keeps
    tests and local runs reproducible without network access.
    """
    dimension: int = 256

    def __post_init__(self) -> None:
        if self.dimension <= 0:
            raise EmbeddingConfigError("EMBEDDING_DIMENSION must be greater than zero")

    def embed(self, text: str) -> list[float]:
        buckets = [0.0] * self.dimension
        for word in _WORD_RE.findall(text.lower()):
            bucket = int.from_bytes(hashlib.sha256(word.encode("utf-8")).digest()[:4], "big")
            buckets[bucket % self.dimension] += 1.0
        length = math.sqrt(sum(value * value for value in buckets))
        if length:
            buckets = [value / length for value in buckets]
        return validate_vector(buckets, self.dimension)

    def embed_documents(self, texts: list[str]) -> list[list[float]]:
        return [self.embed(text) for text in texts]


def resolve_openai_dimension(model: str) -> int | None:
    return KNOWN_OPENAI_DIMENSIONS.get(model)


@dataclass(frozen=True)
class EmbeddingConfigReport:
    """Result of checking EMBEDDING_* settings, served by the health route."""
    provider: str
    model: str | None
    configured_dimension: int
    expected_dimension: int | None
    ok: bool
    status: str
    detail: str | None = None
    action: str | None = None


def build_embedding_config_report(
    provider: str, model: str | None, dimension: int
) -> EmbeddingConfigReport:
    """Check provider, model and dimension without contacting any backend."""
    name = provider.lower().strip() or "hash"
    if name == "google":
        name = "gemini"
    expected: int | None = None
    detail: str | None = None
    action: str | None = None

    if name == "hash":
        expected = dimension if dimension > 0 else None
        if expected is None:
            detail = "EMBEDDING_DIMENSION must be greater than zero for hash embeddings."
            action = "Set EMBEDDING_DIMENSION to a positive integer."
    elif name not in {"openai", "gemini"}:
        detail = "Unsupported embedding provider."
        action = "Set EMBEDDING_PROVIDER to hash, openai, or gemini."
    elif not model:
        variable = f"{name.upper()}_EMBEDDING_MODEL"
        detail = f"{variable} is required for {name} embeddings."
        action = f"Set {variable} in .env."
    else:
        expected = resolve_openai_dimension(model) if name == "openai" else None
        if dimension <= 0:
            detail = "EMBEDDING_DIMENSION must be set for the configured model."
        elif expected is not None and dimension != expected:
            detail = "EMBEDDING_DIMENSION does not match the model dimension."
        if detail is not None:
            action = (
                f"Set EMBEDDING_DIMENSION to {expected}."
                if expected
                else "Set EMBEDDING_DIMENSION based on the model documentation."
            )

    if detail is not None:
        status = "error"
    elif name != "hash" and expected is None:
        status = "warning"
        detail = "Model dimension cannot be auto-validated. Confirm EMBEDDING_DIMENSION manually."
    else:
        status = "ok"
    return EmbeddingConfigReport(
        provider=name,
        model=None if name == "hash" else model,
        configured_dimension=dimension,
        expected_dimension=expected,
        ok=status != "error",
        status=status,
        detail=detail,
        action=action,
    )


@dataclass
class OpenAIEmbedder:
    """OpenAI embeddings endpoint, called in batches."""
    api_key: str
    model: str
    dimension: int
    batch_size: int = 256
    client: Any = field(init=False, repr=False)

    def __post_init__(self) -> None:
        if not self.api_key or not self.model:
            raise EmbeddingConfigError(
                "OPENAI_API_KEY and OPENAI_EMBEDDING_MODEL are required for openai embeddings"
            )
        known = resolve_openai_dimension(self.model)
        if self.dimension <= 0 and known is None:
            raise EmbeddingConfigError(
                f"EMBEDDING_DIMENSION must be set for unknown model {self.model}"
            )
        if self.dimension <= 0:
            self.dimension = known
        elif known is not None and known != self.dimension:
            raise EmbeddingConfigError(
                f"EMBEDDING_DIMENSION should be {known} for model {self.model}"
            )
        from openai import OpenAI

        self.client = OpenAI(api_key=self.api_key)

    def embed(self, text: str) -> list[float]:
        return self.embed_documents([text])[0]

    def embed_documents(self, texts: list[str]) -> list[list[float]]:
        from openai import OpenAIError

        vectors: list[list[float]] = []
        for offset in range(0, len(texts), self.batch_size):
            try:
                response = self.client.embeddings.create(
                    model=self.model, input=texts[offset : offset + self.batch_size]
                )
            except OpenAIError as exc:
                raise EmbeddingError(f"OpenAI embeddings request failed: {exc}") from exc
            for item in sorted(response.data, key=lambda entry: entry.index):
                vectors.append(validate_vector(list(item.embedding), self.dimension))
        return vectors


@dataclass
class GeminiEmbedder:
    """Gemini embed_content, one request per text."""
    api_key: str
    model: str
    dimension: int
    client: Any = field(init=False, repr=False)

    def __post_init__(self) -> None:
        if not self.api_key or not self.model:
            raise EmbeddingConfigError(
                "GEMINI_API_KEY and GEMINI_EMBEDDING_MODEL are required for gemini embeddings"
            )
        if self.dimension <= 0:
            raise EmbeddingConfigError("EMBEDDING_DIMENSION must be set for gemini embeddings")
        import google.generativeai as genai

        genai.configure(api_key=self.api_key)
        self.client = genai

    def embed(self, text: str) -> list[float]:
        try:
            result = self.client.embed_content(model=self.model, content=text)
        except Exception as exc:
            raise EmbeddingError(f"Gemini embeddings request failed: {exc}") from exc
        if isinstance(result, dict):
            values = result.get("embedding")
        else:
            values = getattr(result, "embedding", None)
        if values is None:
            raise EmbeddingError("Gemini response carried no embedding")
        return validate_vector(list(values), self.dimension)

    def embed_documents(self, texts: list[str]) -> list[list[float]]:
        return [self.embed(text) for text in texts]
