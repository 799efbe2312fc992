from __future__ import annotations

"""Error taxonomy shared by extractors, stores and pipelines."""


class RAGError(RuntimeError):
    """Base error for ingestion and query failures."""
    status_code: int = 500
    expose: bool = True


class ValidationError(RAGError):
    """Raised when request input is missing or malformed."""
    status_code = 400


class InvalidUrlError(ValidationError):
    """Raised when a URL cannot be parsed as an http(s) address."""

    def __init__(self, message: str = "Invalid URL format") -> None:
        super().__init__(message)


class ConfigurationError(RAGError):
    """Raised when runtime configuration is invalid."""
    pass


class ChunkingConfigError(ConfigurationError):
    """Raised when chunk size and overlap cannot make progress."""
    pass


class UnsupportedMediaTypeError(RAGError):
    """Raised when an uploaded file has a type with no extractor."""

    def __init__(self, media_type: str) -> None:
        super().__init__(f"Unsupported file type: {media_type}")
        self.media_type = media_type


class EmptyContentError(RAGError):
    """Raised when a source yields no usable text."""
    pass


class EmptyDocumentError(EmptyContentError):
    """Raised when a file produces zero documents."""
    pass


class NavigationTimeoutError(RAGError):
    """Raised when page navigation exceeds its time budget."""
    pass


class NamespaceNotFoundError(RAGError):
    """Raised when a namespace has no collection in the vector database."""

    def __init__(self, namespace: str) -> None:
        super().__init__(f"Namespace not found: {namespace}")
        self.namespace = namespace


class DimensionMismatchError(RAGError):
    """Raised when vectors do not match the collection dimension."""

    def __init__(self, namespace: str, expected: int, actual: int) -> None:
        super().__init__(
            f"Embedding dimension mismatch for namespace {namespace}: "
            f"expected {expected}, got {actual}"
        )
        self.namespace = namespace
        self.expected = expected
        self.actual = actual


class UpstreamError(RAGError):
    """Raised when an external collaborator fails."""
    expose = False
