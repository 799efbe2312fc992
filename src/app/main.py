from __future__ import annotations

"""FastAPI application entrypoint for the namespace RAG service."""

import logging
import uuid

from fastapi import Depends, FastAPI, File, Form, Request, UploadFile
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from src.app.dependencies import (
    get_embedding_config_report,
    get_ingestion_pipeline,
    get_query_pipeline,
    get_store,
)
from src.app.metrics import INGESTED_CHUNKS, QUERY_COUNT, metrics_middleware, metrics_response
from src.app.schemas import (
    EmbeddingHealthResponse,
    ErrorResponse,
    HealthResponse,
    IngestResponse,
    ProcessTextRequest,
    ProcessUrlRequest,
    QueryRequest,
    QueryResponse,
    SourceChunk,
    StoreHealthResponse,
)
from src.app.settings import settings
from src.loaders.file import stored_upload
from src.loaders.url import validate_url
from src.rag.errors import RAGError, ValidationError
from src.rag.ingestion import IngestionPipeline
from src.rag.pipeline import QueryPipeline
from src.rag.types import IngestionResult, SourceKind
from src.vectorstore.base import NamespaceStore

logger = logging.getLogger(__name__)

_ERROR_RESPONSES = {400: {"model": ErrorResponse}, 500: {"model": ErrorResponse}}

app = FastAPI(title="Namespace RAG Service", version="0.1.0")
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["Content-Type", "Authorization", "Accept"],
)


def _configure_logging() -> None:
    """Configure root logging using environment settings."""
    level_name = settings.log_level.strip().upper()
    level = getattr(logging, level_name, logging.INFO)
    root_logger = logging.getLogger()
    if not root_logger.handlers:
        logging.basicConfig(
            level=level,
            format="%(asctime)s %(levelname)s %(name)s %(message)s",
        )
    logger.setLevel(level)


_configure_logging()


def _request_id(request: Request) -> str:
    return getattr(request.state, "request_id", None) or str(uuid.uuid4())


def _missing(*values: str | None) -> bool:
    return any(value is None or not str(value).strip() for value in values)


def _error_response(
    request: Request,
    exc: Exception,
    operation: str,
    namespace: str | None,
    generic_message: str,
) -> JSONResponse:
    """Log a failed request and render a safe error body."""
    status_code = 500
    message = generic_message
    if isinstance(exc, RAGError):
        status_code = exc.status_code
        if exc.expose:
            message = str(exc)
    log = logger.warning if status_code < 500 else logger.error
    log(
        "request_failed",
        extra={
            "request_id": _request_id(request),
            "operation": operation,
            "namespace": namespace,
            "error_type": type(exc).__name__,
            "detail": str(exc),
        },
        exc_info=status_code >= 500 and not isinstance(exc, RAGError),
    )
    details = None
    if not settings.is_production and status_code >= 500:
        details = str(exc) or type(exc).__name__
    body = ErrorResponse(error=message, details=details)
    return JSONResponse(status_code=status_code, content=body.model_dump(exclude_none=True))


def _ingest_response(result: IngestionResult, message: str, kind: SourceKind) -> IngestResponse:
    INGESTED_CHUNKS.labels(kind.value).inc(result.chunk_count)
    return IngestResponse(
        success=True,
        message=message,
        namespace=result.namespace,
        documents=result.document_count,
        chunks=result.chunk_count,
    )


async def _read_upload_bytes(upload: UploadFile, max_bytes: int | None) -> bytes:
    """Stream upload bytes with a hard size limit."""
    if not max_bytes or max_bytes <= 0:
        return await upload.read()
    buffer = bytearray()
    while True:
        chunk = await upload.read(65536)
        if not chunk:
            break
        buffer.extend(chunk)
        if len(buffer) > max_bytes:
            raise ValidationError(f"File exceeds maximum size of {max_bytes} bytes")
    return bytes(buffer)


@app.middleware("http")
async def add_request_id(request: Request, call_next):
    """Attach or create a request ID for traceability."""
    request_id = request.headers.get("x-request-id") or str(uuid.uuid4())
    request.state.request_id = request_id
    response = await call_next(request)
    response.headers["X-Request-ID"] = request_id
    return response


@app.middleware("http")
async def record_metrics(request: Request, call_next):
    """Capture request metrics before returning the response."""
    return await metrics_middleware(request, call_next)


@app.exception_handler(RAGError)
async def rag_error_handler(request: Request, exc: RAGError) -> JSONResponse:
    """Render taxonomy errors raised outside route bodies, e.g. during wiring."""
    return _error_response(request, exc, request.url.path, None, "Request failed")


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    logger.warning(
        "request_invalid",
        extra={"request_id": _request_id(request), "operation": request.url.path},
    )
    return JSONResponse(status_code=400, content={"error": "Invalid request body"})


@app.get("/metrics")
async def metrics():
    """Expose Prometheus-style metrics."""
    return metrics_response()


@app.get("/api/health", response_model=HealthResponse)
async def health() -> HealthResponse:
    """Simple health probe for uptime checks."""
    logger.debug("health_check")
    return HealthResponse(status="ok", message="Server is running")


@app.get("/api/health/store", response_model=StoreHealthResponse)
async def store_health(store: NamespaceStore = Depends(get_store)) -> StoreHealthResponse:
    """Return vector database reachability."""
    return StoreHealthResponse(**store.health())


@app.get("/api/health/embedding", response_model=EmbeddingHealthResponse)
async def embedding_health() -> EmbeddingHealthResponse:
    """Return embedding configuration health checks."""
    report = get_embedding_config_report()
    return EmbeddingHealthResponse(**report.__dict__)


@app.post("/api/process-text", response_model=IngestResponse, responses=_ERROR_RESPONSES)
async def process_text(
    request: ProcessTextRequest,
    http_request: Request,
    pipeline: IngestionPipeline = Depends(get_ingestion_pipeline),
):
    """Chunk, embed and store raw text under a namespace."""
    if _missing(request.text, request.namespace):
        return _error_response(
            http_request,
            ValidationError("Text and namespace are required"),
            "process_text",
            request.namespace,
            "Failed to process text",
        )
    try:
        result = await pipeline.ingest(request.text, SourceKind.TEXT, request.namespace)
    except Exception as exc:
        return _error_response(
            http_request, exc, "process_text", request.namespace, "Failed to process text"
        )
    return _ingest_response(result, "Text processed and stored successfully", SourceKind.TEXT)


@app.post("/api/upload", response_model=IngestResponse, responses=_ERROR_RESPONSES)
async def upload(
    http_request: Request,
    file: UploadFile | None = File(None),
    namespace: str | None = Form(None),
    pipeline: IngestionPipeline = Depends(get_ingestion_pipeline),
):
    """Store an uploaded PDF or text file under a namespace."""
    if file is None or not file.filename:
        return _error_response(
            http_request,
            ValidationError("No file uploaded"),
            "upload",
            namespace,
            "Failed to process file",
        )
    if _missing(namespace):
        return _error_response(
            http_request,
            ValidationError("Namespace is required"),
            "upload",
            namespace,
            "Failed to process file",
        )
    logger.info(
        "file_upload_received",
        extra={
            "request_id": _request_id(http_request),
            "namespace": namespace,
            "source_name": file.filename,
            "media_type": file.content_type,
        },
    )
    try:
        data = await _read_upload_bytes(file, settings.file_max_bytes)
        async with stored_upload(
            data, file.filename, file.content_type, settings.upload_dir
        ) as uploaded:
            result = await pipeline.ingest(uploaded, SourceKind.FILE, namespace)
    except Exception as exc:
        return _error_response(http_request, exc, "upload", namespace, "Failed to process file")
    finally:
        await file.close()
    return _ingest_response(result, "File processed and stored successfully", SourceKind.FILE)


@app.post("/api/process-url", response_model=IngestResponse, responses=_ERROR_RESPONSES)
async def process_url(
    request: ProcessUrlRequest,
    http_request: Request,
    pipeline: IngestionPipeline = Depends(get_ingestion_pipeline),
):
    """Render a web page and store its visible text under a namespace."""
    if _missing(request.url, request.namespace):
        return _error_response(
            http_request,
            ValidationError("URL and namespace are required"),
            "process_url",
            request.namespace,
            "Failed to process URL",
        )
    try:
        url = validate_url(request.url)
        result = await pipeline.ingest(url, SourceKind.URL, request.namespace)
    except Exception as exc:
        return _error_response(
            http_request, exc, "process_url", request.namespace, "Failed to process URL"
        )
    return _ingest_response(
        result, "URL content processed and stored successfully", SourceKind.URL
    )


@app.post("/api/query", response_model=QueryResponse, responses=_ERROR_RESPONSES)
async def query(
    request: QueryRequest,
    http_request: Request,
    pipeline: QueryPipeline = Depends(get_query_pipeline),
):
    """Answer a question from the documents stored in one namespace."""
    if _missing(request.question, request.namespace):
        return _error_response(
            http_request,
            ValidationError("Question and namespace are required"),
            "query",
            request.namespace,
            "Failed to process query",
        )
    logger.info(
        "query_received",
        extra={
            "request_id": _request_id(http_request),
            "namespace": request.namespace,
            "query_length": len(request.question),
        },
    )
    try:
        result = await pipeline.query(request.question, request.namespace)
    except Exception as exc:
        QUERY_COUNT.labels("failed").inc()
        return _error_response(
            http_request, exc, "query", request.namespace, "Failed to process query"
        )
    QUERY_COUNT.labels("answered").inc()
    logger.info(
        "query_completed",
        extra={
            "request_id": _request_id(http_request),
            "namespace": request.namespace,
            "answer_length": len(result.answer),
            "sources": len(result.sources),
        },
    )
    return QueryResponse(
        answer=result.answer,
        sources=[
            SourceChunk(content=source.content, metadata=source.metadata)
            for source in result.sources
        ],
    )
