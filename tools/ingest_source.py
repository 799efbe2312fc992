from __future__ import annotations

"""CLI utility to ingest text, a file or a URL into a namespace."""

import argparse
import asyncio
import mimetypes
from pathlib import Path

from src.app.dependencies import get_ingestion_pipeline
from src.app.settings import settings
from src.loaders.file import UploadedFile
from src.rag.errors import RAGError
from src.rag.types import IngestionResult, SourceKind


async def _ingest(args: argparse.Namespace) -> IngestionResult:
    pipeline = get_ingestion_pipeline()
    if args.text is not None:
        return await pipeline.ingest(args.text, SourceKind.TEXT, args.namespace)
    if args.url is not None:
        return await pipeline.ingest(args.url, SourceKind.URL, args.namespace)
    path = Path(args.file)
    media_type = args.media_type or mimetypes.guess_type(path.name)[0] or ""
    uploaded = UploadedFile(path=path, filename=path.name, media_type=media_type)
    return await pipeline.ingest(uploaded, SourceKind.FILE, args.namespace)


def main(argv: list[str] | None = None) -> None:
    """Ingest one source using the configured embedder and vector store."""
    parser = argparse.ArgumentParser(description="Ingest a source into a namespace.")
    parser.add_argument("namespace", help="Namespace (collection) to populate.")
    source = parser.add_mutually_exclusive_group(required=True)
    source.add_argument("--text", help="Literal text to ingest.")
    source.add_argument("--file", help="Path to a PDF or plain text file.")
    source.add_argument("--url", help="Web page URL to render and ingest.")
    parser.add_argument("--media-type", help="Override the detected file media type.")
    args = parser.parse_args(argv)

    if settings.vectorstore_backend.lower().strip() == "memory":
        raise SystemExit(
            "RAG_VECTORSTORE=memory keeps chunks only for the life of this process; "
            "set RAG_VECTORSTORE=milvus to ingest from the command line."
        )

    try:
        result = asyncio.run(_ingest(args))
    except RAGError as exc:
        raise SystemExit(f"Ingestion failed: {exc}") from exc
    print(
        f"Stored {result.chunk_count} chunks from {result.document_count} documents "
        f"in namespace {result.namespace}"
    )


if __name__ == "__main__":
    main()
